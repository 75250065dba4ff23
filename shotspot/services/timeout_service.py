"""
Timeouts. Team and injury timeouts belong to a club; official and TV
timeouts are called by the officials and carry none.
"""

import logging
from typing import Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from shotspot.database.models import Club, GameStatus, Timeout, TimeoutType
from shotspot.services import game_service
from shotspot.utils.constants import DEFAULT_TIMEOUT_DURATION_SECONDS
from shotspot.utils.datetime_utils import isoformat, utcnow
from shotspot.utils.errors import NotFoundError

logger = logging.getLogger(__name__)

CLUBLESS_TYPES = (TimeoutType.OFFICIAL, TimeoutType.TV)


def _timeout_to_dict(timeout: Timeout, club_name: Optional[str] = None) -> Dict:
    return {
        "id": timeout.id,
        "game_id": timeout.game_id,
        "club_id": timeout.club_id,
        "club_name": club_name,
        "timeout_type": timeout.timeout_type.value,
        "period": timeout.period,
        "time_remaining_seconds": timeout.time_remaining_seconds,
        "duration_seconds": timeout.duration_seconds,
        "reason": timeout.reason,
        "called_by": timeout.called_by,
        "ended_at": isoformat(timeout.ended_at),
        "created_at": isoformat(timeout.created_at),
    }


async def list_timeouts(session: AsyncSession, game_id: int) -> List[Dict]:
    await game_service.get_game_model(session, game_id)
    result = await session.execute(
        select(Timeout, Club.name)
        .outerjoin(Club, Club.id == Timeout.club_id)
        .where(Timeout.game_id == game_id)
        .order_by(Timeout.created_at.desc(), Timeout.id.desc())
    )
    return [_timeout_to_dict(t, name) for t, name in result.all()]


async def create_timeout(
    session: AsyncSession,
    game_id: int,
    timeout_type: str,
    period: int,
    club_id: Optional[int] = None,
    time_remaining_seconds: Optional[int] = None,
    duration_seconds: int = DEFAULT_TIMEOUT_DURATION_SECONDS,
    reason: Optional[str] = None,
    called_by: Optional[str] = None,
) -> Dict:
    """
    Raises:
        NotFoundError: Unknown game
        ValueError: Game not in progress, or club given/missing for the timeout type
    """
    kind = TimeoutType(timeout_type)
    game = await game_service.get_game_model(session, game_id)
    if game.status != GameStatus.IN_PROGRESS:
        raise ValueError("Cannot add timeouts to game that is not in progress")

    if kind in CLUBLESS_TYPES and club_id is not None:
        raise ValueError(f"{kind.value} timeouts should not have a club_id")
    if kind == TimeoutType.TEAM and club_id is None:
        raise ValueError("club_id is required for team timeouts")
    if club_id is not None:
        game_service.ensure_participating_club(game, club_id)

    timeout = Timeout(
        game_id=game_id,
        club_id=club_id,
        timeout_type=kind,
        period=period,
        time_remaining_seconds=time_remaining_seconds,
        duration_seconds=duration_seconds,
        reason=reason,
        called_by=called_by,
    )
    session.add(timeout)
    await session.flush()
    await session.commit()
    logger.info(f"Game {game_id}: {kind.value} timeout in period {period}")
    return _timeout_to_dict(timeout)


async def end_timeout(session: AsyncSession, game_id: int, timeout_id: int) -> Dict:
    timeout = await session.get(Timeout, timeout_id)
    if timeout is None or timeout.game_id != game_id:
        raise NotFoundError("Timeout not found")
    if timeout.ended_at is not None:
        raise ValueError("Timeout has already ended")
    timeout.ended_at = utcnow()
    await session.commit()
    return _timeout_to_dict(timeout)
