"""
Ball possessions. A possession opens when the ball crosses the center line
and stays open until it is ended with a result or the other club takes over;
at most one possession per game is open at a time.
"""

import logging
from typing import Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from shotspot.database.models import Club, GameStatus, Possession, PossessionResult
from shotspot.services import game_service
from shotspot.utils.datetime_utils import ensure_utc, isoformat, utcnow
from shotspot.utils.errors import NotFoundError

logger = logging.getLogger(__name__)


def _possession_to_dict(possession: Possession, club_name: Optional[str] = None) -> Dict:
    return {
        "id": possession.id,
        "game_id": possession.game_id,
        "club_id": possession.club_id,
        "club_name": club_name,
        "period": possession.period,
        "started_at": isoformat(possession.started_at),
        "ended_at": isoformat(possession.ended_at),
        "duration_seconds": possession.duration_seconds,
        "shots_taken": possession.shots_taken,
        "result": possession.result.value if possession.result else None,
    }


def _close(possession: Possession, result: PossessionResult) -> None:
    now = utcnow()
    possession.ended_at = now
    possession.duration_seconds = max(0, int((now - ensure_utc(possession.started_at)).total_seconds()))
    possession.result = result


async def _open_possession(session: AsyncSession, game_id: int) -> Optional[Possession]:
    result = await session.execute(
        select(Possession)
        .where(Possession.game_id == game_id, Possession.ended_at.is_(None))
        .order_by(Possession.started_at.desc(), Possession.id.desc())
    )
    return result.scalars().first()


async def list_possessions(
    session: AsyncSession,
    game_id: int,
    club_id: Optional[int] = None,
    period: Optional[int] = None,
) -> List[Dict]:
    """Possessions of a game, newest first."""
    await game_service.get_game_model(session, game_id)
    query = (
        select(Possession, Club.name)
        .outerjoin(Club, Club.id == Possession.club_id)
        .where(Possession.game_id == game_id)
    )
    if club_id is not None:
        query = query.where(Possession.club_id == club_id)
    if period is not None:
        query = query.where(Possession.period == period)
    result = await session.execute(query.order_by(Possession.started_at.desc(), Possession.id.desc()))
    return [_possession_to_dict(p, name) for p, name in result.all()]


async def start_possession(session: AsyncSession, game_id: int, club_id: int, period: int) -> Dict:
    """
    Open a possession for a club. Any possession still open for the game is
    closed first as a turnover.

    Raises:
        NotFoundError: Unknown game
        ValueError: Game not in progress, or club not playing in it
    """
    game = await game_service.get_game_model(session, game_id)
    if game.status != GameStatus.IN_PROGRESS:
        raise ValueError("Cannot track possessions for a game that is not in progress")
    game_service.ensure_participating_club(game, club_id)

    previous = await _open_possession(session, game_id)
    if previous is not None:
        _close(previous, PossessionResult.TURNOVER)

    possession = Possession(game_id=game_id, club_id=club_id, period=period, shots_taken=0)
    session.add(possession)
    await session.flush()
    await session.commit()
    logger.debug(f"Game {game_id}: possession {possession.id} for club {club_id} in period {period}")
    return _possession_to_dict(possession)


async def end_possession(session: AsyncSession, game_id: int, possession_id: int, result: str) -> Dict:
    """
    Raises:
        NotFoundError: Unknown possession, or it has already ended
    """
    outcome = PossessionResult(result)
    possession = await session.get(Possession, possession_id)
    if possession is None or possession.game_id != game_id or possession.ended_at is not None:
        raise NotFoundError("Possession not found or already ended")
    _close(possession, outcome)
    await session.commit()
    return _possession_to_dict(possession)


async def get_active_possession(session: AsyncSession, game_id: int) -> Dict:
    """The open possession with its running duration."""
    await game_service.get_game_model(session, game_id)
    possession = await _open_possession(session, game_id)
    if possession is None:
        raise NotFoundError("No active possession found")
    club = await session.get(Club, possession.club_id)
    data = _possession_to_dict(possession, club.name if club else None)
    data["current_duration_seconds"] = max(
        0, int((utcnow() - ensure_utc(possession.started_at)).total_seconds())
    )
    return data


async def record_shot(session: AsyncSession, game_id: int, possession_id: int) -> Dict:
    """Count one more shot against a possession."""
    possession = await session.get(Possession, possession_id)
    if possession is None or possession.game_id != game_id:
        raise NotFoundError("Possession not found")
    possession.shots_taken += 1
    await session.commit()
    return _possession_to_dict(possession)


async def possession_stats(session: AsyncSession, game_id: int) -> List[Dict]:
    """Per-club figures over the ended possessions of a game."""
    await game_service.get_game_model(session, game_id)
    result = await session.execute(
        select(Possession, Club.name)
        .outerjoin(Club, Club.id == Possession.club_id)
        .where(Possession.game_id == game_id, Possession.ended_at.isnot(None))
        .order_by(Possession.club_id)
    )
    by_club: Dict[int, Dict] = {}
    for possession, club_name in result.all():
        entry = by_club.setdefault(
            possession.club_id,
            {"club_id": possession.club_id, "club_name": club_name, "possessions": []},
        )
        entry["possessions"].append(possession)

    stats = []
    for entry in by_club.values():
        rows = entry.pop("possessions")
        total = len(rows)
        durations = [p.duration_seconds or 0 for p in rows]
        entry.update(
            total_possessions=total,
            avg_duration_seconds=round(sum(durations) / total, 1),
            avg_shots_per_possession=round(sum(p.shots_taken for p in rows) / total, 2),
            possessions_with_goal=sum(1 for p in rows if p.result == PossessionResult.GOAL),
            turnovers=sum(1 for p in rows if p.result == PossessionResult.TURNOVER),
        )
        stats.append(entry)
    return stats
