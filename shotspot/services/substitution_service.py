"""
Substitutions and on-court tracking.

Whether a player is on the court is derived from the roster and the
substitution log rather than stored:

    starter:      on court while times_in == times_out
    non-starter:  on court while times_in >  times_out

A substitution is legal only if the incoming player is currently on the
bench and the outgoing player is currently on the court.
"""

import logging
from collections import Counter
from typing import Dict, List, Optional, Tuple

from sqlalchemy import select, or_
from sqlalchemy.ext.asyncio import AsyncSession

from shotspot.database.models import (
    Club,
    GameRoster,
    GameStatus,
    Player,
    Substitution,
    SubstitutionReason,
)
from shotspot.services import game_service
from shotspot.utils.datetime_utils import isoformat
from shotspot.utils.errors import NotFoundError

logger = logging.getLogger(__name__)


def is_on_court(is_starting: bool, times_in: int, times_out: int) -> bool:
    if is_starting:
        return times_in == times_out
    return times_in > times_out


def substitution_counts(substitutions: List[Tuple[int, int]]) -> Tuple[Counter, Counter]:
    """Count appearances as (player_in, player_out) across the substitution log."""
    ins = Counter(player_in for player_in, _ in substitutions)
    outs = Counter(player_out for _, player_out in substitutions)
    return ins, outs


def check_substitution(
    starting: Dict[int, bool],
    substitutions: List[Tuple[int, int]],
    player_in_id: int,
    player_out_id: int,
) -> None:
    """
    Validate a substitution against the roster and prior substitutions.

    Args:
        starting: player_id -> is_starting for the club's rostered players
        substitutions: prior (player_in_id, player_out_id) pairs for the club

    Raises:
        ValueError: Player not rostered, incoming player on court, or
            outgoing player on the bench
    """
    if player_in_id not in starting or player_out_id not in starting:
        raise ValueError("Both players must be in the game roster")
    ins, outs = substitution_counts(substitutions)
    if is_on_court(starting[player_in_id], ins[player_in_id], outs[player_in_id]):
        raise ValueError("Player coming in is already on the court")
    if not is_on_court(starting[player_out_id], ins[player_out_id], outs[player_out_id]):
        raise ValueError("Player going out is not currently on the court")


def _substitution_to_dict(sub: Substitution, names: Optional[Dict] = None) -> Dict:
    data = {
        "id": sub.id,
        "game_id": sub.game_id,
        "club_id": sub.club_id,
        "player_in_id": sub.player_in_id,
        "player_out_id": sub.player_out_id,
        "period": sub.period,
        "time_remaining_seconds": sub.time_remaining_seconds,
        "reason": sub.reason.value,
        "created_at": isoformat(sub.created_at),
    }
    if names:
        data.update(names)
    return data


async def _club_substitutions(session: AsyncSession, game_id: int, club_id: int) -> List[Tuple[int, int]]:
    result = await session.execute(
        select(Substitution.player_in_id, Substitution.player_out_id)
        .where(Substitution.game_id == game_id, Substitution.club_id == club_id)
        .order_by(Substitution.created_at, Substitution.id)
    )
    return [(row[0], row[1]) for row in result.all()]


async def list_substitutions(
    session: AsyncSession,
    game_id: int,
    club_id: Optional[int] = None,
    period: Optional[int] = None,
    player_id: Optional[int] = None,
) -> List[Dict]:
    await game_service.get_game_model(session, game_id)
    query = select(Substitution).where(Substitution.game_id == game_id)
    if club_id is not None:
        query = query.where(Substitution.club_id == club_id)
    if period is not None:
        query = query.where(Substitution.period == period)
    if player_id is not None:
        query = query.where(
            or_(Substitution.player_in_id == player_id, Substitution.player_out_id == player_id)
        )
    subs = (await session.execute(query.order_by(Substitution.created_at.desc(), Substitution.id.desc()))).scalars().all()

    player_ids = set()
    for sub in subs:
        player_ids.update((sub.player_in_id, sub.player_out_id))
    players = {}
    if player_ids:
        result = await session.execute(select(Player).where(Player.id.in_(player_ids)))
        players = {p.id: p for p in result.scalars().all()}

    def _names(prefix: str, player: Optional[Player]) -> Dict:
        if player is None:
            return {}
        return {
            f"{prefix}_first_name": player.first_name,
            f"{prefix}_last_name": player.last_name,
            f"{prefix}_jersey_number": player.jersey_number,
        }

    return [
        _substitution_to_dict(
            sub,
            {**_names("player_in", players.get(sub.player_in_id)), **_names("player_out", players.get(sub.player_out_id))},
        )
        for sub in subs
    ]


async def active_players(session: AsyncSession, game_id: int) -> Dict:
    """
    Split each club's roster into on-court and bench players.

    Raises:
        NotFoundError: Unknown game, or no roster for the game
    """
    game = await game_service.get_game_model(session, game_id)
    result = await session.execute(
        select(GameRoster, Player, Club.name)
        .join(Player, Player.id == GameRoster.player_id)
        .join(Club, Club.id == GameRoster.club_id)
        .where(GameRoster.game_id == game_id)
        .order_by(GameRoster.club_id, Player.jersey_number)
    )
    rows = result.all()
    if not rows:
        raise NotFoundError("No roster found for this game")

    subs = await session.execute(
        select(Substitution.player_in_id, Substitution.player_out_id).where(Substitution.game_id == game_id)
    )
    ins, outs = substitution_counts([(r[0], r[1]) for r in subs.all()])

    response = {"home_team": {"active": [], "bench": []}, "away_team": {"active": [], "bench": []}}
    for entry, player, club_name in rows:
        data = {
            "id": player.id,
            "club_id": entry.club_id,
            "first_name": player.first_name,
            "last_name": player.last_name,
            "jersey_number": player.jersey_number,
            "gender": player.gender.value if player.gender else None,
            "club_name": club_name,
        }
        side = "home_team" if entry.club_id == game.home_club_id else "away_team"
        bucket = "active" if is_on_court(entry.is_starting, ins[player.id], outs[player.id]) else "bench"
        response[side][bucket].append(data)
    return response


async def create_substitution(
    session: AsyncSession,
    game_id: int,
    club_id: int,
    player_in_id: int,
    player_out_id: int,
    period: int,
    time_remaining_seconds: Optional[int] = None,
    reason: str = SubstitutionReason.TACTICAL.value,
) -> Dict:
    """
    Record a substitution after checking it is legal.

    Raises:
        NotFoundError: Unknown game or player
        ValueError: Same player twice, game not in progress, club not
            playing, players of another club or an illegal swap
    """
    if player_in_id == player_out_id:
        raise ValueError("Player in and player out must be different")

    game = await game_service.get_game_model(session, game_id)
    if game.status != GameStatus.IN_PROGRESS:
        raise ValueError("Cannot record substitution for game that is not in progress")
    game_service.ensure_participating_club(game, club_id)

    result = await session.execute(select(Player).where(Player.id.in_([player_in_id, player_out_id])))
    players = result.scalars().all()
    if len(players) != 2:
        raise NotFoundError("One or both players not found")
    if any(p.club_id != club_id for p in players):
        raise ValueError("Both players must belong to the specified club")

    roster = await session.execute(
        select(GameRoster.player_id, GameRoster.is_starting).where(
            GameRoster.game_id == game_id, GameRoster.club_id == club_id
        )
    )
    starting = {player_id: is_starting for player_id, is_starting in roster.all()}
    history = await _club_substitutions(session, game_id, club_id)
    check_substitution(starting, history, player_in_id, player_out_id)

    sub = Substitution(
        game_id=game_id,
        club_id=club_id,
        player_in_id=player_in_id,
        player_out_id=player_out_id,
        period=period,
        time_remaining_seconds=time_remaining_seconds,
        reason=SubstitutionReason(reason),
    )
    session.add(sub)
    await session.flush()
    await session.commit()
    logger.info(f"Game {game_id}: player {player_out_id} replaced by {player_in_id}")
    return _substitution_to_dict(sub)


async def delete_substitution(session: AsyncSession, game_id: int, substitution_id: int) -> None:
    """Undo a substitution. Only the club's most recent one may be removed."""
    sub = await session.get(Substitution, substitution_id)
    if sub is None or sub.game_id != game_id:
        raise NotFoundError("Substitution not found")

    latest = await session.execute(
        select(Substitution.id)
        .where(Substitution.game_id == game_id, Substitution.club_id == sub.club_id)
        .order_by(Substitution.created_at.desc(), Substitution.id.desc())
        .limit(1)
    )
    if latest.scalar() != substitution_id:
        raise ValueError("Can only delete the most recent substitution")

    await session.delete(sub)
    await session.commit()
