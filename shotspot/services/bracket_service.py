"""
Single-elimination tournament brackets.

Planning is pure (``plan_bracket``); ``generate_bracket`` persists a plan for a
competition and ``update_bracket_match`` records results and pushes winners
forward.
"""

import logging
import math
from typing import Dict, List, Optional

from sqlalchemy import select, delete, update
from sqlalchemy.ext.asyncio import AsyncSession

from shotspot.database.models import (
    BracketStatus,
    Competition,
    CompetitionTeam,
    CompetitionType,
    Team,
    TournamentBracket,
)
from shotspot.utils.datetime_utils import isoformat, parse_iso_datetime
from shotspot.utils.errors import NotFoundError

logger = logging.getLogger(__name__)


def seed_order(size: int) -> List[int]:
    """
    Standard bracket seed order for ``size`` slots (a power of two).

    >>> seed_order(8)
    [1, 8, 4, 5, 2, 7, 3, 6]
    """
    order = [1, 2]
    while len(order) < size:
        slots = len(order) * 2
        order = [seed for s in order for seed in (s, slots + 1 - s)]
    return order[:size]


def round_name(teams_in_round: int) -> str:
    if teams_in_round == 2:
        return "Final"
    if teams_in_round == 4:
        return "Semi Finals"
    if teams_in_round == 8:
        return "Quarter Finals"
    return f"Round of {teams_in_round}"


def plan_bracket(team_ids: List[int]) -> List[List[Dict]]:
    """
    Lay out every round for the given teams, listed best seed first.

    Returns one list per round. Each match is a dict with round_number,
    round_name, match_number, home_team_id, away_team_id, winner_team_id,
    is_bye and next_match_number (None in the final). First-round byes are
    resolved: the lone team is the winner and already sits in its next match.

    Raises:
        ValueError: Fewer than two teams
    """
    if len(team_ids) < 2:
        raise ValueError("Need at least 2 teams to generate a bracket")

    rounds_total = math.ceil(math.log2(len(team_ids)))
    size = 2 ** rounds_total

    rounds = []
    for round_number in range(1, rounds_total + 1):
        matches_in_round = size // (2 ** round_number)
        rounds.append(
            [
                {
                    "round_number": round_number,
                    "round_name": round_name(matches_in_round * 2),
                    "match_number": match_number,
                    "home_team_id": None,
                    "away_team_id": None,
                    "winner_team_id": None,
                    "is_bye": False,
                    "next_match_number": (
                        math.ceil(match_number / 2) if round_number < rounds_total else None
                    ),
                }
                for match_number in range(1, matches_in_round + 1)
            ]
        )

    order = seed_order(size)
    for index, match in enumerate(rounds[0]):
        home_seed, away_seed = order[2 * index], order[2 * index + 1]
        match["home_team_id"] = team_ids[home_seed - 1] if home_seed <= len(team_ids) else None
        match["away_team_id"] = team_ids[away_seed - 1] if away_seed <= len(team_ids) else None
        if match["home_team_id"] is None or match["away_team_id"] is None:
            match["is_bye"] = True
            match["winner_team_id"] = match["home_team_id"] or match["away_team_id"]
            if len(rounds) > 1:
                _place_winner(rounds[1], match, match["winner_team_id"])
    return rounds


def _place_winner(next_round: List[Dict], match: Dict, winner_id: int) -> None:
    target = next_round[match["next_match_number"] - 1]
    slot = "home_team_id" if match["match_number"] % 2 == 1 else "away_team_id"
    target[slot] = winner_id


def _bracket_to_dict(bracket: TournamentBracket, names: Optional[Dict[int, str]] = None) -> Dict:
    names = names or {}
    return {
        "id": bracket.id,
        "competition_id": bracket.competition_id,
        "round_number": bracket.round_number,
        "round_name": bracket.round_name,
        "match_number": bracket.match_number,
        "game_id": bracket.game_id,
        "home_team_id": bracket.home_team_id,
        "home_team_name": names.get(bracket.home_team_id),
        "away_team_id": bracket.away_team_id,
        "away_team_name": names.get(bracket.away_team_id),
        "winner_team_id": bracket.winner_team_id,
        "winner_team_name": names.get(bracket.winner_team_id),
        "next_bracket_id": bracket.next_bracket_id,
        "scheduled_date": isoformat(bracket.scheduled_date),
        "status": bracket.status.value,
    }


async def _team_names(session: AsyncSession, team_ids) -> Dict[int, str]:
    ids = {t for t in team_ids if t is not None}
    if not ids:
        return {}
    result = await session.execute(select(Team.id, Team.name).where(Team.id.in_(ids)))
    return {team_id: name for team_id, name in result.all()}


async def _get_competition(session: AsyncSession, competition_id: int) -> Competition:
    competition = await session.get(Competition, competition_id)
    if competition is None:
        raise NotFoundError("Competition not found")
    return competition


async def get_bracket(session: AsyncSession, competition_id: int) -> Dict:
    """Bracket matches grouped by round."""
    await _get_competition(session, competition_id)
    result = await session.execute(
        select(TournamentBracket)
        .where(TournamentBracket.competition_id == competition_id)
        .order_by(TournamentBracket.round_number, TournamentBracket.match_number)
    )
    brackets = result.scalars().all()
    names = await _team_names(
        session,
        [t for b in brackets for t in (b.home_team_id, b.away_team_id, b.winner_team_id)],
    )

    rounds: Dict[int, Dict] = {}
    for bracket in brackets:
        entry = rounds.setdefault(
            bracket.round_number,
            {"round_number": bracket.round_number, "round_name": bracket.round_name, "matches": []},
        )
        entry["matches"].append(_bracket_to_dict(bracket, names))
    return {"competition_id": competition_id, "rounds": [rounds[k] for k in sorted(rounds)]}


async def generate_bracket(session: AsyncSession, competition_id: int) -> Dict:
    """
    Build (or rebuild) the bracket from the competition's teams.

    Teams are ordered by seed; unseeded teams follow in the order they joined.

    Raises:
        NotFoundError: Unknown competition
        ValueError: Not a tournament, or fewer than two teams
    """
    competition = await _get_competition(session, competition_id)
    if competition.competition_type != CompetitionType.TOURNAMENT:
        raise ValueError("Can only generate bracket for tournament competitions")

    result = await session.execute(
        select(CompetitionTeam).where(CompetitionTeam.competition_id == competition_id)
    )
    entries = sorted(
        result.scalars().all(),
        key=lambda ct: (ct.seed is None, ct.seed if ct.seed is not None else 0, ct.id),
    )
    rounds = plan_bracket([ct.team_id for ct in entries])

    await session.execute(
        delete(TournamentBracket).where(TournamentBracket.competition_id == competition_id)
    )
    await session.execute(
        update(CompetitionTeam)
        .where(CompetitionTeam.competition_id == competition_id)
        .values(is_eliminated=False, elimination_round=None)
    )

    # Final first so each match can point at an existing next bracket row
    ids_by_round: Dict[int, Dict[int, int]] = {}
    for matches in reversed(rounds):
        for match in matches:
            next_id = None
            if match["next_match_number"] is not None:
                next_id = ids_by_round[match["round_number"] + 1][match["next_match_number"]]
            bracket = TournamentBracket(
                competition_id=competition_id,
                round_number=match["round_number"],
                round_name=match["round_name"],
                match_number=match["match_number"],
                home_team_id=match["home_team_id"],
                away_team_id=match["away_team_id"],
                winner_team_id=match["winner_team_id"],
                next_bracket_id=next_id,
                status=BracketStatus.COMPLETED if match["is_bye"] else BracketStatus.PENDING,
            )
            session.add(bracket)
            await session.flush()
            ids_by_round.setdefault(match["round_number"], {})[match["match_number"]] = bracket.id

    await session.commit()
    logger.info(
        f"Generated {len(rounds)}-round bracket for competition {competition_id} with {len(entries)} teams"
    )
    return await get_bracket(session, competition_id)


async def update_bracket_match(session: AsyncSession, competition_id: int, bracket_id: int, updates: Dict) -> Dict:
    """
    Attach a game, schedule a match, or record its winner.

    A winner completes the match, moves into the next match (home slot from
    an odd match number, away slot from an even one) and eliminates the loser.

    Raises:
        NotFoundError: Unknown bracket match
        ValueError: Winner not in the match, or nothing to update
    """
    bracket = await session.get(TournamentBracket, bracket_id)
    if bracket is None or bracket.competition_id != competition_id:
        raise NotFoundError("Bracket match not found")

    changed = False
    if updates.get("game_id") is not None:
        bracket.game_id = updates["game_id"]
        changed = True
    if updates.get("scheduled_date") is not None:
        bracket.scheduled_date = parse_iso_datetime(updates["scheduled_date"])
        bracket.status = BracketStatus.SCHEDULED
        changed = True

    winner_id = updates.get("winner_team_id")
    if winner_id is not None:
        if winner_id not in (bracket.home_team_id, bracket.away_team_id):
            raise ValueError("Winner must be one of the teams in the match")
        next_bracket = None
        if bracket.next_bracket_id is not None:
            next_bracket = await session.get(TournamentBracket, bracket.next_bracket_id)
        if (
            bracket.winner_team_id is not None
            and bracket.winner_team_id != winner_id
            and next_bracket is not None
            and next_bracket.status == BracketStatus.COMPLETED
        ):
            raise ValueError("Cannot change the winner after the next match has been completed")

        bracket.winner_team_id = winner_id
        bracket.status = BracketStatus.COMPLETED
        changed = True

        if next_bracket is not None:
            if bracket.match_number % 2 == 1:
                next_bracket.home_team_id = winner_id
            else:
                next_bracket.away_team_id = winner_id

        # A corrected result reinstates the new winner
        await session.execute(
            update(CompetitionTeam)
            .where(CompetitionTeam.competition_id == competition_id, CompetitionTeam.team_id == winner_id)
            .values(is_eliminated=False, elimination_round=None)
        )
        loser_id = bracket.away_team_id if winner_id == bracket.home_team_id else bracket.home_team_id
        if loser_id is not None:
            await session.execute(
                update(CompetitionTeam)
                .where(
                    CompetitionTeam.competition_id == competition_id,
                    CompetitionTeam.team_id == loser_id,
                )
                .values(is_eliminated=True, elimination_round=bracket.round_number)
            )

    if not changed:
        raise ValueError("No valid fields to update")

    await session.commit()
    names = await _team_names(session, (bracket.home_team_id, bracket.away_team_id, bracket.winner_team_id))
    return _bracket_to_dict(bracket, names)
