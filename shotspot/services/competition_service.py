"""
Competitions (leagues and tournaments), their teams and league standings.

Standings award 3 points for a win, 1 for a draw and 0 for a loss, and are
ranked by points, then goal difference, then goals scored.
"""

import logging
from datetime import date
from typing import Dict, List, Optional, Tuple

from sqlalchemy import select, delete, update, func
from sqlalchemy.ext.asyncio import AsyncSession

from shotspot.database.models import (
    Club,
    Competition,
    CompetitionStanding,
    CompetitionStatus,
    CompetitionTeam,
    CompetitionType,
    Game,
    GameStatus,
    StandingGame,
    Team,
    TournamentBracket,
)
from shotspot.utils.constants import POINTS_FOR_WIN, POINTS_FOR_DRAW, POINTS_FOR_LOSS, FORM_LENGTH
from shotspot.utils.datetime_utils import isoformat
from shotspot.utils.errors import NotFoundError, ConflictError

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = (
    "name",
    "competition_type",
    "start_date",
    "end_date",
    "status",
    "settings",
    "description",
    "is_official",
)

RESULT_POINTS = {"W": POINTS_FOR_WIN, "D": POINTS_FOR_DRAW, "L": POINTS_FOR_LOSS}


# ---------------------------------------------------------------------------
# Standings arithmetic
# ---------------------------------------------------------------------------


def match_outcome(home_score: int, away_score: int) -> Tuple[str, str]:
    """Result letters (W/D/L) for the home and away side."""
    if home_score > away_score:
        return "W", "L"
    if away_score > home_score:
        return "L", "W"
    return "D", "D"


def push_form(form: Optional[str], result: str) -> str:
    """Prepend the newest result and keep the last five."""
    return (result + (form or ""))[:FORM_LENGTH]


def apply_result(standing: CompetitionStanding, result: str, goals_for: int, goals_against: int, home: bool) -> None:
    standing.games_played = (standing.games_played or 0) + 1
    standing.goals_for = (standing.goals_for or 0) + goals_for
    standing.goals_against = (standing.goals_against or 0) + goals_against
    standing.points = (standing.points or 0) + RESULT_POINTS[result]

    column = {"W": "wins", "D": "draws", "L": "losses"}[result]
    setattr(standing, column, (getattr(standing, column) or 0) + 1)
    split = f"{'home' if home else 'away'}_{column}"
    setattr(standing, split, (getattr(standing, split) or 0) + 1)
    standing.form = push_form(standing.form, result)


def standing_sort_key(standing) -> tuple:
    goal_difference = (standing.goals_for or 0) - (standing.goals_against or 0)
    return (-(standing.points or 0), -goal_difference, -(standing.goals_for or 0))


def assign_ranks(standings: List[CompetitionStanding]) -> List[CompetitionStanding]:
    ordered = sorted(standings, key=lambda s: (standing_sort_key(s), s.team_id))
    for position, standing in enumerate(ordered, start=1):
        standing.rank = position
    return ordered


# ---------------------------------------------------------------------------
# Competitions
# ---------------------------------------------------------------------------


def _competition_to_dict(competition: Competition, team_count: Optional[int] = None) -> Dict:
    data = {
        "id": competition.id,
        "name": competition.name,
        "competition_type": competition.competition_type.value,
        "start_date": isoformat(competition.start_date),
        "end_date": isoformat(competition.end_date),
        "status": competition.status.value,
        "settings": competition.settings,
        "description": competition.description,
        "is_official": competition.is_official,
        "created_at": isoformat(competition.created_at),
    }
    if team_count is not None:
        data["team_count"] = team_count
    return data


async def get_competition_model(session: AsyncSession, competition_id: int) -> Competition:
    competition = await session.get(Competition, competition_id)
    if competition is None:
        raise NotFoundError("Competition not found")
    return competition


def _team_count_query():
    return (
        select(CompetitionTeam.competition_id, func.count(CompetitionTeam.id).label("team_count"))
        .group_by(CompetitionTeam.competition_id)
        .subquery()
    )


async def list_competitions(
    session: AsyncSession, competition_type: Optional[str] = None, status: Optional[str] = None
) -> List[Dict]:
    counts = _team_count_query()
    query = select(Competition, counts.c.team_count).outerjoin(
        counts, counts.c.competition_id == Competition.id
    )
    if competition_type:
        query = query.where(Competition.competition_type == CompetitionType(competition_type))
    if status:
        query = query.where(Competition.status == CompetitionStatus(status))
    result = await session.execute(query.order_by(Competition.start_date.desc(), Competition.id.desc()))
    return [_competition_to_dict(c, count or 0) for c, count in result.all()]


async def get_competition(session: AsyncSession, competition_id: int) -> Dict:
    competition = await get_competition_model(session, competition_id)
    count = await session.execute(
        select(func.count()).select_from(CompetitionTeam).where(CompetitionTeam.competition_id == competition_id)
    )
    return _competition_to_dict(competition, count.scalar() or 0)


async def create_competition(
    session: AsyncSession,
    name: str,
    competition_type: str,
    start_date: date,
    end_date: Optional[date] = None,
    status: str = CompetitionStatus.UPCOMING.value,
    settings: Optional[Dict] = None,
    description: Optional[str] = None,
    is_official: bool = False,
) -> Dict:
    if end_date is not None and end_date < start_date:
        raise ValueError("End date must be on or after start date")
    competition = Competition(
        name=name.strip(),
        competition_type=CompetitionType(competition_type),
        start_date=start_date,
        end_date=end_date,
        status=CompetitionStatus(status),
        settings=settings,
        description=description,
        is_official=is_official,
    )
    session.add(competition)
    await session.flush()
    await session.commit()
    logger.info(f"Created {competition_type} competition {competition.id}: {competition.name}")
    return _competition_to_dict(competition, 0)


async def update_competition(session: AsyncSession, competition_id: int, updates: Dict) -> Dict:
    competition = await get_competition_model(session, competition_id)
    fields = {k: v for k, v in updates.items() if k in UPDATABLE_FIELDS}
    if not fields:
        raise ValueError("No valid fields to update")

    if "competition_type" in fields:
        fields["competition_type"] = CompetitionType(fields["competition_type"])
    if "status" in fields:
        fields["status"] = CompetitionStatus(fields["status"])
    start = fields.get("start_date", competition.start_date)
    end = fields.get("end_date", competition.end_date)
    if start is not None and end is not None and end < start:
        raise ValueError("End date must be on or after start date")

    was_completed = competition.status == CompetitionStatus.COMPLETED
    for key, value in fields.items():
        setattr(competition, key, value)
    await session.commit()

    if competition.status == CompetitionStatus.COMPLETED and not was_completed:
        from shotspot.services import report_service

        await report_service.queue_season_end_reports(session)

    return await get_competition(session, competition_id)


async def delete_competition(session: AsyncSession, competition_id: int) -> None:
    """Delete a competition with its bracket, standings and team entries. Games are kept."""
    await get_competition_model(session, competition_id)
    await session.execute(
        update(Game).where(Game.competition_id == competition_id).values(competition_id=None)
    )
    await session.execute(
        update(TournamentBracket)
        .where(TournamentBracket.competition_id == competition_id)
        .values(next_bracket_id=None)
    )
    await session.execute(delete(TournamentBracket).where(TournamentBracket.competition_id == competition_id))
    await session.execute(delete(CompetitionStanding).where(CompetitionStanding.competition_id == competition_id))
    await session.execute(delete(CompetitionTeam).where(CompetitionTeam.competition_id == competition_id))
    await session.execute(delete(Competition).where(Competition.id == competition_id))
    await session.commit()
    logger.info(f"Deleted competition {competition_id}")


# ---------------------------------------------------------------------------
# Competition teams
# ---------------------------------------------------------------------------


def _entry_to_dict(entry: CompetitionTeam, team_name: Optional[str] = None, club_name: Optional[str] = None) -> Dict:
    return {
        "id": entry.id,
        "competition_id": entry.competition_id,
        "team_id": entry.team_id,
        "team_name": team_name,
        "club_name": club_name,
        "seed": entry.seed,
        "group_name": entry.group_name,
        "is_eliminated": entry.is_eliminated,
        "elimination_round": entry.elimination_round,
        "final_rank": entry.final_rank,
    }


async def list_competition_teams(session: AsyncSession, competition_id: int) -> List[Dict]:
    await get_competition_model(session, competition_id)
    result = await session.execute(
        select(CompetitionTeam, Team.name, Club.name)
        .join(Team, Team.id == CompetitionTeam.team_id)
        .join(Club, Club.id == Team.club_id)
        .where(CompetitionTeam.competition_id == competition_id)
        .order_by(CompetitionTeam.seed.is_(None), CompetitionTeam.seed, Team.name)
    )
    return [_entry_to_dict(*row) for row in result.all()]


async def add_team(
    session: AsyncSession,
    competition_id: int,
    team_id: int,
    seed: Optional[int] = None,
    group_name: Optional[str] = None,
) -> Dict:
    """
    Raises:
        NotFoundError: Unknown competition or team
        ConflictError: Team already entered
    """
    await get_competition_model(session, competition_id)
    team = await session.get(Team, team_id)
    if team is None:
        raise NotFoundError("Team not found")

    existing = await session.execute(
        select(CompetitionTeam.id).where(
            CompetitionTeam.competition_id == competition_id, CompetitionTeam.team_id == team_id
        )
    )
    if existing.first():
        raise ConflictError("Team is already in this competition")

    entry = CompetitionTeam(competition_id=competition_id, team_id=team_id, seed=seed, group_name=group_name)
    session.add(entry)
    await session.flush()
    await session.commit()
    return _entry_to_dict(entry, team.name)


async def remove_team(session: AsyncSession, competition_id: int, team_id: int) -> None:
    result = await session.execute(
        delete(CompetitionTeam).where(
            CompetitionTeam.competition_id == competition_id, CompetitionTeam.team_id == team_id
        )
    )
    if result.rowcount == 0:
        raise NotFoundError("Team not found in competition")
    await session.execute(
        delete(CompetitionStanding).where(
            CompetitionStanding.competition_id == competition_id, CompetitionStanding.team_id == team_id
        )
    )
    await session.commit()


# ---------------------------------------------------------------------------
# Standings
# ---------------------------------------------------------------------------


def _standing_to_dict(standing: CompetitionStanding, team_name: Optional[str] = None) -> Dict:
    return {
        "id": standing.id,
        "competition_id": standing.competition_id,
        "team_id": standing.team_id,
        "team_name": team_name,
        "rank": standing.rank,
        "games_played": standing.games_played,
        "wins": standing.wins,
        "draws": standing.draws,
        "losses": standing.losses,
        "goals_for": standing.goals_for,
        "goals_against": standing.goals_against,
        "goal_difference": standing.goals_for - standing.goals_against,
        "points": standing.points,
        "form": standing.form,
        "home_wins": standing.home_wins,
        "home_draws": standing.home_draws,
        "home_losses": standing.home_losses,
        "away_wins": standing.away_wins,
        "away_draws": standing.away_draws,
        "away_losses": standing.away_losses,
    }


def _new_standing(competition_id: int, team_id: int) -> CompetitionStanding:
    return CompetitionStanding(
        competition_id=competition_id,
        team_id=team_id,
        games_played=0,
        wins=0,
        draws=0,
        losses=0,
        goals_for=0,
        goals_against=0,
        points=0,
        home_wins=0,
        home_draws=0,
        home_losses=0,
        away_wins=0,
        away_draws=0,
        away_losses=0,
    )


async def get_standings(session: AsyncSession, competition_id: int) -> List[Dict]:
    await get_competition_model(session, competition_id)
    result = await session.execute(
        select(CompetitionStanding, Team.name)
        .join(Team, Team.id == CompetitionStanding.team_id)
        .where(CompetitionStanding.competition_id == competition_id)
    )
    rows = result.all()
    rows.sort(key=lambda row: (row[0].rank is None, row[0].rank or 0, standing_sort_key(row[0])))
    return [_standing_to_dict(s, name) for s, name in rows]


async def initialize_standings(session: AsyncSession, competition_id: int) -> List[Dict]:
    """
    Reset the standings: drop every existing row and counted game, then
    create a zeroed row for each entered team, ranked in entry order.
    """
    await get_competition_model(session, competition_id)
    teams = await session.execute(
        select(CompetitionTeam.team_id)
        .where(CompetitionTeam.competition_id == competition_id)
        .order_by(CompetitionTeam.seed.is_(None), CompetitionTeam.seed, CompetitionTeam.id)
    )
    team_ids = [row[0] for row in teams.all()]
    if not team_ids:
        raise ValueError("No teams in competition")

    await session.execute(delete(CompetitionStanding).where(CompetitionStanding.competition_id == competition_id))
    await session.execute(delete(StandingGame).where(StandingGame.competition_id == competition_id))
    for position, team_id in enumerate(team_ids, start=1):
        standing = _new_standing(competition_id, team_id)
        standing.rank = position
        session.add(standing)
    await session.commit()
    logger.info(f"Standings for competition {competition_id} initialized for {len(team_ids)} team(s)")
    return await get_standings(session, competition_id)


async def _standing_for(session: AsyncSession, competition_id: int, team_id: int) -> CompetitionStanding:
    result = await session.execute(
        select(CompetitionStanding).where(
            CompetitionStanding.competition_id == competition_id, CompetitionStanding.team_id == team_id
        )
    )
    standing = result.scalar_one_or_none()
    if standing is None:
        standing = _new_standing(competition_id, team_id)
        session.add(standing)
    return standing


async def record_game_result(session: AsyncSession, competition_id: int, game: Game) -> None:
    """Apply a completed game to the standings and re-rank. Does not commit."""
    if game.status != GameStatus.COMPLETED:
        raise ValueError("Game must be completed to update standings")
    if game.home_team_id is None or game.away_team_id is None:
        raise ValueError("Game must have home and away teams to update standings")

    counted = await session.execute(
        select(StandingGame.id).where(
            StandingGame.competition_id == competition_id, StandingGame.game_id == game.id
        )
    )
    if counted.first() is not None:
        raise ValueError("Game has already been counted in the standings")
    session.add(StandingGame(competition_id=competition_id, game_id=game.id))

    home_result, away_result = match_outcome(game.home_score, game.away_score)
    home = await _standing_for(session, competition_id, game.home_team_id)
    away = await _standing_for(session, competition_id, game.away_team_id)
    apply_result(home, home_result, game.home_score, game.away_score, home=True)
    apply_result(away, away_result, game.away_score, game.home_score, home=False)
    await session.flush()

    result = await session.execute(
        select(CompetitionStanding).where(CompetitionStanding.competition_id == competition_id)
    )
    assign_ranks(list(result.scalars().all()))


async def update_standings(session: AsyncSession, competition_id: int, game_id: int) -> List[Dict]:
    """
    Raises:
        NotFoundError: Unknown competition or game
        ValueError: Game not completed or without teams
    """
    await get_competition_model(session, competition_id)
    game = await session.get(Game, game_id)
    if game is None:
        raise NotFoundError("Game not found")
    await record_game_result(session, competition_id, game)
    await session.commit()
    logger.info(f"Standings for competition {competition_id} updated from game {game_id}")
    return await get_standings(session, competition_id)


async def apply_league_result(session: AsyncSession, game: Game) -> None:
    """Update standings when a league game finishes; other games are ignored."""
    if game.competition_id is None:
        return
    competition = await session.get(Competition, game.competition_id)
    if competition is None or competition.competition_type != CompetitionType.LEAGUE:
        return
    await record_game_result(session, competition.id, game)
    await session.commit()
    logger.info(f"League standings for competition {competition.id} updated from game {game.id}")
