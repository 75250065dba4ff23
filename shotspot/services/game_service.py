"""
Game scheduling and lifecycle.

Status transitions:
    scheduled / to_reschedule --start--> in_progress --end--> completed
    anything but completed --cancel--> cancelled
    scheduled / to_reschedule / cancelled --reschedule--> scheduled (with date) or to_reschedule
"""

import logging
from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy import select, delete, update, or_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from shotspot.database.models import (
    Club,
    Team,
    Game,
    GameStatus,
    AttackingSide,
    TimerState,
    Competition,
    GameRoster,
    GameEvent,
    Shot,
    Substitution,
    Timeout,
    Possession,
    PlayerAchievement,
    TournamentBracket,
)
from shotspot.utils.constants import DEFAULT_NUMBER_OF_PERIODS, DEFAULT_PERIOD_DURATION_SECONDS
from shotspot.utils.datetime_utils import isoformat
from shotspot.utils.errors import NotFoundError

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = (
    "status",
    "home_score",
    "away_score",
    "date",
    "home_attacking_side",
    "number_of_periods",
    "period_duration_seconds",
    "home_team_id",
    "away_team_id",
    "competition_id",
)


def game_to_dict(game: Game, names: Optional[Dict] = None) -> Dict:
    """Serialize a game; ``names`` may carry home/away club and team names."""
    data = {
        "id": game.id,
        "home_club_id": game.home_club_id,
        "away_club_id": game.away_club_id,
        "home_team_id": game.home_team_id,
        "away_team_id": game.away_team_id,
        "competition_id": game.competition_id,
        "date": isoformat(game.date),
        "status": game.status.value,
        "home_score": game.home_score,
        "away_score": game.away_score,
        "home_attacking_side": game.home_attacking_side.value if game.home_attacking_side else None,
        "number_of_periods": game.number_of_periods,
        "current_period": game.current_period,
        "period_duration_seconds": game.period_duration_seconds,
        "time_remaining_seconds": game.time_remaining_seconds,
        "timer_state": game.timer_state.value,
        "created_at": isoformat(game.created_at),
    }
    if names:
        data.update(names)
    return data


def _named_game_query():
    home_club = aliased(Club)
    away_club = aliased(Club)
    home_team = aliased(Team)
    away_team = aliased(Team)
    query = (
        select(Game, home_club.name, away_club.name, home_team.name, away_team.name)
        .join(home_club, home_club.id == Game.home_club_id)
        .join(away_club, away_club.id == Game.away_club_id)
        .outerjoin(home_team, home_team.id == Game.home_team_id)
        .outerjoin(away_team, away_team.id == Game.away_team_id)
    )
    return query


def _row_to_dict(row) -> Dict:
    game, home_club_name, away_club_name, home_team_name, away_team_name = row
    return game_to_dict(
        game,
        {
            "home_club_name": home_club_name,
            "away_club_name": away_club_name,
            "home_team_name": home_team_name,
            "away_team_name": away_team_name,
        },
    )


async def get_game_model(session: AsyncSession, game_id: int) -> Game:
    """
    Load a Game row.

    Raises:
        NotFoundError: If the game does not exist
    """
    game = await session.get(Game, game_id)
    if game is None:
        raise NotFoundError("Game not found")
    return game


def ensure_participating_club(game: Game, club_id: int, message: str = "Club is not participating in this game") -> None:
    if club_id not in (game.home_club_id, game.away_club_id):
        raise ValueError(message)


async def list_games(
    session: AsyncSession,
    status: Optional[str] = None,
    club_id: Optional[int] = None,
    team_id: Optional[int] = None,
    competition_id: Optional[int] = None,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
) -> List[Dict]:
    query = _named_game_query()
    if status:
        query = query.where(Game.status == GameStatus(status))
    if club_id is not None:
        query = query.where(or_(Game.home_club_id == club_id, Game.away_club_id == club_id))
    if team_id is not None:
        query = query.where(or_(Game.home_team_id == team_id, Game.away_team_id == team_id))
    if competition_id is not None:
        query = query.where(Game.competition_id == competition_id)
    if date_from is not None:
        query = query.where(Game.date >= date_from)
    if date_to is not None:
        query = query.where(Game.date <= date_to)
    result = await session.execute(query.order_by(Game.date.desc(), Game.id.desc()))
    return [_row_to_dict(row) for row in result.all()]


async def get_game(session: AsyncSession, game_id: int) -> Dict:
    result = await session.execute(_named_game_query().where(Game.id == game_id))
    row = result.first()
    if row is None:
        raise NotFoundError("Game not found")
    return _row_to_dict(row)


async def _validate_team_for_club(session: AsyncSession, team_id: Optional[int], club_id: int, side: str) -> None:
    if team_id is None:
        return
    team = await session.get(Team, team_id)
    if team is None:
        raise NotFoundError(f"{side.capitalize()} team not found")
    if team.club_id != club_id:
        raise ValueError(f"{side.capitalize()} team does not belong to the {side} club")


async def create_game(
    session: AsyncSession,
    home_club_id: int,
    away_club_id: int,
    date: datetime,
    home_team_id: Optional[int] = None,
    away_team_id: Optional[int] = None,
    competition_id: Optional[int] = None,
    number_of_periods: int = DEFAULT_NUMBER_OF_PERIODS,
    period_duration_seconds: int = DEFAULT_PERIOD_DURATION_SECONDS,
    home_attacking_side: Optional[str] = None,
) -> Dict:
    """
    Schedule a game between two clubs.

    Raises:
        ValueError: Same club on both sides, or team/club mismatch
        NotFoundError: Unknown club, team or competition
    """
    if home_club_id == away_club_id:
        raise ValueError("Home and away clubs must be different")

    clubs = await session.execute(select(Club.id).where(Club.id.in_([home_club_id, away_club_id])))
    if len(clubs.all()) != 2:
        raise NotFoundError("One or both clubs not found")

    await _validate_team_for_club(session, home_team_id, home_club_id, "home")
    await _validate_team_for_club(session, away_team_id, away_club_id, "away")

    if competition_id is not None and await session.get(Competition, competition_id) is None:
        raise NotFoundError("Competition not found")

    game = Game(
        home_club_id=home_club_id,
        away_club_id=away_club_id,
        home_team_id=home_team_id,
        away_team_id=away_team_id,
        competition_id=competition_id,
        date=date,
        status=GameStatus.SCHEDULED,
        number_of_periods=number_of_periods,
        period_duration_seconds=period_duration_seconds,
        time_remaining_seconds=period_duration_seconds,
        home_attacking_side=AttackingSide(home_attacking_side) if home_attacking_side else None,
        timer_state=TimerState.STOPPED,
        current_period=1,
        home_score=0,
        away_score=0,
    )
    session.add(game)
    await session.flush()
    await session.commit()
    logger.info(f"Created game {game.id}: club {home_club_id} vs club {away_club_id}")
    return await get_game(session, game.id)


async def update_game(session: AsyncSession, game_id: int, updates: Dict) -> Dict:
    game = await get_game_model(session, game_id)

    fields = {k: v for k, v in updates.items() if k in UPDATABLE_FIELDS}
    if not fields:
        raise ValueError("No valid fields to update")

    if "status" in fields:
        fields["status"] = GameStatus(fields["status"])
    if "home_attacking_side" in fields and fields["home_attacking_side"] is not None:
        fields["home_attacking_side"] = AttackingSide(fields["home_attacking_side"])
    if "home_team_id" in fields:
        await _validate_team_for_club(session, fields["home_team_id"], game.home_club_id, "home")
    if "away_team_id" in fields:
        await _validate_team_for_club(session, fields["away_team_id"], game.away_club_id, "away")
    if fields.get("competition_id") is not None:
        if await session.get(Competition, fields["competition_id"]) is None:
            raise NotFoundError("Competition not found")
    if "number_of_periods" in fields and game.current_period > fields["number_of_periods"]:
        raise ValueError("Number of periods cannot be lower than the current period")

    for key, value in fields.items():
        setattr(game, key, value)
    await session.commit()
    return await get_game(session, game_id)


async def start_game(session: AsyncSession, game_id: int) -> Dict:
    game = await get_game_model(session, game_id)
    if game.status == GameStatus.IN_PROGRESS:
        raise ValueError("Game is already in progress")
    if game.status == GameStatus.COMPLETED:
        raise ValueError("Cannot start a completed game")
    if game.status == GameStatus.CANCELLED:
        raise ValueError("Cannot start a cancelled game")

    game.status = GameStatus.IN_PROGRESS
    if game.time_remaining_seconds is None:
        game.time_remaining_seconds = game.period_duration_seconds
    await session.commit()
    logger.info(f"Game {game_id} started")
    return await get_game(session, game_id)


async def end_game(session: AsyncSession, game_id: int) -> Dict:
    """
    Mark a game completed. League standings are updated when the game
    belongs to a league competition.
    """
    game = await get_game_model(session, game_id)
    if game.status == GameStatus.COMPLETED:
        raise ValueError("Game is already completed")
    if game.status == GameStatus.CANCELLED:
        raise ValueError("Cannot end a cancelled game")

    game.status = GameStatus.COMPLETED
    game.timer_state = TimerState.STOPPED
    game.timer_started_at = None
    game.timer_paused_at = None
    await session.commit()
    logger.info(f"Game {game_id} completed {game.home_score}-{game.away_score}")

    if game.competition_id is not None:
        from shotspot.services import competition_service

        try:
            await competition_service.apply_league_result(session, game)
        except ValueError as e:
            logger.warning(f"Standings not updated for game {game_id}: {e}")

    from shotspot.services import report_service

    queued = await report_service.queue_after_match_reports(session, game)
    if queued:
        logger.info(f"Queued {queued} after-match report(s) for game {game_id}")

    return await get_game(session, game_id)


async def cancel_game(session: AsyncSession, game_id: int) -> Dict:
    game = await get_game_model(session, game_id)
    if game.status == GameStatus.COMPLETED:
        raise ValueError("Cannot cancel a completed game")
    if game.status == GameStatus.CANCELLED:
        raise ValueError("Game is already cancelled")
    game.status = GameStatus.CANCELLED
    game.timer_state = TimerState.STOPPED
    game.timer_started_at = None
    await session.commit()
    return await get_game(session, game_id)


async def reschedule_game(session: AsyncSession, game_id: int, new_date: Optional[datetime] = None) -> Dict:
    game = await get_game_model(session, game_id)
    if game.status == GameStatus.COMPLETED:
        raise ValueError("Cannot reschedule a completed game")
    if game.status == GameStatus.IN_PROGRESS:
        raise ValueError("Cannot reschedule a game in progress")

    if new_date is not None:
        game.date = new_date
        game.status = GameStatus.SCHEDULED
    else:
        game.status = GameStatus.TO_RESCHEDULE
    await session.commit()
    return await get_game(session, game_id)


async def clear_game_activity(session: AsyncSession, game_id: int) -> None:
    """Remove everything recorded during play for a game."""
    await session.execute(delete(Shot).where(Shot.game_id == game_id))
    await session.execute(delete(GameEvent).where(GameEvent.game_id == game_id))
    await session.execute(delete(Substitution).where(Substitution.game_id == game_id))
    await session.execute(delete(Timeout).where(Timeout.game_id == game_id))
    await session.execute(delete(Possession).where(Possession.game_id == game_id))


async def delete_game(session: AsyncSession, game_id: int) -> None:
    """Delete a game together with its rosters and recorded activity."""
    await get_game_model(session, game_id)
    await clear_game_activity(session, game_id)
    await session.execute(delete(GameRoster).where(GameRoster.game_id == game_id))
    await session.execute(
        update(PlayerAchievement).where(PlayerAchievement.game_id == game_id).values(game_id=None)
    )
    brackets = await session.execute(
        select(TournamentBracket).where(TournamentBracket.game_id == game_id)
    )
    for bracket in brackets.scalars().all():
        bracket.game_id = None
    await session.execute(delete(Game).where(Game.id == game_id))
    await session.commit()
    logger.info(f"Deleted game {game_id}")
