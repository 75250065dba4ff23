"""
Match clock: a per-game countdown with stopped / running / paused states.

The clock is persisted on the games row. While running, the stored
``time_remaining_seconds`` is the value at ``timer_started_at``; the live
value is derived from the wall-clock time elapsed since then:

    remaining = max(0, base - elapsed)

where ``base`` is ``time_remaining_seconds`` (or the period duration when it
is unset) and ``elapsed`` is zero unless the clock is running.
"""

import logging
from datetime import datetime
from typing import Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from shotspot.database.models import Game, GameEvent, GameStatus, TimerState
from shotspot.services import game_service
from shotspot.utils.constants import MIN_PERIOD_DURATION_MINUTES, MAX_PERIOD_DURATION_MINUTES
from shotspot.utils.datetime_utils import utcnow, ensure_utc, isoformat

logger = logging.getLogger(__name__)


def compute_remaining_seconds(
    timer_state: TimerState,
    time_remaining_seconds: Optional[int],
    period_duration_seconds: int,
    timer_started_at: Optional[datetime],
    now: Optional[datetime] = None,
) -> int:
    """
    Live seconds left in the current period.

    Args:
        timer_state: Current clock state
        time_remaining_seconds: Seconds stored at the last start/pause (None = full period)
        period_duration_seconds: Length of a period
        timer_started_at: When the clock was last started
        now: Reference time (defaults to utcnow)

    Returns:
        Remaining whole seconds, never negative
    """
    base = time_remaining_seconds if time_remaining_seconds is not None else period_duration_seconds
    elapsed = 0
    if timer_state == TimerState.RUNNING and timer_started_at is not None:
        now = now or utcnow()
        elapsed = int((ensure_utc(now) - ensure_utc(timer_started_at)).total_seconds())
        elapsed = max(0, elapsed)
    return max(0, base - elapsed)


def remaining_for_game(game: Game, now: Optional[datetime] = None) -> int:
    return compute_remaining_seconds(
        game.timer_state,
        game.time_remaining_seconds,
        game.period_duration_seconds,
        game.timer_started_at,
        now,
    )


def clock_to_dict(game: Game, now: Optional[datetime] = None) -> Dict:
    remaining = remaining_for_game(game, now)
    return {
        "game_id": game.id,
        "current_period": game.current_period,
        "number_of_periods": game.number_of_periods,
        "period_duration_seconds": game.period_duration_seconds,
        "time_remaining_seconds": remaining,
        "time_remaining": {"minutes": remaining // 60, "seconds": remaining % 60},
        "timer_state": game.timer_state.value,
        "timer_started_at": isoformat(game.timer_started_at),
        "timer_paused_at": isoformat(game.timer_paused_at),
    }


def _reset_clock(game: Game) -> None:
    game.timer_state = TimerState.STOPPED
    game.time_remaining_seconds = game.period_duration_seconds
    game.timer_started_at = None
    game.timer_paused_at = None


async def get_clock(session: AsyncSession, game_id: int) -> Dict:
    game = await game_service.get_game_model(session, game_id)
    return clock_to_dict(game)


async def start_clock(session: AsyncSession, game_id: int) -> Dict:
    """
    Start or resume the clock.

    From stopped the period restarts at full duration; from paused it
    resumes at the stored remaining time.

    Raises:
        ValueError: Game not in progress or clock already running
    """
    game = await game_service.get_game_model(session, game_id)
    if game.status != GameStatus.IN_PROGRESS:
        raise ValueError("Cannot start timer for game that is not in progress")
    if game.timer_state == TimerState.RUNNING:
        raise ValueError("Timer is already running")

    if game.timer_state == TimerState.STOPPED or game.time_remaining_seconds is None:
        game.time_remaining_seconds = game.period_duration_seconds

    game.timer_state = TimerState.RUNNING
    game.timer_started_at = utcnow()
    game.timer_paused_at = None
    await session.commit()
    return clock_to_dict(game)


async def pause_clock(session: AsyncSession, game_id: int) -> Dict:
    """
    Freeze the clock, storing the remaining time.

    Raises:
        ValueError: Clock is not running
    """
    game = await game_service.get_game_model(session, game_id)
    if game.timer_state != TimerState.RUNNING:
        raise ValueError("Timer is not running")

    now = utcnow()
    game.time_remaining_seconds = remaining_for_game(game, now)
    game.timer_state = TimerState.PAUSED
    game.timer_paused_at = now
    game.timer_started_at = None
    await session.commit()
    return clock_to_dict(game, now)


async def stop_clock(session: AsyncSession, game_id: int) -> Dict:
    game = await game_service.get_game_model(session, game_id)
    _reset_clock(game)
    await session.commit()
    return clock_to_dict(game)


async def next_period(session: AsyncSession, game_id: int) -> Dict:
    """
    Advance to the next period, logging period_end and period_start events.

    Raises:
        ValueError: Already in the final period
    """
    game = await game_service.get_game_model(session, game_id)
    if game.current_period >= game.number_of_periods:
        raise ValueError("Already at final period")

    finished = game.current_period
    score = {"home_score": game.home_score, "away_score": game.away_score}
    session.add(
        GameEvent(
            game_id=game.id,
            event_type="period_end",
            club_id=game.home_club_id,
            period=finished,
            details={**score, "period": finished},
        )
    )
    game.current_period = finished + 1
    session.add(
        GameEvent(
            game_id=game.id,
            event_type="period_start",
            club_id=game.home_club_id,
            period=game.current_period,
            details={**score, "period": game.current_period},
        )
    )
    _reset_clock(game)
    await session.commit()
    logger.info(f"Game {game_id} moved to period {game.current_period}")
    return clock_to_dict(game)


async def set_period(session: AsyncSession, game_id: int, period: int) -> Dict:
    game = await game_service.get_game_model(session, game_id)
    if period < 1 or period > game.number_of_periods:
        raise ValueError(f"Period must be between 1 and {game.number_of_periods}")
    game.current_period = period
    await session.commit()
    return clock_to_dict(game)


async def set_period_duration(session: AsyncSession, game_id: int, minutes: int) -> Dict:
    """
    Change the period length; a stopped clock is reset to the new length.

    Raises:
        ValueError: Duration outside 1-60 minutes or clock running
    """
    if minutes < MIN_PERIOD_DURATION_MINUTES or minutes > MAX_PERIOD_DURATION_MINUTES:
        raise ValueError(
            f"Period duration must be between {MIN_PERIOD_DURATION_MINUTES} "
            f"and {MAX_PERIOD_DURATION_MINUTES} minutes"
        )
    game = await game_service.get_game_model(session, game_id)
    if game.timer_state == TimerState.RUNNING:
        raise ValueError("Cannot change period duration while the timer is running")

    game.period_duration_seconds = minutes * 60
    if game.timer_state == TimerState.STOPPED:
        game.time_remaining_seconds = game.period_duration_seconds
    await session.commit()
    return clock_to_dict(game)


async def reset_match(session: AsyncSession, game_id: int) -> Dict:
    """Wipe recorded activity and put the game back to period 1 at 0-0."""
    game = await game_service.get_game_model(session, game_id)
    await game_service.clear_game_activity(session, game_id)
    game.home_score = 0
    game.away_score = 0
    game.current_period = 1
    _reset_clock(game)
    await session.commit()
    logger.info(f"Game {game_id} reset")
    return clock_to_dict(game)
