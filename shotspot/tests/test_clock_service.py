"""
Tests for match clock arithmetic.
"""

from datetime import datetime, timedelta
from types import SimpleNamespace

import pytz

from shotspot.database.models import TimerState
from shotspot.services.clock_service import clock_to_dict, compute_remaining_seconds

NOW = pytz.UTC.localize(datetime(2025, 3, 1, 14, 0, 0))


def test_stopped_clock_reports_stored_time():
    assert compute_remaining_seconds(TimerState.STOPPED, 420, 600, None, NOW) == 420


def test_unset_remaining_falls_back_to_period_duration():
    assert compute_remaining_seconds(TimerState.STOPPED, None, 600, None, NOW) == 600


def test_running_clock_subtracts_elapsed_time():
    started = NOW - timedelta(seconds=75)
    assert compute_remaining_seconds(TimerState.RUNNING, 600, 600, started, NOW) == 525


def test_running_clock_never_goes_negative():
    started = NOW - timedelta(minutes=30)
    assert compute_remaining_seconds(TimerState.RUNNING, 600, 600, started, NOW) == 0


def test_paused_clock_ignores_start_time():
    started = NOW - timedelta(seconds=100)
    assert compute_remaining_seconds(TimerState.PAUSED, 300, 600, started, NOW) == 300


def test_naive_start_time_is_treated_as_utc():
    started = datetime(2025, 3, 1, 13, 59, 0)
    assert compute_remaining_seconds(TimerState.RUNNING, 600, 600, started, NOW) == 540


def test_clock_to_dict_splits_minutes_and_seconds():
    game = SimpleNamespace(
        id=7,
        current_period=2,
        number_of_periods=4,
        period_duration_seconds=600,
        time_remaining_seconds=600,
        timer_state=TimerState.RUNNING,
        timer_started_at=NOW - timedelta(seconds=125),
        timer_paused_at=None,
    )
    clock = clock_to_dict(game, NOW)

    assert clock["game_id"] == 7
    assert clock["time_remaining_seconds"] == 475
    assert clock["time_remaining"] == {"minutes": 7, "seconds": 55}
    assert clock["timer_state"] == "running"
    assert clock["timer_paused_at"] is None
