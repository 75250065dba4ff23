"""
Tests for datetime helpers, event validation and configuration checks.
"""

from datetime import datetime

import pytest
import pytz

from shotspot.services.event_service import validate_event_type, validate_fault_details
from shotspot.utils import config_check
from shotspot.utils.datetime_utils import current_season, ensure_utc, parse_iso_datetime, season_bounds


def test_parse_iso_datetime_accepts_z_suffix():
    parsed = parse_iso_datetime("2025-04-12T14:30:00Z")
    assert parsed == pytz.UTC.localize(datetime(2025, 4, 12, 14, 30))


def test_parse_iso_datetime_bare_date():
    assert parse_iso_datetime("2025-04-12") == pytz.UTC.localize(datetime(2025, 4, 12))


def test_parse_iso_datetime_rejects_garbage():
    with pytest.raises(ValueError, match="Invalid date"):
        parse_iso_datetime("next saturday")


def test_ensure_utc():
    assert ensure_utc(None) is None
    assert ensure_utc(datetime(2025, 1, 1)).tzinfo is not None


def test_season_bounds():
    start, end = season_bounds("2024-2025")
    assert start == pytz.UTC.localize(datetime(2024, 8, 1))
    assert end == pytz.UTC.localize(datetime(2025, 7, 31, 23, 59, 59))


@pytest.mark.parametrize("label", ["2024", "2024-2026", "abcd-efgh"])
def test_season_bounds_rejects_bad_labels(label):
    with pytest.raises(ValueError):
        season_bounds(label)


def test_current_season():
    assert current_season(pytz.UTC.localize(datetime(2025, 9, 1))) == "2025-2026"
    assert current_season(pytz.UTC.localize(datetime(2025, 3, 1))) == "2024-2025"


def test_validate_event_type():
    validate_event_type("foul")
    validate_event_type("fault_offensive")
    with pytest.raises(ValueError, match="Invalid event type"):
        validate_event_type("goal")


def test_validate_fault_details():
    validate_fault_details("fault_offensive", {"reason": "running_with_ball"})
    validate_fault_details("fault_defensive", None)
    # Reasons are only checked on faults
    validate_fault_details("foul", {"reason": "anything"})
    with pytest.raises(ValueError, match="Invalid fault reason"):
        validate_fault_details("fault_out_of_bounds", {"reason": "dancing"})


def test_config_check_reports_short_secret(monkeypatch):
    monkeypatch.setenv("JWT_SECRET", "short")
    monkeypatch.setenv("ENV", "development")
    problems = config_check.check_config()
    assert any(p.startswith("JWT_SECRET must be at least") for p in problems)


def test_config_check_fatal_in_production(monkeypatch):
    monkeypatch.delenv("JWT_SECRET", raising=False)
    monkeypatch.setenv("ENV", "production")
    with pytest.raises(config_check.ConfigurationError, match="JWT_SECRET is not set"):
        config_check.check_config()


def test_config_check_invalid_encryption_key(monkeypatch):
    monkeypatch.setenv("TWIZZIT_ENCRYPTION_KEY", "1234")
    problems = config_check.collect_problems()
    assert any(p.startswith("TWIZZIT_ENCRYPTION_KEY is invalid") for p in problems)
