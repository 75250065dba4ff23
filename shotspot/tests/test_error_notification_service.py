"""
Tests for error alert severity, thresholds and cooldowns.
"""

from datetime import datetime, timedelta

import pytest
import pytz

from shotspot.services import email_service
from shotspot.services.error_notification_service import ErrorNotificationService, determine_severity

NOW = pytz.UTC.localize(datetime(2025, 1, 10, 12, 0, 0))


def test_determine_severity():
    assert determine_severity(500) == "critical"
    assert determine_severity(503) == "critical"
    assert determine_severity(None) == "critical"
    assert determine_severity(401) == "high"
    assert determine_severity(403) == "high"
    assert determine_severity(429) == "high"
    assert determine_severity(404) == "medium"
    assert determine_severity(302) == "low"


def test_critical_notifies_on_first_occurrence():
    service = ErrorNotificationService(enabled=True, recipient="ops@example.com")
    assert service.should_notify("/api/games", "RuntimeError", "critical", NOW) is True


def test_high_severity_needs_five_occurrences():
    service = ErrorNotificationService(enabled=True, recipient="ops@example.com")
    results = [service.should_notify("/api/auth/login", "HTTPException", "high", NOW) for _ in range(5)]
    assert results == [False, False, False, False, True]


def test_count_window_resets():
    service = ErrorNotificationService(enabled=True, recipient="ops@example.com")
    for _ in range(4):
        service.should_notify("/api/auth/login", "HTTPException", "high", NOW)
    later = NOW + timedelta(minutes=16)
    assert service.should_notify("/api/auth/login", "HTTPException", "high", later) is False
    assert service.error_counts["/api/auth/login-HTTPException"]["count"] == 1


def test_cooldown_mutes_until_expiry():
    service = ErrorNotificationService(enabled=True, recipient="ops@example.com")
    service.start_cooldown("/api/games", "RuntimeError", "critical", NOW)

    assert service.should_notify("/api/games", "RuntimeError", "critical", NOW + timedelta(minutes=4)) is False
    assert service.should_notify("/api/games", "RuntimeError", "critical", NOW + timedelta(minutes=6)) is True


def test_format_message_includes_request_and_status():
    service = ErrorNotificationService(enabled=True, recipient="ops@example.com")
    message = service.format_message("critical", "POST", "/api/games", "RuntimeError", "boom", 500)

    assert "Severity: CRITICAL" in message
    assert "Request: POST /api/games" in message
    assert "Status: 500" in message
    assert "Error: RuntimeError: boom" in message


@pytest.mark.asyncio
async def test_notify_sends_email_and_starts_cooldown(monkeypatch):
    sent = []

    async def fake_send(recipient, subject, body):
        sent.append((recipient, subject))
        return True

    monkeypatch.setattr(email_service, "send_error_notification", fake_send, raising=True)
    service = ErrorNotificationService(enabled=True, recipient="ops@example.com")

    assert await service.notify("GET", "/api/games", "RuntimeError", "boom", status=500) is True
    assert await service.notify("GET", "/api/games", "RuntimeError", "boom", status=500) is False
    assert sent == [("ops@example.com", "[ShotSpot CRITICAL] RuntimeError on /api/games")]


@pytest.mark.asyncio
async def test_notify_disabled_does_nothing(monkeypatch):
    async def fail_send(*args):
        raise AssertionError("should not send")

    monkeypatch.setattr(email_service, "send_error_notification", fail_send, raising=True)
    service = ErrorNotificationService(enabled=False, recipient="ops@example.com")
    assert await service.notify("GET", "/api/games", "RuntimeError", "boom") is False
