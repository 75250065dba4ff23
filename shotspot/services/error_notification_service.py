"""
Error alerting with severity thresholds and cooldowns.

Errors are counted per (path, error type). A notification goes out once the
count inside a 15 minute window reaches the severity's threshold, after
which that error is muted for the severity's cooldown.

    severity   status           threshold   cooldown
    critical   >= 500           1           5 min
    high       401, 403, 429    5           15 min
    medium     other 4xx        20          1 h
    low        anything else    100         4 h
"""

import logging
import os
from datetime import datetime, timedelta
from typing import Dict, Optional

from dotenv import load_dotenv

from shotspot.services import email_service
from shotspot.utils.datetime_utils import utcnow

load_dotenv()

logger = logging.getLogger(__name__)

COUNT_WINDOW = timedelta(minutes=15)

THRESHOLDS = {"critical": 1, "high": 5, "medium": 20, "low": 100}

COOLDOWNS = {
    "critical": timedelta(minutes=5),
    "high": timedelta(minutes=15),
    "medium": timedelta(hours=1),
    "low": timedelta(hours=4),
}


def determine_severity(status: Optional[int]) -> str:
    status = status or 500
    if status >= 500:
        return "critical"
    if status in (401, 403, 429):
        return "high"
    if 400 <= status < 500:
        return "medium"
    return "low"


class ErrorNotificationService:
    def __init__(self, enabled: Optional[bool] = None, recipient: Optional[str] = None):
        if enabled is None:
            enabled = os.getenv("ENABLE_ERROR_NOTIFICATIONS", "false").lower() == "true"
        self.enabled = enabled
        self.recipient = recipient or os.getenv("ERROR_NOTIFICATION_EMAIL")
        self.error_counts: Dict[str, Dict] = {}
        self.cooldowns: Dict[str, datetime] = {}

    def should_notify(self, path: str, error_type: str, severity: str, now: Optional[datetime] = None) -> bool:
        """Count one occurrence and report whether the threshold is reached outside a cooldown."""
        now = now or utcnow()
        error_key = f"{path}-{error_type}"

        muted_until = self.cooldowns.get(f"{error_key}-{severity}")
        if muted_until is not None and now < muted_until:
            return False

        entry = self.error_counts.setdefault(error_key, {"count": 0, "first": now})
        entry["count"] += 1
        if now - entry["first"] > COUNT_WINDOW:
            entry["count"] = 1
            entry["first"] = now

        return entry["count"] >= THRESHOLDS[severity]

    def start_cooldown(self, path: str, error_type: str, severity: str, now: Optional[datetime] = None) -> None:
        now = now or utcnow()
        self.cooldowns[f"{path}-{error_type}-{severity}"] = now + COOLDOWNS[severity]

    def format_message(self, severity: str, method: str, path: str, error_type: str, message: str, status: int) -> str:
        count = self.error_counts.get(f"{path}-{error_type}", {}).get("count", 1)
        return "\n".join(
            [
                f"Severity: {severity.upper()}",
                f"Environment: {os.getenv('ENV', 'development')}",
                f"Time: {utcnow().isoformat()}",
                f"Request: {method} {path}",
                f"Status: {status}",
                f"Error: {error_type}: {message}",
                f"Occurrences (15 min window): {count}",
            ]
        )

    async def notify(
        self, method: str, path: str, error_type: str, message: str, status: int = 500
    ) -> bool:
        """
        Record an error and email the team when it crosses its threshold.

        Returns:
            bool: True if a notification was sent
        """
        if not self.enabled:
            return False

        severity = determine_severity(status)
        if not self.should_notify(path, error_type, severity):
            return False

        sent = False
        if self.recipient:
            subject = f"[ShotSpot {severity.upper()}] {error_type} on {path}"
            body = self.format_message(severity, method, path, error_type, message, status)
            sent = await email_service.send_error_notification(self.recipient, subject, body)
        else:
            logger.warning("ERROR_NOTIFICATION_EMAIL not configured. Error notification skipped.")

        self.start_cooldown(path, error_type, severity)
        return sent


_notification_service: Optional[ErrorNotificationService] = None


def get_error_notification_service() -> ErrorNotificationService:
    global _notification_service
    if _notification_service is None:
        _notification_service = ErrorNotificationService()
    return _notification_service
