"""
Datetime utility functions.
"""

from datetime import datetime, date
from typing import Optional, Union
import pytz


def utcnow() -> datetime:
    """
    Get current UTC datetime using pytz.UTC.

    Returns:
        Current UTC datetime with pytz timezone information
    """
    return datetime.now(pytz.UTC)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """
    Attach UTC to naive datetimes read back from the database.

    SQLite drops tzinfo on DateTime(timezone=True) columns, so anything doing
    arithmetic against utcnow() goes through here first.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return pytz.UTC.localize(value)
    return value.astimezone(pytz.UTC)


def isoformat(value: Optional[Union[datetime, date]]) -> Optional[str]:
    """ISO-8601 string or None."""
    if value is None:
        return None
    return value.isoformat()


def parse_iso_datetime(value: Union[str, datetime]) -> datetime:
    """
    Parse an ISO date or datetime string into an aware UTC datetime.

    Accepts a trailing "Z". A bare date becomes midnight UTC.

    Raises:
        ValueError: If the string cannot be parsed
    """
    if isinstance(value, datetime):
        return ensure_utc(value)
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        raise ValueError(f"Invalid date: {value}")
    return ensure_utc(parsed)


def season_bounds(season: str) -> tuple:
    """
    Convert a season label like "2024-2025" into (start, end) datetimes.

    Seasons run from August 1st to July 31st.

    Raises:
        ValueError: If the label is not two consecutive years
    """
    parts = season.split("-")
    if len(parts) != 2 or not all(p.isdigit() for p in parts):
        raise ValueError("Season must be formatted as YYYY-YYYY")
    start_year, end_year = int(parts[0]), int(parts[1])
    if end_year != start_year + 1:
        raise ValueError("Season must span two consecutive years")
    start = pytz.UTC.localize(datetime(start_year, 8, 1))
    end = pytz.UTC.localize(datetime(end_year, 7, 31, 23, 59, 59))
    return start, end


def current_season(now: Optional[datetime] = None) -> str:
    """Season label containing ``now`` (August starts a new season)."""
    now = now or utcnow()
    if now.month >= 8:
        return f"{now.year}-{now.year + 1}"
    return f"{now.year - 1}-{now.year}"
