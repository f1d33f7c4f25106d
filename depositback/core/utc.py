"""
Date and time utilities for DepositBack.

Timestamps are UTC and timezone-aware. Report dates (move-out, deadlines)
are plain calendar dates and are handled as datetime.date, never as
datetimes, so day arithmetic cannot drift across a timezone boundary.
"""

from datetime import date, datetime, timedelta, timezone
from typing import Optional


def utc_now() -> datetime:
    """
    Get current UTC time as timezone-aware datetime.

    Example:
        from depositback.core.utc import utc_now

        created_at = utc_now()  # 2025-12-08 03:00:00+00:00
    """
    return datetime.now(timezone.utc)


def utc_now_iso() -> str:
    """
    Get current UTC time as ISO 8601 string with Z suffix.

    Returns format: "2025-12-08T03:00:00.123456Z"
    """
    return utc_now().isoformat().replace("+00:00", "Z")


def today_local() -> date:
    """Calendar date as the tenant sees it (server local time)."""
    return date.today()


def parse_iso_date(value) -> Optional[date]:
    """
    Parse a calendar date from backend JSON.

    Handles:
    - "2025-12-08"
    - "2025-12-08T03:00:00Z" / "2025-12-08T03:00:00+00:00" (date part is used)
    - date / datetime instances

    Returns None for anything unparseable instead of raising; report data
    is advisory and a bad date only hides the row that needed it.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value.strip():
        return None

    cleaned = value.strip().replace("Z", "+00:00")
    try:
        if len(cleaned) == 10:
            return date.fromisoformat(cleaned)
        return datetime.fromisoformat(cleaned).date()
    except ValueError:
        return None


def add_days(start: date, days: int) -> date:
    return start + timedelta(days=days)


def format_long_date(value: date) -> str:
    """March 1, 2024"""
    return f"{value.strftime('%B')} {value.day}, {value.year}"


def format_short_date(value: date) -> str:
    """Mar 1, 2024"""
    return f"{value.strftime('%b')} {value.day}, {value.year}"
