"""
Timezone-aware datetime utilities for the leasing CRM.

All functions return timezone-aware datetime objects in UTC. Values read back
from SQLite come out naive, so comparisons go through ensure_utc().
"""

from datetime import datetime, timezone, timedelta, date
from typing import Optional


def utc_now() -> datetime:
    """
    Get the current UTC time as a timezone-aware datetime object.

    Returns:
        datetime: Current UTC time with timezone information
    """
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime) -> datetime:
    """
    Ensure a datetime object is timezone-aware and in UTC.

    If the datetime is naive (no timezone), it assumes UTC.
    If the datetime has a different timezone, it converts to UTC.

    Example:
        >>> naive_dt = datetime(2025, 1, 1, 12, 0, 0)
        >>> ensure_utc(naive_dt).tzinfo
        datetime.timezone.utc
    """
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    elif dt.tzinfo != timezone.utc:
        return dt.astimezone(timezone.utc)
    return dt


def utc_days_from_now(days: int) -> datetime:
    """Get a UTC datetime N days in the future."""
    return utc_now() + timedelta(days=days)


def is_past(dt: Optional[datetime], now: Optional[datetime] = None) -> bool:
    """True when dt is set and not later than now."""
    if dt is None:
        return False
    return ensure_utc(dt) <= ensure_utc(now or utc_now())


def format_utc_iso(dt: Optional[datetime]) -> Optional[str]:
    """
    Format a datetime as an ISO 8601 string in UTC.

    Returns None for None so model serializers can pass columns straight through.
    """
    if dt is None:
        return None
    return ensure_utc(dt).isoformat()


def parse_iso_date(value: Optional[str]) -> Optional[date]:
    """
    Parse a YYYY-MM-DD (or full ISO datetime) string into a date.

    Returns None when the value is empty or unparseable.
    """
    if not value:
        return None
    text = str(value).strip()
    if text.endswith('Z'):
        text = text[:-1] + '+00:00'
    try:
        return datetime.fromisoformat(text).date()
    except ValueError:
        try:
            return date.fromisoformat(text[:10])
        except ValueError:
            return None
