"""
Timezone-aware datetime utilities for the conversation analytics service.

All helpers work in UTC. Columns are stored as naive UTC datetimes (SQLite
has no timezone support), so values read back from the database go through
ensure_utc() before any arithmetic against utc_now().
"""

from datetime import date, datetime, timezone, timedelta
from typing import Optional, Union


def utc_now() -> datetime:
    """
    Get the current UTC time as a timezone-aware datetime object.

    Returns:
        datetime: Current UTC time with timezone information

    Example:
        >>> now = utc_now()
        >>> print(now.tzinfo)  # UTC
    """
    return datetime.now(timezone.utc)


def utc_today() -> date:
    """Current calendar day in UTC."""
    return utc_now().date()


def ensure_utc(dt: datetime) -> datetime:
    """
    Ensure a datetime object is timezone-aware and in UTC.

    If the datetime is naive (no timezone), it assumes UTC.
    If the datetime has a different timezone, it converts to UTC.

    Args:
        dt: Datetime object (may be naive or timezone-aware)

    Returns:
        datetime: Timezone-aware datetime in UTC
    """
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    elif dt.tzinfo != timezone.utc:
        return dt.astimezone(timezone.utc)
    else:
        return dt


def to_naive_utc(dt: datetime) -> datetime:
    """Strip timezone info after converting to UTC, for column comparisons."""
    return ensure_utc(dt).replace(tzinfo=None)


def start_of_day(day: date) -> datetime:
    """Naive UTC midnight at the start of ``day``."""
    return datetime(day.year, day.month, day.day)


def end_of_day(day: date) -> datetime:
    """Naive UTC instant just before the next midnight."""
    return start_of_day(day) + timedelta(days=1) - timedelta(microseconds=1)


def coerce_date(value: Union[date, datetime, str, None]) -> Optional[date]:
    """
    Normalise a date-ish value into a ``date``.

    SQLite returns DATE() aggregates as ISO strings while PostgreSQL returns
    ``date`` objects; both flow through here.

    Raises:
        ValueError: If a string is not an ISO 8601 date
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return ensure_utc(value).date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])
