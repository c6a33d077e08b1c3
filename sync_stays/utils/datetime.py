"""UTC datetime and calendar-day utilities."""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from typing import Iterator, Optional

NOON = time(12, 0, tzinfo=timezone.utc)


def utc_now() -> datetime:
    """
    Return current UTC time as timezone-aware datetime.

    This function should be used instead of datetime.now() or datetime.utcnow()
    to ensure all timestamps are timezone-aware and stored in UTC.

    Returns:
        Timezone-aware datetime in UTC
    """
    return datetime.now(timezone.utc)


def utc_today() -> date:
    """Return the current UTC calendar date."""
    return utc_now().date()


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """
    Coerce a datetime read back from the database to an aware UTC datetime.

    Some backends (SQLite) drop tzinfo on round-trip; values are always written
    in UTC, so a naive value is interpreted as UTC.

    Args:
        value: Datetime or None

    Returns:
        Aware UTC datetime, or None
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def noon_utc(day: date) -> datetime:
    """
    Pin a calendar date to 12:00 UTC.

    All-day events are stored at noon so that rendering in any timezone
    between UTC-12 and UTC+11 stays on the same calendar day.
    """
    return datetime.combine(day, NOON)


def to_day(value: datetime | date) -> date:
    """Return the UTC calendar date of a datetime (dates pass through)."""
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.date()
        return value.astimezone(timezone.utc).date()
    return value


def iter_days(start: date, end: date) -> Iterator[date]:
    """Yield every date in the half-open range [start, end)."""
    day = start
    while day < end:
        yield day
        day += timedelta(days=1)


def ensure_date(value: Optional[datetime | date | str]) -> Optional[date]:
    """Normalize a DB/JSON value (date, datetime or ISO string) to a date."""
    if value is None:
        return None
    if isinstance(value, str):
        return date.fromisoformat(value[:10])
    return to_day(value)
