"""Datetime utility functions for timezone handling."""
from datetime import date, datetime, time, timedelta, UTC
from typing import Optional


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """
    Ensure datetime is timezone-aware in UTC.

    SQLite hands back naive datetimes; they are stored as UTC, so they are
    tagged as such rather than converted.

    Example:
        >>> ensure_utc(datetime(2025, 1, 1, 12, 0, 0)).tzinfo == UTC
        True
        >>> ensure_utc(None) is None
        True
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def utc_day_start(day: date) -> datetime:
    """Midnight UTC at the beginning of ``day``."""
    return datetime.combine(day, time.min, tzinfo=UTC)


def utc_day_bounds(day: date) -> tuple[datetime, datetime]:
    """Half-open [start, end) range covering one UTC calendar day."""
    start = utc_day_start(day)
    return start, start + timedelta(days=1)


def utc_hour_start(dt: datetime) -> datetime:
    return ensure_utc(dt).replace(minute=0, second=0, microsecond=0)


def seconds_until(moment: datetime, now: Optional[datetime] = None) -> int:
    """Whole seconds from ``now`` until ``moment``, rounded up and never negative."""
    now = now or datetime.now(UTC)
    delta = (ensure_utc(moment) - now).total_seconds()
    if delta <= 0:
        return 0
    return int(delta) + (0 if delta == int(delta) else 1)
