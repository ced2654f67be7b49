"""Datetime utilities for common operations."""

from datetime import datetime, timezone


def now() -> datetime:
    """Get current datetime in UTC."""
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime) -> datetime:
    """
    Make a datetime timezone aware.

    Some database drivers (SQLite) hand back naive datetimes even for
    ``DateTime(timezone=True)`` columns; those are stored in UTC.

    Args:
        dt: Datetime to normalize

    Returns:
        Timezone-aware datetime in UTC
    """
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def seconds_between(start: datetime, end: datetime) -> int:
    """
    Calculate whole seconds elapsed between two datetimes.

    Args:
        start: Start datetime
        end: End datetime

    Returns:
        Number of whole seconds, never negative
    """
    delta = ensure_utc(end) - ensure_utc(start)
    return max(0, int(delta.total_seconds()))
