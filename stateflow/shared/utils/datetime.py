"""
UTC datetime utilities for consistent timezone handling.

Flow timestamps are always timezone-aware UTC, both in memory and in
the store. Ordering by creation time relies on that.
"""

from datetime import UTC, datetime


def utc_now() -> datetime:
    """
    Return the current UTC datetime with timezone info.

    Returns:
        Timezone-aware datetime in UTC
    """
    return datetime.now(UTC)


def ensure_utc(dt: datetime | None) -> datetime | None:
    """
    Ensure a datetime is UTC-aware.

    - If None, returns None
    - If naive, assumes UTC and attaches timezone
    - If aware, converts to UTC

    Use at store boundaries to normalize datetimes.
    """
    if dt is None:
        return None

    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)

    return dt.astimezone(UTC)


def parse_utc(value: str | datetime | None) -> datetime | None:
    """
    Parse an RFC 3339 timestamp (as returned by the store) into aware UTC.

    Accepts a trailing 'Z'. Datetimes pass through ensure_utc.
    """
    if value is None or isinstance(value, datetime):
        return ensure_utc(value)
    return ensure_utc(datetime.fromisoformat(value.replace("Z", "+00:00")))
