"""
Datetime utilities.

Provides timezone-aware datetime functions.
"""

from datetime import UTC, datetime


def utc_now() -> datetime:
    """
    Get current UTC datetime with timezone info.

    Returns:
        Current datetime in UTC with timezone awareness
    """
    return datetime.now(UTC)


def from_unix(timestamp: int) -> datetime:
    """Convert a block timestamp (seconds) to an aware UTC datetime."""
    return datetime.fromtimestamp(timestamp, tz=UTC)


def to_iso(value: datetime | None) -> str | None:
    """
    Render datetime as ISO 8601, treating naive values as UTC.

    SQLite hands back naive datetimes even for timezone-aware columns.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.isoformat()
