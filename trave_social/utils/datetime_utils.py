"""
Centralized datetime utilities.

Ensures consistent timezone handling across the application.
Timestamps embedded in conversation documents are stored as ISO 8601
strings with a 'Z' suffix so they sort and compare consistently.
"""

from datetime import datetime, timezone


def utc_now() -> datetime:
    """
    Get current UTC time as timezone-aware datetime.

    Use this instead of datetime.utcnow() to ensure timezone awareness.

    Returns:
        datetime: Current time in UTC with timezone info
    """
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime | None) -> datetime | None:
    """
    Ensure datetime is UTC timezone-aware.

    Converts naive datetime (assumed to be UTC) to timezone-aware UTC.
    If datetime is already timezone-aware, converts to UTC.

    Args:
        dt: Datetime object (naive or aware) or None

    Returns:
        datetime | None: UTC timezone-aware datetime or None
    """
    if dt is None:
        return None

    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)

    return dt.astimezone(timezone.utc)


def to_iso_utc(dt: datetime | None) -> str | None:
    """
    Convert datetime to ISO format with 'Z' suffix (UTC indicator).

    Args:
        dt: Datetime object or None

    Returns:
        str | None: ISO 8601 string with 'Z' suffix (e.g., "2025-12-16T11:30:00.123456Z")
                   or None if input is None

    Example:
        >>> dt = datetime(2025, 12, 16, 11, 30, 0, 123456, tzinfo=timezone.utc)
        >>> to_iso_utc(dt)
        "2025-12-16T11:30:00.123456Z"
    """
    if dt is None:
        return None

    utc_dt = ensure_utc(dt)
    return utc_dt.isoformat().replace('+00:00', 'Z')


def parse_iso_utc(value: str | datetime | None) -> datetime | None:
    """
    Parse an ISO 8601 timestamp (with or without 'Z') into an aware UTC datetime.

    Legacy documents may carry timestamps in slightly different ISO shapes,
    so both 'Z' and '+00:00' suffixes and naive values are accepted.

    Args:
        value: ISO string, datetime, or None

    Returns:
        datetime | None: UTC timezone-aware datetime, or None when the value
                         is missing or unparseable
    """
    if value is None:
        return None

    if isinstance(value, datetime):
        return ensure_utc(value)

    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"

    try:
        return ensure_utc(datetime.fromisoformat(text))
    except ValueError:
        return None
