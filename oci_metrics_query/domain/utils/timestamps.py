"""
Timestamp parsing and conversion utilities.

Dashboard time ranges arrive as ISO8601 strings, Unix timestamps (seconds or
milliseconds) or datetimes. The backend expects epoch milliseconds and the
window resolver only needs the span in whole days.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional, Union

logger = logging.getLogger(__name__)

_ONE_DAY = timedelta(days=1)


def parse_timestamp(
    value: Optional[Union[str, int, float, datetime]],
) -> Optional[datetime]:
    """
    Parse a timestamp from various formats.

    Supports:
    - ``datetime`` objects (naive values are assumed to be UTC)
    - ISO8601 strings (with or without 'Z' suffix)
    - Numeric strings and numbers as Unix seconds (< 10000000000)
      or milliseconds (>= 10000000000)

    Returns
    -------
    datetime or None
        Parsed timezone-aware datetime, or None if parsing fails

    Examples
    --------
    >>> parse_timestamp("2025-10-15T12:00:00Z")
    datetime.datetime(2025, 10, 15, 12, 0, tzinfo=datetime.timezone.utc)
    >>> parse_timestamp(1697385600000)  # Unix milliseconds
    datetime.datetime(2023, 10, 15, 16, 0, tzinfo=datetime.timezone.utc)
    """
    if value is None:
        return None

    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    if isinstance(value, str):
        if value.strip().lstrip("-").isdigit():
            return _parse_unix_timestamp(int(value.strip()))
        return _parse_iso8601(value)

    if isinstance(value, (int, float)):
        return _parse_unix_timestamp(value)

    return None


def _parse_iso8601(value: str) -> Optional[datetime]:
    """
    Parse an ISO8601 timestamp string.

    Handles trailing 'Z' by converting to '+00:00'.
    """
    if not value:
        return None

    try:
        if value.endswith("Z"):
            value = value[:-1] + "+00:00"

        dt = datetime.fromisoformat(value)

        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)

        return dt
    except (ValueError, TypeError):
        logger.warning(
            "timestamps.parse_iso8601_failed",
            extra={"value": value, "error": "invalid format"},
        )
        return None


def _parse_unix_timestamp(value: Union[int, float]) -> Optional[datetime]:
    """
    Parse a Unix timestamp (seconds or milliseconds since epoch).

    Values >= 10000000000 are treated as milliseconds.
    """
    try:
        if value >= 10000000000:
            return datetime.fromtimestamp(value / 1000.0, tz=timezone.utc)
        return datetime.fromtimestamp(value, tz=timezone.utc)
    except (ValueError, TypeError, OSError):
        logger.warning(
            "timestamps.parse_unix_failed",
            extra={"value": value, "error": "invalid timestamp"},
        )
        return None


def to_epoch_millis(dt: datetime) -> int:
    """Convert a datetime to Unix epoch milliseconds."""
    return int(dt.timestamp() * 1000)


def whole_days_between(start: datetime, end: datetime) -> int:
    """
    Return the number of whole days from ``start`` to ``end``.

    Partial days are truncated toward zero, so a span of 6 days 23 hours
    counts as 6 and a reversed range yields a negative count.

    Examples
    --------
    >>> from datetime import datetime, timezone
    >>> start = datetime(2025, 10, 1, tzinfo=timezone.utc)
    >>> whole_days_between(start, datetime(2025, 10, 8, 5, tzinfo=timezone.utc))
    7
    """
    return int((end - start) / _ONE_DAY)
