"""Timestamp parsing and formatting utilities.

All timestamps are handled as timezone-aware UTC datetimes. The wallet-proxy
reports block times as (fractional) seconds since the Unix epoch.
"""

from datetime import date, datetime, timezone

# Koinly accepts "YYYY-MM-DD HH:MM:SS UTC"
DEFAULT_EXPORT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S UTC"


def timestamp_from_epoch(seconds: float | int | str) -> datetime:
    """Convert epoch seconds into a UTC datetime.

    Args:
        seconds: Seconds since the Unix epoch (int, float or numeric string).

    Returns:
        Timezone-aware datetime in UTC.

    Raises:
        ValueError: If the value is not numeric or out of range.
    """
    try:
        value = float(seconds)
    except (TypeError, ValueError) as e:
        raise ValueError(f"Cannot parse block time: {seconds!r}") from e

    try:
        return datetime.fromtimestamp(value, tz=timezone.utc)
    except (OverflowError, OSError) as e:
        raise ValueError(f"Block time out of range: {seconds!r}") from e


def ensure_utc(ts: datetime) -> datetime:
    """Return the datetime in UTC, treating naive values as UTC.

    Args:
        ts: Datetime to normalize.

    Returns:
        Timezone-aware datetime in UTC.
    """
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


def format_timestamp(ts: datetime, fmt: str = DEFAULT_EXPORT_DATE_FORMAT) -> str:
    """Format a timestamp for export.

    Args:
        ts: Timestamp to format (converted to UTC first).
        fmt: strftime format string.

    Returns:
        Formatted timestamp string.
    """
    return ensure_utc(ts).strftime(fmt)


def is_date_in_range(
    d: date,
    start_date: date | None = None,
    end_date: date | None = None,
) -> bool:
    """Check if a date is within a range.

    Args:
        d: Date to check.
        start_date: Start of range (inclusive). None means no lower bound.
        end_date: End of range (inclusive). None means no upper bound.

    Returns:
        True if date is within range.
    """
    if start_date is not None and d < start_date:
        return False
    if end_date is not None and d > end_date:
        return False
    return True
