"""Timestamp parsing and day-key derivation for client payloads."""

from datetime import datetime, date, timezone
from zoneinfo import ZoneInfo


def _timestamp_to_datetime(ts_ms: int | float) -> datetime:
    """Convert epoch milliseconds to UTC datetime."""
    return datetime.fromtimestamp(ts_ms / 1000, tz=timezone.utc)


def _iso_to_datetime(iso_str: str) -> datetime:
    """Convert ISO 8601 string (date-only, 'Z' suffix or offset) to datetime."""
    iso_str = iso_str.strip()
    if iso_str.endswith("Z"):
        iso_str = iso_str[:-1] + "+00:00"
    return datetime.fromisoformat(iso_str)


def parse_timestamp(value, tz: str = "UTC") -> datetime:
    """
    Parse a client timestamp into an aware datetime.

    Accepts ISO 8601 strings, epoch milliseconds, and date/datetime objects.
    Naive values are taken as wall-clock time in ``tz``.

    Raises:
        ValueError: if the value cannot be interpreted as a point in time.
    """
    if isinstance(value, bool) or value is None:
        raise ValueError(f"Invalid timestamp: {value!r}")

    try:
        if isinstance(value, datetime):
            dt = value
        elif isinstance(value, date):
            dt = datetime(value.year, value.month, value.day)
        elif isinstance(value, (int, float)):
            dt = _timestamp_to_datetime(value)
        elif isinstance(value, str):
            if value.strip().isdigit():
                dt = _timestamp_to_datetime(int(value))
            else:
                dt = _iso_to_datetime(value)
        else:
            raise ValueError(f"Invalid timestamp: {value!r}")

        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=ZoneInfo(tz))
        # Must also be representable once stored as UTC
        dt.astimezone(timezone.utc)
    except (OverflowError, OSError) as e:
        raise ValueError(f"Timestamp out of range: {value!r}") from e
    return dt


def to_utc_naive(dt: datetime) -> datetime:
    """Convert an aware datetime to the naive UTC form stored in the database."""
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def day_key(dt: datetime, tz: str = "UTC") -> date:
    """Truncate a datetime to its calendar day in the server timezone."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=ZoneInfo(tz))
    return dt.astimezone(ZoneInfo(tz)).date()


def today(tz: str = "UTC") -> date:
    """Current calendar day in the server timezone."""
    return datetime.now(ZoneInfo(tz)).date()
