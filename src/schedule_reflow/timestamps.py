"""Boundary: ISO-8601 text <-> timezone-aware UTC datetimes."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone


def parse_instant(value: str | datetime, name: str = "instant") -> datetime:
    """Parse an ISO-8601 instant and normalise it to UTC.

    Accepts a trailing 'Z' or an explicit offset. Raises TypeError for naive
    input: an instant without an offset is ambiguous for shift evaluation.
    """
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(text)
        except ValueError as e:
            raise ValueError(f"{name}: invalid ISO-8601 instant {value!r}") from e
    else:
        raise TypeError(f"{name} must be a string or datetime, got {type(value).__name__}")

    if dt.tzinfo is None or dt.utcoffset() is None:
        raise TypeError(
            f"{name} must carry a UTC offset (e.g. 'Z'), got {value!r}. "
            f"Shift hours are evaluated in UTC."
        )
    return dt.astimezone(timezone.utc)


def format_instant(dt: datetime) -> str:
    """Format as 'YYYY-MM-DDTHH:MM:SS.mmmZ' in UTC."""
    return (
        dt.astimezone(timezone.utc)
        .isoformat(timespec="milliseconds")
        .replace("+00:00", "Z")
    )


def whole_minutes(delta: timedelta) -> int:
    """Whole minutes in a non-negative timedelta. Partial minutes are dropped."""
    return int(delta.total_seconds()) // 60


def minutes_between(earlier: datetime, later: datetime) -> int:
    """Signed whole minutes from earlier to later, truncated toward zero."""
    return int((later - earlier).total_seconds() / 60)


def midnight(dt: datetime) -> datetime:
    """Start of the UTC day containing dt."""
    return dt.replace(hour=0, minute=0, second=0, microsecond=0)
