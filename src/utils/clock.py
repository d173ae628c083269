"""
Time source helpers for the dual-mode authorization comparator.

The comparator never reads the system clock directly; it is handed a
zero-argument callable so record timestamps stay assertable in tests.
"""

from datetime import datetime, timezone
from typing import Callable

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Return the current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def to_iso8601(value: datetime) -> str:
    """
    Serialize a datetime as a fixed-width ISO-8601 UTC string with a ``Z`` suffix.

    Naive datetimes are treated as UTC. Millisecond precision keeps the
    strings lexicographically sortable, which the stores rely on.

    Example:
        >>> to_iso8601(datetime(2024, 5, 1, 9, 30, tzinfo=timezone.utc))
        '2024-05-01T09:30:00.000Z'
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def from_iso8601(value: str) -> datetime:
    """Parse a timestamp written by :func:`to_iso8601` back into an aware datetime."""
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
