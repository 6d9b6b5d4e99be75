"""
UTC timestamp utilities (stdlib-only).

Every timestamp the scheduler stores or compares is timezone-aware UTC.
Naive datetimes coming from callers are interpreted as UTC rather than
local time so that persisted values compare correctly as ISO strings.

Tags:
    timestamps, utc, datetime, taskspine, stdlib-only, serialization
"""

from collections.abc import Callable
from datetime import UTC, datetime

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Get current UTC datetime."""
    return datetime.now(UTC)


def ensure_utc(dt: datetime) -> datetime:
    """Normalize a datetime to aware UTC (naive values are taken as UTC)."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def to_iso8601(dt: datetime | None) -> str | None:
    """Convert datetime to ISO 8601 string in UTC.

    Fixed microsecond precision keeps stored values comparable as strings.
    """
    if dt is None:
        return None
    return ensure_utc(dt).isoformat(timespec="microseconds")


def from_iso8601(s: str | None) -> datetime | None:
    """Parse ISO 8601 string to an aware UTC datetime."""
    if s is None:
        return None
    return ensure_utc(datetime.fromisoformat(s))


def fixed_clock(at: datetime) -> Clock:
    """Clock that always returns ``at``. Used by tests and replays."""
    frozen = ensure_utc(at)
    return lambda: frozen
