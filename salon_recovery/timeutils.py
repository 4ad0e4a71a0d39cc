"""Clock abstraction and calendar helpers shared by the analyzer, scorer and scheduler."""

from __future__ import annotations

import math
from datetime import datetime, timedelta, timezone, tzinfo
from typing import Optional, Protocol
from zoneinfo import ZoneInfo

# Weekday buckets are registered Sunday first; this order is the tie-break order.
WEEKDAYS = ("sunday", "monday", "tuesday", "wednesday", "thursday", "friday", "saturday")
DAYPARTS = ("morning", "afternoon", "evening")

_SECONDS_PER_DAY = 24 * 60 * 60


class Clock(Protocol):
    def now(self) -> datetime:
        ...


class SystemClock:
    """Wall clock in the salon's timezone."""

    def __init__(self, tz: Optional[tzinfo] = None):
        self.tz = tz or timezone.utc

    def now(self) -> datetime:
        return datetime.now(self.tz)


class FixedClock:
    """Clock frozen at a given instant (tests, replays)."""

    def __init__(self, current: datetime):
        self.current = current

    def now(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> None:
        self.current = self.current + timedelta(**kwargs)


def resolve_timezone(name: Optional[str]) -> tzinfo:
    if not name or name.upper() == "UTC":
        return timezone.utc
    return ZoneInfo(name)


def to_local(value: datetime, tz: tzinfo) -> datetime:
    """Aware instants are converted to the salon zone; naive values are already local."""
    if value.tzinfo is None:
        return value
    return value.astimezone(tz)


def as_local_naive(value: datetime, tz: tzinfo) -> datetime:
    return to_local(value, tz).replace(tzinfo=None)


def weekday_name(value: datetime, tz: tzinfo) -> str:
    local = to_local(value, tz)
    # datetime.weekday() is Monday=0; buckets are Sunday=0.
    return WEEKDAYS[(local.weekday() + 1) % 7]


def daypart(value: datetime, tz: tzinfo) -> Optional[str]:
    """Morning [6,12), afternoon [12,17), evening [17,22); other hours have no bucket."""
    hour = to_local(value, tz).hour
    if 6 <= hour < 12:
        return "morning"
    if 12 <= hour < 17:
        return "afternoon"
    if 17 <= hour < 22:
        return "evening"
    return None


def days_between_rounded(earlier: datetime, later: datetime, tz: tzinfo) -> int:
    """Whole days between two instants, rounded half up."""
    delta = as_local_naive(later, tz) - as_local_naive(earlier, tz)
    return math.floor(delta.total_seconds() / _SECONDS_PER_DAY + 0.5)


def days_between_floored(earlier: datetime, later: datetime, tz: tzinfo) -> int:
    delta = as_local_naive(later, tz) - as_local_naive(earlier, tz)
    return math.floor(delta.total_seconds() / _SECONDS_PER_DAY)


def add_calendar_days(value: datetime, days: int, tz: tzinfo) -> datetime:
    """Same wall-clock time ``days`` calendar days later in the salon zone."""
    local = to_local(value, tz)
    return (local.replace(tzinfo=None) + timedelta(days=days)).replace(tzinfo=local.tzinfo)


def format_display(value: datetime, tz: tzinfo) -> str:
    """e.g. ``Friday, January 26, 2024 at 2:00 PM``."""
    local = to_local(value, tz)
    hour = local.hour % 12 or 12
    return f"{local:%A, %B} {local.day}, {local.year} at {hour}:{local:%M} {'AM' if local.hour < 12 else 'PM'}"


def format_short_date(value: datetime) -> str:
    """e.g. ``2/24/2024``."""
    return f"{value.month}/{value.day}/{value.year}"
