"""
Wall-clock source for the engine. All "today" / "this week" windows are computed from
local naive datetimes returned by a Clock.
"""
from datetime import date, datetime, time, timedelta
from typing import Callable, Tuple

Clock = Callable[[], datetime]


def system_clock() -> datetime:
    """Local wall-clock time (naive)."""
    return datetime.now()


class FixedClock:
    """Clock pinned to a settable instant. Used by tests and by manual replays."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        """Move the clock forward, e.g. advance(hours=2)."""
        self.now = self.now + timedelta(**kwargs)


def parse_time_of_day(value: str, default: str = "00:00") -> Tuple[int, int]:
    """Parse "HH:MM" into (hour, minute). Raises ValueError on out-of-range values."""
    parts = str(value or default).strip().split(":")
    hour = int(parts[0]) if parts and parts[0] else 0
    minute = int(parts[1]) if len(parts) > 1 else 0
    if not (0 <= hour < 24 and 0 <= minute < 60):
        raise ValueError(f"Invalid time of day: {value!r}")
    return hour, minute


def at_time_of_day(day: date, value: str) -> datetime:
    """Combine a calendar day with an "HH:MM" string."""
    hour, minute = parse_time_of_day(value)
    return datetime.combine(day, time(hour, minute))
