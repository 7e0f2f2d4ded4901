"""
Urgency tiers derived from time-to-due. Never stored: the tier depends on the clock.
"""
from datetime import datetime
from enum import Enum


class Priority(str, Enum):
    URGENT = "urgent"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


# (exclusive upper bound in hours, tier); first match wins
_TIERS = (
    (24.0, Priority.URGENT),
    (72.0, Priority.HIGH),
    (168.0, Priority.MEDIUM),
)


def hours_until(due_at: datetime, now: datetime) -> float:
    return (due_at - now).total_seconds() / 3600.0


def classify_priority(due_at: datetime, now: datetime) -> Priority:
    """Overdue and due within 24h are urgent, within 72h high, within a week medium, else low."""
    hours = hours_until(due_at, now)
    if hours < 0:
        return Priority.URGENT
    for bound, tier in _TIERS:
        if hours < bound:
            return tier
    return Priority.LOW
