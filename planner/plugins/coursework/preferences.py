"""
Per-user email preferences, stored as JSON on the User row.
"""
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from planner.core.clock import parse_time_of_day
from planner.plugins.coursework.models import WEEKDAY_NAMES


class EmailPreferences(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    email_notifications_enabled: bool = Field(False, alias="emailNotificationsEnabled")
    email_digest_frequency: Literal["daily", "weekly", "none"] = Field("none", alias="emailDigestFrequency")
    email_digest_time: str = Field("09:00", alias="emailDigestTime")
    email_digest_day: str = Field("Monday", alias="emailDigestDay")
    email_assignment_reminders: bool = Field(False, alias="emailAssignmentReminders")

    @field_validator("email_digest_time")
    @classmethod
    def _check_time(cls, value: str) -> str:
        hour, minute = parse_time_of_day(value)
        return f"{hour:02d}:{minute:02d}"

    @field_validator("email_digest_day")
    @classmethod
    def _check_day(cls, value: str) -> str:
        if value not in WEEKDAY_NAMES:
            raise ValueError(f"Unknown weekday: {value!r}")
        return value


def load_preferences(raw: Optional[Dict[str, Any]]) -> EmailPreferences:
    """Parse stored JSON; missing keys fall back to defaults."""
    return EmailPreferences.model_validate(raw or {})
