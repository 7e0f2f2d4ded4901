"""
Turn upcoming and overdue deadlines into in-app notifications, at most one per
(type, assignment) per calendar day.
"""
import logging
from datetime import date, datetime
from typing import Dict, List, Optional

from planner.plugins.coursework import service as coursework
from planner.plugins.coursework.models import Assignment
from planner.plugins.notifications import service

logger = logging.getLogger(__name__)


def days_until_due(due_at: datetime, today: date) -> int:
    """Whole calendar days from today to the due date."""
    return (due_at.date() - today).days


def notification_type_for(days: int) -> Optional[str]:
    if days < 0:
        return "overdue"
    if days == 0:
        return "deadline-today"
    if days in (1, 3):
        return "deadline-soon"
    return None


def format_time(value: datetime) -> str:
    """12-hour clock without a leading zero, e.g. 9:05 AM."""
    return f"{value.hour % 12 or 12}:{value.minute:02d} {'AM' if value.hour < 12 else 'PM'}"


def build_message(assignment: Assignment, course_name: str, days: int) -> str:
    due = f"{assignment.due_at:%b} {assignment.due_at.day} at {format_time(assignment.due_at)}"
    if days < 0:
        late = -days
        return f"{assignment.name} ({course_name}) is overdue by {late} day{'s' if late != 1 else ''}"
    if days == 0:
        return f"{assignment.name} ({course_name}) is due today at {format_time(assignment.due_at)}"
    if days == 1:
        return f"{assignment.name} ({course_name}) is due tomorrow ({due})"
    return f"{assignment.name} ({course_name}) is due in {days} days ({due})"


def materialize_notifications(user_id: str, now: datetime) -> List[str]:
    """
    Create the notifications the user's incomplete assignments call for today.
    Returns the ids of the notifications that cover them, new or already present.
    """
    semester = coursework.get_active_semester(user_id)
    if semester is None:
        return []
    course_names: Dict[str, str] = {c.id: c.course_name for c in coursework.get_courses(semester.id)}
    today = now.date()
    ids: List[str] = []
    created = 0
    for assignment in coursework.get_all_assignments(semester.id, include_completed=False):
        days = days_until_due(assignment.due_at, today)
        kind = notification_type_for(days)
        if kind is None:
            continue
        message = build_message(assignment, course_names.get(assignment.course_id, "Unknown Course"), days)
        notification_id, was_created = service.create_if_absent(
            user_id, kind, message, assignment.id, "assignment", now
        )
        ids.append(notification_id)
        created += int(was_created)
    if created:
        logger.info(f"Created {created} notification(s) for user {user_id}")
    return ids
