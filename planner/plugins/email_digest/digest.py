"""
Compose digest and reminder emails from a user's incomplete assignments.
All user-supplied text is HTML-escaped.
"""
from dataclasses import dataclass, field
from datetime import date, datetime
from html import escape
from typing import Dict, List, Optional

from planner.plugins.coursework import service as coursework
from planner.plugins.coursework.models import Assignment, User
from planner.plugins.email_digest.dispatchers import EmailMessage

REMINDER_TYPES = ("due-3-days", "due-1-day", "due-3-hours")

_LAYOUT = """<!DOCTYPE html>
<html>
  <head>
    <meta charset="utf-8">
    <title>{title}</title>
  </head>
  <body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333; max-width: 600px; margin: 0 auto; padding: 20px;">
    <div style="background: #667eea; padding: 24px; text-align: center; border-radius: 10px 10px 0 0;">
      <h1 style="color: white; margin: 0; font-size: 26px;">Academic Planner</h1>
    </div>
    <div style="background: #ffffff; padding: 24px; border: 1px solid #e5e7eb; border-top: none; border-radius: 0 0 10px 10px;">
      {content}
    </div>
    <div style="text-align: center; margin-top: 24px; color: #6b7280; font-size: 12px;">
      <p>You can manage your email preferences in Settings.</p>
    </div>
  </body>
</html>
"""


@dataclass
class DigestItem:
    name: str
    course_name: str
    due_at: datetime


@dataclass
class DigestBuckets:
    semester_name: str
    due_today: List[DigestItem] = field(default_factory=list)
    overdue: List[DigestItem] = field(default_factory=list)
    due_this_week: List[DigestItem] = field(default_factory=list)


def _time(value: datetime) -> str:
    return f"{value.hour % 12 or 12}:{value.minute:02d} {'AM' if value.hour < 12 else 'PM'}"


def _long_date(value: date) -> str:
    return f"{value:%B} {value.day}, {value.year}"


def bucket_assignments(
    assignments: List[Assignment],
    course_names: Dict[str, str],
    today: date,
    semester_name: str = "",
) -> DigestBuckets:
    """Sort incomplete assignments into due today, overdue and due in the next 1-7 days."""
    buckets = DigestBuckets(semester_name=semester_name)
    for a in sorted(assignments, key=lambda a: a.due_at):
        if a.completed_at is not None:
            continue
        item = DigestItem(a.name, course_names.get(a.course_id, "Unknown Course"), a.due_at)
        days = (a.due_at.date() - today).days
        if days == 0:
            buckets.due_today.append(item)
        elif days < 0:
            buckets.overdue.append(item)
        elif days <= 7:
            buckets.due_this_week.append(item)
    return buckets


def load_buckets(user_id: str, today: date) -> Optional[DigestBuckets]:
    """Buckets for the user's active semester, or None without one."""
    semester = coursework.get_active_semester(user_id)
    if semester is None:
        return None
    course_names = {c.id: c.course_name for c in coursework.get_courses(semester.id)}
    assignments = coursework.get_all_assignments(semester.id, include_completed=False)
    return bucket_assignments(assignments, course_names, today, semester.name)


def _section(title: str, color: str, items: List[DigestItem], with_due: Optional[str]) -> str:
    if not items:
        return ""
    rows = []
    for item in items:
        row = f"<li><strong>{escape(item.name)}</strong> - {escape(item.course_name)}"
        if with_due == "time":
            row += f" ({_time(item.due_at)})"
        elif with_due == "date":
            row += f" ({item.due_at:%b} {item.due_at.day}, {_time(item.due_at)})"
        rows.append(row + "</li>")
    return f'<h3 style="color: {color}; margin-top: 20px;">{title} ({len(items)})</h3><ul>{"".join(rows)}</ul>'


def compose_daily_digest(user: User, buckets: DigestBuckets, now: datetime) -> EmailMessage:
    content = '<h2 style="color: #667eea;">Your Daily Assignment Summary</h2>'
    content += f"<p>Here's what's coming up for <strong>{escape(buckets.semester_name)}</strong>:</p>"
    content += _section("Due Today", "#dc2626", buckets.due_today, "time")
    content += _section("Overdue", "#dc2626", buckets.overdue, None)
    content += _section("Due This Week", "#3b82f6", buckets.due_this_week, "date")
    if not (buckets.due_today or buckets.overdue or buckets.due_this_week):
        content += '<p style="color: #10b981;">Great job! You have no assignments due soon.</p>'
    return EmailMessage(
        to_email=user.email,
        to_name=user.name or "User",
        subject=f"Daily Assignment Digest - {_long_date(now.date())}",
        html=_LAYOUT.format(title="Daily Assignment Digest", content=content),
    )


def compose_weekly_digest(user: User, buckets: DigestBuckets, now: datetime) -> EmailMessage:
    content = '<h2 style="color: #667eea;">Your Weekly Assignment Summary</h2>'
    content += f"<p>Here's what's coming up for <strong>{escape(buckets.semester_name)}</strong> this week:</p>"
    content += _section("Overdue", "#dc2626", buckets.overdue, None)
    content += _section("Due This Week", "#3b82f6", buckets.due_this_week, "date")
    if not (buckets.overdue or buckets.due_this_week):
        content += '<p style="color: #10b981;">Great job! You have no assignments due this week.</p>'
    return EmailMessage(
        to_email=user.email,
        to_name=user.name or "User",
        subject=f"Weekly Assignment Digest - Week of {now:%B} {now.day}",
        html=_LAYOUT.format(title="Weekly Assignment Digest", content=content),
    )


def compose_reminder(user: User, assignment: Assignment, course_name: str, reminder_type: str) -> EmailMessage:
    if reminder_type not in REMINDER_TYPES:
        raise ValueError(f"Unknown reminder type: {reminder_type!r}")
    name, course = escape(assignment.name), escape(course_name)
    due = assignment.due_at
    if reminder_type == "due-1-day":
        subject = f"{assignment.name} is due tomorrow"
        content = (
            '<h2 style="color: #f59e0b;">Assignment Due Tomorrow</h2>'
            f"<p><strong>{name}</strong> for <strong>{course}</strong> is due tomorrow ({_long_date(due.date())}).</p>"
            "<p>Don't forget to complete it!</p>"
        )
    elif reminder_type == "due-3-days":
        subject = f"{assignment.name} is due in 3 days"
        content = (
            '<h2 style="color: #3b82f6;">Upcoming Assignment</h2>'
            f"<p><strong>{name}</strong> for <strong>{course}</strong> is due in 3 days ({_long_date(due.date())}).</p>"
            "<p>Start working on it soon!</p>"
        )
    else:
        subject = f"{assignment.name} is due in 3 hours"
        content = (
            '<h2 style="color: #dc2626;">Deadline in 3 Hours</h2>'
            f"<p><strong>{name}</strong> for <strong>{course}</strong> is due at "
            f"<strong>{_long_date(due.date())} at {_time(due)}</strong>.</p>"
            "<p>Make sure to submit it on time!</p>"
        )
    return EmailMessage(
        to_email=user.email,
        to_name=user.name or "User",
        subject=subject,
        html=_LAYOUT.format(title=escape(subject), content=content),
    )
