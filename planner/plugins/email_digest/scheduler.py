"""
Decide when to send the daily digest, the weekly digest and per-assignment reminders,
at most once per period.

Markers (per user, in a MarkerStore):
  daily-digest-sent-{user_id}          -> YYYY-MM-DD of the day it was sent
  weekly-digest-sent-{user_id}         -> YYYY-MM-DD of the firing day
  assignment-reminder-{id}-{type}      -> YYYY-MM-DD it was sent; its presence alone
                                          blocks a resend, whatever the due date becomes

A marker is written only after the dispatcher reports success, so a failed send is
retried on the next check while its window is still open.
"""
import logging
from datetime import datetime
from typing import Any, Callable, List, Optional

from planner.core.clock import Clock, at_time_of_day, system_clock
from planner.plugins.coursework import service as coursework
from planner.plugins.coursework.models import Assignment, User, WEEKDAY_NAMES
from planner.plugins.coursework.preferences import EmailPreferences
from planner.plugins.email_digest import digest
from planner.plugins.email_digest.dispatchers import EmailMessage, MailDispatcher
from planner.plugins.email_digest.markers import MarkerStore

logger = logging.getLogger(__name__)


def daily_key(user_id: str) -> str:
    return f"daily-digest-sent-{user_id}"


def weekly_key(user_id: str) -> str:
    return f"weekly-digest-sent-{user_id}"


def reminder_key(assignment_id: str, reminder_type: str) -> str:
    return f"assignment-reminder-{assignment_id}-{reminder_type}"


def reminder_type_for(due_at: datetime, now: datetime) -> Optional[str]:
    """The reminder whose window contains now, if any. Hours and minutes are whole, truncated."""
    days = (due_at.date() - now.date()).days
    seconds = (due_at - now).total_seconds()
    hours = int(seconds / 3600)
    minutes = int(seconds / 60)
    if days == 3:
        return "due-3-days"
    if 20 <= hours <= 28:
        return "due-1-day"
    if 150 <= minutes <= 210:
        return "due-3-hours"
    return None


class DigestScheduler:
    """
    Evaluates the three email triggers for a user. All state comes in through the
    constructor: where markers live, how mail goes out and what time it is.
    """

    def __init__(self, marker_store: MarkerStore, dispatcher: MailDispatcher, clock: Clock = system_clock):
        self.markers = marker_store
        self.dispatcher = dispatcher
        self.clock = clock

    def check(self, user: User) -> List[str]:
        """Run every trigger once for the user; returns the kinds sent on this check."""
        prefs = coursework.get_email_preferences(user)
        if not prefs.email_notifications_enabled:
            return []
        now = self.clock()
        sent: List[str] = []
        if self._guarded("daily digest", user, lambda: self.check_daily_digest(user, prefs, now)):
            sent.append("daily-digest")
        if self._guarded("weekly digest", user, lambda: self.check_weekly_digest(user, prefs, now)):
            sent.append("weekly-digest")
        sent.extend(self._guarded("reminders", user, lambda: self.check_assignment_reminders(user, prefs, now)) or [])
        return sent

    @staticmethod
    def _guarded(trigger: str, user: User, evaluate: Callable[[], Any]) -> Any:
        """Run one trigger; a failure is logged and leaves the other triggers to run."""
        try:
            return evaluate()
        except Exception as e:
            logger.exception(f"{trigger} check for user {user.id} failed: {e}")
            return None

    def check_all(self, users: List[User]) -> dict:
        results = {}
        for user in users:
            try:
                results[user.id] = self.check(user)
            except Exception as e:
                logger.exception(f"Digest check for user {user.id} failed: {e}")
        return results

    def _dispatch(self, kind: str, message: EmailMessage) -> bool:
        try:
            ok = bool(self.dispatcher.send(kind, message))
        except Exception as e:
            logger.error(f"Dispatch of {kind} to {message.to_email} failed: {e}")
            return False
        if not ok:
            logger.warning(f"Dispatcher rejected {kind} to {message.to_email}; will retry")
        return ok

    def _send_once(self, user_id: str, key: str, value: str, kind: str, build: Callable[[], EmailMessage]) -> bool:
        if self.markers.get(user_id, key) == value:
            return False
        if not self._dispatch(kind, build()):
            return False
        self.markers.set(user_id, key, value)
        return True

    def check_daily_digest(self, user: User, prefs: EmailPreferences, now: datetime) -> bool:
        if prefs.email_digest_frequency != "daily":
            return False
        if now < at_time_of_day(now.date(), prefs.email_digest_time):
            return False
        today = now.date().isoformat()
        if self.markers.get(user.id, daily_key(user.id)) == today:
            return False
        buckets = digest.load_buckets(user.id, now.date())
        if buckets is None:
            return False
        return self._send_once(
            user.id, daily_key(user.id), today, "daily-digest",
            lambda: digest.compose_daily_digest(user, buckets, now),
        )

    def check_weekly_digest(self, user: User, prefs: EmailPreferences, now: datetime) -> bool:
        if prefs.email_digest_frequency != "weekly":
            return False
        if WEEKDAY_NAMES[now.weekday()] != prefs.email_digest_day:
            return False
        if now < at_time_of_day(now.date(), prefs.email_digest_time):
            return False
        today = now.date().isoformat()
        if self.markers.get(user.id, weekly_key(user.id)) == today:
            return False
        buckets = digest.load_buckets(user.id, now.date())
        if buckets is None:
            return False
        return self._send_once(
            user.id, weekly_key(user.id), today, "weekly-digest",
            lambda: digest.compose_weekly_digest(user, buckets, now),
        )

    def check_assignment_reminders(self, user: User, prefs: EmailPreferences, now: datetime) -> List[str]:
        if not prefs.email_assignment_reminders:
            return []
        semester = coursework.get_active_semester(user.id)
        if semester is None:
            return []
        course_names = {c.id: c.course_name for c in coursework.get_courses(semester.id)}
        sent: List[str] = []
        for assignment in coursework.get_all_assignments(semester.id, include_completed=False):
            reminder_type = reminder_type_for(assignment.due_at, now)
            if reminder_type is None:
                continue
            if self._send_reminder(user, assignment, course_names, reminder_type, now):
                sent.append(reminder_type)
        return sent

    def _send_reminder(
        self, user: User, assignment: Assignment, course_names: dict, reminder_type: str, now: datetime
    ) -> bool:
        key = reminder_key(assignment.id, reminder_type)
        if self.markers.get(user.id, key) is not None:
            return False
        course_name = course_names.get(assignment.course_id, "Unknown Course")
        return self._send_once(
            user.id,
            key,
            now.date().isoformat(),
            reminder_type,
            lambda: digest.compose_reminder(user, assignment, course_name, reminder_type),
        )
