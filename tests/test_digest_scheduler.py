from datetime import datetime, timedelta

import pytest

from planner.core.clock import FixedClock
from planner.plugins.coursework import service as coursework
from planner.plugins.email_digest import digest
from planner.plugins.email_digest.markers import DatabaseMarkerStore, InMemoryMarkerStore
from planner.plugins.email_digest.scheduler import (
    DigestScheduler,
    daily_key,
    reminder_key,
    reminder_type_for,
    weekly_key,
)

MONDAY_0930 = datetime(2024, 3, 4, 9, 30)


def _configure(user, **prefs):
    coursework.update_preferences(user.id, {"email_notifications_enabled": True, **prefs})
    return coursework.get_user(user.id)


@pytest.fixture
def markers():
    return InMemoryMarkerStore()


def test_daily_digest_sent_once_per_day(user, course, markers, dispatcher):
    user = _configure(user, email_digest_frequency="daily", email_digest_time="09:00")
    scheduler = DigestScheduler(markers, dispatcher, FixedClock(MONDAY_0930))
    assert scheduler.check(user) == ["daily-digest"]
    assert scheduler.check(user) == []
    assert dispatcher.kinds() == ["daily-digest"]
    assert markers.get(user.id, daily_key(user.id)) == "2024-03-04"


def test_daily_digest_waits_for_digest_time(user, course, markers, dispatcher):
    user = _configure(user, email_digest_frequency="daily", email_digest_time="09:00")
    clock = FixedClock(datetime(2024, 3, 4, 8, 59))
    scheduler = DigestScheduler(markers, dispatcher, clock)
    assert scheduler.check(user) == []
    clock.advance(minutes=1)
    assert scheduler.check(user) == ["daily-digest"]
    clock.advance(days=1)
    assert scheduler.check(user) == ["daily-digest"]
    assert len(dispatcher.sent) == 2


def test_failed_dispatch_leaves_marker_unset(user, course, markers, make_dispatcher):
    user = _configure(user, email_digest_frequency="daily")
    failing = make_dispatcher(succeed=False)
    assert DigestScheduler(markers, failing, FixedClock(MONDAY_0930)).check(user) == []
    assert markers.get(user.id, daily_key(user.id)) is None

    raising = make_dispatcher(raise_error=True)
    assert DigestScheduler(markers, raising, FixedClock(MONDAY_0930)).check(user) == []
    assert markers.get(user.id, daily_key(user.id)) is None

    working = make_dispatcher()
    assert DigestScheduler(markers, working, FixedClock(MONDAY_0930 + timedelta(minutes=1))).check(user) == [
        "daily-digest"
    ]


def test_daily_digest_content(user, course, markers, dispatcher):
    coursework.create_assignment(course.id, "Quiz <1>", datetime(2024, 3, 4, 14, 0), now=datetime(2024, 2, 1))
    coursework.create_assignment(course.id, "Late essay", datetime(2024, 3, 1, 9, 0), now=datetime(2024, 2, 1))
    coursework.create_assignment(course.id, "Lab", datetime(2024, 3, 8, 9, 0), now=datetime(2024, 2, 1))
    coursework.create_assignment(course.id, "Final", datetime(2024, 4, 30, 9, 0), now=datetime(2024, 2, 1))
    user = _configure(user, email_digest_frequency="daily")
    DigestScheduler(markers, dispatcher, FixedClock(MONDAY_0930)).check(user)
    (_, message), = dispatcher.sent
    assert message.subject == "Daily Assignment Digest - March 4, 2024"
    assert message.to_email == "student@example.com"
    assert "Due Today (1)" in message.html
    assert "Quiz &lt;1&gt;" in message.html
    assert "2:00 PM" in message.html
    assert "Overdue (1)" in message.html
    assert "Due This Week (1)" in message.html
    assert "Final" not in message.html


def test_daily_digest_all_clear(user, course, markers, dispatcher):
    user = _configure(user, email_digest_frequency="daily")
    DigestScheduler(markers, dispatcher, FixedClock(MONDAY_0930)).check(user)
    assert "no assignments due soon" in dispatcher.sent[0][1].html


def test_weekly_digest_on_configured_day(user, course, markers, dispatcher):
    user = _configure(user, email_digest_frequency="weekly", email_digest_day="Monday", email_digest_time="09:00")
    clock = FixedClock(MONDAY_0930)
    scheduler = DigestScheduler(markers, dispatcher, clock)
    assert scheduler.check(user) == ["weekly-digest"]
    assert scheduler.check(user) == []
    clock.advance(days=1)
    assert scheduler.check(user) == []
    clock.advance(days=6)
    assert scheduler.check(user) == ["weekly-digest"]
    assert dispatcher.sent[0][1].subject == "Weekly Assignment Digest - Week of March 4"
    assert markers.get(user.id, weekly_key(user.id)) == "2024-03-11"


def test_disabled_notifications_send_nothing(user, course, markers, dispatcher):
    coursework.update_preferences(user.id, {"email_digest_frequency": "daily", "email_assignment_reminders": True})
    user = coursework.get_user(user.id)
    assert DigestScheduler(markers, dispatcher, FixedClock(MONDAY_0930)).check(user) == []
    assert dispatcher.sent == []


def test_one_day_reminder_does_not_refire(user, course, markers, dispatcher):
    now = datetime(2024, 3, 4, 8, 0)
    assignment = coursework.create_assignment(
        course.id, "Lab 4", now + timedelta(hours=20, minutes=30), now=datetime(2024, 2, 1)
    )
    user = _configure(user, email_assignment_reminders=True)
    clock = FixedClock(now)
    scheduler = DigestScheduler(markers, dispatcher, clock)
    assert scheduler.check(user) == ["due-1-day"]
    clock.advance(hours=2)
    assert scheduler.check(user) == []
    assert dispatcher.kinds() == ["due-1-day"]
    assert dispatcher.sent[0][1].subject == "Lab 4 is due tomorrow"
    assert markers.get(user.id, reminder_key(assignment.id, "due-1-day")) == "2024-03-04"


def test_reminder_stays_quiet_inside_open_window(user, course, markers, dispatcher):
    now = datetime(2024, 3, 4, 8, 0)
    coursework.create_assignment(course.id, "Essay", now + timedelta(hours=27), now=datetime(2024, 2, 1))
    user = _configure(user, email_assignment_reminders=True)
    clock = FixedClock(now)
    scheduler = DigestScheduler(markers, dispatcher, clock)
    assert scheduler.check(user) == ["due-1-day"]
    clock.advance(hours=3)
    assert scheduler.check(user) == []


def test_reminder_is_not_resent_after_due_date_moves(user, course, markers, dispatcher):
    now = datetime(2024, 3, 4, 8, 0)
    assignment = coursework.create_assignment(course.id, "Essay", now + timedelta(hours=22), now=datetime(2024, 2, 1))
    user = _configure(user, email_assignment_reminders=True)
    clock = FixedClock(now)
    scheduler = DigestScheduler(markers, dispatcher, clock)
    assert scheduler.check(user) == ["due-1-day"]
    coursework.update_assignment(assignment.id, {"due_at": now + timedelta(hours=25)})
    assert scheduler.check(user) == []
    clock.advance(days=1)
    coursework.update_assignment(assignment.id, {"due_at": clock() + timedelta(hours=21)})
    assert scheduler.check(user) == []
    assert dispatcher.kinds() == ["due-1-day"]


def test_failing_digest_does_not_block_reminders(user, course, markers, dispatcher, monkeypatch):
    coursework.create_assignment(course.id, "Quiz", MONDAY_0930 + timedelta(hours=3), now=datetime(2024, 2, 1))
    user = _configure(user, email_digest_frequency="daily", email_assignment_reminders=True)

    def broken_store(user_id, today):
        raise RuntimeError("database is locked")

    monkeypatch.setattr(digest, "load_buckets", broken_store)
    scheduler = DigestScheduler(markers, dispatcher, FixedClock(MONDAY_0930))
    assert scheduler.check(user) == ["due-3-hours"]
    assert markers.get(user.id, daily_key(user.id)) is None
    monkeypatch.undo()
    assert scheduler.check(user) == ["daily-digest"]


def test_three_day_and_three_hour_reminders(user, course, markers, dispatcher):
    now = datetime(2024, 3, 4, 8, 0)
    coursework.create_assignment(course.id, "Project", datetime(2024, 3, 7, 23, 0), now=datetime(2024, 2, 1))
    coursework.create_assignment(course.id, "Quiz", now + timedelta(hours=3), now=datetime(2024, 2, 1))
    user = _configure(user, email_assignment_reminders=True)
    sent = DigestScheduler(markers, dispatcher, FixedClock(now)).check(user)
    assert sorted(sent) == ["due-3-days", "due-3-hours"]
    subjects = sorted(message.subject for _, message in dispatcher.sent)
    assert subjects == ["Project is due in 3 days", "Quiz is due in 3 hours"]


def test_completed_assignments_get_no_reminder(user, course, markers, dispatcher):
    now = datetime(2024, 3, 4, 8, 0)
    assignment = coursework.create_assignment(course.id, "Quiz", now + timedelta(hours=3), now=datetime(2024, 2, 1))
    coursework.mark_complete(assignment.id, True, now=now)
    user = _configure(user, email_assignment_reminders=True)
    assert DigestScheduler(markers, dispatcher, FixedClock(now)).check(user) == []


def test_triggers_are_independent(user, course, markers, dispatcher):
    coursework.create_assignment(course.id, "Quiz", MONDAY_0930 + timedelta(hours=3), now=datetime(2024, 2, 1))
    user = _configure(user, email_digest_frequency="daily", email_assignment_reminders=True)
    sent = DigestScheduler(markers, dispatcher, FixedClock(MONDAY_0930)).check(user)
    assert sent == ["daily-digest", "due-3-hours"]


@pytest.mark.parametrize("delta,expected", [
    (timedelta(days=3), "due-3-days"),
    (timedelta(hours=28, minutes=59), "due-1-day"),
    (timedelta(hours=20), "due-1-day"),
    (timedelta(hours=19, minutes=59), None),
    (timedelta(minutes=210, seconds=59), "due-3-hours"),
    (timedelta(minutes=150), "due-3-hours"),
    (timedelta(minutes=149), None),
    (timedelta(hours=-1), None),
])
def test_reminder_windows(delta, expected):
    now = datetime(2024, 3, 4, 8, 0)
    assert reminder_type_for(now + delta, now) == expected


def test_database_marker_store_upserts(db):
    store = DatabaseMarkerStore()
    assert store.get("u1", "daily-digest-sent-u1") is None
    store.set("u1", "daily-digest-sent-u1", "2024-03-04")
    store.set("u1", "daily-digest-sent-u1", "2024-03-05")
    assert store.get("u1", "daily-digest-sent-u1") == "2024-03-05"
    assert store.get("u2", "daily-digest-sent-u1") is None
