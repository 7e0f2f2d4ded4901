from datetime import datetime, timedelta

import pytest

from planner.core.errors import RecordNotFoundError
from planner.plugins.coursework import service as coursework
from planner.plugins.notifications import retention, service
from planner.plugins.notifications.materializer import (
    days_until_due,
    materialize_notifications,
    notification_type_for,
)

NOW = datetime(2024, 3, 4, 8, 0)


def _assignment(course, name, due_at):
    return coursework.create_assignment(course.id, name, due_at, type="Essay", now=datetime(2024, 2, 1))


@pytest.fixture
def deadlines(course):
    return {
        "overdue": _assignment(course, "Essay draft", datetime(2024, 3, 1, 23, 59)),
        "today": _assignment(course, "Quiz 3", datetime(2024, 3, 4, 17, 0)),
        "tomorrow": _assignment(course, "Lab 2", datetime(2024, 3, 5, 9, 0)),
        "two_days": _assignment(course, "Reading", datetime(2024, 3, 6, 9, 0)),
        "three_days": _assignment(course, "Project", datetime(2024, 3, 7, 23, 0)),
        "later": _assignment(course, "Exam", datetime(2024, 3, 20, 9, 0)),
    }


def _by_item(user_id):
    return {n.related_item_id: n for n in service.get_notifications(user_id)}


def test_type_mapping():
    assert notification_type_for(-3) == "overdue"
    assert notification_type_for(0) == "deadline-today"
    assert notification_type_for(1) == "deadline-soon"
    assert notification_type_for(2) is None
    assert notification_type_for(3) == "deadline-soon"
    assert notification_type_for(4) is None


def test_days_until_due_uses_calendar_days():
    assert days_until_due(datetime(2024, 3, 5, 0, 1), NOW.date()) == 1
    assert days_until_due(datetime(2024, 3, 3, 23, 59), NOW.date()) == -1


def test_materializes_expected_notifications(user, deadlines):
    materialize_notifications(user.id, NOW)
    by_item = _by_item(user.id)
    assert by_item[deadlines["overdue"].id].type == "overdue"
    assert by_item[deadlines["today"].id].type == "deadline-today"
    assert by_item[deadlines["tomorrow"].id].type == "deadline-soon"
    assert by_item[deadlines["three_days"].id].type == "deadline-soon"
    assert deadlines["two_days"].id not in by_item
    assert deadlines["later"].id not in by_item
    assert "Quiz 3" in by_item[deadlines["today"].id].message
    assert all(n.related_item_type == "assignment" for n in by_item.values())


def test_materializer_is_idempotent_within_a_day(user, deadlines):
    first = materialize_notifications(user.id, NOW)
    second = materialize_notifications(user.id, NOW + timedelta(hours=6))
    assert sorted(first) == sorted(second)
    assert service.count_notifications(user.id) == 4


def test_overdue_repeats_each_day(user, deadlines):
    materialize_notifications(user.id, NOW)
    materialize_notifications(user.id, NOW + timedelta(days=1))
    overdue = [
        n for n in service.get_notifications(user.id)
        if n.related_item_id == deadlines["overdue"].id
    ]
    assert len(overdue) == 2
    assert {n.created_on for n in overdue} == {NOW.date(), NOW.date() + timedelta(days=1)}


def test_completed_assignments_are_ignored(user, deadlines):
    coursework.mark_complete(deadlines["today"].id, True, now=NOW)
    materialize_notifications(user.id, NOW)
    assert deadlines["today"].id not in _by_item(user.id)


def test_create_if_absent_returns_existing(user):
    first_id, created = service.create_if_absent(user.id, "other", "hello", "x1", None, NOW)
    again_id, created_again = service.create_if_absent(user.id, "other", "hello again", "x1", None, NOW)
    assert created and not created_again
    assert first_id == again_id


def test_create_if_absent_rejects_unknown_type(user):
    with pytest.raises(ValueError):
        service.create_if_absent(user.id, "reminder", "hi", "x1", None, NOW)


def test_mark_as_read_and_missing(user):
    notification_id, _ = service.create_if_absent(user.id, "other", "hi", "x1", None, NOW)
    service.mark_as_read(user.id, notification_id)
    assert service.get_notifications(user.id)[0].is_read
    with pytest.raises(RecordNotFoundError):
        service.mark_as_read(user.id, "missing")
    with pytest.raises(RecordNotFoundError):
        service.mark_as_read("someone-else", notification_id)


def _seed(user_id, count, start=NOW):
    ids = []
    for i in range(count):
        notification_id, _ = service.create_if_absent(
            user_id, "other", f"note {i}", f"item-{i}", None, start + timedelta(minutes=i)
        )
        ids.append(notification_id)
    return ids


def test_sweep_bounds(user):
    ids = _seed(user.id, 20)
    for notification_id in ids[:12]:
        service.mark_as_read(user.id, notification_id)
    deleted = retention.sweep(user.id, retention.RetentionPolicy())
    remaining = service.get_notifications(user.id)
    unread = [n for n in remaining if not n.is_read]
    read = [n for n in remaining if n.is_read]
    assert deleted == 7
    assert len(unread) == 8
    assert len(read) == 5
    # newest read survive
    assert {n.id for n in read} == set(ids[7:12])


def test_sweep_caps_unread(user):
    ids = _seed(user.id, 14)
    retention.sweep(user.id, retention.RetentionPolicy(unread_cap=10))
    remaining = {n.id for n in service.get_notifications(user.id)}
    assert remaining == set(ids[4:])


def test_load_sweeps_above_threshold(user):
    _seed(user.id, 16)
    loaded = retention.load_notifications(user.id, retention.RetentionPolicy())
    assert len(loaded) == 10


def test_load_below_threshold_keeps_everything(user):
    _seed(user.id, 12)
    assert len(retention.load_notifications(user.id, retention.RetentionPolicy())) == 12


def test_mark_all_read_then_sweep(user):
    _seed(user.id, 9)
    deleted = retention.mark_all_read_and_sweep(user.id)
    remaining = service.get_notifications(user.id)
    assert deleted == 4
    assert len(remaining) == 5
    assert all(n.is_read for n in remaining)


def test_policy_from_config():
    policy = retention.RetentionPolicy.from_config({"unread_cap": 3, "enable": True})
    assert policy.unread_cap == 3
    assert policy.keep_recent_read == 5
    assert policy.sweep_threshold == 15


def test_delete_notification(user):
    notification_id, _ = service.create_if_absent(user.id, "other", "hi", "x1", None, NOW)
    service.delete_notification(user.id, notification_id)
    assert service.count_notifications(user.id) == 0
    with pytest.raises(RecordNotFoundError):
        service.delete_notification(user.id, notification_id)
