from datetime import date, datetime

import pytest

from planner.plugins.coursework import service
from planner.plugins.coursework.recurrence import (
    UnsupportedRecurrenceError,
    align_to_weekday,
    expand_all_templates,
    expand_template,
    occurrence_index,
    plan_occurrences,
    render_name,
)


def _template(course, **overrides):
    fields = dict(
        name_pattern="Lab Report {n}",
        day_of_week="Monday",
        time="09:00",
        pattern="weekly",
        start_date=date(2024, 1, 1),
        end_date=date(2024, 1, 31),
        type="Lab",
        now=datetime(2023, 12, 1),
    )
    fields.update(overrides)
    return service.create_template(course.id, **fields)


def test_january_mondays(course):
    template = _template(course)
    created = expand_template(template, datetime(2023, 12, 31, 12, 0))
    assert [a.due_at for a in created] == [
        datetime(2024, 1, 1, 9, 0),
        datetime(2024, 1, 8, 9, 0),
        datetime(2024, 1, 15, 9, 0),
        datetime(2024, 1, 22, 9, 0),
        datetime(2024, 1, 29, 9, 0),
    ]
    assert [a.name for a in created] == [f"Lab Report {n}" for n in range(1, 6)]
    assert all(a.is_recurring and a.recurring_template_id == template.id for a in created)
    assert all(a.type == "Lab" for a in created)


def test_expansion_is_idempotent(course):
    template = _template(course)
    now = datetime(2023, 12, 31, 12, 0)
    assert len(expand_template(template, now)) == 5
    assert expand_template(template, now) == []
    assert len(service.get_template_assignments(template.id)) == 5


def test_no_past_occurrences(course):
    template = _template(course)
    now = datetime(2024, 1, 15, 10, 0)
    created = expand_template(template, now)
    assert [a.due_at.date() for a in created] == [date(2024, 1, 22), date(2024, 1, 29)]
    assert all(a.due_at >= now for a in created)


def test_window_extends_to_today(course):
    template = _template(course, end_date=date(2024, 1, 10))
    # end date has passed; the window still reaches today
    planned = plan_occurrences(template, [], datetime(2024, 1, 22, 8, 0))
    assert [p.due_at for p in planned] == [datetime(2024, 1, 22, 9, 0)]
    assert planned[0].name == "Lab Report 4"


def test_unaligned_start_moves_to_weekday(course):
    template = _template(course, start_date=date(2024, 1, 3), day_of_week="Friday")
    planned = plan_occurrences(template, [], datetime(2023, 12, 1))
    assert planned[0].due_at == datetime(2024, 1, 5, 9, 0)
    assert all(p.due_at.weekday() == 4 for p in planned)


def test_biweekly_index_uses_seven_day_divisor(course):
    template = _template(course, pattern="biweekly")
    planned = plan_occurrences(template, [], datetime(2023, 12, 1))
    assert [p.due_at.date() for p in planned] == [date(2024, 1, 1), date(2024, 1, 15), date(2024, 1, 29)]
    assert [p.name for p in planned] == ["Lab Report 1", "Lab Report 3", "Lab Report 5"]


def test_monthly_steps_calendar_months_from_start(course):
    # Jan 31 + 1 month clamps to Feb 29, which is a Thursday
    template = _template(
        course,
        pattern="monthly",
        name_pattern="Quiz {n}",
        day_of_week="Wednesday",
        start_date=date(2024, 1, 31),
        end_date=date(2024, 6, 30),
    )
    planned = plan_occurrences(template, [], datetime(2023, 12, 1))
    assert [p.due_at.date() for p in planned] == [
        date(2024, 1, 31),
        date(2024, 3, 6),
        date(2024, 4, 3),
        date(2024, 5, 1),
        date(2024, 6, 5),
    ]
    assert all(p.due_at.weekday() == 2 and p.due_at.hour == 9 for p in planned)
    assert [p.name for p in planned] == ["Quiz 1", "Quiz 6", "Quiz 10", "Quiz 14", "Quiz 19"]


def test_existing_same_day_assignment_is_skipped(course):
    template = _template(course)
    service.create_assignment(
        course.id, "Lab Report 2 (moved)", datetime(2024, 1, 8, 17, 0),
        is_recurring=True, recurring_template_id=template.id, now=datetime(2023, 12, 1),
    )
    created = expand_template(template, datetime(2023, 12, 31))
    assert date(2024, 1, 8) not in [a.due_at.date() for a in created]
    assert len(created) == 4


def test_custom_pattern_raises(course):
    template = _template(course, pattern="custom")
    with pytest.raises(UnsupportedRecurrenceError):
        expand_template(template, datetime(2023, 12, 31))


def test_expand_all_skips_failing_template(user, course):
    _template(course, pattern="custom", name_pattern="Custom {n}")
    good = _template(course)
    results = expand_all_templates(user.id, datetime(2023, 12, 31))
    assert results == {good.id: 5}


def test_helpers():
    assert align_to_weekday(date(2024, 1, 3), 0) == date(2024, 1, 8)
    assert align_to_weekday(date(2024, 1, 1), 0) == date(2024, 1, 1)
    assert occurrence_index(date(2024, 1, 15), date(2024, 1, 1)) == 3
    assert render_name("Quiz {n}", 4) == "Quiz 4"
    assert render_name("Reading", 4) == "Reading"
