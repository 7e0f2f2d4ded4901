"""
Recurrence expansion: turn a RecurringTemplate into concrete Assignment rows.

Occurrence k is the first day on or after start_date + k * step whose weekday is the
template's day_of_week. Expansion runs through max(end_date, today), never creates an
occurrence already in the past, and skips days that already hold an assignment of the
same template, so running it again creates nothing new.
"""
import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Dict, Iterable, Iterator, List, Optional

from dateutil.relativedelta import relativedelta

from planner.core.clock import at_time_of_day
from planner.plugins.coursework import service
from planner.plugins.coursework.models import WEEKDAY_NAMES, Assignment, RecurringTemplate

logger = logging.getLogger(__name__)

_STEPS = {
    "weekly": relativedelta(days=7),
    "biweekly": relativedelta(days=14),
    "monthly": relativedelta(months=1),
}


class UnsupportedRecurrenceError(ValueError):
    """Raised for patterns the expander cannot step through ("custom" or unknown)."""


@dataclass
class PlannedOccurrence:
    index: int
    name: str
    due_at: datetime


def align_to_weekday(day: date, weekday: int) -> date:
    """First date on or after day falling on weekday (Monday=0)."""
    return day + timedelta(days=(weekday - day.weekday()) % 7)


def occurrence_index(candidate: date, start: date) -> int:
    """1-based index counted in weeks from start_date, whatever the step unit."""
    return (candidate - start).days // 7 + 1


def render_name(name_pattern: str, index: int) -> str:
    return name_pattern.replace("{n}", str(index))


def candidate_dates(template: RecurringTemplate, window_end: date) -> Iterator[date]:
    step = _STEPS.get(template.pattern)
    if step is None:
        raise UnsupportedRecurrenceError(f"Recurrence pattern not supported: {template.pattern!r}")
    if template.day_of_week not in WEEKDAY_NAMES:
        raise ValueError(f"Unknown weekday: {template.day_of_week!r}")
    weekday = WEEKDAY_NAMES.index(template.day_of_week)

    k = 0
    while True:
        candidate = align_to_weekday(template.start_date + step * k, weekday)
        if candidate > window_end:
            return
        yield candidate
        k += 1


def plan_occurrences(
    template: RecurringTemplate,
    existing: Iterable[Assignment],
    now: datetime,
) -> List[PlannedOccurrence]:
    """Occurrences that still need an assignment row. Pure: reads nothing, writes nothing."""
    window_end = max(template.end_date, now.date())
    taken_days = {a.due_at.date() for a in existing}

    planned: List[PlannedOccurrence] = []
    for day in candidate_dates(template, window_end):
        if day in taken_days:
            continue
        due_at = at_time_of_day(day, template.time)
        if due_at < now:
            continue
        index = occurrence_index(day, template.start_date)
        planned.append(PlannedOccurrence(index=index, name=render_name(template.name_pattern, index), due_at=due_at))
        taken_days.add(day)
    return planned


def expand_template(
    template: RecurringTemplate,
    now: datetime,
    existing: Optional[Iterable[Assignment]] = None,
) -> List[Assignment]:
    """Persist the missing occurrences of one template. Store errors propagate; earlier writes stay."""
    if existing is None:
        existing = service.get_template_assignments(template.id)
    created = []
    for occurrence in plan_occurrences(template, existing, now):
        created.append(
            service.create_assignment(
                course_id=template.course_id,
                name=occurrence.name,
                due_at=occurrence.due_at,
                type=template.type,
                is_recurring=True,
                recurring_template_id=template.id,
                now=now,
            )
        )
    if created:
        logger.info(f"Template {template.id}: generated {len(created)} assignment(s)")
    return created


def expand_all_templates(user_id: str, now: datetime) -> Dict[str, int]:
    """Expand every template of the user's active semester. One failing template does not stop the rest."""
    semester = service.get_active_semester(user_id)
    if semester is None:
        return {}
    results: Dict[str, int] = {}
    for template in service.get_templates(semester.id):
        try:
            results[template.id] = len(expand_template(template, now))
        except UnsupportedRecurrenceError as e:
            logger.warning(f"Skipping template {template.id}: {e}")
        except Exception as e:
            logger.exception(f"Expanding template {template.id} failed: {e}")
    return results
