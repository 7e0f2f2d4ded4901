"""
Service layer: the coursework record store. Users own semesters, semesters own
courses, courses own assignments and recurring templates.
"""
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import select, update

from planner.core.clock import parse_time_of_day
from planner.core.db import session_scope
from planner.core.errors import RecordNotFoundError
from planner.plugins.coursework.models import (
    ASSIGNMENT_TYPES,
    RECURRENCE_PATTERNS,
    WEEKDAY_NAMES,
    Assignment,
    Course,
    RecurringTemplate,
    Semester,
    User,
)
from planner.plugins.coursework.preferences import EmailPreferences, load_preferences


def _get_or_raise(session, model, record_id: str):
    row = session.get(model, record_id)
    if row is None:
        raise RecordNotFoundError(model.__name__, record_id)
    return row


# -- users ------------------------------------------------------------------

def create_user(
    email: str,
    name: str = "User",
    preferences: Optional[Dict[str, Any]] = None,
    user_id: Optional[str] = None,
) -> User:
    prefs = load_preferences(preferences).model_dump()
    with session_scope() as session:
        user = User(email=email, name=name, preferences=prefs)
        if user_id:
            user.id = user_id
        session.add(user)
        session.flush()
        return user


def get_user(user_id: str) -> User:
    with session_scope() as session:
        return _get_or_raise(session, User, user_id)


def get_users() -> List[User]:
    with session_scope() as session:
        return list(session.execute(select(User).order_by(User.created_at)).scalars().all())


def get_email_preferences(user: User) -> EmailPreferences:
    return load_preferences(user.preferences)


def update_preferences(user_id: str, changes: Dict[str, Any]) -> EmailPreferences:
    """Merge snake_case changes into the stored preferences after validation."""
    with session_scope() as session:
        user = _get_or_raise(session, User, user_id)
        current = load_preferences(user.preferences).model_dump()
        prefs = EmailPreferences.model_validate({**current, **changes})
        user.preferences = prefs.model_dump()
        return prefs


# -- semesters and courses -------------------------------------------------

def create_semester(
    user_id: str,
    name: str,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    now: Optional[datetime] = None,
) -> Semester:
    """Create the user's new active semester; every other semester is deactivated."""
    with session_scope() as session:
        _get_or_raise(session, User, user_id)
        session.execute(
            update(Semester).where(Semester.user_id == user_id, Semester.is_active.is_(True)).values(is_active=False)
        )
        semester = Semester(
            user_id=user_id,
            name=name,
            start_date=start_date,
            end_date=end_date,
            is_active=True,
            created_at=now or datetime.now(),
        )
        session.add(semester)
        session.flush()
        return semester


def get_active_semester(user_id: str) -> Optional[Semester]:
    """Most recently created active semester, or None."""
    with session_scope() as session:
        return session.execute(
            select(Semester)
            .where(Semester.user_id == user_id, Semester.is_active.is_(True))
            .order_by(Semester.created_at.desc())
            .limit(1)
        ).scalars().first()


def create_course(
    semester_id: str,
    course_name: str,
    course_code: str = "",
    now: Optional[datetime] = None,
) -> Course:
    with session_scope() as session:
        _get_or_raise(session, Semester, semester_id)
        course = Course(
            semester_id=semester_id,
            course_name=course_name,
            course_code=course_code,
            created_at=now or datetime.now(),
        )
        session.add(course)
        session.flush()
        return course


def get_course(course_id: str) -> Course:
    with session_scope() as session:
        return _get_or_raise(session, Course, course_id)


def get_courses(semester_id: str) -> List[Course]:
    with session_scope() as session:
        return list(
            session.execute(
                select(Course).where(Course.semester_id == semester_id).order_by(Course.created_at)
            ).scalars().all()
        )


# -- assignments ------------------------------------------------------------

def create_assignment(
    course_id: str,
    name: str,
    due_at: datetime,
    type: str = "Other",
    grade_weight: Optional[float] = None,
    is_recurring: bool = False,
    recurring_template_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Assignment:
    if type not in ASSIGNMENT_TYPES:
        raise ValueError(f"Unknown assignment type: {type!r}")
    with session_scope() as session:
        _get_or_raise(session, Course, course_id)
        assignment = Assignment(
            course_id=course_id,
            name=name,
            due_at=due_at,
            type=type,
            grade_weight=grade_weight,
            is_recurring=is_recurring,
            recurring_template_id=recurring_template_id,
            created_at=now or datetime.now(),
        )
        session.add(assignment)
        session.flush()
        return assignment


def get_assignment(assignment_id: str) -> Assignment:
    with session_scope() as session:
        return _get_or_raise(session, Assignment, assignment_id)


def get_all_assignments(semester_id: str, include_completed: bool = True) -> List[Assignment]:
    """Every assignment of every course in the semester, soonest due first."""
    stmt = (
        select(Assignment)
        .join(Course, Assignment.course_id == Course.id)
        .where(Course.semester_id == semester_id)
        .order_by(Assignment.due_at)
    )
    if not include_completed:
        stmt = stmt.where(Assignment.completed_at.is_(None))
    with session_scope() as session:
        return list(session.execute(stmt).scalars().all())


def get_template_assignments(template_id: str) -> List[Assignment]:
    with session_scope() as session:
        return list(
            session.execute(
                select(Assignment)
                .where(Assignment.recurring_template_id == template_id)
                .order_by(Assignment.due_at)
            ).scalars().all()
        )


def update_assignment(assignment_id: str, updates: Dict[str, Any]) -> Assignment:
    allowed = {"name", "due_at", "type", "grade_weight"}
    unknown = set(updates) - allowed
    if unknown:
        raise ValueError(f"Cannot update fields: {sorted(unknown)}")
    if "type" in updates and updates["type"] not in ASSIGNMENT_TYPES:
        raise ValueError(f"Unknown assignment type: {updates['type']!r}")
    with session_scope() as session:
        assignment = _get_or_raise(session, Assignment, assignment_id)
        for key, value in updates.items():
            setattr(assignment, key, value)
        return assignment


def mark_complete(assignment_id: str, completed: bool, now: Optional[datetime] = None) -> Assignment:
    """Toggle completion. completed_at never precedes created_at."""
    with session_scope() as session:
        assignment = _get_or_raise(session, Assignment, assignment_id)
        if completed:
            assignment.completed_at = max(now or datetime.now(), assignment.created_at)
        else:
            assignment.completed_at = None
        return assignment


def delete_assignment(assignment_id: str) -> None:
    with session_scope() as session:
        session.delete(_get_or_raise(session, Assignment, assignment_id))


# -- recurring templates -----------------------------------------------------

def _validate_template_fields(fields: Dict[str, Any]) -> None:
    if "pattern" in fields and fields["pattern"] not in RECURRENCE_PATTERNS:
        raise ValueError(f"Unknown recurrence pattern: {fields['pattern']!r}")
    if "day_of_week" in fields and fields["day_of_week"] not in WEEKDAY_NAMES:
        raise ValueError(f"Unknown weekday: {fields['day_of_week']!r}")
    if "time" in fields:
        parse_time_of_day(fields["time"])
    if "type" in fields and fields["type"] not in ASSIGNMENT_TYPES:
        raise ValueError(f"Unknown assignment type: {fields['type']!r}")
    start, end = fields.get("start_date"), fields.get("end_date")
    if start is not None and end is not None and end < start:
        raise ValueError("end_date precedes start_date")


def create_template(
    course_id: str,
    name_pattern: str,
    day_of_week: str,
    start_date: date,
    end_date: date,
    time: str = "23:59",
    pattern: str = "weekly",
    type: str = "Other",
    name: str = "",
    now: Optional[datetime] = None,
) -> RecurringTemplate:
    fields = dict(
        name_pattern=name_pattern,
        day_of_week=day_of_week,
        start_date=start_date,
        end_date=end_date,
        time=time,
        pattern=pattern,
        type=type,
        name=name or name_pattern,
    )
    _validate_template_fields(fields)
    with session_scope() as session:
        _get_or_raise(session, Course, course_id)
        template = RecurringTemplate(course_id=course_id, created_at=now or datetime.now(), **fields)
        session.add(template)
        session.flush()
        return template


def get_template(template_id: str) -> RecurringTemplate:
    with session_scope() as session:
        return _get_or_raise(session, RecurringTemplate, template_id)


def get_templates(semester_id: str) -> List[RecurringTemplate]:
    with session_scope() as session:
        return list(
            session.execute(
                select(RecurringTemplate)
                .join(Course, RecurringTemplate.course_id == Course.id)
                .where(Course.semester_id == semester_id)
                .order_by(RecurringTemplate.created_at)
            ).scalars().all()
        )


def update_template(template_id: str, updates: Dict[str, Any]) -> RecurringTemplate:
    allowed = {"name", "name_pattern", "day_of_week", "time", "pattern", "type", "start_date", "end_date"}
    unknown = set(updates) - allowed
    if unknown:
        raise ValueError(f"Cannot update fields: {sorted(unknown)}")
    with session_scope() as session:
        template = _get_or_raise(session, RecurringTemplate, template_id)
        merged = {
            "start_date": template.start_date,
            "end_date": template.end_date,
            **updates,
        }
        _validate_template_fields(merged)
        for key, value in updates.items():
            setattr(template, key, value)
        return template


def delete_template(template_id: str) -> None:
    """Delete the template only; assignments it generated are kept."""
    with session_scope() as session:
        session.delete(_get_or_raise(session, RecurringTemplate, template_id))
