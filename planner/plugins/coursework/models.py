"""
SQLAlchemy models for the coursework record store: users, semesters, courses,
assignments and recurring assignment templates.
"""
import uuid
from datetime import datetime

from sqlalchemy import Boolean, Column, Date, DateTime, Float, ForeignKey, JSON, String, Text

from planner.core.db import Base

ASSIGNMENT_TYPES = (
    "Essay",
    "Lab",
    "Quiz",
    "Exam",
    "Discussion Post",
    "Project",
    "Presentation",
    "Reading",
    "Other",
)

RECURRENCE_PATTERNS = ("weekly", "biweekly", "monthly", "custom")

# Index matches datetime.weekday()
WEEKDAY_NAMES = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")


def _new_id() -> str:
    return uuid.uuid4().hex


class User(Base):
    """Planner user. preferences holds the EmailPreferences JSON."""
    __tablename__ = "users"

    id = Column(String(64), primary_key=True, default=_new_id)
    email = Column(String(255), nullable=False, default="")
    name = Column(String(255), nullable=False, default="User")
    preferences = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=False), nullable=False, default=datetime.now)


class Semester(Base):
    __tablename__ = "semesters"

    id = Column(String(64), primary_key=True, default=_new_id)
    user_id = Column(String(64), ForeignKey("users.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    start_date = Column(Date, nullable=True)
    end_date = Column(Date, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=False), nullable=False, default=datetime.now)


class Course(Base):
    __tablename__ = "courses"

    id = Column(String(64), primary_key=True, default=_new_id)
    semester_id = Column(String(64), ForeignKey("semesters.id"), nullable=False, index=True)
    course_code = Column(String(64), nullable=False, default="")  # "CSCI 3172"
    course_name = Column(String(255), nullable=False)
    created_at = Column(DateTime(timezone=False), nullable=False, default=datetime.now)


class Assignment(Base):
    """One concrete due-dated piece of work. completed_at is null while incomplete."""
    __tablename__ = "assignments"

    id = Column(String(64), primary_key=True, default=_new_id)
    course_id = Column(String(64), ForeignKey("courses.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    due_at = Column(DateTime(timezone=False), nullable=False, index=True)
    type = Column(String(64), nullable=False, default="Other")
    grade_weight = Column(Float, nullable=True)
    completed_at = Column(DateTime(timezone=False), nullable=True)
    is_recurring = Column(Boolean, nullable=False, default=False)
    # Not a foreign key: deleting a template keeps the assignments it generated.
    recurring_template_id = Column(String(64), nullable=True, index=True)
    created_at = Column(DateTime(timezone=False), nullable=False, default=datetime.now)


class RecurringTemplate(Base):
    """Recipe for generating assignments on a weekday at a time of day between two dates."""
    __tablename__ = "recurring_templates"

    id = Column(String(64), primary_key=True, default=_new_id)
    course_id = Column(String(64), ForeignKey("courses.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False, default="")
    name_pattern = Column(Text, nullable=False)  # may contain "{n}"
    pattern = Column(String(16), nullable=False, default="weekly")
    day_of_week = Column(String(16), nullable=False)  # "Monday"
    time = Column(String(5), nullable=False, default="23:59")  # "HH:MM"
    type = Column(String(64), nullable=False, default="Other")
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    created_at = Column(DateTime(timezone=False), nullable=False, default=datetime.now)
