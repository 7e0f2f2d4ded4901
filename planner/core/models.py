"""
Persisted run schedule of the planner's background jobs.
"""
from datetime import datetime, timezone
from typing import Any, Dict, List

from sqlalchemy import JSON, Column, DateTime, String, Text, select

from planner.core.db import Base, session_scope


def _naive_utc() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class TaskSchedule(Base):
    """One row per job so the next run survives a restart. Times are naive UTC."""
    __tablename__ = "task_schedules"

    component_name = Column(String(255), primary_key=True)
    schedule_type = Column(String(64), nullable=False)
    schedule_config = Column(JSON, nullable=True)
    next_run_at = Column(DateTime(timezone=False), nullable=True)  # null: due now
    last_run_at = Column(DateTime(timezone=False), nullable=True)
    last_error = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=False), default=_naive_utc, nullable=False)
    updated_at = Column(DateTime(timezone=False), default=_naive_utc, onupdate=_naive_utc, nullable=False)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "component_name": self.component_name,
            "schedule_type": self.schedule_type,
            "schedule_config": self.schedule_config,
            "next_run_at": self.next_run_at,
            "last_run_at": self.last_run_at,
            "last_error": self.last_error,
        }


def list_task_schedules() -> List[TaskSchedule]:
    """Every job's schedule row, ordered by job name."""
    with session_scope() as session:
        return list(session.execute(select(TaskSchedule).order_by(TaskSchedule.component_name)).scalars().all())
