"""
Base task type and abstract BaseTask with next_run persistence in DB.
"""
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from queue import Queue
from typing import Any, Dict, Optional

from dateutil.relativedelta import relativedelta
from sqlalchemy import select

from planner.core.clock import parse_time_of_day
from planner.core.db import session_scope
from planner.core.models import TaskSchedule

logger = logging.getLogger(__name__)


class TaskType:
    """Schedule kind for tasks."""
    DAILY = "daily"
    HOURLY = "hourly"
    INTERVAL_SECONDS = "interval_seconds"
    MONTHLY = "monthly"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def compute_next_run(
    schedule_type: str,
    schedule_config: Optional[Dict[str, Any]],
    last_run: Optional[datetime],
) -> datetime:
    """Compute next run datetime from schedule_type, schedule_config, and last_run."""
    if last_run is None:
        last_run = _utc_now()
    schedule_config = schedule_config or {}

    if schedule_type == TaskType.DAILY:
        hour, minute = parse_time_of_day(schedule_config.get("time", "00:00"))
        next_run = last_run.replace(hour=hour, minute=minute, second=0, microsecond=0)
        if next_run <= last_run:
            next_run += timedelta(days=1)
        return next_run

    if schedule_type == TaskType.HOURLY:
        return last_run + timedelta(hours=1)

    if schedule_type == TaskType.INTERVAL_SECONDS:
        sec = int(schedule_config.get("interval_seconds", 86400))
        return last_run + timedelta(seconds=max(1, sec))

    if schedule_type == TaskType.MONTHLY:
        day = int(schedule_config.get("day", 1))
        hour, minute = parse_time_of_day(schedule_config.get("time", "00:00"))
        next_run = last_run.replace(day=min(day, 28), hour=hour, minute=minute, second=0, microsecond=0)
        if next_run <= last_run:
            next_run += relativedelta(months=1)
        return next_run

    return last_run + timedelta(days=1)


def get_next_run_from_db(component_name: str) -> Optional[datetime]:
    """Read next_run_at for a job. None if no row or next_run_at is null (job runs immediately)."""
    try:
        with session_scope() as session:
            row = session.execute(
                select(TaskSchedule).where(TaskSchedule.component_name == component_name)
            ).scalars().first()
            if row and row.next_run_at is not None:
                return row.next_run_at
    except Exception as e:
        logger.debug(f"get_next_run_from_db {component_name}: {e}")
    return None


def upsert_task_schedule(
    component_name: str,
    schedule_type: str,
    schedule_config: Optional[Dict[str, Any]],
    next_run_at: Optional[datetime] = None,
) -> None:
    """Create or update the TaskSchedule row. A new row keeps next_run_at null so the job runs at once."""
    with session_scope() as session:
        row = session.execute(
            select(TaskSchedule).where(TaskSchedule.component_name == component_name)
        ).scalars().first()
        now = _utc_now()
        if row:
            row.schedule_type = schedule_type
            row.schedule_config = schedule_config
            if next_run_at is not None:
                row.next_run_at = next_run_at
            row.updated_at = now
        else:
            session.add(TaskSchedule(
                component_name=component_name,
                schedule_type=schedule_type,
                schedule_config=schedule_config,
                next_run_at=next_run_at,
                created_at=now,
                updated_at=now,
            ))


def update_after_run(component_name: str, error: Optional[str] = None) -> None:
    """Record a finished run: last_run_at, last_error and the next_run_at it implies."""
    with session_scope() as session:
        row = session.execute(
            select(TaskSchedule).where(TaskSchedule.component_name == component_name)
        ).scalars().first()
        if not row:
            return
        now = _utc_now()
        row.last_run_at = now
        row.last_error = error
        row.next_run_at = compute_next_run(row.schedule_type, row.schedule_config, now)
        row.updated_at = now


class BaseTask(ABC):
    """
    Abstract base for engine background jobs. Subclasses implement execute();
    run() wraps it with error capture, next_run persistence and result reporting.
    """

    def __init__(self, component_name: str, schedule_type: str, schedule_config: Optional[Dict[str, Any]] = None):
        self.component_name = component_name
        self.schedule_type = schedule_type
        self.schedule_config = schedule_config or {}
        self.logger = logging.getLogger(self.__class__.__name__)

    @staticmethod
    def interval_schedule(config: Dict[str, Any], default_seconds: int) -> tuple:
        """Build an INTERVAL_SECONDS schedule from a component's update_interval (seconds or ms)."""
        update_interval = int(config.get("update_interval", default_seconds))
        sec = update_interval if update_interval < 100000 else update_interval // 1000
        return TaskType.INTERVAL_SECONDS, {"interval_seconds": sec}

    def get_next_run(self, last_run: Optional[datetime] = None) -> datetime:
        """Compute next run time from schedule_type and schedule_config."""
        return compute_next_run(self.schedule_type, self.schedule_config, last_run)

    def ensure_scheduled(self, next_run_at: Optional[datetime] = None) -> None:
        """Ensure the TaskSchedule row exists so the next run survives restarts."""
        upsert_task_schedule(
            self.component_name,
            self.schedule_type,
            self.schedule_config,
            next_run_at=next_run_at,
        )

    def run(
        self,
        config: Dict[str, Any],
        result_queue: Queue,
        config_data: Optional[Dict[str, Any]] = None,
        **kwargs: Any,
    ) -> None:
        """Execute the job once. Failures are logged and stored as last_error; they never propagate."""
        result = None
        error = None
        try:
            result = self.execute(config, config_data or {})
        except Exception as e:
            self.logger.exception(f"{self.component_name} failed: {e}")
            error = str(e) or e.__class__.__name__
        try:
            update_after_run(self.component_name, error=error)
        except Exception as e:
            self.logger.error(f"Could not persist schedule for {self.component_name}: {e}")
        result_queue.put((self.component_name, result))

    @abstractmethod
    def execute(self, config: Dict[str, Any], config_data: Dict[str, Any]) -> Any:
        """Do the work; the return value is put on the result queue."""
        pass
