"""
Single place for scheduling: in-memory timers and DB-backed registered tasks.
"""
import logging
import threading
from datetime import datetime, timezone
from queue import Queue
from threading import Timer
from typing import Any, Callable, Dict, List, Optional

from planner.core.task import get_next_run_from_db


class TaskManager:
    def __init__(self):
        self.tasks: Dict[str, Timer] = {}
        self.result_queue: Queue = Queue()
        self.logger = logging.getLogger("TaskManager")
        self._registered_tasks: Dict[str, Callable[..., None]] = {}
        self._registered_config: Dict[str, tuple] = {}  # component_name -> (config, config_data)
        self._lock = threading.Lock()
        self._stopped = False

    def schedule_task(self, name: str, callback: Callable, delay: float, one_time: bool = True) -> None:
        """Schedule a callback to run after delay seconds; replaces any pending timer of the same name."""
        with self._lock:
            if self._stopped:
                self.logger.debug(f"Not scheduling {name}: task manager stopped")
                return
            existing = self.tasks.get(name)
            if existing is not None:
                self.logger.debug(f"Cancelling existing timer {name}")
                existing.cancel()

            scheduled_time = datetime.now().timestamp() + delay
            timer = Timer(delay, self._run_task, args=(name, callback, delay, one_time))
            timer.daemon = True
            timer.scheduled_time = scheduled_time
            self.tasks[name] = timer
            timer.start()
        self.logger.info(f"Timer started for {name}, scheduled for {datetime.fromtimestamp(scheduled_time)}")

    def _run_task(self, name: str, callback: Callable, delay: float, one_time: bool) -> None:
        """Run the callback and reschedule if it repeats."""
        try:
            callback()
            timer = self.tasks.get(name)
            if timer is not None:
                timer.last_run = datetime.now().timestamp()
        except Exception as e:
            self.logger.exception(f"Error running task {name}: {e}")
        if not one_time:
            self.schedule_task(name, callback, delay, one_time)

    def register_task(self, component_name: str, runnable: Callable[..., None]) -> None:
        """Register a runnable for a job. runnable(config, result_queue, **kwargs) does the work and updates next_run in DB."""
        self._registered_tasks[component_name] = runnable
        self.logger.debug(f"Registered task: {component_name}")

    def schedule_registered_task(
        self,
        component_name: str,
        config: Dict[str, Any],
        config_data: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        Schedule a registered task at next_run from DB (or immediately if past due or unknown).
        After running, the runnable updates next_run in DB and the task is rescheduled.
        """
        if component_name not in self._registered_tasks:
            self.logger.warning(f"No task registered: {component_name}")
            return
        self._registered_config[component_name] = (config, config_data)
        next_run = get_next_run_from_db(component_name)
        now = datetime.now(timezone.utc).replace(tzinfo=None)
        if next_run is None:
            delay = 0.0
        else:
            delay = max(0.0, (next_run - now).total_seconds())
        self.schedule_task(
            component_name,
            lambda: self._run_registered_and_reschedule(component_name),
            delay,
            one_time=True,
        )

    def _run_registered_and_reschedule(self, component_name: str) -> None:
        """Run the registered runnable then reschedule for next_run from DB."""
        config, config_data = self._registered_config.get(component_name, (None, None))
        if config is None:
            return
        self._invoke(component_name, config, config_data)
        self.schedule_registered_task(component_name, config, config_data)

    def _invoke(self, component_name: str, config: Dict[str, Any], config_data: Optional[Dict[str, Any]]) -> None:
        runnable = self._registered_tasks.get(component_name)
        if not runnable:
            self.logger.warning(f"No task registered: {component_name}")
            return
        try:
            if config_data is not None:
                runnable(config, self.result_queue, config_data=config_data)
            else:
                runnable(config, self.result_queue)
        except Exception as e:
            self.logger.exception(f"Registered task {component_name} failed: {e}")

    def cancel_task(self, name: str) -> None:
        """Cancel a pending timer and forget the registered runnable."""
        with self._lock:
            timer = self.tasks.pop(name, None)
            if timer is not None:
                timer.cancel()
        self._registered_tasks.pop(name, None)
        self._registered_config.pop(name, None)

    def get_active_timers(self) -> List[Dict[str, Any]]:
        """Return active timer names and their next run time (for API)."""
        result = []
        for name, timer in list(self.tasks.items()):
            if getattr(timer, "scheduled_time", None) is not None and timer.is_alive():
                next_run = datetime.fromtimestamp(timer.scheduled_time, tz=timezone.utc)
                result.append({"name": name, "next_run_at": next_run})
        return result

    def run_task_now(
        self,
        component_name: str,
        config: Dict[str, Any],
        config_data: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Run a registered task once immediately (e.g. manual refresh). Puts result on result_queue."""
        self._invoke(component_name, config, config_data)

    def stop(self) -> None:
        """Cancel every pending timer. Work already running finishes on its own thread."""
        with self._lock:
            self._stopped = True
            for timer in self.tasks.values():
                timer.cancel()
            self.tasks.clear()
        self.logger.info("Task manager stopped")
