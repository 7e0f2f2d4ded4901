import logging
import os
import sys
import time
from pathlib import Path
from queue import Empty
from typing import Any, Dict, Optional

from .clock import Clock, system_clock
from .config import Config
from .db import dispose_db, init_db
from .plugin_manager import PluginManager
from .task import BaseTask
from .task_manager import TaskManager


class PlannerApp:
    """Headless host: config, logging, database, background tasks and the optional API."""

    def __init__(self, config_path: Optional[str] = None, clock: Optional[Clock] = None, watch_config: bool = True):
        self.logger = logging.getLogger(self.__class__.__name__)
        self.clock: Clock = clock or system_clock

        self.config = Config(config_path=config_path, watch=watch_config)
        self.config.register_change_callback(self.handle_config_change)

        self._setup_logging()

        # Database before managers so tables exist
        init_db(self.config.data)

        self.plugin_manager = PluginManager()
        self.task_manager = TaskManager()
        self.tasks: Dict[str, BaseTask] = {}
        self.last_results: Dict[str, Any] = {}
        self.initialize_tasks()

    def _setup_logging(self) -> None:
        """Configure logging to write to both file and stdout"""
        root_logger = logging.getLogger()
        for handler in list(root_logger.handlers):
            root_logger.removeHandler(handler)
        logging_cfg = self.config.data.get("logging") or {}
        root_logger.setLevel(getattr(logging, str(logging_cfg.get("level", "INFO")).upper(), logging.INFO))

        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s'
        )

        log_file = logging_cfg.get("file")
        if log_file:
            log_path = Path(os.path.expanduser(log_file))
            log_path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(log_path)
            file_handler.setFormatter(formatter)
            root_logger.addHandler(file_handler)

        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(formatter)
        root_logger.addHandler(console_handler)

        logging.info("Academic planner starting...")

    def _task_kwargs(self) -> Dict[str, Any]:
        return {"clock": self.clock, "mail": self.config.data.get("mail") or {}}

    def initialize_tasks(self) -> None:
        """Create every enabled task, persist its schedule row and start its timer."""
        components = self.config.data.get("components") or {}
        for name in self.plugin_manager.tasks:
            self._start_task(name, components.get(name))

    def _start_task(self, name: str, component_config: Optional[Dict[str, Any]]) -> None:
        try:
            task = self.plugin_manager.create_task(name, component_config, **self._task_kwargs())
            if task is None:
                return
            task.ensure_scheduled()
            self.tasks[name] = task
            self.task_manager.register_task(name, task.run)
            self.task_manager.schedule_registered_task(name, component_config, self.config.data)
            self.logger.info(f"Scheduled task: {name}")
        except Exception as e:
            self.logger.exception(f"Error starting task {name}: {e}")

    def handle_config_change(self, new_config: Dict[str, Any]) -> None:
        """Restart tasks whose component config changed."""
        self.logger.info("Handling config change")
        try:
            new_components = new_config.get("components") or {}
            for name in self.plugin_manager.tasks:
                component_config = new_components.get(name)
                current = self.tasks.get(name)
                if current is not None and getattr(current, "config", None) == component_config:
                    continue
                self.task_manager.cancel_task(name)
                self.tasks.pop(name, None)
                self._start_task(name, component_config)
        except Exception as e:
            self.logger.error(f"Error handling config change: {e}", exc_info=True)

    def drain_results(self) -> None:
        """Collect finished task results from the queue."""
        while True:
            try:
                task_name, result = self.task_manager.result_queue.get_nowait()
            except Empty:
                break
            logging.debug(f"Task result for {task_name}: {result}")
            self.last_results[task_name] = result

    def run(self, poll_seconds: float = 1.0) -> None:
        try:
            from planner.api import run_api_server
            run_api_server(self)
        except Exception as e:
            self.logger.warning(f"API server not started: {e}")
        try:
            while True:
                self.drain_results()
                time.sleep(poll_seconds)
        except KeyboardInterrupt:
            self.logger.info("Interrupted; shutting down")
        finally:
            self.shutdown()

    def shutdown(self) -> None:
        self.task_manager.stop()
        self.config.cleanup()
        dispose_db()
