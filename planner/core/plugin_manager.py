import importlib
import pkgutil
from typing import Dict, Type, Any, Optional
import logging

from .task import BaseTask


class PluginManager:
    """Discovers feature packages under planner.plugins and collects the tasks they provide."""

    def __init__(self, plugin_package: str = "planner.plugins"):
        self.tasks: Dict[str, Type[BaseTask]] = {}
        self.plugin_package = plugin_package
        self.logger = logging.getLogger(__name__)
        self.discover_plugins()

    def discover_plugins(self) -> None:
        """Import every plugin package and call its register_tasks(plugin_manager) hook."""
        package = importlib.import_module(self.plugin_package)
        self.logger.info(f"Discovering plugins in package: {self.plugin_package}")

        for _, name, is_pkg in pkgutil.iter_modules(package.__path__):
            if not is_pkg:
                continue
            module_name = f"{self.plugin_package}.{name}"
            try:
                module = importlib.import_module(module_name)
                if hasattr(module, "register_tasks"):
                    module.register_tasks(self)
                    self.logger.info(f"Registered tasks from plugin: {name}")
            except Exception as e:
                self.logger.exception(f"Error loading plugin {name}: {e}")

    def register_task(self, task_class: Type[BaseTask]) -> None:
        """Register a task class under its component name."""
        self.logger.debug(f"Registering task: {task_class.name}")
        self.tasks[task_class.name] = task_class

    def create_task(self, name: str, config: Optional[Dict[str, Any]], **kwargs: Any) -> Optional[BaseTask]:
        """Create an instance of a registered task if it's enabled in config."""
        if name not in self.tasks:
            self.logger.warning(f"Task '{name}' not found")
            return None

        if not config or not config.get("enable", False):
            self.logger.info(f"Task '{name}' disabled (enable: {config.get('enable', False) if config else False})")
            return None

        self.logger.debug(f"Creating task {name} with config: {config}")
        return self.tasks[name](name, config, **kwargs)
