from .task import RecurrenceTask


def register_tasks(plugin_manager):
    """Register the recurring-assignment expansion task."""
    plugin_manager.register_task(RecurrenceTask)
