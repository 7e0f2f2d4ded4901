from .task import NotificationTask


def register_tasks(plugin_manager):
    """Register the deadline-notification refresh task."""
    plugin_manager.register_task(NotificationTask)
