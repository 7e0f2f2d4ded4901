from .task import DigestTask


def register_tasks(plugin_manager):
    """Register the digest and reminder email task."""
    plugin_manager.register_task(DigestTask)
