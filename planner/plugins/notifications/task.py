"""
Background task: materialize deadline notifications for every user, then sweep.
"""
from typing import Any, Dict, Optional

from planner.core.clock import Clock, system_clock
from planner.core.task import BaseTask
from planner.plugins.coursework.task import resolve_user_ids
from planner.plugins.notifications import retention
from planner.plugins.notifications.materializer import materialize_notifications


class NotificationTask(BaseTask):
    """Run the notification materializer and the opportunistic retention sweep."""

    name = "Deadline Notifications"

    def __init__(self, component_name: str, config: Dict[str, Any], clock: Optional[Clock] = None, **kwargs: Any):
        schedule_type, schedule_config = self.interval_schedule(config, 900)
        super().__init__(component_name, schedule_type, schedule_config)
        self.config = config
        self.clock = clock or system_clock
        self.policy = retention.RetentionPolicy.from_config(config)

    def execute(self, config: Dict[str, Any], config_data: Dict[str, Any]) -> Dict[str, int]:
        now = self.clock()
        counts: Dict[str, int] = {}
        for user_id in resolve_user_ids(config):
            try:
                materialize_notifications(user_id, now)
                counts[user_id] = len(retention.load_notifications(user_id, self.policy))
            except Exception as e:
                self.logger.exception(f"Notification refresh for user {user_id} failed: {e}")
        self.logger.debug(f"Deadline Notifications: {counts}")
        return counts
