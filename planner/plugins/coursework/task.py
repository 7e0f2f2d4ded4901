"""
Background task: expand recurring templates into assignments for every configured user.
"""
from typing import Any, Dict, List, Optional

from planner.core.clock import Clock, system_clock
from planner.core.task import BaseTask
from planner.plugins.coursework import service
from planner.plugins.coursework.recurrence import expand_all_templates


def resolve_user_ids(config: Dict[str, Any]) -> List[str]:
    """Users named in the component config, or every user in the store."""
    configured = config.get("users")
    if configured:
        return [str(u) for u in configured]
    return [u.id for u in service.get_users()]


class RecurrenceTask(BaseTask):
    """Generate upcoming assignment occurrences from recurring templates."""

    name = "Recurring Assignments"

    def __init__(self, component_name: str, config: Dict[str, Any], clock: Optional[Clock] = None, **kwargs: Any):
        schedule_type, schedule_config = self.interval_schedule(config, 3600)
        super().__init__(component_name, schedule_type, schedule_config)
        self.config = config
        self.clock = clock or system_clock

    def execute(self, config: Dict[str, Any], config_data: Dict[str, Any]) -> Dict[str, int]:
        now = self.clock()
        generated: Dict[str, int] = {}
        for user_id in resolve_user_ids(config):
            try:
                per_template = expand_all_templates(user_id, now)
            except Exception as e:
                self.logger.exception(f"Recurrence expansion for user {user_id} failed: {e}")
                continue
            generated[user_id] = sum(per_template.values())
        self.logger.info(f"Recurring Assignments: generated {sum(generated.values())} assignment(s)")
        return generated
