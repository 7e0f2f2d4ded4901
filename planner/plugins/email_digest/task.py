"""
Background task: check digest and reminder triggers for every user once a minute.
"""
from typing import Any, Dict, List, Optional

from planner.core.clock import Clock, system_clock
from planner.core.task import BaseTask
from planner.plugins.coursework import service as coursework
from planner.plugins.coursework.task import resolve_user_ids
from planner.plugins.email_digest.dispatchers import MailDispatcher, get_dispatcher
from planner.plugins.email_digest.markers import DatabaseMarkerStore, InMemoryMarkerStore, MarkerStore
from planner.plugins.email_digest.scheduler import DigestScheduler


def get_marker_store(config: Dict[str, Any]) -> MarkerStore:
    kind = (config.get("markers") or "database").lower()
    if kind == "memory":
        return InMemoryMarkerStore()
    if kind == "database":
        return DatabaseMarkerStore()
    raise ValueError(f"Unknown marker store: {kind!r}")


class DigestTask(BaseTask):
    """Send due digests and assignment reminders through the configured dispatcher."""

    name = "Email Digest"

    def __init__(
        self,
        component_name: str,
        config: Dict[str, Any],
        clock: Optional[Clock] = None,
        mail: Optional[Dict[str, Any]] = None,
        dispatcher: Optional[MailDispatcher] = None,
        marker_store: Optional[MarkerStore] = None,
        **kwargs: Any,
    ):
        schedule_type, schedule_config = self.interval_schedule(config, 60)
        super().__init__(component_name, schedule_type, schedule_config)
        self.config = config
        self.scheduler = DigestScheduler(
            marker_store or get_marker_store(config),
            dispatcher or get_dispatcher(mail, logger=self.logger),
            clock or system_clock,
        )

    def execute(self, config: Dict[str, Any], config_data: Dict[str, Any]) -> Dict[str, List[str]]:
        users = []
        for user_id in resolve_user_ids(config):
            try:
                users.append(coursework.get_user(user_id))
            except Exception as e:
                self.logger.error(f"Skipping digest check for user {user_id}: {e}")
        results = self.scheduler.check_all(users)
        sent = {user_id: kinds for user_id, kinds in results.items() if kinds}
        if sent:
            self.logger.info(f"Email Digest sent: {sent}")
        return results
