"""
Retention sweep: keep the newest unread notifications up to a cap and a few of the
newest read ones; delete everything else.
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from planner.plugins.notifications import service
from planner.plugins.notifications.models import Notification

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetentionPolicy:
    unread_cap: int = 10
    keep_recent_read: int = 5
    sweep_threshold: int = 15  # opportunistic sweep on load above this many

    @classmethod
    def from_config(cls, config: Optional[Dict[str, Any]]) -> "RetentionPolicy":
        config = config or {}
        return cls(
            unread_cap=int(config.get("unread_cap", cls.unread_cap)),
            keep_recent_read=int(config.get("keep_recent_read", cls.keep_recent_read)),
            sweep_threshold=int(config.get("sweep_threshold", cls.sweep_threshold)),
        )


def select_for_deletion(notifications: List[Notification], policy: RetentionPolicy) -> List[str]:
    """Ids to delete, given notifications sorted newest first."""
    unread = [n for n in notifications if not n.is_read]
    read = [n for n in notifications if n.is_read]
    doomed = unread[policy.unread_cap:] + read[policy.keep_recent_read:]
    return [n.id for n in doomed]


def sweep(user_id: str, policy: RetentionPolicy = RetentionPolicy()) -> int:
    """Apply the policy to one user's notifications. Returns the number deleted."""
    notifications = service.get_notifications(user_id)
    doomed = select_for_deletion(notifications, policy)
    if not doomed:
        return 0
    deleted = service.delete_notifications(doomed)
    if deleted < len(doomed):
        logger.warning(f"Sweep for {user_id}: deleted {deleted} of {len(doomed)}; the rest is left for the next sweep")
    else:
        logger.info(f"Sweep for {user_id}: deleted {deleted} notification(s)")
    return deleted


def load_notifications(user_id: str, policy: RetentionPolicy = RetentionPolicy()) -> List[Notification]:
    """List notifications, sweeping first when the user has more than the threshold."""
    if service.count_notifications(user_id) > policy.sweep_threshold:
        try:
            sweep(user_id, policy)
        except Exception as e:
            logger.error(f"Opportunistic sweep for {user_id} failed: {e}")
    return service.get_notifications(user_id)


def mark_read_and_sweep(user_id: str, notification_id: str, policy: RetentionPolicy = RetentionPolicy()) -> int:
    service.mark_as_read(user_id, notification_id)
    return sweep(user_id, policy)


def mark_all_read_and_sweep(user_id: str, policy: RetentionPolicy = RetentionPolicy()) -> int:
    service.mark_all_as_read(user_id)
    return sweep(user_id, policy)
