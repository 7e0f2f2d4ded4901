"""
Service layer: the per-user notification store.
"""
import logging
from datetime import date, datetime
from typing import List, Optional, Tuple

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError

from planner.core.db import session_scope
from planner.core.errors import RecordNotFoundError
from planner.plugins.notifications.models import NOTIFICATION_TYPES, Notification

logger = logging.getLogger(__name__)


def get_notifications(user_id: str, limit: Optional[int] = None) -> List[Notification]:
    """User's notifications, newest first."""
    stmt = (
        select(Notification)
        .where(Notification.user_id == user_id)
        .order_by(Notification.created_at.desc(), Notification.id)
    )
    if limit is not None:
        stmt = stmt.limit(limit)
    with session_scope() as session:
        return list(session.execute(stmt).scalars().all())


def count_notifications(user_id: str) -> int:
    with session_scope() as session:
        return session.execute(
            select(func.count()).select_from(Notification).where(Notification.user_id == user_id)
        ).scalar_one()


def find_for_day(user_id: str, type: str, related_item_id: Optional[str], day: date) -> Optional[Notification]:
    """The notification already covering (type, related item) on the given calendar day."""
    with session_scope() as session:
        return session.execute(
            select(Notification).where(
                Notification.user_id == user_id,
                Notification.type == type,
                Notification.related_item_id == related_item_id,
                Notification.created_on == day,
            )
        ).scalars().first()


def create_if_absent(
    user_id: str,
    type: str,
    message: str,
    related_item_id: Optional[str],
    related_item_type: Optional[str],
    now: datetime,
) -> Tuple[str, bool]:
    """
    Insert a notification unless one with the same (type, related item) exists today.
    Returns (notification_id, created). A concurrent insert losing the unique
    constraint returns the winner's id.
    """
    if type not in NOTIFICATION_TYPES:
        raise ValueError(f"Unknown notification type: {type!r}")
    existing = find_for_day(user_id, type, related_item_id, now.date())
    if existing is not None:
        return existing.id, False
    try:
        with session_scope() as session:
            notification = Notification(
                user_id=user_id,
                type=type,
                message=message,
                related_item_id=related_item_id,
                related_item_type=related_item_type,
                is_read=False,
                created_at=now,
                created_on=now.date(),
            )
            session.add(notification)
            session.flush()
            return notification.id, True
    except IntegrityError:
        winner = find_for_day(user_id, type, related_item_id, now.date())
        if winner is None:
            raise
        logger.debug(f"Notification {type}/{related_item_id} inserted concurrently; reusing {winner.id}")
        return winner.id, False


def mark_as_read(user_id: str, notification_id: str) -> None:
    with session_scope() as session:
        notification = session.get(Notification, notification_id)
        if notification is None or notification.user_id != user_id:
            raise RecordNotFoundError("Notification", notification_id)
        notification.is_read = True


def mark_all_as_read(user_id: str) -> int:
    """Mark every unread notification of the user read; returns how many changed."""
    with session_scope() as session:
        result = session.execute(
            update(Notification)
            .where(Notification.user_id == user_id, Notification.is_read.is_(False))
            .values(is_read=True)
        )
        return result.rowcount or 0


def delete_notification(user_id: str, notification_id: str) -> None:
    with session_scope() as session:
        result = session.execute(
            delete(Notification).where(Notification.id == notification_id, Notification.user_id == user_id)
        )
        if not result.rowcount:
            raise RecordNotFoundError("Notification", notification_id)


def delete_notifications(notification_ids: List[str]) -> int:
    """Delete each id in its own transaction; failures are logged and skipped. Returns how many were deleted."""
    deleted = 0
    for notification_id in notification_ids:
        try:
            with session_scope() as session:
                result = session.execute(delete(Notification).where(Notification.id == notification_id))
                deleted += result.rowcount or 0
        except Exception as e:
            logger.error(f"Could not delete notification {notification_id}: {e}")
    return deleted
