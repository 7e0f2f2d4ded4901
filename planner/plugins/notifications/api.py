"""
Per-plugin API for Deadline Notifications. Mounted at /api/components/notifications/.
Listing a user's notifications materializes today's deadline notifications first
(unless refresh=false) and sweeps when the list has grown past the threshold.
"""
import logging
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter
from pydantic import BaseModel, ConfigDict

from planner.plugins.notifications import retention, service
from planner.plugins.notifications.materializer import materialize_notifications

COMPONENT_NAME = "Deadline Notifications"

logger = logging.getLogger(__name__)


class NotificationResponse(BaseModel):
    """Pydantic view of Notification."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    type: str
    message: str
    related_item_id: Optional[str] = None
    related_item_type: Optional[str] = None
    is_read: bool = False
    created_at: Optional[datetime] = None


class NotificationsResponse(BaseModel):
    notifications: List[NotificationResponse]
    unread: int = 0


class SweepResponse(BaseModel):
    deleted: int = 0


class MaterializeResponse(BaseModel):
    notification_ids: List[str]


def get_router(planner_app) -> Optional[APIRouter]:
    """Return router for this plugin; mounted with prefix /api/components/notifications."""
    router = APIRouter(tags=["Deadline Notifications"])

    def policy() -> retention.RetentionPolicy:
        return retention.RetentionPolicy.from_config(planner_app.config.get_component_config(COMPONENT_NAME))

    @router.get("/users/{user_id}", response_model=NotificationsResponse)
    def list_notifications(user_id: str, refresh: bool = True) -> NotificationsResponse:
        if refresh:
            # A failed refresh still lists what is already stored
            try:
                materialize_notifications(user_id, planner_app.clock())
            except Exception as e:
                logger.exception(f"Refreshing notifications for {user_id} failed: {e}")
        records = retention.load_notifications(user_id, policy())
        items = [NotificationResponse.model_validate(r) for r in records]
        return NotificationsResponse(notifications=items, unread=sum(1 for n in items if not n.is_read))

    @router.post("/users/{user_id}/materialize", response_model=MaterializeResponse)
    def materialize(user_id: str) -> MaterializeResponse:
        return MaterializeResponse(notification_ids=materialize_notifications(user_id, planner_app.clock()))

    @router.post("/users/{user_id}/read-all", response_model=SweepResponse)
    def read_all(user_id: str) -> SweepResponse:
        return SweepResponse(deleted=retention.mark_all_read_and_sweep(user_id, policy()))

    @router.post("/users/{user_id}/{notification_id}/read", response_model=SweepResponse)
    def read_one(user_id: str, notification_id: str) -> SweepResponse:
        return SweepResponse(deleted=retention.mark_read_and_sweep(user_id, notification_id, policy()))

    @router.delete("/users/{user_id}/{notification_id}", status_code=204)
    def delete(user_id: str, notification_id: str) -> None:
        service.delete_notification(user_id, notification_id)

    return router
