"""
Per-plugin API for Email Digest. Mounted at /api/components/email_digest/.
- /users/{id}/preferences: read or change email preferences.
- /users/{id}/check: evaluate the digest and reminder triggers now.
"""
from typing import List, Literal, Optional

from fastapi import APIRouter
from pydantic import BaseModel

from planner.plugins.coursework import service as coursework
from planner.plugins.coursework.preferences import EmailPreferences
from planner.plugins.email_digest.dispatchers import get_dispatcher
from planner.plugins.email_digest.markers import DatabaseMarkerStore
from planner.plugins.email_digest.scheduler import DigestScheduler

COMPONENT_NAME = "Email Digest"


class PreferencesUpdate(BaseModel):
    email_notifications_enabled: Optional[bool] = None
    email_digest_frequency: Optional[Literal["daily", "weekly", "none"]] = None
    email_digest_time: Optional[str] = None
    email_digest_day: Optional[str] = None
    email_assignment_reminders: Optional[bool] = None


class CheckResponse(BaseModel):
    sent: List[str]


def get_router(planner_app) -> Optional[APIRouter]:
    """Return router for this plugin; mounted with prefix /api/components/email_digest."""
    router = APIRouter(tags=["Email Digest"])

    def scheduler() -> DigestScheduler:
        task = planner_app.tasks.get(COMPONENT_NAME)
        if task is not None:
            return task.scheduler
        return DigestScheduler(
            DatabaseMarkerStore(),
            get_dispatcher(planner_app.config.data.get("mail")),
            planner_app.clock,
        )

    @router.get("/users/{user_id}/preferences", response_model=EmailPreferences)
    def get_preferences(user_id: str) -> EmailPreferences:
        return coursework.get_email_preferences(coursework.get_user(user_id))

    @router.patch("/users/{user_id}/preferences", response_model=EmailPreferences)
    def patch_preferences(user_id: str, body: PreferencesUpdate) -> EmailPreferences:
        return coursework.update_preferences(user_id, body.model_dump(exclude_none=True))

    @router.post("/users/{user_id}/check", response_model=CheckResponse)
    def check(user_id: str) -> CheckResponse:
        return CheckResponse(sent=scheduler().check(coursework.get_user(user_id)))

    return router
