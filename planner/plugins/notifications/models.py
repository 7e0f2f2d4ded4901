"""
SQLAlchemy model for in-app notifications.

created_on is the calendar day of created_at; together with user, type and related
item it forms the dedup key, so a day holds at most one notification per deadline kind.
"""
import uuid
from datetime import datetime

from sqlalchemy import Boolean, Column, Date, DateTime, String, Text, UniqueConstraint

from planner.core.db import Base

NOTIFICATION_TYPES = ("overdue", "deadline-today", "deadline-soon", "other")


class Notification(Base):
    __tablename__ = "notifications"
    __table_args__ = (
        UniqueConstraint("user_id", "type", "related_item_id", "created_on", name="uq_notification_day"),
    )

    id = Column(String(64), primary_key=True, default=lambda: uuid.uuid4().hex)
    user_id = Column(String(64), nullable=False, index=True)
    type = Column(String(32), nullable=False)
    message = Column(Text, nullable=False)
    related_item_id = Column(String(64), nullable=True, index=True)
    related_item_type = Column(String(32), nullable=True)  # "assignment" | "course"
    is_read = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=False), nullable=False, default=datetime.now, index=True)
    created_on = Column(Date, nullable=False)
