"""
SQLAlchemy model for digest/reminder "already sent" markers.
"""
from datetime import datetime

from sqlalchemy import Column, DateTime, String

from planner.core.db import Base


class DigestMarker(Base):
    __tablename__ = "digest_markers"

    user_id = Column(String(64), primary_key=True)
    key = Column(String(255), primary_key=True)
    value = Column(String(64), nullable=False)
    updated_at = Column(DateTime(timezone=False), nullable=False, default=datetime.now)
