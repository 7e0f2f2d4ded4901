"""
Marker stores: remember which digest or reminder was last sent for a user.
"""
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Dict, Optional, Tuple

from planner.core.db import session_scope
from planner.plugins.email_digest.models import DigestMarker


class MarkerStore(ABC):
    @abstractmethod
    def get(self, user_id: str, key: str) -> Optional[str]:
        pass

    @abstractmethod
    def set(self, user_id: str, key: str, value: str) -> None:
        pass


class DatabaseMarkerStore(MarkerStore):
    """Markers in the digest_markers table, upserted on (user_id, key)."""

    def get(self, user_id: str, key: str) -> Optional[str]:
        with session_scope() as session:
            row = session.get(DigestMarker, (user_id, key))
            return row.value if row else None

    def set(self, user_id: str, key: str, value: str) -> None:
        with session_scope() as session:
            row = session.get(DigestMarker, (user_id, key))
            if row:
                row.value = value
                row.updated_at = datetime.now()
            else:
                session.add(DigestMarker(user_id=user_id, key=key, value=value, updated_at=datetime.now()))


class InMemoryMarkerStore(MarkerStore):
    """Process-local markers; lost on restart."""

    def __init__(self):
        self.values: Dict[Tuple[str, str], str] = {}

    def get(self, user_id: str, key: str) -> Optional[str]:
        return self.values.get((user_id, key))

    def set(self, user_id: str, key: str, value: str) -> None:
        self.values[(user_id, key)] = value
