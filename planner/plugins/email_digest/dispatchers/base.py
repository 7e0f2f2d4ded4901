"""
Base type and interface for mail dispatchers.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class EmailMessage:
    to_email: str
    to_name: str
    subject: str
    html: str


class MailDispatcher(ABC):
    """Deliver one composed message. kind is "daily-digest", "weekly-digest" or a reminder type."""

    @abstractmethod
    def send(self, kind: str, message: EmailMessage) -> bool:
        """Return True when the message was handed off. May also raise on failure."""
        pass
