import logging

from .base import EmailMessage, MailDispatcher


class LogDispatcher(MailDispatcher):
    """Writes messages to the log instead of sending them."""

    def __init__(self, config: dict = None, logger=None):
        self.logger = logger or logging.getLogger(__name__)

    def send(self, kind: str, message: EmailMessage) -> bool:
        self.logger.info(f"EMAIL [{kind}] to={message.to_email} subject={message.subject}\n{message.html}")
        return True
