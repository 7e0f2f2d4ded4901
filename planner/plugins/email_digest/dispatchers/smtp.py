"""
SMTP dispatcher: STARTTLS, login, send. Settings come from the mail config section,
falling back to SMTP_* environment variables.
"""
import logging
import os
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr
from typing import Any, Optional

from .base import EmailMessage, MailDispatcher


def _setting(config: dict, key: str, env: str, default: Any = None) -> Any:
    """Config value unless missing or an unresolved ${VAR} placeholder, then the environment."""
    value = config.get(key)
    if value is None or value == "" or (isinstance(value, str) and value.startswith("$")):
        return os.getenv(env, default)
    return value


class SmtpDispatcher(MailDispatcher):
    def __init__(self, config: Optional[dict] = None, logger=None):
        config = config or {}
        self.logger = logger or logging.getLogger(__name__)
        self.smtp_host = _setting(config, "smtp_host", "SMTP_HOST")
        self.smtp_port = int(_setting(config, "smtp_port", "SMTP_PORT", 587))
        self.smtp_user = _setting(config, "smtp_user", "SMTP_USER")
        self.smtp_password = _setting(config, "smtp_password", "SMTP_PASSWORD")
        self.from_email = _setting(config, "from_email", "SMTP_FROM_EMAIL", self.smtp_user)
        self.from_name = _setting(config, "from_name", "SMTP_FROM_NAME", "Academic Planner")
        self.timeout = float(config.get("timeout", 30))
        self.enabled = bool(self.smtp_host and self.from_email)
        if not self.enabled:
            self.logger.warning("SMTP not fully configured. Set mail.smtp_host/from_email or SMTP_* variables.")

    def build(self, message: EmailMessage) -> MIMEMultipart:
        msg = MIMEMultipart("alternative")
        msg["Subject"] = message.subject
        msg["From"] = formataddr((self.from_name, self.from_email))
        msg["To"] = formataddr((message.to_name, message.to_email))
        msg.attach(MIMEText(message.html, "html"))
        return msg

    def send(self, kind: str, message: EmailMessage) -> bool:
        if not self.enabled:
            self.logger.error(f"SMTP delivery not enabled; {kind} for {message.to_email} not sent")
            return False
        with smtplib.SMTP(self.smtp_host, self.smtp_port, timeout=self.timeout) as smtp:
            smtp.starttls()
            if self.smtp_user and self.smtp_password:
                smtp.login(self.smtp_user, self.smtp_password)
            smtp.send_message(self.build(message))
        self.logger.info(f"Sent {kind} to {message.to_email}")
        return True
