from .base import EmailMessage, MailDispatcher
from .log import LogDispatcher
from .smtp import SmtpDispatcher

__all__ = ["EmailMessage", "MailDispatcher", "LogDispatcher", "SmtpDispatcher", "get_dispatcher"]

_DISPATCHERS = {
    "log": LogDispatcher,
    "smtp": SmtpDispatcher,
}


def get_dispatcher(config: dict = None, logger=None) -> MailDispatcher:
    """Factory: dispatcher for mail.backend (default "log")."""
    config = config or {}
    backend = (config.get("backend") or "log").lower()
    cls = _DISPATCHERS.get(backend)
    if not cls:
        raise ValueError(f"Unknown mail backend: {backend!r}")
    return cls(config, logger=logger)
