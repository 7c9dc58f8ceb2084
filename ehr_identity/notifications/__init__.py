"""
Applicant notifications for the registration workflow.
"""
import logging
from functools import lru_cache

from ..config import settings
from .base import LoggingNotifier, Notifier, deliver, dispatch

logger = logging.getLogger(__name__)


@lru_cache()
def get_notifier() -> Notifier:
    """Email when SMTP is configured, otherwise log the messages."""
    if settings.mail_configured:
        from .email import EmailNotifier

        return EmailNotifier(settings)
    logger.warning("Email configuration is incomplete; notifications will only be logged")
    return LoggingNotifier()


__all__ = ["Notifier", "LoggingNotifier", "deliver", "dispatch", "get_notifier"]
