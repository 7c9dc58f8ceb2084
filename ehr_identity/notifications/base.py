"""
Notifier interface and best-effort delivery.

A notification is sent after the state transition it describes has been
committed. Delivery failures are retried with exponential backoff and then
logged; they never reach the caller of the workflow.
"""
import abc
import asyncio
import logging
from datetime import datetime
from typing import Awaitable, Callable, Optional

from fastapi import BackgroundTasks

from ..config import settings

# Set up logging
logger = logging.getLogger(__name__)


class Notifier(abc.ABC):
    """Sends registration workflow messages to applicants."""

    @abc.abstractmethod
    async def send_verification_code(self, email: str, first_name: str, code: str, expires_at: datetime) -> None:
        ...

    @abc.abstractmethod
    async def send_registration_approved(
        self, email: str, first_name: str, admin_name: str, completion_url: str, expires_at: datetime
    ) -> None:
        ...

    @abc.abstractmethod
    async def send_registration_rejected(self, email: str, first_name: str, admin_name: str, reason: str) -> None:
        ...


class LoggingNotifier(Notifier):
    """
    Used when SMTP is not configured: logs what would have been sent so a
    developer can finish the workflow locally.
    """

    async def send_verification_code(self, email, first_name, code, expires_at):
        logger.info(f"SMTP not configured, skipping verification email to {email}. Code: {code}")

    async def send_registration_approved(self, email, first_name, admin_name, completion_url, expires_at):
        logger.info(f"SMTP not configured, skipping approval email to {email}. Completion link: {completion_url}")

    async def send_registration_rejected(self, email, first_name, admin_name, reason):
        logger.info(f"SMTP not configured, skipping rejection email to {email}")


async def deliver(
    send: Callable[..., Awaitable[None]],
    *args,
    max_retries: Optional[int] = None,
    retry_delay: Optional[float] = None,
    **kwargs,
) -> bool:
    """
    Call a notifier method with retry logic.

    Args:
        send: Bound notifier coroutine method
        max_retries: Attempts before giving up (defaults to settings)
        retry_delay: Delay before the first retry, doubled after each failure

    Returns:
        bool: True if the message was handed off, False if every attempt failed
    """
    attempts = max_retries if max_retries is not None else settings.notification_max_retries
    delay = retry_delay if retry_delay is not None else settings.notification_retry_delay
    name = getattr(send, "__name__", repr(send))
    last_exception = None

    for attempt in range(1, max(attempts, 1) + 1):
        try:
            await send(*args, **kwargs)
            if attempt > 1:
                logger.info(f"Notification {name} delivered on attempt {attempt}")
            return True
        except Exception as e:
            last_exception = e
            logger.warning(f"Notification {name} failed on attempt {attempt}/{attempts}: {str(e)}")
            if attempt < attempts:
                await asyncio.sleep(delay * (2 ** (attempt - 1)))

    logger.error(f"Giving up on notification {name} after {attempts} attempts. Last error: {str(last_exception)}")
    return False


async def dispatch(
    background_tasks: Optional[BackgroundTasks],
    send: Callable[..., Awaitable[None]],
    *args,
    **kwargs,
) -> None:
    """
    Hand a notification off without blocking the transition that caused it.

    Inside a request the send runs as a background task after the response;
    outside one (scripts, tests) it is awaited here. Either way failures are
    absorbed by ``deliver``.
    """
    if background_tasks is not None:
        background_tasks.add_task(deliver, send, *args, **kwargs)
        return
    await deliver(send, *args, **kwargs)
