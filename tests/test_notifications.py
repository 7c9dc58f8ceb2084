"""
Tests for notification delivery.
"""
import asyncio
import logging
from datetime import datetime, timezone

from fastapi import BackgroundTasks

from ehr_identity.config import Settings
from ehr_identity.notifications import LoggingNotifier, deliver, dispatch, get_notifier
from ehr_identity.notifications.email import EmailNotifier, render_email

EXPIRES = datetime(2030, 1, 2, 15, 30, tzinfo=timezone.utc)


class FakeMailer:
    """Stands in for FastMail; fails the first ``failures`` sends."""

    def __init__(self, failures=0):
        self.failures = failures
        self.messages = []

    async def send_message(self, message):
        if self.failures:
            self.failures -= 1
            raise ConnectionError("temporary SMTP failure")
        self.messages.append(message)


def _email_notifier(mailer):
    config = Settings(
        mail_username="mailer",
        mail_password="secret",
        mail_from="noreply@clinic.org",
        mail_server="smtp.clinic.org",
    )
    return EmailNotifier(config, mailer=mailer)


def test_deliver_retries_then_succeeds():
    mailer = FakeMailer(failures=2)
    notifier = _email_notifier(mailer)

    delivered = asyncio.run(
        deliver(notifier.send_verification_code, "a@clinic.org", "Avery", "123456", EXPIRES, max_retries=3, retry_delay=0)
    )

    assert delivered
    assert len(mailer.messages) == 1


def test_deliver_gives_up_and_logs(caplog):
    mailer = FakeMailer(failures=5)
    notifier = _email_notifier(mailer)

    with caplog.at_level(logging.ERROR, logger="ehr_identity.notifications.base"):
        delivered = asyncio.run(
            deliver(notifier.send_registration_rejected, "a@clinic.org", "Avery", "Ada Admin", "No", max_retries=2, retry_delay=0)
        )

    assert not delivered
    assert mailer.messages == []
    assert "Giving up on notification" in caplog.text


def test_dispatch_schedules_background_task():
    tasks = BackgroundTasks()
    notifier = LoggingNotifier()

    asyncio.run(dispatch(tasks, notifier.send_verification_code, "a@clinic.org", "Avery", "123456", EXPIRES))

    assert len(tasks.tasks) == 1
    assert tasks.tasks[0].func is deliver


def test_email_contents():
    mailer = FakeMailer()
    notifier = _email_notifier(mailer)

    asyncio.run(notifier.send_verification_code("a@clinic.org", "Avery", "654321", EXPIRES))
    asyncio.run(notifier.send_registration_approved(
        "a@clinic.org", "Avery", "Ada Admin", "http://frontend.clinic.org/complete-registration?token=abc", EXPIRES
    ))

    verification, approval = mailer.messages
    assert "a@clinic.org" in str(verification.recipients[0])
    assert "654321" in verification.body
    assert "Email Verification" in verification.subject
    assert "complete-registration?token=abc" in approval.body
    assert "Ada Admin" in approval.body
    assert "January 02, 2030" in approval.body


def test_render_email_wraps_body():
    html = render_email("Title", "<p>Body</p>")
    assert "<p>Body</p>" in html
    assert "<title>Title</title>" in html


def test_logging_notifier_logs_code(caplog):
    with caplog.at_level(logging.INFO, logger="ehr_identity.notifications.base"):
        asyncio.run(LoggingNotifier().send_verification_code("a@clinic.org", "Avery", "123456", EXPIRES))
    assert "123456" in caplog.text


def test_default_notifier_without_smtp():
    assert isinstance(get_notifier(), LoggingNotifier)


def test_email_escapes_applicant_and_admin_text():
    mailer = FakeMailer()
    notifier = _email_notifier(mailer)

    asyncio.run(notifier.send_registration_rejected(
        "a@clinic.org", "<b>Avery</b>", "Ada & Co", '<a href="http://evil.example">Click</a>'
    ))

    body = mailer.messages[0].body
    assert "<b>Avery</b>" not in body
    assert "&lt;b&gt;Avery&lt;/b&gt;" in body
    assert "Ada &amp; Co" in body
    assert 'href="http://evil.example"' not in body
