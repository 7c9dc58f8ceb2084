"""
Email notifier backed by fastapi-mail.
"""
import html
import logging
from datetime import datetime
from typing import Optional

from fastapi_mail import ConnectionConfig, FastMail, MessageSchema, MessageType

from ..config import Settings
from .base import Notifier

# Set up logging
logger = logging.getLogger(__name__)

PRODUCT_NAME = "Chart Breaker EHR"

_LAYOUT = """
<html>
    <head>
        <meta charset="utf-8">
        <title>{title}</title>
        <style>
            body {{ font-family: Arial, sans-serif; line-height: 1.6; color: #333; }}
            .container {{ max-width: 600px; margin: 0 auto; padding: 20px; }}
            .header {{ background-color: #1976d2; color: white; padding: 10px; text-align: center; }}
            .content {{ padding: 20px; border: 1px solid #ddd; }}
            .code {{ font-size: 24px; font-weight: bold; text-align: center;
                    margin: 20px 0; padding: 10px; background-color: #f5f5f5; }}
            .button {{ display: inline-block; padding: 10px 20px; background-color: #1976d2;
                    color: white; text-decoration: none; border-radius: 5px; margin: 20px 0; }}
            .footer {{ text-align: center; margin-top: 20px; font-size: 12px; color: #777; }}
        </style>
    </head>
    <body>
        <div class="container">
            <div class="header"><h1>{product}</h1></div>
            <div class="content">{body}</div>
            <div class="footer">&copy; {year} {product}. All rights reserved.</div>
        </div>
    </body>
</html>
"""


def render_email(title: str, body: str) -> str:
    return _LAYOUT.format(title=title, body=body, product=PRODUCT_NAME, year=datetime.now().year)


def _format_expiry(expires_at: datetime) -> str:
    return expires_at.strftime("%B %d, %Y at %I:%M %p UTC")


class EmailNotifier(Notifier):
    """Sends workflow notifications over SMTP."""

    def __init__(self, config: Settings, mailer: Optional[FastMail] = None):
        self.mailer = mailer or FastMail(
            ConnectionConfig(
                MAIL_USERNAME=config.mail_username,
                MAIL_PASSWORD=config.mail_password,
                MAIL_FROM=config.mail_from,
                MAIL_FROM_NAME=config.mail_from_name,
                MAIL_PORT=config.mail_port,
                MAIL_SERVER=config.mail_server,
                MAIL_STARTTLS=config.mail_starttls,
                MAIL_SSL_TLS=config.mail_ssl_tls,
                USE_CREDENTIALS=config.use_credentials,
                VALIDATE_CERTS=config.validate_certs,
            )
        )

    async def _send(self, email: str, subject: str, html: str) -> None:
        message = MessageSchema(
            subject=f"{subject} - {PRODUCT_NAME}",
            recipients=[email],
            body=html,
            subtype=MessageType.html,
        )
        await self.mailer.send_message(message)
        logger.info(f"'{subject}' email sent to {email}")

    async def send_verification_code(self, email, first_name, code, expires_at):
        body = f"""
            <p>Hello {html.escape(first_name)},</p>
            <p>Thank you for requesting access to {PRODUCT_NAME}. Use the following code to verify your email address:</p>
            <div class="code">{code}</div>
            <p>The code expires on {_format_expiry(expires_at)}.</p>
            <p>After verification an administrator will review your request.</p>
            <p>If you did not request access, please ignore this email.</p>
        """
        await self._send(email, "Email Verification", render_email("Email Verification", body))

    async def send_registration_approved(self, email, first_name, admin_name, completion_url, expires_at):
        body = f"""
            <p>Hello {html.escape(first_name)},</p>
            <p>Your registration request was approved by {html.escape(admin_name)}.</p>
            <p style="text-align: center;"><a href="{html.escape(completion_url)}" class="button">Complete Registration</a></p>
            <p>If you can't click the button, copy and paste this link into your browser:</p>
            <p style="word-break: break-all;">{html.escape(completion_url)}</p>
            <p><strong>This link can be used once and expires on {_format_expiry(expires_at)}.</strong></p>
        """
        await self._send(email, "Registration Approved", render_email("Registration Approved", body))

    async def send_registration_rejected(self, email, first_name, admin_name, reason):
        body = f"""
            <p>Hello {html.escape(first_name)},</p>
            <p>Your registration request was reviewed by {html.escape(admin_name)} and could not be approved.</p>
            <p><strong>Reason:</strong> {html.escape(reason)}</p>
            <p>Please contact your administrator if you believe this is a mistake.</p>
        """
        await self._send(email, "Registration Status Update", render_email("Registration Status Update", body))
