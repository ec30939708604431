"""Email provider over SMTP using aiosmtplib.

Supports:
- STARTTLS (port 587) and implicit TLS (port 465)
- Authentication (LOGIN, PLAIN)
- HTML body rendered from a sandboxed Jinja2 template, plain-text alternative
- Attachments from ``metadata.attachments``
- Priority headers
"""

from __future__ import annotations

import base64
import logging
import ssl
import uuid
from datetime import UTC, datetime
from email.mime.application import MIMEApplication
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import TYPE_CHECKING, Any

import aiosmtplib
from jinja2 import select_autoescape
from jinja2.sandbox import SandboxedEnvironment

from notify_service.features.notifications.models import NotificationPriority, NotificationType
from notify_service.features.notifications.providers.base import (
    BaseProvider,
    ConnectionResult,
    DeliveryResult,
    DeliveryStatus,
)

if TYPE_CHECKING:
    from notify_service.core.settings import EmailSettings
    from notify_service.features.notifications.models import Notification

logger = logging.getLogger(__name__)

_env = SandboxedEnvironment(
    autoescape=select_autoescape(default_for_string=True),
    trim_blocks=True,
    lstrip_blocks=True,
)

EMAIL_TEMPLATE = _env.from_string(
    """<!DOCTYPE html>
<html>
  <head>
    <meta charset="utf-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>{{ title }}</title>
    <style>
      body { font-family: Arial, sans-serif; line-height: 1.6; color: #333; max-width: 600px; margin: 0 auto; padding: 20px; }
      .header { background-color: {{ accent }}; color: white; padding: 20px; text-align: center; border-radius: 5px 5px 0 0; }
      .content { background-color: #f8f9fa; padding: 30px; border-radius: 0 0 5px 5px; }
      .message { background-color: white; padding: 20px; border-radius: 5px; margin-bottom: 20px; border-left: 4px solid {{ accent }}; }
      .button { display: inline-block; background-color: {{ accent }}; color: white; padding: 12px 24px; text-decoration: none; border-radius: 5px; margin: 20px 0; }
      .footer { margin-top: 30px; padding-top: 20px; border-top: 1px solid #dee2e6; font-size: 12px; color: #6c757d; text-align: center; }
    </style>
  </head>
  <body>
    <div class="header">
      <h1>{{ title }}</h1>
    </div>
    <div class="content">
      <div class="message{% if high_priority %} priority-high{% endif %}">
        <p>{{ message }}</p>
      </div>
      {% if button_text and button_url %}
      <div style="text-align: center;">
        <a href="{{ button_url }}" class="button">{{ button_text }}</a>
      </div>
      {% endif %}
      <div class="footer">
        <p>This notification was sent by {{ app_name }}</p>
        <p>Notification ID: {{ notification_id }}</p>
        <p>Sent at: {{ sent_at }}</p>
        {% if unsubscribe_url %}
        <p><a href="{{ unsubscribe_url }}">Unsubscribe from these notifications</a></p>
        {% endif %}
      </div>
    </div>
  </body>
</html>
"""
)


class EmailProvider(BaseProvider):
    """SMTP email provider.

    Example:
        provider = EmailProvider(EmailSettings(smtp_host="smtp.example.com"), app_name="acme")
        result = await provider.send(notification)
    """

    channel = NotificationType.EMAIL

    def __init__(self, settings: EmailSettings, app_name: str = "notification-service") -> None:
        """Initialize SMTP provider.

        Args:
            settings: SMTP connection settings
            app_name: Application name used in subjects and the footer
        """
        super().__init__(app_name)
        self._settings = settings
        self._host = settings.smtp_host
        self._port = settings.smtp_port
        self._use_ssl = settings.use_ssl
        self._use_tls = settings.use_tls and not settings.use_ssl

        logger.info(
            "Email provider initialized",
            extra={
                "host": self._host,
                "port": self._port,
                "use_tls": self._use_tls,
                "use_ssl": self._use_ssl,
            },
        )

    def _create_ssl_context(self) -> ssl.SSLContext | None:
        if not (self._use_tls or self._use_ssl):
            return None

        context = ssl.create_default_context()
        if not self._settings.validate_certs:
            context.check_hostname = False
            context.verify_mode = ssl.CERT_NONE
        return context

    def _smtp_client(self, timeout: float | None = None) -> aiosmtplib.SMTP:
        return aiosmtplib.SMTP(
            hostname=self._host,
            port=self._port,
            use_tls=self._use_ssl,
            start_tls=self._use_tls,
            tls_context=self._create_ssl_context(),
            timeout=timeout or self._settings.timeout_seconds,
        )

    def build_subject(self, notification: Notification) -> str:
        """Subject from metadata, else a generated one with an urgency prefix."""
        subject = (notification.meta or {}).get("subject")
        if subject:
            return str(subject)

        prefix = "[URGENT] " if notification.priority == NotificationPriority.HIGH.value else ""
        return f"{prefix}Notification from {self.app_name}"

    def render_html(self, notification: Notification, sent_at: datetime | None = None) -> str:
        """Render the HTML body; metadata values are autoescaped."""
        metadata = notification.meta or {}
        high_priority = notification.priority == NotificationPriority.HIGH.value
        sent_at = sent_at or datetime.now(UTC)

        return EMAIL_TEMPLATE.render(
            title=metadata.get("title") or "Notification",
            message=notification.message,
            button_text=metadata.get("buttonText"),
            button_url=metadata.get("buttonUrl"),
            unsubscribe_url=metadata.get("unsubscribeUrl"),
            app_name=self.app_name,
            notification_id=notification.id,
            sent_at=sent_at.strftime("%Y-%m-%d %H:%M:%S UTC"),
            high_priority=high_priority,
            accent="#dc3545" if high_priority else "#007bff",
        )

    def build_message(self, notification: Notification) -> MIMEMultipart:
        """Build the MIME message for a notification.

        Raises:
            ValueError: If an attachment entry has no filename or content.
        """
        mime_msg = MIMEMultipart("mixed")
        mime_msg["From"] = self._settings.from_address
        mime_msg["To"] = notification.recipient
        mime_msg["Subject"] = self.build_subject(notification)
        mime_msg["Message-ID"] = f"<{uuid.uuid4()}@{self._host}>"
        mime_msg["Date"] = datetime.now(UTC).strftime("%a, %d %b %Y %H:%M:%S +0000")

        if notification.priority == NotificationPriority.HIGH.value:
            mime_msg["X-Priority"] = "1"
            mime_msg["X-MSMail-Priority"] = "High"
        elif notification.priority == NotificationPriority.LOW.value:
            mime_msg["X-Priority"] = "5"
            mime_msg["X-MSMail-Priority"] = "Low"

        alt_part = MIMEMultipart("alternative")
        alt_part.attach(MIMEText(notification.message, "plain", "utf-8"))
        alt_part.attach(MIMEText(self.render_html(notification), "html", "utf-8"))
        mime_msg.attach(alt_part)

        for attachment in (notification.meta or {}).get("attachments") or []:
            mime_msg.attach(self._build_attachment(attachment))

        return mime_msg

    @staticmethod
    def _build_attachment(attachment: dict[str, Any]) -> MIMEApplication:
        filename = attachment.get("filename")
        content = attachment.get("content")
        if not filename or content is None:
            msg = "Attachment requires 'filename' and 'content'"
            raise ValueError(msg)

        if isinstance(content, str):
            if attachment.get("encoding") == "base64":
                payload = base64.b64decode(content)
            else:
                payload = content.encode("utf-8")
        else:
            payload = bytes(content)

        part = MIMEApplication(payload, Name=filename)
        part["Content-Disposition"] = f'attachment; filename="{filename}"'
        content_type = attachment.get("contentType")
        if content_type:
            part.set_type(content_type)
        return part

    async def _do_send(self, notification: Notification) -> DeliveryResult:
        mime_message = self.build_message(notification)
        message_id = mime_message["Message-ID"]

        try:
            smtp = self._smtp_client()
            async with smtp:
                if self._settings.smtp_username and self._settings.smtp_password:
                    await smtp.login(
                        self._settings.smtp_username,
                        self._settings.smtp_password.get_secret_value(),
                    )
                errors, response = await smtp.send_message(mime_message)

        except aiosmtplib.SMTPAuthenticationError as e:
            return DeliveryResult.failure_result(
                provider=self.provider_name,
                error=f"SMTP authentication failed: {e}",
            )
        except aiosmtplib.SMTPRecipientsRefused as e:
            return DeliveryResult.failure_result(
                provider=self.provider_name,
                error=f"All recipients refused: {e}",
            )
        except aiosmtplib.SMTPConnectError as e:
            return DeliveryResult.failure_result(
                provider=self.provider_name,
                error=f"SMTP connection failed: {e}",
            )
        except aiosmtplib.SMTPException as e:
            return DeliveryResult.failure_result(
                provider=self.provider_name,
                error=f"SMTP error: {e}",
            )

        if errors:
            return DeliveryResult.failure_result(
                provider=self.provider_name,
                error=f"Recipient rejected: {', '.join(errors)}",
                details={"rejected": {k: str(v) for k, v in errors.items()}},
            )

        return DeliveryResult.success_result(
            provider=self.provider_name,
            message_id=message_id,
            details={"response": response, "host": self._host, "port": self._port},
        )

    async def _do_test_connection(self) -> ConnectionResult:
        smtp = self._smtp_client(timeout=min(self._settings.timeout_seconds, 5.0))
        try:
            await smtp.connect()
            await smtp.quit()
        except aiosmtplib.SMTPException as e:
            return ConnectionResult(success=False, provider=self.provider_name, error=str(e))

        return ConnectionResult(
            success=True,
            provider=self.provider_name,
            message="Email provider connection successful",
        )

    async def get_delivery_status(self, message_id: str) -> DeliveryStatus:
        """SMTP has no delivery tracking; accepted mail is reported delivered."""
        return DeliveryStatus(message_id=message_id, status="delivered")


__all__ = ["EMAIL_TEMPLATE", "EmailProvider"]
