"""SMS provider over the Twilio Messages REST API."""

from __future__ import annotations

import logging
import math
import re
from typing import TYPE_CHECKING

import httpx

from notify_service.features.notifications.models import NotificationPriority, NotificationType
from notify_service.features.notifications.providers.base import (
    ConnectionResult,
    DeliveryResult,
    DeliveryStatus,
    HttpProvider,
)

if TYPE_CHECKING:
    from notify_service.core.settings import SmsSettings
    from notify_service.features.notifications.models import Notification

logger = logging.getLogger(__name__)

E164_PATTERN = re.compile(r"^\+[1-9]\d{1,14}$")
MAX_MESSAGE_LENGTH = 1600
SINGLE_SEGMENT_LENGTH = 160
CONCAT_SEGMENT_LENGTH = 153


def is_valid_phone_number(phone_number: str) -> bool:
    """Whether the number is in E.164 format."""
    return bool(E164_PATTERN.match(phone_number))


def calculate_segments(body: str) -> int:
    """Number of SMS segments needed for ``body``."""
    if len(body) <= SINGLE_SEGMENT_LENGTH:
        return 1
    return math.ceil(len(body) / CONCAT_SEGMENT_LENGTH)


class SmsProvider(HttpProvider):
    """SMS provider posting to Twilio's Messages resource.

    Requests authenticate with the account SID and auth token over HTTP
    basic auth; ``metadata.mediaUrl`` turns the message into an MMS.
    """

    channel = NotificationType.SMS

    def __init__(
        self,
        settings: SmsSettings,
        app_name: str = "notification-service",
        *,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        super().__init__(app_name, timeout_seconds=settings.timeout_seconds, client=client)
        self._settings = settings
        self._base_url = settings.api_base_url.rstrip("/")

    def _auth(self) -> httpx.BasicAuth:
        token = self._settings.twilio_auth_token
        return httpx.BasicAuth(
            self._settings.twilio_account_sid or "",
            token.get_secret_value() if token else "",
        )

    def _account_url(self, suffix: str = ".json") -> str:
        return f"{self._base_url}/Accounts/{self._settings.twilio_account_sid}{suffix}"

    def format_message(self, notification: Notification) -> str:
        """Apply urgency prefix, signature and length limit."""
        body = notification.message
        if notification.priority == NotificationPriority.HIGH.value:
            body = f"🚨 URGENT: {body}"

        if (notification.meta or {}).get("includeSignature") is not False:
            body += f"\n\n- {self.app_name}"

        if len(body) > MAX_MESSAGE_LENGTH:
            body = body[: MAX_MESSAGE_LENGTH - 3] + "..."
        return body

    async def _do_send(self, notification: Notification) -> DeliveryResult:
        if not is_valid_phone_number(notification.recipient):
            return DeliveryResult.failure_result(
                provider=self.provider_name,
                error="Invalid phone number format",
            )
        if not self._settings.has_credentials:
            return DeliveryResult.failure_result(
                provider=self.provider_name,
                error="Twilio credentials not configured",
            )

        body = self.format_message(notification)
        form: dict[str, str] = {
            "To": notification.recipient,
            "From": self._settings.from_number,
            "Body": body,
        }
        media_url = (notification.meta or {}).get("mediaUrl")
        if media_url:
            form["MediaUrl"] = str(media_url)

        response = await self.client.post(
            self._account_url("/Messages.json"),
            data=form,
            auth=self._auth(),
            timeout=self.timeout_seconds,
        )

        if response.is_error:
            return DeliveryResult.failure_result(
                provider=self.provider_name,
                error=_twilio_error(response),
                details={"status_code": response.status_code},
            )

        payload = response.json()
        return DeliveryResult.success_result(
            provider=self.provider_name,
            message_id=payload.get("sid"),
            details={
                "status": payload.get("status"),
                "to": payload.get("to", notification.recipient),
                "from": payload.get("from", self._settings.from_number),
                "segments": calculate_segments(body),
            },
        )

    async def _do_test_connection(self) -> ConnectionResult:
        if not self._settings.has_credentials:
            return ConnectionResult(
                success=False,
                provider=self.provider_name,
                error="Twilio credentials not configured",
            )

        response = await self.client.get(self._account_url(), auth=self._auth(), timeout=self.timeout_seconds)
        if response.is_error:
            return ConnectionResult(success=False, provider=self.provider_name, error=_twilio_error(response))

        sid = self._settings.twilio_account_sid or ""
        return ConnectionResult(
            success=True,
            provider=self.provider_name,
            message=f"SMS provider connection successful (account {sid[:10]}...)",
        )

    async def get_delivery_status(self, message_id: str) -> DeliveryStatus:
        """Fetch the message resource; lookup errors yield status ``unknown``."""
        try:
            response = await self.client.get(
                self._account_url(f"/Messages/{message_id}.json"),
                auth=self._auth(),
                timeout=self.timeout_seconds,
            )
            response.raise_for_status()
            payload = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(
                "SMS delivery status lookup failed",
                extra={"message_id": message_id, "error": str(e)},
            )
            return DeliveryStatus(message_id=message_id, status="unknown", error=str(e))

        return DeliveryStatus(
            message_id=message_id,
            status=payload.get("status") or "unknown",
            error=payload.get("error_message"),
        )


def _twilio_error(response: httpx.Response) -> str:
    try:
        message = response.json().get("message")
    except ValueError:
        message = None
    return f"HTTP {response.status_code}: {message}" if message else f"HTTP {response.status_code}"


__all__ = ["SmsProvider", "calculate_segments", "is_valid_phone_number"]
