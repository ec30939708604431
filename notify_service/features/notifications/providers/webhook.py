"""Webhook provider: signed JSON POST to the recipient URL."""

from __future__ import annotations

import hashlib
import hmac
import json
import logging
import time
from typing import TYPE_CHECKING, Any

import httpx

from notify_service.features.notifications.models import NotificationType
from notify_service.features.notifications.providers.base import (
    ConnectionResult,
    DeliveryResult,
    HttpProvider,
)
from notify_service.infra.logging import get_lazy_logger

if TYPE_CHECKING:
    from notify_service.core.settings import WebhookSettings
    from notify_service.features.notifications.models import Notification

logger = logging.getLogger(__name__)
lazy_logger = get_lazy_logger(__name__)


def generate_signature(secret: str, timestamp: str, payload: str) -> str:
    """HMAC-SHA256 over ``"{timestamp}.{payload}"``, hex encoded."""
    message = f"{timestamp}.{payload}"
    return hmac.new(
        secret.encode("utf-8"),
        message.encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()


class WebhookProvider(HttpProvider):
    """POSTs notification events to the recipient URL.

    Handles:
    - Bearer authentication with the shared secret
    - HMAC-SHA256 signature headers
    - Timeouts and redirect limits
    """

    channel = NotificationType.WEBHOOK

    def __init__(
        self,
        settings: WebhookSettings,
        app_name: str = "notification-service",
        *,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        super().__init__(app_name, timeout_seconds=settings.timeout_seconds, client=client)
        self._settings = settings

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.timeout_seconds,
                follow_redirects=True,
                max_redirects=self._settings.max_redirects,
            )
        return self._client

    def build_payload(self, notification: Notification, timestamp: str) -> dict[str, Any]:
        metadata = notification.meta or {}
        return {
            "event": metadata.get("event") or "notification",
            "id": notification.id,
            "message": notification.message,
            "timestamp": timestamp,
            "type": notification.type,
            "priority": notification.priority,
            "data": metadata.get("data") or {},
        }

    def build_headers(self, payload_str: str, timestamp: str) -> dict[str, str]:
        secret = self._settings.secret.get_secret_value()
        headers = {
            "Content-Type": "application/json",
            "User-Agent": f"{self.app_name}-webhook/1.0",
            "Authorization": f"Bearer {secret}",
        }
        if self._settings.enable_signature:
            headers["X-Webhook-Signature"] = generate_signature(secret, timestamp, payload_str)
            headers["X-Webhook-Timestamp"] = timestamp
        return headers

    async def _do_send(self, notification: Notification) -> DeliveryResult:
        timestamp = time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime())
        payload_str = json.dumps(self.build_payload(notification, timestamp), separators=(",", ":"))
        headers = self.build_headers(payload_str, timestamp)

        lazy_logger.debug(lambda: f"webhook.send: id={notification.id}, url={notification.recipient}")

        try:
            response = await self.client.post(
                notification.recipient,
                content=payload_str,
                headers=headers,
                timeout=self.timeout_seconds,
                follow_redirects=True,
            )
        except httpx.TimeoutException:
            return DeliveryResult.failure_result(
                provider=self.provider_name,
                error=f"Request timeout after {self.timeout_seconds}s",
            )
        except httpx.TooManyRedirects:
            return DeliveryResult.failure_result(
                provider=self.provider_name,
                error=f"Exceeded {self._settings.max_redirects} redirects",
            )

        details = {
            "status_code": response.status_code,
            "status_text": response.reason_phrase,
        }
        if not response.is_success:
            return DeliveryResult.failure_result(
                provider=self.provider_name,
                error=f"HTTP {response.status_code}",
                details=details,
            )
        return DeliveryResult.success_result(provider=self.provider_name, details=details)

    async def _do_test_connection(self) -> ConnectionResult:
        response = await self.client.get(self._settings.probe_url, timeout=self.timeout_seconds)
        if response.status_code != 200:
            return ConnectionResult(
                success=False,
                provider=self.provider_name,
                error=f"Unexpected response status {response.status_code}",
            )
        return ConnectionResult(
            success=True,
            provider=self.provider_name,
            message="Webhook provider connection successful",
        )


__all__ = ["WebhookProvider", "generate_signature"]
