"""Push provider over the FCM HTTP API."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import httpx

from notify_service.features.notifications.models import NotificationType
from notify_service.features.notifications.providers.base import (
    ConnectionResult,
    DeliveryResult,
    HttpProvider,
)

if TYPE_CHECKING:
    from notify_service.core.settings import PushSettings
    from notify_service.features.notifications.models import Notification

logger = logging.getLogger(__name__)


class PushProvider(HttpProvider):
    """Push notifications to a device token through FCM.

    The recipient is the device registration token.
    """

    channel = NotificationType.PUSH

    def __init__(
        self,
        settings: PushSettings,
        app_name: str = "notification-service",
        *,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        super().__init__(app_name, timeout_seconds=settings.timeout_seconds, client=client)
        self._settings = settings

    def build_payload(self, notification: Notification) -> dict[str, Any]:
        metadata = notification.meta or {}
        return {
            "notification": {
                "title": metadata.get("title") or "New Notification",
                "body": notification.message,
            },
            "to": notification.recipient,
            "data": metadata.get("data") or {},
        }

    async def _do_send(self, notification: Notification) -> DeliveryResult:
        server_key = self._settings.fcm_server_key
        if server_key is None:
            return DeliveryResult.failure_result(
                provider=self.provider_name,
                error="FCM server key not configured",
            )

        response = await self.client.post(
            self._settings.fcm_url,
            json=self.build_payload(notification),
            headers={"Authorization": f"key={server_key.get_secret_value()}"},
            timeout=self.timeout_seconds,
        )
        if response.is_error:
            return DeliveryResult.failure_result(
                provider=self.provider_name,
                error=f"HTTP {response.status_code}",
                details={"status_code": response.status_code},
            )

        payload = response.json()
        # Legacy FCM reports per-token errors inside a 200 response
        if payload.get("failure"):
            results = payload.get("results") or [{}]
            error = results[0].get("error") or "FCM rejected the message"
            return DeliveryResult.failure_result(provider=self.provider_name, error=error, details=payload)

        results = payload.get("results") or [{}]
        return DeliveryResult.success_result(
            provider=self.provider_name,
            message_id=results[0].get("message_id") or payload.get("message_id"),
            details={"multicast_id": payload.get("multicast_id")},
        )

    async def _do_test_connection(self) -> ConnectionResult:
        if self._settings.fcm_server_key is None:
            return ConnectionResult(
                success=False,
                provider=self.provider_name,
                error="FCM server key not configured",
            )
        return ConnectionResult(
            success=True,
            provider=self.provider_name,
            message="Push provider connection successful",
        )


__all__ = ["PushProvider"]
