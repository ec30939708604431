"""Provider registry: notification type to delivery provider.

Built once at startup from settings. Channels disabled in configuration
are simply absent, so asking for them fails the same way as asking for
an unknown type.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from notify_service.core.exceptions import NoProviderForTypeException
from notify_service.features.notifications.models import NotificationType
from notify_service.features.notifications.providers.base import ConnectionResult
from notify_service.features.notifications.providers.email import EmailProvider
from notify_service.features.notifications.providers.push import PushProvider
from notify_service.features.notifications.providers.sms import SmsProvider
from notify_service.features.notifications.providers.webhook import WebhookProvider

if TYPE_CHECKING:
    from collections.abc import Mapping

    from notify_service.core.settings import (
        EmailSettings,
        PushSettings,
        SmsSettings,
        WebhookSettings,
    )
    from notify_service.features.notifications.providers.base import NotificationProvider

logger = logging.getLogger(__name__)


class ProviderRegistry:
    """Maps ``NotificationType`` members to provider instances.

    Example:
        registry = ProviderRegistry.from_settings(app_name="acme")
        provider = registry.get("email")
        result = await provider.send(notification)
    """

    def __init__(self, providers: Mapping[NotificationType, NotificationProvider] | None = None) -> None:
        self._providers: dict[NotificationType, NotificationProvider] = dict(providers or {})

    @classmethod
    def from_settings(
        cls,
        *,
        app_name: str | None = None,
        email: EmailSettings | None = None,
        sms: SmsSettings | None = None,
        push: PushSettings | None = None,
        webhook: WebhookSettings | None = None,
    ) -> ProviderRegistry:
        """Build a registry from channel settings.

        Settings not passed are loaded from the environment.
        """
        from notify_service.core.settings import (
            get_app_settings,
            get_email_settings,
            get_push_settings,
            get_sms_settings,
            get_webhook_settings,
        )

        app_name = app_name or get_app_settings().app_name
        email = email or get_email_settings()
        sms = sms or get_sms_settings()
        push = push or get_push_settings()
        webhook = webhook or get_webhook_settings()

        registry = cls()
        if email.enabled:
            registry.register(NotificationType.EMAIL, EmailProvider(email, app_name))
        if sms.enabled:
            registry.register(NotificationType.SMS, SmsProvider(sms, app_name))
        if push.enabled:
            registry.register(NotificationType.PUSH, PushProvider(push, app_name))
        if webhook.enabled:
            registry.register(NotificationType.WEBHOOK, WebhookProvider(webhook, app_name))

        logger.info(
            "Provider registry built",
            extra={"providers": [t.value for t in registry.available_types()]},
        )
        return registry

    def register(self, notification_type: NotificationType, provider: NotificationProvider) -> None:
        """Bind a provider to a type, replacing any previous binding."""
        self._providers[notification_type] = provider

    def get(self, notification_type: str | NotificationType) -> NotificationProvider:
        """Resolve the provider for a type.

        Raises:
            NoProviderForTypeException: If the type is unknown or its channel is disabled.
        """
        raw = notification_type.value if isinstance(notification_type, NotificationType) else notification_type
        try:
            key = NotificationType(raw)
        except ValueError:
            raise NoProviderForTypeException(str(raw)) from None

        provider = self._providers.get(key)
        if provider is None:
            raise NoProviderForTypeException(key.value)
        return provider

    def available_types(self) -> list[NotificationType]:
        """Types with a registered provider, in enum order."""
        return [t for t in NotificationType if t in self._providers]

    async def test_connections(self) -> dict[str, ConnectionResult]:
        """Run every provider's connection test concurrently.

        A provider that raises is reported as failed; the others still run.
        """
        types = self.available_types()
        results = await asyncio.gather(
            *(self._providers[t].test_connection() for t in types),
            return_exceptions=True,
        )

        report: dict[str, ConnectionResult] = {}
        for notification_type, result in zip(types, results, strict=True):
            if isinstance(result, BaseException):
                logger.warning(
                    "Provider connection test raised",
                    extra={"provider": notification_type.value, "error": str(result)},
                )
                result = ConnectionResult(
                    success=False,
                    provider=notification_type.value,
                    error=str(result) or type(result).__name__,
                )
            report[notification_type.value] = result
        return report

    async def aclose(self) -> None:
        """Close provider network resources."""
        for notification_type, provider in self._providers.items():
            close = getattr(provider, "aclose", None)
            if close is None:
                continue
            try:
                await close()
            except Exception:
                logger.exception(
                    "Failed to close provider",
                    extra={"provider": notification_type.value},
                )

    def __contains__(self, notification_type: object) -> bool:
        try:
            self.get(notification_type)  # type: ignore[arg-type]
        except NoProviderForTypeException:
            return False
        return True

    def __len__(self) -> int:
        return len(self._providers)


__all__ = ["ProviderRegistry"]
