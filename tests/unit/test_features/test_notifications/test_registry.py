"""Tests for the provider registry."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from notify_service.core.exceptions import NoProviderForTypeException
from notify_service.core.settings import EmailSettings, PushSettings, SmsSettings, WebhookSettings
from notify_service.features.notifications.models import NotificationType
from notify_service.features.notifications.providers import (
    EmailProvider,
    ProviderRegistry,
    SmsProvider,
    WebhookProvider,
)


@pytest.mark.unit
class TestLookup:
    """Tests for get, available_types and membership."""

    def test_get_by_string_or_enum(self, registry, fake_providers):
        assert registry.get("sms") is fake_providers[NotificationType.SMS]
        assert registry.get(NotificationType.SMS) is fake_providers[NotificationType.SMS]

    def test_unknown_type_raises(self, registry):
        with pytest.raises(NoProviderForTypeException) as exc_info:
            registry.get("fax")

        assert exc_info.value.detail == "No provider found for notification type: fax"
        assert exc_info.value.notification_type == "fax"

    def test_unregistered_known_type_raises(self, fake_providers):
        registry = ProviderRegistry({NotificationType.EMAIL: fake_providers[NotificationType.EMAIL]})

        with pytest.raises(NoProviderForTypeException):
            registry.get("push")

    def test_available_types_in_channel_order(self, fake_providers):
        registry = ProviderRegistry()
        registry.register(NotificationType.WEBHOOK, fake_providers[NotificationType.WEBHOOK])
        registry.register(NotificationType.EMAIL, fake_providers[NotificationType.EMAIL])

        assert registry.available_types() == [NotificationType.EMAIL, NotificationType.WEBHOOK]
        assert len(registry) == 2
        assert "email" in registry
        assert "sms" not in registry


@pytest.mark.unit
class TestFromSettings:
    """Tests for building the registry from channel settings."""

    def test_builds_all_enabled_channels(self):
        registry = ProviderRegistry.from_settings(
            app_name="acme",
            email=EmailSettings(),
            sms=SmsSettings(),
            push=PushSettings(),
            webhook=WebhookSettings(),
        )

        assert registry.available_types() == list(NotificationType)
        assert isinstance(registry.get("email"), EmailProvider)
        assert isinstance(registry.get("sms"), SmsProvider)
        assert isinstance(registry.get("webhook"), WebhookProvider)
        assert registry.get("email").app_name == "acme"

    def test_disabled_channels_are_absent(self):
        registry = ProviderRegistry.from_settings(
            app_name="acme",
            email=EmailSettings(enabled=False),
            sms=SmsSettings(),
            push=PushSettings(enabled=False),
            webhook=WebhookSettings(),
        )

        assert registry.available_types() == [NotificationType.SMS, NotificationType.WEBHOOK]
        with pytest.raises(NoProviderForTypeException):
            registry.get("email")


@pytest.mark.unit
class TestConnectionsAndClose:
    """Tests for test_connections and aclose."""

    @pytest.mark.asyncio
    async def test_test_connections_reports_each_provider(self, fake_providers, fake_provider_cls):
        fake_providers[NotificationType.SMS] = fake_provider_cls("sms", succeed=False)
        registry = ProviderRegistry(fake_providers)

        report = await registry.test_connections()

        assert set(report) == {"email", "sms", "push", "webhook"}
        assert report["email"].success is True
        assert report["sms"].success is False

    @pytest.mark.asyncio
    async def test_raising_connection_test_is_reported_as_failure(self, fake_providers):
        fake_providers[NotificationType.PUSH].test_connection = AsyncMock(side_effect=OSError("unreachable"))
        registry = ProviderRegistry(fake_providers)

        report = await registry.test_connections()

        assert report["push"].success is False
        assert report["push"].error == "unreachable"
        assert report["email"].success is True

    @pytest.mark.asyncio
    async def test_aclose_closes_every_provider(self, registry, fake_providers):
        fake_providers[NotificationType.EMAIL].aclose = AsyncMock(side_effect=RuntimeError("boom"))

        await registry.aclose()

        assert fake_providers[NotificationType.SMS].closed is True
        assert fake_providers[NotificationType.WEBHOOK].closed is True
