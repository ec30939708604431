"""Tests for runtime assembly and shutdown."""

from __future__ import annotations

import asyncio

import pytest
from sqlalchemy.exc import OperationalError

from notify_service.app import NotificationRuntime, lifespan
from notify_service.core.settings import AppSettings, DatabaseSettings, DispatchSettings, LoggingSettings
from notify_service.features.notifications.models import NotificationType


@pytest.fixture
def runtime_kwargs(db_settings, registry):
    """Keyword arguments for a runtime on the test database and fake providers."""
    return {
        "app_settings": AppSettings(),
        "db_settings": db_settings,
        "dispatch_settings": DispatchSettings(interval_seconds=0.05, reconcile_on_startup=False),
        "log_settings": LoggingSettings(),
        "registry": registry,
        "configure_logging": False,
    }


@pytest.mark.unit
class TestNotificationRuntime:
    """Tests for NotificationRuntime."""

    def test_service_before_start_raises(self, runtime_kwargs):
        runtime = NotificationRuntime(**runtime_kwargs)

        with pytest.raises(RuntimeError):
            _ = runtime.service

    @pytest.mark.asyncio
    async def test_submitted_notification_is_delivered(self, runtime_kwargs, fake_providers):
        async with NotificationRuntime(**runtime_kwargs) as runtime:
            assert runtime.processor.running is True
            result = await runtime.service.submit(
                {"type": "email", "recipient": "user@example.com", "message": "hi"}
            )

            for _ in range(100):
                if (await runtime.service.status(result.id)).status == "sent":
                    break
                await asyncio.sleep(0.02)

            assert (await runtime.service.status(result.id)).status == "sent"

        assert fake_providers[NotificationType.EMAIL].sent == [result.id]

    @pytest.mark.asyncio
    async def test_stop_drains_queue_and_closes_resources(self, runtime_kwargs, fake_providers):
        runtime = NotificationRuntime(**runtime_kwargs, start_processor=False)
        service = await runtime.start()
        submitted = [
            await service.submit({"type": "sms", "recipient": "+15551234567", "message": f"m{i}"})
            for i in range(3)
        ]

        await runtime.stop(drain=True)

        assert fake_providers[NotificationType.SMS].sent == [s.id for s in submitted]
        assert all(provider.closed for provider in fake_providers.values())
        assert runtime.engine is None

    @pytest.mark.asyncio
    async def test_reconcile_on_start_picks_up_pending_records(self, runtime_kwargs, fake_providers):
        """Records left pending by a previous process are dispatched by the next one."""
        first = NotificationRuntime(**runtime_kwargs, start_processor=False)
        service = await first.start()
        submitted = await service.submit({"type": "push", "recipient": "token", "message": "hi"})
        await first.stop(drain=False)
        assert fake_providers[NotificationType.PUSH].sent == []

        second = NotificationRuntime(**runtime_kwargs, start_processor=False, reconcile=True)
        service = await second.start()
        assert second.processor.queue_depth == 1
        await second.stop(drain=True)

        assert fake_providers[NotificationType.PUSH].sent == [submitted.id]

    @pytest.mark.asyncio
    async def test_start_failure_releases_resources(self, tmp_path, runtime_kwargs, fake_providers):
        runtime_kwargs["db_settings"] = DatabaseSettings(
            url=f"sqlite+aiosqlite:///{tmp_path / 'missing' / 'dir' / 'x.db'}"
        )
        runtime = NotificationRuntime(**runtime_kwargs)

        with pytest.raises(OperationalError):
            await runtime.start()

        assert runtime.engine is None
        assert all(provider.closed for provider in fake_providers.values())


@pytest.mark.unit
class TestLifespan:
    """Tests for the lifespan context manager."""

    @pytest.mark.asyncio
    async def test_lifespan_yields_running_service(self, runtime_kwargs):
        async with lifespan(**runtime_kwargs) as service:
            health = await service.health()

        assert health.running is True
        assert health.status == "healthy"
