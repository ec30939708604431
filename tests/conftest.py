"""Pytest configuration and shared fixtures.

Organization:
    - Environment: keep tests away from real infrastructure
    - Database Fixtures: temp-file SQLite engine, session factory, store
    - Provider Fixtures: in-process fake providers and a registry of them
    - Dispatch Fixtures: processor and service wired to the fakes

The database is a file under ``tmp_path`` rather than ``:memory:`` because
every pooled aiosqlite connection to ``:memory:`` sees its own empty
database, and the store opens one session per operation.
"""

from __future__ import annotations

import asyncio
import os
from collections.abc import AsyncGenerator, Callable
from datetime import timedelta
from typing import TYPE_CHECKING, Any

import pytest

from notify_service.core.database import utcnow
from notify_service.core.database.session import create_session_factory, init_models
from notify_service.core.settings import DatabaseSettings
from notify_service.features.notifications.models import (
    Notification,
    NotificationPriority,
    NotificationStatus,
    NotificationType,
)
from notify_service.features.notifications.processor import DispatchProcessor
from notify_service.features.notifications.providers.base import (
    ConnectionResult,
    DeliveryResult,
    DeliveryStatus,
)
from notify_service.features.notifications.providers.registry import ProviderRegistry
from notify_service.features.notifications.service import NotificationService
from notify_service.features.notifications.store import NotificationStore

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

# Ensure tests run without external infrastructure
os.environ.setdefault("LOG_FILE_ENABLED", "false")
os.environ.setdefault("DISPATCH_RECONCILE_ON_STARTUP", "false")


# ============================================================================
# Database Fixtures
# ============================================================================


@pytest.fixture
def db_settings(tmp_path) -> DatabaseSettings:
    """Database settings pointing at a fresh SQLite file for each test."""
    return DatabaseSettings(url=f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", create_tables=True)


@pytest.fixture
async def db_engine(db_settings: DatabaseSettings) -> AsyncGenerator[AsyncEngine]:
    """Create async engine with all tables created.

    Yields:
        Async SQLAlchemy engine connected to a temp-file SQLite database.
    """
    from notify_service.core.database.session import create_engine

    engine = create_engine(db_settings)
    await init_models(engine)
    try:
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture
def session_factory(db_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory bound to the test engine."""
    return create_session_factory(db_engine)


@pytest.fixture
def store(session_factory: async_sessionmaker[AsyncSession]) -> NotificationStore:
    """Notification store over the test database."""
    return NotificationStore(session_factory)


@pytest.fixture
def make_notification() -> Callable[..., Notification]:
    """Factory for unsaved Notification instances.

    Example:
        async def test_persist(store, make_notification):
            record = await store.persist(make_notification(type="sms"))
    """
    counter = 0

    def _make(**overrides: Any) -> Notification:
        nonlocal counter
        counter += 1
        now = utcnow()
        values: dict[str, Any] = {
            "id": f"n-{counter:04d}",
            "recipient": "user@example.com",
            "message": "hello",
            "type": NotificationType.EMAIL.value,
            "priority": NotificationPriority.NORMAL.value,
            "status": NotificationStatus.PENDING.value,
            "meta": {},
            "retry_count": 0,
            "created_at": now,
            "updated_at": now,
        }
        values.update(overrides)
        return Notification(**values)

    return _make


@pytest.fixture
def backdate(session_factory: async_sessionmaker[AsyncSession]) -> Callable[..., Any]:
    """Move a record's timestamps into the past, bypassing the store.

    Example:
        await backdate("n-0001", created=timedelta(days=40))
    """
    from sqlalchemy import update

    async def _backdate(
        notification_id: str,
        *,
        created: timedelta | None = None,
        updated: timedelta | None = None,
    ) -> None:
        values: dict[str, Any] = {}
        now = utcnow()
        if created is not None:
            values["created_at"] = now - created
        if updated is not None:
            values["updated_at"] = now - updated
        async with session_factory() as session, session.begin():
            await session.execute(
                update(Notification).where(Notification.id == notification_id).values(**values)
            )

    return _backdate


# ============================================================================
# Provider Fixtures
# ============================================================================


class FakeProvider:
    """In-process provider recording every send.

    Args:
        channel: Channel name reported as ``provider``.
        succeed: Return a successful result when True.
        error: Error message for failed results.
        raises: Exception raised from ``send`` instead of returning.
        returns: Value returned verbatim from ``send`` (for invalid results).
        delay: Seconds to sleep inside ``send``.
    """

    def __init__(
        self,
        channel: str = "email",
        *,
        succeed: bool = True,
        error: str = "provider unavailable",
        raises: BaseException | None = None,
        returns: Any = None,
        delay: float = 0.0,
    ) -> None:
        self.channel = channel
        self.succeed = succeed
        self.error = error
        self.raises = raises
        self.returns = returns
        self.delay = delay
        self.sent: list[str] = []
        self.closed = False

    @property
    def provider_name(self) -> str:
        return self.channel

    async def send(self, notification: Notification) -> DeliveryResult:
        self.sent.append(notification.id)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.raises is not None:
            raise self.raises
        if self.returns is not None:
            return self.returns
        if self.succeed:
            return DeliveryResult.success_result(
                provider=self.channel,
                message_id=f"msg-{notification.id}",
            )
        return DeliveryResult.failure_result(provider=self.channel, error=self.error)

    async def test_connection(self) -> ConnectionResult:
        return ConnectionResult(success=self.succeed, provider=self.channel, message="ok")

    async def get_delivery_status(self, message_id: str) -> DeliveryStatus:
        return DeliveryStatus(message_id=message_id, status="delivered")

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture
def fake_provider_cls() -> type[FakeProvider]:
    """The FakeProvider class, for tests that need custom behaviour."""
    return FakeProvider


@pytest.fixture
def fake_providers() -> dict[NotificationType, FakeProvider]:
    """One succeeding fake provider per channel."""
    return {t: FakeProvider(t.value) for t in NotificationType}


@pytest.fixture
def registry(fake_providers: dict[NotificationType, FakeProvider]) -> ProviderRegistry:
    """Registry serving the fake providers."""
    return ProviderRegistry(fake_providers)


# ============================================================================
# Dispatch Fixtures
# ============================================================================


@pytest.fixture
def processor(store: NotificationStore, registry: ProviderRegistry) -> DispatchProcessor:
    """Processor that is never started; tests drive it with ``tick()``."""
    return DispatchProcessor(store, registry, batch_size=100, interval_seconds=0.05)


@pytest.fixture
def service(
    store: NotificationStore,
    processor: DispatchProcessor,
    registry: ProviderRegistry,
) -> NotificationService:
    """Notification service wired to the test store and fake providers."""
    return NotificationService(store, processor, registry, queue_degraded_threshold=5)
