"""Runtime assembly and lifecycle management.

Builds every component of the notification service in dependency order
and tears them down in reverse.

Startup Order:
1. Logging
2. Database engine and tables (when DB_CREATE_TABLES is on)
3. Store and provider registry
4. Dispatch processor and notification service
5. Startup reconciliation (when DISPATCH_RECONCILE_ON_STARTUP is on)
6. Processor interval job

Shutdown Order: processor (draining the queue by default), providers, engine.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import TYPE_CHECKING, Any

from notify_service.core.database.session import create_engine, create_session_factory, init_models
from notify_service.core.settings import (
    get_app_settings,
    get_db_settings,
    get_dispatch_settings,
    get_logging_settings,
)
from notify_service.features.notifications.processor import DispatchProcessor
from notify_service.features.notifications.providers.registry import ProviderRegistry
from notify_service.features.notifications.service import NotificationService
from notify_service.features.notifications.store import NotificationStore
from notify_service.infra.logging.config import setup_logging

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from sqlalchemy.ext.asyncio import AsyncEngine

    from notify_service.core.settings import (
        AppSettings,
        DatabaseSettings,
        DispatchSettings,
        LoggingSettings,
    )

logger = logging.getLogger(__name__)


class NotificationRuntime:
    """Owns the engine, store, registry, processor and service of one process.

    Args:
        app_settings: Application settings; loaded from the environment when omitted.
        db_settings: Database settings; loaded from the environment when omitted.
        dispatch_settings: Dispatch settings; loaded from the environment when omitted.
        log_settings: Logging settings; loaded from the environment when omitted.
        registry: Prebuilt provider registry; built from settings when omitted.
        configure_logging: Run ``setup_logging`` on start.
        start_processor: Schedule the processor interval job. One-shot
            callers turn this off and rely on the drain at stop.
        reconcile: Override ``DISPATCH_RECONCILE_ON_STARTUP``.

    Example:
        async with NotificationRuntime() as runtime:
            result = await runtime.service.submit({...})
    """

    def __init__(
        self,
        *,
        app_settings: AppSettings | None = None,
        db_settings: DatabaseSettings | None = None,
        dispatch_settings: DispatchSettings | None = None,
        log_settings: LoggingSettings | None = None,
        registry: ProviderRegistry | None = None,
        configure_logging: bool = True,
        start_processor: bool = True,
        reconcile: bool | None = None,
    ) -> None:
        self.app_settings = app_settings or get_app_settings()
        self.db_settings = db_settings or get_db_settings()
        self.dispatch_settings = dispatch_settings or get_dispatch_settings()
        self.log_settings = log_settings or get_logging_settings()
        self._configure_logging = configure_logging
        self._start_processor = start_processor
        self._reconcile = self.dispatch_settings.reconcile_on_startup if reconcile is None else reconcile

        self.engine: AsyncEngine | None = None
        self.registry: ProviderRegistry | None = registry
        self.store: NotificationStore | None = None
        self.processor: DispatchProcessor | None = None
        self._service: NotificationService | None = None

    @property
    def service(self) -> NotificationService:
        if self._service is None:
            msg = "Runtime is not started"
            raise RuntimeError(msg)
        return self._service

    async def start(self) -> NotificationService:
        """Build and start every component."""
        if self._configure_logging:
            setup_logging(log_settings=self.log_settings)

        logger.info(
            "Notification service starting",
            extra={
                "service": self.app_settings.service_name,
                "environment": self.app_settings.environment,
            },
        )

        self.engine = create_engine(self.db_settings)
        try:
            if self.db_settings.create_tables:
                await init_models(self.engine)

            self.store = NotificationStore(create_session_factory(self.engine))
            if self.registry is None:
                self.registry = ProviderRegistry.from_settings(app_name=self.app_settings.app_name)

            dispatch = self.dispatch_settings
            self.processor = DispatchProcessor(
                self.store,
                self.registry,
                batch_size=dispatch.batch_size,
                interval_seconds=dispatch.interval_seconds,
            )
            self._service = NotificationService(
                self.store,
                self.processor,
                self.registry,
                retention_days=dispatch.retention_days,
                queue_degraded_threshold=dispatch.queue_degraded_threshold,
            )

            if self._reconcile:
                requeued = await self._service.reconcile(
                    timedelta(seconds=dispatch.stale_processing_seconds),
                )
                logger.info("Startup reconciliation finished", extra={"requeued": requeued})

            if self._start_processor:
                self.processor.start()
        except Exception:
            logger.exception("Notification service failed to start")
            await self._close_resources()
            raise

        logger.info("Notification service started")
        return self._service

    async def stop(self, drain: bool = True) -> None:
        """Stop the processor, then release providers and the engine."""
        logger.info("Notification service shutting down", extra={"drain": drain})

        if self.processor is not None:
            try:
                await self.processor.stop(drain=drain)
            except Exception:
                logger.exception("Error stopping dispatch processor")

        await self._close_resources()
        logger.info("Notification service shutdown complete")

    async def _close_resources(self) -> None:
        if self.registry is not None:
            await self.registry.aclose()
        if self.engine is not None:
            await self.engine.dispose()
            self.engine = None

    async def __aenter__(self) -> NotificationRuntime:
        await self.start()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.stop()


@asynccontextmanager
async def lifespan(**kwargs: Any) -> AsyncIterator[NotificationService]:
    """Run a ``NotificationRuntime`` for the duration of the block.

    Keyword arguments are passed to ``NotificationRuntime``.
    """
    runtime = NotificationRuntime(**kwargs)
    service = await runtime.start()
    try:
        yield service
    finally:
        await runtime.stop()


__all__ = ["NotificationRuntime", "lifespan"]
