"""Short-lived runtime for one-shot CLI commands."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from notify_service.features.notifications.service import NotificationService


@asynccontextmanager
async def cli_service() -> AsyncIterator[NotificationService]:
    """Notification service without the interval job or reconciliation.

    Anything the command enqueues (``send``, ``retry``) is dispatched by
    the drain on exit, so it is delivered before the command returns.
    """
    from notify_service.app.lifespan import NotificationRuntime

    runtime = NotificationRuntime(configure_logging=False, start_processor=False, reconcile=False)
    await runtime.start()
    try:
        yield runtime.service
    finally:
        await runtime.stop(drain=True)
