"""In-memory dispatch queue and batch processor.

The processor owns a FIFO queue of notification ids and an APScheduler
interval job that drains it in batches. Within a batch every member is
dispatched concurrently and the tick waits for all of them; a tick that
fires while a batch is still in flight is skipped, so at most one batch
runs at a time.

Lifecycle of one member:
    pending -> processing -> sent | failed

The queue holds ids only. Records live in the store; anything still
queued when the process exits stays ``pending`` there and is picked up
again by startup reconciliation.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections import deque
from dataclasses import dataclass
from typing import TYPE_CHECKING, Literal

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from notify_service.core.database import NotFoundError, utcnow
from notify_service.core.exceptions import NoProviderForTypeException
from notify_service.features.notifications.metrics import (
    notification_batch_size,
    notification_batches_total,
    notification_delivered_total,
    notification_in_flight,
    notification_queue_depth,
)
from notify_service.features.notifications.models import NotificationStatus
from notify_service.features.notifications.providers.base import DeliveryResult
from notify_service.features.notifications.store import UnexpectedStatusError
from notify_service.infra.logging import get_lazy_logger, remove_from_log_context, set_log_context

if TYPE_CHECKING:
    from notify_service.features.notifications.models import Notification
    from notify_service.features.notifications.providers.registry import ProviderRegistry
    from notify_service.features.notifications.store import NotificationStore

logger = logging.getLogger(__name__)
lazy_logger = get_lazy_logger(__name__)

DispatchOutcome = Literal["sent", "failed", "skipped"]

JOB_ID = "notification-dispatch"


@dataclass(frozen=True, slots=True)
class BatchOutcome:
    """Counts for one processed batch."""

    batch_id: str
    size: int
    sent: int = 0
    failed: int = 0
    skipped: int = 0


class DispatchProcessor:
    """Batch dispatcher driven by a fixed-interval scheduler job.

    Args:
        store: Notification record store.
        registry: Provider registry used to resolve each record's channel.
        batch_size: Maximum ids dequeued per tick.
        interval_seconds: Seconds between ticks.

    Example:
        processor = DispatchProcessor(store, registry, batch_size=50)
        processor.start()
        processor.enqueue(notification.id)
        ...
        await processor.stop(drain=True)
    """

    def __init__(
        self,
        store: NotificationStore,
        registry: ProviderRegistry,
        *,
        batch_size: int = 100,
        interval_seconds: float = 1.0,
    ) -> None:
        if batch_size < 1:
            msg = "batch_size must be at least 1"
            raise ValueError(msg)
        if interval_seconds <= 0:
            msg = "interval_seconds must be positive"
            raise ValueError(msg)

        self._store = store
        self._registry = registry
        self.batch_size = batch_size
        self.interval_seconds = interval_seconds

        self._queue: deque[str] = deque()
        self._in_flight = False
        self._idle = asyncio.Event()
        self._idle.set()
        self._scheduler: AsyncIOScheduler | None = None
        self._tick_tasks: set[asyncio.Task[BatchOutcome | None]] = set()

    # ------------------------------------------------------------------
    # Queue
    # ------------------------------------------------------------------

    def enqueue(self, notification_id: str) -> None:
        """Append an id to the tail of the queue."""
        self._queue.append(notification_id)
        notification_queue_depth.set(len(self._queue))
        lazy_logger.debug(lambda: f"processor.enqueue: {notification_id} (depth={len(self._queue)})")

    @property
    def queue_depth(self) -> int:
        return len(self._queue)

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    @property
    def running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Schedule the interval job. Must be called from a running event loop."""
        if self.running:
            return

        self._scheduler = AsyncIOScheduler(
            timezone="UTC",
            job_defaults={
                "coalesce": True,
                "max_instances": 1,
                "misfire_grace_time": 60,
            },
        )
        self._scheduler.add_job(
            self._scheduled_tick,
            trigger=IntervalTrigger(seconds=self.interval_seconds),
            id=JOB_ID,
            name="Dispatch queued notifications",
            replace_existing=True,
        )
        self._scheduler.start()

        logger.info(
            "Dispatch processor started",
            extra={"batch_size": self.batch_size, "interval_seconds": self.interval_seconds},
        )

    async def stop(self, drain: bool = True) -> None:
        """Stop ticking and wait for the in-flight batch to complete.

        Args:
            drain: Keep dispatching until the queue is empty before returning.
        """
        if self._scheduler is not None:
            self._scheduler.shutdown(wait=False)
            self._scheduler = None

        if self._tick_tasks:
            await asyncio.gather(*self._tick_tasks, return_exceptions=True)
        await self._idle.wait()

        if drain:
            while self._queue:
                if await self.tick() is None:
                    await self._idle.wait()

        logger.info(
            "Dispatch processor stopped",
            extra={"drained": drain, "queue_depth": len(self._queue)},
        )

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    async def _scheduled_tick(self) -> None:
        """Scheduler job body.

        The batch runs in a task owned by the processor and is shielded, so
        the executor cancelling its job future on shutdown never interrupts
        records already claimed. ``stop`` awaits these tasks.
        """
        task = asyncio.create_task(self.tick())
        self._tick_tasks.add(task)
        task.add_done_callback(self._tick_tasks.discard)
        await asyncio.shield(task)

    async def tick(self) -> BatchOutcome | None:
        """Dispatch one batch.

        Returns:
            Counts for the batch (size 0 when the queue was empty), or None
            when the tick was skipped because a batch is in flight.
        """
        if self._in_flight:
            notification_batches_total.labels(outcome="skipped").inc()
            lazy_logger.debug(lambda: "processor.tick: batch in flight, skipping")
            return None

        batch_id = uuid.uuid4().hex[:12]
        if not self._queue:
            return BatchOutcome(batch_id=batch_id, size=0)

        self._in_flight = True
        self._idle.clear()
        notification_in_flight.set(1)
        try:
            count = min(self.batch_size, len(self._queue))
            batch = [self._queue.popleft() for _ in range(count)]
            notification_queue_depth.set(len(self._queue))
            notification_batch_size.observe(len(batch))

            set_log_context(batch_id=batch_id)
            try:
                results = await asyncio.gather(
                    *(self._dispatch(notification_id) for notification_id in batch),
                    return_exceptions=True,
                )
            finally:
                remove_from_log_context("batch_id")
        finally:
            self._in_flight = False
            notification_in_flight.set(0)
            self._idle.set()

        sent = failed = skipped = 0
        for notification_id, result in zip(batch, results, strict=True):
            if isinstance(result, BaseException):
                logger.error(
                    "Dispatch raised",
                    exc_info=result,
                    extra={"batch_id": batch_id, "notification_id": notification_id},
                )
                failed += 1
            elif result == "sent":
                sent += 1
            elif result == "failed":
                failed += 1
            else:
                skipped += 1

        notification_batches_total.labels(outcome="processed").inc()
        outcome = BatchOutcome(batch_id=batch_id, size=len(batch), sent=sent, failed=failed, skipped=skipped)
        logger.info(
            "Batch dispatched",
            extra={
                "batch_id": batch_id,
                "size": outcome.size,
                "sent": sent,
                "failed": failed,
                "skipped": skipped,
                "queue_depth": len(self._queue),
            },
        )
        return outcome

    async def _dispatch(self, notification_id: str) -> DispatchOutcome:
        set_log_context(notification_id=notification_id)

        try:
            record = await self._store.update(
                notification_id,
                {"status": NotificationStatus.PROCESSING},
                expected_status=NotificationStatus.PENDING,
            )
        except NotFoundError:
            logger.warning(
                "Queued notification no longer exists, skipping",
                extra={"notification_id": notification_id},
            )
            return "skipped"
        except UnexpectedStatusError as exc:
            logger.warning(
                "Queued notification is not pending, skipping",
                extra={"notification_id": notification_id, "status": exc.actual},
            )
            return "skipped"

        result = await self._deliver(record)
        now = utcnow()

        if result.success:
            await self._store.update(
                notification_id,
                {
                    "status": NotificationStatus.SENT,
                    "provider_response": result.to_dict(),
                    "sent_at": now,
                    "error": None,
                    "failed_at": None,
                },
            )
            notification_delivered_total.labels(channel=record.type, status="sent").inc()
            return "sent"

        await self._store.update(
            notification_id,
            {
                "status": NotificationStatus.FAILED,
                "error": result.error,
                "failed_at": now,
                "provider_response": None,
                "sent_at": None,
            },
        )
        notification_delivered_total.labels(channel=record.type, status="failed").inc()
        return "failed"

    async def _deliver(self, record: Notification) -> DeliveryResult:
        """Resolve the provider and send; every failure becomes a failed result."""
        try:
            provider = self._registry.get(record.type)
        except NoProviderForTypeException as exc:
            logger.warning(
                "No provider for notification type",
                extra={"notification_id": record.id, "notification_type": record.type},
            )
            return DeliveryResult.failure_result(provider=record.type, error=exc.detail)

        try:
            result = await provider.send(record)
        except Exception as exc:
            logger.exception(
                "Provider raised during send",
                extra={"notification_id": record.id, "provider": record.type},
            )
            return DeliveryResult.failure_result(provider=record.type, error=str(exc) or type(exc).__name__)

        if not isinstance(result, DeliveryResult):
            logger.error(
                "Provider returned an invalid result",
                extra={"notification_id": record.id, "result_type": type(result).__name__},
            )
            return DeliveryResult.failure_result(
                provider=record.type,
                error=f"Invalid provider result: {type(result).__name__}",
            )
        return result


__all__ = ["BatchOutcome", "DispatchProcessor"]
