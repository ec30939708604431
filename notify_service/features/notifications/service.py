"""Notification service: the entry point for submitting and querying notifications."""

from __future__ import annotations

import uuid
from collections.abc import Mapping
from datetime import timedelta
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from notify_service.core.database import NotFoundError, RepositoryError, utcnow
from notify_service.core.exceptions import (
    AppException,
    InvalidStateException,
    NotFoundException,
    ValidationException,
)
from notify_service.core.services.base import BaseService
from notify_service.features.notifications.metrics import (
    notification_purged_total,
    notification_retries_total,
    notification_submitted_total,
)
from notify_service.features.notifications.models import Notification, NotificationStatus
from notify_service.features.notifications.schemas import (
    BulkItemResult,
    HealthReport,
    HistoryPage,
    NotificationFilter,
    NotificationRead,
    NotificationRequest,
    NotificationStatistics,
    RetryResult,
    SubmitResult,
)
from notify_service.features.notifications.store import UnexpectedStatusError

if TYPE_CHECKING:
    from collections.abc import Sequence

    from notify_service.features.notifications.processor import DispatchProcessor
    from notify_service.features.notifications.providers.base import ConnectionResult
    from notify_service.features.notifications.providers.registry import ProviderRegistry
    from notify_service.features.notifications.store import NotificationStore

TIMEFRAMES: dict[str, timedelta] = {
    "1h": timedelta(hours=1),
    "24h": timedelta(hours=24),
    "7d": timedelta(days=7),
    "30d": timedelta(days=30),
}
DEFAULT_TIMEFRAME = "24h"


def _validation_exception(exc: ValidationError, message: str) -> ValidationException:
    errors = [
        {
            "field": ".".join(str(part) for part in error["loc"]) or "request",
            "message": error["msg"],
        }
        for error in exc.errors(include_url=False)
    ]
    summary = "; ".join(f"{e['field']}: {e['message']}" for e in errors)
    return ValidationException(detail=f"{message}: {summary}", extra={"errors": errors})


class NotificationService(BaseService):
    """Service for submitting notifications and tracking their delivery.

    Provides:
    - Single and bulk submission (persist as pending, then enqueue)
    - Caller-initiated retry of failed notifications
    - Status, history and statistics queries
    - Retention purge, health and provider connection tests
    - Startup reconciliation of records lost with the in-memory queue
    """

    def __init__(
        self,
        store: NotificationStore,
        processor: DispatchProcessor,
        registry: ProviderRegistry,
        *,
        retention_days: int = 30,
        queue_degraded_threshold: int = 1000,
    ) -> None:
        """Initialize with the store, processor and provider registry.

        Args:
            store: Notification record store
            processor: Dispatch processor that owns the queue
            registry: Provider registry
            retention_days: Default age for ``purge``
            queue_degraded_threshold: Queue depth at which health is degraded
        """
        super().__init__()
        self._store = store
        self._processor = processor
        self._registry = registry
        self.retention_days = retention_days
        self.queue_degraded_threshold = queue_degraded_threshold

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------

    @staticmethod
    def _parse_request(request: NotificationRequest | Mapping[str, Any]) -> NotificationRequest:
        if isinstance(request, NotificationRequest):
            return request
        if not isinstance(request, Mapping):
            raise ValidationException(
                detail="Notification request must be a mapping",
                extra={"received": type(request).__name__},
            )
        try:
            return NotificationRequest.model_validate(dict(request))
        except ValidationError as exc:
            raise _validation_exception(exc, "Invalid notification request") from exc

    async def submit(self, request: NotificationRequest | Mapping[str, Any]) -> SubmitResult:
        """Persist a notification as pending and queue it for dispatch.

        Returns as soon as the record is stored; delivery happens on a
        later processor tick.

        Raises:
            ValidationException: If recipient, message or type is missing or
                blank, or priority is not low, normal or high.
            DuplicateIdError: If a caller-supplied id already exists.
        """
        parsed = self._parse_request(request)
        now = utcnow()

        notification = Notification(
            id=parsed.id or uuid.uuid4().hex,
            recipient=parsed.recipient,
            message=parsed.message,
            type=parsed.type,
            priority=parsed.priority.value,
            status=NotificationStatus.PENDING.value,
            meta=dict(parsed.metadata),
            retry_count=0,
            created_at=now,
            updated_at=now,
        )
        await self._store.persist(notification)
        self._processor.enqueue(notification.id)

        notification_submitted_total.labels(
            notification_type=notification.type,
            priority=notification.priority,
        ).inc()
        self.logger.info(
            "Notification queued",
            extra={
                "notification_id": notification.id,
                "notification_type": notification.type,
                "priority": notification.priority,
            },
        )
        return SubmitResult(id=notification.id, timestamp=now)

    async def submit_bulk(
        self,
        requests: Sequence[NotificationRequest | Mapping[str, Any]],
    ) -> list[BulkItemResult]:
        """Submit each request independently.

        One result per input, in input order; a failing item never affects
        the others.
        """
        results: list[BulkItemResult] = []
        for index, request in enumerate(requests):
            try:
                submitted = await self.submit(request)
            except (AppException, RepositoryError) as exc:
                supplied_id = request.get("id") if isinstance(request, Mapping) else getattr(request, "id", None)
                error = exc.detail if isinstance(exc, AppException) else exc.message
                self._lazy.debug(lambda i=index, e=error: f"submit_bulk: item {i} rejected: {e}")
                results.append(
                    BulkItemResult(
                        index=index,
                        id=supplied_id if isinstance(supplied_id, str) else None,
                        status="error",
                        error=error,
                    )
                )
            else:
                results.append(BulkItemResult(index=index, id=submitted.id, status="queued"))

        queued = sum(1 for r in results if r.status == "queued")
        self.logger.info(
            "Bulk submission processed",
            extra={"total": len(results), "queued": queued, "errors": len(results) - queued},
        )
        return results

    async def retry(self, notification_id: str) -> RetryResult:
        """Send a failed notification back to the queue.

        Raises:
            NotFoundException: If the notification does not exist.
            InvalidStateException: If the notification is not failed.
        """
        record = await self._store.get(notification_id)
        if record is None:
            raise NotFoundException(
                detail=f"Notification {notification_id} not found",
                extra={"notification_id": notification_id},
            )
        if record.status != NotificationStatus.FAILED.value:
            raise InvalidStateException(
                detail="Only failed notifications can be retried",
                extra={"notification_id": notification_id, "status": record.status},
            )

        try:
            updated = await self._store.update(
                notification_id,
                {
                    "status": NotificationStatus.PENDING,
                    "retry_count": record.retry_count + 1,
                    "error": None,
                    "failed_at": None,
                },
                expected_status=NotificationStatus.FAILED,
            )
        except NotFoundError as exc:
            raise NotFoundException(
                detail=f"Notification {notification_id} not found",
                extra={"notification_id": notification_id},
            ) from exc
        except UnexpectedStatusError as exc:
            raise InvalidStateException(
                detail="Only failed notifications can be retried",
                extra={"notification_id": notification_id, "status": exc.actual},
            ) from exc

        self._processor.enqueue(notification_id)
        notification_retries_total.labels(notification_type=updated.type).inc()
        self.logger.info(
            "Notification requeued for retry",
            extra={"notification_id": notification_id, "retry_count": updated.retry_count},
        )
        return RetryResult(id=notification_id, retry_count=updated.retry_count)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def status(self, notification_id: str) -> NotificationRead:
        """Current record for an id.

        Raises:
            NotFoundException: If the notification does not exist.
        """
        record = await self._store.get(notification_id)
        if record is None:
            raise NotFoundException(
                detail=f"Notification {notification_id} not found",
                extra={"notification_id": notification_id},
            )
        return NotificationRead.model_validate(record)

    async def history(self, filters: NotificationFilter | Mapping[str, Any] | None = None) -> HistoryPage:
        """Filtered, paginated history, newest first."""
        if filters is None:
            filters = NotificationFilter()
        elif not isinstance(filters, NotificationFilter):
            try:
                filters = NotificationFilter.model_validate(dict(filters))
            except ValidationError as exc:
                raise _validation_exception(exc, "Invalid history filter") from exc

        page = await self._store.list(filters)
        return HistoryPage(
            records=[NotificationRead.model_validate(item) for item in page.items],
            total=page.total,
            limit=page.limit,
            offset=page.offset,
        )

    async def statistics(self, window: str | timedelta = DEFAULT_TIMEFRAME) -> NotificationStatistics:
        """Aggregates over a trailing window plus live queue state.

        Args:
            window: One of ``1h``, ``24h``, ``7d``, ``30d`` (anything else
                falls back to ``24h``) or an explicit timedelta.
        """
        if isinstance(window, timedelta):
            timeframe = f"{int(window.total_seconds())}s"
            delta = window
        else:
            timeframe = window if window in TIMEFRAMES else DEFAULT_TIMEFRAME
            delta = TIMEFRAMES[timeframe]

        stats = await self._store.aggregate_stats(delta)
        return NotificationStatistics(
            **stats.model_dump(),
            timeframe=timeframe,
            queue_depth=self._processor.queue_depth,
            in_flight=self._processor.in_flight,
        )

    async def failed(self, limit: int = 100) -> list[NotificationRead]:
        """Failed notifications, most recently failed first."""
        records = await self._store.list_failed(limit=limit)
        return [NotificationRead.model_validate(record) for record in records]

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def purge(self, days_to_keep: int | None = None) -> int:
        """Delete notifications created more than ``days_to_keep`` days ago."""
        days = self.retention_days if days_to_keep is None else days_to_keep
        if days < 0:
            raise ValidationException(
                detail="days_to_keep must not be negative",
                extra={"days_to_keep": days},
            )

        deleted = await self._store.purge_older_than(timedelta(days=days))
        notification_purged_total.inc(deleted)
        self.logger.info("Retention purge completed", extra={"days_to_keep": days, "deleted": deleted})
        return deleted

    async def health(self) -> HealthReport:
        """Queue-based health summary."""
        depth = self._processor.queue_depth
        return HealthReport(
            status="degraded" if depth >= self.queue_degraded_threshold else "healthy",
            queue_depth=depth,
            in_flight=self._processor.in_flight,
            running=self._processor.running,
            providers=[t.value for t in self._registry.available_types()],
            timestamp=utcnow(),
        )

    async def test_providers(self) -> dict[str, ConnectionResult]:
        """Connection test for every registered provider."""
        return await self._registry.test_connections()

    async def reconcile(self, stale_after: timedelta) -> int:
        """Requeue records stranded by a previous process.

        Pending records are requeued oldest first. Processing records not
        touched for ``stale_after`` go back to pending and are requeued
        after them.

        Returns:
            Number of requeued records.
        """
        requeued = 0
        for record in await self._store.list_by_status(NotificationStatus.PENDING):
            self._processor.enqueue(record.id)
            requeued += 1

        stale_before = utcnow() - stale_after
        stale = await self._store.list_by_status(NotificationStatus.PROCESSING, updated_before=stale_before)
        recovered = 0
        for record in stale:
            try:
                await self._store.update(
                    record.id,
                    {"status": NotificationStatus.PENDING},
                    expected_status=NotificationStatus.PROCESSING,
                )
            except (NotFoundError, UnexpectedStatusError):
                continue
            self._processor.enqueue(record.id)
            recovered += 1

        if requeued or recovered:
            self.logger.warning(
                "Reconciled notifications from a previous run",
                extra={"pending_requeued": requeued, "stale_processing_recovered": recovered},
            )
        return requeued + recovered


__all__ = ["DEFAULT_TIMEFRAME", "TIMEFRAMES", "NotificationService"]
