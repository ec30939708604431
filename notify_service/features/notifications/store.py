"""Durable notification record store.

``NotificationStore`` is the single source of truth for notification
status. Every operation opens its own session and commits before
returning; mutations on one id are serialized by a per-id lock so a
read/modify/commit cycle never interleaves with another write to the
same record.
"""

from __future__ import annotations

import asyncio
import logging
import weakref
from datetime import timedelta
from enum import Enum
from typing import TYPE_CHECKING, Any

from notify_service.core.database import (
    ImmutableFieldError,
    NotFoundError,
    RepositoryError,
    utcnow,
)
from notify_service.features.notifications.models import (
    Notification,
    NotificationStatus,
    NotificationType,
)
from notify_service.features.notifications.repository import NotificationRepository
from notify_service.features.notifications.schemas import NotificationFilter, NotificationStats
from notify_service.infra.logging import get_lazy_logger

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence
    from datetime import datetime

    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from notify_service.core.database import SearchResult

logger = logging.getLogger(__name__)
_lazy = get_lazy_logger(__name__)

IMMUTABLE_FIELDS = frozenset({"id", "type", "created_at"})
MUTABLE_FIELDS = frozenset(
    {
        "recipient",
        "message",
        "meta",
        "priority",
        "status",
        "provider_response",
        "error",
        "retry_count",
        "sent_at",
        "failed_at",
    }
)
# Accepted patch keys that differ from the mapped attribute name
_PATCH_ALIASES = {"metadata": "meta"}


class UnexpectedStatusError(RepositoryError):
    """Conditional update found the record in a different status."""

    def __init__(self, identifier: str, expected: str, actual: str):
        self.identifier = identifier
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Notification {identifier!r} is {actual!r}, expected {expected!r}",
            details={"id": identifier, "expected": expected, "actual": actual},
        )


def _normalize_patch(patch: Mapping[str, Any]) -> dict[str, Any]:
    values: dict[str, Any] = {}
    for key, value in patch.items():
        values[_PATCH_ALIASES.get(key, key)] = value.value if isinstance(value, Enum) else value

    immutable = sorted(IMMUTABLE_FIELDS.intersection(values))
    if immutable:
        raise ImmutableFieldError("Notification", immutable)

    unknown = sorted(set(values) - MUTABLE_FIELDS - {"updated_at"})
    if unknown:
        raise RepositoryError("Unknown notification fields in patch", details={"fields": unknown})
    return values


class NotificationStore:
    """Async store for notification records.

    Args:
        session_factory: Session factory bound to the notification database.
        repository: Query builder; a default ``NotificationRepository`` when omitted.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        repository: NotificationRepository | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._repository = repository or NotificationRepository()
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = weakref.WeakValueDictionary()

    def _lock_for(self, notification_id: str) -> asyncio.Lock:
        lock = self._locks.get(notification_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[notification_id] = lock
        return lock

    async def persist(self, notification: Notification) -> Notification:
        """Insert a new record.

        Raises:
            DuplicateIdError: If a record with the same id already exists.
        """
        async with self._lock_for(notification.id):
            async with self._session_factory() as session, session.begin():
                await self._repository.create(session, notification)

        _lazy.debug(lambda: f"store.persist: {notification.id} ({notification.type}, {notification.status})")
        return notification

    async def update(
        self,
        notification_id: str,
        patch: Mapping[str, Any],
        *,
        expected_status: NotificationStatus | None = None,
    ) -> Notification:
        """Merge ``patch`` into a record and bump ``updated_at``.

        Args:
            notification_id: Record id.
            patch: Column values to write; enum members are stored by value,
                ``metadata`` is accepted as an alias of ``meta``.
            expected_status: When given, the write only happens if the record
                is currently in this status.

        Returns:
            The updated record.

        Raises:
            ImmutableFieldError: If the patch touches id, type or created_at.
            NotFoundError: If no record has this id.
            UnexpectedStatusError: If ``expected_status`` does not match.
        """
        values = _normalize_patch(patch)
        values["updated_at"] = utcnow()

        async with self._lock_for(notification_id):
            async with self._session_factory() as session, session.begin():
                if expected_status is not None:
                    current = await self._repository.get_or_raise(session, notification_id)
                    if current.status != expected_status.value:
                        raise UnexpectedStatusError(notification_id, expected_status.value, current.status)
                record = await self._repository.update_by_id(session, notification_id, values)

        _lazy.debug(lambda: f"store.update: {notification_id} <- {sorted(values)}")
        return record

    async def get(self, notification_id: str) -> Notification | None:
        """Fetch one record, or None when absent."""
        async with self._session_factory() as session:
            return await self._repository.get(session, notification_id)

    async def list(self, filters: NotificationFilter | None = None) -> SearchResult[Notification]:
        """List records newest first with optional filters and pagination."""
        filters = filters or NotificationFilter()
        async with self._session_factory() as session:
            return await self._repository.list_history(session, filters)

    async def aggregate_stats(self, window: timedelta) -> NotificationStats:
        """Aggregate records created within the trailing ``window``.

        Status keys are always all present; type keys cover the known
        channels plus any other stored type string.
        """
        since = utcnow() - window
        async with self._session_factory() as session:
            status_counts = await self._repository.count_by(session, Notification.status, since)
            type_counts = await self._repository.count_by(session, Notification.type, since)
            avg_time_to_sent = await self._repository.mean_time_to_sent(session, since)

        by_status = {status.value: status_counts.get(status.value, 0) for status in NotificationStatus}
        by_type = {kind.value: 0 for kind in NotificationType}
        by_type.update(type_counts)

        total = sum(status_counts.values())
        sent = by_status[NotificationStatus.SENT.value]
        failed = by_status[NotificationStatus.FAILED.value]

        return NotificationStats(
            window_seconds=int(window.total_seconds()),
            since=since,
            total=total,
            by_status=by_status,
            by_type=by_type,
            success_rate=round(sent / total * 100, 2) if total else 0.0,
            failure_rate=round(failed / total * 100, 2) if total else 0.0,
            avg_time_to_sent_seconds=avg_time_to_sent,
        )

    async def purge_older_than(self, age: timedelta) -> int:
        """Delete records created before ``now - age``.

        Returns:
            Number of deleted records.
        """
        if age < timedelta(0):
            raise ValueError("Purge age must not be negative")

        cutoff = utcnow() - age
        async with self._session_factory() as session, session.begin():
            deleted = await self._repository.delete_created_before(session, cutoff)

        logger.info(
            "Purged old notifications",
            extra={"deleted": deleted, "cutoff": cutoff.isoformat()},
        )
        return deleted

    async def list_failed(self, limit: int = 100) -> Sequence[Notification]:
        """Failed records, most recently failed first."""
        async with self._session_factory() as session:
            return await self._repository.list_failed(session, limit=limit)

    async def list_by_status(
        self,
        status: NotificationStatus,
        updated_before: datetime | None = None,
        limit: int | None = None,
    ) -> Sequence[Notification]:
        """Records in ``status``, oldest first."""
        async with self._session_factory() as session:
            return await self._repository.list_by_status(
                session,
                status,
                updated_before=updated_before,
                limit=limit,
            )


__all__ = [
    "IMMUTABLE_FIELDS",
    "MUTABLE_FIELDS",
    "NotificationStore",
    "UnexpectedStatusError",
]
