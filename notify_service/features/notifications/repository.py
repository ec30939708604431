"""Repository for the notifications feature."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import Select, func, select

from notify_service.core.database.repository import BaseRepository
from notify_service.features.notifications.models import Notification, NotificationStatus

if TYPE_CHECKING:
    from collections.abc import Sequence
    from datetime import datetime

    from sqlalchemy.ext.asyncio import AsyncSession
    from sqlalchemy.orm import InstrumentedAttribute

    from notify_service.core.database.repository import SearchResult
    from notify_service.features.notifications.schemas import NotificationFilter


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class NotificationRepository(BaseRepository[Notification]):
    """Repository for Notification model.

    Builds history, statistics, retention and reconciliation queries.
    Sessions are passed in and never committed here.
    """

    def __init__(self) -> None:
        """Initialize with Notification model."""
        super().__init__(Notification)

    def build_history_statement(self, filters: NotificationFilter) -> Select[tuple[Notification]]:
        """Build the filtered history query, newest first.

        Args:
            filters: History filters; ``recipient`` matches as a
                case-insensitive substring, the created range is inclusive.

        Returns:
            Select statement without pagination applied.
        """
        stmt = select(Notification)

        if filters.type:
            stmt = stmt.where(Notification.type == filters.type)
        if filters.status is not None:
            stmt = stmt.where(Notification.status == filters.status.value)
        if filters.recipient:
            pattern = f"%{_escape_like(filters.recipient)}%"
            stmt = stmt.where(Notification.recipient.ilike(pattern, escape="\\"))
        if filters.created_from is not None:
            stmt = stmt.where(Notification.created_at >= filters.created_from)
        if filters.created_to is not None:
            stmt = stmt.where(Notification.created_at <= filters.created_to)

        return stmt.order_by(Notification.created_at.desc(), Notification.id.desc())

    async def list_history(
        self,
        session: AsyncSession,
        filters: NotificationFilter,
    ) -> SearchResult[Notification]:
        """Execute the history query with limit/offset pagination."""
        stmt = self.build_history_statement(filters)
        return await self.search(session, stmt, limit=filters.limit, offset=filters.offset)

    async def count_by(
        self,
        session: AsyncSession,
        column: InstrumentedAttribute[str],
        since: datetime,
    ) -> dict[str, int]:
        """Count records created at or after ``since``, grouped by a column.

        Args:
            session: Database session
            column: Grouping column (``Notification.status`` or ``Notification.type``)
            since: Lower bound on ``created_at``

        Returns:
            Mapping of column value to row count; absent values are omitted
        """
        stmt = (
            select(column, func.count())
            .where(Notification.created_at >= since)
            .group_by(column)
        )
        result = await session.execute(stmt)
        counts = {str(value): int(count) for value, count in result.all()}

        self._lazy.debug(lambda: f"db.count_by({column.key}, since={since.isoformat()}) -> {counts}")
        return counts

    async def mean_time_to_sent(self, session: AsyncSession, since: datetime) -> float | None:
        """Mean of ``sent_at - created_at`` in seconds for sent records.

        Timestamps are subtracted in Python so the result does not depend
        on the dialect's date arithmetic.

        Returns:
            Mean duration in seconds, or None when no record was sent
        """
        stmt = select(Notification.created_at, Notification.sent_at).where(
            Notification.created_at >= since,
            Notification.sent_at.is_not(None),
        )
        rows = (await session.execute(stmt)).all()
        if not rows:
            return None

        total = sum((sent_at - created_at).total_seconds() for created_at, sent_at in rows)
        return total / len(rows)

    async def delete_created_before(self, session: AsyncSession, cutoff: datetime) -> int:
        """Delete records created strictly before ``cutoff``."""
        return await self.delete_where(session, Notification.created_at < cutoff)

    async def list_failed(self, session: AsyncSession, *, limit: int = 100) -> Sequence[Notification]:
        """List failed records, most recently failed first."""
        stmt = (
            select(Notification)
            .where(Notification.status == NotificationStatus.FAILED.value)
            .order_by(Notification.failed_at.desc(), Notification.created_at.desc())
            .limit(limit)
        )
        result = await session.execute(stmt)
        items = result.scalars().all()

        self._lazy.debug(lambda: f"db.list_failed(limit={limit}) -> {len(items)} items")
        return items

    async def list_by_status(
        self,
        session: AsyncSession,
        status: NotificationStatus,
        *,
        updated_before: datetime | None = None,
        limit: int | None = None,
    ) -> Sequence[Notification]:
        """List records in one status, oldest first.

        Args:
            session: Database session
            status: Status to match
            updated_before: Only records whose ``updated_at`` is older than this
            limit: Maximum number of records, unbounded when None

        Returns:
            Matching records ordered by ``created_at`` ascending
        """
        stmt = select(Notification).where(Notification.status == status.value)
        if updated_before is not None:
            stmt = stmt.where(Notification.updated_at < updated_before)
        stmt = stmt.order_by(Notification.created_at.asc(), Notification.id.asc())
        if limit is not None:
            stmt = stmt.limit(limit)

        result = await session.execute(stmt)
        items = result.scalars().all()

        self._lazy.debug(
            lambda: f"db.list_by_status({status.value}, updated_before={updated_before}) -> {len(items)} items"
        )
        return items


__all__ = ["NotificationRepository"]
