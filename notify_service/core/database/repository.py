"""Minimal generic repository for SQLAlchemy models.

Provides basic CRUD operations with explicit session passing. For complex
queries, use the session directly: this is a convenience, not a cage.

Example:
    class NotificationRepository(BaseRepository[Notification]):
        async def find_failed(self, session: AsyncSession) -> Sequence[Notification]:
            stmt = select(Notification).where(Notification.status == "failed")
            result = await session.execute(stmt)
            return result.scalars().all()
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Generic, TypeVar, cast

from sqlalchemy import Select, func, select
from sqlalchemy import delete as sql_delete
from sqlalchemy import update as sql_update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from notify_service.core.database.exceptions import DuplicateIdError, NotFoundError, RepositoryError
from notify_service.infra.logging import get_lazy_logger

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from sqlalchemy.ext.asyncio import AsyncSession
    from sqlalchemy.orm import InstrumentedAttribute
    from sqlalchemy.sql import ColumnElement

T = TypeVar("T")


@dataclass(slots=True, frozen=True)
class SearchResult(Generic[T]):
    """Paginated search result container.

    Attributes:
        items: List of items for current page
        total: Total count across all pages
        limit: Page size
        offset: Current offset
    """

    items: Sequence[T]
    total: int
    limit: int
    offset: int

    @property
    def page(self) -> int:
        """Current page number (1-indexed)."""
        return (self.offset // self.limit) + 1 if self.limit else 1

    @property
    def pages(self) -> int:
        """Total number of pages."""
        if self.limit == 0:
            return 1
        return (self.total + self.limit - 1) // self.limit

    @property
    def has_next(self) -> bool:
        """Whether there are more pages after current."""
        return self.offset + len(self.items) < self.total


class BaseRepository(Generic[T]):
    """Minimal generic repository for CRUD operations.

    Provides:
        - get(session, id) -> T | None
        - get_or_raise(session, id) -> T (raises NotFoundError)
        - search(session, statement, limit, offset) -> SearchResult[T]
        - create(session, instance) -> T (raises DuplicateIdError)
        - update_by_id(session, id, values) -> T (raises NotFoundError)
        - delete_where(session, *criteria) -> int

    Session is always explicit; committing is the caller's job.
    """

    __slots__ = ("_lazy", "_logger", "model")

    def __init__(self, model: type[T]) -> None:
        """Initialize repository with model class.

        Args:
            model: SQLAlchemy model class
        """
        self.model = model
        self._logger = logging.getLogger(f"repository.{model.__name__}")
        # Lazy logger for DEBUG (zero overhead when DEBUG disabled)
        self._lazy = get_lazy_logger(f"repository.{model.__name__}")

    async def get(self, session: AsyncSession, id: Any) -> T | None:  # noqa: A002
        """Get entity by primary key.

        Args:
            session: Database session
            id: Primary key value

        Returns:
            Entity if found, None otherwise
        """
        instance = await session.get(self.model, id)
        self._lazy.debug(
            lambda: f"db.get: {self.model.__name__}({id}) -> {'found' if instance else 'not found'}"
        )
        return instance

    async def get_or_raise(self, session: AsyncSession, id: Any) -> T:  # noqa: A002
        """Get entity by primary key or raise NotFoundError.

        Raises:
            NotFoundError: If entity doesn't exist
        """
        instance = await self.get(session, id)
        if instance is None:
            self._logger.info(
                "Entity not found",
                extra={
                    "entity": self.model.__name__,
                    "id": str(id),
                    "operation": "db.get_or_raise",
                },
            )
            raise NotFoundError(self.model.__name__, {"id": id})
        return instance

    async def search(
        self,
        session: AsyncSession,
        statement: Select[tuple[T]],
        *,
        limit: int = 50,
        offset: int = 0,
    ) -> SearchResult[T]:
        """Execute paginated search with total count.

        Takes a pre-built statement (filters and ordering applied) and adds
        pagination.

        Args:
            session: Database session
            statement: SQLAlchemy select statement
            limit: Page size
            offset: Results to skip

        Returns:
            SearchResult with items, total count, and pagination info
        """
        count_stmt = select(func.count()).select_from(statement.order_by(None).subquery())
        total = (await session.execute(count_stmt)).scalar_one()

        result = await session.execute(statement.limit(limit).offset(offset))
        items = result.scalars().all()

        search_result = SearchResult(items=items, total=total, limit=limit, offset=offset)
        self._lazy.debug(
            lambda: f"db.search: {self.model.__name__}(limit={limit}, offset={offset}) -> {len(items)}/{total} items, page {search_result.page}/{search_result.pages}"
        )
        return search_result

    async def create(self, session: AsyncSession, instance: T) -> T:
        """Persist a new entity.

        Adds to session and flushes so primary key conflicts surface here
        rather than at commit time.

        Args:
            session: Database session
            instance: Entity instance to persist

        Returns:
            Persisted entity

        Raises:
            DuplicateIdError: If the primary key already exists
            RepositoryError: If the row cannot be written for any other reason
        """
        entity_id = getattr(instance, "id", None)
        session.add(instance)
        try:
            await session.flush()
        except IntegrityError as exc:
            raise DuplicateIdError(self.model.__name__, entity_id) from exc
        except SQLAlchemyError as exc:
            raise RepositoryError(
                f"Failed to create {self.model.__name__}",
                details={"model": self.model.__name__, "id": entity_id, "error": str(exc)},
            ) from exc

        self._lazy.debug(lambda: f"db.create: {self.model.__name__}(id={entity_id})")
        return instance

    async def update_by_id(
        self,
        session: AsyncSession,
        id: Any,  # noqa: A002
        values: Mapping[str, Any],
    ) -> T:
        """Apply column values to one row and return the refreshed entity.

        Issues a single UPDATE statement so the write itself is atomic.

        Raises:
            NotFoundError: If no row has this primary key
        """
        pk_attr = self._pk_attr()
        stmt = (
            sql_update(self.model)
            .where(pk_attr == id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = await session.execute(stmt)
        if result.rowcount == 0:
            raise NotFoundError(self.model.__name__, {"id": id})

        instance = await session.get(self.model, id, populate_existing=True)
        if instance is None:
            raise NotFoundError(self.model.__name__, {"id": id})

        self._lazy.debug(
            lambda: f"db.update_by_id: {self.model.__name__}({id}) <- {sorted(values)}"
        )
        return instance

    async def delete_where(self, session: AsyncSession, *criteria: ColumnElement[bool]) -> int:
        """Delete all rows matching the criteria in a single statement.

        Returns:
            Number of rows deleted
        """
        stmt = sql_delete(self.model).where(*criteria)
        result = await session.execute(stmt)
        deleted_count: int = result.rowcount or 0

        # WARNING level for bulk deletes > 10 (audit-worthy)
        if deleted_count > 10:
            self._logger.warning(
                "Bulk delete executed",
                extra={
                    "entity": self.model.__name__,
                    "deleted": deleted_count,
                    "operation": "db.delete_where",
                },
            )
        else:
            self._lazy.debug(
                lambda: f"db.delete_where: {self.model.__name__} -> {deleted_count} deleted"
            )
        return deleted_count

    def _pk_attr(self) -> InstrumentedAttribute[Any]:
        attr = getattr(self.model, "id", None)
        if attr is None:
            msg = f"{self.model.__name__} has no 'id' attribute"
            raise AttributeError(msg)
        return cast("InstrumentedAttribute[Any]", attr)


__all__ = ["BaseRepository", "SearchResult"]
