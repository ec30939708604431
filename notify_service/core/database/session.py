"""Async engine and session factory management."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from notify_service.core.database.base import Base

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine

    from notify_service.core.settings.database import DatabaseSettings

logger = logging.getLogger(__name__)


def create_engine(settings: DatabaseSettings) -> AsyncEngine:
    """Create the async engine for the notification store.

    SQLite connections get a busy timeout so concurrent writers to
    different rows wait for the database lock instead of failing.

    Args:
        settings: Database settings.

    Returns:
        Configured AsyncEngine.
    """
    connect_args: dict[str, Any] = {}
    if settings.is_sqlite:
        connect_args["timeout"] = settings.busy_timeout_seconds

    engine = create_async_engine(
        settings.url,
        echo=settings.echo,
        connect_args=connect_args,
    )

    logger.info(
        "Database engine created",
        extra={"dialect": engine.dialect.name, "echo": settings.echo},
    )
    return engine


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create the session factory used by the notification store."""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


async def init_models(engine: AsyncEngine) -> None:
    """Create missing tables for every registered model."""
    # Import models so they register on Base.metadata
    import notify_service.features.notifications.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables created/verified")


__all__ = ["create_engine", "create_session_factory", "init_models"]
