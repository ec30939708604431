"""Database primitives: declarative base, repository, session factory."""

from notify_service.core.database.base import NAMING_CONVENTION, Base, TimestampMixin, utcnow
from notify_service.core.database.exceptions import (
    DuplicateIdError,
    ImmutableFieldError,
    NotFoundError,
    RepositoryError,
)
from notify_service.core.database.repository import BaseRepository, SearchResult
from notify_service.core.database.types import UTCDateTime

__all__ = [
    "NAMING_CONVENTION",
    "Base",
    "BaseRepository",
    "DuplicateIdError",
    "ImmutableFieldError",
    "NotFoundError",
    "RepositoryError",
    "SearchResult",
    "TimestampMixin",
    "UTCDateTime",
    "utcnow",
]
