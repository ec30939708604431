"""Database repository exceptions.

Custom exceptions for repository operations that provide better
error messages and typing than raw SQLAlchemy exceptions.
"""

from __future__ import annotations

from typing import Any


class RepositoryError(Exception):
    """Base exception for repository operations."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        """Initialize repository error.

        Args:
            message: Error description
            details: Additional context about the error
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            details_str = ", ".join(f"{k}={v!r}" for k, v in self.details.items())
            return f"{self.message} ({details_str})"
        return self.message


class NotFoundError(RepositoryError):
    """Entity not found in database.

    Attributes:
        model_name: Name of the model class that wasn't found
        identifier: The key/value that was searched for
    """

    def __init__(self, model_name: str, identifier: dict[str, Any]):
        self.model_name = model_name
        self.identifier = identifier

        id_str = ", ".join(f"{k}={v!r}" for k, v in identifier.items())
        super().__init__(
            f"{model_name} not found with {id_str}",
            details={"model": model_name, **identifier},
        )

    def __repr__(self) -> str:
        return f"NotFoundError(model={self.model_name!r}, identifier={self.identifier!r})"


class DuplicateIdError(RepositoryError):
    """Entity with the same primary key already exists.

    Raised on insert when the primary key collides with an existing row.
    Generated ids never collide, so seeing this for a generated id points
    at a defect in id generation.
    """

    def __init__(self, model_name: str, identifier: Any):
        self.model_name = model_name
        self.identifier = identifier
        super().__init__(
            f"{model_name} already exists with id={identifier!r}",
            details={"model": model_name, "id": identifier},
        )


class ImmutableFieldError(RepositoryError):
    """Attempt to patch a column that must never change after creation."""

    def __init__(self, model_name: str, fields: list[str]):
        self.model_name = model_name
        self.fields = fields
        super().__init__(
            f"Cannot modify immutable fields of {model_name}",
            details={"model": model_name, "fields": fields},
        )


__all__ = [
    "DuplicateIdError",
    "ImmutableFieldError",
    "NotFoundError",
    "RepositoryError",
]
