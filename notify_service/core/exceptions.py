"""Custom exception classes for the notification service."""

from __future__ import annotations

from typing import Any


class AppException(Exception):
    """Base application exception.

    All service-level exceptions inherit from this class. The fields follow
    RFC 7807 Problem Details so that a transport layer can render them
    without translation.

    Attributes:
        status_code: HTTP-equivalent status code for the error.
        detail: Human-readable error message.
        type: Error type identifier.
        title: Short, human-readable summary of the problem type.
        instance: Reference that identifies the specific occurrence.
        extra: Additional context-specific information about the error.

    Example:
            raise AppException(
            status_code=404,
            detail="Notification not found",
            type="notification-not-found",
            extra={"notification_id": "abc123"}
        )
    """

    def __init__(
        self,
        status_code: int,
        detail: str,
        type: str = "about:blank",
        title: str | None = None,
        instance: str | None = None,
        extra: dict[str, Any] | None = None,
    ) -> None:
        """Initialize application exception.

        Args:
            status_code: HTTP-equivalent status code.
            detail: Human-readable error message.
            type: Error type identifier.
            title: Short summary of the problem type.
            instance: Reference identifying this specific occurrence.
            extra: Additional context about the error.
        """
        self.status_code = status_code
        self.detail = detail
        self.type = type
        self.title = title or self._default_title(status_code)
        self.instance = instance
        self.extra = extra or {}
        super().__init__(detail)

    @staticmethod
    def _default_title(status_code: int) -> str:
        titles = {
            400: "Bad Request",
            404: "Not Found",
            409: "Conflict",
            422: "Unprocessable Entity",
            500: "Internal Server Error",
            503: "Service Unavailable",
        }
        return titles.get(status_code, "Error")

    def to_dict(self) -> dict[str, Any]:
        """Render the exception as a problem-details mapping."""
        problem: dict[str, Any] = {
            "type": self.type,
            "title": self.title,
            "status": self.status_code,
            "detail": self.detail,
        }
        if self.instance:
            problem["instance"] = self.instance
        if self.extra:
            problem.update(self.extra)
        return problem


class NotFoundException(AppException):
    """Raised when a notification is not found.

    Example:
            raise NotFoundException(
            detail="Notification abc123 not found",
            extra={"notification_id": "abc123"}
        )
    """

    def __init__(
        self,
        detail: str,
        type: str = "not-found",
        instance: str | None = None,
        extra: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            status_code=404,
            detail=detail,
            type=type,
            title="Not Found",
            instance=instance,
            extra=extra,
        )


class ValidationException(AppException):
    """Raised when a submission is missing required fields or carries invalid values.

    Rejected submissions never reach the store or the dispatch queue.
    """

    def __init__(
        self,
        detail: str,
        type: str = "validation-error",
        instance: str | None = None,
        extra: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            status_code=422,
            detail=detail,
            type=type,
            title="Validation Error",
            instance=instance,
            extra=extra,
        )


class InvalidStateException(AppException):
    """Raised when an operation is not allowed in the record's current status.

    Example:
            raise InvalidStateException(
            detail="Only failed notifications can be retried",
            extra={"notification_id": "abc123", "status": "sent"}
        )
    """

    def __init__(
        self,
        detail: str,
        type: str = "invalid-state",
        instance: str | None = None,
        extra: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            status_code=409,
            detail=detail,
            type=type,
            title="Conflict",
            instance=instance,
            extra=extra,
        )


class NoProviderForTypeException(AppException):
    """Raised when no enabled provider is registered for a notification type.

    The dispatch processor converts this into a failed delivery; it never
    reaches the submitting caller.
    """

    def __init__(
        self,
        notification_type: str,
        type: str = "no-provider-for-type",
        instance: str | None = None,
        extra: dict[str, Any] | None = None,
    ) -> None:
        self.notification_type = notification_type
        super().__init__(
            status_code=422,
            detail=f"No provider found for notification type: {notification_type}",
            type=type,
            title="Unprocessable Entity",
            instance=instance,
            extra={"notification_type": notification_type, **(extra or {})},
        )


__all__ = [
    "AppException",
    "InvalidStateException",
    "NoProviderForTypeException",
    "NotFoundException",
    "ValidationException",
]
