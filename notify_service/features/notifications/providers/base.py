"""Base provider protocol and abstract class.

Defines the contract every delivery channel implements:
``send``, ``test_connection`` and ``get_delivery_status``.

Usage:
    class MyProvider(BaseProvider):
        channel = NotificationType.EMAIL

        async def _do_send(self, notification: Notification) -> DeliveryResult:
            ...
"""

from __future__ import annotations

import dataclasses
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, ClassVar, Protocol, runtime_checkable

import httpx

from notify_service.features.notifications.metrics import notification_delivery_duration_seconds

if TYPE_CHECKING:
    from notify_service.features.notifications.models import Notification, NotificationType

logger = logging.getLogger(__name__)


def _iso_now() -> str:
    return datetime.now(UTC).isoformat()


@dataclass(frozen=True)
class DeliveryResult:
    """Result of a delivery attempt.

    Attributes:
        success: Whether the provider accepted the notification
        provider: Provider name (email, sms, push, webhook)
        message_id: Provider-assigned message ID, when one exists
        error: Error message if failed
        timestamp: ISO 8601 UTC time of the attempt
        duration_ms: Time taken by the provider call
        details: Provider-specific response data
    """

    success: bool
    provider: str
    message_id: str | None = None
    error: str | None = None
    timestamp: str = field(default_factory=_iso_now)
    duration_ms: int | None = None
    details: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.success and not self.error:
            object.__setattr__(self, "error", "Unknown error")

    @classmethod
    def success_result(
        cls,
        provider: str,
        message_id: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> DeliveryResult:
        """Create a successful delivery result."""
        return cls(success=True, provider=provider, message_id=message_id, details=details or {})

    @classmethod
    def failure_result(
        cls,
        provider: str,
        error: str,
        duration_ms: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> DeliveryResult:
        """Create a failed delivery result."""
        return cls(
            success=False,
            provider=provider,
            error=error,
            duration_ms=duration_ms,
            details=details or {},
        )

    def to_dict(self) -> dict[str, Any]:
        """JSON-serializable form, stored as ``provider_response``."""
        return dataclasses.asdict(self)


@dataclass(frozen=True)
class ConnectionResult:
    """Outcome of a provider connectivity check."""

    success: bool
    provider: str
    message: str | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return dataclasses.asdict(self)


@dataclass(frozen=True)
class DeliveryStatus:
    """Provider-side status of a previously sent message."""

    message_id: str
    status: str
    timestamp: str = field(default_factory=_iso_now)
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return dataclasses.asdict(self)


@runtime_checkable
class NotificationProvider(Protocol):
    """Protocol defining the delivery provider interface.

    Using Protocol allows duck typing and easier testing: anything with
    these coroutines can be registered.
    """

    @property
    def provider_name(self) -> str:
        """Provider name, equal to the channel value."""
        ...

    async def send(self, notification: Notification) -> DeliveryResult:
        """Deliver one notification. Never raises."""
        ...

    async def test_connection(self) -> ConnectionResult:
        """Check that the provider can reach its backend."""
        ...

    async def get_delivery_status(self, message_id: str) -> DeliveryStatus:
        """Look up the provider-side status of a sent message."""
        ...


class BaseProvider(ABC):
    """Abstract base class for delivery providers.

    Provides common functionality for all providers:
    - Timing measurement and duration metrics
    - Logging
    - Conversion of unexpected exceptions into failed results

    Subclasses must implement:
    - ``channel`` class attribute
    - _do_send(): Actual sending logic
    - _do_test_connection(): Connectivity check
    """

    channel: ClassVar[NotificationType]

    def __init__(self, app_name: str = "notification-service") -> None:
        """Initialize provider.

        Args:
            app_name: Application name used in subjects and signatures
        """
        self.app_name = app_name

    @property
    def provider_name(self) -> str:
        """Get the provider name."""
        return self.channel.value

    @abstractmethod
    async def _do_send(self, notification: Notification) -> DeliveryResult:
        """Implement the actual sending logic.

        May raise; ``send`` turns exceptions into failed results.
        """
        ...

    @abstractmethod
    async def _do_test_connection(self) -> ConnectionResult:
        """Implement the connectivity check."""
        ...

    async def send(self, notification: Notification) -> DeliveryResult:
        """Send a notification with timing and error handling.

        Args:
            notification: Record to deliver

        Returns:
            DeliveryResult; failures are reported, never raised
        """
        start_time = time.perf_counter()

        try:
            result = await self._do_send(notification)
        except Exception as e:
            duration_ms = int((time.perf_counter() - start_time) * 1000)
            logger.exception(
                f"Unexpected error in {self.provider_name} provider",
                extra={
                    "provider": self.provider_name,
                    "notification_id": notification.id,
                    "error": str(e),
                    "duration_ms": duration_ms,
                },
            )
            result = DeliveryResult.failure_result(
                provider=self.provider_name,
                error=str(e) or type(e).__name__,
                duration_ms=duration_ms,
            )
        else:
            if not isinstance(result, DeliveryResult):
                logger.error(
                    f"{self.provider_name} provider returned an invalid result",
                    extra={
                        "provider": self.provider_name,
                        "notification_id": notification.id,
                        "result_type": type(result).__name__,
                    },
                )
                result = DeliveryResult.failure_result(
                    provider=self.provider_name,
                    error=f"Invalid provider result: {type(result).__name__}",
                )

            if result.duration_ms is None:
                duration_ms = int((time.perf_counter() - start_time) * 1000)
                # Dataclass is frozen
                result = dataclasses.replace(result, duration_ms=duration_ms)

            if result.success:
                logger.info(
                    f"Notification sent via {self.provider_name}",
                    extra={
                        "provider": self.provider_name,
                        "notification_id": notification.id,
                        "message_id": result.message_id,
                        "duration_ms": result.duration_ms,
                    },
                )
            else:
                logger.warning(
                    f"Notification send failed via {self.provider_name}",
                    extra={
                        "provider": self.provider_name,
                        "notification_id": notification.id,
                        "error": result.error,
                        "duration_ms": result.duration_ms,
                    },
                )

        notification_delivery_duration_seconds.labels(channel=self.provider_name).observe(
            time.perf_counter() - start_time
        )
        return result

    async def test_connection(self) -> ConnectionResult:
        """Check connectivity with logging.

        Returns:
            ConnectionResult; errors are reported, never raised
        """
        try:
            result = await self._do_test_connection()
        except Exception as e:
            logger.warning(
                f"{self.provider_name} connection test failed",
                extra={"provider": self.provider_name, "error": str(e)},
            )
            return ConnectionResult(success=False, provider=self.provider_name, error=str(e))

        logger.debug(
            f"{self.provider_name} connection test: {'ok' if result.success else 'failed'}",
            extra={"provider": self.provider_name, "success": result.success},
        )
        return result

    async def get_delivery_status(self, message_id: str) -> DeliveryStatus:
        """Default status lookup for channels without delivery tracking."""
        return DeliveryStatus(message_id=message_id, status="unknown")

    async def aclose(self) -> None:
        """Release network resources held by the provider."""
        return None


class HttpProvider(BaseProvider):
    """Base for providers that talk to an HTTP API through ``httpx``.

    The client is created lazily unless one is injected; injected clients
    are not closed by ``aclose``.
    """

    def __init__(
        self,
        app_name: str = "notification-service",
        *,
        timeout_seconds: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        super().__init__(app_name)
        self.timeout_seconds = timeout_seconds
        self._client = client
        self._owns_client = client is None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout_seconds)
        return self._client

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None


__all__ = [
    "BaseProvider",
    "ConnectionResult",
    "DeliveryResult",
    "DeliveryStatus",
    "HttpProvider",
    "NotificationProvider",
]
