"""Pydantic schemas for the notifications feature."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, JsonValue, field_validator

from notify_service.features.notifications.models import NotificationPriority, NotificationStatus

# ============================================================================
# Submission
# ============================================================================


class NotificationRequest(BaseModel):
    """Payload accepted by ``NotificationService.submit``.

    Only presence of recipient, message and type is checked here; whether
    a provider can deliver the notification is decided at dispatch time.
    """

    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore")

    id: str | None = Field(
        default=None,
        min_length=1,
        max_length=64,
        description="Caller-supplied identifier; generated when omitted",
    )
    recipient: str = Field(
        ...,
        min_length=1,
        max_length=512,
        description="Channel-specific address (email, E.164 phone, device token, URL)",
    )
    message: str = Field(..., min_length=1, description="Message body")
    type: str = Field(
        ...,
        min_length=1,
        max_length=32,
        description="Channel selector: email, sms, push, webhook",
    )
    priority: NotificationPriority = Field(
        default=NotificationPriority.NORMAL,
        description="Advisory priority: low, normal, high",
    )
    metadata: dict[str, JsonValue] = Field(
        default_factory=dict,
        description="JSON-serializable provider options (subject, title, data, ...)",
    )

    @field_validator("priority", mode="before")
    @classmethod
    def _default_priority(cls, v: Any) -> Any:
        if v is None or v == "":
            return NotificationPriority.NORMAL
        return v

    @field_validator("metadata", mode="before")
    @classmethod
    def _default_metadata(cls, v: Any) -> Any:
        return {} if v is None else v


class SubmitResult(BaseModel):
    """Result of an accepted submission."""

    id: str
    status: Literal["queued"] = "queued"
    timestamp: datetime


class BulkItemResult(BaseModel):
    """Per-item result of a bulk submission, in input order."""

    index: int = Field(..., ge=0, description="Position of the item in the request list")
    id: str | None = Field(default=None, description="Notification id, when known")
    status: Literal["queued", "error"]
    error: str | None = None


class RetryResult(BaseModel):
    """Result of a retry submission."""

    id: str
    retry_count: int
    status: Literal["queued"] = "queued"


# ============================================================================
# Queries
# ============================================================================


class NotificationRead(BaseModel):
    """Full notification record."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    recipient: str
    message: str
    type: str
    priority: str
    status: str
    metadata: dict[str, Any] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("meta", "metadata"),
    )
    provider_response: dict[str, Any] | None = None
    error: str | None = None
    retry_count: int = 0
    created_at: datetime
    updated_at: datetime
    sent_at: datetime | None = None
    failed_at: datetime | None = None


class NotificationFilter(BaseModel):
    """History query filters with limit/offset pagination."""

    type: str | None = None
    status: NotificationStatus | None = None
    recipient: str | None = Field(
        default=None,
        description="Case-insensitive substring match on recipient",
    )
    created_from: datetime | None = Field(default=None, description="Inclusive lower bound")
    created_to: datetime | None = Field(default=None, description="Inclusive upper bound")
    limit: int = Field(default=50, ge=1, le=1000)
    offset: int = Field(default=0, ge=0)


class HistoryPage(BaseModel):
    """One page of notification history, newest first."""

    records: list[NotificationRead]
    total: int
    limit: int
    offset: int


class NotificationStats(BaseModel):
    """Aggregates over records created within a trailing window."""

    window_seconds: int
    since: datetime
    total: int = 0
    by_status: dict[str, int] = Field(default_factory=dict)
    by_type: dict[str, int] = Field(default_factory=dict)
    success_rate: float = Field(default=0.0, description="Sent / total, percent")
    failure_rate: float = Field(default=0.0, description="Failed / total, percent")
    avg_time_to_sent_seconds: float | None = Field(
        default=None,
        description="Mean of sent_at - created_at over records that were sent",
    )


class NotificationStatistics(NotificationStats):
    """Store aggregates plus live dispatcher state."""

    timeframe: str
    queue_depth: int
    in_flight: bool


class HealthReport(BaseModel):
    """Dispatcher health summary."""

    status: Literal["healthy", "degraded"]
    queue_depth: int
    in_flight: bool
    running: bool
    providers: list[str]
    timestamp: datetime


__all__ = [
    "BulkItemResult",
    "HealthReport",
    "HistoryPage",
    "NotificationFilter",
    "NotificationRead",
    "NotificationRequest",
    "NotificationStatistics",
    "NotificationStats",
    "RetryResult",
    "SubmitResult",
]
