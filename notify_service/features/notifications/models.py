"""SQLAlchemy models and enums for the notifications feature."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from sqlalchemy import JSON, Index, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from notify_service.core.database import Base, TimestampMixin, UTCDateTime


class NotificationType(str, Enum):
    """Delivery channels with a provider implementation."""

    EMAIL = "email"
    SMS = "sms"
    PUSH = "push"
    WEBHOOK = "webhook"


class NotificationPriority(str, Enum):
    """Advisory priority; consumed by providers for formatting only."""

    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"


class NotificationStatus(str, Enum):
    """Lifecycle status.

    pending -> processing -> sent | failed, plus failed -> pending on retry.
    """

    PENDING = "pending"
    PROCESSING = "processing"
    SENT = "sent"
    FAILED = "failed"


class Notification(Base, TimestampMixin):
    """A single notification and its delivery outcome.

    ``type`` is stored as submitted: strings outside ``NotificationType``
    are accepted at submission and fail at dispatch time.

    Indexes:
        - status, type, recipient, priority, created_at for history filters
        - (status, updated_at) for startup reconciliation
    """

    __tablename__ = "notifications"

    id: Mapped[str] = mapped_column(
        String(64),
        primary_key=True,
        comment="Opaque notification identifier, immutable",
    )
    recipient: Mapped[str] = mapped_column(
        String(512),
        nullable=False,
        index=True,
        comment="Channel-specific address (email, phone, device token, URL)",
    )
    message: Mapped[str] = mapped_column(
        Text(),
        nullable=False,
        comment="Message body",
    )
    type: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        index=True,
        comment="Channel selector: email, sms, push, webhook",
    )
    priority: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        default=NotificationPriority.NORMAL.value,
        index=True,
        comment="Advisory priority: low, normal, high",
    )
    status: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        default=NotificationStatus.PENDING.value,
        index=True,
        comment="Lifecycle status: pending, processing, sent, failed",
    )
    meta: Mapped[dict[str, Any]] = mapped_column(
        "metadata",
        JSONB().with_variant(JSON(), "sqlite"),
        nullable=False,
        default=dict,
        comment="Provider-interpreted key-value payload",
    )
    provider_response: Mapped[dict[str, Any] | None] = mapped_column(
        JSONB().with_variant(JSON(), "sqlite"),
        nullable=True,
        comment="Delivery result of a successful send",
    )
    error: Mapped[str | None] = mapped_column(
        Text(),
        nullable=True,
        comment="Failure reason of the last dispatch",
    )
    retry_count: Mapped[int] = mapped_column(
        Integer(),
        nullable=False,
        default=0,
        comment="Number of retry submissions",
    )
    sent_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime(),
        nullable=True,
        comment="When the provider accepted the notification",
    )
    failed_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime(),
        nullable=True,
        comment="When the last dispatch failed",
    )

    __table_args__ = (
        Index("ix_notifications_created_at", "created_at"),
        Index("ix_notifications_status_updated_at", "status", "updated_at"),
    )

    def __repr__(self) -> str:
        return f"<Notification(id={self.id!r}, type={self.type!r}, status={self.status!r})>"


__all__ = [
    "Notification",
    "NotificationPriority",
    "NotificationStatus",
    "NotificationType",
]
