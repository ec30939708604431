"""Dispatch queue and processor settings.

Controls the batch cadence of the in-process dispatcher, the health
threshold for queue depth, startup reconciliation and record retention.
"""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class DispatchSettings(BaseSettings):
    """Configuration for the notification dispatch processor.

    Environment variables use DISPATCH_ prefix.
    Example: DISPATCH_BATCH_SIZE=50, DISPATCH_INTERVAL_SECONDS=0.5
    """

    batch_size: int = Field(
        default=100,
        ge=1,
        le=10_000,
        description="Maximum notifications dispatched per tick",
    )
    interval_seconds: float = Field(
        default=1.0,
        gt=0.0,
        le=3600.0,
        description="Seconds between processor ticks",
    )
    queue_degraded_threshold: int = Field(
        default=1000,
        ge=1,
        description="Queue depth at which health reports 'degraded'",
    )

    # Startup reconciliation
    reconcile_on_startup: bool = Field(
        default=True,
        description="Requeue pending and stale processing records when the runtime starts",
    )
    stale_processing_seconds: int = Field(
        default=300,
        ge=0,
        description="Age after which a 'processing' record is considered abandoned",
    )

    # Retention
    retention_days: int = Field(
        default=30,
        ge=1,
        le=3650,
        description="Default age in days for the retention purge",
    )

    model_config = SettingsConfigDict(
        env_prefix="DISPATCH_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
    )


__all__ = ["DispatchSettings"]
