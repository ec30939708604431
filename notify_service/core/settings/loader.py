"""LRU-cached settings loaders.

Settings are loaded and validated once, then cached for the lifetime of
the process.

Usage:
    from notify_service.core.settings import get_dispatch_settings

    settings = get_dispatch_settings()  # First call: loads and validates
    settings = get_dispatch_settings()  # Subsequent calls: cached instance

Testing:
    Clear the cache to force a reload after changing the environment:
    get_dispatch_settings.cache_clear()

    Or construct settings directly:
    settings = DispatchSettings(batch_size=5)
"""

from __future__ import annotations

from functools import lru_cache

from .app import AppSettings
from .database import DatabaseSettings
from .dispatch import DispatchSettings
from .logs import LoggingSettings
from .providers import EmailSettings, PushSettings, SmsSettings, WebhookSettings


@lru_cache(maxsize=1)
def get_app_settings() -> AppSettings:
    """Get cached application settings.

    Returns:
        Validated and frozen AppSettings instance.
    """
    return AppSettings()


@lru_cache(maxsize=1)
def get_db_settings() -> DatabaseSettings:
    """Get cached database settings.

    Returns:
        Validated and frozen DatabaseSettings instance.
    """
    return DatabaseSettings()


@lru_cache(maxsize=1)
def get_dispatch_settings() -> DispatchSettings:
    """Get cached dispatch processor settings."""
    return DispatchSettings()


@lru_cache(maxsize=1)
def get_logging_settings() -> LoggingSettings:
    """Get cached logging settings."""
    return LoggingSettings()


@lru_cache(maxsize=1)
def get_email_settings() -> EmailSettings:
    """Get cached email channel settings."""
    return EmailSettings()


@lru_cache(maxsize=1)
def get_sms_settings() -> SmsSettings:
    """Get cached SMS channel settings."""
    return SmsSettings()


@lru_cache(maxsize=1)
def get_push_settings() -> PushSettings:
    """Get cached push channel settings."""
    return PushSettings()


@lru_cache(maxsize=1)
def get_webhook_settings() -> WebhookSettings:
    """Get cached webhook channel settings."""
    return WebhookSettings()


def clear_all_caches() -> None:
    """Drop every cached settings instance (used by tests and the CLI)."""
    for loader in (
        get_app_settings,
        get_db_settings,
        get_dispatch_settings,
        get_logging_settings,
        get_email_settings,
        get_sms_settings,
        get_push_settings,
        get_webhook_settings,
    ):
        loader.cache_clear()
