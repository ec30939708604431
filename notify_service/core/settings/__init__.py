"""Modular Pydantic Settings v2 configuration.

Settings are split by domain (app, database, dispatch, logging and one
class per delivery channel), each with its own environment prefix, and
loaded through cached loaders:

    from notify_service.core.settings import get_dispatch_settings

Configuration precedence (highest to lowest):
    1. init kwargs (testing/overrides)
    2. Environment variables
    3. .env file
"""

from __future__ import annotations

from .app import AppSettings
from .database import DatabaseSettings
from .dispatch import DispatchSettings
from .loader import (
    clear_all_caches,
    get_app_settings,
    get_db_settings,
    get_dispatch_settings,
    get_email_settings,
    get_logging_settings,
    get_push_settings,
    get_sms_settings,
    get_webhook_settings,
)
from .logs import LoggingSettings
from .providers import EmailSettings, PushSettings, SmsSettings, WebhookSettings

__all__ = [
    "AppSettings",
    "DatabaseSettings",
    "DispatchSettings",
    "EmailSettings",
    "LoggingSettings",
    "PushSettings",
    "SmsSettings",
    "WebhookSettings",
    "clear_all_caches",
    "get_app_settings",
    "get_db_settings",
    "get_dispatch_settings",
    "get_email_settings",
    "get_logging_settings",
    "get_push_settings",
    "get_sms_settings",
    "get_webhook_settings",
]
