"""Delivery providers, one per notification channel."""

from notify_service.features.notifications.providers.base import (
    BaseProvider,
    ConnectionResult,
    DeliveryResult,
    DeliveryStatus,
    HttpProvider,
    NotificationProvider,
)
from notify_service.features.notifications.providers.email import EmailProvider
from notify_service.features.notifications.providers.push import PushProvider
from notify_service.features.notifications.providers.registry import ProviderRegistry
from notify_service.features.notifications.providers.sms import SmsProvider
from notify_service.features.notifications.providers.webhook import WebhookProvider

__all__ = [
    "BaseProvider",
    "ConnectionResult",
    "DeliveryResult",
    "DeliveryStatus",
    "EmailProvider",
    "HttpProvider",
    "NotificationProvider",
    "ProviderRegistry",
    "PushProvider",
    "SmsProvider",
    "WebhookProvider",
]
