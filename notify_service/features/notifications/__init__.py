"""Notification dispatch feature.

Submitted notifications are persisted as ``pending``, queued in memory and
dispatched in batches by ``DispatchProcessor`` to the provider registered
for their type. ``NotificationService`` is the public entry point.
"""

from notify_service.features.notifications.models import (
    Notification,
    NotificationPriority,
    NotificationStatus,
    NotificationType,
)
from notify_service.features.notifications.processor import BatchOutcome, DispatchProcessor
from notify_service.features.notifications.providers import ProviderRegistry
from notify_service.features.notifications.schemas import (
    NotificationFilter,
    NotificationRead,
    NotificationRequest,
)
from notify_service.features.notifications.service import NotificationService
from notify_service.features.notifications.store import NotificationStore

__all__ = [
    "BatchOutcome",
    "DispatchProcessor",
    "Notification",
    "NotificationFilter",
    "NotificationPriority",
    "NotificationRead",
    "NotificationRequest",
    "NotificationService",
    "NotificationStatus",
    "NotificationStore",
    "NotificationType",
    "ProviderRegistry",
]
