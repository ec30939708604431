"""Base service class for business logic."""

from __future__ import annotations

import logging

from notify_service.infra.logging import get_lazy_logger


class BaseService:
    """Base class for service-layer classes.

    Loggers:
        - self.logger: Standard logger for INFO/WARNING/ERROR (always evaluated)
        - self._lazy: Lazy logger for DEBUG (zero overhead when DEBUG disabled)

    Example:
            class NotificationService(BaseService):
            def __init__(self, store: NotificationStore):
                super().__init__()
                self.store = store

            async def status(self, notification_id: str) -> Notification:
                self.logger.info("Fetching status", extra={"notification_id": notification_id})
                return await self.store.get(notification_id)
    """

    def __init__(self) -> None:
        class_name = self.__class__.__name__
        self.logger = logging.getLogger(class_name)
        self._lazy = get_lazy_logger(class_name)
