"""Application runtime wiring."""

from notify_service.app.lifespan import NotificationRuntime, lifespan

__all__ = ["NotificationRuntime", "lifespan"]
