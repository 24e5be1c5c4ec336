"""Aggregate application use cases."""

from .notifications import NotificationService, dispatch_event, get_notification_service

__all__ = [
    "NotificationService",
    "dispatch_event",
    "get_notification_service",
]
