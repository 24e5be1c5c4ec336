"""Repository implementations for infrastructure layer."""

from .inbox_repository import InboxRepository
from .notification_preference_repository import NotificationPreferenceRepository
from .outbox_repository import OutboxFilters, OutboxRepository, OutboxStats
from .user_repository import UserRepository

__all__ = [
    "InboxRepository",
    "NotificationPreferenceRepository",
    "OutboxFilters",
    "OutboxRepository",
    "OutboxStats",
    "UserRepository",
]
