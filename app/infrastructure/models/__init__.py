"""ORM models used by the application infrastructure."""

from .inbox_item import InboxItemModel
from .notification_outbox import NotificationOutboxModel
from .notification_preference import NotificationPreferenceModel
from .role import RoleModel
from .user import UserModel

__all__ = [
    "InboxItemModel",
    "NotificationOutboxModel",
    "NotificationPreferenceModel",
    "RoleModel",
    "UserModel",
]
