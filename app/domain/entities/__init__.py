"""Domain entities exposed by the application."""

from .inbox_item import InboxItem
from .notification_event import (
    BATCH_GROUP_COMMUNITY,
    BATCH_GROUP_DM,
    BATCH_GROUP_PROJECT_TIMELINE,
    BATCH_GROUPS,
    DEFAULT_BATCH_WINDOWS,
    EVENT_CATEGORIES,
    IMMEDIATE_EMAIL_EVENTS,
    DispatchResult,
    InboxCategory,
    NotificationEvent,
    NotificationEventType,
    NotificationPersistenceError,
    NotificationValidationError,
    category_for,
)
from .notification_preference import (
    EMAIL_MODE_BATCHED,
    EMAIL_MODE_IMMEDIATE,
    EMAIL_MODES,
    NotificationPreference,
)
from .outbox_record import (
    MAX_RETRY_COUNT,
    OUTBOX_CHANNEL_EMAIL,
    OUTBOX_CHANNEL_INBOX,
    OUTBOX_CHANNELS,
    OUTBOX_STATUS_FAILED,
    OUTBOX_STATUS_PENDING,
    OUTBOX_STATUS_SENT,
    OUTBOX_STATUSES,
    OutboxRecord,
    compute_backoff_delay,
)
from .role import Role
from .user import User

__all__ = [
    "BATCH_GROUPS",
    "BATCH_GROUP_COMMUNITY",
    "BATCH_GROUP_DM",
    "BATCH_GROUP_PROJECT_TIMELINE",
    "DEFAULT_BATCH_WINDOWS",
    "DispatchResult",
    "EMAIL_MODES",
    "EMAIL_MODE_BATCHED",
    "EMAIL_MODE_IMMEDIATE",
    "EVENT_CATEGORIES",
    "IMMEDIATE_EMAIL_EVENTS",
    "InboxCategory",
    "InboxItem",
    "MAX_RETRY_COUNT",
    "NotificationEvent",
    "NotificationEventType",
    "NotificationPersistenceError",
    "NotificationPreference",
    "NotificationValidationError",
    "OUTBOX_CHANNELS",
    "OUTBOX_CHANNEL_EMAIL",
    "OUTBOX_CHANNEL_INBOX",
    "OUTBOX_STATUSES",
    "OUTBOX_STATUS_FAILED",
    "OUTBOX_STATUS_PENDING",
    "OUTBOX_STATUS_SENT",
    "OutboxRecord",
    "Role",
    "User",
    "category_for",
    "compute_backoff_delay",
]
