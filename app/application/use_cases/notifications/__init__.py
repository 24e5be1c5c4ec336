"""Use cases of the notification delivery core."""

from .delivery import EmailDeliveryWorker
from .dispatch import dispatch_event
from .inbox import (
    InboxPage,
    UnreadCounts,
    build_inbox_item,
    get_inbox_item,
    get_unread_counts,
    list_inbox,
    mark_all_read,
    mark_item_read,
    mark_items_read,
)
from .outbox import (
    OutboxPage,
    get_outbox_stats,
    list_outbox,
    retry_all_failed,
    retry_outbox_record,
)
from .preferences import (
    EmailRoute,
    batch_windows_from_settings,
    get_preferences,
    resolve_email_route,
    update_preferences,
)
from .service import (
    NotificationService,
    get_notification_service,
    set_notification_service,
)

__all__ = [
    "EmailDeliveryWorker",
    "EmailRoute",
    "InboxPage",
    "NotificationService",
    "OutboxPage",
    "UnreadCounts",
    "batch_windows_from_settings",
    "build_inbox_item",
    "dispatch_event",
    "get_inbox_item",
    "get_notification_service",
    "get_outbox_stats",
    "get_preferences",
    "get_unread_counts",
    "list_inbox",
    "list_outbox",
    "mark_all_read",
    "mark_item_read",
    "mark_items_read",
    "resolve_email_route",
    "retry_all_failed",
    "retry_outbox_record",
    "set_notification_service",
    "update_preferences",
]
