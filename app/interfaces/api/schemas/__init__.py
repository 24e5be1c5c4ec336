from .inbox import (
    InboxItemRead,
    InboxListResponse,
    InboxReadBatchRequest,
    MarkReadResponse,
    NotificationPreferenceRead,
    NotificationPreferenceUpdate,
    UnreadCountRead,
)
from .outbox import (
    ChannelStatsRead,
    DispatchRequest,
    DispatchResponse,
    OutboxListResponse,
    OutboxRecordRead,
    OutboxRetryAllResponse,
    OutboxRetryResponse,
    OutboxStatsRead,
)

__all__ = [
    "ChannelStatsRead",
    "DispatchRequest",
    "DispatchResponse",
    "InboxItemRead",
    "InboxListResponse",
    "InboxReadBatchRequest",
    "MarkReadResponse",
    "NotificationPreferenceRead",
    "NotificationPreferenceUpdate",
    "OutboxListResponse",
    "OutboxRecordRead",
    "OutboxRetryAllResponse",
    "OutboxRetryResponse",
    "OutboxStatsRead",
    "UnreadCountRead",
]
