"""Pydantic models describing inbox items and notification preferences."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class InboxItemRead(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: int
    category: str
    title: str
    content: str
    related_object_type: str | None = Field(default=None, alias="relatedObjectType")
    related_object_id: str | None = Field(default=None, alias="relatedObjectId")
    is_read: bool = Field(..., alias="isRead")
    created_at: datetime | None = Field(default=None, alias="createdAt")
    read_at: datetime | None = Field(default=None, alias="readAt")


class InboxListResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    items: list[InboxItemRead]
    total: int
    page: int
    page_size: int = Field(..., alias="pageSize")
    unread_count: int = Field(..., alias="unreadCount")


class UnreadCountRead(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    total: int
    by_category: dict[str, int] = Field(default_factory=dict, alias="byCategory")


class InboxReadBatchRequest(BaseModel):
    """Payload used to mark a batch of inbox items as read."""

    ids: list[int] = Field(..., min_length=1, description="Inbox item identifiers")

    def unique_ids(self) -> list[int]:
        """Return the list of identifiers without duplicates preserving order."""

        unique: list[int] = []
        seen: set[int] = set()
        for item_id in self.ids:
            if item_id in seen:
                continue
            seen.add(item_id)
            unique.append(item_id)
        return unique


class MarkReadResponse(BaseModel):
    updated: int


class NotificationPreferenceRead(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    email_enabled: bool = Field(..., alias="emailEnabled")
    dm_email_mode: str = Field(..., alias="dmEmailMode")
    community_email_mode: str = Field(..., alias="communityEmailMode")
    project_timeline_email_mode: str = Field(..., alias="projectTimelineEmailMode")
    updated_at: datetime | None = Field(default=None, alias="updatedAt")


class NotificationPreferenceUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    email_enabled: bool | None = Field(default=None, alias="emailEnabled")
    dm_email_mode: str | None = Field(default=None, alias="dmEmailMode")
    community_email_mode: str | None = Field(default=None, alias="communityEmailMode")
    project_timeline_email_mode: str | None = Field(
        default=None, alias="projectTimelineEmailMode"
    )


__all__ = [
    "InboxItemRead",
    "InboxListResponse",
    "InboxReadBatchRequest",
    "MarkReadResponse",
    "NotificationPreferenceRead",
    "NotificationPreferenceUpdate",
    "UnreadCountRead",
]
