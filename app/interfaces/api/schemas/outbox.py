"""Pydantic models for the outbox reconciliation endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class OutboxRecordRead(BaseModel):
    """Representation of one delivery intent in the outbox ledger."""

    model_config = ConfigDict(populate_by_name=True)

    id: int
    channel: str
    event_type: str = Field(..., alias="eventType")
    actor_user_id: int | None = Field(default=None, alias="actorUserId")
    target_user_id: int = Field(..., alias="targetUserId")
    title: str
    content: str
    related_object_type: str | None = Field(default=None, alias="relatedObjectType")
    related_object_id: str | None = Field(default=None, alias="relatedObjectId")
    status: str
    retry_count: int = Field(..., alias="retryCount")
    next_retry_at: datetime | None = Field(default=None, alias="nextRetryAt")
    error_message: str | None = Field(default=None, alias="errorMessage")
    dedupe_key: str | None = Field(default=None, alias="dedupeKey")
    created_at: datetime | None = Field(default=None, alias="createdAt")
    sent_at: datetime | None = Field(default=None, alias="sentAt")


class OutboxListResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    items: list[OutboxRecordRead]
    total: int
    page: int
    page_size: int = Field(..., alias="pageSize")


class ChannelStatsRead(BaseModel):
    total: int = 0
    pending: int = 0
    sent: int = 0
    failed: int = 0


class OutboxStatsRead(BaseModel):
    """Aggregated outbox counters; status totals always partition ``total``."""

    model_config = ConfigDict(populate_by_name=True)

    total: int
    pending: int
    sent: int
    failed: int
    retryable: int
    max_retries_reached: int = Field(..., alias="maxRetriesReached")
    by_channel: dict[str, ChannelStatsRead] = Field(
        default_factory=dict, alias="byChannel"
    )


class OutboxRetryResponse(BaseModel):
    success: bool


class OutboxRetryAllResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    retried_count: int = Field(..., alias="retriedCount")


class DispatchRequest(BaseModel):
    """Business event submitted for manual fan-out."""

    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    event_type: str = Field(..., alias="eventType", min_length=1)
    actor_user_id: int | None = Field(default=None, alias="actorUserId")
    target_user_ids: list[int] = Field(..., alias="targetUserIds", min_length=1)
    title: str = Field(..., min_length=1, max_length=200)
    content: str = Field(..., min_length=1, max_length=2000)
    related_object_type: str | None = Field(default=None, alias="relatedObjectType")
    related_object_id: str | None = Field(default=None, alias="relatedObjectId")
    dedupe_key: str | None = Field(default=None, alias="dedupeKey", max_length=200)
    skip_email: bool = Field(default=False, alias="skipEmail")


class DispatchResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    inbox_count: int = Field(..., alias="inboxCount")
    email_count: int = Field(..., alias="emailCount")
    failed_user_ids: list[int] = Field(default_factory=list, alias="failedUserIds")


__all__ = [
    "ChannelStatsRead",
    "DispatchRequest",
    "DispatchResponse",
    "OutboxListResponse",
    "OutboxRecordRead",
    "OutboxRetryAllResponse",
    "OutboxRetryResponse",
    "OutboxStatsRead",
]
