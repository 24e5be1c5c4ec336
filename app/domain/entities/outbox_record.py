"""Domain entity for the per-channel, per-recipient delivery ledger."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta

OUTBOX_CHANNEL_INBOX = "INBOX"
OUTBOX_CHANNEL_EMAIL = "EMAIL"
OUTBOX_CHANNELS = (OUTBOX_CHANNEL_INBOX, OUTBOX_CHANNEL_EMAIL)

OUTBOX_STATUS_PENDING = "PENDING"
OUTBOX_STATUS_SENT = "SENT"
OUTBOX_STATUS_FAILED = "FAILED"
OUTBOX_STATUSES = (OUTBOX_STATUS_PENDING, OUTBOX_STATUS_SENT, OUTBOX_STATUS_FAILED)

MAX_RETRY_COUNT = 5
BASE_RETRY_DELAY = timedelta(minutes=1)
MAX_RETRY_DELAY = timedelta(hours=24)


def compute_backoff_delay(retry_count: int) -> timedelta:
    """Return ``min(2**retry_count * 1 minute, 24 hours)``."""

    if retry_count < 0:
        raise ValueError("retry_count must be non-negative")
    # Cap the exponent so huge counts never overflow the timedelta.
    exponent = min(retry_count, 20)
    return min(BASE_RETRY_DELAY * (2**exponent), MAX_RETRY_DELAY)


@dataclass
class OutboxRecord:
    """One delivery intent: a channel, a recipient and an event."""

    id: int | None
    channel: str
    event_type: str
    target_user_id: int
    title: str
    content: str
    status: str = OUTBOX_STATUS_PENDING
    actor_user_id: int | None = None
    related_object_type: str | None = None
    related_object_id: str | None = None
    retry_count: int = 0
    next_retry_at: datetime | None = None
    error_message: str | None = None
    dedupe_key: str | None = None
    created_at: datetime | None = None
    sent_at: datetime | None = None

    @property
    def is_email(self) -> bool:
        return self.channel == OUTBOX_CHANNEL_EMAIL

    @property
    def is_terminal(self) -> bool:
        """``True`` for SENT rows and FAILED rows at the retry ceiling."""

        if self.status == OUTBOX_STATUS_SENT:
            return True
        return self.status == OUTBOX_STATUS_FAILED and self.retry_count >= MAX_RETRY_COUNT

    @property
    def is_retryable(self) -> bool:
        return self.status == OUTBOX_STATUS_FAILED and self.retry_count < MAX_RETRY_COUNT

    def mark_sent(self, now: datetime) -> None:
        self.status = OUTBOX_STATUS_SENT
        self.sent_at = now
        self.next_retry_at = None
        self.error_message = None

    def mark_failed(self, error_message: str, now: datetime) -> None:
        """Record a failed attempt and schedule the next one with backoff."""

        self.status = OUTBOX_STATUS_FAILED
        self.retry_count = min(self.retry_count + 1, MAX_RETRY_COUNT)
        self.error_message = error_message
        if self.retry_count < MAX_RETRY_COUNT:
            self.next_retry_at = now + compute_backoff_delay(self.retry_count)
        else:
            self.next_retry_at = None

    def mark_permanently_failed(self, error_message: str) -> None:
        """Land the row in the terminal FAILED state without further retries."""

        self.status = OUTBOX_STATUS_FAILED
        self.retry_count = MAX_RETRY_COUNT
        self.error_message = error_message
        self.next_retry_at = None


__all__ = [
    "BASE_RETRY_DELAY",
    "MAX_RETRY_COUNT",
    "MAX_RETRY_DELAY",
    "OUTBOX_CHANNELS",
    "OUTBOX_CHANNEL_EMAIL",
    "OUTBOX_CHANNEL_INBOX",
    "OUTBOX_STATUSES",
    "OUTBOX_STATUS_FAILED",
    "OUTBOX_STATUS_PENDING",
    "OUTBOX_STATUS_SENT",
    "OutboxRecord",
    "compute_backoff_delay",
]
