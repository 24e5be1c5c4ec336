"""Reconciliation use cases over the notification outbox."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable

from sqlalchemy.orm import Session

from app.domain.entities import (
    OUTBOX_CHANNEL_EMAIL,
    OUTBOX_CHANNELS,
    OUTBOX_STATUS_FAILED,
    OUTBOX_STATUSES,
    OutboxRecord,
)
from app.infrastructure.repositories import OutboxFilters, OutboxRepository, OutboxStats
from app.utils import now_in_app_timezone

logger = logging.getLogger(__name__)

DEFAULT_LOOKBACK = timedelta(days=7)
MAX_PAGE_SIZE = 100
RETRY_ALL_LIMIT = 100

DeliverRecord = Callable[[Session, OutboxRecord], bool]


@dataclass
class OutboxPage:
    items: list[OutboxRecord]
    total: int
    page: int
    page_size: int


def _normalize_choice(value: str | None, choices: tuple[str, ...], label: str) -> str | None:
    if not value:
        return None
    normalized = value.strip().upper()
    if normalized not in choices:
        raise ValueError(f"Invalid {label}: {value}")
    return normalized


def list_outbox(
    session: Session,
    *,
    channel: str | None = None,
    status: str | None = None,
    event_type: str | None = None,
    target_user_id: int | None = None,
    created_from: datetime | None = None,
    created_to: datetime | None = None,
    page: int = 1,
    page_size: int = 20,
    now: datetime | None = None,
) -> OutboxPage:
    """Return one page of outbox rows, newest first.

    Without an explicit ``created_from`` only the last seven days are listed.
    """

    page = max(page, 1)
    page_size = min(max(page_size, 1), MAX_PAGE_SIZE)
    if created_from is None:
        created_from = (now or now_in_app_timezone()) - DEFAULT_LOOKBACK

    filters = OutboxFilters(
        channel=_normalize_choice(channel, OUTBOX_CHANNELS, "channel"),
        status=_normalize_choice(status, OUTBOX_STATUSES, "status"),
        event_type=event_type.strip().upper() if event_type else None,
        target_user_id=target_user_id,
        created_from=created_from,
        created_to=created_to,
    )
    items, total = OutboxRepository(session).list(
        filters, offset=(page - 1) * page_size, limit=page_size
    )
    return OutboxPage(items=items, total=total, page=page, page_size=page_size)


def get_outbox_stats(session: Session) -> OutboxStats:
    return OutboxRepository(session).stats()


def retry_outbox_record(
    session: Session, record_id: int, *, deliver: DeliverRecord
) -> bool:
    """Re-attempt one FAILED email row right away.

    Raises ``ValueError`` when the row does not exist. Returns ``False`` when
    the row is not a FAILED email or the attempt failed again.
    """

    record = OutboxRepository(session).get(record_id)
    if record is None:
        raise ValueError("Outbox record not found")
    if record.status != OUTBOX_STATUS_FAILED or record.channel != OUTBOX_CHANNEL_EMAIL:
        logger.info(
            "Refusing to retry outbox record %s (%s/%s)",
            record_id,
            record.channel,
            record.status,
        )
        return False
    return deliver(session, record)


def retry_all_failed(
    session: Session,
    *,
    deliver: DeliverRecord,
    now: datetime | None = None,
    limit: int = RETRY_ALL_LIMIT,
) -> int:
    """Re-attempt retryable FAILED emails from the last week, ignoring backoff.

    Returns the number of rows that were sent.
    """

    created_since = (now or now_in_app_timezone()) - DEFAULT_LOOKBACK
    records = OutboxRepository(session).list_retryable_failed_emails(
        created_since=created_since, limit=limit
    )
    sent = 0
    for record in records:
        if deliver(session, record):
            sent += 1
    logger.info("Administrative retry sent %s of %s failed email(s)", sent, len(records))
    return sent


__all__ = [
    "DEFAULT_LOOKBACK",
    "MAX_PAGE_SIZE",
    "OutboxPage",
    "RETRY_ALL_LIMIT",
    "get_outbox_stats",
    "list_outbox",
    "retry_all_failed",
    "retry_outbox_record",
]
