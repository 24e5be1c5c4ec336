"""Persistence helpers for the notification outbox ledger."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.domain.entities import (
    MAX_RETRY_COUNT,
    OUTBOX_CHANNEL_EMAIL,
    OUTBOX_CHANNELS,
    OUTBOX_STATUS_FAILED,
    OUTBOX_STATUS_PENDING,
    OUTBOX_STATUSES,
    InboxItem,
    OutboxRecord,
)
from app.infrastructure.models import InboxItemModel, NotificationOutboxModel
from app.utils import ensure_app_naive_datetime, ensure_app_timezone

from .inbox_repository import InboxRepository


@dataclass
class OutboxFilters:
    """Criteria accepted by :meth:`OutboxRepository.list`."""

    channel: str | None = None
    status: str | None = None
    event_type: str | None = None
    target_user_id: int | None = None
    created_from: datetime | None = None
    created_to: datetime | None = None


@dataclass
class OutboxStats:
    """Aggregated counters over the whole ledger."""

    total: int = 0
    by_status: dict[str, int] = field(default_factory=dict)
    by_channel: dict[str, dict[str, int]] = field(default_factory=dict)
    retryable: int = 0
    max_retries_reached: int = 0


class OutboxRepository:
    """Provide reads and state transitions for :class:`OutboxRecord` rows."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, record_id: int) -> OutboxRecord | None:
        model = self.session.get(
            NotificationOutboxModel, record_id, populate_existing=True
        )
        return self._to_entity(model) if model else None

    def existing_dedupe_keys(self, keys: Iterable[str | None]) -> set[str]:
        """Return the subset of ``keys`` that is already recorded."""

        wanted = [key for key in keys if key]
        if not wanted:
            return set()
        rows = (
            self.session.query(NotificationOutboxModel.dedupe_key)
            .filter(NotificationOutboxModel.dedupe_key.in_(wanted))
            .all()
        )
        return {row[0] for row in rows}

    def create(self, record: OutboxRecord) -> OutboxRecord:
        model = NotificationOutboxModel()
        self._apply_entity_to_model(model, record)
        self.session.add(model)
        self.session.commit()
        self.session.refresh(model)
        return self._to_entity(model)

    def create_delivery_unit(
        self,
        *,
        inbox_item: InboxItem | None,
        records: Sequence[OutboxRecord],
    ) -> tuple[InboxItem | None, list[OutboxRecord]]:
        """Persist an inbox item and its outbox rows in a single commit.

        Either every row is written or none is; the caller is responsible for
        rolling back the session when the commit raises.
        """

        inbox_model: InboxItemModel | None = None
        if inbox_item is not None:
            inbox_model = InboxItemModel()
            InboxRepository.apply_entity_to_model(inbox_model, inbox_item)
            self.session.add(inbox_model)

        outbox_models: list[NotificationOutboxModel] = []
        for record in records:
            model = NotificationOutboxModel()
            self._apply_entity_to_model(model, record)
            self.session.add(model)
            outbox_models.append(model)

        self.session.commit()

        saved_item = None
        if inbox_model is not None:
            self.session.refresh(inbox_model)
            saved_item = InboxRepository.to_entity(inbox_model)
        saved_records = []
        for model in outbox_models:
            self.session.refresh(model)
            saved_records.append(self._to_entity(model))
        return saved_item, saved_records

    def update(self, record: OutboxRecord) -> OutboxRecord:
        if record.id is None:
            raise ValueError("Outbox record id is required for updates")
        model = self.session.get(NotificationOutboxModel, record.id)
        if model is None:
            msg = f"Outbox record with id {record.id} not found"
            raise ValueError(msg)
        self._apply_entity_to_model(model, record)
        self.session.add(model)
        self.session.commit()
        self.session.refresh(model)
        return self._to_entity(model)

    def requeue_due_failed_emails(self, *, now: datetime, limit: int) -> int:
        """Flip up to ``limit`` due, retryable FAILED email rows back to PENDING."""

        naive_now = ensure_app_naive_datetime(now)
        ids = [
            row[0]
            for row in self.session.query(NotificationOutboxModel.id)
            .filter(NotificationOutboxModel.channel == OUTBOX_CHANNEL_EMAIL)
            .filter(NotificationOutboxModel.status == OUTBOX_STATUS_FAILED)
            .filter(NotificationOutboxModel.retry_count < MAX_RETRY_COUNT)
            .filter(NotificationOutboxModel.next_retry_at.is_not(None))
            .filter(NotificationOutboxModel.next_retry_at <= naive_now)
            .order_by(NotificationOutboxModel.next_retry_at.asc())
            .limit(limit)
            .all()
        ]
        if not ids:
            return 0
        self.session.query(NotificationOutboxModel).filter(
            NotificationOutboxModel.id.in_(ids),
            NotificationOutboxModel.status == OUTBOX_STATUS_FAILED,
        ).update(
            {NotificationOutboxModel.status: OUTBOX_STATUS_PENDING},
            synchronize_session=False,
        )
        self.session.commit()
        return len(ids)

    def list_pending_emails(self, *, limit: int) -> list[OutboxRecord]:
        query = (
            self.session.query(NotificationOutboxModel)
            .filter(NotificationOutboxModel.channel == OUTBOX_CHANNEL_EMAIL)
            .filter(NotificationOutboxModel.status == OUTBOX_STATUS_PENDING)
            .order_by(
                NotificationOutboxModel.created_at.asc(),
                NotificationOutboxModel.id.asc(),
            )
            .limit(limit)
        )
        return [self._to_entity(model) for model in query.all()]

    def list_retryable_failed_emails(
        self, *, created_since: datetime, limit: int
    ) -> list[OutboxRecord]:
        query = (
            self.session.query(NotificationOutboxModel)
            .filter(NotificationOutboxModel.channel == OUTBOX_CHANNEL_EMAIL)
            .filter(NotificationOutboxModel.status == OUTBOX_STATUS_FAILED)
            .filter(NotificationOutboxModel.retry_count < MAX_RETRY_COUNT)
            .filter(
                NotificationOutboxModel.created_at
                >= ensure_app_naive_datetime(created_since)
            )
            .order_by(
                NotificationOutboxModel.created_at.asc(),
                NotificationOutboxModel.id.asc(),
            )
            .limit(limit)
        )
        return [self._to_entity(model) for model in query.all()]

    def list(
        self,
        filters: OutboxFilters,
        *,
        offset: int = 0,
        limit: int = 20,
    ) -> tuple[list[OutboxRecord], int]:
        """Return one page of rows matching ``filters`` and the total count."""

        query = self.session.query(NotificationOutboxModel)
        if filters.channel:
            query = query.filter(NotificationOutboxModel.channel == filters.channel)
        if filters.status:
            query = query.filter(NotificationOutboxModel.status == filters.status)
        if filters.event_type:
            query = query.filter(NotificationOutboxModel.event_type == filters.event_type)
        if filters.target_user_id is not None:
            query = query.filter(
                NotificationOutboxModel.target_user_id == filters.target_user_id
            )
        if filters.created_from is not None:
            query = query.filter(
                NotificationOutboxModel.created_at
                >= ensure_app_naive_datetime(filters.created_from)
            )
        if filters.created_to is not None:
            query = query.filter(
                NotificationOutboxModel.created_at
                <= ensure_app_naive_datetime(filters.created_to)
            )

        total = query.count()
        models = (
            query.order_by(
                NotificationOutboxModel.created_at.desc(),
                NotificationOutboxModel.id.desc(),
            )
            .offset(offset)
            .limit(limit)
            .all()
        )
        return [self._to_entity(model) for model in models], total

    def stats(self) -> OutboxStats:
        stats = OutboxStats(
            by_status={status: 0 for status in OUTBOX_STATUSES},
            by_channel={
                channel: {"total": 0, **{status: 0 for status in OUTBOX_STATUSES}}
                for channel in OUTBOX_CHANNELS
            },
        )
        rows = (
            self.session.query(
                NotificationOutboxModel.channel,
                NotificationOutboxModel.status,
                func.count(NotificationOutboxModel.id),
            )
            .group_by(NotificationOutboxModel.channel, NotificationOutboxModel.status)
            .all()
        )
        for channel, status, count in rows:
            stats.total += count
            stats.by_status[status] = stats.by_status.get(status, 0) + count
            channel_stats = stats.by_channel.setdefault(channel, {"total": 0})
            channel_stats[status] = channel_stats.get(status, 0) + count
            channel_stats["total"] += count

        failed = self.session.query(func.count(NotificationOutboxModel.id)).filter(
            NotificationOutboxModel.status == OUTBOX_STATUS_FAILED
        )
        stats.retryable = failed.filter(
            NotificationOutboxModel.retry_count < MAX_RETRY_COUNT
        ).scalar() or 0
        stats.max_retries_reached = failed.filter(
            NotificationOutboxModel.retry_count >= MAX_RETRY_COUNT
        ).scalar() or 0
        return stats

    @staticmethod
    def _apply_entity_to_model(
        model: NotificationOutboxModel, record: OutboxRecord
    ) -> None:
        model.channel = record.channel
        model.event_type = record.event_type
        model.actor_user_id = record.actor_user_id
        model.target_user_id = record.target_user_id
        model.title = record.title
        model.content = record.content
        model.related_object_type = record.related_object_type
        model.related_object_id = record.related_object_id
        model.status = record.status
        model.retry_count = record.retry_count
        model.next_retry_at = ensure_app_naive_datetime(record.next_retry_at)
        model.error_message = record.error_message
        model.dedupe_key = record.dedupe_key
        if record.created_at is not None:
            model.created_at = ensure_app_naive_datetime(record.created_at)
        model.sent_at = ensure_app_naive_datetime(record.sent_at)

    @staticmethod
    def _to_entity(model: NotificationOutboxModel) -> OutboxRecord:
        return OutboxRecord(
            id=model.id,
            channel=model.channel,
            event_type=model.event_type,
            actor_user_id=model.actor_user_id,
            target_user_id=model.target_user_id,
            title=model.title,
            content=model.content,
            related_object_type=model.related_object_type,
            related_object_id=model.related_object_id,
            status=model.status,
            retry_count=model.retry_count or 0,
            next_retry_at=ensure_app_timezone(model.next_retry_at),
            error_message=model.error_message,
            dedupe_key=model.dedupe_key,
            created_at=ensure_app_timezone(model.created_at),
            sent_at=ensure_app_timezone(model.sent_at),
        )


__all__ = ["OutboxFilters", "OutboxRepository", "OutboxStats"]
