"""Fan-out of business events into inbox items and outbox rows."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, Mapping

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.domain.entities import (
    OUTBOX_CHANNEL_EMAIL,
    OUTBOX_CHANNEL_INBOX,
    OUTBOX_STATUS_PENDING,
    OUTBOX_STATUS_SENT,
    DispatchResult,
    NotificationEvent,
    NotificationPersistenceError,
    OutboxRecord,
)
from app.infrastructure.notifications import DigestItem
from app.infrastructure.repositories import (
    NotificationPreferenceRepository,
    OutboxRepository,
)
from app.utils import now_in_app_timezone

from .inbox import build_inbox_item
from .preferences import resolve_email_route

logger = logging.getLogger(__name__)

SubmitEmail = Callable[[int], Any]
EnqueueDigest = Callable[[int, str, DigestItem, int], Any]


def _outbox_record(
    event: NotificationEvent,
    user_id: int,
    channel: str,
    *,
    status: str,
    created_at: datetime,
) -> OutboxRecord:
    record = OutboxRecord(
        id=None,
        channel=channel,
        event_type=event.event_type.value,
        target_user_id=user_id,
        title=event.title,
        content=event.content,
        status=status,
        actor_user_id=event.actor_user_id,
        related_object_type=event.related_object_type,
        related_object_id=event.related_object_id,
        dedupe_key=event.recipient_dedupe_key(user_id, channel),
        created_at=created_at,
    )
    if status == OUTBOX_STATUS_SENT:
        record.sent_at = created_at
    return record


def dispatch_event(
    session: Session,
    event: NotificationEvent,
    *,
    submit_email: SubmitEmail,
    enqueue_digest: EnqueueDigest,
    windows: Mapping[str, int] | None = None,
    clock: Callable[[], datetime] = now_in_app_timezone,
) -> DispatchResult:
    """Record ``event`` for every recipient and schedule its emails.

    Each recipient is written in its own commit: the inbox item, its INBOX
    row and (when routed immediately) a PENDING EMAIL row. Emails are only
    handed to ``submit_email`` or ``enqueue_digest`` after that commit.
    A recipient whose write fails is rolled back and reported in
    ``failed_user_ids``; if every recipient fails the error is raised.
    """

    outbox = OutboxRepository(session)
    preferences = NotificationPreferenceRepository(session)
    result = DispatchResult()
    last_error: SQLAlchemyError | None = None

    for user_id in event.target_user_ids:
        try:
            inbox_key = event.recipient_dedupe_key(user_id, OUTBOX_CHANNEL_INBOX)
            email_key = event.recipient_dedupe_key(user_id, OUTBOX_CHANNEL_EMAIL)
            recorded = outbox.existing_dedupe_keys([inbox_key, email_key])
            write_inbox = inbox_key is None or inbox_key not in recorded
            want_email = not event.skip_email and (
                email_key is None or email_key not in recorded
            )

            route = None
            if want_email:
                route = resolve_email_route(
                    event.event_type,
                    preferences.get_or_create(user_id),
                    windows=windows,
                )
                if not route.immediate and not write_inbox:
                    # Digest items only live in memory; a recorded inbox key
                    # means this event already reached a digest window.
                    route = None

            if not write_inbox and route is None:
                logger.debug(
                    "Skipping duplicate %s for user %s", event.dedupe_key, user_id
                )
                continue

            now = clock()
            inbox_item = None
            records: list[OutboxRecord] = []
            if write_inbox:
                inbox_item = build_inbox_item(event, user_id, created_at=now)
                records.append(
                    _outbox_record(
                        event,
                        user_id,
                        OUTBOX_CHANNEL_INBOX,
                        status=OUTBOX_STATUS_SENT,
                        created_at=now,
                    )
                )
            if route is not None and route.immediate:
                records.append(
                    _outbox_record(
                        event,
                        user_id,
                        OUTBOX_CHANNEL_EMAIL,
                        status=OUTBOX_STATUS_PENDING,
                        created_at=now,
                    )
                )

            _, saved = outbox.create_delivery_unit(
                inbox_item=inbox_item, records=records
            )
        except IntegrityError:
            # A concurrent dispatch recorded the same dedupe key first.
            session.rollback()
            logger.info(
                "Duplicate dispatch of %s for user %s ignored",
                event.dedupe_key,
                user_id,
            )
            continue
        except SQLAlchemyError as exc:
            session.rollback()
            last_error = exc
            result.failed_user_ids.append(user_id)
            logger.exception(
                "Failed to record %s notification for user %s",
                event.event_type.value,
                user_id,
            )
            continue

        if inbox_item is not None:
            result.inbox_count += 1

        for record in saved:
            if record.is_email:
                result.email_count += 1
                _submit(submit_email, record.id)

        if route is not None and not route.immediate:
            item = DigestItem(
                title=event.title,
                content=event.content,
                actor_user_id=event.actor_user_id,
                related_object_type=event.related_object_type,
                related_object_id=event.related_object_id,
                dedupe_key=email_key,
            )
            if _enqueue(
                outbox, enqueue_digest, event, user_id, item, route.window_seconds, now
            ):
                result.email_count += 1

    if result.failed_user_ids and len(result.failed_user_ids) == len(
        event.target_user_ids
    ):
        raise NotificationPersistenceError(
            f"Could not record {event.event_type.value} for any recipient"
        ) from last_error

    logger.info(
        "Dispatched %s: inbox=%s email=%s failed=%s",
        event.event_type.value,
        result.inbox_count,
        result.email_count,
        len(result.failed_user_ids),
    )
    return result


def _submit(submit_email: SubmitEmail, record_id: int) -> None:
    try:
        submit_email(record_id)
    except Exception:
        # The row stays PENDING and the retry sweeper will pick it up.
        logger.exception("Could not schedule email for outbox record %s", record_id)


def _enqueue(
    outbox: OutboxRepository,
    enqueue_digest: EnqueueDigest,
    event: NotificationEvent,
    user_id: int,
    item: DigestItem,
    window_seconds: int,
    now: datetime,
) -> bool:
    try:
        enqueue_digest(user_id, event.event_type.value, item, window_seconds)
        return True
    except Exception:
        logger.exception(
            "Could not queue digest item for user %s; recording it for the sweeper",
            user_id,
        )

    try:
        outbox.create(
            _outbox_record(
                event,
                user_id,
                OUTBOX_CHANNEL_EMAIL,
                status=OUTBOX_STATUS_PENDING,
                created_at=now,
            )
        )
    except SQLAlchemyError:
        outbox.session.rollback()
        logger.exception("Could not record fallback email for user %s", user_id)
        return False
    return True


__all__ = ["dispatch_event"]
