"""Administrative reconciliation endpoints over the notification outbox."""

from __future__ import annotations

import logging
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from app.application.use_cases.notifications import (
    NotificationService,
    get_outbox_stats,
    list_outbox,
)
from app.domain.entities import (
    OUTBOX_CHANNELS,
    NotificationEvent,
    NotificationPersistenceError,
    NotificationValidationError,
    OutboxRecord,
    User,
)
from app.infrastructure.database import get_db
from app.interfaces.api.dependencies import get_notification_service, require_admin
from app.interfaces.api.schemas import (
    ChannelStatsRead,
    DispatchRequest,
    DispatchResponse,
    OutboxListResponse,
    OutboxRecordRead,
    OutboxRetryAllResponse,
    OutboxRetryResponse,
    OutboxStatsRead,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/outbox", tags=["outbox"])


def _to_read_model(record: OutboxRecord) -> OutboxRecordRead:
    return OutboxRecordRead(
        id=record.id or 0,
        channel=record.channel,
        event_type=record.event_type,
        actor_user_id=record.actor_user_id,
        target_user_id=record.target_user_id,
        title=record.title,
        content=record.content,
        related_object_type=record.related_object_type,
        related_object_id=record.related_object_id,
        status=record.status,
        retry_count=record.retry_count,
        next_retry_at=record.next_retry_at,
        error_message=record.error_message,
        dedupe_key=record.dedupe_key,
        created_at=record.created_at,
        sent_at=record.sent_at,
    )


@router.get("", response_model=OutboxListResponse)
def list_outbox_records(
    channel: str | None = Query(default=None),
    status_filter: str | None = Query(default=None, alias="status"),
    event_type: str | None = Query(default=None, alias="eventType"),
    target_user_id: int | None = Query(default=None, alias="targetUserId"),
    created_from: datetime | None = Query(default=None, alias="from"),
    created_to: datetime | None = Query(default=None, alias="to"),
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=20, ge=1, le=100, alias="pageSize"),
    db: Session = Depends(get_db),
    _: User = Depends(require_admin),
) -> OutboxListResponse:
    """Return outbox rows, newest first, defaulting to the last seven days."""

    try:
        result = list_outbox(
            db,
            channel=channel,
            status=status_filter,
            event_type=event_type,
            target_user_id=target_user_id,
            created_from=created_from,
            created_to=created_to,
            page=page,
            page_size=page_size,
        )
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    return OutboxListResponse(
        items=[_to_read_model(record) for record in result.items],
        total=result.total,
        page=result.page,
        page_size=result.page_size,
    )


@router.get("/stats", response_model=OutboxStatsRead)
def outbox_stats(
    db: Session = Depends(get_db),
    _: User = Depends(require_admin),
) -> OutboxStatsRead:
    stats = get_outbox_stats(db)
    by_channel = {}
    for channel in OUTBOX_CHANNELS:
        counts = stats.by_channel.get(channel, {})
        by_channel[channel] = ChannelStatsRead(
            total=counts.get("total", 0),
            pending=counts.get("PENDING", 0),
            sent=counts.get("SENT", 0),
            failed=counts.get("FAILED", 0),
        )
    return OutboxStatsRead(
        total=stats.total,
        pending=stats.by_status.get("PENDING", 0),
        sent=stats.by_status.get("SENT", 0),
        failed=stats.by_status.get("FAILED", 0),
        retryable=stats.retryable,
        max_retries_reached=stats.max_retries_reached,
        by_channel=by_channel,
    )


@router.post("/{record_id}/retry", response_model=OutboxRetryResponse)
def retry_outbox_record(
    record_id: int,
    db: Session = Depends(get_db),
    service: NotificationService = Depends(get_notification_service),
    current_user: User = Depends(require_admin),
) -> OutboxRetryResponse:
    """Synchronously re-attempt one FAILED email row."""

    try:
        success = service.retry(db, record_id)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc

    if not success:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Retry failed or the record is not a failed email",
        )
    logger.info("Admin %s retried outbox record %s", current_user.id, record_id)
    return OutboxRetryResponse(success=True)


@router.post("/retry-all-failed", response_model=OutboxRetryAllResponse)
def retry_all_failed_emails(
    db: Session = Depends(get_db),
    service: NotificationService = Depends(get_notification_service),
    current_user: User = Depends(require_admin),
) -> OutboxRetryAllResponse:
    retried = service.retry_all_failed(db)
    logger.info("Admin %s retried %s failed email(s)", current_user.id, retried)
    return OutboxRetryAllResponse(retried_count=retried)


@router.post("/dispatch", response_model=DispatchResponse)
def dispatch_notification(
    payload: DispatchRequest,
    db: Session = Depends(get_db),
    service: NotificationService = Depends(get_notification_service),
    _: User = Depends(require_admin),
) -> DispatchResponse:
    """Fan a business event out to its recipients by hand."""

    try:
        event = NotificationEvent.create(
            event_type=payload.event_type,
            target_user_ids=payload.target_user_ids,
            title=payload.title,
            content=payload.content,
            actor_user_id=payload.actor_user_id,
            related_object_type=payload.related_object_type,
            related_object_id=payload.related_object_id,
            dedupe_key=payload.dedupe_key,
            skip_email=payload.skip_email,
        )
    except NotificationValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)
        ) from exc

    try:
        result = service.dispatch(event, session=db)
    except NotificationPersistenceError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)
        ) from exc

    return DispatchResponse(
        success=True,
        inbox_count=result.inbox_count,
        email_count=result.email_count,
        failed_user_ids=result.failed_user_ids,
    )
