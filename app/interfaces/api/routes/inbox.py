"""Endpoints for the authenticated user's inbox and email preferences."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from app.application.use_cases.notifications import (
    get_inbox_item,
    get_preferences,
    get_unread_counts,
    list_inbox,
    mark_all_read,
    mark_item_read,
    mark_items_read,
    update_preferences,
)
from app.domain.entities import (
    InboxItem,
    NotificationPreference,
    NotificationValidationError,
    User,
)
from app.infrastructure.database import get_db
from app.interfaces.api.dependencies import get_current_active_user
from app.interfaces.api.schemas import (
    InboxItemRead,
    InboxListResponse,
    InboxReadBatchRequest,
    MarkReadResponse,
    NotificationPreferenceRead,
    NotificationPreferenceUpdate,
    UnreadCountRead,
)

router = APIRouter(prefix="/inbox", tags=["inbox"])


def _to_read_model(item: InboxItem) -> InboxItemRead:
    return InboxItemRead(
        id=item.id or 0,
        category=item.category,
        title=item.title,
        content=item.content,
        related_object_type=item.related_object_type,
        related_object_id=item.related_object_id,
        is_read=item.is_read,
        created_at=item.created_at,
        read_at=item.read_at,
    )


def _preference_to_read_model(
    preference: NotificationPreference,
) -> NotificationPreferenceRead:
    return NotificationPreferenceRead(
        email_enabled=preference.email_enabled,
        dm_email_mode=preference.dm_email_mode,
        community_email_mode=preference.community_email_mode,
        project_timeline_email_mode=preference.project_timeline_email_mode,
        updated_at=preference.updated_at,
    )


@router.get("", response_model=InboxListResponse)
def list_inbox_items(
    category: str | None = Query(default=None),
    unread: bool | None = Query(default=None),
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=20, ge=1, le=100, alias="pageSize"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> InboxListResponse:
    try:
        result = list_inbox(
            db,
            current_user.id,
            category=category,
            unread=unread,
            page=page,
            page_size=page_size,
        )
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return InboxListResponse(
        items=[_to_read_model(item) for item in result.items],
        total=result.total,
        page=result.page,
        page_size=result.page_size,
        unread_count=result.unread_count,
    )


@router.get("/unread-count", response_model=UnreadCountRead)
def unread_count(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> UnreadCountRead:
    counts = get_unread_counts(db, current_user.id)
    return UnreadCountRead(total=counts.total, by_category=counts.by_category)


@router.get("/preferences", response_model=NotificationPreferenceRead)
def read_preferences(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> NotificationPreferenceRead:
    return _preference_to_read_model(get_preferences(db, current_user.id))


@router.put("/preferences", response_model=NotificationPreferenceRead)
def write_preferences(
    payload: NotificationPreferenceUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> NotificationPreferenceRead:
    """Partially update the caller's email preferences."""

    changes = payload.model_dump(exclude_unset=True)
    try:
        preference = update_preferences(db, current_user.id, **changes)
    except NotificationValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)
        ) from exc
    return _preference_to_read_model(preference)


@router.post("/read-batch", response_model=MarkReadResponse)
def read_batch(
    payload: InboxReadBatchRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> MarkReadResponse:
    updated = mark_items_read(db, current_user.id, payload.unique_ids())
    return MarkReadResponse(updated=updated)


@router.post("/read-all", response_model=MarkReadResponse)
def read_all(
    category: str | None = Query(default=None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> MarkReadResponse:
    try:
        updated = mark_all_read(db, current_user.id, category=category)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return MarkReadResponse(updated=updated)


@router.get("/{item_id}", response_model=InboxItemRead)
def read_inbox_item(
    item_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> InboxItemRead:
    try:
        item = get_inbox_item(db, current_user.id, item_id)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return _to_read_model(item)


@router.post("/{item_id}/read", response_model=InboxItemRead)
def mark_inbox_item_read(
    item_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> InboxItemRead:
    try:
        item = mark_item_read(db, current_user.id, item_id)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return _to_read_model(item)
