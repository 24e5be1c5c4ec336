"""Inbox materialization and owner-scoped inbox reads."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable

from sqlalchemy.orm import Session

from app.domain.entities import InboxCategory, InboxItem, NotificationEvent
from app.infrastructure.repositories import InboxRepository

MAX_PAGE_SIZE = 100


@dataclass
class InboxPage:
    items: list[InboxItem]
    total: int
    page: int
    page_size: int
    unread_count: int


@dataclass
class UnreadCounts:
    total: int = 0
    by_category: dict[str, int] = field(default_factory=dict)


def build_inbox_item(
    event: NotificationEvent, user_id: int, *, created_at: datetime
) -> InboxItem:
    """Materialize the inbox message ``user_id`` receives for ``event``."""

    return InboxItem(
        id=None,
        user_id=user_id,
        category=event.category.value,
        title=event.title,
        content=event.content,
        related_object_type=event.related_object_type,
        related_object_id=event.related_object_id,
        is_read=False,
        created_at=created_at,
    )


def _normalize_category(category: str | None) -> str | None:
    if not category:
        return None
    try:
        return InboxCategory(category.strip().upper()).value
    except ValueError as exc:
        raise ValueError(f"Unknown inbox category: {category}") from exc


def list_inbox(
    session: Session,
    user_id: int,
    *,
    category: str | None = None,
    unread: bool | None = None,
    page: int = 1,
    page_size: int = 20,
) -> InboxPage:
    page = max(page, 1)
    page_size = min(max(page_size, 1), MAX_PAGE_SIZE)
    repository = InboxRepository(session)
    items, total = repository.list_for_user(
        user_id,
        category=_normalize_category(category),
        unread=unread,
        offset=(page - 1) * page_size,
        limit=page_size,
    )
    unread_count = sum(repository.count_unread_by_category(user_id).values())
    return InboxPage(
        items=items,
        total=total,
        page=page,
        page_size=page_size,
        unread_count=unread_count,
    )


def get_unread_counts(session: Session, user_id: int) -> UnreadCounts:
    by_category = InboxRepository(session).count_unread_by_category(user_id)
    counts = {category.value: 0 for category in InboxCategory}
    counts.update(by_category)
    return UnreadCounts(total=sum(by_category.values()), by_category=counts)


def get_inbox_item(session: Session, user_id: int, item_id: int) -> InboxItem:
    item = InboxRepository(session).get_for_user(item_id, user_id=user_id)
    if item is None:
        raise ValueError("Inbox item not found")
    return item


def mark_item_read(session: Session, user_id: int, item_id: int) -> InboxItem:
    item = InboxRepository(session).mark_as_read(item_id, user_id=user_id)
    if item is None:
        raise ValueError("Inbox item not found")
    return item


def mark_items_read(session: Session, user_id: int, item_ids: Iterable[int]) -> int:
    return InboxRepository(session).mark_many_as_read(item_ids, user_id=user_id)


def mark_all_read(
    session: Session, user_id: int, *, category: str | None = None
) -> int:
    return InboxRepository(session).mark_all_as_read(
        user_id, category=_normalize_category(category)
    )


__all__ = [
    "InboxPage",
    "MAX_PAGE_SIZE",
    "UnreadCounts",
    "build_inbox_item",
    "get_inbox_item",
    "get_unread_counts",
    "list_inbox",
    "mark_all_read",
    "mark_item_read",
    "mark_items_read",
]
