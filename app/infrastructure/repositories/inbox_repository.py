"""Persistence helpers for inbox items."""

from __future__ import annotations

from typing import Iterable

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.domain.entities import InboxItem
from app.infrastructure.models import InboxItemModel
from app.utils import (
    ensure_app_naive_datetime,
    ensure_app_timezone,
    now_in_app_timezone,
)


class InboxRepository:
    """Provide owner-scoped reads and read-state updates for inbox items."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def list_for_user(
        self,
        user_id: int,
        *,
        category: str | None = None,
        unread: bool | None = None,
        offset: int = 0,
        limit: int | None = 20,
    ) -> tuple[list[InboxItem], int]:
        query = self.session.query(InboxItemModel).filter(
            InboxItemModel.user_id == user_id
        )
        if category:
            query = query.filter(InboxItemModel.category == category)
        if unread is not None:
            query = query.filter(InboxItemModel.is_read.is_(not unread))
        total = query.count()
        query = query.order_by(
            InboxItemModel.created_at.desc(), InboxItemModel.id.desc()
        ).offset(offset)
        if limit is not None:
            query = query.limit(limit)
        return [self.to_entity(model) for model in query.all()], total

    def count_unread_by_category(self, user_id: int) -> dict[str, int]:
        rows = (
            self.session.query(InboxItemModel.category, func.count(InboxItemModel.id))
            .filter(InboxItemModel.user_id == user_id)
            .filter(InboxItemModel.is_read.is_(False))
            .group_by(InboxItemModel.category)
            .all()
        )
        return {category: count for category, count in rows}

    def get_for_user(self, item_id: int, *, user_id: int) -> InboxItem | None:
        model = self._get_owned_model(item_id, user_id)
        return self.to_entity(model) if model else None

    def mark_as_read(self, item_id: int, *, user_id: int) -> InboxItem | None:
        model = self._get_owned_model(item_id, user_id)
        if model is None:
            return None
        if not model.is_read:
            model.is_read = True
            model.read_at = ensure_app_naive_datetime(now_in_app_timezone())
            self.session.add(model)
            self.session.commit()
            self.session.refresh(model)
        return self.to_entity(model)

    def mark_many_as_read(self, item_ids: Iterable[int], *, user_id: int) -> int:
        ids = [item_id for item_id in item_ids if item_id is not None]
        if not ids:
            return 0
        count = (
            self.session.query(InboxItemModel)
            .filter(
                InboxItemModel.id.in_(ids),
                InboxItemModel.user_id == user_id,
                InboxItemModel.is_read.is_(False),
            )
            .update(
                {
                    InboxItemModel.is_read: True,
                    InboxItemModel.read_at: ensure_app_naive_datetime(
                        now_in_app_timezone()
                    ),
                },
                synchronize_session=False,
            )
        )
        self.session.commit()
        return count

    def mark_all_as_read(self, user_id: int, *, category: str | None = None) -> int:
        query = self.session.query(InboxItemModel).filter(
            InboxItemModel.user_id == user_id,
            InboxItemModel.is_read.is_(False),
        )
        if category:
            query = query.filter(InboxItemModel.category == category)
        count = query.update(
            {
                InboxItemModel.is_read: True,
                InboxItemModel.read_at: ensure_app_naive_datetime(now_in_app_timezone()),
            },
            synchronize_session=False,
        )
        self.session.commit()
        return count

    def _get_owned_model(self, item_id: int, user_id: int) -> InboxItemModel | None:
        return (
            self.session.query(InboxItemModel)
            .filter(InboxItemModel.id == item_id, InboxItemModel.user_id == user_id)
            .first()
        )

    @staticmethod
    def apply_entity_to_model(model: InboxItemModel, item: InboxItem) -> None:
        model.user_id = item.user_id
        model.category = item.category
        model.title = item.title
        model.content = item.content
        model.related_object_type = item.related_object_type
        model.related_object_id = item.related_object_id
        model.is_read = item.is_read
        model.created_at = ensure_app_naive_datetime(
            item.created_at or now_in_app_timezone()
        )
        model.read_at = ensure_app_naive_datetime(item.read_at)

    @staticmethod
    def to_entity(model: InboxItemModel) -> InboxItem:
        return InboxItem(
            id=model.id,
            user_id=model.user_id,
            category=model.category,
            title=model.title,
            content=model.content,
            related_object_type=model.related_object_type,
            related_object_id=model.related_object_id,
            is_read=bool(model.is_read),
            created_at=ensure_app_timezone(model.created_at),
            read_at=ensure_app_timezone(model.read_at),
        )


__all__ = ["InboxRepository"]
