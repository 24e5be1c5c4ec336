"""Domain entity representing an in-app inbox message."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass
class InboxItem:
    """Information message delivered to a specific user's inbox."""

    id: int | None
    user_id: int
    category: str
    title: str
    content: str
    related_object_type: str | None = None
    related_object_id: str | None = None
    is_read: bool = False
    created_at: datetime | None = None
    read_at: datetime | None = None


__all__ = ["InboxItem"]
