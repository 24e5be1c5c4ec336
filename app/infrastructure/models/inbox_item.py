"""SQLAlchemy model for persisted inbox items."""

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.sql import expression

from app.infrastructure.database import Base
from app.utils import now_in_app_naive_datetime


class InboxItemModel(Base):
    """Database representation for user inbox messages."""

    __tablename__ = "inbox_item"
    __table_args__ = (Index("ix_inbox_item_user_read", "user_id", "is_read"),)

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("user.id"), nullable=False, index=True)
    category = Column(String(20), nullable=False)
    title = Column(String(200), nullable=False)
    content = Column(Text, nullable=False)
    related_object_type = Column(String(50), nullable=True)
    related_object_id = Column(String(64), nullable=True)
    is_read = Column(
        Boolean, nullable=False, default=False, server_default=expression.false()
    )
    created_at = Column(DateTime(), nullable=False, default=now_in_app_naive_datetime)
    read_at = Column(DateTime(), nullable=True)


__all__ = ["InboxItemModel"]
