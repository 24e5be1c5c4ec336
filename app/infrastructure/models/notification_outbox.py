"""SQLAlchemy model for the notification delivery ledger."""

from sqlalchemy import Column, DateTime, Index, Integer, String, Text

from app.infrastructure.database import Base
from app.utils import now_in_app_naive_datetime


class NotificationOutboxModel(Base):
    """Append-only record of one channel delivery for one recipient."""

    __tablename__ = "notification_outbox"
    __table_args__ = (
        Index("ix_notification_outbox_dispatch", "channel", "status", "next_retry_at"),
        Index("ix_notification_outbox_created", "created_at"),
    )

    id = Column(Integer, primary_key=True, index=True)
    channel = Column(String(10), nullable=False)
    event_type = Column(String(50), nullable=False, index=True)
    actor_user_id = Column(Integer, nullable=True)
    target_user_id = Column(Integer, nullable=False, index=True)
    title = Column(String(200), nullable=False)
    content = Column(Text, nullable=False)
    related_object_type = Column(String(50), nullable=True)
    related_object_id = Column(String(64), nullable=True)
    status = Column(String(10), nullable=False, default="PENDING")
    retry_count = Column(Integer, nullable=False, default=0)
    next_retry_at = Column(DateTime(), nullable=True)
    error_message = Column(Text, nullable=True)
    dedupe_key = Column(String(255), nullable=True, unique=True)
    created_at = Column(DateTime(), nullable=False, default=now_in_app_naive_datetime)
    sent_at = Column(DateTime(), nullable=True)


__all__ = ["NotificationOutboxModel"]
