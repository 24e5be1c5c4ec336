"""SQLAlchemy model for per-user notification preferences."""

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.sql import expression

from app.infrastructure.database import Base
from app.utils import now_in_app_naive_datetime


class NotificationPreferenceModel(Base):
    """Database representation of a user's email settings."""

    __tablename__ = "notification_preference"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("user.id"), nullable=False, unique=True)
    email_enabled = Column(
        Boolean, nullable=False, default=True, server_default=expression.true()
    )
    dm_email_mode = Column(String(20), nullable=False, default="BATCHED")
    community_email_mode = Column(String(20), nullable=False, default="BATCHED")
    project_timeline_email_mode = Column(String(20), nullable=False, default="BATCHED")
    created_at = Column(DateTime(), nullable=False, default=now_in_app_naive_datetime)
    updated_at = Column(DateTime(), nullable=True, onupdate=now_in_app_naive_datetime)


__all__ = ["NotificationPreferenceModel"]
