"""Domain entity holding a user's notification delivery preferences."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from .notification_event import (
    BATCH_GROUP_COMMUNITY,
    BATCH_GROUP_DM,
    BATCH_GROUP_PROJECT_TIMELINE,
)

EMAIL_MODE_IMMEDIATE = "IMMEDIATE"
EMAIL_MODE_BATCHED = "BATCHED"
EMAIL_MODES = (EMAIL_MODE_IMMEDIATE, EMAIL_MODE_BATCHED)


@dataclass
class NotificationPreference:
    """Email switches and digest modes chosen by a user."""

    id: int | None
    user_id: int
    email_enabled: bool = True
    dm_email_mode: str = EMAIL_MODE_BATCHED
    community_email_mode: str = EMAIL_MODE_BATCHED
    project_timeline_email_mode: str = EMAIL_MODE_BATCHED
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def mode_for(self, batch_group: str) -> str:
        """Return the email mode configured for ``batch_group``."""

        modes = {
            BATCH_GROUP_DM: self.dm_email_mode,
            BATCH_GROUP_COMMUNITY: self.community_email_mode,
            BATCH_GROUP_PROJECT_TIMELINE: self.project_timeline_email_mode,
        }
        return modes.get(batch_group, EMAIL_MODE_IMMEDIATE)


__all__ = [
    "EMAIL_MODES",
    "EMAIL_MODE_BATCHED",
    "EMAIL_MODE_IMMEDIATE",
    "NotificationPreference",
]
