"""Preference lookup and email routing for notification events."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Mapping

from sqlalchemy.orm import Session

from app.config import Settings
from app.domain.entities import (
    BATCH_GROUP_COMMUNITY,
    BATCH_GROUP_DM,
    BATCH_GROUP_PROJECT_TIMELINE,
    BATCH_GROUPS,
    DEFAULT_BATCH_WINDOWS,
    EMAIL_MODE_IMMEDIATE,
    EMAIL_MODES,
    IMMEDIATE_EMAIL_EVENTS,
    NotificationEventType,
    NotificationPreference,
    NotificationValidationError,
)
from app.infrastructure.repositories import NotificationPreferenceRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EmailRoute:
    """How the email channel of one event reaches one recipient."""

    immediate: bool
    batch_group: str | None = None
    window_seconds: int | None = None


IMMEDIATE_ROUTE = EmailRoute(immediate=True)


def batch_windows_from_settings(settings: Settings) -> dict[str, int]:
    return {
        BATCH_GROUP_DM: settings.email_dm_batch_seconds,
        BATCH_GROUP_COMMUNITY: settings.email_community_batch_seconds,
        BATCH_GROUP_PROJECT_TIMELINE: settings.email_project_timeline_batch_seconds,
    }


def resolve_email_route(
    event_type: NotificationEventType,
    preference: NotificationPreference,
    *,
    windows: Mapping[str, int] | None = None,
) -> EmailRoute:
    """Decide whether ``event_type`` is emailed now or through a digest.

    Allow-listed events and events outside every batch group are always sent
    immediately. Batchable events follow the recipient's mode for the group.
    ``email_enabled`` does not suppress delivery; email is mandatory.
    """

    if not preference.email_enabled:
        logger.info(
            "User %s disabled email notifications; delivering %s anyway",
            preference.user_id,
            getattr(event_type, "value", event_type),
        )

    if event_type in IMMEDIATE_EMAIL_EVENTS:
        return IMMEDIATE_ROUTE

    batch_group = BATCH_GROUPS.get(event_type)
    if batch_group is None:
        return IMMEDIATE_ROUTE
    if preference.mode_for(batch_group) == EMAIL_MODE_IMMEDIATE:
        return IMMEDIATE_ROUTE

    windows = windows or DEFAULT_BATCH_WINDOWS
    return EmailRoute(
        immediate=False,
        batch_group=batch_group,
        window_seconds=windows.get(batch_group, DEFAULT_BATCH_WINDOWS[batch_group]),
    )


def get_preferences(session: Session, user_id: int) -> NotificationPreference:
    """Return the user's preferences, creating the defaults on first access."""

    return NotificationPreferenceRepository(session).get_or_create(user_id)


def update_preferences(
    session: Session,
    user_id: int,
    *,
    email_enabled: bool | None = None,
    dm_email_mode: str | None = None,
    community_email_mode: str | None = None,
    project_timeline_email_mode: str | None = None,
) -> NotificationPreference:
    """Apply a partial update to the user's preferences."""

    repository = NotificationPreferenceRepository(session)
    preference = repository.get_or_create(user_id)

    modes = {
        "dm_email_mode": dm_email_mode,
        "community_email_mode": community_email_mode,
        "project_timeline_email_mode": project_timeline_email_mode,
    }
    for field_name, value in modes.items():
        if value is None:
            continue
        normalized = value.strip().upper()
        if normalized not in EMAIL_MODES:
            raise NotificationValidationError(
                f"{field_name} must be one of {', '.join(EMAIL_MODES)}"
            )
        setattr(preference, field_name, normalized)

    if email_enabled is not None:
        preference.email_enabled = email_enabled

    return repository.save(preference)


__all__ = [
    "EmailRoute",
    "IMMEDIATE_ROUTE",
    "batch_windows_from_settings",
    "get_preferences",
    "resolve_email_route",
    "update_preferences",
]
