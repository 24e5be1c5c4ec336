"""Persistence helpers for notification preferences."""

from __future__ import annotations

from collections.abc import Iterable

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.domain.entities import NotificationPreference
from app.infrastructure.models import NotificationPreferenceModel
from app.utils import ensure_app_timezone


class NotificationPreferenceRepository:
    """Read and upsert :class:`NotificationPreference` rows."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def get_by_user(self, user_id: int) -> NotificationPreference | None:
        model = self._get_model(user_id)
        return self._to_entity(model) if model else None

    def get_map_by_users(
        self, user_ids: Iterable[int]
    ) -> dict[int, NotificationPreference]:
        ids = list(user_ids)
        if not ids:
            return {}
        models = (
            self.session.query(NotificationPreferenceModel)
            .filter(NotificationPreferenceModel.user_id.in_(ids))
            .all()
        )
        return {model.user_id: self._to_entity(model) for model in models}

    def get_or_create(self, user_id: int) -> NotificationPreference:
        """Return the stored preference, creating the default row when absent."""

        model = self._get_model(user_id)
        if model is not None:
            return self._to_entity(model)

        defaults = NotificationPreference(id=None, user_id=user_id)
        model = NotificationPreferenceModel()
        self._apply_entity_to_model(model, defaults)
        self.session.add(model)
        try:
            self.session.commit()
        except IntegrityError:
            # Another request created the row first.
            self.session.rollback()
            model = self._get_model(user_id)
            if model is None:
                raise
            return self._to_entity(model)
        self.session.refresh(model)
        return self._to_entity(model)

    def save(self, preference: NotificationPreference) -> NotificationPreference:
        model = self._get_model(preference.user_id)
        if model is None:
            model = NotificationPreferenceModel()
        self._apply_entity_to_model(model, preference)
        self.session.add(model)
        self.session.commit()
        self.session.refresh(model)
        return self._to_entity(model)

    def _get_model(self, user_id: int) -> NotificationPreferenceModel | None:
        return (
            self.session.query(NotificationPreferenceModel)
            .filter(NotificationPreferenceModel.user_id == user_id)
            .first()
        )

    @staticmethod
    def _apply_entity_to_model(
        model: NotificationPreferenceModel, preference: NotificationPreference
    ) -> None:
        model.user_id = preference.user_id
        model.email_enabled = preference.email_enabled
        model.dm_email_mode = preference.dm_email_mode
        model.community_email_mode = preference.community_email_mode
        model.project_timeline_email_mode = preference.project_timeline_email_mode

    @staticmethod
    def _to_entity(model: NotificationPreferenceModel) -> NotificationPreference:
        return NotificationPreference(
            id=model.id,
            user_id=model.user_id,
            email_enabled=bool(model.email_enabled),
            dm_email_mode=model.dm_email_mode,
            community_email_mode=model.community_email_mode,
            project_timeline_email_mode=model.project_timeline_email_mode,
            created_at=ensure_app_timezone(model.created_at),
            updated_at=ensure_app_timezone(model.updated_at),
        )


__all__ = ["NotificationPreferenceRepository"]
