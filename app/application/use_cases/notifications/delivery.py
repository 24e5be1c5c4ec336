"""Email delivery worker: one attempt per outbox row, recorded on the row."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable

from sqlalchemy.orm import Session

from app.config import Settings, get_settings
from app.domain.entities import OUTBOX_STATUS_SENT, OutboxRecord
from app.infrastructure.email import EmailTransport, render_notification_email
from app.infrastructure.repositories import OutboxRepository, UserRepository
from app.utils import now_in_app_timezone

logger = logging.getLogger(__name__)

INVALID_RECIPIENT_MESSAGE = "Recipient has no valid email address"


def _valid_address(email: str | None) -> str | None:
    address = (email or "").strip()
    if not address or "@" not in address:
        return None
    return address


class EmailDeliveryWorker:
    """Attempt delivery of EMAIL outbox rows and persist the outcome."""

    def __init__(
        self,
        session: Session,
        transport: EmailTransport,
        *,
        settings: Settings | None = None,
        clock: Callable[[], datetime] = now_in_app_timezone,
    ) -> None:
        self.session = session
        self.transport = transport
        self.settings = settings or get_settings()
        self._clock = clock
        self._outbox = OutboxRepository(session)
        self._users = UserRepository(session)

    def deliver(self, record: OutboxRecord) -> bool:
        """Send ``record`` once; return ``True`` when the row ends up SENT.

        Transport errors never propagate: they are recorded on the row with
        the next backoff. A recipient without a usable address fails the row
        permanently.
        """

        if record.id is None:
            raise ValueError("Only persisted outbox records can be delivered")
        current = self._outbox.get(record.id)
        if current is None:
            raise ValueError("Outbox record not found")
        if not current.is_email:
            raise ValueError("Only EMAIL outbox records can be delivered")
        if current.status == OUTBOX_STATUS_SENT:
            return True

        user = self._users.get(current.target_user_id)
        address = _valid_address(user.email if user else None)
        if address is None:
            current.mark_permanently_failed(INVALID_RECIPIENT_MESSAGE)
            self._outbox.update(current)
            logger.warning(
                "Outbox record %s failed permanently: user %s has no valid email",
                current.id,
                current.target_user_id,
            )
            return False

        message = render_notification_email(
            current,
            address,
            app_name=self.settings.app_name,
            frontend_url=self.settings.frontend_url,
            recipient_name=user.name if user else None,
        )
        attempted_at = self._clock()
        try:
            self.transport.send(message)
        except Exception as exc:
            current.mark_failed(str(exc) or exc.__class__.__name__, attempted_at)
            self._outbox.update(current)
            logger.warning(
                "Email for outbox record %s failed (attempt %s): %s; next retry at %s",
                current.id,
                current.retry_count,
                current.error_message,
                current.next_retry_at,
            )
            return False

        current.mark_sent(attempted_at)
        self._outbox.update(current)
        logger.info(
            "Email for outbox record %s sent to user %s",
            current.id,
            current.target_user_id,
        )
        return True


__all__ = ["EmailDeliveryWorker", "INVALID_RECIPIENT_MESSAGE"]
