"""Wiring of the notification delivery core for the running application."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.config import Settings, get_settings
from app.domain.entities import (
    OUTBOX_CHANNEL_EMAIL,
    OUTBOX_STATUS_PENDING,
    DispatchResult,
    NotificationEvent,
    OutboxRecord,
)
from app.infrastructure.database import SessionLocal
from app.infrastructure.email import EmailTransport, build_transport
from app.infrastructure.notifications import (
    DeliveryClaims,
    Digest,
    DigestItem,
    EmailBatchCoalescer,
    PeriodicRunner,
    RetrySweeper,
    SweepResult,
    TaskScheduler,
    ThreadingTaskScheduler,
)
from app.infrastructure.repositories import OutboxRepository
from app.utils import now_in_app_timezone

from .delivery import EmailDeliveryWorker
from .dispatch import dispatch_event
from .outbox import retry_all_failed, retry_outbox_record
from .preferences import batch_windows_from_settings

logger = logging.getLogger(__name__)


class NotificationService:
    """Own the transport, scheduler, coalescer and sweeper of one process."""

    def __init__(
        self,
        *,
        settings: Settings | None = None,
        session_factory: Callable[[], Session] | None = None,
        transport: EmailTransport | None = None,
        scheduler: TaskScheduler | None = None,
        clock: Callable[[], datetime] = now_in_app_timezone,
    ) -> None:
        self.settings = settings or get_settings()
        self.session_factory = session_factory or SessionLocal
        self.transport = transport or build_transport(self.settings)
        self.scheduler = scheduler or ThreadingTaskScheduler(
            self.settings.email_delivery_workers
        )
        self.clock = clock
        self.claims = DeliveryClaims()
        self.windows = batch_windows_from_settings(self.settings)
        self.coalescer = EmailBatchCoalescer(self.scheduler, self.record_digest)
        self.sweeper = RetrySweeper(
            self.session_factory,
            self._deliver_unclaimed,
            claims=self.claims,
            batch_size=self.settings.notification_sweep_batch_size,
            clock=self.clock,
        )
        self.runner = PeriodicRunner(
            self.sweeper.run_once,
            self.settings.notification_sweep_interval_seconds,
        )

    def start(self) -> None:
        if not self.settings.notification_worker_enabled:
            logger.info("Notification sweeper disabled by configuration")
            return
        self.runner.start()

    def shutdown(self) -> None:
        """Stop the sweeper, flush open digest windows and drain the executor."""

        self.runner.stop(timeout=self.settings.notification_sweep_interval_seconds)
        flushed = self.coalescer.flush_all()
        if flushed:
            logger.info("Flushed %s pending digest(s) on shutdown", flushed)
        shutdown = getattr(self.scheduler, "shutdown", None)
        if callable(shutdown):
            shutdown(wait=True)

    def dispatch(
        self, event: NotificationEvent, *, session: Session | None = None
    ) -> DispatchResult:
        if session is not None:
            return self._dispatch(session, event)
        with self.session_factory() as own_session:
            return self._dispatch(own_session, event)

    def _dispatch(self, session: Session, event: NotificationEvent) -> DispatchResult:
        return dispatch_event(
            session,
            event,
            submit_email=self.submit_email,
            enqueue_digest=self.enqueue_digest,
            windows=self.windows,
            clock=self.clock,
        )

    def submit_email(self, record_id: int) -> None:
        self.scheduler.submit(self.deliver_by_id, record_id)

    def enqueue_digest(
        self, user_id: int, event_type: str, item: DigestItem, window_seconds: int
    ) -> bool:
        return self.coalescer.enqueue(user_id, event_type, item, window_seconds)

    def deliver_by_id(self, record_id: int) -> bool:
        """Deliver one EMAIL row using a private session (executor entry point)."""

        with self.session_factory() as session:
            record = OutboxRepository(session).get(record_id)
            if record is None:
                logger.warning("Outbox record %s vanished before delivery", record_id)
                return False
            return self.deliver_record(session, record)

    def deliver_record(self, session: Session, record: OutboxRecord) -> bool:
        """Deliver ``record`` unless another thread is already sending it."""

        with self.claims.claimed(record.id) as acquired:
            if not acquired:
                logger.debug("Outbox record %s is already being delivered", record.id)
                return False
            return self._deliver_unclaimed(session, record)

    def _deliver_unclaimed(self, session: Session, record: OutboxRecord) -> bool:
        worker = EmailDeliveryWorker(
            session, self.transport, settings=self.settings, clock=self.clock
        )
        return worker.deliver(record)

    def record_digest(self, digest: Digest) -> OutboxRecord | None:
        """Persist a closed digest as one EMAIL row and attempt it right away."""

        with self.session_factory() as session:
            repository = OutboxRepository(session)
            try:
                record = repository.create(
                    OutboxRecord(
                        id=None,
                        channel=OUTBOX_CHANNEL_EMAIL,
                        event_type=digest.event_type,
                        target_user_id=digest.user_id,
                        title=digest.title,
                        content=digest.content,
                        status=OUTBOX_STATUS_PENDING,
                        actor_user_id=digest.actor_user_id,
                        related_object_type=digest.related_object_type,
                        related_object_id=digest.related_object_id,
                        created_at=self.clock(),
                    )
                )
            except SQLAlchemyError:
                session.rollback()
                logger.exception(
                    "Failed to record digest email for user %s (%s item(s)); "
                    "recording its items for the sweeper",
                    digest.user_id,
                    digest.item_count,
                )
                self._record_digest_items(digest)
                return None
            self.deliver_record(session, record)
            return repository.get(record.id)

    def _record_digest_items(self, digest: Digest) -> None:
        """Keep the items of an unrecorded digest as PENDING rows, one per item."""

        now = self.clock()
        with self.session_factory() as session:
            repository = OutboxRepository(session)
            for item in digest.items:
                try:
                    repository.create(
                        OutboxRecord(
                            id=None,
                            channel=OUTBOX_CHANNEL_EMAIL,
                            event_type=digest.event_type,
                            target_user_id=digest.user_id,
                            title=item.title,
                            content=item.content,
                            status=OUTBOX_STATUS_PENDING,
                            actor_user_id=item.actor_user_id,
                            related_object_type=item.related_object_type,
                            related_object_id=item.related_object_id,
                            dedupe_key=item.dedupe_key,
                            created_at=now,
                        )
                    )
                except IntegrityError:
                    session.rollback()
                    logger.info(
                        "Digest item %s for user %s already recorded",
                        item.dedupe_key,
                        digest.user_id,
                    )
                except SQLAlchemyError:
                    session.rollback()
                    logger.exception(
                        "Lost digest item %r for user %s", item.title, digest.user_id
                    )

    def retry(self, session: Session, record_id: int) -> bool:
        return retry_outbox_record(session, record_id, deliver=self.deliver_record)

    def retry_all_failed(self, session: Session) -> int:
        return retry_all_failed(session, deliver=self.deliver_record, now=self.clock())

    def run_sweep(self) -> SweepResult:
        return self.sweeper.run_once()


_service: NotificationService | None = None


def get_notification_service() -> NotificationService:
    """Return the process-wide service, creating it on first use."""

    global _service
    if _service is None:
        _service = NotificationService()
    return _service


def set_notification_service(service: NotificationService | None) -> None:
    global _service
    _service = service


__all__ = [
    "NotificationService",
    "get_notification_service",
    "set_notification_service",
]
