"""Polling retry sweeper for the email outbox."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable

from sqlalchemy.orm import Session

from app.domain.entities import OutboxRecord
from app.infrastructure.repositories import OutboxRepository
from app.utils import now_in_app_timezone

from .scheduler import DeliveryClaims

logger = logging.getLogger(__name__)

DEFAULT_SWEEP_BATCH_SIZE = 50
DEFAULT_SWEEP_INTERVAL_SECONDS = 10.0


@dataclass
class SweepResult:
    requeued: int = 0
    attempted: int = 0
    sent: int = 0
    skipped: int = 0

    @property
    def failed(self) -> int:
        return self.attempted - self.sent


class RetrySweeper:
    """Drive FAILED and PENDING email rows back through the delivery worker.

    Each pass first flips due FAILED rows (below the retry ceiling) back to
    PENDING, then attempts the oldest PENDING rows. Both passes are bounded by
    ``batch_size``.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        deliver: Callable[[Session, OutboxRecord], bool],
        *,
        claims: DeliveryClaims,
        batch_size: int = DEFAULT_SWEEP_BATCH_SIZE,
        clock: Callable[[], datetime] = now_in_app_timezone,
    ) -> None:
        if batch_size <= 0:
            raise ValueError("batch_size must be positive")
        self._session_factory = session_factory
        self._deliver = deliver
        self._claims = claims
        self.batch_size = batch_size
        self._clock = clock

    def run_once(self) -> SweepResult:
        result = SweepResult()
        session = self._session_factory()
        try:
            repository = OutboxRepository(session)
            result.requeued = repository.requeue_due_failed_emails(
                now=self._clock(), limit=self.batch_size
            )
            for record in repository.list_pending_emails(limit=self.batch_size):
                with self._claims.claimed(record.id) as acquired:
                    if not acquired:
                        result.skipped += 1
                        continue
                    result.attempted += 1
                    try:
                        if self._deliver(session, record):
                            result.sent += 1
                    except Exception:
                        session.rollback()
                        logger.exception(
                            "Unexpected error delivering outbox record %s", record.id
                        )
        finally:
            session.close()

        if result.requeued or result.attempted:
            logger.info(
                "Outbox sweep: requeued=%s attempted=%s sent=%s skipped=%s",
                result.requeued,
                result.attempted,
                result.sent,
                result.skipped,
            )
        return result


class PeriodicRunner:
    """Call ``fn`` every ``interval`` seconds on a background thread.

    A run that takes longer than the interval is followed immediately by the
    next one; runs never overlap, including those started with :meth:`trigger`.
    """

    def __init__(
        self,
        fn: Callable[[], Any],
        interval: float = DEFAULT_SWEEP_INTERVAL_SECONDS,
        *,
        name: str = "notification-sweeper",
    ) -> None:
        if interval <= 0:
            raise ValueError("interval must be positive")
        self._fn = fn
        self.interval = interval
        self.name = name
        self._stop = threading.Event()
        self._running = threading.Lock()
        self._thread: threading.Thread | None = None

    @property
    def is_alive(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.is_alive:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name=self.name, daemon=True)
        self._thread.start()
        logger.info("Started %s (interval %.1fs)", self.name, self.interval)

    def stop(self, timeout: float | None = None) -> None:
        self._stop.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
        self._thread = None
        logger.info("Stopped %s", self.name)

    def trigger(self) -> bool:
        """Run ``fn`` now unless a run is already in progress."""

        if not self._running.acquire(blocking=False):
            logger.debug("%s is already running; skipping tick", self.name)
            return False
        try:
            self._fn()
        except Exception:
            logger.exception("%s run failed", self.name)
        finally:
            self._running.release()
        return True

    def _loop(self) -> None:
        next_run = time.monotonic() + self.interval
        while not self._stop.wait(max(next_run - time.monotonic(), 0.0)):
            next_run = time.monotonic() + self.interval
            self.trigger()


__all__ = [
    "DEFAULT_SWEEP_BATCH_SIZE",
    "DEFAULT_SWEEP_INTERVAL_SECONDS",
    "PeriodicRunner",
    "RetrySweeper",
    "SweepResult",
]
