"""Timer and executor primitives shared by the background delivery components."""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from contextlib import contextmanager
from typing import Any, Callable, Iterator, Protocol

logger = logging.getLogger(__name__)


class TimerHandle(Protocol):
    def cancel(self) -> None:  # pragma: no cover - protocol
        ...


class TaskScheduler(Protocol):
    """Run callables later or on a worker pool."""

    def call_later(
        self, delay: float, fn: Callable[..., Any], *args: Any
    ) -> TimerHandle:  # pragma: no cover - protocol
        ...

    def submit(self, fn: Callable[..., Any], *args: Any) -> Any:  # pragma: no cover
        ...


def _run_logged(fn: Callable[..., Any], *args: Any) -> Any:
    try:
        return fn(*args)
    except Exception:
        logger.exception("Background notification task %r failed", fn)
        return None


class ThreadingTaskScheduler:
    """:class:`TaskScheduler` backed by ``threading.Timer`` and a thread pool."""

    def __init__(self, max_workers: int = 4) -> None:
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="email-delivery"
        )
        self._timers: set[threading.Timer] = set()
        self._lock = threading.Lock()
        self._closed = False

    def call_later(
        self, delay: float, fn: Callable[..., Any], *args: Any
    ) -> threading.Timer:
        timer: threading.Timer

        def _fire() -> None:
            with self._lock:
                self._timers.discard(timer)
            _run_logged(fn, *args)

        timer = threading.Timer(max(delay, 0.0), _fire)
        timer.daemon = True
        with self._lock:
            if self._closed:
                raise RuntimeError("Scheduler has been shut down")
            self._timers.add(timer)
        timer.start()
        return timer

    def submit(self, fn: Callable[..., Any], *args: Any) -> Future:
        return self._executor.submit(_run_logged, fn, *args)

    def shutdown(self, *, wait: bool = True) -> None:
        """Cancel pending timers and stop the executor."""

        with self._lock:
            self._closed = True
            timers = list(self._timers)
            self._timers.clear()
        for timer in timers:
            timer.cancel()
        self._executor.shutdown(wait=wait)


class DeliveryClaims:
    """In-process registry of outbox rows currently being delivered.

    The immediate executor and the retry sweeper both claim a row before
    sending it so the same row is never handed to the transport twice at once.
    """

    def __init__(self) -> None:
        self._claimed: set[int] = set()
        self._lock = threading.Lock()

    def claim(self, record_id: int) -> bool:
        with self._lock:
            if record_id in self._claimed:
                return False
            self._claimed.add(record_id)
            return True

    def release(self, record_id: int) -> None:
        with self._lock:
            self._claimed.discard(record_id)

    def is_claimed(self, record_id: int) -> bool:
        with self._lock:
            return record_id in self._claimed

    @contextmanager
    def claimed(self, record_id: int) -> Iterator[bool]:
        """Yield ``True`` while holding the claim, ``False`` if already taken."""

        acquired = self.claim(record_id)
        try:
            yield acquired
        finally:
            if acquired:
                self.release(record_id)


__all__ = [
    "DeliveryClaims",
    "TaskScheduler",
    "ThreadingTaskScheduler",
    "TimerHandle",
]
