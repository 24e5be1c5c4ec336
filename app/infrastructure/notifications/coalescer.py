"""Time-windowed coalescing of high-frequency notification emails."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable

from app.utils import now_in_app_timezone

from .scheduler import TaskScheduler

logger = logging.getLogger(__name__)

BatchKey = tuple[int, str]


def _batch_key(user_id: int, event_type: Any) -> BatchKey:
    return (user_id, getattr(event_type, "value", event_type))


@dataclass(frozen=True)
class DigestItem:
    """One notification waiting inside a batch window."""

    title: str
    content: str
    actor_user_id: int | None = None
    related_object_type: str | None = None
    related_object_id: str | None = None
    dedupe_key: str | None = None


@dataclass(frozen=True)
class Digest:
    """The single email produced when a batch window closes."""

    user_id: int
    event_type: str
    title: str
    content: str
    item_count: int
    actor_user_id: int | None = None
    related_object_type: str | None = None
    related_object_id: str | None = None
    items: tuple[DigestItem, ...] = ()


@dataclass
class BatchAccumulator:
    items: list[DigestItem] = field(default_factory=list)
    flush_at: datetime | None = None
    handle: Any = None

    def contains(self, dedupe_key: str | None) -> bool:
        if not dedupe_key:
            return False
        return any(item.dedupe_key == dedupe_key for item in self.items)


def build_digest(user_id: int, event_type: str, items: list[DigestItem]) -> Digest:
    """Merge ``items`` (in arrival order) into a single digest."""

    if not items:
        raise ValueError("Cannot build a digest without items")

    if len(items) == 1:
        item = items[0]
        return Digest(
            user_id=user_id,
            event_type=event_type,
            title=item.title,
            content=item.content,
            item_count=1,
            actor_user_id=item.actor_user_id,
            related_object_type=item.related_object_type,
            related_object_id=item.related_object_id,
            items=(item,),
        )

    content = "\n\n".join(
        f"{index}. {item.title}: {item.content}"
        for index, item in enumerate(items, start=1)
    )
    related = {(item.related_object_type, item.related_object_id) for item in items}
    related_type, related_id = related.pop() if len(related) == 1 else (None, None)
    return Digest(
        user_id=user_id,
        event_type=event_type,
        title=f"{len(items)} new notifications",
        content=content,
        item_count=len(items),
        related_object_type=related_type,
        related_object_id=related_id,
        items=tuple(items),
    )


class EmailBatchCoalescer:
    """Accumulate email notifications per ``(user, event type)`` and flush digests.

    The first item for a key opens a window and schedules a flush; later items
    join the open window without extending it. Each key has its own lock so
    unrelated keys never contend, and a flush removes the accumulator
    atomically before the digest is handed to ``flush_handler``.
    """

    def __init__(
        self,
        scheduler: TaskScheduler,
        flush_handler: Callable[[Digest], Any],
    ) -> None:
        self._scheduler = scheduler
        self._flush_handler = flush_handler
        self._accumulators: dict[BatchKey, BatchAccumulator] = {}
        self._locks: dict[BatchKey, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    def enqueue(
        self,
        user_id: int,
        event_type: str,
        item: DigestItem,
        window_seconds: float,
    ) -> bool:
        """Add ``item`` to the key's window; return ``True`` if a window opened."""

        key = _batch_key(user_id, event_type)
        while True:
            lock = self._lock_for(key)
            with lock:
                if self._locks.get(key) is not lock:
                    # The key was flushed while we waited; retry with a fresh lock.
                    continue
                accumulator = self._accumulators.get(key)
                if accumulator is not None:
                    if accumulator.contains(item.dedupe_key):
                        logger.debug(
                            "Dropping duplicate digest item %s for user %s",
                            item.dedupe_key,
                            user_id,
                        )
                    else:
                        accumulator.items.append(item)
                    return False

                accumulator = BatchAccumulator(items=[item])
                accumulator.flush_at = now_in_app_timezone() + timedelta(
                    seconds=window_seconds
                )
                accumulator.handle = self._scheduler.call_later(
                    window_seconds, self._expire, key, accumulator
                )
                with self._registry_lock:
                    self._accumulators[key] = accumulator
                logger.debug(
                    "Opened %ss digest window for user %s event %s",
                    window_seconds,
                    user_id,
                    event_type,
                )
                return True

    def flush(self, key: BatchKey) -> Digest | None:
        """Close the window for ``key`` and deliver its digest, if any."""

        return self._close(key, expected=None)

    def _expire(self, key: BatchKey, accumulator: BatchAccumulator) -> Digest | None:
        # A stale timer must not close a window opened after its own was flushed.
        return self._close(key, expected=accumulator)

    def _close(
        self, key: BatchKey, *, expected: BatchAccumulator | None
    ) -> Digest | None:
        while True:
            lock = self._lock_for(key)
            with lock:
                if self._locks.get(key) is not lock:
                    continue
                with self._registry_lock:
                    current = self._accumulators.get(key)
                    if current is None or (
                        expected is not None and current is not expected
                    ):
                        accumulator = None
                    else:
                        accumulator = self._accumulators.pop(key)
                    if key not in self._accumulators:
                        del self._locks[key]
            break

        if accumulator is None or not accumulator.items:
            return None
        if accumulator.handle is not None:
            accumulator.handle.cancel()

        user_id, event_type = key
        digest = build_digest(user_id, event_type, accumulator.items)
        logger.info(
            "Flushing digest of %s item(s) for user %s event %s",
            digest.item_count,
            user_id,
            event_type,
        )
        self._flush_handler(digest)
        return digest

    def flush_all(self) -> int:
        """Flush every open window; return the number of digests delivered."""

        with self._registry_lock:
            keys = list(self._accumulators)
        flushed = 0
        for key in keys:
            try:
                if self.flush(key) is not None:
                    flushed += 1
            except Exception:
                logger.exception("Failed to flush digest for %s", key)
        return flushed

    def pending_keys(self) -> list[BatchKey]:
        with self._registry_lock:
            return list(self._accumulators)

    def _lock_for(self, key: BatchKey) -> threading.Lock:
        with self._registry_lock:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._locks[key] = lock
            return lock


__all__ = [
    "BatchAccumulator",
    "Digest",
    "DigestItem",
    "EmailBatchCoalescer",
    "build_digest",
]
