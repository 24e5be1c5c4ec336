"""Background delivery helpers: scheduling, digest coalescing and retries."""

from .coalescer import (
    BatchAccumulator,
    Digest,
    DigestItem,
    EmailBatchCoalescer,
    build_digest,
)
from .scheduler import (
    DeliveryClaims,
    TaskScheduler,
    ThreadingTaskScheduler,
    TimerHandle,
)
from .sweeper import PeriodicRunner, RetrySweeper, SweepResult

__all__ = [
    "BatchAccumulator",
    "DeliveryClaims",
    "Digest",
    "DigestItem",
    "EmailBatchCoalescer",
    "PeriodicRunner",
    "RetrySweeper",
    "SweepResult",
    "TaskScheduler",
    "ThreadingTaskScheduler",
    "TimerHandle",
    "build_digest",
]
