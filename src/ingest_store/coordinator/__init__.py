"""Dual-path write coordinator

Producer -> buffer -> flush executor -> sink pipeline with:
- MessageQueue (unbounded intake, atomic drain)
- RetryPolicy with capped exponential backoff
- RetryExecutor (per-item classification, partial resubmission)
- BufferedWriter with threshold-triggered async flushes
- FlushScheduler for straggler flushes
- WriteCoordinator orchestration & health checks
"""

from .types import Sink, FlushTrigger
from .policy import RetryPolicy, default_retry_classifier, RETRIABLE_VOCABULARY
from .queue import MessageQueue
from .retry import RetryExecutor
from .worker import BufferedWriter
from .scheduler import FlushScheduler, PeriodicTask
from .write_coordinator import WriteCoordinator, CoordinatorHealth

__all__ = [
    # types
    "Sink",
    "FlushTrigger",
    "CoordinatorHealth",
    # policies
    "RetryPolicy",
    "default_retry_classifier",
    "RETRIABLE_VOCABULARY",
    # runtime
    "MessageQueue",
    "RetryExecutor",
    "BufferedWriter",
    "FlushScheduler",
    "PeriodicTask",
    "WriteCoordinator",
]
