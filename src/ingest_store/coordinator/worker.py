from __future__ import annotations

import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, Optional

from loguru import logger

from ..metrics.performance import PerformanceAggregator
from ..metrics.registry import FLUSH_TOTAL, PENDING_RECORDS, RECORDS_DROPPED_TOTAL
from ..models import Batch, DroppedItem, ErrorDetail, FlushResult, Message
from .policy import RetryPolicy
from .queue import MessageQueue
from .retry import RetryExecutor
from .types import FlushTrigger, Sink


class BufferedWriter:
    """Buffers messages for one sink and flushes them off the caller's thread.

    A flush is triggered when the buffer reaches ``flush_threshold`` (from
    ``enqueue``), by the FlushScheduler, explicitly, or on close. All flushes
    run on a private single-thread executor, so flushes for this sink never
    overlap and each drained batch is written by exactly one task.

    Usage:
        writer = BufferedWriter(RowInsertSink(client), flush_threshold=500)
        for msg in messages:
            writer.enqueue(msg)
        writer.close()  # final flush, then releases the client
    """

    def __init__(
        self,
        sink: Sink,
        *,
        flush_threshold: int = 500,
        retry_policy: Optional[RetryPolicy] = None,
        aggregator: Optional[PerformanceAggregator] = None,
        on_flush: Optional[Callable[[FlushResult], None]] = None,
        sleep: Optional[Callable[[float], None]] = None,
    ):
        if flush_threshold <= 0:
            raise ValueError("flush_threshold must be > 0")

        self._sink = sink
        self._threshold = flush_threshold
        self._aggregator = aggregator
        self._on_flush = on_flush
        self._queue: MessageQueue[Message] = MessageQueue()

        self._stop = threading.Event()
        self._retry = RetryExecutor(retry_policy, stop_event=self._stop, sleep=sleep)
        self._executor = ThreadPoolExecutor(
            max_workers=1, thread_name_prefix=f"flush-{sink.name}"
        )

        # Protects _flush_queued and _closed against concurrent triggers.
        self._state_lock = threading.Lock()
        self._flush_queued = False
        self._closed = False
        self._terminated = False

        logger.info(
            f"Initialized {sink.name} writer with flush threshold: {flush_threshold}, "
            f"max retry attempts: {self._retry.policy.max_retry_attempts}"
        )

    # --------------------------- properties

    @property
    def name(self) -> str:
        return self._sink.name

    @property
    def sink(self) -> Sink:
        return self._sink

    @property
    def pending(self) -> int:
        return self._queue.size

    @property
    def closed(self) -> bool:
        return self._closed

    # --------------------------- public API

    def enqueue(self, message: Message) -> None:
        """Buffer ``message``; never blocks on I/O and never raises."""
        # Held only for the append; close() flips _closed under the same lock,
        # so a message is either seen by the final flush or rejected here.
        with self._state_lock:
            closed = self._closed
            if not closed:
                size = self._queue.enqueue(message)
        if closed:
            logger.error(f"{self.name}: writer closed, dropping message id={message.identifier!r}")
            RECORDS_DROPPED_TOTAL.labels(strategy=self.name, reason="closed").inc()
            return

        PENDING_RECORDS.labels(strategy=self.name).set(size)
        if size >= self._threshold:
            self.flush_async("threshold")

    def flush_async(self, trigger: FlushTrigger = "manual") -> Optional[Future]:
        """Schedule a flush; returns its future, or None if one is already queued."""
        with self._state_lock:
            if self._closed or self._flush_queued:
                return None
            self._flush_queued = True
            if trigger == "threshold":
                logger.info(
                    f"{self.name}: auto-flush triggered, pending count ({self.pending}) "
                    f"reached threshold ({self._threshold})"
                )
            return self._executor.submit(self._run_flush, trigger)

    def flush(self, trigger: FlushTrigger = "manual", timeout: Optional[float] = None):
        """Flush now and wait; returns the FlushResult (None when nothing was buffered)."""
        fut = self.flush_async(trigger)
        if fut is None:
            # A queued flush will pick up everything buffered so far.
            self.join(timeout)
            return None
        return fut.result(timeout)

    def join(self, timeout: Optional[float] = None) -> None:
        """Wait until every flush submitted so far has finished."""
        if self._terminated:
            return
        try:
            marker = self._executor.submit(lambda: None)
        except RuntimeError:
            # close() is already shutting the executor down and waiting on it
            return
        marker.result(timeout)

    def close(self) -> None:
        """Final flush of whatever is buffered, then release the sink."""
        with self._state_lock:
            if self._closed:
                return
            self._closed = True
            # No new backoff cycles once shutdown starts.
            self._stop.set()

        logger.info(f"Shutting down {self.name} writer ({self.pending} pending)")
        final = self._executor.submit(self._run_flush, "shutdown")
        try:
            final.result()
        finally:
            self._executor.shutdown(wait=True)
            self._terminated = True
            # Producers racing with close() may have slipped in after the final drain.
            for msg in self._queue.drain_all():
                logger.error(f"{self.name}: writer closed, dropping message id={msg.identifier!r}")
                RECORDS_DROPPED_TOTAL.labels(strategy=self.name, reason="closed").inc()
            self._sink.close()

    # --------------------------- internals

    def _run_flush(self, trigger: FlushTrigger) -> Optional[FlushResult]:
        with self._state_lock:
            self._flush_queued = False
        items = self._queue.drain_all()
        PENDING_RECORDS.labels(strategy=self.name).set(self._queue.size)
        if not items:
            return None

        batch = Batch(messages=tuple(items), strategy=self.name, trigger=trigger)
        FLUSH_TOTAL.labels(strategy=self.name, trigger=trigger).inc()
        logger.debug(f"{self.name}: flushing {len(batch)} records ({trigger})")

        try:
            result = self._retry.execute(self._sink, batch)
        except Exception as e:
            logger.exception(f"{self.name}: unexpected error flushing batch {batch.batch_id}")
            err = ErrorDetail(reason=type(e).__name__, message=str(e))
            RECORDS_DROPPED_TOTAL.labels(strategy=self.name, reason="error").inc(len(batch))
            result = FlushResult(
                strategy=self.name,
                batch_id=batch.batch_id,
                trigger=trigger,
                attempted=len(batch),
                succeeded=0,
                permanently_failed=len(batch),
                calls=0,
                duration_ms=0,
                dropped=tuple(DroppedItem(m.identifier, err) for m in batch.messages),
            )

        if self._aggregator is not None:
            self._aggregator.record(
                self.name, result.succeeded, result.duration_ms, result.permanently_failed
            )
        if self._on_flush is not None:
            self._on_flush(result)
        return result
