from __future__ import annotations

import threading
import time
from typing import Callable, Optional

from loguru import logger

from ..errors import map_client_error
from ..metrics.registry import RECORDS_DROPPED_TOTAL, RETRY_TOTAL
from ..models import Batch, DroppedItem, ErrorDetail, FlushResult, Message, WriteOutcome
from ..utils import elapsed_ms, utc_now
from .policy import RetryPolicy
from .types import Sink


class RetryExecutor:
    """Runs one batch against a sink strategy with bounded retries.

    Attempt ``n`` either succeeds, partially fails or fails outright. Failed
    items are classified with ``policy.classify_retryable``; retriable ones
    are resubmitted (only those) after ``policy.next_backoff_ms(n)`` until
    ``policy.max_retry_attempts`` retries have been spent. Everything else is
    dropped and logged so a stuck sink never blocks the buffer.

    Once ``stop_event`` is set, a call already in flight completes but no
    new backoff cycle starts; remaining retriable items are dropped with
    reason ``shutdown``.
    """

    def __init__(
        self,
        policy: Optional[RetryPolicy] = None,
        *,
        stop_event: Optional[threading.Event] = None,
        sleep: Optional[Callable[[float], None]] = None,
    ):
        self._policy = policy or RetryPolicy()
        self._stop = stop_event or threading.Event()
        self._sleep = sleep

    @property
    def policy(self) -> RetryPolicy:
        return self._policy

    @property
    def stop_event(self) -> threading.Event:
        return self._stop

    def execute(self, strategy: Sink, batch: Batch) -> FlushResult:
        start = time.perf_counter()
        pending: list[Message] = list(batch.messages)
        dropped: list[DroppedItem] = []
        calls = 0
        attempt = 0

        while pending:
            try:
                outcome = strategy.write(pending)
            except Exception as e:
                detail = map_client_error(e)
                logger.warning(f"{strategy.name}: write of {len(pending)} items raised: {detail}")
                outcome = WriteOutcome.whole_call_failed(len(pending), range(len(pending)), detail)
            calls += 1

            retriable: list[Message] = []
            last_error: Optional[ErrorDetail] = None
            for idx in sorted(outcome.failures):
                if not 0 <= idx < len(pending):
                    logger.warning(f"{strategy.name}: outcome references unknown index {idx}")
                    continue
                err = outcome.failures[idx]
                msg = pending[idx]
                if self._policy.classify_retryable(err):
                    retriable.append(msg)
                    last_error = err
                else:
                    reason = "conversion" if err.permanent else "fatal"
                    self._drop(strategy.name, batch, msg, err, reason, dropped)

            if not retriable:
                break

            if attempt >= self._policy.max_retry_attempts:
                logger.error(
                    f"{strategy.name}: max retry attempts ({self._policy.max_retry_attempts}) "
                    f"reached for batch {batch.batch_id}, {len(retriable)} items left"
                )
                for msg in retriable:
                    self._drop(strategy.name, batch, msg, last_error, "exhausted", dropped)
                break

            resumed = not self._stop.is_set() and self._backoff(
                strategy.name, batch, attempt + 1, retriable
            )
            if not resumed:
                for msg in retriable:
                    err = ErrorDetail(reason="shutdown", message=f"retry abandoned: {last_error}")
                    self._drop(strategy.name, batch, msg, err, "shutdown", dropped)
                break

            attempt += 1
            pending = retriable

        result = FlushResult(
            strategy=strategy.name,
            batch_id=batch.batch_id,
            trigger=batch.trigger,
            attempted=len(batch),
            succeeded=len(batch) - len(dropped),
            permanently_failed=len(dropped),
            calls=calls,
            duration_ms=elapsed_ms(start),
            dropped=tuple(dropped),
        )
        age_ms = int((utc_now() - batch.created_at).total_seconds() * 1000)
        logger.info(
            f"{strategy.name}: flushed batch {batch.batch_id} ({batch.trigger}) "
            f"{result.attempted} records, {result.succeeded} successful, "
            f"{result.permanently_failed} failed, {calls} call(s) in {result.duration_ms} ms, "
            f"batch age {age_ms} ms"
        )
        return result

    def _backoff(self, sink: str, batch: Batch, attempt: int, retriable: list[Message]) -> bool:
        """Wait before retry ``attempt``; False if shutdown interrupted the wait."""
        delay_ms = self._policy.next_backoff_ms(attempt)
        logger.warning(
            f"{sink}: retry attempt {attempt}/{self._policy.max_retry_attempts} for batch "
            f"{batch.batch_id}: {len(retriable)} items in {delay_ms} ms"
        )
        RETRY_TOTAL.labels(strategy=sink).inc()
        if self._sleep is not None:
            self._sleep(delay_ms / 1000.0)
            return not self._stop.is_set()
        return not self._stop.wait(delay_ms / 1000.0)

    @staticmethod
    def _drop(
        sink: str,
        batch: Batch,
        msg: Message,
        err: Optional[ErrorDetail],
        reason: str,
        dropped: list[DroppedItem],
    ) -> None:
        err = err or ErrorDetail(reason="unknown")
        logger.error(
            f"{sink}: permanently failed message id={msg.identifier!r} "
            f"(batch {batch.batch_id}, {reason}): {err}"
        )
        RECORDS_DROPPED_TOTAL.labels(strategy=sink, reason=reason).inc()
        dropped.append(DroppedItem(identifier=msg.identifier, error=err))
