"""
In-memory sink clients.

Stand-ins for the warehouse APIs when no warehouse is reachable: they keep
every accepted row, optionally sleep to simulate network latency, and can
be told to fail rows or whole calls. Used by the benchmark CLI and tests.
"""

from __future__ import annotations

import random
import threading
import time
from typing import Any, Callable, Mapping, Optional, Sequence

from loguru import logger

from ..models import ErrorDetail
from .base import AppendResult, InsertResult

RowFailureHook = Callable[[int, Mapping[str, Any]], Optional[ErrorDetail]]


class _InMemoryClient:
    def __init__(
        self,
        *,
        latency_ms: float = 0.0,
        failure_rate: float = 0.0,
        failure_reason: str = "backendError",
        seed: Optional[int] = None,
    ):
        if not 0.0 <= failure_rate <= 1.0:
            raise ValueError("failure_rate must be within [0, 1]")
        self.latency_ms = latency_ms
        self.failure_rate = failure_rate
        self.failure_reason = failure_reason
        self.rows: list[Mapping[str, Any]] = []
        self.calls = 0
        self.closed = False
        self._rng = random.Random(seed)
        self._lock = threading.Lock()

    def _simulate_latency(self) -> None:
        if self.latency_ms > 0:
            time.sleep(self.latency_ms / 1000.0)

    def _random_failure(self) -> Optional[ErrorDetail]:
        if self.failure_rate and self._rng.random() < self.failure_rate:
            return ErrorDetail(reason=self.failure_reason, message="simulated failure")
        return None

    def close(self) -> None:
        self.closed = True
        logger.debug(f"{type(self).__name__} closed after {self.calls} calls")


class InMemoryRowInsertClient(_InMemoryClient):
    """Accepts rows unless the random failure rate or ``fail_row`` says otherwise."""

    def __init__(self, *, fail_row: Optional[RowFailureHook] = None, **kwargs):
        super().__init__(**kwargs)
        self._fail_row = fail_row

    def insert_rows(self, rows: Sequence[Mapping[str, Any]]) -> InsertResult:
        self._simulate_latency()
        errors: dict[int, list[ErrorDetail]] = {}
        with self._lock:
            self.calls += 1
            for i, row in enumerate(rows):
                err = self._fail_row(i, row) if self._fail_row else None
                err = err or self._random_failure()
                if err is not None:
                    errors[i] = [err]
                else:
                    self.rows.append(row)
        return InsertResult(errors=errors)


class InMemoryStreamAppendClient(_InMemoryClient):
    """Appends whole batches and hands out increasing offsets."""

    def __init__(
        self,
        *,
        fail_append: Optional[Callable[[int], Optional[ErrorDetail]]] = None,
        **kwargs,
    ):
        super().__init__(**kwargs)
        self._fail_append = fail_append
        self._next_offset = 0

    def append_batch(self, rows: Sequence[Mapping[str, Any]]) -> AppendResult:
        self._simulate_latency()
        with self._lock:
            self.calls += 1
            err = self._fail_append(self.calls) if self._fail_append else None
            err = err or self._random_failure()
            if err is not None:
                return AppendResult(error=err)
            offset = self._next_offset
            self.rows.extend(rows)
            self._next_offset += len(rows)
        return AppendResult(offset=offset)
