"""
Sink strategy base class and client contracts.

A sink strategy turns a sequence of Messages into the payload its warehouse
API expects, performs exactly one client call, and reports per-item
failures as data (WriteOutcome). It never retries and never raises for
sink-side failures; retry decisions belong to the RetryExecutor.
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Mapping, Optional, Protocol, Sequence

from loguru import logger

from ..errors import ConversionError
from ..metrics.registry import SINK_WRITE_LATENCY, SINK_WRITES_TOTAL
from ..models import ErrorDetail, Message, WriteOutcome
from ..utils import utc_now

Row = dict[str, Any]


# --------------------------------------------------------------------------- #
# Client contracts (implemented outside the core, pre-authenticated)
# --------------------------------------------------------------------------- #
@dataclass(frozen=True)
class InsertResult:
    """Per-row outcome of a bulk insert; ``errors`` is keyed by row index."""

    errors: Mapping[int, Sequence[ErrorDetail]] = field(default_factory=dict)

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)


@dataclass(frozen=True)
class AppendResult:
    """Single outcome of a streamed append; ``offset`` is set on success."""

    offset: Optional[int] = None
    error: Optional[ErrorDetail] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class RowInsertClient(Protocol):
    def insert_rows(self, rows: Sequence[Mapping[str, Any]]) -> InsertResult: ...

    def close(self) -> None: ...


class StreamAppendClient(Protocol):
    def append_batch(self, rows: Sequence[Mapping[str, Any]]) -> AppendResult: ...

    def close(self) -> None: ...


# --------------------------------------------------------------------------- #
# Canonical payload mapping
# --------------------------------------------------------------------------- #
def message_to_row(message: Message, processed_at: datetime) -> Row:
    """Map a Message onto the flat warehouse schema.

    Raises ConversionError when a required field is missing.
    """
    if not message.identifier:
        raise ConversionError(message.identifier, "missing required field 'id'")
    if message.payload is None:
        raise ConversionError(message.identifier, "missing required field 'message'")
    ts = message.timestamp or processed_at
    return {
        "id": message.identifier,
        "message": message.payload,
        "timestamp": ts.isoformat(),
        "source": message.source_tag,
        "priority": message.priority if message.priority is not None else 0,
        "insert_time": processed_at.isoformat(),
    }


# --------------------------------------------------------------------------- #
# Strategy base
# --------------------------------------------------------------------------- #
class SinkStrategy(ABC):
    """Common capability of both write paths: ``write(batch) -> outcome``."""

    name: str = "sink"

    def __init__(self, clock: Callable[[], datetime] = utc_now):
        self._clock = clock

    def __enter__(self) -> "SinkStrategy":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def write(self, messages: Sequence[Message]) -> WriteOutcome:
        """Convert and write ``messages`` with a single client call."""
        if not messages:
            return WriteOutcome(attempted=0, succeeded=0)

        start = time.perf_counter()
        outcome = self._write(messages)
        SINK_WRITE_LATENCY.labels(sink=self.name).observe(time.perf_counter() - start)
        status = "success" if outcome.ok else ("failure" if outcome.succeeded == 0 else "partial")
        SINK_WRITES_TOTAL.labels(sink=self.name, status=status).inc()
        return outcome

    def convert(
        self, messages: Sequence[Message]
    ) -> tuple[list[Row], list[int], dict[int, ErrorDetail]]:
        """Build rows for every convertible message.

        Returns the rows, the input position of each row, and conversion
        failures keyed by input position.
        """
        processed_at = self._clock()
        rows: list[Row] = []
        positions: list[int] = []
        failures: dict[int, ErrorDetail] = {}
        for i, msg in enumerate(messages):
            try:
                rows.append(message_to_row(msg, processed_at))
            except ConversionError as e:
                logger.debug(f"{self.name}: unconvertible message at index {i}: {e}")
                failures[i] = e.detail()
                continue
            positions.append(i)
        return rows, positions, failures

    @abstractmethod
    def _write(self, messages: Sequence[Message]) -> WriteOutcome: ...

    @abstractmethod
    def close(self) -> None:
        """Release the underlying client."""
