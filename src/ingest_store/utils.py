"""
Utility helpers for the ingest store writer.

Includes time helpers, id generation, NDJSON iteration and the atomic
integer cell shared by the buffers and the performance aggregator.
"""

import json
import threading
import time
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, Tuple, Union


def generate_id() -> str:
    """Generate a UUID string for record identification."""
    return str(uuid.uuid4())


def utc_now() -> datetime:
    """Get current UTC datetime."""
    return datetime.now(timezone.utc)


def elapsed_ms(start: float) -> int:
    """Milliseconds since a ``time.perf_counter()`` reading."""
    return int((time.perf_counter() - start) * 1000)


def iter_ndjson(path: Union[str, Path]) -> Iterator[Tuple[int, dict]]:
    """Yield ``(line_number, object)`` for every non-blank NDJSON line.

    Lines that are not valid JSON objects raise ``ValueError`` with the line
    number attached.
    """
    with open(path, "r", encoding="utf-8") as fh:
        for lineno, line in enumerate(fh, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                obj = json.loads(line)
            except json.JSONDecodeError as e:
                raise ValueError(f"line {lineno}: {e}") from e
            if not isinstance(obj, dict):
                raise ValueError(f"line {lineno}: expected a JSON object")
            yield lineno, obj


class AtomicInteger:
    """Integer cell with atomic read-modify-write operations.

    Every operation holds a private lock for a handful of bytecodes only, so
    callers on different threads never observe a torn value. Min/max style
    updates should be written as compare-and-set retry loops on top of
    ``get``/``compare_and_set``.
    """

    __slots__ = ("_value", "_lock")

    def __init__(self, initial: int = 0):
        self._value = initial
        self._lock = threading.Lock()

    def get(self) -> int:
        return self._value

    def set(self, value: int) -> None:
        with self._lock:
            self._value = value

    def add_and_get(self, delta: int) -> int:
        with self._lock:
            self._value += delta
            return self._value

    def increment_and_get(self) -> int:
        return self.add_and_get(1)

    def compare_and_set(self, expected: int, new: int) -> bool:
        """Set to ``new`` only if the current value is ``expected``."""
        with self._lock:
            if self._value != expected:
                return False
            self._value = new
            return True

    def __repr__(self) -> str:
        return f"AtomicInteger({self._value})"
