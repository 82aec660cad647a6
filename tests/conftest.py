"""
Pytest configuration and fixtures for ingest-store.

Provides message factories, stub sinks and a retry policy fast enough for
unit tests.
"""

import threading
from datetime import datetime, timezone
from typing import Sequence

import pytest

from ingest_store.coordinator import RetryPolicy
from ingest_store.models import ErrorDetail, Message, WriteOutcome

FIXED_NOW = datetime(2025, 1, 15, 12, 0, 0, tzinfo=timezone.utc)


def make_message(i: int, **overrides) -> Message:
    fields = {
        "identifier": f"msg-{i}",
        "payload": f"Test message {i}",
        "timestamp": FIXED_NOW,
        "source_tag": "unit-test",
        "priority": i % 3,
    }
    fields.update(overrides)
    return Message(**fields)


class RecordingSink:
    """Sink stub that accepts everything and remembers each call."""

    def __init__(self, name: str = "recording"):
        self.name = name
        self.calls: list[list[Message]] = []
        self.closed = False
        self._lock = threading.Lock()

    def write(self, messages: Sequence[Message]) -> WriteOutcome:
        with self._lock:
            self.calls.append(list(messages))
        return WriteOutcome(attempted=len(messages), succeeded=len(messages))

    def close(self) -> None:
        self.closed = True

    @property
    def written(self) -> list[Message]:
        return [m for call in self.calls for m in call]


class AlwaysFailingSink(RecordingSink):
    """Sink stub that fails every item of every call with ``error``."""

    def __init__(self, error: ErrorDetail, name: str = "failing"):
        super().__init__(name)
        self.error = error

    def write(self, messages: Sequence[Message]) -> WriteOutcome:
        with self._lock:
            self.calls.append(list(messages))
        return WriteOutcome.whole_call_failed(len(messages), range(len(messages)), self.error)


@pytest.fixture
def make_msg():
    return make_message


@pytest.fixture
def messages():
    def _make(n: int, start: int = 0):
        return [make_message(i) for i in range(start, start + n)]

    return _make


@pytest.fixture
def recording_sink():
    return RecordingSink


@pytest.fixture
def failing_sink():
    return AlwaysFailingSink


@pytest.fixture
def fast_policy():
    return RetryPolicy(max_retry_attempts=3, base_backoff_ms=1, max_backoff_ms=5)


@pytest.fixture
def sleeps():
    """Records backoff sleeps instead of sleeping."""
    recorded: list[float] = []
    return recorded


@pytest.fixture
def fake_sleep(sleeps):
    return sleeps.append
