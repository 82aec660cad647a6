"""
Fixtures for sink unit tests.
"""

import pytest
from types import SimpleNamespace

from ingest_store.sinks import AppendResult, InsertResult


@pytest.fixture()
def mock_insert_client():
    """Row-insert client that records payloads and accepts every row."""
    calls = []

    def _insert_rows(rows):
        calls.append(list(rows))
        return InsertResult()

    client = SimpleNamespace(insert_rows=_insert_rows, close=lambda: None)
    client._calls = calls
    return client


@pytest.fixture()
def mock_append_client():
    """Append client that records payloads and returns the call number as offset."""
    calls = []

    def _append_batch(rows):
        calls.append(list(rows))
        return AppendResult(offset=len(calls) * 100)

    client = SimpleNamespace(append_batch=_append_batch, close=lambda: None)
    client._calls = calls
    return client


@pytest.fixture()
def mock_client_failure():
    """Client that always raises (for whole-call failure tests)."""

    def _fail(_):
        raise ConnectionError("warehouse unavailable")

    return SimpleNamespace(insert_rows=_fail, append_batch=_fail, close=lambda: None)
