"""
Unit tests for coordinator metrics (light sanity checks).
"""

from prometheus_client import REGISTRY

from ingest_store.coordinator import BufferedWriter, RetryPolicy
from ingest_store.models import ErrorDetail


def _value(name, **labels):
    return REGISTRY.get_sample_value(name, labels) or 0.0


def test_flush_counter_by_trigger(messages, recording_sink):
    sink = recording_sink("metrics-flush")
    writer = BufferedWriter(sink, flush_threshold=5)
    before = _value("ingest_flush_total", strategy="metrics-flush", trigger="threshold")

    for msg in messages(5):
        writer.enqueue(msg)
    writer.join(timeout=5)

    after = _value("ingest_flush_total", strategy="metrics-flush", trigger="threshold")
    assert after - before == 1
    assert _value("ingest_pending_records", strategy="metrics-flush") == 0
    writer.close()


def test_pending_gauge_tracks_buffer(messages, recording_sink):
    writer = BufferedWriter(recording_sink("metrics-pending"), flush_threshold=100)
    for msg in messages(3):
        writer.enqueue(msg)

    assert _value("ingest_pending_records", strategy="metrics-pending") == 3
    writer.close()


def test_retry_and_drop_counters(messages, failing_sink, fake_sleep):
    sink = failing_sink(ErrorDetail(reason="timeout"), name="metrics-retry")
    writer = BufferedWriter(
        sink,
        flush_threshold=100,
        retry_policy=RetryPolicy(max_retry_attempts=2),
        sleep=fake_sleep,
    )
    retries = _value("ingest_retry_total", strategy="metrics-retry")
    dropped = _value("ingest_records_dropped_total", strategy="metrics-retry", reason="exhausted")

    for msg in messages(4):
        writer.enqueue(msg)
    writer.flush()

    assert _value("ingest_retry_total", strategy="metrics-retry") - retries == 2
    assert (
        _value("ingest_records_dropped_total", strategy="metrics-retry", reason="exhausted")
        - dropped
        == 4
    )
    writer.close()


def test_closed_writer_drop_counter(make_msg, recording_sink):
    writer = BufferedWriter(recording_sink("metrics-closed"), flush_threshold=10)
    writer.close()
    before = _value("ingest_records_dropped_total", strategy="metrics-closed", reason="closed")

    writer.enqueue(make_msg(1))

    after = _value("ingest_records_dropped_total", strategy="metrics-closed", reason="closed")
    assert after - before == 1
