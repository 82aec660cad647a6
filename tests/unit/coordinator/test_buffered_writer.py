"""
Unit tests for BufferedWriter (threshold flush, ordering, shutdown).
"""

import threading
import time
from typing import Sequence

from ingest_store.coordinator import BufferedWriter, RetryPolicy
from ingest_store.metrics import PerformanceAggregator
from ingest_store.models import ErrorDetail, Message, WriteOutcome


def test_threshold_flush_single_batch(messages, recording_sink):
    sink = recording_sink()
    writer = BufferedWriter(sink, flush_threshold=500)

    for msg in messages(500):
        writer.enqueue(msg)
    writer.join(timeout=5)

    assert len(sink.calls) == 1
    assert len(sink.calls[0]) == 500
    assert writer.pending == 0
    writer.close()


def test_below_threshold_does_not_flush(messages, recording_sink):
    sink = recording_sink()
    writer = BufferedWriter(sink, flush_threshold=10)

    for msg in messages(9):
        writer.enqueue(msg)
    writer.join(timeout=5)

    assert sink.calls == []
    assert writer.pending == 9
    writer.close()
    assert len(sink.written) == 9


def test_no_loss_across_many_flushes(messages, recording_sink):
    sink = recording_sink()
    writer = BufferedWriter(sink, flush_threshold=7)

    for msg in messages(1000):
        writer.enqueue(msg)
    writer.join(timeout=5)

    flushed = len(sink.written)
    assert flushed + writer.pending == 1000
    writer.close()
    ids = [m.identifier for m in sink.written]
    assert len(ids) == 1000
    assert len(set(ids)) == 1000


def test_concurrent_producers_no_loss(messages, recording_sink):
    sink = recording_sink()
    writer = BufferedWriter(sink, flush_threshold=50)
    batches = [messages(250, start=p * 250) for p in range(4)]

    threads = [
        threading.Thread(target=lambda b=b: [writer.enqueue(m) for m in b]) for b in batches
    ]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    writer.close()

    ids = sorted(m.identifier for m in sink.written)
    assert len(ids) == 1000
    assert len(set(ids)) == 1000


def test_enqueue_does_not_block_on_slow_sink(messages):
    release = threading.Event()

    class SlowSink:
        name = "slow"

        def __init__(self):
            self.count = 0

        def write(self, batch: Sequence[Message]) -> WriteOutcome:
            release.wait(5)
            self.count += len(batch)
            return WriteOutcome(attempted=len(batch), succeeded=len(batch))

        def close(self):
            pass

    sink = SlowSink()
    writer = BufferedWriter(sink, flush_threshold=5)

    start = time.perf_counter()
    for msg in messages(50):
        writer.enqueue(msg)
    elapsed = time.perf_counter() - start

    assert elapsed < 1.0
    release.set()
    writer.close()
    assert sink.count == 50


def test_flushes_never_overlap(messages):
    active = 0
    max_active = 0
    lock = threading.Lock()

    class OverlapSink:
        name = "overlap"

        def write(self, batch: Sequence[Message]) -> WriteOutcome:
            nonlocal active, max_active
            with lock:
                active += 1
                max_active = max(max_active, active)
            time.sleep(0.005)
            with lock:
                active -= 1
            return WriteOutcome(attempted=len(batch), succeeded=len(batch))

        def close(self):
            pass

    writer = BufferedWriter(OverlapSink(), flush_threshold=3)
    for msg in messages(60):
        writer.enqueue(msg)
        writer.flush_async()
    writer.close()

    assert max_active == 1


def test_failure_is_recorded_in_aggregator(messages, failing_sink):
    agg = PerformanceAggregator(publish_metrics=False)
    sink = failing_sink(ErrorDetail(reason="UNAVAILABLE"), name="streaming_append")
    writer = BufferedWriter(
        sink,
        flush_threshold=100,
        retry_policy=RetryPolicy(max_retry_attempts=2, base_backoff_ms=1, max_backoff_ms=2),
        aggregator=agg,
    )
    for msg in messages(5):
        writer.enqueue(msg)
    result = writer.flush()

    assert result.permanently_failed == 5
    assert len(sink.calls) == 3
    snap = agg.snapshot("streaming_append")
    assert snap.total_records == 0
    assert snap.total_failed == 5
    assert snap.total_batches == 1
    writer.close()


def test_manual_flush_returns_result(messages, recording_sink):
    sink = recording_sink()
    writer = BufferedWriter(sink, flush_threshold=100)
    for msg in messages(3):
        writer.enqueue(msg)

    result = writer.flush()
    assert result.succeeded == 3
    assert result.trigger == "manual"
    assert writer.flush() is None  # nothing buffered
    writer.close()


def test_close_flushes_remaining_and_releases_sink(messages, recording_sink):
    sink = recording_sink()
    results = []
    writer = BufferedWriter(sink, flush_threshold=100, on_flush=results.append)
    for msg in messages(3):
        writer.enqueue(msg)

    writer.close()

    assert sink.closed
    assert len(sink.written) == 3
    assert results[0].trigger == "shutdown"


def test_enqueue_after_close_is_dropped_not_raised(make_msg, recording_sink):
    sink = recording_sink()
    writer = BufferedWriter(sink, flush_threshold=10)
    writer.close()

    writer.enqueue(make_msg(1))

    assert writer.pending == 0
    assert sink.written == []
    assert writer.flush_async() is None


def test_close_is_idempotent(recording_sink):
    writer = BufferedWriter(recording_sink(), flush_threshold=10)
    writer.close()
    writer.close()
    assert writer.closed


def test_sink_exception_counts_batch_as_failed(messages):
    class BrokenSink:
        name = "broken"

        def write(self, batch):
            raise RuntimeError("bug in sink")

        def close(self):
            pass

    agg = PerformanceAggregator(publish_metrics=False)
    writer = BufferedWriter(BrokenSink(), flush_threshold=100, aggregator=agg)
    for msg in messages(4):
        writer.enqueue(msg)

    result = writer.flush()

    assert result.permanently_failed == 4
    assert agg.snapshot("broken").total_failed == 4
    writer.close()


def test_close_racing_enqueue_never_strands_a_message(make_msg, recording_sink):
    sink = recording_sink()
    writer = BufferedWriter(sink, flush_threshold=10)
    queue_enqueue = writer._queue.enqueue
    closer = threading.Thread(target=writer.close)

    def enqueue_while_closing(item):
        # close() starts inside the producer's enqueue window
        closer.start()
        closer.join(0.2)
        return queue_enqueue(item)

    writer._queue.enqueue = enqueue_while_closing
    writer.enqueue(make_msg(1))
    closer.join(5)

    assert writer.closed
    assert [m.identifier for m in sink.written] == ["msg-1"]
    assert writer.pending == 0
