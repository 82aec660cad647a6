"""
Unit tests for MessageQueue (intake buffer).
"""

import threading

from ingest_store.coordinator import MessageQueue


def test_enqueue_returns_size_and_drain_empties():
    q = MessageQueue[int]()
    assert q.enqueue(1) == 1
    assert q.enqueue(2) == 2
    assert q.size == 2
    assert len(q) == 2

    assert q.drain_all() == [1, 2]
    assert q.size == 0
    assert q.drain_all() == []


def test_drain_preserves_order():
    q = MessageQueue[int]()
    for i in range(100):
        q.enqueue(i)
    assert q.drain_all() == list(range(100))


def test_concurrent_enqueue_and_drain_never_loses_or_duplicates():
    q = MessageQueue[int]()
    producers = 4
    per_producer = 5000
    drained: list[int] = []
    done = threading.Event()

    def produce(base: int):
        for i in range(per_producer):
            q.enqueue(base * per_producer + i)

    def consume():
        while not done.is_set():
            drained.extend(q.drain_all())
        drained.extend(q.drain_all())

    consumer = threading.Thread(target=consume)
    consumer.start()
    threads = [threading.Thread(target=produce, args=(p,)) for p in range(producers)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    done.set()
    consumer.join()

    assert len(drained) == producers * per_producer
    assert set(drained) == set(range(producers * per_producer))
    assert q.size == 0


def test_count_matches_length_at_quiescence():
    q = MessageQueue[str]()
    threads = [
        threading.Thread(target=lambda: [q.enqueue("x") for _ in range(1000)]) for _ in range(4)
    ]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert q.size == 4000
    assert len(q.drain_all()) == 4000
