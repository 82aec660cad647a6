from __future__ import annotations

import threading
from typing import Generic, TypeVar

from ..utils import AtomicInteger

T = TypeVar("T")


class MessageQueue(Generic[T]):
    """Unbounded intake buffer drained wholesale by the batcher.

    ``enqueue`` never blocks on I/O and never fails; the lock is only held
    for the append. ``drain_all`` swaps the backing list out under the same
    lock and resets the mirrored count, so an item pushed concurrently lands
    in exactly one drain.
    """

    def __init__(self) -> None:
        self._items: list[T] = []
        self._size = AtomicInteger(0)  # mirrored for lock-free threshold checks
        self._lock = threading.Lock()

    @property
    def size(self) -> int:
        return self._size.get()

    def __len__(self) -> int:
        return self._size.get()

    def enqueue(self, item: T) -> int:
        """Append ``item``; returns the buffer size including it."""
        with self._lock:
            self._items.append(item)
            return self._size.increment_and_get()

    def drain_all(self) -> list[T]:
        """Remove and return everything queued, oldest first."""
        with self._lock:
            if not self._items:
                return []
            items, self._items = self._items, []
            self._size.set(0)
        return items
