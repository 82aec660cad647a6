from __future__ import annotations

import threading
from typing import Callable, Iterable, Optional

from loguru import logger

from .worker import BufferedWriter


class PeriodicTask:
    """Daemon thread calling ``fn`` every ``interval`` seconds until stopped.

    Errors raised by ``fn`` are logged and the loop keeps ticking.
    """

    def __init__(self, name: str, interval: float, fn: Callable[[], None]):
        if interval <= 0:
            raise ValueError("interval must be > 0")
        self._name = name
        self._interval = interval
        self._fn = fn
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name=self._name, daemon=True)
        self._thread.start()
        logger.debug(f"{self._name} started (every {self._interval:.3f}s)")

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    def _loop(self) -> None:
        while not self._stop.wait(self._interval):
            try:
                self._fn()
            except Exception:
                logger.exception(f"{self._name} tick failed")


class FlushScheduler(PeriodicTask):
    """Straggler flush: periodically flushes every writer with buffered data.

    Bounds staleness by the tick interval even when traffic never reaches a
    writer's threshold. Ticks on empty buffers do nothing.
    """

    def __init__(self, writers: Iterable[BufferedWriter], interval_ms: int = 5000):
        self._writers = list(writers)
        super().__init__("flush-scheduler", interval_ms / 1000.0, self.tick)

    def tick(self) -> int:
        """Schedule a flush for each non-empty writer; returns how many were scheduled."""
        scheduled = 0
        for writer in self._writers:
            pending = writer.pending
            if pending > 0:
                logger.debug(f"Running scheduled flush for {pending} pending {writer.name} rows")
                if writer.flush_async("scheduled") is not None:
                    scheduled += 1
        return scheduled
