from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Iterable, Optional, Sequence

from loguru import logger

from ..metrics.performance import PerformanceAggregator, PerformanceReport
from ..models import Message
from .policy import RetryPolicy
from .scheduler import FlushScheduler, PeriodicTask
from .types import Sink
from .worker import BufferedWriter

if TYPE_CHECKING:
    from ..config import WriterSettings


@dataclass(frozen=True)
class CoordinatorHealth:
    coordinator_id: str
    pending: dict[str, int]
    scheduler_alive: bool
    reporter_alive: bool
    closed: bool

    @property
    def total_pending(self) -> int:
        return sum(self.pending.values())


class WriteCoordinator:
    """Fans one message stream out to several independently buffered sinks.

    Each sink gets its own BufferedWriter (buffer, threshold trigger and
    single-thread flush executor); a single FlushScheduler covers them all
    and an optional reporter thread logs the comparison report. A failing
    sink only affects its own writer.

    Example:
        with WriteCoordinator(
            [RowInsertSink(insert_client), StreamingAppendSink(append_client)],
            flush_threshold=500,
            flush_interval_ms=5000,
        ) as coord:
            for msg in consumer:
                coord.submit(msg)
        print(coord.report())
    """

    def __init__(
        self,
        sinks: Sequence[Sink],
        *,
        flush_threshold: int = 500,
        flush_interval_ms: int = 5000,
        retry_policy: Optional[RetryPolicy] = None,
        report_interval_ms: Optional[int] = 60_000,
        aggregator: Optional[PerformanceAggregator] = None,
        sleep: Optional[Callable[[float], None]] = None,
        coord_id: str = "dual-writer",
    ):
        if not sinks:
            raise ValueError("at least one sink is required")
        names = [s.name for s in sinks]
        if len(set(names)) != len(names):
            raise ValueError(f"sink names must be unique, got {names}")

        self._coord_id = coord_id
        self._aggregator = aggregator or PerformanceAggregator()
        self._writers: dict[str, BufferedWriter] = {
            s.name: BufferedWriter(
                s,
                flush_threshold=flush_threshold,
                retry_policy=retry_policy,
                aggregator=self._aggregator,
                sleep=sleep,
            )
            for s in sinks
        }
        self._scheduler = FlushScheduler(self._writers.values(), interval_ms=flush_interval_ms)
        self._reporter: Optional[PeriodicTask] = None
        if report_interval_ms:
            self._reporter = PeriodicTask(
                "performance-reporter", report_interval_ms / 1000.0, self.report
            )
        self._closed = False

    @classmethod
    def from_settings(
        cls, sinks: Sequence[Sink], settings: "WriterSettings", **kwargs
    ) -> "WriteCoordinator":
        options = {
            "flush_threshold": settings.flush_threshold,
            "flush_interval_ms": settings.flush_interval_ms,
            "retry_policy": settings.retry_policy(),
            "report_interval_ms": settings.report_interval_ms,
        }
        options.update(kwargs)
        return cls(sinks, **options)

    # --------------- context management

    def __enter__(self) -> "WriteCoordinator":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # --------------- lifecycle

    def start(self) -> None:
        self._scheduler.start()
        if self._reporter is not None:
            self._reporter.start()
        logger.info(
            f"WriteCoordinator {self._coord_id} started with sinks: {', '.join(self._writers)}"
        )

    def close(self) -> None:
        """Stop triggers, flush what is left in every writer, release the sinks."""
        if self._closed:
            return
        self._closed = True
        self._scheduler.stop()
        if self._reporter is not None:
            self._reporter.stop()
        for writer in self._writers.values():
            try:
                writer.close()
            except Exception:
                logger.exception(f"Error closing {writer.name} writer")
        logger.info(f"WriteCoordinator {self._coord_id} stopped")

    # --------------- producer API

    def submit(self, message: Message) -> None:
        """Hand ``message`` to every writer. Never blocks on I/O."""
        for writer in self._writers.values():
            writer.enqueue(message)

    def submit_many(self, messages: Iterable[Message]) -> int:
        n = 0
        for msg in messages:
            self.submit(msg)
            n += 1
        return n

    # --------------- flushing & reporting

    def flush(self, timeout: Optional[float] = None) -> None:
        """Flush every writer (in parallel) and wait for all of them."""
        for writer in self._writers.values():
            writer.flush_async("manual")
        self.join(timeout)

    def join(self, timeout: Optional[float] = None) -> None:
        for writer in self._writers.values():
            writer.join(timeout)

    def report(self) -> PerformanceReport:
        return self._aggregator.report()

    # --------------- introspection

    @property
    def aggregator(self) -> PerformanceAggregator:
        return self._aggregator

    @property
    def scheduler(self) -> FlushScheduler:
        return self._scheduler

    @property
    def writers(self) -> dict[str, BufferedWriter]:
        return dict(self._writers)

    def writer(self, name: str) -> BufferedWriter:
        return self._writers[name]

    def health(self) -> CoordinatorHealth:
        return CoordinatorHealth(
            coordinator_id=self._coord_id,
            pending={name: w.pending for name, w in self._writers.items()},
            scheduler_alive=self._scheduler.running,
            reporter_alive=self._reporter.running if self._reporter is not None else False,
            closed=self._closed,
        )
