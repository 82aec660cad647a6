"""
Per-strategy throughput/latency aggregation.

Flush completions from both writers call ``record`` concurrently. Totals are
plain atomic adds; min/max use compare-and-set loops so two strategies never
serialize on a shared lock while being measured.
"""

from __future__ import annotations

import sys
import threading
import time
from dataclasses import asdict, dataclass
from typing import Optional

from loguru import logger

from ..utils import AtomicInteger
from .registry import THROUGHPUT

ROW_INSERT = "row_insert"
STREAMING_APPEND = "streaming_append"

_UNSET_MIN = sys.maxsize


class StrategyStats:
    """Counters for one strategy; each field is independently atomic."""

    def __init__(self) -> None:
        self.total_records = AtomicInteger(0)
        self.total_failed = AtomicInteger(0)
        self.total_batches = AtomicInteger(0)
        self.total_time_ms = AtomicInteger(0)
        self.min_batch_time_ms = AtomicInteger(_UNSET_MIN)
        self.max_batch_time_ms = AtomicInteger(0)

    def record(self, record_count: int, duration_ms: int, failed_count: int = 0) -> None:
        self.total_records.add_and_get(record_count)
        self.total_failed.add_and_get(failed_count)
        self.total_batches.increment_and_get()
        self.total_time_ms.add_and_get(duration_ms)
        _update_max(self.max_batch_time_ms, duration_ms)
        _update_min(self.min_batch_time_ms, duration_ms)

    def snapshot(self, strategy: str) -> "StatsSnapshot":
        records = self.total_records.get()
        total_ms = self.total_time_ms.get()
        batches = self.total_batches.get()
        min_ms = self.min_batch_time_ms.get()
        return StatsSnapshot(
            strategy=strategy,
            total_records=records,
            total_failed=self.total_failed.get(),
            total_batches=batches,
            total_time_ms=total_ms,
            min_batch_time_ms=0 if min_ms == _UNSET_MIN else min_ms,
            max_batch_time_ms=self.max_batch_time_ms.get(),
            avg_batch_time_ms=(total_ms / batches) if batches > 0 else 0.0,
            throughput=throughput(records, total_ms),
        )


def _update_max(cell: AtomicInteger, value: int) -> None:
    current = cell.get()
    while value > current:
        if cell.compare_and_set(current, value):
            return
        current = cell.get()


def _update_min(cell: AtomicInteger, value: int) -> None:
    current = cell.get()
    while value < current:
        if cell.compare_and_set(current, value):
            return
        current = cell.get()


def throughput(records: int, total_time_ms: int) -> float:
    """Records per second; zero when either input is zero."""
    if records <= 0 or total_time_ms <= 0:
        return 0.0
    return records / total_time_ms * 1000.0


@dataclass(frozen=True)
class StatsSnapshot:
    strategy: str
    total_records: int
    total_failed: int
    total_batches: int
    total_time_ms: int
    min_batch_time_ms: int
    max_batch_time_ms: int
    avg_batch_time_ms: float
    throughput: float

    def __str__(self) -> str:
        return (
            f"Total Records: {self.total_records}\n"
            f"Failed Records: {self.total_failed}\n"
            f"Batches: {self.total_batches}\n"
            f"Total Time: {self.total_time_ms / 1000.0:.2f} seconds\n"
            f"Min Batch Time: {self.min_batch_time_ms} ms\n"
            f"Max Batch Time: {self.max_batch_time_ms} ms\n"
            f"Avg Batch Time: {self.avg_batch_time_ms:.2f} ms\n"
            f"Throughput: {self.throughput:.2f} records/second"
        )


@dataclass(frozen=True)
class PerformanceReport:
    runtime_seconds: float
    strategies: dict[str, StatsSnapshot]
    baseline: str
    candidate: str
    throughput_ratio: float

    def to_dict(self) -> dict:
        return {
            "runtime_seconds": round(self.runtime_seconds, 3),
            "strategies": {k: asdict(v) for k, v in self.strategies.items()},
            "baseline": self.baseline,
            "candidate": self.candidate,
            "throughput_ratio": self.throughput_ratio,
        }

    def __str__(self) -> str:
        sections = "\n".join(f"\n{name}:\n{snap}" for name, snap in self.strategies.items())
        return (
            "\n===== PERFORMANCE REPORT =====\n"
            f"Runtime: {self.runtime_seconds / 60:.1f} minutes\n"
            f"{sections}\n"
            "\nPerformance Comparison:\n"
            f"Throughput Ratio ({self.candidate} / {self.baseline}): "
            f"{self.throughput_ratio:.2f}x\n"
            "=============================="
        )


class PerformanceAggregator:
    """Collects flush timings per strategy and renders comparison reports.

    Example:
        agg = PerformanceAggregator()
        agg.record("row_insert", 500, 120)
        agg.record("streaming_append", 500, 40)
        print(agg.report())
    """

    def __init__(
        self,
        strategies: tuple[str, ...] = (ROW_INSERT, STREAMING_APPEND),
        *,
        baseline: str = ROW_INSERT,
        candidate: str = STREAMING_APPEND,
        publish_metrics: bool = True,
    ) -> None:
        self._stats: dict[str, StrategyStats] = {name: StrategyStats() for name in strategies}
        self._register_lock = threading.Lock()  # only guards adding new strategies
        self._baseline = baseline
        self._candidate = candidate
        self._publish = publish_metrics
        self._started = time.monotonic()

    def _stats_for(self, strategy_id: str) -> StrategyStats:
        stats = self._stats.get(strategy_id)
        if stats is None:
            with self._register_lock:
                stats = self._stats.setdefault(strategy_id, StrategyStats())
        return stats

    def record(
        self, strategy_id: str, record_count: int, duration_ms: int, failed_count: int = 0
    ) -> None:
        self._stats_for(strategy_id).record(
            max(record_count, 0), max(int(duration_ms), 0), max(failed_count, 0)
        )

    def snapshot(self, strategy_id: str) -> StatsSnapshot:
        return self._stats_for(strategy_id).snapshot(strategy_id)

    def snapshots(self) -> dict[str, StatsSnapshot]:
        return {name: stats.snapshot(name) for name, stats in list(self._stats.items())}

    def report(self, log: bool = True) -> PerformanceReport:
        snaps = self.snapshots()
        base: Optional[StatsSnapshot] = snaps.get(self._baseline)
        cand: Optional[StatsSnapshot] = snaps.get(self._candidate)
        base_tp = base.throughput if base else 0.0
        cand_tp = cand.throughput if cand else 0.0
        ratio = cand_tp / base_tp if base_tp > 0 else 0.0

        report = PerformanceReport(
            runtime_seconds=time.monotonic() - self._started,
            strategies=snaps,
            baseline=self._baseline,
            candidate=self._candidate,
            throughput_ratio=ratio,
        )
        if self._publish:
            for name, snap in snaps.items():
                THROUGHPUT.labels(strategy=name).set(snap.throughput)
        if log:
            logger.info(str(report))
        return report
