from .performance import (
    ROW_INSERT,
    STREAMING_APPEND,
    PerformanceAggregator,
    PerformanceReport,
    StatsSnapshot,
    StrategyStats,
    throughput,
)
from .registry import MetricsRegistry, metrics_registry

__all__ = [
    "ROW_INSERT",
    "STREAMING_APPEND",
    "PerformanceAggregator",
    "PerformanceReport",
    "StatsSnapshot",
    "StrategyStats",
    "throughput",
    "MetricsRegistry",
    "metrics_registry",
]
