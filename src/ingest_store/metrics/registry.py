"""
Prometheus metrics for the dual-path writer.
Everything registers on the global REGISTRY; import this module at app
startup and expose it with ``prometheus_client.start_http_server``.
"""

from prometheus_client import Counter, Gauge, Histogram


# --- Sink call metrics ---

SINK_WRITES_TOTAL = Counter(
    "ingest_sink_writes_total",
    "Total sink write calls",
    ["sink", "status"],
)

SINK_WRITE_LATENCY = Histogram(
    "ingest_sink_write_latency_seconds",
    "Latency of a single sink write call",
    ["sink"],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1, 2.5, 5, 10],
)


# --- Writer metrics ---

FLUSH_TOTAL = Counter(
    "ingest_flush_total",
    "Flushes executed per strategy and trigger",
    ["strategy", "trigger"],
)

RETRY_TOTAL = Counter(
    "ingest_retry_total",
    "Retry attempts issued after a retriable failure",
    ["strategy"],
)

RECORDS_DROPPED_TOTAL = Counter(
    "ingest_records_dropped_total",
    "Records permanently dropped",
    ["strategy", "reason"],
)

PENDING_RECORDS = Gauge(
    "ingest_pending_records",
    "Records buffered and waiting for a flush",
    ["strategy"],
)


# --- Aggregated performance ---

THROUGHPUT = Gauge(
    "ingest_throughput_records_per_second",
    "Records per second derived from the performance aggregator",
    ["strategy"],
)


class MetricsRegistry:
    """Centralized access to the writer's Prometheus metrics."""

    sink_writes_total = SINK_WRITES_TOTAL
    sink_write_latency = SINK_WRITE_LATENCY
    flush_total = FLUSH_TOTAL
    retry_total = RETRY_TOTAL
    records_dropped_total = RECORDS_DROPPED_TOTAL
    pending_records = PENDING_RECORDS
    throughput = THROUGHPUT


# Singleton instance
metrics_registry = MetricsRegistry()
