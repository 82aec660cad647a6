"""
Ingest Store

Buffers a stream of small messages and writes it to an analytical warehouse
table through two independently buffered paths (row insert and streaming
append), with bounded retries and side-by-side throughput statistics.

Usage:
    from ingest_store import WriteCoordinator, RowInsertSink, StreamingAppendSink, Message

    sinks = [RowInsertSink(rows_client), StreamingAppendSink(stream_client)]
    with WriteCoordinator(sinks) as coord:
        coord.submit(Message(id="m-1", message="hello", source="orders", priority=1))
    print(coord.report())
"""

from .models import Message, Batch, ErrorDetail, WriteOutcome, FlushResult
from .coordinator import BufferedWriter, RetryPolicy, WriteCoordinator
from .sinks import RowInsertSink, StreamingAppendSink
from .metrics import PerformanceAggregator

__version__ = "0.1.0"
__all__ = [
    "Message",
    "Batch",
    "ErrorDetail",
    "WriteOutcome",
    "FlushResult",
    "BufferedWriter",
    "RetryPolicy",
    "WriteCoordinator",
    "RowInsertSink",
    "StreamingAppendSink",
    "PerformanceAggregator",
]
