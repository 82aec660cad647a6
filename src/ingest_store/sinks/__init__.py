"""
Sink strategies for the dual-path writer.

- RowInsertSink: bulk insert with per-row errors (partial success)
- StreamingAppendSink: streamed append, all-or-nothing per call
"""

from ..metrics.registry import SINK_WRITE_LATENCY, SINK_WRITES_TOTAL
from .base import (
    AppendResult,
    InsertResult,
    RowInsertClient,
    SinkStrategy,
    StreamAppendClient,
    message_to_row,
)
from .memory import InMemoryRowInsertClient, InMemoryStreamAppendClient
from .row_insert import RowInsertSink
from .streaming_append import StreamingAppendSink

__all__ = [
    "SinkStrategy",
    "RowInsertSink",
    "StreamingAppendSink",
    "RowInsertClient",
    "StreamAppendClient",
    "InsertResult",
    "AppendResult",
    "InMemoryRowInsertClient",
    "InMemoryStreamAppendClient",
    "message_to_row",
    "SINK_WRITES_TOTAL",
    "SINK_WRITE_LATENCY",
]
