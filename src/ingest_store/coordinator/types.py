from __future__ import annotations

from typing import Literal, Protocol, Sequence, runtime_checkable

from ..models import Message, WriteOutcome

FlushTrigger = Literal["threshold", "scheduled", "shutdown", "manual"]


@runtime_checkable
class Sink(Protocol):
    """Anything the writer can flush into (see ``ingest_store.sinks``)."""

    name: str

    def write(self, messages: Sequence[Message]) -> WriteOutcome: ...

    def close(self) -> None: ...
