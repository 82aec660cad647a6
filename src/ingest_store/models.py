"""
Data models for the dual-path warehouse writer.

Message is the immutable inbound record (pydantic, parsed upstream);
the remaining types are plain frozen dataclasses passed between the
batcher, the sink strategies and the retry executor.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Message(BaseModel):
    """Inbound bus message.

    Field names follow Python conventions; the JSON aliases match the wire
    format produced upstream (``id``, ``message``, ``source``). Missing
    values are tolerated here and rejected during payload conversion.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    identifier: Optional[str] = Field(default=None, alias="id")
    payload: Optional[str] = Field(default=None, alias="message")
    timestamp: Optional[datetime] = None
    source_tag: Optional[str] = Field(default=None, alias="source")
    priority: Optional[int] = None

    @field_validator("identifier", "source_tag")
    @classmethod
    def _strip(cls, v):
        if v is not None:
            return v.strip()
        return v

    @field_validator("timestamp")
    @classmethod
    def _assume_utc(cls, v):
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    @classmethod
    def from_json(cls, raw: str | bytes) -> "Message":
        return cls.model_validate_json(raw)


@dataclass(frozen=True)
class ErrorDetail:
    """Error reported by a sink for one item (or a whole call).

    ``permanent`` marks failures that must never be retried regardless of
    their reason, e.g. payload conversion errors.
    """

    reason: str
    message: str = ""
    permanent: bool = False

    def __str__(self) -> str:
        return f"{self.reason}: {self.message}" if self.message else self.reason


@dataclass(frozen=True)
class Batch:
    """Immutable snapshot of a pending buffer taken at flush time."""

    messages: tuple[Message, ...]
    strategy: str
    trigger: str = "manual"
    batch_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __len__(self) -> int:
        return len(self.messages)


@dataclass(frozen=True)
class WriteOutcome:
    """Result of a single sink call.

    ``failures`` maps indices of the submitted sequence to the error for
    that item. Whether an entry is retriable is decided by the executor.
    """

    attempted: int
    succeeded: int
    failures: dict[int, ErrorDetail] = field(default_factory=dict)
    offset: Optional[int] = None

    @property
    def failed(self) -> int:
        return len(self.failures)

    @property
    def ok(self) -> bool:
        return not self.failures

    @classmethod
    def whole_call_failed(
        cls,
        attempted: int,
        indices,
        error: ErrorDetail,
        extra: Optional[dict[int, ErrorDetail]] = None,
    ) -> "WriteOutcome":
        failures = dict(extra or {})
        failures.update({i: error for i in indices})
        return cls(attempted=attempted, succeeded=0, failures=failures)


@dataclass(frozen=True)
class DroppedItem:
    identifier: Optional[str]
    error: ErrorDetail


@dataclass(frozen=True)
class FlushResult:
    """Terminal outcome of one batch after all retries."""

    strategy: str
    batch_id: str
    trigger: str
    attempted: int
    succeeded: int
    permanently_failed: int
    calls: int
    duration_ms: int
    dropped: tuple[DroppedItem, ...] = ()
