from __future__ import annotations

import threading
from typing import Optional, Sequence

from loguru import logger

from ..errors import map_client_error
from ..models import Message, WriteOutcome
from .base import SinkStrategy, StreamAppendClient


class StreamingAppendSink(SinkStrategy):
    """Streamed append write path.

    The whole (converted) batch is appended as one unit; the sink answers
    with a single success plus offset, or a single error that fails every
    row of the call.
    """

    name = "streaming_append"

    def __init__(self, client: StreamAppendClient, **kwargs):
        super().__init__(**kwargs)
        self._client = client
        self._last_offset: Optional[int] = None
        self._offset_lock = threading.Lock()

    @property
    def last_offset(self) -> Optional[int]:
        return self._last_offset

    def _write(self, messages: Sequence[Message]) -> WriteOutcome:
        rows, positions, failures = self.convert(messages)
        if not rows:
            return WriteOutcome(attempted=len(messages), succeeded=0, failures=failures)

        try:
            result = self._client.append_batch(rows)
        except Exception as e:
            detail = map_client_error(e)
            logger.warning(f"{self.name}: append of {len(rows)} rows failed: {detail}")
            return WriteOutcome.whole_call_failed(len(messages), positions, detail, extra=failures)

        if not result.ok:
            logger.warning(f"{self.name}: append of {len(rows)} rows rejected: {result.error}")
            return WriteOutcome.whole_call_failed(
                len(messages), positions, result.error, extra=failures
            )

        self._track_offset(result.offset)
        logger.debug(f"{self.name}: appended {len(rows)} rows at offset {result.offset}")
        return WriteOutcome(
            attempted=len(messages),
            succeeded=len(rows),
            failures=failures,
            offset=result.offset,
        )

    def _track_offset(self, offset: Optional[int]) -> None:
        if offset is None:
            return
        with self._offset_lock:
            if self._last_offset is not None and offset <= self._last_offset:
                logger.warning(
                    f"{self.name}: append offset went backwards ({self._last_offset} -> {offset})"
                )
            self._last_offset = offset

    def close(self) -> None:
        self._client.close()
