from __future__ import annotations

from typing import Sequence

from loguru import logger

from ..errors import map_client_error
from ..models import ErrorDetail, Message, WriteOutcome
from .base import RowInsertClient, SinkStrategy


class RowInsertSink(SinkStrategy):
    """Bulk row-insert write path.

    Each message becomes ``{"insertId": <id>, "json": <row>}`` so the sink can
    de-duplicate resubmitted rows. The client may report partial success;
    failed row indices are translated back to positions in the submitted
    sequence so the executor can resubmit exactly those rows.
    """

    name = "row_insert"

    def __init__(self, client: RowInsertClient, **kwargs):
        super().__init__(**kwargs)
        self._client = client

    def _write(self, messages: Sequence[Message]) -> WriteOutcome:
        rows, positions, failures = self.convert(messages)
        if not rows:
            return WriteOutcome(attempted=len(messages), succeeded=0, failures=failures)

        payload = [{"insertId": row["id"], "json": row} for row in rows]
        try:
            result = self._client.insert_rows(payload)
        except Exception as e:
            detail = map_client_error(e)
            logger.warning(f"{self.name}: insert of {len(payload)} rows failed: {detail}")
            return WriteOutcome.whole_call_failed(len(messages), positions, detail, extra=failures)

        for row_index, errors in result.errors.items():
            if not 0 <= row_index < len(positions):
                logger.warning(f"{self.name}: sink reported unknown row index {row_index}")
                continue
            failures[positions[row_index]] = _first_error(errors)

        succeeded = len(messages) - len(failures)
        if result.has_errors:
            logger.debug(
                f"{self.name}: inserted {succeeded}/{len(messages)} rows, "
                f"{len(result.errors)} row errors"
            )
        return WriteOutcome(attempted=len(messages), succeeded=succeeded, failures=failures)

    def close(self) -> None:
        self._client.close()


def _first_error(errors: Sequence[ErrorDetail]) -> ErrorDetail:
    # The first error for a row is the most specific one.
    if not errors:
        return ErrorDetail(reason="unknown", message="row rejected without detail")
    return errors[0]
