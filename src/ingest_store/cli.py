from __future__ import annotations

import json
import sys
import time
from pathlib import Path
from typing import Iterator, Optional

import typer
from loguru import logger
from pydantic import ValidationError

from .config import WriterSettings, get_settings
from .coordinator import WriteCoordinator
from .models import Message
from .sinks import (
    InMemoryRowInsertClient,
    InMemoryStreamAppendClient,
    RowInsertSink,
    StreamingAppendSink,
)
from .utils import generate_id, iter_ndjson, utc_now

app = typer.Typer(help="ingest-store operational CLI")

# ---------------------------
# Common options
# ---------------------------


def threshold_opt() -> Optional[int]:
    return typer.Option(None, "--flush-threshold", help="Flush when this many rows are buffered")


def interval_opt() -> Optional[int]:
    return typer.Option(None, "--flush-interval-ms", help="Straggler flush interval")


def latency_opt() -> float:
    return typer.Option(0.0, "--latency-ms", help="Simulated sink latency per call")


def failure_rate_opt() -> float:
    return typer.Option(0.0, "--failure-rate", help="Simulated transient failure rate [0-1]")


def log_level_opt() -> Optional[str]:
    return typer.Option(None, "--log-level", help="Log level (default from INGEST_LOG_LEVEL)")


def _configure_logging(level: str) -> None:
    logger.remove()
    logger.add(sys.stderr, level=level.upper())


def _effective_settings(
    flush_threshold: Optional[int], flush_interval_ms: Optional[int]
) -> WriterSettings:
    overrides = {}
    if flush_threshold is not None:
        overrides["flush_threshold"] = flush_threshold
    if flush_interval_ms is not None:
        overrides["flush_interval_ms"] = flush_interval_ms
    base = get_settings()
    return base.model_copy(update=overrides) if overrides else base


def _in_memory_coordinator(
    settings: WriterSettings, latency_ms: float, failure_rate: float
) -> WriteCoordinator:
    sinks = [
        RowInsertSink(InMemoryRowInsertClient(latency_ms=latency_ms, failure_rate=failure_rate)),
        StreamingAppendSink(
            InMemoryStreamAppendClient(
                latency_ms=latency_ms, failure_rate=failure_rate, failure_reason="UNAVAILABLE"
            )
        ),
    ]
    # Reports are printed once at the end; no periodic reporter for one-shot runs.
    return WriteCoordinator.from_settings(sinks, settings, report_interval_ms=None)


def generate_test_messages(count: int, source: str = "performance-test") -> Iterator[Message]:
    for i in range(count):
        yield Message(
            identifier=generate_id(),
            payload=f"Test message {i}",
            timestamp=utc_now(),
            source_tag=source,
            priority=i % 3,
        )


def _run(coord: WriteCoordinator, messages) -> dict:
    start = time.perf_counter()
    with coord:
        submitted = coord.submit_many(messages)
    duration_ms = int((time.perf_counter() - start) * 1000)
    report = coord.report()
    return {
        "submitted": submitted,
        "wall_time_ms": duration_ms,
        "messages_per_second": submitted / (duration_ms / 1000.0) if duration_ms else 0.0,
        "report": report.to_dict(),
    }


# ---------------------------
# Commands
# ---------------------------


@app.command("bench")
def bench(
    count: int = typer.Option(1000, "--count", "-n", help="Number of synthetic messages"),
    flush_threshold: Optional[int] = threshold_opt(),
    flush_interval_ms: Optional[int] = interval_opt(),
    latency_ms: float = latency_opt(),
    failure_rate: float = failure_rate_opt(),
    log_level: Optional[str] = log_level_opt(),
):
    """Push synthetic messages through both write paths and print the comparison."""
    settings = _effective_settings(flush_threshold, flush_interval_ms)
    _configure_logging(log_level or settings.log_level)
    logger.info(
        f"Running performance test with {count} messages and flush threshold "
        f"{settings.flush_threshold}"
    )
    coord = _in_memory_coordinator(settings, latency_ms, failure_rate)
    out = _run(coord, generate_test_messages(count))
    typer.echo(json.dumps(out, indent=2))


@app.command("ingest-ndjson")
def ingest_ndjson(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, help="NDJSON file of messages"),
    flush_threshold: Optional[int] = threshold_opt(),
    flush_interval_ms: Optional[int] = interval_opt(),
    latency_ms: float = latency_opt(),
    log_level: Optional[str] = log_level_opt(),
):
    """Replay an NDJSON message file through both write paths."""
    settings = _effective_settings(flush_threshold, flush_interval_ms)
    _configure_logging(log_level or settings.log_level)

    def _messages():
        for lineno, obj in iter_ndjson(path):
            try:
                yield Message.model_validate(obj)
            except ValidationError as e:
                logger.error(f"{path}:{lineno}: skipping invalid message: {e.errors()}")

    coord = _in_memory_coordinator(settings, latency_ms, 0.0)
    out = _run(coord, _messages())
    typer.echo(json.dumps(out, indent=2))


@app.command("show-config")
def show_config():
    """Print the effective writer settings."""
    typer.echo(json.dumps(get_settings().model_dump(), indent=2))


if __name__ == "__main__":
    app()
