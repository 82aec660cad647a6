from __future__ import annotations

import random
import re
from dataclasses import dataclass, field
from typing import Callable, Union

from ..models import ErrorDetail

# Normalised (lowercase, no separators) reason/message fragments that mark a
# sink error as transient. Covers gRPC status names used by the streaming
# append API and the insert API's error reasons.
RETRIABLE_VOCABULARY: tuple[str, ...] = (
    "resourceexhausted",
    "unavailable",
    "aborted",
    "deadlineexceeded",
    "internal",
    "timeout",
    "timedout",
    "connectionreset",
    "backenderror",
    "ratelimitexceeded",
)

_SEPARATORS = re.compile(r"[\s_\-]+")


def _normalise(text: str) -> str:
    return _SEPARATORS.sub("", text.lower())


def default_retry_classifier(error: Union[ErrorDetail, BaseException]) -> bool:
    """Return True when ``error`` matches the retriable vocabulary."""
    if isinstance(error, ErrorDetail):
        if error.permanent:
            return False
        text = f"{error.reason} {error.message}"
    else:
        if isinstance(error, (TimeoutError, ConnectionResetError)):
            return True
        text = f"{type(error).__name__} {error}"
    normalised = _normalise(text)
    return any(token in normalised for token in RETRIABLE_VOCABULARY)


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded exponential backoff.

    ``max_retry_attempts`` counts retries, so a batch sees at most
    ``max_retry_attempts + 1`` sink calls. The delay before retry ``n``
    (1-based) is ``min(base_backoff_ms * multiplier**n, max_backoff_ms)``.
    """

    max_retry_attempts: int = 3
    base_backoff_ms: int = 100
    max_backoff_ms: int = 1000
    backoff_multiplier: float = 2.0
    jitter: bool = False
    classify_retryable: Callable[[Union[ErrorDetail, BaseException]], bool] = field(
        default=default_retry_classifier
    )

    def __post_init__(self) -> None:
        if self.max_retry_attempts < 0:
            raise ValueError("max_retry_attempts must be >= 0")
        if self.base_backoff_ms < 0 or self.max_backoff_ms < 0:
            raise ValueError("backoff values must be >= 0")

    @property
    def max_calls(self) -> int:
        return self.max_retry_attempts + 1

    def next_backoff_ms(self, attempt: int) -> int:
        raw = self.base_backoff_ms * (self.backoff_multiplier ** max(attempt, 0))
        delay = min(int(raw), self.max_backoff_ms)
        if self.jitter:
            # 50-100% of the capped delay
            delay = int(delay * random.uniform(0.5, 1.0))
        return delay
