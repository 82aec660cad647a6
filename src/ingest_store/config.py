from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .coordinator.policy import RetryPolicy


class WriterSettings(BaseSettings):
    """Runtime knobs for the dual-path writer.

    Every field can be overridden with an ``INGEST_*`` environment variable
    or a ``.env`` file, e.g. ``INGEST_FLUSH_THRESHOLD=1000``.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="INGEST_",
        case_sensitive=False,
        extra="ignore",
    )

    flush_threshold: int = Field(default=500, ge=1)
    flush_interval_ms: int = Field(default=5000, gt=0)
    max_retry_attempts: int = Field(default=3, ge=0)
    backoff_base_ms: int = Field(default=100, ge=0)
    backoff_cap_ms: int = Field(default=1000, ge=0)
    retry_jitter: bool = False
    report_interval_ms: int = Field(default=60_000, gt=0)
    log_level: str = "INFO"

    @property
    def flush_interval(self) -> float:
        return self.flush_interval_ms / 1000.0

    @property
    def report_interval(self) -> float:
        return self.report_interval_ms / 1000.0

    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_retry_attempts=self.max_retry_attempts,
            base_backoff_ms=self.backoff_base_ms,
            max_backoff_ms=self.backoff_cap_ms,
            jitter=self.retry_jitter,
        )


@lru_cache()
def get_settings() -> WriterSettings:
    return WriterSettings()
