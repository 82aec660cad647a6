"""
Unit tests for WriterSettings.
"""

import pytest
from pydantic import ValidationError

from ingest_store.config import WriterSettings, get_settings


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)  # keep a developer .env out of the way
    for name in ("FLUSH_THRESHOLD", "FLUSH_INTERVAL_MS", "MAX_RETRY_ATTEMPTS", "RETRY_JITTER"):
        monkeypatch.delenv(f"INGEST_{name}", raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def test_defaults():
    s = WriterSettings()
    assert s.flush_threshold == 500
    assert s.flush_interval_ms == 5000
    assert s.flush_interval == 5.0
    assert s.max_retry_attempts == 3
    assert s.report_interval == 60.0


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("INGEST_FLUSH_THRESHOLD", "1000")
    monkeypatch.setenv("ingest_retry_jitter", "true")

    s = get_settings()

    assert s.flush_threshold == 1000
    assert s.retry_jitter is True
    assert get_settings() is s


def test_dotenv_file(tmp_path):
    (tmp_path / ".env").write_text("INGEST_MAX_RETRY_ATTEMPTS=7\n")
    assert WriterSettings().max_retry_attempts == 7


def test_retry_policy_from_settings():
    settings = WriterSettings(max_retry_attempts=2, backoff_base_ms=10, backoff_cap_ms=50)
    policy = settings.retry_policy()
    assert policy.max_calls == 3
    assert policy.next_backoff_ms(3) == 50


@pytest.mark.parametrize("field, value", [("flush_threshold", 0), ("flush_interval_ms", 0)])
def test_invalid_values_rejected(field, value):
    with pytest.raises(ValidationError):
        WriterSettings(**{field: value})
