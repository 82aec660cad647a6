"""
Custom exceptions for the ingest store writer.

Sink clients may raise these (or any other exception); the sinks turn them
into ErrorDetail values so the retry executor can classify them.
"""

from .models import ErrorDetail


class IngestError(Exception):
    """Base error for the ingest store writer."""

    pass


class RetryableError(IngestError):
    """Transient sink errors that should be retried with backoff."""

    def __init__(self, message: str = "", reason: str = "unavailable"):
        super().__init__(message)
        self.reason = reason


class PermanentWriteError(IngestError):
    """Sink errors that will not go away by retrying (schema, permissions...)."""

    def __init__(self, message: str = "", reason: str = "invalid"):
        super().__init__(message)
        self.reason = reason


class ConversionError(IngestError):
    """A message could not be turned into a sink payload."""

    def __init__(self, identifier, message: str):
        super().__init__(f"message {identifier!r}: {message}")
        self.identifier = identifier

    def detail(self) -> ErrorDetail:
        return ErrorDetail(reason="invalid", message=str(self), permanent=True)


def map_client_error(e: Exception) -> ErrorDetail:
    if isinstance(e, ConversionError):
        return e.detail()
    if isinstance(e, (RetryableError, PermanentWriteError)):
        return ErrorDetail(reason=e.reason, message=str(e))
    if isinstance(e, ConnectionResetError):
        return ErrorDetail(reason="connectionReset", message=str(e))
    if isinstance(e, TimeoutError):
        return ErrorDetail(reason="timeout", message=str(e))
    if isinstance(e, ConnectionError):
        return ErrorDetail(reason="unavailable", message=str(e))
    return ErrorDetail(reason=type(e).__name__, message=str(e))
