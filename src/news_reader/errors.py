# news_reader/errors.py
from __future__ import annotations

from typing import Optional


class NewsReaderError(Exception):
    """Base class for every error raised inside news_reader."""


class MissingUrlError(NewsReaderError):
    def __init__(self, message: str = "URL is required") -> None:
        super().__init__(message)


class TransportError(NewsReaderError):
    """Network or HTTP failure. Retryable up to the configured budget."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class RequestAborted(TransportError):
    def __init__(self, message: str = "Request aborted") -> None:
        super().__init__(message)


class CacheAccessError(NewsReaderError):
    """Cache store failure; callers treat it as a cache miss."""


class SearchExecutionError(NewsReaderError):
    pass


class DatasetLoadError(NewsReaderError):
    pass


class ValidationError(NewsReaderError):
    """Record rejected before it reaches the database."""


class PersistenceError(NewsReaderError):
    """A write went through but the row could not be read back."""
