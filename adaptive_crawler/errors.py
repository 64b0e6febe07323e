"""adaptive_crawler.errors: Error taxonomy shared by the crawl controller and its collaborators."""

from __future__ import annotations

from enum import Enum
from typing import Optional

__all__ = [
    "ErrorKind",
    "CrawlerError",
    "ConfigurationError",
    "FetchError",
    "TransientFetchError",
    "PermanentFetchError",
    "EmptyContentError",
    "StorageUnavailableError",
    "FatalRunError",
]


class ErrorKind(str, Enum):
    CONFIGURATION = "configuration"
    TIMEOUT = "timeout"
    CONNECTION = "connection"
    SERVER_ERROR = "server_error"
    THROTTLED = "throttled"
    NOT_FOUND = "not_found"
    CLIENT_ERROR = "client_error"
    ROBOTS_DISALLOWED = "robots_disallowed"
    EMPTY_CONTENT = "empty_content"
    STORAGE_UNAVAILABLE = "storage_unavailable"
    FATAL = "fatal"


class CrawlerError(Exception):
    """Base class; every subclass carries an :class:`ErrorKind`."""

    kind: ErrorKind = ErrorKind.FATAL

    def __init__(self, message: str, *, kind: Optional[ErrorKind] = None) -> None:
        super().__init__(message)
        if kind is not None:
            self.kind = kind


class ConfigurationError(CrawlerError, ValueError):
    kind = ErrorKind.CONFIGURATION


class FetchError(CrawlerError):
    """A single target could not be fetched."""

    def __init__(
        self,
        message: str,
        *,
        url: str,
        kind: Optional[ErrorKind] = None,
        status_code: Optional[int] = None,
        latency_ms: float = 0.0,
        attempts: int = 1,
    ) -> None:
        super().__init__(message, kind=kind)
        self.url = url
        self.status_code = status_code
        self.latency_ms = latency_ms
        self.attempts = attempts


class TransientFetchError(FetchError):
    """Timeout, connection reset, 5xx or 429; retried."""

    kind = ErrorKind.CONNECTION


class PermanentFetchError(FetchError):
    """404/410, other client errors or robots.txt denial; never retried."""

    kind = ErrorKind.NOT_FOUND


class EmptyContentError(CrawlerError):
    kind = ErrorKind.EMPTY_CONTENT

    def __init__(self, url: str) -> None:
        super().__init__(f"empty content for {url}")
        self.url = url


class StorageUnavailableError(CrawlerError):
    """Raised by a content store that can no longer accept writes."""

    kind = ErrorKind.STORAGE_UNAVAILABLE


class FatalRunError(CrawlerError):
    """Ends the whole run with a FAILED result."""

    kind = ErrorKind.FATAL
