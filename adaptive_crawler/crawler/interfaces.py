# adaptive_crawler/crawler/interfaces.py
"""
Capabilities the crawl controller consumes or reports to.

The controller knows nothing about the wire or about persistence; it talks to
these protocols only. Concrete implementations live in
:mod:`adaptive_crawler.crawler.fetcher`, :mod:`adaptive_crawler.crawler.robots`,
:mod:`adaptive_crawler.crawler.link_extractor` and :mod:`adaptive_crawler.store`.
"""
from __future__ import annotations

from typing import Optional, Protocol, runtime_checkable

from adaptive_crawler.crawler.models import (
    ContentVersion,
    CrawlEvent,
    CrawlTarget,
    ExtractedPage,
    FailureRecord,
    FetchResult,
)

__all__ = ["PageFetcher", "RobotsChecker", "LinkExtractor", "ContentStore", "NotificationSink"]


@runtime_checkable
class PageFetcher(Protocol):
    async def fetch(self, url: str, user_agent: str, timeout: float) -> FetchResult:
        """Return the response, or raise TransientFetchError on timeout/connection failure."""
        ...


@runtime_checkable
class RobotsChecker(Protocol):
    async def is_allowed(self, url: str, user_agent: str) -> bool:
        ...

    async def crawl_delay(self, url: str, user_agent: str) -> Optional[float]:
        """Crawl-delay in seconds for *url*'s origin, or None."""
        ...


@runtime_checkable
class LinkExtractor(Protocol):
    def extract(self, url: str, body: str) -> ExtractedPage:
        ...


@runtime_checkable
class ContentStore(Protocol):
    """Fire-and-forget persistence. Implementations log their own failures and
    raise StorageUnavailableError only when they can no longer accept writes."""

    def persist_page(self, target: CrawlTarget, body: str, version: Optional[ContentVersion]) -> None:
        ...

    def persist_failure(self, record: FailureRecord) -> None:
        ...

    def discard_version(self, version: ContentVersion) -> None:
        ...


@runtime_checkable
class NotificationSink(Protocol):
    def emit(self, event: CrawlEvent) -> None:
        ...
