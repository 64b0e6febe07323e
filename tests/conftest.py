# File: tests/conftest.py
from __future__ import annotations

from collections import defaultdict
from typing import Any, Callable, Dict, List, Optional, Union

import pytest

from adaptive_crawler.config import CrawlerConfig
from adaptive_crawler.crawler.models import FetchResult
from adaptive_crawler.errors import ErrorKind, TransientFetchError
from adaptive_crawler.store import MemoryContentStore, MemoryNotificationSink

BASE = "http://example.com"

Scripted = Union[str, int, tuple, Exception]


def page(*links: str, text: str = "") -> str:
    """Small HTML page linking to *links*."""
    anchors = "".join(f'<a href="{href}">{href}</a>' for href in links)
    return f"<html><body><p>{text or 'content'}</p>{anchors}</body></html>"


class FakeFetcher:
    """
    PageFetcher driven by a script: url -> list of responses consumed in order,
    the last one repeating. A response is an HTML body (200), an int status,
    a ``(status, body)`` tuple or an exception to raise.
    """

    def __init__(self, script: Dict[str, Union[Scripted, List[Scripted]]]) -> None:
        self.script = {url: list(v) if isinstance(v, list) else [v] for url, v in script.items()}
        self.calls: List[str] = []
        self.counts: Dict[str, int] = defaultdict(int)

    async def fetch(self, url: str, user_agent: str, timeout: float) -> FetchResult:
        self.calls.append(url)
        responses = self.script.get(url, [404])
        n = self.counts[url]
        self.counts[url] += 1
        item = responses[min(n, len(responses) - 1)]
        if isinstance(item, Exception):
            raise item
        if isinstance(item, int):
            status, body = item, ""
        elif isinstance(item, tuple):
            status, body = item
        else:
            status, body = 200, item
        return FetchResult(
            url=url,
            status_code=status,
            body=body,
            latency_ms=5.0,
            headers={"Content-Type": "text/html; charset=utf-8"},
        )


class FakeRobots:
    def __init__(self, disallowed: tuple = (), delay: Optional[float] = None) -> None:
        self.disallowed = set(disallowed)
        self.delay = delay
        self.checked: List[str] = []

    async def is_allowed(self, url: str, user_agent: str) -> bool:
        self.checked.append(url)
        return url not in self.disallowed

    async def crawl_delay(self, url: str, user_agent: str) -> Optional[float]:
        return self.delay


def timeout_error(url: str) -> TransientFetchError:
    return TransientFetchError("timeout", url=url, kind=ErrorKind.TIMEOUT)


@pytest.fixture()
def make_config() -> Callable[..., CrawlerConfig]:
    """
    Factory for a fast CrawlerConfig: no delays, no robots, single worker.
    Keyword arguments override fields.
    """

    def factory(**overrides: Any) -> CrawlerConfig:
        data: Dict[str, Any] = {
            "start_url": f"{BASE}/",
            "max_depth": 3,
            "max_pages": 100,
            "max_concurrent_requests": 1,
            "delay_between_requests": 0,
            "min_delay_between_requests": 0,
            "max_delay_between_requests": 10,
            "max_requests_per_minute": 0,
            "respect_robots_txt": False,
            "max_retries": 2,
            "user_agent": "TestAgent/1.0",
        }
        data.update(overrides)
        return CrawlerConfig(**data)

    return factory


@pytest.fixture()
def store() -> MemoryContentStore:
    return MemoryContentStore()


@pytest.fixture()
def sink() -> MemoryNotificationSink:
    return MemoryNotificationSink()
