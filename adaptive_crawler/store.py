# File: adaptive_crawler/store.py
"""adaptive_crawler.store: Ready-made ContentStore and NotificationSink implementations.

Real deployments plug in their own persistence and delivery; these cover the
CLI (JSON-lines files + log output) and tests (in-memory).
"""

from __future__ import annotations

import json
import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from adaptive_crawler.crawler.models import ContentVersion, CrawlEvent, CrawlTarget, FailureRecord
from adaptive_crawler.errors import StorageUnavailableError

__all__ = [
    "StoredPage",
    "MemoryContentStore",
    "JsonlContentStore",
    "TeeContentStore",
    "LoggingNotificationSink",
    "MemoryNotificationSink",
]

logger = logging.getLogger("AdaptiveCrawler")


@dataclass(slots=True)
class StoredPage:
    url: str
    depth: int
    size: int
    version: Optional[ContentVersion] = None

    def as_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"url": self.url, "depth": self.depth, "size": self.size}
        if self.version is not None:
            data["version"] = self.version.as_dict()
        return data


@dataclass
class MemoryContentStore:
    """Keeps everything in lists; handy for tests and for building reports.

    With ``keep_bodies=False`` only page metadata is kept.
    """

    pages: List[StoredPage] = field(default_factory=list)
    bodies: Dict[str, str] = field(default_factory=dict)
    failures: List[FailureRecord] = field(default_factory=list)
    discarded: List[ContentVersion] = field(default_factory=list)
    keep_bodies: bool = True

    def persist_page(self, target: CrawlTarget, body: str, version: Optional[ContentVersion]) -> None:
        self.pages.append(StoredPage(url=target.url, depth=target.depth, size=len(body), version=version))
        if self.keep_bodies:
            self.bodies[target.url] = body

    def persist_failure(self, record: FailureRecord) -> None:
        self.failures.append(record)

    def discard_version(self, version: ContentVersion) -> None:
        self.discarded.append(version)


class JsonlContentStore:
    """Appends pages, failures and discarded versions to JSON-lines files in *directory*.

    Writes are synchronous and happen on the event loop thread; one short
    append per page is fine for a single crawl, a busier deployment should
    plug in a store that hands writes to an executor.
    """

    def __init__(self, directory: Union[str, Path], *, keep_bodies: bool = False) -> None:
        self.directory = Path(directory)
        self.keep_bodies = keep_bodies
        self._lock = threading.Lock()
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StorageUnavailableError(f"cannot create {self.directory}: {exc}") from exc

    def _append(self, name: str, record: Dict[str, Any]) -> None:
        path = self.directory / name
        try:
            with self._lock, path.open("a", encoding="utf-8") as fh:
                fh.write(json.dumps(record, ensure_ascii=False) + "\n")
        except OSError as exc:
            raise StorageUnavailableError(f"cannot write {path}: {exc}") from exc

    def persist_page(self, target: CrawlTarget, body: str, version: Optional[ContentVersion]) -> None:
        record = StoredPage(url=target.url, depth=target.depth, size=len(body), version=version).as_dict()
        if self.keep_bodies:
            record["body"] = body
        self._append("pages.jsonl", record)

    def persist_failure(self, record: FailureRecord) -> None:
        self._append("failures.jsonl", record.as_dict())

    def discard_version(self, version: ContentVersion) -> None:
        self._append("discarded_versions.jsonl", version.as_dict())


class TeeContentStore:
    """Forwards every call to each of *stores* in order."""

    def __init__(self, *stores) -> None:
        self.stores = stores

    def persist_page(self, target: CrawlTarget, body: str, version: Optional[ContentVersion]) -> None:
        for store in self.stores:
            store.persist_page(target, body, version)

    def persist_failure(self, record: FailureRecord) -> None:
        for store in self.stores:
            store.persist_failure(record)

    def discard_version(self, version: ContentVersion) -> None:
        for store in self.stores:
            store.discard_version(version)


class LoggingNotificationSink:
    """Writes every event to the project log."""

    def emit(self, event: CrawlEvent) -> None:
        logger.info("Event %s: %s", event.type.value, json.dumps(event.payload, ensure_ascii=False, default=str))


@dataclass
class MemoryNotificationSink:
    events: List[CrawlEvent] = field(default_factory=list)

    def emit(self, event: CrawlEvent) -> None:
        self.events.append(event)
