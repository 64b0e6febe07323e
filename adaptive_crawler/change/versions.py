# adaptive_crawler/change/versions.py
"""
Bounded per-URL version history (FIFO retention).
"""
from __future__ import annotations

import logging
import threading
from collections import deque
from typing import Deque, Dict, Iterable, List, Mapping, Optional

from adaptive_crawler.crawler.models import ContentVersion

__all__ = ["VersionStorePolicy"]

logger = logging.getLogger("AdaptiveCrawler")


class VersionStorePolicy:
    """Keeps at most ``max_versions_to_keep`` versions per URL, most recent last.

    Safe to share between workers: every access goes through one lock.
    """

    def __init__(self, max_versions_to_keep: int = 5) -> None:
        if max_versions_to_keep < 1:
            raise ValueError("max_versions_to_keep must be >= 1")
        self.max_versions_to_keep = max_versions_to_keep
        self._history: Dict[str, Deque[ContentVersion]] = {}
        self._lock = threading.Lock()

    @classmethod
    def seeded(
        cls, max_versions_to_keep: int, history: Mapping[str, Iterable[ContentVersion]]
    ) -> VersionStorePolicy:
        """Build a store pre-loaded with history persisted by an earlier run."""
        store = cls(max_versions_to_keep)
        for url, versions in history.items():
            for version in sorted(versions, key=lambda v: v.captured_at):
                store.record(url, version)
        logger.debug("Loaded version history for %d URLs", len(history))
        return store

    def record(self, url: str, version: ContentVersion) -> Optional[ContentVersion]:
        """Append *version*; return the evicted oldest entry when over the cap."""
        with self._lock:
            history = self._history.setdefault(url, deque())
            history.append(version)
            if len(history) > self.max_versions_to_keep:
                dropped = history.popleft()
                logger.debug("Pruned version history for %s (dropped %s)", url, dropped.content_hash[:12])
                return dropped
            return None

    def latest(self, url: str) -> Optional[ContentVersion]:
        with self._lock:
            history = self._history.get(url)
            return history[-1] if history else None

    def latest_hash(self, url: str) -> Optional[str]:
        version = self.latest(url)
        return version.content_hash if version else None

    def history(self, url: str) -> List[ContentVersion]:
        with self._lock:
            return list(self._history.get(url, ()))

    def latest_versions(self) -> Dict[str, ContentVersion]:
        with self._lock:
            return {url: h[-1] for url, h in self._history.items() if h}

    def urls(self) -> List[str]:
        with self._lock:
            return list(self._history)

    def __len__(self) -> int:
        with self._lock:
            return sum(len(h) for h in self._history.values())
