# adaptive_crawler/crawler/frontier.py
"""
Priority frontier shared by all crawl workers.

A bounded max-priority queue: when full, a new target is admitted only if it
beats the current minimum, which is then evicted. Equal priorities pop in
discovery order. Every normalised URL is handed out at most once per run.

``poll`` suspends while the queue is empty but other workers still hold
targets (they may discover more links); it returns ``None`` once the run is
quiescent, the page budget has been handed out, or :meth:`close` was called.
"""
from __future__ import annotations

import asyncio
import heapq
import itertools
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set
from urllib.parse import urlparse

from adaptive_crawler.crawler.models import CrawlTarget

__all__ = ["FrontierScheduler"]

logger = logging.getLogger("AdaptiveCrawler")

DEPTH_DECAY = 0.9
SIGNIFICANCE_WEIGHT = 0.2
RELEVANCE_WEIGHT = 10.0
PREFERRED_TERM_BONUS = 5.0
PATH_SEGMENT_PENALTY = 2.0
AVOIDED_EXTENSION_PENALTY = 50.0
EXTENSION_SIGNIFICANCE = 50

PREFERRED_TERMS = ("about", "faq", "help", "guide", "news", "contact")
AVOIDED_EXTENSIONS = (".pdf", ".jpg", ".jpeg", ".png", ".gif", ".mp3", ".mp4", ".zip")


@dataclass(order=True, slots=True)
class _Entry:
    key: tuple
    target: CrawlTarget = field(compare=False)

    @property
    def priority(self) -> float:
        return -self.key[0]


class FrontierScheduler:
    """Bounded priority queue of :class:`CrawlTarget` with dedup and depth rules."""

    def __init__(
        self,
        capacity: int,
        max_depth: int,
        max_pages: int,
        *,
        adaptive: bool = True,
        adjust_depth_based_on_quality: bool = False,
        relevance_threshold: float = 0.5,
    ) -> None:
        self.capacity = capacity
        self.max_depth = max_depth
        self.max_pages = max_pages
        self.adaptive = adaptive
        self.adjust_depth_based_on_quality = adjust_depth_based_on_quality
        self.relevance_threshold = relevance_threshold

        self._heap: List[_Entry] = []
        self._queued: Dict[str, _Entry] = {}
        self._seen: Set[str] = set()
        self._seq = itertools.count()
        self._in_flight = 0
        self._dispensed = 0
        self._dropped = 0
        self._closed = False
        self._cond = asyncio.Condition()

    @classmethod
    def from_config(cls, config) -> FrontierScheduler:
        return cls(
            capacity=config.priority_queue_size,
            max_depth=config.max_depth,
            max_pages=config.max_pages,
            adaptive=config.enable_adaptive_crawling,
            adjust_depth_based_on_quality=config.adjust_depth_based_on_quality,
            relevance_threshold=config.content_relevance_threshold,
        )

    # ------------------------------------------------------------------ #
    # Scoring                                                            #
    # ------------------------------------------------------------------ #

    def score(
        self,
        url: str,
        depth: int,
        parent_priority: float,
        significance: int = 0,
        relevance: float = 0.0,
    ) -> float:
        """Initial priority for a link found on a page with *parent_priority*.

        Higher change significance of the source page and a higher relevance
        hint always raise the result.
        """
        if not self.adaptive:
            return float(-depth)
        path = urlparse(url).path.lower()
        priority = parent_priority * DEPTH_DECAY
        priority += SIGNIFICANCE_WEIGHT * significance
        priority += RELEVANCE_WEIGHT * relevance
        priority += PREFERRED_TERM_BONUS * sum(1 for term in PREFERRED_TERMS if term in path)
        segments = [s for s in path.split("/") if s]
        priority -= PATH_SEGMENT_PENALTY * max(0, len(segments) - 1)
        if path.endswith(AVOIDED_EXTENSIONS):
            priority -= AVOIDED_EXTENSION_PENALTY
        return priority

    def allows_depth(self, depth: int, source_significance: int = 0, source_relevance: float = 0.0) -> bool:
        if depth <= self.max_depth:
            return True
        if depth == self.max_depth + 1 and self.adjust_depth_based_on_quality:
            return (
                source_significance >= EXTENSION_SIGNIFICANCE
                or source_relevance >= self.relevance_threshold
            )
        return False

    # ------------------------------------------------------------------ #
    # Queue operations                                                   #
    # ------------------------------------------------------------------ #

    async def offer(
        self,
        target: CrawlTarget,
        *,
        source_significance: int = 0,
        source_relevance: float = 0.0,
    ) -> bool:
        """Try to enqueue *target*; False when it is a duplicate, too deep, or
        does not beat the minimum of a full queue."""
        async with self._cond:
            if self._closed or target.url in self._seen:
                return False
            if not self.allows_depth(target.depth, source_significance, source_relevance):
                logger.debug("Rejected %s: depth %d beyond limit", target.url, target.depth)
                return False

            if len(self._heap) >= self.capacity:
                lowest = max(self._heap)
                if target.priority <= lowest.priority:
                    logger.debug("Rejected %s: queue full (priority %.2f)", target.url, target.priority)
                    self._dropped += 1
                    return False
                self._evict(lowest)

            entry = _Entry(key=(-target.priority, next(self._seq)), target=target)
            heapq.heappush(self._heap, entry)
            self._queued[target.url] = entry
            self._seen.add(target.url)
            self._cond.notify()
            return True

    def _evict(self, entry: _Entry) -> None:
        self._heap.remove(entry)
        heapq.heapify(self._heap)
        del self._queued[entry.target.url]
        # never fetched, so it may be discovered again later
        self._seen.discard(entry.target.url)
        self._dropped += 1
        logger.debug("Evicted %s (priority %.2f)", entry.target.url, entry.priority)

    async def poll(self) -> Optional[CrawlTarget]:
        async with self._cond:
            while True:
                if self._closed or self._dispensed >= self.max_pages:
                    return None
                if self._heap:
                    entry = heapq.heappop(self._heap)
                    del self._queued[entry.target.url]
                    self._in_flight += 1
                    self._dispensed += 1
                    return entry.target
                if self._in_flight == 0:
                    return None
                await self._cond.wait()

    async def task_done(self, target: CrawlTarget) -> None:
        """Mark a polled target as finished; wakes pollers so quiescence is noticed."""
        async with self._cond:
            self._in_flight = max(0, self._in_flight - 1)
            self._cond.notify_all()

    async def update_priority(self, url: str, delta: float) -> bool:
        async with self._cond:
            entry = self._queued.get(url)
            if entry is None:
                return False
            entry.target.priority += delta
            entry.key = (-entry.target.priority, entry.key[1])
            heapq.heapify(self._heap)
            return True

    async def close(self) -> None:
        async with self._cond:
            self._closed = True
            self._cond.notify_all()

    # ------------------------------------------------------------------ #
    # Introspection                                                      #
    # ------------------------------------------------------------------ #

    def __len__(self) -> int:
        return len(self._heap)

    def __contains__(self, url: str) -> bool:
        return url in self._queued

    @property
    def in_flight(self) -> int:
        return self._in_flight

    @property
    def dispensed(self) -> int:
        return self._dispensed

    @property
    def dropped(self) -> int:
        """Targets rejected by a full queue or evicted from it."""
        return self._dropped

    @property
    def closed(self) -> bool:
        return self._closed

    def seen(self, url: str) -> bool:
        return url in self._seen

    def queued_targets(self) -> List[CrawlTarget]:
        """Queued targets in pop order (highest priority first)."""
        return [e.target for e in sorted(self._heap)]
