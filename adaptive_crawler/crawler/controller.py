# adaptive_crawler/crawler/controller.py
"""
Crawl controller: drives one scraper run.

``IDLE → RUNNING → {COMPLETED, FAILED, STOPPED}``

A pool of ``max_concurrent_requests`` asyncio workers shares one frontier and
one rate governor. Each worker repeatedly polls a target, waits for its
domain's turn, fetches it (retrying transient failures), fingerprints the
body, records significant versions and offers the page's in-scope links back
to the frontier. Per-target failures are counted and persisted; only a failed
seed, an unavailable content store, or any failure with
``continue_on_error=False`` fails the run. Cancellation via :meth:`stop` is
observed between targets; fetches already in flight are allowed to finish.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Mapping, Optional, Set

from adaptive_crawler.change.fingerprint import FingerprintEngine, content_hash
from adaptive_crawler.change.versions import VersionStorePolicy
from adaptive_crawler.config import CrawlerConfig
from adaptive_crawler.crawler.frontier import FrontierScheduler
from adaptive_crawler.crawler.interfaces import (
    ContentStore,
    LinkExtractor,
    NotificationSink,
    PageFetcher,
    RobotsChecker,
)
from adaptive_crawler.crawler.link_extractor import HtmlLinkExtractor
from adaptive_crawler.crawler.models import (
    ChangeType,
    ContentVersion,
    CrawlEvent,
    CrawlRunResult,
    CrawlTarget,
    EventType,
    FailureRecord,
    FetchResult,
    RunStatus,
    utcnow,
)
from adaptive_crawler.crawler.rate_governor import RateGovernor
from adaptive_crawler.errors import (
    EmptyContentError,
    ErrorKind,
    FatalRunError,
    FetchError,
    PermanentFetchError,
    StorageUnavailableError,
    TransientFetchError,
)
from adaptive_crawler.store import LoggingNotificationSink, MemoryContentStore
from adaptive_crawler.utils import extract_domain, is_http_url, is_within_scope, matches_any, normalize_url

__all__ = ["CrawlRunState", "CrawlController", "SEED_PRIORITY"]

logger = logging.getLogger("AdaptiveCrawler")

SEED_PRIORITY = 100.0
INBOUND_LINK_BOOST = 1.0

_RESULT_EVENTS = {
    RunStatus.COMPLETED: EventType.RUN_COMPLETED,
    RunStatus.FAILED: EventType.RUN_FAILED,
    RunStatus.STOPPED: EventType.RUN_STOPPED,
}


@dataclass
class CrawlRunState:
    """Everything one run owns. Never shared between runs."""

    frontier: FrontierScheduler
    governor: RateGovernor
    versions: Optional[VersionStorePolicy] = None
    latest: Dict[str, ContentVersion] = field(default_factory=dict)
    discovered: Set[str] = field(default_factory=set)
    urls_processed: int = 0
    urls_queued: int = 0
    documents_processed: int = 0
    urls_failed: int = 0
    urls_skipped: int = 0
    has_errors: bool = False
    last_error: Optional[str] = None
    fatal: Optional[FatalRunError] = None
    truncated: bool = False
    # pages whose links were not followed because of their depth
    unexpanded: int = 0


class CrawlController:
    """Runs one crawl against the given collaborators. Single use."""

    def __init__(
        self,
        config: CrawlerConfig,
        fetcher: PageFetcher,
        *,
        robots: Optional[RobotsChecker] = None,
        link_extractor: Optional[LinkExtractor] = None,
        content_store: Optional[ContentStore] = None,
        notifier: Optional[NotificationSink] = None,
        versions: Optional[VersionStorePolicy] = None,
        previous_versions: Optional[Mapping[str, ContentVersion]] = None,
        governor: Optional[RateGovernor] = None,
        fingerprint: Optional[FingerprintEngine] = None,
    ) -> None:
        self.config = config
        self.fetcher = fetcher
        self.robots = robots
        self.link_extractor = link_extractor or HtmlLinkExtractor(config.key_term_filters)
        self.content_store = content_store if content_store is not None else MemoryContentStore()
        self.notifier = notifier if notifier is not None else LoggingNotificationSink()
        self.fingerprint = fingerprint or FingerprintEngine(config.min_change_significance)

        if config.track_content_versions:
            versions = versions or VersionStorePolicy(config.max_versions_to_keep)
        else:
            versions = None

        latest: Dict[str, ContentVersion] = dict(versions.latest_versions()) if versions else {}
        latest.update(previous_versions or {})

        self.state = CrawlRunState(
            frontier=FrontierScheduler.from_config(config),
            governor=governor or RateGovernor.from_config(config),
            versions=versions,
            latest=latest,
        )
        self._known_before = {
            url: v for url, v in latest.items() if v.change_type is not ChangeType.REMOVED
        }
        self._status = RunStatus.IDLE
        self._cancel = asyncio.Event()

        if config.respect_robots_txt and robots is None:
            logger.warning("respect_robots_txt is set but no RobotsChecker was given; all URLs allowed")

    @property
    def status(self) -> RunStatus:
        return self._status

    # ------------------------------------------------------------------ #
    # Run lifecycle                                                      #
    # ------------------------------------------------------------------ #

    async def run(self) -> CrawlRunResult:
        if self._status is not RunStatus.IDLE:
            raise RuntimeError("CrawlController is single use; create a new one per run")
        cfg = self.config
        started = utcnow()
        self._status = RunStatus.RUNNING
        logger.info(
            "Crawl started: %s (workers=%d, max_depth=%d, max_pages=%d)",
            cfg.start_url, cfg.max_concurrent_requests, cfg.max_depth, cfg.max_pages,
        )

        seed_url = normalize_url(str(cfg.start_url))
        self.state.discovered.add(seed_url)
        if await self.state.frontier.offer(CrawlTarget(url=seed_url, depth=0, priority=SEED_PRIORITY)):
            self.state.urls_queued += 1

        workers = [
            asyncio.create_task(self._worker(n), name=f"crawl-worker-{n}")
            for n in range(cfg.max_concurrent_requests)
        ]
        await asyncio.gather(*workers)

        if self.state.fatal is not None:
            status = RunStatus.FAILED
        elif self._cancel.is_set():
            status = RunStatus.STOPPED
        else:
            status = RunStatus.COMPLETED

        removed: list[str] = []
        if status is RunStatus.COMPLETED and cfg.enable_change_detection:
            gap = self._coverage_gap()
            if gap is not None:
                logger.info("Removed-page detection skipped: %s", gap)
            else:
                try:
                    removed = self._detect_removed()
                except FatalRunError as exc:
                    self._fail(exc)
                    status = RunStatus.FAILED

        result = CrawlRunResult(
            status=status,
            urls_processed=self.state.urls_processed,
            urls_queued=self.state.urls_queued,
            documents_processed=self.state.documents_processed,
            urls_failed=self.state.urls_failed,
            urls_skipped=self.state.urls_skipped,
            has_errors=self.state.has_errors,
            last_error=self.state.last_error,
            started_at=started,
            finished_at=utcnow(),
            domain_delays_ms=self.state.governor.snapshot(),
            domain_metrics=self.state.governor.metrics(),
            removed_urls=removed,
        )
        self._status = status
        logger.info(
            "Crawl %s: %d processed, %d failed, %d skipped in %.2fs",
            status.value, result.urls_processed, result.urls_failed, result.urls_skipped,
            result.duration_seconds,
        )
        self._emit(_RESULT_EVENTS[status], {"start_url": str(cfg.start_url), **result.as_dict()})
        return result

    async def stop(self) -> None:
        """Cooperative cancellation: no new targets are taken, in-flight ones finish."""
        if self._cancel.is_set():
            return
        logger.info("Stop requested")
        self._cancel.set()
        await self.state.frontier.close()

    def _fail(self, exc: FatalRunError) -> None:
        if self.state.fatal is None:
            self.state.fatal = exc
            self.state.has_errors = True
            self.state.last_error = str(exc)
            logger.error("Crawl failed: %s", exc)

    async def _abort(self, exc: FatalRunError) -> None:
        self._fail(exc)
        await self.state.frontier.close()

    # ------------------------------------------------------------------ #
    # Worker loop                                                        #
    # ------------------------------------------------------------------ #

    async def _worker(self, n: int) -> None:
        frontier = self.state.frontier
        while not self._cancel.is_set():
            target = await frontier.poll()
            if target is None:
                break
            try:
                await self._process(target)
                await self._count_processed()
            except FatalRunError as exc:
                await self._abort(exc)
            except Exception as exc:
                logger.exception("Worker %d crashed on %s", n, target.url)
                await self._abort(FatalRunError(f"unexpected error on {target.url}: {exc}"))
            finally:
                await frontier.task_done(target)

    async def _count_processed(self) -> None:
        self.state.urls_processed += 1
        if self.state.urls_processed >= self.config.max_pages and not self.state.frontier.closed:
            self.state.truncated = len(self.state.frontier) > 0
            logger.info("Page limit %d reached", self.config.max_pages)
            await self.state.frontier.close()

    async def _process(self, target: CrawlTarget) -> None:
        cfg = self.config
        if cfg.respect_robots_txt and self.robots is not None:
            if not await self.robots.is_allowed(target.url, cfg.user_agent):
                self.state.urls_skipped += 1
                logger.info("Disallowed by robots.txt: %s", target.url)
                self._persist(
                    self.content_store.persist_failure,
                    FailureRecord(
                        url=target.url,
                        depth=target.depth,
                        error_kind=ErrorKind.ROBOTS_DISALLOWED,
                        message="disallowed by robots.txt",
                        attempts=0,
                    ),
                )
                if target.is_seed:
                    raise FatalRunError(f"seed URL disallowed by robots.txt: {target.url}")
                return
            crawl_delay = await self.robots.crawl_delay(target.url, cfg.user_agent)
            if crawl_delay is not None:
                self.state.governor.apply_crawl_delay(extract_domain(target.url), crawl_delay)

        try:
            result = await self._fetch_with_retries(target)
        except FetchError as exc:
            self._record_failure(target, exc)
            if target.is_seed:
                raise FatalRunError(f"seed URL unreachable: {exc}") from exc
            if not cfg.continue_on_error:
                raise FatalRunError(f"{target.url} failed and continue_on_error is off: {exc}") from exc
            return

        try:
            significance = self._detect_change(target, result)
        except EmptyContentError:
            logger.info("Empty content: %s", target.url)
            return
        await self._enqueue_links(target, result, significance)

    # ------------------------------------------------------------------ #
    # Fetching                                                           #
    # ------------------------------------------------------------------ #

    async def _fetch_with_retries(self, target: CrawlTarget) -> FetchResult:
        cfg = self.config
        governor = self.state.governor
        domain = extract_domain(target.url)
        attempts = 0
        while True:
            attempts += 1
            await governor.acquire(domain)
            try:
                result = await self.fetcher.fetch(target.url, cfg.user_agent, cfg.request_timeout_seconds)
            except TransientFetchError as exc:
                governor.observe(domain, exc.latency_ms, None)
                error: FetchError = exc
            else:
                governor.observe(domain, result.latency_ms, result.status_code)
                status_error = self._status_error(result)
                if status_error is None:
                    return result
                error = status_error
            error.attempts = attempts
            if isinstance(error, PermanentFetchError) or attempts > cfg.max_retries:
                raise error
            logger.info("Retry %d/%d for %s: %s", attempts, cfg.max_retries, target.url, error)

    @staticmethod
    def _status_error(result: FetchResult) -> Optional[FetchError]:
        status = result.status_code
        if status < 400:
            return None
        common: Dict[str, Any] = {"url": result.url, "status_code": status, "latency_ms": result.latency_ms}
        if status == 429:
            return TransientFetchError("HTTP 429", kind=ErrorKind.THROTTLED, **common)
        if status >= 500:
            return TransientFetchError(f"HTTP {status}", kind=ErrorKind.SERVER_ERROR, **common)
        if status in (404, 410):
            return PermanentFetchError(f"HTTP {status}", kind=ErrorKind.NOT_FOUND, **common)
        return PermanentFetchError(f"HTTP {status}", kind=ErrorKind.CLIENT_ERROR, **common)

    def _record_failure(self, target: CrawlTarget, exc: FetchError) -> None:
        self.state.urls_failed += 1
        self.state.has_errors = True
        self.state.last_error = f"{target.url}: {exc}"
        logger.warning("Failed %s after %d attempt(s): %s", target.url, exc.attempts, exc)
        self._persist(
            self.content_store.persist_failure,
            FailureRecord(
                url=target.url,
                depth=target.depth,
                error_kind=exc.kind,
                message=str(exc),
                attempts=exc.attempts,
                status_code=exc.status_code,
            ),
        )

    # ------------------------------------------------------------------ #
    # Change detection                                                   #
    # ------------------------------------------------------------------ #

    def _detect_change(self, target: CrawlTarget, result: FetchResult) -> int:
        """Record/persist the page as needed; return the change significance
        that feeds link priorities (0 unless the page was modified)."""
        body = result.body
        if not body.strip():
            raise EmptyContentError(target.url)

        if not self.config.enable_change_detection:
            self._persist(self.content_store.persist_page, target, body, None)
            self.state.documents_processed += 1
            return 0

        prior = self.state.latest.get(target.url)
        classification = self.fingerprint.classify(
            target.url,
            body,
            prior.content_hash if prior else None,
            prior.sketch if prior else None,
        )
        version = classification.version
        if not classification.is_significant:
            logger.debug("No significant change for %s (%s)", target.url, version.change_type.value)
            return 0

        self._keep_version(version)
        self._persist(self.content_store.persist_page, target, body, version)
        self.state.documents_processed += 1

        if version.change_type is ChangeType.MODIFIED:
            logger.info("Detected %s change for %s (significance=%d)", version.severity, target.url, version.significance)
            self._announce_change(version)
            return version.significance
        return 0

    def _keep_version(self, version: ContentVersion) -> None:
        if self.state.versions is not None:
            dropped = self.state.versions.record(version.url, version)
            if dropped is not None:
                self._persist(self.content_store.discard_version, dropped)
        self.state.latest[version.url] = version

    def _announce_change(self, version: ContentVersion) -> None:
        cfg = self.config
        if cfg.notify_on_changes and version.significance >= cfg.change_notification_threshold:
            self._emit(EventType.CONTENT_CHANGED, version.as_dict())

    def _coverage_gap(self) -> Optional[str]:
        """Why this run did not see every link it could have, or None."""
        st = self.state
        if st.truncated:
            return "page limit reached"
        if st.urls_failed:
            return f"{st.urls_failed} URL(s) failed"
        if st.urls_skipped:
            return f"{st.urls_skipped} URL(s) disallowed by robots.txt"
        if st.frontier.dropped:
            return f"{st.frontier.dropped} URL(s) dropped by a full queue"
        if st.unexpanded:
            return f"{st.unexpanded} page(s) beyond max_depth not expanded"
        return None

    def _detect_removed(self) -> list[str]:
        removed: list[str] = []
        for url in sorted(self._known_before):
            if url in self.state.discovered or not self._in_scope(url):
                continue
            version = ContentVersion(
                url=url,
                content_hash=content_hash(b""),
                captured_at=utcnow(),
                size_bytes=0,
                change_type=ChangeType.REMOVED,
                significance=100,
            )
            self._keep_version(version)
            self._persist(
                self.content_store.persist_page,
                CrawlTarget(url=url, depth=0, priority=0.0),
                "",
                version,
            )
            self._announce_change(version)
            removed.append(url)
        if removed:
            logger.info("%d previously known URL(s) no longer linked", len(removed))
        return removed

    # ------------------------------------------------------------------ #
    # Link discovery                                                     #
    # ------------------------------------------------------------------ #

    async def _enqueue_links(self, target: CrawlTarget, result: FetchResult, significance: int) -> None:
        if not result.is_html:
            return
        # children deeper than max_depth + 1 can never be admitted
        if target.depth > self.config.max_depth:
            self.state.unexpanded += 1
            return
        frontier = self.state.frontier
        page = self.link_extractor.extract(target.url, result.body)
        depth = target.depth + 1
        for link in page.links:
            url = normalize_url(link.url)
            if url == target.url or not self._in_scope(url):
                continue
            self.state.discovered.add(url)
            child = CrawlTarget(
                url=url,
                depth=depth,
                priority=frontier.score(url, depth, target.priority, significance, link.relevance),
                source_url=target.url,
            )
            if await frontier.offer(child, source_significance=significance, source_relevance=page.relevance):
                self.state.urls_queued += 1
            elif self.config.enable_adaptive_crawling:
                await frontier.update_priority(url, INBOUND_LINK_BOOST)

    def _in_scope(self, url: str) -> bool:
        cfg = self.config
        if not is_http_url(url):
            return False
        if cfg.exclude_url_patterns and matches_any(url, cfg.exclude_url_patterns):
            return False
        if cfg.follow_external_links:
            return True
        return is_within_scope(url, cfg.scope_url, cfg.allowed_domains)

    # ------------------------------------------------------------------ #
    # Collaborator calls                                                 #
    # ------------------------------------------------------------------ #

    def _persist(self, method: Callable[..., None], *args: Any) -> None:
        try:
            method(*args)
        except StorageUnavailableError as exc:
            raise FatalRunError(f"content store unavailable: {exc}") from exc

    def _emit(self, event_type: EventType, payload: Dict[str, Any]) -> None:
        self.notifier.emit(CrawlEvent(type=event_type, payload=payload))
