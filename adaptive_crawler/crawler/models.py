# adaptive_crawler/crawler/models.py
"""
Data models for the adaptive crawl controller.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Mapping, Optional

from adaptive_crawler.errors import ErrorKind


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ChangeType(str, Enum):
    ADDED = "added"
    MODIFIED = "modified"
    REMOVED = "removed"
    UNCHANGED = "unchanged"


class RunStatus(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    STOPPED = "stopped"


class EventType(str, Enum):
    CONTENT_CHANGED = "content_changed"
    RUN_COMPLETED = "run_completed"
    RUN_FAILED = "run_failed"
    RUN_STOPPED = "run_stopped"


@dataclass(slots=True)
class CrawlTarget:
    """A discovered URL awaiting or under processing."""

    url: str
    depth: int
    priority: float
    discovered_at: datetime = field(default_factory=utcnow)
    source_url: Optional[str] = None

    @property
    def is_seed(self) -> bool:
        return self.source_url is None and self.depth == 0


@dataclass(frozen=True, slots=True)
class ContentVersion:
    """One fingerprinted snapshot of a URL's content. Never mutated."""

    url: str
    content_hash: str
    captured_at: datetime
    size_bytes: int
    change_type: ChangeType
    significance: int
    sketch: FrozenSet[str] = field(default_factory=frozenset, repr=False, compare=False)

    @property
    def severity(self) -> str:
        if self.significance >= 30:
            return "major"
        if self.significance >= 10:
            return "moderate"
        return "minor"

    def as_dict(self) -> Dict[str, Any]:
        return {
            "url": self.url,
            "content_hash": self.content_hash,
            "captured_at": self.captured_at.isoformat(),
            "size_bytes": self.size_bytes,
            "change_type": self.change_type.value,
            "significance": self.significance,
            "severity": self.severity,
        }


@dataclass(slots=True)
class FetchResult:
    """What a PageFetcher hands back for one request."""

    url: str
    status_code: int
    body: str
    latency_ms: float
    headers: Mapping[str, str] = field(default_factory=dict)

    @property
    def content_type(self) -> str:
        for key, value in self.headers.items():
            if key.lower() == "content-type":
                return value.split(";", 1)[0].strip().lower()
        return ""

    @property
    def is_html(self) -> bool:
        ctype = self.content_type
        return not ctype or "html" in ctype


@dataclass(slots=True)
class DiscoveredLink:
    url: str
    anchor_text: str = ""
    relevance: float = 0.0


@dataclass(slots=True)
class ExtractedPage:
    """Links found on a page plus the page-level relevance hint (0..1)."""

    links: List[DiscoveredLink] = field(default_factory=list)
    relevance: float = 0.0


@dataclass(frozen=True, slots=True)
class FailureRecord:
    url: str
    depth: int
    error_kind: ErrorKind
    message: str
    attempts: int = 1
    status_code: Optional[int] = None
    failed_at: datetime = field(default_factory=utcnow)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "url": self.url,
            "depth": self.depth,
            "error_kind": self.error_kind.value,
            "message": self.message,
            "attempts": self.attempts,
            "status_code": self.status_code,
            "failed_at": self.failed_at.isoformat(),
        }


@dataclass(frozen=True, slots=True)
class CrawlEvent:
    type: EventType
    payload: Dict[str, Any] = field(default_factory=dict)
    emitted_at: datetime = field(default_factory=utcnow)


@dataclass(frozen=True, slots=True)
class DomainMetrics:
    """Per-domain request figures for one run."""

    domain: str
    requests: int = 0
    errors: int = 0
    average_latency_ms: float = 0.0
    current_delay_ms: float = 0.0
    degraded: bool = False

    @property
    def success_rate(self) -> float:
        if not self.requests:
            return 0.0
        return (self.requests - self.errors) / self.requests

    def as_dict(self) -> Dict[str, Any]:
        return {
            "requests": self.requests,
            "errors": self.errors,
            "success_rate": round(self.success_rate, 3),
            "average_latency_ms": round(self.average_latency_ms, 1),
            "current_delay_ms": round(self.current_delay_ms, 1),
            "degraded": self.degraded,
        }


@dataclass(slots=True)
class CrawlRunResult:
    """Structured outcome of one run, returned to the orchestrating service."""

    status: RunStatus
    urls_processed: int = 0
    urls_queued: int = 0
    documents_processed: int = 0
    urls_failed: int = 0
    urls_skipped: int = 0
    has_errors: bool = False
    last_error: Optional[str] = None
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    domain_delays_ms: Dict[str, float] = field(default_factory=dict)
    domain_metrics: Dict[str, DomainMetrics] = field(default_factory=dict)
    removed_urls: List[str] = field(default_factory=list)

    @property
    def duration_seconds(self) -> float:
        if self.started_at is None or self.finished_at is None:
            return 0.0
        return (self.finished_at - self.started_at).total_seconds()

    def as_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "urls_processed": self.urls_processed,
            "urls_queued": self.urls_queued,
            "documents_processed": self.documents_processed,
            "urls_failed": self.urls_failed,
            "urls_skipped": self.urls_skipped,
            "has_errors": self.has_errors,
            "last_error": self.last_error,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "duration_seconds": round(self.duration_seconds, 3),
            "domain_delays_ms": dict(self.domain_delays_ms),
            "domain_metrics": {d: m.as_dict() for d, m in self.domain_metrics.items()},
            "removed_urls": list(self.removed_urls),
        }
