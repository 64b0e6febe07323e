# File: adaptive_crawler/aggregator.py
"""adaptive_crawler.aggregator: Сборка итогового отчёта по результату обхода."""

from __future__ import annotations

import json
from collections import Counter
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional, TypedDict, Union

from adaptive_crawler.crawler.models import CrawlRunResult
from adaptive_crawler.store import MemoryContentStore


class PageInfo(TypedDict, total=False):
    """Сохранённая страница и её версия."""

    url: str
    depth: int
    size: int
    change_type: Optional[str]
    significance: Optional[int]
    severity: Optional[str]
    content_hash: Optional[str]


class FailureInfo(TypedDict, total=False):
    """Цель, которую не удалось обработать."""

    url: str
    depth: int
    error_kind: str
    message: str
    attempts: int
    status_code: Union[int, None]


@dataclass(slots=True)
class RunReport:
    """Итог обхода: счётчики, задержки по доменам, страницы и ошибки."""

    summary: Dict[str, Any] = field(default_factory=dict)
    pages: List[PageInfo] = field(default_factory=list)
    failures: List[FailureInfo] = field(default_factory=list)
    changes: Dict[str, int] = field(default_factory=dict)
    error_kinds: Dict[str, int] = field(default_factory=dict)

    def json(self, *, pretty: bool = False) -> str:
        """Возвращает JSON-представление отчёта."""
        return json.dumps(asdict(self), ensure_ascii=False, indent=2 if pretty else None, default=str)


def _aggregate_pages(store: MemoryContentStore) -> List[PageInfo]:
    pages: List[PageInfo] = []
    for stored in store.pages:
        version = stored.version
        pages.append(
            {
                "url": stored.url,
                "depth": stored.depth,
                "size": stored.size,
                "change_type": version.change_type.value if version else None,
                "significance": version.significance if version else None,
                "severity": version.severity if version else None,
                "content_hash": version.content_hash if version else None,
            }
        )
    return pages


def _aggregate_failures(store: MemoryContentStore) -> List[FailureInfo]:
    return [
        {
            "url": rec.url,
            "depth": rec.depth,
            "error_kind": rec.error_kind.value,
            "message": rec.message,
            "attempts": rec.attempts,
            "status_code": rec.status_code,
        }
        for rec in store.failures
    ]


def aggregate_run(result: CrawlRunResult, store: Optional[MemoryContentStore] = None) -> RunReport:
    """Собирает RunReport из результата и (если есть) содержимого хранилища в памяти."""
    report = RunReport(summary=result.as_dict())
    if store is None:
        return report
    report.pages = _aggregate_pages(store)
    report.failures = _aggregate_failures(store)
    report.changes = dict(Counter(p["change_type"] for p in report.pages if p["change_type"]))
    report.error_kinds = dict(Counter(f["error_kind"] for f in report.failures))
    return report
