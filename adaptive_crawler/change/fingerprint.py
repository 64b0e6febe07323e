# adaptive_crawler/change/fingerprint.py
"""
Content fingerprinting and change classification.

The input is treated as canonical text: stripping markup noise is the job of
whatever produced it. Two things are derived from it:

* ``content_hash`` – SHA-256 hex digest, used for the equality check;
* ``sketch`` – the set of short digests of the text's segments (paragraphs,
  or lines when the text has no blank-line breaks). Comparing two sketches
  gives the share of segments that survived, which becomes the significance
  of a modification.
"""
from __future__ import annotations

import hashlib
import logging
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, FrozenSet, List, Optional, Union

from adaptive_crawler.crawler.models import ChangeType, ContentVersion, utcnow
from adaptive_crawler.errors import EmptyContentError

__all__ = ["Classification", "FingerprintEngine", "content_hash", "content_sketch"]

logger = logging.getLogger("AdaptiveCrawler")

_PARAGRAPH_SPLIT = re.compile(r"\r?\n\s*\r?\n")
_WS = re.compile(r"\s+")


def _as_bytes(content: Union[str, bytes]) -> bytes:
    return content if isinstance(content, bytes) else content.encode("utf-8")


def content_hash(content: Union[str, bytes]) -> str:
    return hashlib.sha256(_as_bytes(content)).hexdigest()


def _segments(text: str) -> List[str]:
    parts = _PARAGRAPH_SPLIT.split(text)
    if len(parts) < 2:
        parts = text.splitlines()
    return [_WS.sub(" ", p).strip().lower() for p in parts if p.strip()]


def content_sketch(content: Union[str, bytes]) -> FrozenSet[str]:
    text = content.decode("utf-8", errors="replace") if isinstance(content, bytes) else content
    return frozenset(
        hashlib.blake2b(seg.encode("utf-8"), digest_size=8).hexdigest() for seg in _segments(text)
    )


@dataclass(frozen=True, slots=True)
class Classification:
    version: ContentVersion
    is_significant: bool

    @property
    def change_type(self) -> ChangeType:
        return self.version.change_type

    @property
    def significance(self) -> int:
        return self.version.significance


class FingerprintEngine:
    """Classifies freshly fetched content against the previously stored hash."""

    def __init__(
        self,
        min_significance: int = 10,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.min_significance = min_significance
        self._clock = clock

    def classify(
        self,
        url: str,
        content: Union[str, bytes],
        prior_hash: Optional[str],
        prior_sketch: Optional[FrozenSet[str]] = None,
    ) -> Classification:
        """Return the new :class:`ContentVersion` and whether it is worth recording.

        Raises :class:`EmptyContentError` for a zero-length or whitespace-only body.
        """
        raw = _as_bytes(content)
        if not raw.strip():
            raise EmptyContentError(url)

        digest = content_hash(raw)
        sketch = content_sketch(content)

        if prior_hash is None:
            change, significance = ChangeType.ADDED, 100
        elif prior_hash == digest:
            change, significance = ChangeType.UNCHANGED, 0
        else:
            change = ChangeType.MODIFIED
            significance = self.significance(prior_sketch, sketch)

        version = ContentVersion(
            url=url,
            content_hash=digest,
            captured_at=self._clock(),
            size_bytes=len(raw),
            change_type=change,
            significance=significance,
            sketch=sketch,
        )
        if change is ChangeType.ADDED:
            significant = True
        elif change is ChangeType.MODIFIED:
            significant = significance >= self.min_significance
        else:
            significant = False
        logger.debug("Classified %s: %s (significance=%d)", url, change.value, significance)
        return Classification(version=version, is_significant=significant)

    @staticmethod
    def significance(old: Optional[FrozenSet[str]], new: FrozenSet[str]) -> int:
        """Share of segments that did not survive, scaled to 1..100.

        Only called for content whose hash changed, so the floor is 1 even
        when the segment sets coincide (whitespace or ordering edits).
        """
        if not old or not new:
            return 100
        common = len(old & new)
        ratio = common / max(len(old), len(new))
        return max(1, min(100, round(100 * (1 - ratio))))
