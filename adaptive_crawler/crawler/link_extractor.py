# adaptive_crawler/crawler/link_extractor.py
"""
Link extraction for the crawl controller.

Besides absolute link URLs, the extractor supplies the relevance hints the
frontier consumes: per link (key terms in anchor text or URL) and per page
(share of key terms present in the page text).
"""
from __future__ import annotations

from typing import Iterable, List, Sequence
from urllib.parse import urljoin, urlparse

from bs4 import BeautifulSoup
from bs4.element import Tag

from adaptive_crawler.crawler.models import DiscoveredLink, ExtractedPage

__all__ = ["HtmlLinkExtractor"]

_SKIP_SCHEMES = ("mailto:", "javascript:", "tel:", "data:", "#")


class HtmlLinkExtractor:
    """LinkExtractor over ``<a href>`` tags, scoring against *key_terms*."""

    def __init__(self, key_terms: Iterable[str] = ()) -> None:
        self.key_terms: Sequence[str] = tuple(t.lower() for t in key_terms if t.strip())

    def extract(self, url: str, body: str) -> ExtractedPage:
        soup = BeautifulSoup(body, "html.parser")
        links: List[DiscoveredLink] = []
        for tag in soup.find_all("a", href=True):
            if not isinstance(tag, Tag):
                continue
            href_val = tag.get("href")
            if not isinstance(href_val, str):
                continue
            raw = href_val.strip()
            if not raw or raw.lower().startswith(_SKIP_SCHEMES):
                continue
            absolute = urljoin(url, raw)
            if urlparse(absolute).scheme not in ("http", "https"):
                continue
            anchor = tag.get_text(" ", strip=True)
            links.append(
                DiscoveredLink(url=absolute, anchor_text=anchor, relevance=self._link_relevance(absolute, anchor))
            )
        return ExtractedPage(links=links, relevance=self._page_relevance(soup.get_text(" ", strip=True)))

    def _link_relevance(self, url: str, anchor: str) -> float:
        if not self.key_terms:
            return 0.0
        haystack = f"{anchor} {url}".lower()
        return 1.0 if any(term in haystack for term in self.key_terms) else 0.0

    def _page_relevance(self, text: str) -> float:
        if not self.key_terms:
            return 0.0
        lowered = text.lower()
        hits = sum(1 for term in self.key_terms if term in lowered)
        return hits / len(self.key_terms)
