# File: adaptive_crawler/utils.py
"""adaptive_crawler.utils: URL normalisation and crawl-scope helpers."""

from __future__ import annotations

import posixpath
import re
from typing import Iterable, Sequence
from urllib.parse import parse_qsl, quote, unquote, urlencode, urlparse, urlunparse

__all__: Sequence[str] = (
    "normalize_url",
    "extract_domain",
    "is_http_url",
    "is_within_scope",
    "matches_any",
)


def normalize_url(url: str) -> str:
    """Canonical form used for dedup: lowercase scheme/host, resolved path,
    sorted query, no fragment. Root paths keep their trailing slash."""
    parsed = urlparse(url.strip())
    scheme = parsed.scheme.lower()
    netloc = parsed.netloc.lower()
    if scheme == "http" and netloc.endswith(":80"):
        netloc = netloc[:-3]
    elif scheme == "https" and netloc.endswith(":443"):
        netloc = netloc[:-4]
    path = unquote(parsed.path or "/")
    norm = posixpath.normpath(path)
    if parsed.path.endswith("/") and not norm.endswith("/"):
        norm += "/"
    if not norm.startswith("/"):
        norm = "/" + norm
    if norm.startswith("//"):
        norm = "/" + norm.lstrip("/")
    norm = quote(norm, safe="/:@!$&'()*+,;=-._~")
    qs = parse_qsl(parsed.query, keep_blank_values=True)
    qs.sort()
    query = urlencode(qs, doseq=True)
    return urlunparse((scheme, netloc, norm, "", query, ""))


def extract_domain(url: str) -> str:
    """Host part of *url* (without port), lowercased."""
    return (urlparse(url).hostname or "").lower()


def is_http_url(url: str) -> bool:
    parsed = urlparse(url)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def is_within_scope(url: str, base_url: str, allowed_domains: Iterable[str] = ()) -> bool:
    """True when *url* is under *base_url* (same host, path prefix) or its
    host is one of *allowed_domains* (subdomains included)."""
    host = extract_domain(url)
    for domain in allowed_domains:
        if host == domain or host.endswith("." + domain):
            return True
    base = urlparse(base_url)
    if host != (base.hostname or "").lower():
        return False
    prefix = base.path.rstrip("/")
    path = urlparse(url).path or "/"
    return not prefix or path == prefix or path.startswith(prefix + "/")


def matches_any(url: str, patterns: Iterable[str]) -> bool:
    return any(re.search(p, url) for p in patterns)
