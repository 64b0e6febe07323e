# adaptive_crawler/crawler/fetcher.py
"""
aiohttp-backed PageFetcher: one GET per call, latency measured, timeouts and
connection failures surfaced as TransientFetchError. Status codes are passed
through untouched; deciding what a 429 or 404 means is the controller's job.
"""
from __future__ import annotations

import asyncio
import time

from aiohttp import ClientError, ClientSession, ClientTimeout

from adaptive_crawler.crawler.models import FetchResult
from adaptive_crawler.errors import ErrorKind, TransientFetchError

__all__ = ["AiohttpPageFetcher"]

_TEXT_TYPES = ("text/", "html", "json", "xml", "javascript")


class AiohttpPageFetcher:
    """Fetches pages over a shared :class:`aiohttp.ClientSession`."""

    def __init__(self, session: ClientSession) -> None:
        self.session = session

    async def fetch(self, url: str, user_agent: str, timeout: float) -> FetchResult:
        start = time.perf_counter()
        try:
            async with self.session.get(
                url,
                headers={"User-Agent": user_agent},
                timeout=ClientTimeout(total=timeout),
                raise_for_status=False,
            ) as resp:
                ctype = resp.headers.get("Content-Type", "").lower()
                if not ctype or any(t in ctype for t in _TEXT_TYPES):
                    body = await resp.text(errors="replace")
                else:
                    # binary documents are handled by an external processor
                    await resp.read()
                    body = ""
                return FetchResult(
                    url=url,
                    status_code=resp.status,
                    body=body,
                    latency_ms=(time.perf_counter() - start) * 1000,
                    headers=dict(resp.headers),
                )
        except asyncio.TimeoutError as exc:
            raise TransientFetchError(
                f"timeout after {timeout}s",
                url=url,
                kind=ErrorKind.TIMEOUT,
                latency_ms=(time.perf_counter() - start) * 1000,
            ) from exc
        except ClientError as exc:
            raise TransientFetchError(
                f"{type(exc).__name__}: {exc}",
                url=url,
                kind=ErrorKind.CONNECTION,
                latency_ms=(time.perf_counter() - start) * 1000,
            ) from exc
