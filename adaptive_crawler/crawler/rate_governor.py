# adaptive_crawler/crawler/rate_governor.py
"""
Per-domain adaptive pacing.

Each domain gets a :class:`DomainRateState` on its first request. Responses
feed :meth:`RateGovernor.observe`, which widens the delay on throttling and
server errors and narrows it again on fast successes, always inside
``[min_delay_ms, max_delay_ms]``. Workers call :meth:`RateGovernor.acquire`
before every request; callers for the same domain are serialised by that
domain's lock, callers for different domains never wait on each other.
A robots.txt ``Crawl-delay`` raises the domain's delay floor, never above the
maximum in adaptive mode.
"""
from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Deque, Dict, Optional

from adaptive_crawler.crawler.models import DomainMetrics

__all__ = ["DomainRateState", "RateGovernor"]

logger = logging.getLogger("AdaptiveCrawler")

LATENCY_WINDOW = 10
BACKOFF_FACTOR = 1.5
RATE_LIMITED_FACTOR = 2.0
CLIENT_ERROR_FACTOR = 1.1
SUCCESS_FACTOR = 0.9
FAST_LATENCY_RATIO = 1.0
SLOW_RESPONSE_MS = 2000.0
DEGRADED_AFTER = 5
WINDOW_SECONDS = 60.0


@dataclass(slots=True)
class DomainRateState:
    domain: str
    current_delay_ms: float
    consecutive_errors: int = 0
    recent_latencies_ms: Deque[float] = field(default_factory=lambda: deque(maxlen=LATENCY_WINDOW))
    requests_this_minute: int = 0
    window_started: float = 0.0
    last_request_at: Optional[float] = None
    degraded: bool = False
    crawl_delay_ms: float = 0.0
    requests: int = 0
    errors: int = 0
    total_latency_ms: float = 0.0
    lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False, compare=False)

    @property
    def average_latency_ms(self) -> float:
        if not self.recent_latencies_ms:
            return 0.0
        return sum(self.recent_latencies_ms) / len(self.recent_latencies_ms)


class RateGovernor:
    """Adaptive delay controller keyed by domain."""

    def __init__(
        self,
        *,
        min_delay_ms: float,
        max_delay_ms: float,
        fixed_delay_ms: float,
        adaptive: bool = True,
        max_requests_per_minute: int = 0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if adaptive and min_delay_ms >= max_delay_ms:
            raise ValueError("min_delay_ms must be lower than max_delay_ms")
        self.min_delay_ms = float(min_delay_ms)
        self.max_delay_ms = float(max_delay_ms)
        self.fixed_delay_ms = float(fixed_delay_ms)
        self.adaptive = adaptive
        self.max_requests_per_minute = max_requests_per_minute
        self._clock = clock
        self._sleep = sleep
        self._domains: Dict[str, DomainRateState] = {}

    @classmethod
    def from_config(cls, config, **kwargs) -> RateGovernor:
        return cls(
            min_delay_ms=config.min_delay_between_requests,
            max_delay_ms=config.max_delay_between_requests,
            fixed_delay_ms=config.delay_between_requests,
            adaptive=config.enable_adaptive_rate_limiting,
            max_requests_per_minute=config.max_requests_per_minute,
            **kwargs,
        )

    def state(self, domain: str) -> DomainRateState:
        st = self._domains.get(domain)
        if st is None:
            initial = self.min_delay_ms if self.adaptive else self.fixed_delay_ms
            st = DomainRateState(domain=domain, current_delay_ms=initial, window_started=self._clock())
            self._domains[domain] = st
            logger.debug("Created rate profile for %s (delay=%.0fms)", domain, initial)
        return st

    def delay_before_next(self, domain: str) -> float:
        """Delay (ms) to keep between two requests to *domain*."""
        st = self.state(domain)
        if not self.adaptive:
            return max(self.fixed_delay_ms, st.crawl_delay_ms)
        if st.degraded:
            return self.max_delay_ms
        return max(st.current_delay_ms, st.crawl_delay_ms)

    def apply_crawl_delay(self, domain: str, seconds: float) -> None:
        """Use a robots.txt Crawl-delay as the lower bound for *domain*."""
        floor_ms = max(0.0, seconds * 1000)
        if self.adaptive:
            floor_ms = min(floor_ms, self.max_delay_ms)
        st = self.state(domain)
        if floor_ms != st.crawl_delay_ms:
            logger.info("Crawl-delay for %s: %.0fms", domain, floor_ms)
            st.crawl_delay_ms = floor_ms

    async def acquire(self, domain: str) -> float:
        """Suspend until a request to *domain* is allowed; return ms waited."""
        st = self.state(domain)
        waited = 0.0
        async with st.lock:
            now = self._clock()
            if self.max_requests_per_minute:
                if now - st.window_started >= WINDOW_SECONDS:
                    st.window_started, st.requests_this_minute = now, 0
                if st.requests_this_minute >= self.max_requests_per_minute:
                    pause = WINDOW_SECONDS - (now - st.window_started)
                    logger.info("Per-minute cap reached for %s, pausing %.1fs", domain, pause)
                    await self._sleep(pause)
                    waited += pause * 1000
                    now = self._clock()
                    st.window_started, st.requests_this_minute = now, 0

            if st.last_request_at is not None:
                remaining = self.delay_before_next(domain) / 1000 - (now - st.last_request_at)
                if remaining > 0:
                    logger.debug("Rate limiting: delaying request to %s for %.0fms", domain, remaining * 1000)
                    await self._sleep(remaining)
                    waited += remaining * 1000
                    now = self._clock()

            st.last_request_at = now
            st.requests_this_minute += 1
        return waited

    def observe(self, domain: str, latency_ms: float, status_code: Optional[int]) -> None:
        """Feed one response (``status_code`` None for timeouts/connection errors)."""
        st = self.state(domain)
        st.requests += 1
        st.total_latency_ms += latency_ms
        if status_code is None or status_code >= 400:
            st.errors += 1
        if not self.adaptive:
            return
        before = st.current_delay_ms

        if status_code is None or status_code == 429 or status_code >= 500:
            st.current_delay_ms *= RATE_LIMITED_FACTOR if status_code == 429 else BACKOFF_FACTOR
            st.consecutive_errors += 1
            if st.consecutive_errors >= DEGRADED_AFTER and not st.degraded:
                st.degraded = True
                st.current_delay_ms = self.max_delay_ms
                logger.warning(
                    "Domain %s degraded after %d consecutive errors", domain, st.consecutive_errors
                )
        elif status_code >= 400:
            st.current_delay_ms *= CLIENT_ERROR_FACTOR
        else:
            st.consecutive_errors = 0
            if st.degraded:
                st.degraded = False
                logger.info("Domain %s recovered", domain)
            st.recent_latencies_ms.append(latency_ms)
            average = st.average_latency_ms
            if latency_ms <= FAST_LATENCY_RATIO * average:
                st.current_delay_ms *= SUCCESS_FACTOR
            if average > SLOW_RESPONSE_MS:
                st.current_delay_ms = max(st.current_delay_ms, average * 0.5)

        st.current_delay_ms = min(max(st.current_delay_ms, self.min_delay_ms), self.max_delay_ms)
        if st.current_delay_ms != before:
            logger.debug(
                "Delay for %s: %.0fms -> %.0fms (status=%s, errors=%d)",
                domain, before, st.current_delay_ms, status_code, st.consecutive_errors,
            )

    def is_degraded(self, domain: str) -> bool:
        return self.state(domain).degraded

    def snapshot(self) -> Dict[str, float]:
        """Current delay per domain, for reporting."""
        return {d: self.delay_before_next(d) for d in self._domains}

    def metrics(self) -> Dict[str, DomainMetrics]:
        """Request, error and latency figures per domain."""
        return {
            d: DomainMetrics(
                domain=d,
                requests=st.requests,
                errors=st.errors,
                average_latency_ms=st.total_latency_ms / st.requests if st.requests else 0.0,
                current_delay_ms=self.delay_before_next(d),
                degraded=st.degraded,
            )
            for d, st in self._domains.items()
        }
