# File: tests/test_rate_governor.py
"""Per-domain adaptive delay: backoff, recovery, bounds and pacing."""
import asyncio

import pytest

from adaptive_crawler.crawler.rate_governor import RateGovernor

DOMAIN = "example.com"


class FakeTime:
    """Manual clock; ``sleep`` advances it instead of waiting."""

    def __init__(self) -> None:
        self.now = 1000.0
        self.sleeps: list[float] = []

    def clock(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture()
def fake_time() -> FakeTime:
    return FakeTime()


def make_governor(fake_time: FakeTime, **kwargs) -> RateGovernor:
    params = dict(min_delay_ms=500, max_delay_ms=5000, fixed_delay_ms=1000)
    params.update(kwargs)
    return RateGovernor(clock=fake_time.clock, sleep=fake_time.sleep, **params)


def test_five_server_errors_cap_delay_and_degrade(fake_time):
    gov = make_governor(fake_time)
    for _ in range(5):
        gov.observe(DOMAIN, 100.0, 503)
        assert gov.state(DOMAIN).current_delay_ms <= 5000
    assert gov.state(DOMAIN).current_delay_ms == 5000
    assert gov.is_degraded(DOMAIN)
    assert gov.delay_before_next(DOMAIN) == 5000


def test_backoff_is_monotonic(fake_time):
    gov = make_governor(fake_time)
    delays = []
    for _ in range(4):
        gov.observe(DOMAIN, 100.0, 500)
        delays.append(gov.state(DOMAIN).current_delay_ms)
    assert delays == sorted(delays)
    assert delays[0] == pytest.approx(750)
    assert not gov.is_degraded(DOMAIN)


def test_throttled_backs_off_harder_than_server_error(fake_time):
    gov = make_governor(fake_time)
    gov.observe("a.com", 100.0, 429)
    gov.observe("b.com", 100.0, 500)
    assert gov.state("a.com").current_delay_ms > gov.state("b.com").current_delay_ms


def test_timeout_counts_as_error(fake_time):
    gov = make_governor(fake_time)
    gov.observe(DOMAIN, 0.0, None)
    assert gov.state(DOMAIN).consecutive_errors == 1
    assert gov.state(DOMAIN).current_delay_ms == pytest.approx(750)


def test_fast_successes_never_go_below_minimum(fake_time):
    gov = make_governor(fake_time)
    for _ in range(3):
        gov.observe(DOMAIN, 100.0, 500)
    raised = gov.state(DOMAIN).current_delay_ms
    gov.observe(DOMAIN, 50.0, 200)
    assert gov.state(DOMAIN).current_delay_ms < raised
    for _ in range(100):
        gov.observe(DOMAIN, 50.0, 200)
    assert gov.state(DOMAIN).current_delay_ms == 500


def test_success_clears_degraded(fake_time):
    gov = make_governor(fake_time)
    for _ in range(5):
        gov.observe(DOMAIN, 100.0, 502)
    assert gov.is_degraded(DOMAIN)
    gov.observe(DOMAIN, 100.0, 200)
    assert not gov.is_degraded(DOMAIN)
    assert gov.state(DOMAIN).consecutive_errors == 0
    assert gov.state(DOMAIN).current_delay_ms <= 5000


def test_slow_responses_raise_floor(fake_time):
    gov = make_governor(fake_time)
    for _ in range(3):
        gov.observe(DOMAIN, 4000.0, 200)
    assert gov.state(DOMAIN).current_delay_ms >= 2000


def test_client_error_nudges_up(fake_time):
    gov = make_governor(fake_time, min_delay_ms=1000)
    gov.observe(DOMAIN, 100.0, 404)
    assert gov.state(DOMAIN).current_delay_ms == pytest.approx(1100)
    assert gov.state(DOMAIN).consecutive_errors == 0


def test_fixed_mode_ignores_observations(fake_time):
    gov = make_governor(fake_time, adaptive=False)
    for _ in range(10):
        gov.observe(DOMAIN, 100.0, 503)
    assert gov.delay_before_next(DOMAIN) == 1000
    assert not gov.is_degraded(DOMAIN)


def test_domains_do_not_share_state(fake_time):
    gov = make_governor(fake_time)
    gov.observe("slow.example", 100.0, 503)
    assert gov.delay_before_next("other.example") == 500
    assert set(gov.snapshot()) == {"slow.example", "other.example"}


def test_min_not_below_max_rejected(fake_time):
    with pytest.raises(ValueError):
        make_governor(fake_time, min_delay_ms=5000, max_delay_ms=500)


def test_crawl_delay_is_a_floor_capped_at_maximum(fake_time):
    gov = make_governor(fake_time)
    gov.apply_crawl_delay(DOMAIN, 2)
    for _ in range(5):
        gov.observe(DOMAIN, 100.0, 200)
    assert gov.delay_before_next(DOMAIN) == 2000

    gov.apply_crawl_delay(DOMAIN, 30)
    assert gov.delay_before_next(DOMAIN) == 5000


def test_crawl_delay_applies_in_fixed_mode(fake_time):
    gov = make_governor(fake_time, adaptive=False)
    gov.apply_crawl_delay(DOMAIN, 3)
    assert gov.delay_before_next(DOMAIN) == 3000


def test_metrics_count_requests_errors_and_latency(fake_time):
    gov = make_governor(fake_time, adaptive=False)
    gov.observe(DOMAIN, 100.0, 200)
    gov.observe(DOMAIN, 300.0, 503)
    gov.observe(DOMAIN, 200.0, None)
    gov.observe(DOMAIN, 400.0, 404)

    metrics = gov.metrics()[DOMAIN]
    assert metrics.requests == 4
    assert metrics.errors == 3
    assert metrics.success_rate == pytest.approx(0.25)
    assert metrics.average_latency_ms == pytest.approx(250.0)
    assert metrics.current_delay_ms == 1000


@pytest.mark.asyncio()
async def test_acquire_spaces_requests(fake_time):
    gov = make_governor(fake_time)
    assert await gov.acquire(DOMAIN) == 0
    waited = await gov.acquire(DOMAIN)
    assert waited == pytest.approx(500)
    assert fake_time.sleeps == [pytest.approx(0.5)]


@pytest.mark.asyncio()
async def test_acquire_does_not_wait_when_delay_already_elapsed(fake_time):
    gov = make_governor(fake_time)
    await gov.acquire(DOMAIN)
    fake_time.now += 10
    assert await gov.acquire(DOMAIN) == 0


@pytest.mark.asyncio()
async def test_per_minute_cap(fake_time):
    gov = make_governor(fake_time, adaptive=False, fixed_delay_ms=0, max_requests_per_minute=3)
    for _ in range(3):
        assert await gov.acquire(DOMAIN) == 0
    waited = await gov.acquire(DOMAIN)
    assert waited == pytest.approx(60_000)
    assert gov.state(DOMAIN).requests_this_minute == 1


@pytest.mark.asyncio()
async def test_same_domain_requests_are_serialised():
    gov = RateGovernor(min_delay_ms=50, max_delay_ms=500, fixed_delay_ms=50)
    loop = asyncio.get_running_loop()
    stamps: list[float] = []

    async def hit():
        await gov.acquire(DOMAIN)
        stamps.append(loop.time())

    await asyncio.gather(*(hit() for _ in range(3)))
    stamps.sort()
    gaps = [b - a for a, b in zip(stamps, stamps[1:])]
    assert all(gap >= 0.045 for gap in gaps)
