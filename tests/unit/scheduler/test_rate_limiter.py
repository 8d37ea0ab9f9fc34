# tests/unit/scheduler/test_rate_limiter.py - v1
"""Tests for scheduler/rate_limiter.py."""

from __future__ import annotations

import pytest

from crawlintel.scheduler.rate_limiter import DomainRateLimiter


class FakeTime:
    """Monotonic clock advanced only by the limiter's own sleeps."""

    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    def clock(self) -> float:
        return self.now

    async def sleep(self, delay: float) -> None:
        self.sleeps.append(delay)
        self.now += delay


def _make_limiter(interval_ms: int = 1000, burst: int = 1) -> tuple[DomainRateLimiter, FakeTime]:
    fake = FakeTime()
    return DomainRateLimiter(interval_ms, burst, clock=fake.clock, sleep=fake.sleep), fake


class TestDomainRateLimiter:
    @pytest.mark.asyncio
    async def test_first_request_immediate(self):
        limiter, fake = _make_limiter()
        assert await limiter.acquire("x.gov.uk") == 0.0
        assert fake.sleeps == []

    @pytest.mark.asyncio
    async def test_second_request_waits_interval(self):
        limiter, _ = _make_limiter()
        await limiter.acquire("x.gov.uk")
        assert await limiter.acquire("x.gov.uk") == pytest.approx(1.0)

    @pytest.mark.asyncio
    async def test_domains_independent(self):
        limiter, _ = _make_limiter()
        await limiter.acquire("a.gov.uk")
        assert await limiter.acquire("b.gov.uk") == 0.0

    @pytest.mark.asyncio
    async def test_elapsed_time_refills(self):
        limiter, fake = _make_limiter()
        await limiter.acquire("x.gov.uk")
        fake.now += 0.6
        assert await limiter.acquire("x.gov.uk") == pytest.approx(0.4)

    @pytest.mark.asyncio
    async def test_configured_interval(self):
        limiter, _ = _make_limiter()
        limiter.configure("slow.gov.uk", 2000)
        assert limiter.interval_for("slow.gov.uk") == 2.0
        await limiter.acquire("slow.gov.uk")
        assert await limiter.acquire("slow.gov.uk") == pytest.approx(2.0)

    @pytest.mark.asyncio
    async def test_configure_existing_bucket(self):
        limiter, _ = _make_limiter()
        await limiter.acquire("x.gov.uk")
        limiter.configure("x.gov.uk", 500)
        assert await limiter.acquire("x.gov.uk") == pytest.approx(0.5)

    @pytest.mark.asyncio
    async def test_zero_interval_never_waits(self):
        limiter, fake = _make_limiter(interval_ms=0)
        for _ in range(5):
            await limiter.acquire("x.gov.uk")
        assert fake.sleeps == []

    @pytest.mark.asyncio
    async def test_burst(self):
        limiter, _ = _make_limiter(burst=2)
        assert await limiter.acquire("x.gov.uk") == 0.0
        assert await limiter.acquire("x.gov.uk") == 0.0
        assert await limiter.acquire("x.gov.uk") == pytest.approx(1.0)
