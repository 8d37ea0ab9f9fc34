# src/scheduler/rate_limiter.py - v1
"""Per-domain token bucket.

Each domain gets a bucket of ``burst`` tokens refilled at one token per
``interval``. ``acquire`` waits until a token is available, so concurrent
workers never hit one host faster than its configured rate.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Awaitable, Callable

logger = logging.getLogger(__name__)


@dataclass
class _Bucket:
    interval: float
    burst: int
    tokens: float
    updated: float
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)


class DomainRateLimiter:
    def __init__(
        self,
        default_interval_ms: int = 1000,
        burst: int = 1,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._default_interval = default_interval_ms / 1000.0
        self._burst = max(1, burst)
        self._clock = clock
        self._sleep = sleep
        self._buckets: dict[str, _Bucket] = {}
        self._intervals: dict[str, float] = {}

    def configure(self, domain: str, interval_ms: int) -> None:
        """Set the minimum spacing between requests to ``domain``."""
        self._intervals[domain] = interval_ms / 1000.0
        bucket = self._buckets.get(domain)
        if bucket is not None:
            bucket.interval = self._intervals[domain]

    def interval_for(self, domain: str) -> float:
        return self._intervals.get(domain, self._default_interval)

    async def acquire(self, domain: str) -> float:
        """Take one token for ``domain``; returns seconds waited."""
        bucket = self._buckets.get(domain)
        if bucket is None:
            bucket = _Bucket(
                interval=self.interval_for(domain), burst=self._burst,
                tokens=float(self._burst), updated=self._clock(),
            )
            self._buckets[domain] = bucket

        waited = 0.0
        async with bucket.lock:
            while True:
                now = self._clock()
                if bucket.interval > 0:
                    bucket.tokens = min(
                        float(bucket.burst),
                        bucket.tokens + (now - bucket.updated) / bucket.interval,
                    )
                else:
                    bucket.tokens = float(bucket.burst)
                bucket.updated = now
                if bucket.tokens >= 1.0:
                    bucket.tokens -= 1.0
                    break
                delay = (1.0 - bucket.tokens) * bucket.interval
                waited += delay
                await self._sleep(delay)
        if waited:
            logger.debug("Rate limited %s for %.2fs", domain, waited)
        return waited
