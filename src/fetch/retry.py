# src/fetch/retry.py - v1
"""Transport-level retry for transient fetch failures.

Task-level retries live in the orchestrator; this only absorbs short
blips inside one fetch: HTTP 429, 5xx responses and timeouts. Client
errors (404, 410, ...) and anything that is not a ``FetchError`` surface
immediately.
"""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

from crawlintel.fetch.base_fetcher import FetchError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# A server may ask for a longer pause than this; the scheduler's backoff
# handles anything beyond it.
MAX_RETRY_AFTER_S = 60.0


@dataclass(frozen=True)
class RetryConfig:
    """Backoff for one failure kind: ``base_delay_s * backoff_factor**n``."""

    max_retries: int
    base_delay_s: float
    backoff_factor: float = 2.0
    jitter: bool = True

    def delay(self, retry_index: int) -> float:
        delay = self.base_delay_s * (self.backoff_factor ** retry_index)
        if self.jitter:
            delay *= random.uniform(0.5, 1.5)  # noqa: S311
        return delay


DEFAULT_RETRY_CONFIGS: dict[str, RetryConfig] = {
    "rate_limit": RetryConfig(max_retries=2, base_delay_s=2.0),
    "timeout": RetryConfig(max_retries=1, base_delay_s=1.0, backoff_factor=1.0),
    "server_error": RetryConfig(max_retries=2, base_delay_s=1.0),
}


def classify_error(error: FetchError) -> str:
    """Failure kind of a fetch error, keyed like ``DEFAULT_RETRY_CONFIGS``.

    Status codes decide when present; transport errors without a status
    count as ``timeout`` only when the message says so.
    """
    status = error.status_code
    if status == 429:
        return "rate_limit"
    if status is not None:
        return "server_error" if status >= 500 else "client_error"
    if "timed out" in str(error).lower():
        return "timeout"
    return "unknown"


async def with_retry(
    fetch: Callable[[str], Awaitable[T]],
    url: str,
    retry_configs: dict[str, RetryConfig] | None = None,
) -> T:
    """Await ``fetch(url)``, retrying transient failures.

    A server-supplied ``Retry-After`` lengthens the computed delay, capped
    at ``MAX_RETRY_AFTER_S``. When the budget for a failure kind is spent
    the last ``FetchError`` is re-raised unchanged.
    """
    configs = DEFAULT_RETRY_CONFIGS if retry_configs is None else retry_configs
    retries = 0
    while True:
        try:
            return await fetch(url)
        except FetchError as exc:
            kind = classify_error(exc)
            config = configs.get(kind)
            if config is None or retries >= config.max_retries:
                raise
            delay = config.delay(retries)
            if exc.retry_after_s is not None:
                delay = max(delay, min(exc.retry_after_s, MAX_RETRY_AFTER_S))
            retries += 1
            logger.warning(
                "Fetch %s failed (%s), retry %d/%d in %.1fs",
                url, kind, retries, config.max_retries, delay,
            )
            await asyncio.sleep(delay)
