# src/fetch/httpx_fetcher.py - v1
"""Default Fetcher backed by an httpx.AsyncClient."""

from __future__ import annotations

import logging
import time

import httpx

from crawlintel.fetch.base_fetcher import BaseFetcher, FetchError, FetchResult

logger = logging.getLogger(__name__)


class HttpxFetcher(BaseFetcher):
    """Async HTTP fetcher with redirects and timeouts.

    One request per call; transient retries are the caller's concern
    (see ``crawlintel.fetch.retry.with_retry``).
    """

    def __init__(
        self,
        timeout: float = 30.0,
        user_agent: str = "crawlintel/0.1",
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._client = client or httpx.AsyncClient(
            timeout=timeout,
            headers={"User-Agent": user_agent},
            follow_redirects=True,
        )

    async def fetch(self, url: str) -> FetchResult:
        start = time.perf_counter()
        try:
            resp = await self._client.get(url)
        except httpx.TimeoutException as exc:
            raise FetchError(url, f"timed out: {exc}") from exc
        except httpx.HTTPError as exc:
            raise FetchError(url, f"transport error: {exc}") from exc

        if resp.status_code >= 400:
            raise FetchError(
                url, f"HTTP {resp.status_code}",
                status_code=resp.status_code,
                retry_after_s=_retry_after(resp.headers.get("retry-after")),
            )

        elapsed_ms = (time.perf_counter() - start) * 1000.0
        logger.debug("Fetched %s (%d, %.0fms)", url, resp.status_code, elapsed_ms)
        return FetchResult(
            url=str(resp.url),
            content=resp.text,
            content_type=resp.headers.get("content-type", "text/html"),
            status_code=resp.status_code,
            headers=dict(resp.headers),
            elapsed_ms=elapsed_ms,
        )

    async def close(self) -> None:
        await self._client.aclose()


def _retry_after(value: str | None) -> float | None:
    """Seconds from a delta-seconds ``Retry-After`` header; HTTP dates are ignored."""
    if value is None:
        return None
    try:
        return max(0.0, float(value.strip()))
    except ValueError:
        return None
