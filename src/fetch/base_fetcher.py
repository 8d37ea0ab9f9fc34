# src/fetch/base_fetcher.py - v1
"""Fetcher contract consumed by the crawl pipeline.

Transport is an external collaborator; the engine only depends on
``fetch(url) -> FetchResult`` and on failures surfacing as ``FetchError``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from pydantic import BaseModel, Field


class FetchError(Exception):
    """Retryable fetch failure (network error or non-success status)."""

    def __init__(
        self,
        url: str,
        message: str,
        status_code: int | None = None,
        retry_after_s: float | None = None,
    ):
        self.url = url
        self.status_code = status_code
        self.retry_after_s = retry_after_s
        super().__init__(f"{url}: {message}")


class FetchResult(BaseModel):
    """Normalized response handed to analysis and extraction."""

    url: str
    content: str
    content_type: str = "text/html"
    status_code: int = 200
    headers: dict[str, str] = Field(default_factory=dict)
    elapsed_ms: float = 0.0

    @property
    def mime_type(self) -> str:
        """Content type without parameters, lowercased."""
        return self.content_type.split(";", 1)[0].strip().lower()


class BaseFetcher(ABC):
    """Asynchronous fetch capability.

    Implementations must be cancellation-safe: a cancelled ``fetch`` call
    aborts the underlying network I/O.
    """

    @abstractmethod
    async def fetch(self, url: str) -> FetchResult:
        """Fetch a URL.

        Raises:
            FetchError: On transport failure or a non-2xx status.
        """

    async def close(self) -> None:
        """Release transport resources."""
