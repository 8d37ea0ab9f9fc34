# tests/unit/fetch/test_httpx_fetcher.py - v1
"""Tests for fetch/httpx_fetcher.py using httpx.MockTransport."""

from __future__ import annotations

import httpx
import pytest

from crawlintel.fetch.base_fetcher import FetchError
from crawlintel.fetch.httpx_fetcher import HttpxFetcher


def _make_fetcher(handler) -> HttpxFetcher:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler), follow_redirects=True)
    return HttpxFetcher(client=client)


class TestHttpxFetcher:
    @pytest.mark.asyncio
    async def test_success(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                200, text="<html>ok</html>",
                headers={"content-type": "text/html; charset=utf-8"},
            )

        fetcher = _make_fetcher(handler)
        result = await fetcher.fetch("https://www.bolton.gov.uk/")
        await fetcher.close()

        assert result.content == "<html>ok</html>"
        assert result.mime_type == "text/html"
        assert result.status_code == 200
        assert result.elapsed_ms >= 0

    @pytest.mark.asyncio
    async def test_http_error_status(self):
        fetcher = _make_fetcher(lambda request: httpx.Response(503))
        with pytest.raises(FetchError) as exc_info:
            await fetcher.fetch("https://www.bolton.gov.uk/down")
        await fetcher.close()
        assert exc_info.value.status_code == 503
        assert exc_info.value.url == "https://www.bolton.gov.uk/down"

    @pytest.mark.asyncio
    async def test_transport_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        fetcher = _make_fetcher(handler)
        with pytest.raises(FetchError, match="transport error"):
            await fetcher.fetch("https://www.bolton.gov.uk/")
        await fetcher.close()

    @pytest.mark.asyncio
    async def test_timeout(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("slow", request=request)

        fetcher = _make_fetcher(handler)
        with pytest.raises(FetchError, match="timed out"):
            await fetcher.fetch("https://www.bolton.gov.uk/")
        await fetcher.close()

    @pytest.mark.asyncio
    async def test_redirect_followed(self):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/old":
                return httpx.Response(301, headers={"location": "https://www.bolton.gov.uk/new"})
            return httpx.Response(200, text="moved")

        fetcher = _make_fetcher(handler)
        result = await fetcher.fetch("https://www.bolton.gov.uk/old")
        await fetcher.close()
        assert result.url == "https://www.bolton.gov.uk/new"
        assert result.content == "moved"

    @pytest.mark.asyncio
    async def test_retry_after_header(self):
        fetcher = _make_fetcher(lambda request: httpx.Response(429, headers={"retry-after": "12"}))
        with pytest.raises(FetchError) as exc_info:
            await fetcher.fetch("https://www.bolton.gov.uk/busy")
        await fetcher.close()
        assert exc_info.value.status_code == 429
        assert exc_info.value.retry_after_s == 12.0

    @pytest.mark.asyncio
    async def test_retry_after_date_ignored(self):
        fetcher = _make_fetcher(
            lambda request: httpx.Response(
                503, headers={"retry-after": "Wed, 21 Oct 2026 07:28:00 GMT"}
            )
        )
        with pytest.raises(FetchError) as exc_info:
            await fetcher.fetch("https://www.bolton.gov.uk/down")
        await fetcher.close()
        assert exc_info.value.retry_after_s is None
