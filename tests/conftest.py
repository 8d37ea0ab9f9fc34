# tests/conftest.py - v1
"""Shared test fixtures for unit and integration tests.

Provides settings without .env lookup, a controllable clock, a fake
fetcher serving canned pages, in-memory storage and sample records.
No network access - all I/O is faked.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from crawlintel.config.settings import Settings
from crawlintel.core.models import CorpusRecord
from crawlintel.fetch.base_fetcher import BaseFetcher, FetchError, FetchResult
from crawlintel.logging.context import clear_context
from crawlintel.monitoring.monitor import Monitor
from crawlintel.storage.memory_storage import MemoryStorage


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


class FakeFetcher(BaseFetcher):
    """Serves canned responses keyed by URL; unknown URLs raise 404."""

    def __init__(self, pages: dict[str, tuple[str, str]] | None = None):
        self.pages = dict(pages or {})
        self.calls: list[str] = []
        self.failures: dict[str, FetchError] = {}

    def add(self, url: str, content: str, content_type: str = "text/html") -> None:
        self.pages[url] = (content, content_type)

    async def fetch(self, url: str) -> FetchResult:
        self.calls.append(url)
        if url in self.failures:
            raise self.failures[url]
        if url not in self.pages:
            raise FetchError(url, "HTTP 404", status_code=404)
        content, content_type = self.pages[url]
        return FetchResult(
            url=url,
            content=content,
            content_type=content_type,
            status_code=200,
            elapsed_ms=12.0,
        )


# === FIXTURES: Infrastructure ===


@pytest.fixture(autouse=True)
def _reset_log_context():
    clear_context()
    yield
    clear_context()


@pytest.fixture
def settings() -> Settings:
    """Settings with defaults only; retries and rate limits tightened for speed."""
    return Settings(
        _env_file=None,
        scheduler_default_rate_limit_ms=0,
        orchestrator_default_retry_delay_ms=0,
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def monitor(settings: Settings, clock: FakeClock) -> Monitor:
    return Monitor(settings, memory_probe=lambda: 64 * 1024**2, clock=clock)


@pytest.fixture
def storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture
def fetcher() -> FakeFetcher:
    return FakeFetcher()


@pytest.fixture
def tmp_output_dir(tmp_path: Path) -> Path:
    out = tmp_path / "output"
    out.mkdir()
    return out


# === FIXTURES: Sample data ===


@pytest.fixture
def sample_record() -> CorpusRecord:
    """A council meeting record as the pipeline would persist it."""
    return CorpusRecord(
        title="Planning Committee Meeting - 15 January 2024",
        description="Monthly planning committee reviewing applications",
        data_type="council_meeting",
        category="council/meetings",
        location="Bolton Town Hall",
        source_url="https://www.bolton.gov.uk/council/meetings/planning-committee-2024-01-15",
        event_date=datetime(2024, 1, 15, tzinfo=timezone.utc),
        quality_score=0.8,
    )


MEETING_PAGE = """
<html>
  <head>
    <title>Planning Committee Meeting - Bolton Council</title>
    <meta name="keywords" content="planning, committee, council">
  </head>
  <body>
    <h1>Planning Committee Meeting</h1>
    <div class="meeting">
      <h2>Planning Committee Meeting - 15 January 2024</h2>
      <p class="date">15 January 2024</p>
      <p class="venue">Bolton Town Hall</p>
      <p>Agenda and minutes for the planning committee.</p>
    </div>
    <a href="/council/meetings/planning-committee-agenda">Agenda</a>
    <a href="/council/meetings/planning-committee-minutes">Minutes</a>
    <a href="/council/meetings/cabinet-2024-01-20">Cabinet</a>
    <a href="https://www.facebook.com/boltoncouncil">Facebook</a>
  </body>
</html>
"""


@pytest.fixture
def meeting_page() -> str:
    return MEETING_PAGE
