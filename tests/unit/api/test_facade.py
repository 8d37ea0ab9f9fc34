# tests/unit/api/test_facade.py - v1
"""Tests for api/facade.py."""

from __future__ import annotations

import json

import pytest

from crawlintel.api.facade import CrawlEngine, build_engine
from crawlintel.config.settings import ConfigurationError, Settings
from crawlintel.fetch.httpx_fetcher import HttpxFetcher
from crawlintel.orchestrator.models import TaskType
from crawlintel.scheduler.models import CrawlTarget
from crawlintel.storage.memory_storage import MemoryStorage
from crawlintel.storage.models import RecordFilter

DOMAIN = "www.bolton.gov.uk"
SEED = f"https://{DOMAIN}/council/meetings/planning-committee-2024-01-15"


@pytest.fixture
def engine(settings, fetcher, storage) -> CrawlEngine:
    return build_engine(settings, fetcher=fetcher, storage=storage, targets=[CrawlTarget(domain=DOMAIN)])


class TestBuildEngine:
    def test_wiring(self, engine, settings, fetcher, storage):
        assert engine.settings is settings
        assert engine.fetcher is fetcher
        assert engine.storage is storage
        assert engine.dedup is engine.pipeline.dedup
        assert engine.pipeline.scheduler is engine.scheduler
        assert [t.domain for t in engine.scheduler.targets] == [DOMAIN]

    def test_default_tasks_registered(self, engine):
        assert sorted(t.type.value for t in engine.orchestrator.tasks) == sorted(
            t.value for t in (
                TaskType.URL_DISCOVERY, TaskType.CRAWL_DISCOVERY, TaskType.DATA_QUALITY_CHECK,
                TaskType.DEDUPLICATION, TaskType.HEALTH_CHECK, TaskType.ANALYTICS_GENERATION,
            )
        )

    def test_without_default_tasks(self, settings, fetcher):
        engine = build_engine(settings, fetcher=fetcher, register_default_tasks=False)
        assert engine.orchestrator.tasks == []

    def test_defaults(self, settings, fetcher):
        engine = build_engine(settings, fetcher=fetcher)
        assert isinstance(engine.storage, MemoryStorage)
        assert DOMAIN in [t.domain for t in engine.scheduler.targets]

    def test_targets_file(self, tmp_path, fetcher):
        path = tmp_path / "targets.json"
        path.write_text(json.dumps([{"domain": "example.gov.uk"}]))
        settings = Settings(_env_file=None, crawl_targets_file=path)
        engine = build_engine(settings, fetcher=fetcher)
        assert [t.domain for t in engine.scheduler.targets] == ["example.gov.uk"]

    def test_bad_targets_file(self, tmp_path, fetcher):
        settings = Settings(_env_file=None, crawl_targets_file=tmp_path / "missing.json")
        with pytest.raises(ConfigurationError):
            build_engine(settings, fetcher=fetcher)

    @pytest.mark.asyncio
    async def test_httpx_fetcher_by_default(self, settings):
        engine = build_engine(settings, register_default_tasks=False)
        assert isinstance(engine.fetcher, HttpxFetcher)
        await engine.stop()


class TestEngineLifecycle:
    @pytest.mark.asyncio
    async def test_context_manager_stops(self, engine):
        async with engine:
            await engine.start()
            assert engine.orchestrator.is_running
        assert not engine.orchestrator.is_running

    @pytest.mark.asyncio
    async def test_crawl_through_engine(self, engine, fetcher, meeting_page):
        fetcher.add(SEED, meeting_page)
        async with engine:
            stats = await engine.pipeline.run_urls([SEED])
        assert stats.records_created == 1
        records = await engine.storage.query(RecordFilter())
        assert records[0].source_url == SEED
        assert engine.monitor.get_session(stats.session_id).status == "completed"
