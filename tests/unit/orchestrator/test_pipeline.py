# tests/unit/orchestrator/test_pipeline.py - v1
"""Tests for orchestrator/pipeline.py."""

from __future__ import annotations

import asyncio
import re
from datetime import date

import pytest

from crawlintel.extraction.extractor import ContentExtractor
from crawlintel.fetch.base_fetcher import FetchError
from crawlintel.fetch.retry import RetryConfig
from crawlintel.orchestrator.pipeline import CrawlPipeline, entity_to_record, url_category
from crawlintel.scheduler.models import CrawlTarget
from crawlintel.scheduler.scheduler import CrawlScheduler
from crawlintel.storage.memory_storage import MemoryStorage
from crawlintel.storage.models import RecordFilter

DOMAIN = "www.bolton.gov.uk"
HOST = f"https://{DOMAIN}"
SEED = HOST + "/council/meetings/planning-committee-2024-01-15"


class SlowWriteStorage(MemoryStorage):
    async def upsert(self, record):
        await asyncio.sleep(0.01)
        return await super().upsert(record)


@pytest.fixture
def scheduler(settings, monitor, clock) -> CrawlScheduler:
    return CrawlScheduler([CrawlTarget(domain=DOMAIN)], settings=settings, monitor=monitor, clock=clock)


@pytest.fixture
def pipeline(scheduler, fetcher, storage, monitor, settings) -> CrawlPipeline:
    return CrawlPipeline(scheduler, fetcher, storage, monitor, settings=settings)


class TestRunUrls:
    @pytest.mark.asyncio
    async def test_meeting_page(self, pipeline, scheduler, fetcher, storage, monitor, meeting_page):
        fetcher.add(SEED, meeting_page)
        stats = await pipeline.run_urls([SEED])

        assert stats.urls_processed == 1
        assert stats.entities_extracted == 1
        assert stats.records_created == 1
        assert stats.links_discovered == 3
        assert stats.links_queued == 3
        assert stats.bytes_processed == len(meeting_page.encode("utf-8"))

        item = scheduler.get_item(SEED)
        assert item.status == "pending"
        assert item.analysis is not None
        assert scheduler.get_item(HOST + "/council/meetings/cabinet-2024-01-20").depth == 1

        session = monitor.get_session(stats.session_id)
        assert session.status == "completed"
        assert session.successes == 1
        assert session.url_stages["persisted"] == 1
        assert scheduler.get_target(DOMAIN).last_successful is not None

    @pytest.mark.asyncio
    async def test_recrawl_skips_duplicate(self, pipeline, fetcher, storage, monitor, meeting_page):
        fetcher.add(SEED, meeting_page)
        await pipeline.run_urls([SEED])
        stats = await pipeline.run_urls([SEED])

        assert stats.records_created == 0
        assert stats.duplicates_skipped == 1
        assert stats.links_queued == 0
        assert len(await storage.query(RecordFilter())) == 1
        assert monitor.get_session(stats.session_id).duplicates_skipped == 1

    @pytest.mark.asyncio
    async def test_fetch_failure_backs_off(self, pipeline, scheduler, clock, monitor):
        stats = await pipeline.run_urls([SEED])
        assert stats.urls_failed == 1
        item = scheduler.get_item(SEED)
        assert item.attempts == 1
        assert item.status == "pending"
        assert item.scheduling.next_scheduled > clock.now
        assert monitor.errors[0].operation == "fetch"
        assert scheduler.get_target(DOMAIN).error_rate == pytest.approx(0.2)

    @pytest.mark.asyncio
    async def test_transient_error_retried(self, scheduler, fetcher, storage, monitor, settings):
        fetcher.failures[SEED] = FetchError(SEED, "HTTP 503", status_code=503)
        retry = {"server_error": RetryConfig(max_retries=1, base_delay_s=0.0, jitter=False)}
        pipeline = CrawlPipeline(
            scheduler, fetcher, storage, monitor, settings=settings, retry_configs=retry,
        )
        stats = await pipeline.run_urls([SEED])
        assert stats.urls_failed == 1
        assert fetcher.calls == [SEED, SEED]

    @pytest.mark.asyncio
    async def test_retries_disabled(self, scheduler, fetcher, storage, monitor, settings):
        fetcher.failures[SEED] = FetchError(SEED, "HTTP 503", status_code=503)
        pipeline = CrawlPipeline(scheduler, fetcher, storage, monitor, settings=settings, retry_configs={})
        await pipeline.run_urls([SEED])
        assert fetcher.calls == [SEED]

    @pytest.mark.asyncio
    async def test_unsupported_type_skipped(self, pipeline, scheduler, fetcher, monitor):
        fetcher.add(SEED, "plain text", "text/plain")
        stats = await pipeline.run_urls([SEED])
        assert stats.urls_skipped == 1
        assert scheduler.get_item(SEED).status == "skipped"
        assert monitor.errors[0].operation == "extract"

    @pytest.mark.asyncio
    async def test_parse_error_fails_item(self, pipeline, scheduler, fetcher):
        url = HOST + "/api/meetings.json"
        fetcher.add(url, "{broken", "application/json")
        stats = await pipeline.run_urls([url])
        assert stats.urls_failed == 1
        assert scheduler.get_item(url).attempts == 1

    @pytest.mark.asyncio
    async def test_unknown_domain_skipped(self, pipeline, fetcher):
        stats = await pipeline.run_urls(["https://elsewhere.org/page"])
        assert stats.urls_skipped == 1
        assert fetcher.calls == []

    @pytest.mark.asyncio
    async def test_busy_item_skipped(self, pipeline, scheduler, fetcher):
        await scheduler.add_url_to_queue(SEED)
        await scheduler.claim(SEED)
        stats = await pipeline.run_urls([SEED])
        assert stats.urls_skipped == 1
        assert fetcher.calls == []


class TestRunBatch:
    @pytest.mark.asyncio
    async def test_follows_discovered_links(self, pipeline, scheduler, fetcher, meeting_page):
        fetcher.add(SEED, meeting_page)
        await scheduler.add_url_to_queue(SEED)

        stats = await pipeline.run_batch(max_urls=10, concurrency=1)
        assert stats.urls_processed == 1
        # discovered pages are not served by the fake fetcher
        assert stats.urls_failed == 3
        assert fetcher.calls[0] == SEED
        assert len(fetcher.calls) == 4

    @pytest.mark.asyncio
    async def test_max_urls(self, pipeline, scheduler, fetcher, meeting_page):
        fetcher.add(SEED, meeting_page)
        await scheduler.add_url_to_queue(SEED)
        stats = await pipeline.run_batch(max_urls=1, concurrency=2)
        assert stats.urls_processed == 1
        assert fetcher.calls == [SEED]

    @pytest.mark.asyncio
    async def test_min_priority(self, pipeline, scheduler, fetcher):
        await scheduler.add_url_to_queue(HOST + "/parks")
        stats = await pipeline.run_batch(max_urls=5, min_priority=19)
        assert stats.urls_processed == stats.urls_failed == 0
        assert fetcher.calls == []

    @pytest.mark.asyncio
    async def test_empty_queue(self, pipeline, monitor):
        stats = await pipeline.run_batch()
        assert stats.urls_processed == 0
        assert monitor.get_session(stats.session_id).status == "completed"

    @pytest.mark.asyncio
    async def test_concurrent_workers_store_one_copy(self, scheduler, fetcher, monitor, settings, meeting_page):
        storage = SlowWriteStorage()
        pipeline = CrawlPipeline(scheduler, fetcher, storage, monitor, settings=settings)
        page = re.sub(r"\s*<a [^>]*>[^<]*</a>", "", meeting_page)
        mirror = HOST + "/council/meetings/planning-committee-15-january-2024"
        for url in (SEED, mirror):
            fetcher.add(url, page)
            await scheduler.add_url_to_queue(url)

        stats = await pipeline.run_batch(max_urls=2, concurrency=2)

        assert stats.urls_processed == 2
        assert stats.records_created == 1
        assert stats.duplicates_skipped == 1
        assert len(await storage.query(RecordFilter())) == 1


class TestEntityToRecord:
    def test_meeting_entity(self, meeting_page):
        extraction = ContentExtractor().extract_data(meeting_page, "text/html", SEED)
        record = entity_to_record(extraction.entities[0], extraction)
        assert record.data_type == "council_meeting"
        assert record.source_url == SEED
        assert record.category == "council/meetings"
        assert record.event_date.date() == date(2024, 1, 15)
        assert record.metadata["checksum"] == extraction.metadata.checksum
        assert record.metadata["entity_id"] == extraction.entities[0].id
        assert 0.0 <= record.quality_score <= 1.0
        assert len(record.tags) <= 8

    @pytest.mark.parametrize(
        "url,expected",
        [
            (HOST + "/council/meetings/a", "council/meetings"),
            (HOST + "/a", ""),
            (HOST + "/", ""),
        ],
    )
    def test_url_category(self, url, expected):
        assert url_category(url) == expected
