# src/orchestrator/pipeline.py - v1
"""Crawl pipeline: fetch -> analyze -> extract -> dedupe -> persist.

Pulls claimed items from the CrawlScheduler with a bounded pool of
workers, respects per-domain rate limits, feeds discovered links back into
the queue, and checks every extracted entity against the corpus before it
is stored. Body of the ``crawl_discovery`` task.
"""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime
from typing import Awaitable, Callable
from urllib.parse import urlparse

from pydantic import BaseModel

from crawlintel.config.settings import Settings
from crawlintel.core.models import CorpusRecord
from crawlintel.core.text import parse_date
from crawlintel.dedup.engine import DeduplicationEngine
from crawlintel.dedup.models import MergeStrategy
from crawlintel.discovery.discovery import UrlDiscovery
from crawlintel.extraction.extractor import ContentExtractor
from crawlintel.extraction.models import ExtractedEntity, ExtractionResult
from crawlintel.extraction.processors import ContentParseError, UnsupportedContentTypeError
from crawlintel.fetch.base_fetcher import BaseFetcher, FetchError, FetchResult
from crawlintel.fetch.retry import RetryConfig, with_retry
from crawlintel.logging.context import set_session_context, set_url_context
from crawlintel.monitoring.instrument import with_error_handling
from crawlintel.monitoring.monitor import Monitor
from crawlintel.scheduler.models import QueueItem
from crawlintel.scheduler.scheduler import CrawlScheduler
from crawlintel.storage.base_storage import BaseStorage

logger = logging.getLogger(__name__)

MARKUP_TYPES = frozenset({"text/html", "application/xhtml+xml"})
DESCRIPTION_FIELDS = ("description", "summary", "proposal", "agenda_items")
LOCATION_FIELDS = ("application_address", "address", "venue", "location", "ward")
MAX_RECORD_TAGS = 8


class PipelineStats(BaseModel):
    """Counters for one crawl session."""

    session_id: str
    urls_processed: int = 0
    urls_failed: int = 0
    urls_skipped: int = 0
    links_discovered: int = 0
    links_queued: int = 0
    entities_extracted: int = 0
    records_created: int = 0
    records_merged: int = 0
    records_for_review: int = 0
    duplicates_skipped: int = 0
    bytes_processed: int = 0


class CrawlPipeline:
    def __init__(
        self,
        scheduler: CrawlScheduler,
        fetcher: BaseFetcher,
        storage: BaseStorage,
        monitor: Monitor | None = None,
        discovery: UrlDiscovery | None = None,
        extractor: ContentExtractor | None = None,
        dedup: DeduplicationEngine | None = None,
        settings: Settings | None = None,
        retry_configs: dict[str, RetryConfig] | None = None,
    ) -> None:
        self._settings = settings or Settings()
        self._monitor = monitor or Monitor(self._settings)
        self._scheduler = scheduler
        self._fetcher = fetcher
        self._storage = storage
        self._discovery = discovery or UrlDiscovery(self._settings, self._monitor)
        self._extractor = extractor or ContentExtractor(self._monitor)
        self._dedup = dedup or DeduplicationEngine(storage, self._monitor, self._settings)
        self._retry_configs = retry_configs
        # Detection and the write it decides on must not interleave across workers.
        self._persist_lock = asyncio.Lock()

    @property
    def scheduler(self) -> CrawlScheduler:
        return self._scheduler

    @property
    def dedup(self) -> DeduplicationEngine:
        return self._dedup

    async def run_batch(
        self,
        max_urls: int | None = None,
        concurrency: int | None = None,
        min_priority: float | None = None,
    ) -> PipelineStats:
        """Process up to ``max_urls`` ready queue items with ``concurrency`` workers."""
        remaining = max_urls if max_urls is not None else self._settings.crawl_batch_size
        workers = concurrency or self._settings.crawl_max_concurrency

        async def worker(stats: PipelineStats) -> None:
            nonlocal remaining
            while remaining > 0:
                remaining -= 1
                item = await self._scheduler.get_next_url(min_priority=min_priority)
                if item is None:
                    return
                await self.process_item(item, stats)

        async def body(stats: PipelineStats) -> None:
            await asyncio.gather(*(worker(stats) for _ in range(workers)))

        return await self._run_session(body)

    async def run_urls(self, urls: list[str]) -> PipelineStats:
        """Process specific URLs now, queueing any the scheduler has not seen."""

        async def body(stats: PipelineStats) -> None:
            for url in urls:
                if self._scheduler.get_item(url) is None:
                    await self._scheduler.add_url_to_queue(url)
                item = await self._scheduler.claim(url)
                if item is None:
                    logger.info("Cannot claim %s (unknown target or busy)", url)
                    stats.urls_skipped += 1
                    continue
                await self.process_item(item, stats)

        return await self._run_session(body)

    async def _run_session(
        self, body: Callable[[PipelineStats], Awaitable[None]]
    ) -> PipelineStats:
        session = self._monitor.start_session()
        set_session_context(session.session_id)
        stats = PipelineStats(session_id=session.session_id)
        status = "failed"
        try:
            await body(stats)
            status = "completed"
        except asyncio.CancelledError:
            status = "cancelled"
            raise
        finally:
            self._monitor.end_session(session.session_id, status)

        logger.info(
            "Crawl session %s: %d processed, %d failed, %d skipped, %d records, %d duplicates",
            stats.session_id, stats.urls_processed, stats.urls_failed,
            stats.urls_skipped, stats.records_created, stats.duplicates_skipped,
        )
        return stats

    async def process_item(self, item: QueueItem, stats: PipelineStats) -> None:
        """Run one claimed queue item through every stage.

        Fetch failures back the item off in the scheduler; unsupported
        content types skip it. Every failure lands in the error ledger.
        """
        set_url_context(item.url)
        session_id = stats.session_id
        try:
            response = await self._fetch(item, stats)
            if response is None:
                return

            if response.mime_type in MARKUP_TYPES:
                await self._scheduler.analyze_and_update_priority(
                    item, response.content, response.content_type
                )
                await self._queue_links(item, response, stats)

            try:
                extraction = self._extractor.extract_data(
                    response.content, response.mime_type, item.url
                )
            except UnsupportedContentTypeError as exc:
                self._monitor.record_error(exc, "extract", url=item.url, session_id=session_id)
                self._monitor.record_url_stage(session_id, "skipped")
                await self._scheduler.skip(item, str(exc))
                stats.urls_skipped += 1
                return
            except ContentParseError as exc:
                self._monitor.record_url_stage(session_id, "failed")
                await self._scheduler.mark_completed(item, success=False, error=str(exc))
                stats.urls_failed += 1
                return

            self._monitor.record_url_stage(session_id, "extracted")
            stats.entities_extracted += len(extraction.entities)
            for entity in extraction.entities:
                await self._persist_entity(entity, extraction, stats)

            await self._scheduler.mark_completed(item, success=True)
            stats.urls_processed += 1
        except asyncio.CancelledError:
            await self._scheduler.release(item)
            raise
        except Exception as exc:
            self._monitor.record_error(exc, "crawl_pipeline", url=item.url, session_id=session_id)
            self._monitor.record_url_stage(session_id, "failed")
            await self._scheduler.mark_completed(item, success=False, error=str(exc))
            stats.urls_failed += 1
        finally:
            set_url_context(None)

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    async def _fetch(self, item: QueueItem, stats: PipelineStats) -> FetchResult | None:
        session_id = stats.session_id
        await self._scheduler.rate_limiter.acquire(item.domain)
        start = time.perf_counter()
        try:
            response: FetchResult = await with_error_handling(
                self._monitor, "fetch", with_retry, self._fetcher.fetch, item.url,
                url=item.url, session_id=session_id, retry_configs=self._retry_configs,
            )
        except FetchError as exc:
            elapsed_ms = (time.perf_counter() - start) * 1000.0
            self._scheduler.update_target_health(item.domain, elapsed_ms, success=False)
            self._monitor.record_request(session_id, success=False)
            self._monitor.record_url_stage(session_id, "failed")
            await self._scheduler.mark_completed(item, success=False, error=str(exc))
            stats.urls_failed += 1
            return None

        elapsed_ms = response.elapsed_ms or (time.perf_counter() - start) * 1000.0
        size = len(response.content.encode("utf-8"))
        self._scheduler.update_target_health(item.domain, elapsed_ms, success=True)
        self._monitor.record_request(session_id, success=True, bytes_processed=size)
        self._monitor.record_url_stage(session_id, "fetched")
        stats.bytes_processed += size
        return response

    async def _queue_links(
        self, item: QueueItem, response: FetchResult, stats: PipelineStats
    ) -> None:
        if item.depth >= self._settings.crawl_max_depth:
            return
        try:
            result = self._discovery.discover_urls(response.content, item.url, depth=item.depth)
        except Exception as exc:  # already in the ledger; extraction still runs
            logger.warning("Link discovery failed for %s: %s", item.url, exc)
            return

        stats.links_discovered += len(result.discovered_urls)
        self._monitor.record_url_stage(stats.session_id, "discovered", len(result.discovered_urls))
        queued = 0
        for link in result.discovered_urls:
            added = await self._scheduler.add_url_to_queue(
                link,
                category=result.categories.get(link),
                parent_url=item.url,
                depth=item.depth + 1,
            )
            if added is not None:
                queued += 1
        if queued:
            stats.links_queued += queued
            self._monitor.record_url_stage(stats.session_id, "queued", queued)

    async def _persist_entity(
        self, entity: ExtractedEntity, extraction: ExtractionResult, stats: PipelineStats
    ) -> None:
        record = entity_to_record(entity, extraction)
        async with self._persist_lock:
            await self._detect_and_store(record, stats)

    async def _detect_and_store(self, record: CorpusRecord, stats: PipelineStats) -> None:
        detection = await self._dedup.detect_duplicates(record)
        recommendation = detection.recommendation
        action = recommendation.action if detection.is_duplicate and recommendation else "ignore"

        if action == "mark_duplicate":
            stats.duplicates_skipped += 1
            self._monitor.record_duplicate_skipped(stats.session_id)
            logger.debug("Skipped duplicate %r of %s", record.title, detection.primary_item_id)
            return

        if action == "needs_review":
            record.status = "review"
        await self._storage.upsert(record)
        stats.records_created += 1
        self._monitor.record_url_stage(stats.session_id, "persisted")

        if action == "needs_review":
            self._dedup.queue_review(detection)
            stats.records_for_review += 1
        elif action == "merge" and detection.primary_item_id is not None:
            await self._dedup.merge_duplicates(
                detection.primary_item_id,
                [record.id],
                recommendation.merge_strategy or MergeStrategy.MERGE_COMPLEMENTARY,  # type: ignore[union-attr]
            )
            stats.records_merged += 1


# ---------------------------------------------------------------------------
# Entity -> corpus record
# ---------------------------------------------------------------------------


def entity_to_record(entity: ExtractedEntity, extraction: ExtractionResult) -> CorpusRecord:
    """Flatten an extracted entity into the record shape dedup compares."""
    data = entity.data
    return CorpusRecord(
        title=entity.title,
        description=_first_text(data, DESCRIPTION_FIELDS),
        data_type=entity.type.value,
        category=url_category(entity.source.url),
        location=_first_text(data, LOCATION_FIELDS),
        amount=_first_amount(data),
        source_url=entity.source.url,
        event_date=_first_date(data),
        quality_score=round(min(1.0, max(0.0, entity.validation.score)), 4),
        metadata={
            "entity_id": entity.id,
            "confidence": entity.confidence,
            "checksum": extraction.metadata.checksum,
            "fields": sorted(data),
            "issues": list(entity.validation.issues),
        },
        tags=extraction.semantic_tags[:MAX_RECORD_TAGS],
    )


def url_category(url: str) -> str:
    """Directory part of the URL path, e.g. ``council/meetings``."""
    segments = [s for s in urlparse(url).path.split("/") if s]
    return "/".join(segments[:-1])


def _first_text(data: dict, fields: tuple[str, ...]) -> str:
    for name in fields:
        value = data.get(name)
        if isinstance(value, list):
            value = "; ".join(str(v) for v in value)
        if value:
            return str(value)
    return ""


def _first_amount(data: dict) -> float | None:
    for value in data.values():
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return float(value)
    return None


def _first_date(data: dict) -> datetime | None:
    for name, value in data.items():
        if "date" in name and isinstance(value, str):
            parsed = parse_date(value)
            if parsed is not None:
                return parsed
    return None
