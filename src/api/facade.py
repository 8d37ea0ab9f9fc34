# src/api/facade.py - v1
"""Public API facade - wires every engine component from one Settings.

Usage:
    from crawlintel.api.facade import build_engine
    async with build_engine() as engine:
        stats = await engine.pipeline.run_urls([...])
"""

from __future__ import annotations

import logging
from types import TracebackType

from crawlintel.config.settings import Settings
from crawlintel.dedup.engine import DeduplicationEngine
from crawlintel.discovery.discovery import UrlDiscovery
from crawlintel.extraction.extractor import ContentExtractor
from crawlintel.fetch.base_fetcher import BaseFetcher
from crawlintel.fetch.httpx_fetcher import HttpxFetcher
from crawlintel.monitoring.monitor import Monitor
from crawlintel.orchestrator.orchestrator import Orchestrator
from crawlintel.orchestrator.pipeline import CrawlPipeline
from crawlintel.orchestrator.tasks import TaskHandlers, default_tasks
from crawlintel.scheduler.models import CrawlTarget
from crawlintel.scheduler.scheduler import CrawlScheduler
from crawlintel.scheduler.targets import load_targets
from crawlintel.storage.base_storage import BaseStorage
from crawlintel.storage.memory_storage import MemoryStorage

logger = logging.getLogger(__name__)


class CrawlEngine:
    """Holds the wired components; use as an async context manager."""

    def __init__(
        self,
        settings: Settings,
        monitor: Monitor,
        storage: BaseStorage,
        scheduler: CrawlScheduler,
        fetcher: BaseFetcher,
        pipeline: CrawlPipeline,
        orchestrator: Orchestrator,
    ) -> None:
        self.settings = settings
        self.monitor = monitor
        self.storage = storage
        self.scheduler = scheduler
        self.fetcher = fetcher
        self.pipeline = pipeline
        self.orchestrator = orchestrator

    @property
    def dedup(self) -> DeduplicationEngine:
        return self.pipeline.dedup

    async def start(self) -> None:
        await self.monitor.start()
        await self.orchestrator.start()

    async def stop(self) -> None:
        await self.orchestrator.stop()
        await self.monitor.stop()
        await self.fetcher.close()

    async def __aenter__(self) -> CrawlEngine:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.stop()


def build_engine(
    settings: Settings | None = None,
    fetcher: BaseFetcher | None = None,
    storage: BaseStorage | None = None,
    targets: list[CrawlTarget] | None = None,
    register_default_tasks: bool = True,
) -> CrawlEngine:
    """Build a CrawlEngine with in-memory storage and an httpx fetcher.

    Args:
        settings: Global settings. Loaded from .env if None.
        fetcher: Fetch backend. Defaults to HttpxFetcher.
        storage: Record store. Defaults to MemoryStorage.
        targets: Crawl targets. Defaults to ``settings.crawl_targets_file``
            or the built-in target list.
        register_default_tasks: Add the default scheduled tasks.

    Raises:
        ConfigurationError: If the targets file cannot be loaded.
    """
    settings = settings or Settings()
    monitor = Monitor(settings)
    storage = storage or MemoryStorage()
    fetcher = fetcher or HttpxFetcher(
        timeout=settings.fetch_timeout_seconds,
        user_agent=settings.fetch_user_agent,
    )
    if targets is None:
        targets = load_targets(settings.crawl_targets_file)

    scheduler = CrawlScheduler(targets, settings=settings, monitor=monitor)
    pipeline = CrawlPipeline(
        scheduler,
        fetcher,
        storage,
        monitor=monitor,
        discovery=UrlDiscovery(settings, monitor),
        extractor=ContentExtractor(monitor),
        dedup=DeduplicationEngine(storage, monitor, settings),
        settings=settings,
    )
    handlers = TaskHandlers(pipeline, storage, monitor, settings)
    orchestrator = Orchestrator(handlers.registry(), monitor=monitor, settings=settings)
    if register_default_tasks:
        for task in default_tasks():
            orchestrator.add_task(task)

    logger.info(
        "Engine ready: %d targets, %d scheduled tasks",
        len(scheduler.targets), len(orchestrator.tasks),
    )
    return CrawlEngine(settings, monitor, storage, scheduler, fetcher, pipeline, orchestrator)
