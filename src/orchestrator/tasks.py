# src/orchestrator/tasks.py - v1
"""Default task registry and the handlers bound to each TaskType.

``DEFAULT_TASKS`` declares dependencies by task type; ``default_tasks``
resolves them to the ids of the tasks it creates, in declaration order.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections import Counter
from pathlib import Path
from typing import Any, Awaitable, Callable

import numpy as np

from crawlintel.config.settings import Settings
from crawlintel.core.models import utcnow
from crawlintel.dedup.merge import completeness
from crawlintel.dedup.models import BulkOptions
from crawlintel.monitoring.models import HealthState
from crawlintel.monitoring.monitor import Monitor
from crawlintel.orchestrator.models import (
    ScheduledTask,
    TaskConfiguration,
    TaskExecution,
    TaskType,
)
from crawlintel.orchestrator.pipeline import CrawlPipeline, PipelineStats
from crawlintel.storage.base_storage import BaseStorage
from crawlintel.storage.models import RecordFilter

logger = logging.getLogger(__name__)

TaskHandler = Callable[[ScheduledTask, TaskConfiguration, TaskExecution], Awaitable[dict[str, Any]]]

MINUTE_MS = 60 * 1000

DEFAULT_SEED_URLS: list[str] = [
    "https://www.bolton.gov.uk/council-and-democracy/meetings-agendas-and-minutes",
    "https://www.bolton.gov.uk/environment-and-planning/planning-applications",
    "https://www.bolton.gov.uk/transparency-and-performance",
]

DEFAULT_TASKS: list[dict[str, Any]] = [
    {
        "name": "Daily URL Discovery",
        "type": TaskType.URL_DISCOVERY,
        "schedule": "0 6 * * *",
        "priority": 8,
        "configuration": {
            "max_duration_ms": 30 * MINUTE_MS,
            "retry_attempts": 2,
            "parameters": {
                "max_urls_to_discover": 500,
                "focus_areas": ["meetings", "planning", "transparency"],
            },
        },
        "depends_on": [],
    },
    {
        "name": "Continuous Content Crawling",
        "type": TaskType.CRAWL_DISCOVERY,
        "schedule": "*/30 * * * *",
        "priority": 9,
        "configuration": {
            "max_duration_ms": 25 * MINUTE_MS,
            "retry_attempts": 3,
            "parameters": {"max_concurrency": 3, "max_urls": 50, "priority_threshold": 5},
        },
        "depends_on": [TaskType.URL_DISCOVERY],
    },
    {
        "name": "Data Quality Assessment",
        "type": TaskType.DATA_QUALITY_CHECK,
        "schedule": "0 2 * * *",
        "priority": 6,
        "configuration": {
            "max_duration_ms": 60 * MINUTE_MS,
            "retry_attempts": 1,
            "parameters": {"low_quality_threshold": 0.5},
        },
        "depends_on": [],
    },
    {
        "name": "Duplicate Detection and Cleanup",
        "type": TaskType.DEDUPLICATION,
        "schedule": "0 1 * * 0",
        "priority": 5,
        "configuration": {
            "max_duration_ms": 120 * MINUTE_MS,
            "retry_attempts": 1,
            "parameters": {"auto_resolve": False, "strict": True},
        },
        "depends_on": [TaskType.DATA_QUALITY_CHECK],
    },
    {
        "name": "System Health Check",
        "type": TaskType.HEALTH_CHECK,
        "schedule": "*/15 * * * *",
        "priority": 10,
        "configuration": {"max_duration_ms": 5 * MINUTE_MS, "retry_attempts": 1},
        "depends_on": [],
    },
    {
        "name": "Analytics Generation",
        "type": TaskType.ANALYTICS_GENERATION,
        "schedule": "0 4 * * *",
        "priority": 4,
        "configuration": {
            "max_duration_ms": 30 * MINUTE_MS,
            "retry_attempts": 1,
            "alert_on_failure": False,
            "parameters": {"timeframe": "week"},
        },
        "depends_on": [TaskType.DATA_QUALITY_CHECK],
    },
]


def default_tasks() -> list[ScheduledTask]:
    """Build the default task set with type dependencies resolved to ids."""
    ids: dict[TaskType, str] = {}
    tasks: list[ScheduledTask] = []
    for entry in DEFAULT_TASKS:
        fields = {k: v for k, v in entry.items() if k != "depends_on"}
        task = ScheduledTask(
            **fields,
            dependencies=[ids[t] for t in entry["depends_on"]],
        )
        ids[task.type] = task.id
        tasks.append(task)
    return tasks


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------

QUALITY_TARGET = 0.7
COMPLETENESS_TARGET = 0.6


class TaskHandlers:
    """Binds each TaskType to a coroutine over the engine's components."""

    def __init__(
        self,
        pipeline: CrawlPipeline,
        storage: BaseStorage,
        monitor: Monitor,
        settings: Settings | None = None,
    ) -> None:
        self._settings = settings or Settings()
        self._pipeline = pipeline
        self._scheduler = pipeline.scheduler
        self._dedup = pipeline.dedup
        self._storage = storage
        self._monitor = monitor

    def registry(self) -> dict[TaskType, TaskHandler]:
        return {
            TaskType.URL_DISCOVERY: self.url_discovery,
            TaskType.CRAWL_DISCOVERY: self.crawl_discovery,
            TaskType.CONTENT_EXTRACTION: self.content_extraction,
            TaskType.DATA_QUALITY_CHECK: self.data_quality_check,
            TaskType.DEDUPLICATION: self.deduplication,
            TaskType.HEALTH_CHECK: self.health_check,
            TaskType.ANALYTICS_GENERATION: self.analytics_generation,
            TaskType.SYSTEM_MAINTENANCE: self.system_maintenance,
            TaskType.BACKUP: self.backup,
        }

    # --- Crawling ---

    async def url_discovery(
        self, task: ScheduledTask, config: TaskConfiguration, execution: TaskExecution
    ) -> dict[str, Any]:
        """Seed the crawl queue with the configured entry points."""
        params = config.parameters
        seeds = list(params.get("seed_urls", DEFAULT_SEED_URLS))
        limit = int(params.get("max_urls_to_discover", len(seeds)))
        metrics = execution.metrics

        for url in seeds[:limit]:
            metrics.items_processed += 1
            try:
                item = await self._scheduler.add_url_to_queue(url, depth=0)
            except Exception as exc:
                metrics.errors_encountered += 1
                self._monitor.record_error(exc, "url_discovery", url=url)
                continue
            if item is None:
                metrics.items_skipped += 1
            else:
                metrics.items_created += 1

        return {
            "urls_discovered": metrics.items_created,
            "focus_areas": params.get("focus_areas", []),
            "queue": self._scheduler.get_statistics().model_dump(mode="json"),
        }

    async def crawl_discovery(
        self, task: ScheduledTask, config: TaskConfiguration, execution: TaskExecution
    ) -> dict[str, Any]:
        params = config.parameters
        stats = await self._pipeline.run_batch(
            max_urls=params.get("max_urls"),
            concurrency=params.get("max_concurrency"),
            min_priority=params.get("priority_threshold"),
        )
        _apply_crawl_metrics(execution, stats)
        return {
            **stats.model_dump(),
            "queue": self._scheduler.get_statistics().model_dump(mode="json"),
        }

    async def content_extraction(
        self, task: ScheduledTask, config: TaskConfiguration, execution: TaskExecution
    ) -> dict[str, Any]:
        """Re-fetch and re-extract the URLs listed in ``parameters["urls"]``."""
        urls = list(config.parameters.get("urls", []))
        if not urls:
            raise ValueError("content_extraction requires a non-empty 'urls' parameter")
        stats = await self._pipeline.run_urls(urls)
        _apply_crawl_metrics(execution, stats)
        return stats.model_dump()

    # --- Corpus maintenance ---

    async def data_quality_check(
        self, task: ScheduledTask, config: TaskConfiguration, execution: TaskExecution
    ) -> dict[str, Any]:
        threshold = float(config.parameters.get("low_quality_threshold", 0.5))
        records = await self._storage.query(RecordFilter())
        execution.metrics.items_processed = len(records)
        if not records:
            return {"total_items": 0, "recommendations": []}

        quality = np.array([r.quality_score for r in records], dtype=np.float64)
        complete = np.array([completeness(r) for r in records], dtype=np.float64)
        needing_review = int((quality < threshold).sum())
        mean_quality = float(quality.mean())
        execution.metrics.quality_score = mean_quality

        recommendations = []
        if mean_quality < QUALITY_TARGET:
            recommendations.append("Review validation rules for better data quality")
        if float(complete.mean()) < COMPLETENESS_TARGET:
            recommendations.append("Many records lack descriptions or locations; extend extraction rules")
        if needing_review:
            recommendations.append(f"{needing_review} records below quality {threshold:.2f} need review")

        return {
            "total_items": len(records),
            "quality_score": round(mean_quality, 4),
            "completeness_rate": round(float(complete.mean()), 4),
            "items_needing_review": needing_review,
            "by_type": dict(Counter(r.data_type for r in records)),
            "recommendations": recommendations,
        }

    async def deduplication(
        self, task: ScheduledTask, config: TaskConfiguration, execution: TaskExecution
    ) -> dict[str, Any]:
        params = config.parameters
        defaults = BulkOptions()
        options = BulkOptions(
            batch_size=int(params.get("batch_size", defaults.batch_size)),
            auto_resolve=bool(params.get("auto_resolve", False)),
            auto_resolve_threshold=float(
                params.get("auto_resolve_threshold", defaults.auto_resolve_threshold)
            ),
            batch_delay_seconds=float(params.get("batch_delay_seconds", 0.0)),
            strict=bool(params.get("strict", False)),
        )
        ids = [r.id for r in await self._storage.query(RecordFilter())]
        report = await self._dedup.perform_bulk_deduplication(ids, options)

        metrics = execution.metrics
        metrics.items_processed = report.total_processed
        metrics.items_updated = report.items_merged + report.items_marked_duplicate
        metrics.items_deduplicated = report.items_merged + report.items_marked_duplicate
        metrics.quality_improved = report.items_merged
        metrics.errors_encountered = report.errors
        return report.model_dump(mode="json")

    # --- System ---

    async def health_check(
        self, task: ScheduledTask, config: TaskConfiguration, execution: TaskExecution
    ) -> dict[str, Any]:
        storage = await self._monitor.health_check("storage", self._probe_storage)
        scheduler = await self._monitor.health_check("scheduler", self._probe_scheduler)
        status = self._monitor.get_system_status()
        execution.metrics.items_processed = 2

        memory_ok = status.performance.memory_bytes < self._settings.monitoring_memory_threshold_bytes
        errors_ok = status.performance.error_rate < self._settings.monitoring_error_rate_threshold
        return {
            "overall": status.overall,
            "timestamp": utcnow().isoformat(),
            "checks": {
                "storage": storage.status,
                "scheduler": scheduler.status,
                "memory": "healthy" if memory_ok else "warning",
                "error_rate": "healthy" if errors_ok else "warning",
            },
        }

    async def analytics_generation(
        self, task: ScheduledTask, config: TaskConfiguration, execution: TaskExecution
    ) -> dict[str, Any]:
        analytics = self._monitor.get_analytics(config.parameters.get("timeframe", "week"))
        records = await self._storage.query(RecordFilter(status=None))
        execution.metrics.items_processed = len(records)
        quality = [r.quality_score for r in records if r.status == "active"]
        return {
            "analytics": analytics.model_dump(mode="json"),
            "records_by_type": dict(Counter(r.data_type for r in records)),
            "records_by_status": dict(Counter(r.status for r in records)),
            "average_quality": round(float(np.mean(quality)), 4) if quality else 0.0,
            "review_queue": len(self._dedup.review_queue),
        }

    async def system_maintenance(
        self, task: ScheduledTask, config: TaskConfiguration, execution: TaskExecution
    ) -> dict[str, Any]:
        removed = self._monitor.cleanup()
        execution.metrics.items_processed = removed
        return {"entries_removed": removed}

    async def backup(
        self, task: ScheduledTask, config: TaskConfiguration, execution: TaskExecution
    ) -> dict[str, Any]:
        """Write every stored record as a JSON array to ``parameters["path"]``."""
        path = config.parameters.get("path")
        if not path:
            raise ValueError("backup requires a 'path' parameter")
        records = await self._storage.query(RecordFilter(status=None))
        payload = json.dumps([r.model_dump(mode="json") for r in records], indent=2)
        await asyncio.to_thread(Path(path).write_text, payload, encoding="utf-8")
        execution.metrics.items_processed = len(records)
        logger.info("Backed up %d records to %s", len(records), path)
        return {"path": str(path), "records": len(records)}

    # --- Probes ---

    async def _probe_storage(self) -> dict[str, Any]:
        records = await self._storage.query(RecordFilter(status=None, limit=1))
        return {"status": "healthy", "sample": len(records)}

    def _probe_scheduler(self) -> dict[str, Any]:
        stats = self._scheduler.get_statistics()
        health = stats.target_health
        down = sorted(d for d, h in health.items() if h == "down")
        degraded = sorted(d for d, h in health.items() if h in ("unstable", "slow"))
        status: HealthState = "healthy"
        if health and len(down) == len(health):
            status = "critical"
        elif down or degraded:
            status = "warning"
        return {
            "status": status,
            "queue_size": stats.queue_size,
            "ready": stats.ready_to_process,
            "down": down,
            "degraded": degraded,
        }


def _apply_crawl_metrics(execution: TaskExecution, stats: PipelineStats) -> None:
    metrics = execution.metrics
    metrics.items_processed = stats.urls_processed + stats.urls_failed + stats.urls_skipped
    metrics.items_created = stats.records_created
    metrics.items_updated = stats.records_merged
    metrics.items_skipped = stats.urls_skipped + stats.duplicates_skipped
    metrics.errors_encountered = stats.urls_failed
