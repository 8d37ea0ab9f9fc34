# src/scheduler/scheduler.py - v1
"""Adaptive crawl queue.

One CrawlTarget per domain; one QueueItem per URL. Every read-modify-write
of the queue happens under a single asyncio.Lock, and ``get_next_url``
claims the item it returns (status ``processing``) so two workers never
receive the same URL.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Callable
from urllib.parse import urlparse

from crawlintel.config.settings import Settings
from crawlintel.core.models import utcnow
from crawlintel.core.text import sha256_hex
from crawlintel.monitoring.monitor import Monitor
from crawlintel.scheduler.analyzer import ContentAnalyzer
from crawlintel.scheduler.models import (
    ContentAnalysis,
    CrawlTarget,
    QueueItem,
    QueueMetadata,
    QueueStatistics,
    Scheduling,
    TargetHealth,
)
from crawlintel.scheduler.priority import (
    adaptive_interval,
    base_priority,
    categorize_path,
    dynamic_priority,
    failure_interval,
    initial_interval,
)
from crawlintel.scheduler.rate_limiter import DomainRateLimiter
from crawlintel.scheduler.targets import default_targets

logger = logging.getLogger(__name__)

# === Target health ===
HEALTH_SMOOTHING = 0.2
DOWN_ERROR_RATE = 0.5
UNSTABLE_ERROR_RATE = 0.2
SLOW_RESPONSE_MS = 10_000.0


class CrawlScheduler:
    """Priority queue of crawlable URLs with adaptive re-crawl intervals."""

    def __init__(
        self,
        targets: list[CrawlTarget] | None = None,
        settings: Settings | None = None,
        monitor: Monitor | None = None,
        analyzer: ContentAnalyzer | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._settings = settings or Settings()
        self._monitor = monitor
        self._clock = clock
        self._analyzer = analyzer or ContentAnalyzer(clock=clock)
        self._targets: dict[str, CrawlTarget] = {
            t.domain: t for t in (targets if targets is not None else default_targets())
        }
        self._queue: dict[str, QueueItem] = {}
        self._previous_hashes: dict[str, str] = {}
        self._lock = asyncio.Lock()
        self._min_interval = timedelta(seconds=self._settings.scheduler_min_interval_seconds)
        self._max_interval = timedelta(seconds=self._settings.scheduler_max_interval_seconds)
        self._max_attempts = self._settings.scheduler_max_attempts

        self.rate_limiter = DomainRateLimiter(self._settings.scheduler_default_rate_limit_ms)
        for target in self._targets.values():
            if target.rate_limit_ms is not None:
                self.rate_limiter.configure(target.domain, target.rate_limit_ms)

    def __len__(self) -> int:
        return len(self._queue)

    @property
    def targets(self) -> list[CrawlTarget]:
        return list(self._targets.values())

    def get_target(self, domain: str) -> CrawlTarget | None:
        return self._targets.get(domain)

    def get_item(self, url: str) -> QueueItem | None:
        return self._queue.get(url)

    # ------------------------------------------------------------------
    # Enqueue / dequeue
    # ------------------------------------------------------------------

    async def add_url_to_queue(
        self,
        url: str,
        category: str | None = None,
        parent_url: str | None = None,
        depth: int = 0,
    ) -> QueueItem | None:
        """Queue ``url`` once. Returns None for duplicates, unknown domains
        and URLs excluded by the target's rules."""
        domain = (urlparse(url).hostname or "").lower()
        target = self._targets.get(domain)
        if target is None:
            logger.debug("Unknown domain %s, skipping %s", domain, url)
            return None
        if _excluded(target, url):
            logger.debug("Excluded by %s rules: %s", domain, url)
            return None

        category = category or categorize_path(url)
        priority = base_priority(url, target, category)
        async with self._lock:
            if url in self._queue:
                return None
            item = QueueItem(
                url=url,
                domain=domain,
                static_priority=priority,
                dynamic_priority=priority,
                category=category,
                parent_url=parent_url,
                depth=depth,
                scheduling=Scheduling(
                    next_scheduled=self._clock(),
                    interval=initial_interval(target.crawl_frequency),
                ),
                metadata=QueueMetadata(estimated_value=priority),
            )
            self._queue[url] = item
        logger.debug("Queued %s (priority %.1f, %s)", url, priority, category)
        return item

    async def get_next_url(self, min_priority: float | None = None) -> QueueItem | None:
        """Claim the ready item with the highest dynamic priority.

        Ties go to the most overdue item. The claimed item moves to
        ``processing`` until ``mark_completed`` or ``release``.
        """
        async with self._lock:
            now = self._clock()
            ready = [
                item for item in self._queue.values()
                if item.status == "pending"
                and item.attempts < self._max_attempts
                and item.scheduling.next_scheduled <= now
                and (min_priority is None or item.dynamic_priority >= min_priority)
            ]
            if not ready:
                return None
            best = max(
                ready,
                key=lambda i: (i.dynamic_priority, now - i.scheduling.next_scheduled),
            )
            best.status = "processing"
            best.last_attempted = now
            return best

    # ------------------------------------------------------------------
    # Analysis and completion
    # ------------------------------------------------------------------

    async def analyze_and_update_priority(
        self, item: QueueItem, content: str, content_type: str
    ) -> ContentAnalysis | None:
        """Analyse fetched content, then recompute priority and interval.

        Analysis failures are recorded and leave the previous priority
        in place.
        """
        async with self._lock:
            previous_status = item.status
            item.status = "analyzing"
        try:
            analysis = self._analyzer.analyze(content, item.url)
        except Exception as exc:
            if self._monitor is not None:
                self._monitor.record_error(exc, "content_analysis", url=item.url)
            else:
                logger.error("Analysis failed for %s: %s", item.url, exc)
            async with self._lock:
                item.status = previous_status
            return None

        content_hash = sha256_hex(content)
        async with self._lock:
            previous_hash = self._previous_hashes.get(item.url)
            changed = previous_hash is not None and previous_hash != content_hash
            self._previous_hashes[item.url] = content_hash

            item.analysis = analysis
            item.metadata.estimated_value = analysis.importance
            item.metadata.change_frequency = analysis.change_frequency
            item.metadata.content_hash = content_hash
            item.metadata.file_size = len(content.encode("utf-8"))
            if changed:
                item.metadata.last_modified = self._clock()
            item.dynamic_priority = dynamic_priority(item.static_priority, analysis, item.metadata)
            if item.scheduling.adaptive:
                item.scheduling.interval = adaptive_interval(
                    analysis, analysis.change_frequency, changed,
                    self._min_interval, self._max_interval,
                )
            item.status = previous_status

        logger.info(
            "Analyzed %s: type=%s importance=%d priority=%.2f (%s)",
            item.url, analysis.content_type, analysis.importance,
            item.dynamic_priority, content_type,
        )
        return analysis

    async def mark_completed(
        self, item: QueueItem, success: bool, error: str | None = None
    ) -> None:
        """Schedule the next crawl of ``item``.

        Success resets attempts. Failure increments attempts and backs off
        the interval exponentially; exhausted items become ``failed``.
        """
        async with self._lock:
            now = self._clock()
            item.last_attempted = now
            if success:
                item.attempts = 0
                item.last_error = None
                item.status = "pending"
            else:
                item.attempts += 1
                item.last_error = error
                item.scheduling.interval = failure_interval(
                    item.scheduling.interval, item.attempts,
                    self._min_interval, self._max_interval,
                )
                item.status = "pending" if item.attempts < self._max_attempts else "failed"
            item.scheduling.next_scheduled = now + item.scheduling.interval
        if not success:
            logger.warning(
                "Crawl of %s failed (attempt %d/%d): %s",
                item.url, item.attempts, self._max_attempts, error or "unknown error",
            )

    async def claim(self, url: str) -> QueueItem | None:
        """Claim a specific queued URL regardless of its schedule.

        Returns None for unknown URLs and items already being worked on.
        """
        async with self._lock:
            item = self._queue.get(url)
            if item is None or item.status in ("processing", "analyzing"):
                return None
            item.status = "processing"
            item.last_attempted = self._clock()
            return item

    async def release(self, item: QueueItem) -> None:
        """Return a claimed item to ``pending`` without counting an attempt."""
        async with self._lock:
            if item.status in ("processing", "analyzing"):
                item.status = "pending"

    async def skip(self, item: QueueItem, reason: str) -> None:
        async with self._lock:
            item.status = "skipped"
            item.last_error = reason

    # ------------------------------------------------------------------
    # Targets and statistics
    # ------------------------------------------------------------------

    def update_target_health(self, domain: str, response_ms: float, success: bool) -> TargetHealth | None:
        """Fold one fetch outcome into the target's rolling health."""
        target = self._targets.get(domain)
        if target is None:
            return None
        a = HEALTH_SMOOTHING
        target.average_response_ms = (1 - a) * target.average_response_ms + a * response_ms
        target.error_rate = (1 - a) * target.error_rate + a * (0.0 if success else 1.0)
        if success:
            target.last_successful = self._clock()

        if target.error_rate >= DOWN_ERROR_RATE:
            health: TargetHealth = "down"
        elif target.error_rate >= UNSTABLE_ERROR_RATE:
            health = "unstable"
        elif target.average_response_ms >= SLOW_RESPONSE_MS:
            health = "slow"
        else:
            health = "active"
        if health != target.health_status:
            logger.info("Target %s health %s -> %s", domain, target.health_status, health)
        target.health_status = health
        return health

    def get_statistics(self) -> QueueStatistics:
        now = self._clock()
        items = list(self._queue.values())
        stats = QueueStatistics(
            queue_size=len(items),
            targets=len(self._targets),
            target_health={d: t.health_status for d, t in self._targets.items()},
        )
        pending_times = []
        for item in items:
            stats.by_category[item.category] = stats.by_category.get(item.category, 0) + 1
            stats.by_status[item.status] = stats.by_status.get(item.status, 0) + 1
            stats.by_domain[item.domain] = stats.by_domain.get(item.domain, 0) + 1
            stats.estimated_processing_ms += item.metadata.estimated_processing_ms
            if item.status == "pending":
                pending_times.append(item.scheduling.next_scheduled)
                if item.scheduling.next_scheduled <= now and item.attempts < self._max_attempts:
                    stats.ready_to_process += 1
        if items:
            stats.average_priority = round(sum(i.dynamic_priority for i in items) / len(items), 2)
        stats.next_scheduled = min(pending_times) if pending_times else None
        return stats


def _excluded(target: CrawlTarget, url: str) -> bool:
    """Exclude rules win unless an include rule also matches."""
    if not any(r.matches(url) for r in target.rules_of("exclude_path")):
        return False
    return not any(r.matches(url) for r in target.rules_of("include_path"))
