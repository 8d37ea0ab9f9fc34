# src/dedup/engine.py - v1
"""Deduplication engine: multi-strategy detection, merge execution,
manual review queue and bulk sessions.

A failing strategy is recorded in the monitoring ledger and skipped;
detection continues with the remaining strategies.
"""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime
from typing import Callable

from crawlintel.config.settings import Settings
from crawlintel.core.models import CorpusRecord, SimilarItem, SimilarityStrategy, utcnow
from crawlintel.dedup.merge import MergeError, apply_merge, completeness
from crawlintel.dedup.models import (
    BulkOptions,
    DeduplicationReport,
    DuplicateDetectionResult,
    MergeResult,
    MergeStrategy,
    ReviewItem,
    StrategyStats,
)
from crawlintel.dedup.recommendations import classify, consolidate, rank, recommend, select_primary
from crawlintel.dedup.strategies import STRATEGY_FUNCTIONS
from crawlintel.monitoring.monitor import Monitor
from crawlintel.storage.base_storage import BaseStorage

logger = logging.getLogger(__name__)

STRICT_MIN_CONFIDENCE = 0.75


class DeduplicationEngine:
    """Detects and resolves duplicates of corpus records."""

    def __init__(
        self,
        storage: BaseStorage,
        monitor: Monitor | None = None,
        settings: Settings | None = None,
        strategies: list[SimilarityStrategy] | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._storage = storage
        self._monitor = monitor
        self._settings = settings or Settings()
        self._strategies = strategies or list(SimilarityStrategy)
        self._clock = clock
        self._review_queue: dict[str, ReviewItem] = {}
        self._stats: dict[str, StrategyStats] = {
            s.value: StrategyStats(strategy=s.value) for s in SimilarityStrategy
        }

    @property
    def review_queue(self) -> list[ReviewItem]:
        return list(self._review_queue.values())

    @property
    def strategy_stats(self) -> dict[str, StrategyStats]:
        return {k: v.model_copy() for k, v in self._stats.items()}

    def pop_review(self, item_id: str) -> ReviewItem | None:
        return self._review_queue.pop(item_id, None)

    def queue_review(self, result: DuplicateDetectionResult) -> ReviewItem:
        """Hold a detection for manual review, replacing any earlier entry."""
        review = ReviewItem(item_id=result.item_id, result=result, queued_at=self._clock())
        self._review_queue[result.item_id] = review
        return review

    # ------------------------------------------------------------------
    # Detection
    # ------------------------------------------------------------------

    async def detect_duplicates(
        self,
        item: CorpusRecord,
        strict: bool = False,
        max_similar_items: int | None = None,
    ) -> DuplicateDetectionResult:
        """Run every strategy for ``item`` and consolidate the hits.

        ``strict`` raises the minimum confidence for reported items from
        the configured floor to 0.75.
        """
        timer_id = self._monitor.start_timing("duplicate_detection") if self._monitor else None
        min_confidence = (
            max(STRICT_MIN_CONFIDENCE, self._settings.dedup_min_confidence)
            if strict else self._settings.dedup_min_confidence
        )
        limit = max_similar_items or self._settings.dedup_max_similar_items

        hits: list[SimilarItem] = []
        for strategy in self._strategies:
            hits.extend(await self._run_strategy(strategy, item))

        ranked = rank(consolidate(hits), min_confidence, limit)
        is_duplicate, duplicate_type, confidence = classify(ranked[0] if ranked else None)

        records: dict[str, CorpusRecord] = {}
        for similar in ranked:
            record = await self._storage.get(similar.id)
            if record is not None:
                records[similar.id] = record
        primary_id = select_primary(ranked, records, self._clock())
        primary = records.get(primary_id) if primary_id else None

        result = DuplicateDetectionResult(
            item_id=item.id,
            is_duplicate=is_duplicate,
            confidence=confidence,
            duplicate_type=duplicate_type,
            similar_items=ranked,
            primary_item_id=primary_id,
            recommendations=recommend(item, ranked, primary, confidence),
        )

        if timer_id:
            self._monitor.end_timing(  # type: ignore[union-attr]
                timer_id, success=True,
                metadata={"similar": len(ranked), "confidence": confidence},
            )
        logger.info(
            "Duplicate check for %s: %s (%.0f%% confidence, %d similar)",
            item.id, "DUPLICATE" if is_duplicate else "UNIQUE",
            confidence * 100, len(ranked),
        )
        return result

    async def _run_strategy(
        self, strategy: SimilarityStrategy, item: CorpusRecord
    ) -> list[SimilarItem]:
        stats = self._stats[strategy.value]
        stats.items_processed += 1
        start = time.perf_counter()
        try:
            found = await STRATEGY_FUNCTIONS[strategy](item, self._storage)
        except Exception as exc:
            stats.errors += 1
            if self._monitor is not None:
                self._monitor.record_error(exc, f"dedup:{strategy.value}")
            else:
                logger.error("Strategy %s failed for %s: %s", strategy.value, item.id, exc)
            return []
        finally:
            stats.processing_time_ms += (time.perf_counter() - start) * 1000.0

        if found:
            stats.duplicates_found += len(found)
            stats.total_confidence += sum(i.similarity for i in found)
        logger.debug("%s: %d potential matches for %s", strategy.value, len(found), item.id)
        return found

    # ------------------------------------------------------------------
    # Merge
    # ------------------------------------------------------------------

    async def merge_duplicates(
        self,
        primary_id: str,
        duplicate_ids: list[str],
        strategy: MergeStrategy = MergeStrategy.KEEP_HIGHEST_QUALITY,
    ) -> MergeResult:
        """Fold ``duplicate_ids`` into ``primary_id``.

        Duplicates are superseded (``status="merged"``), never deleted.
        ``manual_review`` only queues the primary for review.

        Raises:
            MergeError: If the primary or any duplicate does not exist.
        """
        primary = await self._storage.get(primary_id)
        if primary is None:
            raise MergeError(f"Primary item {primary_id} not found")

        if strategy == MergeStrategy.MANUAL_REVIEW:
            self._review_queue[primary_id] = ReviewItem(
                item_id=primary_id,
                result=DuplicateDetectionResult(item_id=primary_id, primary_item_id=primary_id),
            )
            return MergeResult(
                primary_id=primary_id, merged_ids=[], strategy=strategy,
                quality_before=completeness(primary), quality_after=completeness(primary),
                message="Queued for manual review",
            )

        timer_id = self._monitor.start_timing("duplicate_merge") if self._monitor else None
        try:
            duplicates: list[CorpusRecord] = []
            for dup_id in duplicate_ids:
                if dup_id == primary_id:
                    continue
                record = await self._storage.get(dup_id)
                if record is None:
                    raise MergeError(f"Duplicate item {dup_id} not found")
                duplicates.append(record)

            survivor, merged_fields = apply_merge(primary, duplicates, strategy)
            await self._storage.upsert(survivor)
            for dup in duplicates:
                dup.status = "merged"
                dup.merged_into = primary_id
                await self._storage.upsert(dup)
        except MergeError as exc:
            if timer_id:
                self._monitor.end_timing(timer_id, success=False)  # type: ignore[union-attr]
            if self._monitor is not None:
                self._monitor.record_error(exc, "duplicate_merge", context={"primary_id": primary_id})
            raise

        result = MergeResult(
            primary_id=primary_id,
            merged_ids=[d.id for d in duplicates],
            strategy=strategy,
            merged_fields=merged_fields,
            quality_before=completeness(primary),
            quality_after=completeness(survivor),
            message=f"{len(duplicates)} items merged",
        )
        for dup in duplicates:
            self._review_queue.pop(dup.id, None)
        if timer_id:
            self._monitor.end_timing(  # type: ignore[union-attr]
                timer_id, success=True,
                metadata={"merged": len(duplicates), "strategy": strategy.value},
            )
        logger.info(
            "Merged %d items into %s (%s)", len(duplicates), primary_id, strategy.value
        )
        return result

    # ------------------------------------------------------------------
    # Bulk
    # ------------------------------------------------------------------

    async def perform_bulk_deduplication(
        self,
        item_ids: list[str],
        options: BulkOptions | None = None,
    ) -> DeduplicationReport:
        """Check ``item_ids`` in batches and resolve or queue duplicates."""
        options = options or BulkOptions(
            batch_size=self._settings.dedup_bulk_batch_size,
            auto_resolve_threshold=self._settings.dedup_auto_resolve_threshold,
        )
        report = DeduplicationReport()
        stats_before = self.strategy_stats
        batches = [
            item_ids[i:i + options.batch_size]
            for i in range(0, len(item_ids), options.batch_size)
        ]
        logger.info(
            "Bulk deduplication %s: %d items in %d batches",
            report.session_id, len(item_ids), len(batches),
        )

        for index, batch in enumerate(batches):
            for item_id in batch:
                await self._process_bulk_item(item_id, options, report)
                report.total_processed += 1
            logger.debug("Batch %d/%d done", index + 1, len(batches))
            if options.batch_delay_seconds and index < len(batches) - 1:
                await asyncio.sleep(options.batch_delay_seconds)

        report.strategies = _stats_delta(stats_before, self._stats)
        report.completed_at = self._clock()
        logger.info(
            "Bulk deduplication %s: %d processed, %d duplicates, %d merged, "
            "%d marked duplicate, %d for review",
            report.session_id, report.total_processed, report.duplicates_found,
            report.items_merged, report.items_marked_duplicate, report.items_marked_for_review,
        )
        return report

    async def _process_bulk_item(
        self, item_id: str, options: BulkOptions, report: DeduplicationReport
    ) -> None:
        try:
            item = await self._storage.get(item_id)
            if item is None or item.status != "active":
                return
            detection = await self.detect_duplicates(item, strict=options.strict)
            if not detection.is_duplicate or detection.primary_item_id is None:
                return

            report.duplicates_found += 1
            recommendation = detection.recommendation
            if (
                options.auto_resolve
                and detection.confidence >= options.auto_resolve_threshold
                and recommendation is not None
            ):
                if recommendation.action == "mark_duplicate":
                    item.status = "duplicate"
                    item.merged_into = detection.primary_item_id
                    await self._storage.upsert(item)
                    report.items_marked_duplicate += 1
                    return
                if recommendation.action == "merge":
                    await self.merge_duplicates(
                        detection.primary_item_id, [item.id],
                        recommendation.merge_strategy or MergeStrategy.KEEP_HIGHEST_QUALITY,
                    )
                    report.items_merged += 1
                    return

            self.queue_review(detection)
            report.items_marked_for_review += 1
        except Exception as exc:
            report.errors += 1
            if self._monitor is not None:
                self._monitor.record_error(
                    exc, "bulk_deduplication", context={"item_id": item_id},
                    session_id=report.session_id,
                )
            else:
                logger.error("Bulk dedup failed for %s: %s", item_id, exc)


def _stats_delta(
    before: dict[str, StrategyStats], after: dict[str, StrategyStats]
) -> dict[str, StrategyStats]:
    delta = {}
    for name, current in after.items():
        prev = before.get(name) or StrategyStats(strategy=name)
        delta[name] = StrategyStats(
            strategy=name,
            items_processed=current.items_processed - prev.items_processed,
            duplicates_found=current.duplicates_found - prev.duplicates_found,
            total_confidence=current.total_confidence - prev.total_confidence,
            errors=current.errors - prev.errors,
            processing_time_ms=current.processing_time_ms - prev.processing_time_ms,
        )
    return delta
