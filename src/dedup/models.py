# src/dedup/models.py - v1
"""Deduplication models: detection results, recommendations, merges and
bulk session reports."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field

from crawlintel.core.models import SimilarItem, new_id, utcnow

DuplicateType = Literal[
    "exact_duplicate",
    "near_duplicate",
    "semantic_duplicate",
    "structural_duplicate",
    "temporal_duplicate",
    "partial_duplicate",
]
RecommendationAction = Literal[
    "merge", "mark_duplicate", "keep_primary", "needs_review", "ignore"
]


class MergeStrategy(str, Enum):
    KEEP_HIGHEST_QUALITY = "keep_highest_quality"
    MERGE_COMPLEMENTARY = "merge_complementary"
    KEEP_MOST_RECENT = "keep_most_recent"
    KEEP_MOST_COMPLETE = "keep_most_complete"
    MANUAL_REVIEW = "manual_review"


class Recommendation(BaseModel):
    action: RecommendationAction
    confidence: float = Field(ge=0.0, le=1.0)
    reason: str
    primary_id: str | None = None
    merge_strategy: MergeStrategy | None = None
    fields_to_merge: list[str] = Field(default_factory=list)
    alternatives: list[str] = Field(default_factory=list)


class DuplicateDetectionResult(BaseModel):
    """Outcome of checking one item against the corpus. Never persisted."""

    item_id: str
    is_duplicate: bool = False
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    duplicate_type: DuplicateType | None = None
    similar_items: list[SimilarItem] = Field(default_factory=list)
    primary_item_id: str | None = None
    recommendations: list[Recommendation] = Field(default_factory=list)

    @property
    def recommendation(self) -> Recommendation | None:
        return self.recommendations[0] if self.recommendations else None


class MergeResult(BaseModel):
    primary_id: str
    merged_ids: list[str] = Field(default_factory=list)
    strategy: MergeStrategy
    success: bool = True
    merged_fields: list[str] = Field(default_factory=list)
    quality_before: float = 0.0
    quality_after: float = 0.0
    message: str = ""

    @property
    def quality_improvement(self) -> float:
        return self.quality_after - self.quality_before


class ReviewItem(BaseModel):
    item_id: str
    result: DuplicateDetectionResult
    queued_at: datetime = Field(default_factory=utcnow)


class StrategyStats(BaseModel):
    strategy: str
    items_processed: int = 0
    duplicates_found: int = 0
    total_confidence: float = 0.0
    errors: int = 0
    processing_time_ms: float = 0.0

    @property
    def avg_confidence(self) -> float:
        return self.total_confidence / self.duplicates_found if self.duplicates_found else 0.0

    @property
    def success_rate(self) -> float:
        if not self.items_processed:
            return 0.0
        return (self.items_processed - self.errors) / self.items_processed


class BulkOptions(BaseModel):
    batch_size: int = Field(default=50, ge=1)
    auto_resolve: bool = False
    auto_resolve_threshold: float = Field(default=0.9, ge=0.0, le=1.0)
    batch_delay_seconds: float = Field(default=0.0, ge=0.0)
    strict: bool = False


class DeduplicationReport(BaseModel):
    session_id: str = Field(default_factory=lambda: new_id("dedup"))
    started_at: datetime = Field(default_factory=utcnow)
    completed_at: datetime | None = None
    total_processed: int = 0
    duplicates_found: int = 0
    items_merged: int = 0
    items_marked_duplicate: int = 0
    items_marked_for_review: int = 0
    errors: int = 0
    strategies: dict[str, StrategyStats] = Field(default_factory=dict)
