# src/dedup/recommendations.py - v1
"""Consolidation, classification, primary selection and recommendation
policy for duplicate detection results."""

from __future__ import annotations

from datetime import datetime

from crawlintel.core.models import CorpusRecord, SimilarItem, SimilarityStrategy
from crawlintel.dedup.models import DuplicateType, MergeStrategy, Recommendation

# === Bands ===
EXACT_THRESHOLD = 0.95
NEAR_THRESHOLD = 0.85
DUPLICATE_THRESHOLD = 0.7

# === Primary selection weights ===
PRIMARY_W_SIMILARITY = 0.4
PRIMARY_W_QUALITY = 0.3
PRIMARY_W_RECENCY = 0.2
PRIMARY_W_TITLE = 0.1
RECENCY_DECAY_DAYS = 365.0
TITLE_COMPLETE_LENGTH = 100.0

MERGEABLE_FIELDS = ("description", "tags", "metadata", "location", "amount")

_STRATEGY_TYPES: dict[SimilarityStrategy, DuplicateType] = {
    SimilarityStrategy.SEMANTIC_ANALYSIS: "semantic_duplicate",
    SimilarityStrategy.STRUCTURAL_SIMILARITY: "structural_duplicate",
    SimilarityStrategy.TEMPORAL_PROXIMITY: "temporal_duplicate",
}


def consolidate(items: list[SimilarItem]) -> list[SimilarItem]:
    """Collapse per-strategy hits by record id.

    The highest similarity wins; on an exact tie the matched fields of both
    hits are merged into the first one seen.
    """
    unique: dict[str, SimilarItem] = {}
    for item in items:
        existing = unique.get(item.id)
        if existing is None or item.similarity > existing.similarity:
            unique[item.id] = item.model_copy(deep=True)
        elif item.similarity == existing.similarity:
            for field in item.matched_fields:
                if field not in existing.matched_fields:
                    existing.matched_fields.append(field)
    return list(unique.values())


def rank(items: list[SimilarItem], min_confidence: float, limit: int) -> list[SimilarItem]:
    kept = [i for i in items if i.similarity >= min_confidence]
    kept.sort(key=lambda i: i.similarity, reverse=True)
    return kept[:limit]


def classify(top: SimilarItem | None) -> tuple[bool, DuplicateType | None, float]:
    """Return ``(is_duplicate, duplicate_type, confidence)`` for the top hit."""
    if top is None:
        return False, None, 0.0
    confidence = top.similarity
    if confidence >= EXACT_THRESHOLD:
        duplicate_type: DuplicateType = "exact_duplicate"
    elif confidence >= NEAR_THRESHOLD:
        duplicate_type = "near_duplicate"
    else:
        duplicate_type = _STRATEGY_TYPES.get(top.matching_strategy, "partial_duplicate")
    return confidence >= DUPLICATE_THRESHOLD, duplicate_type, confidence


def primary_score(item: SimilarItem, record: CorpusRecord, now: datetime) -> float:
    days = (now - record.updated_at).total_seconds() / 86400.0
    recency = max(0.0, 1.0 - days / RECENCY_DECAY_DAYS)
    title_completeness = min(1.0, len(record.title) / TITLE_COMPLETE_LENGTH)
    return (
        item.similarity * PRIMARY_W_SIMILARITY
        + record.quality_score * PRIMARY_W_QUALITY
        + recency * PRIMARY_W_RECENCY
        + title_completeness * PRIMARY_W_TITLE
    )


def select_primary(
    items: list[SimilarItem], records: dict[str, CorpusRecord], now: datetime
) -> str | None:
    scored = [
        (primary_score(item, records[item.id], now), item.id)
        for item in items
        if item.id in records
    ]
    if not scored:
        return None
    return max(scored, key=lambda s: s[0])[1]


def _has_value(record: CorpusRecord, field: str) -> bool:
    value = getattr(record, field)
    if field == "amount":
        return value is not None
    return bool(value)


def fields_to_merge(item: CorpusRecord, primary: CorpusRecord | None) -> list[str]:
    """Fields the new item carries that the primary lacks."""
    return [
        f for f in MERGEABLE_FIELDS
        if _has_value(item, f) and (primary is None or not _has_value(primary, f))
    ]


def recommend(
    item: CorpusRecord,
    items: list[SimilarItem],
    primary: CorpusRecord | None,
    confidence: float,
) -> list[Recommendation]:
    primary_id = primary.id if primary else None
    if not items or primary is None:
        return [Recommendation(
            action="ignore", confidence=1.0,
            reason="No similar items found with sufficient confidence",
        )]
    if confidence >= EXACT_THRESHOLD:
        return [Recommendation(
            action="mark_duplicate", confidence=confidence, primary_id=primary_id,
            reason="Very high similarity detected, likely exact duplicate",
            merge_strategy=MergeStrategy.KEEP_HIGHEST_QUALITY,
        )]
    if confidence >= NEAR_THRESHOLD:
        return [Recommendation(
            action="merge", confidence=confidence, primary_id=primary_id,
            reason="High similarity detected, merge to improve data quality",
            merge_strategy=MergeStrategy.MERGE_COMPLEMENTARY,
            fields_to_merge=fields_to_merge(item, primary),
        )]
    if confidence >= DUPLICATE_THRESHOLD:
        return [Recommendation(
            action="needs_review", confidence=confidence, primary_id=primary_id,
            reason="Moderate similarity detected, manual review recommended",
            alternatives=["merge", "mark_duplicate", "ignore"],
        )]
    return [Recommendation(
        action="keep_primary", confidence=round(1.0 - confidence, 4), primary_id=primary_id,
        reason="Low similarity, keep as separate items",
    )]
