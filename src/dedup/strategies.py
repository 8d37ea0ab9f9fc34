# src/dedup/strategies.py - v1
"""The seven duplicate-detection strategies.

Each strategy returns ``SimilarItem``s for a candidate against the active
corpus. Title and semantic lookups are delegated to storage
(``find_similar``); the others score a candidate pool pairwise.

Only identity signals (content hash, title, combined blend) may reach the
near/exact duplicate bands; corroborating signals are capped just below.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Awaitable, Callable
from urllib.parse import urlparse

from crawlintel.core.fingerprint import record_content_hash
from crawlintel.core.models import CorpusRecord, SimilarItem, SimilarityStrategy
from crawlintel.core.similarity import jaccard, path_segment_overlap, trigram_similarity
from crawlintel.core.text import keywords
from crawlintel.storage.base_storage import BaseStorage
from crawlintel.storage.memory_storage import searchable_text
from crawlintel.storage.models import RecordFilter

logger = logging.getLogger(__name__)

# === Thresholds ===
STRATEGY_THRESHOLDS: dict[SimilarityStrategy, float] = {
    SimilarityStrategy.CONTENT_HASH: 1.0,
    SimilarityStrategy.TITLE_SIMILARITY: 0.75,
    SimilarityStrategy.SEMANTIC_ANALYSIS: 0.6,
    SimilarityStrategy.URL_PATTERN: 0.7,
    SimilarityStrategy.TEMPORAL_PROXIMITY: 0.5,
    SimilarityStrategy.STRUCTURAL_SIMILARITY: 0.8,
    SimilarityStrategy.COMBINED_FEATURES: 0.75,
}

CORROBORATING_CAP = 0.84
MIN_TITLE_LENGTH = 10
TEMPORAL_WINDOW = timedelta(days=7)
CANDIDATE_POOL_LIMIT = 500
STORAGE_PREFILTER = 0.3

# === Structural weights ===
STRUCT_W_DATA_TYPE = 0.4
STRUCT_W_AMOUNT = 0.15
STRUCT_W_LOCATION = 0.15
STRUCT_W_CATEGORY_DEPTH = 0.15
STRUCT_W_METADATA_KEYS = 0.15
MAX_CATEGORY_DEPTH_DIFF = 5

# === Combined blend weights ===
COMBINED_WEIGHTS: dict[SimilarityStrategy, float] = {
    SimilarityStrategy.TITLE_SIMILARITY: 0.3,
    SimilarityStrategy.SEMANTIC_ANALYSIS: 0.25,
    SimilarityStrategy.STRUCTURAL_SIMILARITY: 0.2,
    SimilarityStrategy.TEMPORAL_PROXIMITY: 0.15,
    SimilarityStrategy.URL_PATTERN: 0.1,
}

StrategyFn = Callable[[CorpusRecord, BaseStorage], Awaitable[list[SimilarItem]]]


# ------------------------------------------------------------------
# Pairwise scores
# ------------------------------------------------------------------


def title_score(a: CorpusRecord, b: CorpusRecord) -> float:
    if len(a.title.strip()) < MIN_TITLE_LENGTH:
        return 0.0
    return trigram_similarity(a.title, b.title)


def semantic_score(a: CorpusRecord, b: CorpusRecord) -> float:
    return jaccard(keywords(searchable_text(a)), keywords(searchable_text(b)))


def url_score(a: CorpusRecord, b: CorpusRecord) -> float:
    if not a.source_url or not b.source_url:
        return 0.0
    return path_segment_overlap(a.source_url, b.source_url)


def temporal_score(a: CorpusRecord, b: CorpusRecord) -> float:
    """Linear decay from 1.0 (same instant) to 0.0 at seven days apart."""
    ta = a.event_date or a.created_at
    tb = b.event_date or b.created_at
    hours = abs((ta - tb).total_seconds()) / 3600.0
    return max(0.0, 1.0 - hours / (TEMPORAL_WINDOW.total_seconds() / 3600.0))


def structural_score(a: CorpusRecord, b: CorpusRecord) -> float:
    score = 0.0
    if a.data_type == b.data_type:
        score += STRUCT_W_DATA_TYPE
    if (a.amount is not None) == (b.amount is not None):
        score += STRUCT_W_AMOUNT
    if bool(a.location) == bool(b.location):
        score += STRUCT_W_LOCATION
    depth_diff = abs(a.category_depth - b.category_depth)
    score += STRUCT_W_CATEGORY_DEPTH * max(0.0, 1.0 - depth_diff / MAX_CATEGORY_DEPTH_DIFF)
    keys_a, keys_b = set(a.metadata), set(b.metadata)
    score += STRUCT_W_METADATA_KEYS * (1.0 if not keys_a and not keys_b else jaccard(keys_a, keys_b))
    return min(1.0, score)


def combined_score(a: CorpusRecord, b: CorpusRecord) -> float:
    raw = {
        SimilarityStrategy.TITLE_SIMILARITY: title_score(a, b),
        SimilarityStrategy.SEMANTIC_ANALYSIS: semantic_score(a, b),
        SimilarityStrategy.STRUCTURAL_SIMILARITY: structural_score(a, b),
        SimilarityStrategy.TEMPORAL_PROXIMITY: temporal_score(a, b),
        SimilarityStrategy.URL_PATTERN: url_score(a, b),
    }
    return sum(COMBINED_WEIGHTS[s] * v for s, v in raw.items())


# ------------------------------------------------------------------
# Strategies
# ------------------------------------------------------------------


async def _active_pool(
    candidate: CorpusRecord, storage: BaseStorage, **filters: object
) -> list[CorpusRecord]:
    record_filter = RecordFilter(
        exclude_ids=[candidate.id], limit=CANDIDATE_POOL_LIMIT, **filters  # type: ignore[arg-type]
    )
    return await storage.query(record_filter)


def _score_pool(
    candidate: CorpusRecord,
    pool: list[CorpusRecord],
    strategy: SimilarityStrategy,
    score_fn: Callable[[CorpusRecord, CorpusRecord], float],
    fields: list[str],
    cap: float = 1.0,
) -> list[SimilarItem]:
    threshold = STRATEGY_THRESHOLDS[strategy]
    items = []
    for record in pool:
        score = score_fn(candidate, record)
        if score >= threshold:
            items.append(
                SimilarItem(
                    id=record.id,
                    similarity=round(min(score, cap), 4),
                    matching_strategy=strategy,
                    matched_fields=list(fields),
                )
            )
    return items


async def content_hash_strategy(candidate: CorpusRecord, storage: BaseStorage) -> list[SimilarItem]:
    pool = await _active_pool(candidate, storage, content_hash=record_content_hash(candidate))
    return [
        SimilarItem(
            id=r.id,
            similarity=1.0,
            matching_strategy=SimilarityStrategy.CONTENT_HASH,
            matched_fields=["title", "description", "data_type", "category", "location"],
        )
        for r in pool
    ]


async def title_similarity_strategy(candidate: CorpusRecord, storage: BaseStorage) -> list[SimilarItem]:
    if len(candidate.title.strip()) < MIN_TITLE_LENGTH:
        return []
    return await storage.find_similar(
        candidate,
        SimilarityStrategy.TITLE_SIMILARITY,
        STRATEGY_THRESHOLDS[SimilarityStrategy.TITLE_SIMILARITY],
    )


async def semantic_analysis_strategy(candidate: CorpusRecord, storage: BaseStorage) -> list[SimilarItem]:
    items = await storage.find_similar(
        candidate,
        SimilarityStrategy.SEMANTIC_ANALYSIS,
        STRATEGY_THRESHOLDS[SimilarityStrategy.SEMANTIC_ANALYSIS],
    )
    return [
        i.model_copy(update={"similarity": min(i.similarity, CORROBORATING_CAP)})
        for i in items
    ]


async def url_pattern_strategy(candidate: CorpusRecord, storage: BaseStorage) -> list[SimilarItem]:
    host = urlparse(candidate.source_url).netloc
    if not host:
        return []
    pool = await _active_pool(candidate, storage, host=host)
    return _score_pool(
        candidate, pool, SimilarityStrategy.URL_PATTERN, url_score,
        ["source_url"], cap=CORROBORATING_CAP,
    )


async def temporal_proximity_strategy(candidate: CorpusRecord, storage: BaseStorage) -> list[SimilarItem]:
    pool = await _active_pool(candidate, storage, data_type=candidate.data_type)
    return _score_pool(
        candidate, pool, SimilarityStrategy.TEMPORAL_PROXIMITY, temporal_score,
        ["event_date" if candidate.event_date else "created_at"], cap=CORROBORATING_CAP,
    )


async def structural_similarity_strategy(candidate: CorpusRecord, storage: BaseStorage) -> list[SimilarItem]:
    pool = await _active_pool(candidate, storage, data_type=candidate.data_type)
    return _score_pool(
        candidate, pool, SimilarityStrategy.STRUCTURAL_SIMILARITY, structural_score,
        ["data_type", "amount", "location", "category", "metadata"], cap=CORROBORATING_CAP,
    )


async def combined_features_strategy(candidate: CorpusRecord, storage: BaseStorage) -> list[SimilarItem]:
    pool = {r.id: r for r in await _active_pool(candidate, storage, data_type=candidate.data_type)}
    for strategy in (SimilarityStrategy.TITLE_SIMILARITY, SimilarityStrategy.SEMANTIC_ANALYSIS):
        for item in await storage.find_similar(candidate, strategy, STORAGE_PREFILTER):
            if item.id not in pool:
                record = await storage.get(item.id)
                if record is not None:
                    pool[item.id] = record
    return _score_pool(
        candidate, list(pool.values()), SimilarityStrategy.COMBINED_FEATURES, combined_score,
        ["title", "description", "data_type", "event_date", "source_url"],
    )


STRATEGY_FUNCTIONS: dict[SimilarityStrategy, StrategyFn] = {
    SimilarityStrategy.CONTENT_HASH: content_hash_strategy,
    SimilarityStrategy.TITLE_SIMILARITY: title_similarity_strategy,
    SimilarityStrategy.SEMANTIC_ANALYSIS: semantic_analysis_strategy,
    SimilarityStrategy.URL_PATTERN: url_pattern_strategy,
    SimilarityStrategy.TEMPORAL_PROXIMITY: temporal_proximity_strategy,
    SimilarityStrategy.STRUCTURAL_SIMILARITY: structural_similarity_strategy,
    SimilarityStrategy.COMBINED_FEATURES: combined_features_strategy,
}
