# src/storage/memory_storage.py - v1
"""In-memory corpus storage with trigram and keyword similarity lookups."""

from __future__ import annotations

import asyncio
import logging

from crawlintel.core.fingerprint import record_content_hash
from crawlintel.core.models import CorpusRecord, SimilarItem, SimilarityStrategy, utcnow
from crawlintel.core.similarity import jaccard, trigram_similarity
from crawlintel.core.text import keywords
from crawlintel.storage.base_storage import BaseStorage
from crawlintel.storage.models import RecordFilter

logger = logging.getLogger(__name__)


def searchable_text(record: CorpusRecord) -> str:
    """Text indexed for full-text style lookups."""
    return " ".join([record.title, record.description, record.category])


class MemoryStorage(BaseStorage):
    """Dict-backed storage guarded by an asyncio.Lock."""

    def __init__(self) -> None:
        self._records: dict[str, CorpusRecord] = {}
        self._hashes: dict[str, str] = {}
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._records)

    async def upsert(self, record: CorpusRecord) -> str:
        async with self._lock:
            existing = self._records.get(record.id)
            stored = record.model_copy(deep=True)
            if existing is not None:
                stored.created_at = existing.created_at
                stored.updated_at = utcnow()
            self._records[record.id] = stored
            self._hashes[record.id] = record_content_hash(stored)
        logger.debug("Upserted record %s (%s)", record.id, record.data_type)
        return record.id

    async def get(self, record_id: str) -> CorpusRecord | None:
        record = self._records.get(record_id)
        return record.model_copy(deep=True) if record else None

    async def query(self, record_filter: RecordFilter) -> list[CorpusRecord]:
        async with self._lock:
            matched = [
                r.model_copy(deep=True)
                for r in self._records.values()
                if record_filter.matches(r, self._hashes.get(r.id))
            ]
        matched.sort(key=lambda r: r.created_at, reverse=True)
        if record_filter.limit is not None:
            matched = matched[: record_filter.limit]
        return matched

    async def find_similar(
        self,
        candidate: CorpusRecord,
        strategy: SimilarityStrategy,
        threshold: float,
        limit: int = 10,
    ) -> list[SimilarItem]:
        if strategy == SimilarityStrategy.TITLE_SIMILARITY:
            score_fn, fields = self._title_score, ["title"]
        elif strategy == SimilarityStrategy.SEMANTIC_ANALYSIS:
            score_fn, fields = self._keyword_score, ["title", "description", "category"]
        else:
            raise ValueError(f"Unsupported similarity strategy: {strategy.value}")

        async with self._lock:
            scored = [
                (r.id, score_fn(candidate, r))
                for r in self._records.values()
                if r.id != candidate.id and r.status == "active"
            ]

        items = [
            SimilarItem(
                id=rid,
                similarity=round(score, 4),
                matching_strategy=strategy,
                matched_fields=list(fields),
            )
            for rid, score in scored
            if score >= threshold
        ]
        items.sort(key=lambda i: i.similarity, reverse=True)
        return items[:limit]

    @staticmethod
    def _title_score(candidate: CorpusRecord, record: CorpusRecord) -> float:
        return trigram_similarity(candidate.title, record.title)

    @staticmethod
    def _keyword_score(candidate: CorpusRecord, record: CorpusRecord) -> float:
        return jaccard(keywords(searchable_text(candidate)), keywords(searchable_text(record)))
