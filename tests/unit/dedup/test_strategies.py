# tests/unit/dedup/test_strategies.py - v1
"""Tests for dedup/strategies.py."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from crawlintel.core.models import CorpusRecord, SimilarityStrategy
from crawlintel.dedup.strategies import (
    CORROBORATING_CAP,
    combined_score,
    content_hash_strategy,
    semantic_analysis_strategy,
    structural_score,
    temporal_score,
    title_score,
    title_similarity_strategy,
    url_pattern_strategy,
    url_score,
)

EVENT_DATE = datetime(2024, 1, 15, tzinfo=timezone.utc)


def _make_record(title: str = "Planning Committee Meeting", **overrides) -> CorpusRecord:
    fields = {
        "title": title,
        "data_type": "council_meeting",
        "category": "council/meetings",
        "source_url": "https://www.bolton.gov.uk/council/meetings/planning",
        "event_date": EVENT_DATE,
    }
    fields.update(overrides)
    return CorpusRecord(**fields)


class TestPairwiseScores:
    def test_title_short_candidate(self):
        assert title_score(_make_record("Cabinet"), _make_record("Cabinet")) == 0.0

    def test_title_identical(self):
        assert title_score(_make_record(), _make_record()) == 1.0

    @pytest.mark.parametrize(
        "delta,expected",
        [(timedelta(0), 1.0), (timedelta(days=3, hours=12), 0.5), (timedelta(days=8), 0.0)],
    )
    def test_temporal_decay(self, delta, expected):
        a = _make_record()
        b = _make_record(event_date=EVENT_DATE + delta)
        assert temporal_score(a, b) == pytest.approx(expected)

    def test_temporal_falls_back_to_created_at(self):
        a = _make_record(event_date=None)
        b = _make_record(event_date=None, created_at=a.created_at)
        assert temporal_score(a, b) == 1.0

    def test_structural_identical_shape(self):
        assert structural_score(_make_record(), _make_record("Other title")) == pytest.approx(1.0)

    def test_structural_different_type(self):
        a = _make_record()
        b = _make_record(data_type="budget_item", amount=100.0, location="Town Hall")
        # category depth and empty metadata still match
        assert structural_score(a, b) == pytest.approx(0.3)

    def test_url_different_host(self):
        a = _make_record()
        b = _make_record(source_url="https://www.wigan.gov.uk/council/meetings/planning")
        assert url_score(a, b) == 0.0

    def test_url_missing(self):
        assert url_score(_make_record(source_url=""), _make_record()) == 0.0

    def test_combined_identical(self):
        assert combined_score(_make_record(), _make_record()) == pytest.approx(1.0)


class TestStrategies:
    @pytest.mark.asyncio
    async def test_content_hash_match(self, storage):
        stored = _make_record()
        await storage.upsert(stored)
        hits = await content_hash_strategy(_make_record(), storage)
        assert [(h.id, h.similarity) for h in hits] == [(stored.id, 1.0)]
        assert hits[0].matching_strategy == SimilarityStrategy.CONTENT_HASH

    @pytest.mark.asyncio
    async def test_content_hash_ignores_inactive(self, storage):
        await storage.upsert(_make_record(status="merged"))
        assert await content_hash_strategy(_make_record(), storage) == []

    @pytest.mark.asyncio
    async def test_content_hash_excludes_self(self, storage):
        record = _make_record()
        await storage.upsert(record)
        assert await content_hash_strategy(record, storage) == []

    @pytest.mark.asyncio
    async def test_title_short_skipped(self, storage):
        await storage.upsert(_make_record("Cabinet"))
        assert await title_similarity_strategy(_make_record("Cabinet"), storage) == []

    @pytest.mark.asyncio
    async def test_semantic_capped(self, storage):
        await storage.upsert(_make_record())
        hits = await semantic_analysis_strategy(_make_record(), storage)
        assert len(hits) == 1
        assert hits[0].similarity == CORROBORATING_CAP

    @pytest.mark.asyncio
    async def test_url_pattern_threshold(self, storage):
        near = _make_record(source_url="https://www.bolton.gov.uk/council/meetings/planning/2024")
        far = _make_record(source_url="https://www.bolton.gov.uk/news/items/latest/2024")
        await storage.upsert(near)
        await storage.upsert(far)
        candidate = _make_record(source_url="https://www.bolton.gov.uk/council/meetings/planning/2025")
        hits = await url_pattern_strategy(candidate, storage)
        assert [(h.id, h.similarity) for h in hits] == [(near.id, 0.75)]

    @pytest.mark.asyncio
    async def test_url_pattern_no_host(self, storage):
        assert await url_pattern_strategy(_make_record(source_url=""), storage) == []
