# tests/unit/dedup/test_recommendations.py - v1
"""Tests for dedup/recommendations.py and dedup/merge.py."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from crawlintel.core.models import CorpusRecord, SimilarItem, SimilarityStrategy
from crawlintel.dedup.merge import MergeError, apply_merge, completeness
from crawlintel.dedup.models import MergeStrategy
from crawlintel.dedup.recommendations import (
    classify,
    consolidate,
    fields_to_merge,
    rank,
    recommend,
    select_primary,
)

NOW = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


def _item(item_id: str, similarity: float, strategy=SimilarityStrategy.TITLE_SIMILARITY, fields=None):
    return SimilarItem(
        id=item_id, similarity=similarity, matching_strategy=strategy,
        matched_fields=fields or ["title"],
    )


def _make_record(record_id: str, **overrides) -> CorpusRecord:
    fields = {
        "id": record_id,
        "title": "Cabinet Meeting",
        "data_type": "council_meeting",
        "updated_at": NOW,
    }
    fields.update(overrides)
    return CorpusRecord(**fields)


class TestConsolidate:
    def test_highest_wins(self):
        merged = consolidate([_item("a", 0.7), _item("a", 0.9, SimilarityStrategy.CONTENT_HASH)])
        assert len(merged) == 1
        assert merged[0].similarity == 0.9
        assert merged[0].matching_strategy == SimilarityStrategy.CONTENT_HASH

    def test_tie_merges_fields(self):
        merged = consolidate([
            _item("a", 0.8, fields=["title"]),
            _item("a", 0.8, SimilarityStrategy.URL_PATTERN, fields=["source_url"]),
        ])
        assert merged[0].matched_fields == ["title", "source_url"]
        assert merged[0].matching_strategy == SimilarityStrategy.TITLE_SIMILARITY

    def test_rank_filters_and_limits(self):
        ranked = rank([_item("a", 0.65), _item("b", 0.9), _item("c", 0.5), _item("d", 0.8)], 0.6, 2)
        assert [i.id for i in ranked] == ["b", "d"]


class TestClassify:
    @pytest.mark.parametrize(
        "similarity,strategy,expected",
        [
            (0.97, SimilarityStrategy.TITLE_SIMILARITY, (True, "exact_duplicate")),
            (0.9, SimilarityStrategy.TITLE_SIMILARITY, (True, "near_duplicate")),
            (0.8, SimilarityStrategy.SEMANTIC_ANALYSIS, (True, "semantic_duplicate")),
            (0.75, SimilarityStrategy.URL_PATTERN, (True, "partial_duplicate")),
            (0.65, SimilarityStrategy.TEMPORAL_PROXIMITY, (False, "temporal_duplicate")),
        ],
    )
    def test_bands(self, similarity, strategy, expected):
        is_duplicate, duplicate_type, confidence = classify(_item("a", similarity, strategy))
        assert (is_duplicate, duplicate_type) == expected
        assert confidence == similarity

    def test_no_hits(self):
        assert classify(None) == (False, None, 0.0)


class TestSelectPrimary:
    def test_quality_and_recency_outweigh_small_similarity_gap(self):
        items = [_item("old", 0.9), _item("fresh", 0.85)]
        records = {
            "old": _make_record("old", quality_score=0.3, updated_at=NOW - timedelta(days=300)),
            "fresh": _make_record("fresh", quality_score=0.9),
        }
        assert select_primary(items, records, NOW) == "fresh"

    def test_missing_records(self):
        assert select_primary([_item("gone", 0.9)], {}, NOW) is None


class TestRecommend:
    def test_ignore_without_primary(self):
        recs = recommend(_make_record("new"), [], None, 0.0)
        assert recs[0].action == "ignore"
        assert recs[0].confidence == 1.0

    def test_exact(self):
        primary = _make_record("p")
        recs = recommend(_make_record("new"), [_item("p", 0.99)], primary, 0.99)
        assert recs[0].action == "mark_duplicate"
        assert recs[0].merge_strategy == MergeStrategy.KEEP_HIGHEST_QUALITY

    def test_near_lists_mergeable_fields(self):
        primary = _make_record("p")
        item = _make_record("new", description="Agenda", location="Town Hall", tags=["cabinet"])
        recs = recommend(item, [_item("p", 0.9)], primary, 0.9)
        assert recs[0].action == "merge"
        assert recs[0].merge_strategy == MergeStrategy.MERGE_COMPLEMENTARY
        assert recs[0].fields_to_merge == ["description", "tags", "location"]

    def test_moderate(self):
        recs = recommend(_make_record("new"), [_item("p", 0.72)], _make_record("p"), 0.72)
        assert recs[0].action == "needs_review"
        assert recs[0].alternatives == ["merge", "mark_duplicate", "ignore"]

    def test_low(self):
        recs = recommend(_make_record("new"), [_item("p", 0.6)], _make_record("p"), 0.6)
        assert recs[0].action == "keep_primary"
        assert recs[0].confidence == 0.4

    def test_fields_to_merge_amount_zero_counts(self):
        assert fields_to_merge(_make_record("n", amount=0.0), _make_record("p")) == ["amount"]


class TestApplyMerge:
    def test_complementary_fills_gaps(self):
        primary = _make_record("p", tags=["cabinet"], quality_score=0.4)
        dup = _make_record(
            "d", location="Town Hall", tags=["cabinet", "budget"],
            metadata={"room": "2"}, quality_score=0.7,
        )
        survivor, changed = apply_merge(primary, [dup], MergeStrategy.MERGE_COMPLEMENTARY)
        assert survivor.id == "p"
        assert survivor.location == "Town Hall"
        assert survivor.tags == ["cabinet", "budget"]
        assert survivor.metadata["room"] == "2"
        assert survivor.metadata["merged_from"] == ["d"]
        assert survivor.quality_score == 0.7
        assert changed == ["location", "tags", "metadata"]

    def test_highest_quality_adopts_duplicate(self):
        primary = _make_record("p", quality_score=0.2)
        dup = _make_record("d", title="Cabinet Meeting - full agenda", quality_score=0.9)
        survivor, changed = apply_merge(primary, [dup], MergeStrategy.KEEP_HIGHEST_QUALITY)
        assert survivor.id == "p"
        assert survivor.created_at == primary.created_at
        assert survivor.title == "Cabinet Meeting - full agenda"
        assert "title" in changed
        assert survivor.status == "active"

    def test_most_complete(self):
        primary = _make_record("p")
        dup = _make_record("d", description="x", category="council", location="Hall")
        survivor, _ = apply_merge(primary, [dup], MergeStrategy.KEEP_MOST_COMPLETE)
        assert survivor.location == "Hall"
        assert completeness(survivor) > completeness(primary)

    def test_manual_review_rejected(self):
        with pytest.raises(MergeError):
            apply_merge(_make_record("p"), [], MergeStrategy.MANUAL_REVIEW)
