# tests/unit/core/test_similarity.py - v1
"""Tests for core/similarity.py - trigram, Jaccard and URL path overlap."""

from __future__ import annotations

import pytest

from crawlintel.core.similarity import (
    jaccard,
    path_segment_overlap,
    path_segments,
    trigram_similarity,
    trigrams,
)


class TestTrigrams:
    def test_word_padding(self):
        assert trigrams("cat") == {"  c", " ca", "cat", "at "}

    def test_case_and_punctuation_ignored(self):
        assert trigrams("Cat!") == trigrams("cat")

    def test_empty(self):
        assert trigrams("") == set()
        assert trigrams("!!!") == set()


class TestTrigramSimilarity:
    def test_identical(self):
        assert trigram_similarity("Planning Committee", "planning committee") == 1.0

    def test_disjoint(self):
        assert trigram_similarity("abc", "xyz") == 0.0

    def test_empty_side(self):
        assert trigram_similarity("", "planning") == 0.0

    def test_near_duplicate_titles_score_high(self):
        score = trigram_similarity(
            "Planning Committee Meeting - 15 January 2024",
            "Planning Committee Meeting - January 15, 2024",
        )
        assert score > 0.85

    def test_symmetric(self):
        a, b = "council budget 2024", "budget council"
        assert trigram_similarity(a, b) == trigram_similarity(b, a)


class TestJaccard:
    def test_both_empty(self):
        assert jaccard([], []) == 0.0

    def test_partial(self):
        assert jaccard(["a", "b"], ["b", "c"]) == pytest.approx(1 / 3)

    def test_duplicates_collapse(self):
        assert jaccard(["a", "a"], ["a"]) == 1.0


class TestPathOverlap:
    def test_segments(self):
        assert path_segments("https://x.gov.uk/a//b/") == ["a", "b"]

    def test_positional_match(self):
        score = path_segment_overlap(
            "https://x.gov.uk/council/meetings/one",
            "https://x.gov.uk/council/meetings/two",
        )
        assert score == pytest.approx(2 / 3)

    def test_different_hosts(self):
        assert path_segment_overlap(
            "https://a.gov.uk/council/meetings", "https://b.gov.uk/council/meetings"
        ) == 0.0

    def test_short_paths(self):
        assert path_segment_overlap("https://a.gov.uk/one", "https://a.gov.uk/one") == 0.0
