# tests/unit/core/test_text.py - v1
"""Tests for core/text.py and core/fingerprint.py."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from crawlintel.core.fingerprint import normalized_identity, record_content_hash
from crawlintel.core.models import CorpusRecord, new_id
from crawlintel.core.text import (
    find_dates,
    keywords,
    normalize_whitespace,
    parse_amount,
    parse_date,
    sha256_hex,
    top_keywords,
)


class TestParseDate:
    def test_iso(self):
        assert parse_date("2024-01-15") == datetime(2024, 1, 15, tzinfo=timezone.utc)

    def test_uk_slashes(self):
        assert parse_date("15/01/2024") == datetime(2024, 1, 15, tzinfo=timezone.utc)

    def test_ordinal_long_month(self):
        assert parse_date("3rd March 2024") == datetime(2024, 3, 3, tzinfo=timezone.utc)

    def test_us_order_with_comma(self):
        assert parse_date("January 15, 2024") == datetime(2024, 1, 15, tzinfo=timezone.utc)

    def test_result_is_aware(self):
        assert parse_date("2024-01-15T10:30:00").tzinfo is not None

    def test_unparseable(self):
        assert parse_date("next Tuesday") is None


class TestFindDates:
    def test_mixed_formats(self):
        found = find_dates("Held on 2024-01-15, adjourned to 3 March 2024.")
        assert found == [
            datetime(2024, 1, 15, tzinfo=timezone.utc),
            datetime(2024, 3, 3, tzinfo=timezone.utc),
        ]

    def test_none(self):
        assert find_dates("no dates here") == []


class TestParseAmount:
    @pytest.mark.parametrize(
        "text,expected",
        [
            ("£1,250.50", 1250.50),
            ("£2.5m", 2_500_000.0),
            ("£3 billion", 3e9),
            ("Budget: 4,000", 4000.0),
        ],
    )
    def test_amounts(self, text, expected):
        assert parse_amount(text) == pytest.approx(expected)

    def test_no_number(self):
        assert parse_amount("free") is None


class TestKeywords:
    def test_stopwords_and_short_words_removed(self):
        assert keywords("The planning and the budget for this year") == {"planning", "budget", "year"}

    def test_top_keywords_by_frequency(self):
        text = "planning budget planning council planning budget"
        assert top_keywords(text, limit=2) == ["planning", "budget"]

    def test_normalize_whitespace(self):
        assert normalize_whitespace("  a \n\t b  ") == "a b"

    def test_sha256_hex(self):
        assert sha256_hex("abc") == (
            "ba7816bf8f01cfea414140de5dae2223b00361a396177a9cb410ff61f20015ad"
        )


class TestFingerprint:
    def _make_record(self, **overrides) -> CorpusRecord:
        fields = {
            "title": "Planning Committee",
            "description": "Monthly meeting",
            "data_type": "council_meeting",
            "category": "council/meetings",
            "location": "Town Hall",
        }
        fields.update(overrides)
        return CorpusRecord(**fields)

    def test_identity_lowercased_and_joined(self):
        record = self._make_record()
        assert normalized_identity(record) == (
            "planning committee|monthly meeting|council_meeting|council/meetings|town hall"
        )

    def test_hash_ignores_case_and_spacing(self):
        a = self._make_record()
        b = self._make_record(title="PLANNING   committee")
        assert record_content_hash(a) == record_content_hash(b)

    def test_hash_changes_with_content(self):
        a = self._make_record()
        b = self._make_record(location="Civic Centre")
        assert record_content_hash(a) != record_content_hash(b)

    def test_category_depth(self):
        assert self._make_record().category_depth == 2
        assert self._make_record(category="").category_depth == 0

    def test_new_id_prefix(self):
        assert new_id("rec").startswith("rec_")
        assert new_id() != new_id()
