# tests/unit/extraction/test_extractor.py - v1
"""Tests for extraction/extractor.py."""

from __future__ import annotations

import pytest

from crawlintel.core.text import sha256_hex
from crawlintel.extraction import extractor as extractor_module
from crawlintel.extraction.extractor import ContentExtractor, semantic_tags
from crawlintel.extraction.models import ContentFormat, EntityRelationship, EntityType
from crawlintel.extraction.processors import ContentParseError, UnsupportedContentTypeError

MEETING_URL = "https://www.bolton.gov.uk/council/meetings/planning-committee-2024-01-15"


@pytest.fixture
def extractor(monitor, clock) -> ContentExtractor:
    return ContentExtractor(monitor, clock=clock)


class TestExtractData:
    def test_meeting_page(self, extractor, meeting_page):
        result = extractor.extract_data(meeting_page, "text/html", MEETING_URL)
        assert [e.type for e in result.entities] == [EntityType.COUNCIL_MEETING]
        entity = result.entities[0]
        assert entity.data["meeting_date"] == "2024-01-15"
        assert entity.validation.is_valid
        assert result.confidence == entity.confidence
        assert 0.0 < result.quality_score <= 1.0
        assert result.metadata.format == ContentFormat.HTML
        assert result.metadata.checksum == sha256_hex(meeting_page)
        assert result.metadata.page_title == "Planning Committee Meeting - Bolton Council"
        assert result.metadata.errors == []
        assert result.semantic_tags[0] == "council_meeting"

    def test_timing_recorded(self, extractor, monitor, meeting_page):
        extractor.extract_data(meeting_page, "text/html", MEETING_URL)
        samples = [s for s in monitor.samples if s.operation == "data_extraction"]
        assert len(samples) == 1
        assert samples[0].success
        assert samples[0].metadata["entities"] == 1

    def test_explicit_entity_types(self, extractor, meeting_page):
        result = extractor.extract_data(
            meeting_page, "text/html", MEETING_URL, entity_types=[EntityType.SERVICE_INFO]
        )
        assert [e.type for e in result.entities] == [EntityType.SERVICE_INFO]
        assert result.entities[0].data["service_name"] == "Planning Committee Meeting"

    def test_max_entities(self, extractor, meeting_page):
        result = extractor.extract_data(
            meeting_page,
            "text/html",
            MEETING_URL,
            entity_types=[EntityType.COUNCIL_MEETING, EntityType.SERVICE_INFO],
            max_entities=1,
        )
        assert len(result.entities) == 1

    def test_entity_type_failure_isolated(self, extractor, monitor, meeting_page, monkeypatch):
        real = extractor_module.extract_entity

        def flaky(processed, entity_type, url, content_type):
            if entity_type == EntityType.PLANNING_APPLICATION:
                raise RuntimeError("selector exploded")
            return real(processed, entity_type, url, content_type)

        monkeypatch.setattr(extractor_module, "extract_entity", flaky)
        result = extractor.extract_data(meeting_page, "text/html", MEETING_URL)
        assert [e.type for e in result.entities] == [EntityType.COUNCIL_MEETING]
        assert result.metadata.errors == ["planning_application: selector exploded"]
        assert monitor.errors[0].operation == "extract:planning_application"

    def test_relationship_bonus_capped(self, extractor, meeting_page, monkeypatch):
        edges = [
            EntityRelationship(
                source_id="a", target_id="b", relationship_type="references", confidence=0.7
            )
            for _ in range(10)
        ]
        monkeypatch.setattr(extractor_module, "infer_relationships", lambda entities: edges)
        result = extractor.extract_data(meeting_page, "text/html", MEETING_URL)
        assert result.confidence == pytest.approx(result.entities[0].confidence + 0.1)

    def test_no_entities_zero_confidence(self, extractor):
        result = extractor.extract_data(
            '{"name": "Parks"}', "application/json", "https://x.gov.uk/api/parks"
        )
        assert result.entities == []
        assert result.confidence == 0.0
        assert [p.key for p in result.structured_data] == ["name"]
        assert result.quality_score == pytest.approx(0.01)

    def test_parse_error_recorded(self, extractor, monitor):
        with pytest.raises(ContentParseError):
            extractor.extract_data("{broken", "application/json", "https://x.gov.uk/api")
        assert monitor.errors[0].operation == "extract"
        assert [s.success for s in monitor.samples] == [False]

    def test_unsupported_type(self, extractor):
        with pytest.raises(UnsupportedContentTypeError):
            extractor.extract_data("plain", "text/plain", "https://x.gov.uk/readme")

    def test_without_monitor(self, meeting_page):
        result = ContentExtractor().extract_data(meeting_page, "text/html", MEETING_URL)
        assert result.entities


class TestSemanticTags:
    def test_entity_types_first(self):
        tags = semantic_tags("budget budget budget council council parks", [])
        assert tags == ["budget", "council", "parks"]

    def test_stopwords_and_short_words_skipped(self):
        assert semantic_tags("there their this is a map", []) == []
