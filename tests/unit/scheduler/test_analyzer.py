# tests/unit/scheduler/test_analyzer.py - v1
"""Tests for scheduler/analyzer.py."""

from __future__ import annotations

import pytest
from bs4 import BeautifulSoup

from crawlintel.scheduler.analyzer import (
    ContentAnalyzer,
    analyze_structure,
    complexity,
    confidence,
    detect_content_type,
    importance,
    sentiment,
)
from crawlintel.scheduler.models import ExtractableData

PADDING = "<p>" + "lorem " * 100 + "</p>"


def _soup(html: str) -> BeautifulSoup:
    return BeautifulSoup(html, "html.parser")


class TestDetectContentType:
    @pytest.mark.parametrize(
        "html,url,expected",
        [
            ("<p>x</p>", "https://x.gov.uk/council/minutes/1", "meeting"),
            ("<title>Agenda</title>", "https://x.gov.uk/a", "meeting"),
            ("<p>x</p>", "https://x.gov.uk/planning/app", "planning"),
            ("<p>Costs £500</p>", "https://x.gov.uk/a", "finance"),
            ("<p>Freedom of Information</p>", "https://x.gov.uk/a", "transparency"),
            ('<div class="service-info">x</div>', "https://x.gov.uk/a", "service"),
            ("<form></form><form></form><form></form>", "https://x.gov.uk/a", "consultation"),
            ("<p>x</p>", "https://x.gov.uk/report/2024", "document"),
            ("<p>x</p>", "https://x.gov.uk/parks", "other"),
        ],
    )
    def test_types(self, html, url, expected):
        assert detect_content_type(html, url, _soup(html)) == expected


class TestScores:
    def test_importance_short_page_penalised(self):
        assert importance("<p>hi</p>", "other", _soup("<p>hi</p>")) == 1

    def test_importance_signals(self):
        html = (
            '<table></table><a href="mailto:a@x.gov.uk">mail</a>'
            "<p>£250 due 01/04/2024</p>" + PADDING
        )
        assert importance(html, "other", _soup(html)) == 7

    def test_importance_capped(self):
        html = '<table class="data-table"></table><p>£1 01/01/2024</p>' + PADDING
        assert importance(html, "meeting", _soup(html)) == 10

    def test_structure_bands(self):
        assert analyze_structure(_soup("<table></table><table></table><ul></ul><ol></ol>")) == "structured"
        assert analyze_structure(_soup("<ul></ul><h1>a</h1><h2>b</h2>")) == "semi-structured"
        assert analyze_structure(_soup("<p>plain</p>")) == "unstructured"

    def test_sentiment(self):
        assert sentiment("Great support and a good outcome") == "positive"
        assert sentiment("A problem and an issue") == "negative"
        assert sentiment("") == "neutral"

    def test_complexity(self):
        assert complexity(_soup("<p>short</p>"), "<p>short</p>") == "simple"
        links = "".join(f'<a href="/{i}">l</a>' for i in range(60))
        html = "<table></table>" * 2 + "<form></form>" * 2 + links
        assert complexity(_soup(html), html) == "moderate"

    def test_confidence(self):
        assert confidence("other", "unstructured", ExtractableData()) == 0.7
        assert confidence("meeting", "semi-structured", ExtractableData(tables=2, forms=1)) == 1.0
        assert confidence("meeting", "unstructured", ExtractableData(lists=1)) == 0.87


class TestContentAnalyzer:
    def test_meeting_page(self, clock, meeting_page):
        analysis = ContentAnalyzer(clock).analyze(
            meeting_page, "https://www.bolton.gov.uk/council/meetings/planning"
        )
        assert analysis.content_type == "meeting"
        assert analysis.change_frequency == "weekly"
        assert analysis.analyzed_at == clock.now
        assert analysis.extractable_data.links == 4
        assert "planning" in analysis.keywords

    def test_freshness_recent(self, clock):
        html = "<time>2026-02-28</time>"
        assert ContentAnalyzer(clock).freshness(_soup(html)) == 10

    def test_freshness_stale(self, clock):
        html = '<p class="date">01/01/2025</p>'
        assert ContentAnalyzer(clock).freshness(_soup(html)) == 2

    def test_freshness_bands(self, clock):
        assert ContentAnalyzer(clock).freshness(_soup('<p class="updated">2026-01-15</p>')) == 6

    def test_freshness_unknown(self, clock):
        assert ContentAnalyzer(clock).freshness(_soup("<p>no dates</p>")) == 5

    def test_analysis_is_frozen(self, clock, meeting_page):
        analysis = ContentAnalyzer(clock).analyze(meeting_page, "https://x.gov.uk/")
        with pytest.raises(Exception):
            analysis.importance = 1
