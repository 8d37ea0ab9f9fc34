# tests/unit/extraction/test_structured_data.py - v1
"""Tests for extraction/structured_data.py and extraction/language.py."""

from __future__ import annotations

import pytest

from crawlintel.extraction.language import detect_language
from crawlintel.extraction.processors import CsvProcessor, HtmlProcessor, JsonProcessor
from crawlintel.extraction.structured_data import extract_structured_data, infer_data_type

URL = "https://www.bolton.gov.uk/page"


def _html_points(html: str):
    return extract_structured_data(HtmlProcessor().process(html, URL))


class TestInferDataType:
    @pytest.mark.parametrize(
        "value,expected",
        [
            (True, "boolean"),
            ("false", "boolean"),
            (3, "number"),
            ("1,200", "number"),
            ("2024-01-15", "date"),
            ({"a": 1}, "object"),
            ("Town Hall", "string"),
        ],
    )
    def test_types(self, value, expected):
        assert infer_data_type(value) == expected


class TestHtmlSources:
    def test_json_ld(self):
        points = _html_points(
            '<script type="application/ld+json">'
            '{"@context": "https://schema.org", "@type": "Event", "name": "Food Festival",'
            ' "location": {"name": "Victoria Square"}}'
            "</script>"
        )
        assert [p.key for p in points] == ["@type", "name", "location"]
        assert all(p.source == "json-ld" and p.confidence == 0.9 for p in points)
        assert points[2].value == '{"name": "Victoria Square"}'
        assert points[1].context == "Event"

    def test_microdata(self):
        points = _html_points(
            '<div itemscope itemtype="https://schema.org/Place">'
            '<span itemprop="name">Town Hall</span></div>'
        )
        assert len(points) == 1
        assert points[0].key == "name"
        assert points[0].value == "Town Hall"
        assert points[0].context == "https://schema.org/Place"
        assert points[0].source == "microdata"

    def test_table_with_headers(self):
        points = _html_points(
            "<table><tr><th>Service</th><th>Cost</th></tr>"
            "<tr><td>Parking</td><td>£2.50</td></tr></table>"
        )
        assert [(p.key, p.value) for p in points] == [("Service", "Parking"), ("Cost", "£2.50")]
        assert points[0].context == "table_0_row_0"
        assert points[1].data_type == "string"

    def test_table_without_headers(self):
        points = _html_points("<table><tr><td>A</td><td>12</td></tr></table>")
        assert [(p.key, p.data_type) for p in points] == [("column_0", "string"), ("column_1", "number")]

    def test_form_fields(self):
        points = _html_points(
            '<form><label for="pc">Postcode</label><input id="pc" name="postcode" value="">'
            '<input type="hidden" name="token" value="x"><input type="submit" name="go">'
            '<label>Street <input name="street" value="High St"></label></form>'
        )
        assert [(p.key, p.context) for p in points] == [
            ("Postcode", "form_0:postcode"),
            ("Street", "form_0:street"),
        ]
        assert all(p.source == "form" for p in points)


class TestOtherFormats:
    def test_csv_rows(self):
        points = extract_structured_data(CsvProcessor().process("name,ward\nJane,\n", URL))
        assert [(p.key, p.value, p.context) for p in points] == [("name", "Jane", "row_0")]

    def test_json_scalars_only(self):
        points = extract_structured_data(JsonProcessor().process('[{"a": 1, "b": {"c": 2}}]', URL))
        assert [(p.key, p.source, p.data_type) for p in points] == [("a", "derived", "number")]


class TestDetectLanguage:
    def test_english(self):
        assert detect_language("The council and the residents are working with the mayor for this year") == "en"

    def test_welsh(self):
        assert detect_language("Mae y cyngor yn gweithio gyda ein trigolion ac yn y dref") == "cy"

    def test_empty(self):
        assert detect_language("") == "unknown"

    def test_no_markers(self):
        assert detect_language("12345 67890") == "unknown"
