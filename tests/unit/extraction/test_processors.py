# tests/unit/extraction/test_processors.py - v1
"""Tests for extraction/processors.py."""

from __future__ import annotations

import pytest

from crawlintel.extraction import processors
from crawlintel.extraction.models import ContentFormat
from crawlintel.extraction.processors import (
    ContentParseError,
    CsvProcessor,
    HtmlProcessor,
    JsonProcessor,
    PdfProcessor,
    UnsupportedContentTypeError,
    XmlProcessor,
    create_processor,
    supported_content_types,
)

URL = "https://www.bolton.gov.uk/page"


class TestCreateProcessor:
    def test_parameterized_mime(self):
        assert isinstance(create_processor("text/html; charset=utf-8"), HtmlProcessor)

    def test_case_insensitive(self):
        assert isinstance(create_processor("Application/JSON"), JsonProcessor)

    def test_rss_is_xml(self):
        assert isinstance(create_processor("application/rss+xml"), XmlProcessor)

    def test_unsupported(self):
        with pytest.raises(UnsupportedContentTypeError, match="text/plain"):
            create_processor("text/plain")

    def test_register_custom(self, monkeypatch):
        monkeypatch.setitem(processors._PROCESSOR_REGISTRY, "text/x-minutes", CsvProcessor)
        assert isinstance(create_processor("text/x-minutes"), CsvProcessor)
        assert "text/x-minutes" in supported_content_types()


class TestHtmlProcessor:
    def test_metadata_and_text(self):
        html = """
        <html><head>
          <title> Bins and recycling </title>
          <meta name="description" content="Collection days">
          <script>var tracking = "secret";</script>
          <style>.x { color: red; }</style>
        </head><body><p>Check your   collection day.</p></body></html>
        """
        processed = HtmlProcessor().process(html, URL)
        assert processed.format == ContentFormat.HTML
        assert processed.metadata["title"] == "Bins and recycling"
        assert processed.metadata["description"] == "Collection days"
        assert processed.metadata["keywords"] == ""
        assert "Check your collection day." in processed.text_content
        assert "tracking" not in processed.text_content
        assert processed.dom is not None

    def test_json_ld_blocks(self):
        html = """
        <script type="application/ld+json">{"@type": "Event", "name": "Fair"}</script>
        <script type="application/ld+json">[{"@type": "Place"}, "junk"]</script>
        <script type="application/ld+json">{not json</script>
        """
        processed = HtmlProcessor().process(html, URL)
        assert [d["@type"] for d in processed.embedded_data] == ["Event", "Place"]


class TestStructuredProcessors:
    def test_json_list(self):
        processed = JsonProcessor().process('[{"a": 1}, {"b": 2}, 3]', URL)
        assert processed.metadata["records"] == 3
        assert processed.embedded_data == [{"a": 1}, {"b": 2}]

    def test_json_invalid(self):
        with pytest.raises(ContentParseError, match="Invalid JSON"):
            JsonProcessor().process("{broken", URL)

    def test_parse_error_is_value_error(self):
        assert issubclass(ContentParseError, ValueError)

    def test_xml_items(self):
        xml = "<rss><channel><item><title>A</title></item><item><title>B</title></item></channel></rss>"
        processed = XmlProcessor().process(xml, URL)
        assert processed.metadata == {"root": "rss", "items": 2}
        assert processed.text_content == "A B"

    def test_xml_invalid(self):
        with pytest.raises(ContentParseError, match="Invalid XML"):
            XmlProcessor().process("<rss><channel>", URL)

    def test_csv_rows_trimmed(self):
        processed = CsvProcessor().process("name , ward\n Jane ,Halliwell\n", URL)
        assert processed.embedded_data == [{"name": "Jane", "ward": "Halliwell"}]
        assert processed.metadata["rows"] == 1

    def test_pdf_placeholder(self):
        processed = PdfProcessor().process("%PDF-1.4", URL)
        assert processed.text_content == ""
        assert processed.metadata["parsed"] is False
