# src/extraction/processors.py - v1
"""Format processors: normalize fetched content into ProcessedContent.

The registry maps MIME types to a closed set of ``ContentFormat`` variants,
each with one processor class.
"""

from __future__ import annotations

import csv
import io
import json
import logging
import xml.etree.ElementTree as ET
from abc import ABC, abstractmethod

from bs4 import BeautifulSoup

from crawlintel.core.text import normalize_whitespace
from crawlintel.extraction.models import ContentFormat, ProcessedContent

logger = logging.getLogger(__name__)


class UnsupportedContentTypeError(ValueError):
    """Raised when no processor is registered for a content type."""


class ContentParseError(ValueError):
    """Raised when content does not parse as its declared format."""


class BaseProcessor(ABC):
    """Unified interface for content-format processors."""

    format: ContentFormat

    @abstractmethod
    def process(self, content: str, url: str) -> ProcessedContent:
        """Normalize raw content."""


class HtmlProcessor(BaseProcessor):
    format = ContentFormat.HTML

    def process(self, content: str, url: str) -> ProcessedContent:
        soup = BeautifulSoup(content, "html.parser")
        json_ld: list[dict] = []
        for script in soup.select('script[type="application/ld+json"]'):
            try:
                data = json.loads(script.string or "{}")
            except json.JSONDecodeError:
                logger.debug("Skipping invalid JSON-LD block on %s", url)
                continue
            json_ld.extend(data if isinstance(data, list) else [data])

        title = soup.title.get_text(strip=True) if soup.title else ""
        description = _meta_content(soup, "description")
        keywords = _meta_content(soup, "keywords")

        # Text excludes script/style payloads.
        text_soup = BeautifulSoup(content, "html.parser")
        for tag in text_soup(["script", "style", "noscript"]):
            tag.decompose()

        return ProcessedContent(
            format=self.format,
            text_content=normalize_whitespace(text_soup.get_text(" ")),
            dom=soup,
            embedded_data=[d for d in json_ld if isinstance(d, dict)],
            metadata={"title": title, "description": description, "keywords": keywords},
        )


class JsonProcessor(BaseProcessor):
    format = ContentFormat.JSON

    def process(self, content: str, url: str) -> ProcessedContent:
        try:
            data = json.loads(content)
        except json.JSONDecodeError as exc:
            raise ContentParseError(f"Invalid JSON content from {url}: {exc}") from exc
        records = data if isinstance(data, list) else [data]
        return ProcessedContent(
            format=self.format,
            text_content=json.dumps(data, ensure_ascii=False),
            embedded_data=[r for r in records if isinstance(r, dict)],
            metadata={"records": len(records)},
        )


class XmlProcessor(BaseProcessor):
    format = ContentFormat.XML

    def process(self, content: str, url: str) -> ProcessedContent:
        try:
            root = ET.fromstring(content)
        except ET.ParseError as exc:
            raise ContentParseError(f"Invalid XML content from {url}: {exc}") from exc
        text = normalize_whitespace(" ".join(t for t in root.itertext()))
        return ProcessedContent(
            format=self.format,
            text_content=text,
            metadata={"root": root.tag, "items": len(root.findall(".//item"))},
        )


class CsvProcessor(BaseProcessor):
    format = ContentFormat.CSV

    def process(self, content: str, url: str) -> ProcessedContent:
        reader = csv.DictReader(io.StringIO(content))
        rows = [
            {(k or "").strip(): (v or "").strip() for k, v in row.items()}
            for row in reader
        ]
        return ProcessedContent(
            format=self.format,
            text_content=content,
            embedded_data=rows,
            metadata={"headers": reader.fieldnames or [], "rows": len(rows)},
        )


class PdfProcessor(BaseProcessor):
    """Placeholder: PDF bodies are not parsed, only recorded."""

    format = ContentFormat.PDF

    def process(self, content: str, url: str) -> ProcessedContent:
        return ProcessedContent(
            format=self.format,
            text_content="",
            metadata={"content_type": "application/pdf", "url": url, "parsed": False},
        )


class ExcelProcessor(BaseProcessor):
    """Placeholder: spreadsheets are not parsed, only recorded."""

    format = ContentFormat.EXCEL

    def process(self, content: str, url: str) -> ProcessedContent:
        return ProcessedContent(
            format=self.format,
            text_content="",
            metadata={"content_type": "application/vnd.ms-excel", "url": url, "parsed": False},
        )


# Registry maps MIME type -> processor class.
_PROCESSOR_REGISTRY: dict[str, type[BaseProcessor]] = {
    "text/html": HtmlProcessor,
    "application/xhtml+xml": HtmlProcessor,
    "application/json": JsonProcessor,
    "application/ld+json": JsonProcessor,
    "application/xml": XmlProcessor,
    "text/xml": XmlProcessor,
    "application/rss+xml": XmlProcessor,
    "application/pdf": PdfProcessor,
    "text/csv": CsvProcessor,
    "application/vnd.ms-excel": ExcelProcessor,
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet": ExcelProcessor,
}


def create_processor(content_type: str) -> BaseProcessor:
    """Create a processor for a (possibly parameterized) content type.

    Raises:
        UnsupportedContentTypeError: If no processor is registered.
    """
    mime = content_type.split(";", 1)[0].strip().lower()
    cls = _PROCESSOR_REGISTRY.get(mime)
    if cls is None:
        raise UnsupportedContentTypeError(
            f"No processor for content type {mime!r}. "
            f"Supported: {', '.join(sorted(_PROCESSOR_REGISTRY))}"
        )
    return cls()


def register_processor(content_type: str, cls: type[BaseProcessor]) -> None:
    """Register a custom processor for a MIME type."""
    _PROCESSOR_REGISTRY[content_type.lower()] = cls


def supported_content_types() -> list[str]:
    return sorted(_PROCESSOR_REGISTRY)


def _meta_content(soup: BeautifulSoup, name: str) -> str:
    tag = soup.find("meta", attrs={"name": name})
    return str(tag.get("content", "")) if tag else ""
