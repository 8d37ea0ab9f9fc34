# src/extraction/structured_data.py - v1
"""Structured-data mining: JSON-LD, microdata, tables, forms and
embedded records, each tagged with its source kind and confidence."""

from __future__ import annotations

import json
import logging
import re
from typing import Any

from bs4 import BeautifulSoup, Tag

from crawlintel.core.text import normalize_whitespace
from crawlintel.extraction.models import ContentFormat, ProcessedContent, StructuredDataPoint

logger = logging.getLogger(__name__)

SOURCE_CONFIDENCE: dict[str, float] = {
    "json-ld": 0.9,
    "microdata": 0.8,
    "table": 0.7,
    "form": 0.6,
    "derived": 0.5,
}

_ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}")


def infer_data_type(value: Any) -> str:
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, (dict, list)):
        return "object"
    text = str(value).strip()
    if text.lower() in ("true", "false"):
        return "boolean"
    try:
        float(text.replace(",", ""))
        return "number"
    except ValueError:
        pass
    if _ISO_DATE_RE.match(text):
        return "date"
    return "string"


def _point(key: str, value: Any, source: str, context: str = "") -> StructuredDataPoint:
    return StructuredDataPoint(
        key=key,
        value=value,
        data_type=infer_data_type(value),
        source=source,  # type: ignore[arg-type]
        confidence=SOURCE_CONFIDENCE[source],
        context=context,
    )


def extract_structured_data(processed: ProcessedContent) -> list[StructuredDataPoint]:
    """Harvest every structured data point from processed content."""
    points: list[StructuredDataPoint] = []
    if processed.format == ContentFormat.HTML:
        points.extend(extract_json_ld(processed.embedded_data))
        if processed.dom is not None:
            points.extend(extract_microdata(processed.dom))
            points.extend(extract_tables(processed.dom))
            points.extend(extract_forms(processed.dom))
    elif processed.format == ContentFormat.CSV:
        for i, row in enumerate(processed.embedded_data):
            for key, value in row.items():
                if value:
                    points.append(_point(key, value, "table", f"row_{i}"))
    elif processed.format == ContentFormat.JSON:
        for i, record in enumerate(processed.embedded_data):
            for key, value in record.items():
                if not isinstance(value, (dict, list)):
                    points.append(_point(key, value, "derived", f"record_{i}"))
    return points


def extract_json_ld(blocks: list[dict[str, Any]]) -> list[StructuredDataPoint]:
    points = []
    for i, block in enumerate(blocks):
        context = str(block.get("@type", f"jsonld_{i}"))
        for key, value in block.items():
            if key == "@context":
                continue
            if isinstance(value, (dict, list)):
                value = json.dumps(value, ensure_ascii=False)
            points.append(_point(key, value, "json-ld", context))
    return points


def extract_microdata(soup: BeautifulSoup) -> list[StructuredDataPoint]:
    points = []
    for el in soup.select("[itemprop]"):
        value = el.get("content") or normalize_whitespace(el.get_text(" "))
        if value:
            scope = el.find_parent(attrs={"itemtype": True})
            context = str(scope.get("itemtype", "")) if scope else ""
            points.append(_point(str(el["itemprop"]), str(value), "microdata", context))
    return points


def extract_tables(soup: BeautifulSoup) -> list[StructuredDataPoint]:
    points = []
    for t_idx, table in enumerate(soup.find_all("table")):
        rows = table.find_all("tr")
        if not rows:
            continue
        header_cells = rows[0].find_all("th")
        headers = [normalize_whitespace(th.get_text(" ")) for th in header_cells]
        body_rows = rows[1:] if headers else rows
        for r_idx, row in enumerate(body_rows):
            for c_idx, cell in enumerate(row.find_all(["td", "th"])):
                value = normalize_whitespace(cell.get_text(" "))
                if not value:
                    continue
                key = headers[c_idx] if c_idx < len(headers) and headers[c_idx] else f"column_{c_idx}"
                points.append(_point(key, value, "table", f"table_{t_idx}_row_{r_idx}"))
    return points


def extract_forms(soup: BeautifulSoup) -> list[StructuredDataPoint]:
    points = []
    for f_idx, form in enumerate(soup.find_all("form")):
        for field in form.find_all(["input", "select", "textarea"]):
            name = field.get("name")
            if not name or field.get("type") in ("hidden", "submit", "button"):
                continue
            label = _resolve_label(soup, field) or str(name)
            value = field.get("value", "")
            points.append(_point(label, value, "form", f"form_{f_idx}:{name}"))
    return points


def _resolve_label(soup: BeautifulSoup, field: Tag) -> str:
    field_id = field.get("id")
    if field_id:
        label = soup.find("label", attrs={"for": field_id})
        if label:
            return normalize_whitespace(label.get_text(" "))
    prev = field.find_previous_sibling()
    if prev is not None and prev.name == "label":
        return normalize_whitespace(prev.get_text(" "))
    parent = field.find_parent("label")
    if parent is not None:
        return normalize_whitespace(parent.get_text(" "))
    return ""
