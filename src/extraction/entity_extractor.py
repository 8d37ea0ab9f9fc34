# src/extraction/entity_extractor.py - v1
"""Rule-based entity extraction over a parsed DOM."""

from __future__ import annotations

import logging
from typing import Any

from bs4 import BeautifulSoup, Tag

from crawlintel.core.text import normalize_whitespace
from crawlintel.extraction.models import (
    EntityType,
    ExtractedEntity,
    ProcessedContent,
    SourceProvenance,
)
from crawlintel.extraction.rules import (
    CONTENT_TYPE_HINTS,
    JSONLD_TYPE_HINTS,
    URL_TYPE_HINTS,
    FieldRule,
    rules_for,
    total_weight,
)

logger = logging.getLogger(__name__)


def infer_entity_types(processed: ProcessedContent, url: str) -> list[EntityType]:
    """Likely entity types from URL path, content phrases and JSON-LD @type.

    Falls back to ``service_info`` when nothing matches. Order is stable
    and duplicates are removed.
    """
    found: list[EntityType] = []
    url_lower = url.lower()
    for hints, entity_type in URL_TYPE_HINTS:
        if any(h in url_lower for h in hints):
            found.append(entity_type)

    for pattern, entity_type in CONTENT_TYPE_HINTS:
        if pattern.search(processed.text_content):
            found.append(entity_type)

    for block in processed.embedded_data:
        raw_type = block.get("@type")
        for t in raw_type if isinstance(raw_type, list) else [raw_type]:
            if isinstance(t, str) and t.lower() in JSONLD_TYPE_HINTS:
                found.append(JSONLD_TYPE_HINTS[t.lower()])

    if not found:
        found.append(EntityType.SERVICE_INFO)
    return list(dict.fromkeys(found))


def _element_value(el: Tag) -> str:
    for attr in ("datetime", "content"):
        if el.get(attr):
            return str(el[attr]).strip()
    return normalize_whitespace(el.get_text(" "))


def extract_field(soup: BeautifulSoup, rule: FieldRule) -> tuple[Any, str | None]:
    """Resolve one field: first selector with non-empty text wins.

    Returns ``(value, selector)`` or ``(None, None)`` when the field did not
    resolve or failed pattern validation.
    """
    value: Any = None
    used: str | None = None
    for selector in rule.selectors:
        elements = soup.select(selector)
        if not elements:
            continue
        if rule.multiple:
            texts = [t for t in (_element_value(el) for el in elements) if t]
            if texts:
                value, used = texts, selector
                break
        else:
            text = _element_value(elements[0])
            if text:
                value, used = text, selector
                break

    if value is None:
        return None, None

    if rule.patterns:
        if isinstance(value, list):
            value = [v for v in value if rule.accepts(v)] or None
        elif not rule.accepts(value):
            value = None
        if value is None:
            return None, None

    if rule.transform is not None:
        value = [rule.transform(v) for v in value] if isinstance(value, list) else rule.transform(value)
    return value, used


def entity_title(entity_type: EntityType, data: dict[str, Any]) -> str:
    if entity_type == EntityType.COUNCIL_MEETING:
        return data.get("meeting_title") or f"Meeting - {data.get('committee_name', 'Unknown')}"
    if entity_type == EntityType.PLANNING_APPLICATION:
        return f"Planning Application {data.get('application_number', 'Unknown')}"
    if entity_type == EntityType.BUDGET_ITEM:
        return f"Budget: {data.get('budget_category', 'Unknown Category')}"
    if entity_type == EntityType.COUNCILLOR:
        return f"Councillor {data.get('name', 'Unknown')}"
    for value in data.values():
        if isinstance(value, str) and value:
            return value
    return f"{entity_type.value} - Unknown"


def extract_entity(
    processed: ProcessedContent,
    entity_type: EntityType,
    url: str,
    content_type: str,
) -> ExtractedEntity | None:
    """Apply one type's rule table; None unless every required field resolved."""
    if processed.dom is None:
        return None

    rules = rules_for(entity_type)
    data: dict[str, Any] = {}
    selectors: dict[str, str] = {}
    matched_weight = 0.0
    for rule in rules:
        value, selector = extract_field(processed.dom, rule)
        if value is None:
            continue
        data[rule.name] = value
        selectors[rule.name] = selector or ""
        matched_weight += rule.weight

    missing = [r.name for r in rules if r.required and r.name not in data]
    if missing:
        logger.debug("No %s on %s: missing %s", entity_type.value, url, missing)
        return None

    return ExtractedEntity(
        type=entity_type,
        title=entity_title(entity_type, data),
        data=data,
        source=SourceProvenance(url=url, content_type=content_type, selectors=selectors),
        confidence=round(matched_weight / total_weight(entity_type), 4),
    )
