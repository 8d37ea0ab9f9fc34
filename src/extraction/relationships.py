# src/extraction/relationships.py - v1
"""Pairwise relationship inference between extracted entities."""

from __future__ import annotations

import json
import re
from datetime import datetime, timedelta
from itertools import combinations

from crawlintel.core.text import parse_date
from crawlintel.extraction.models import EntityRelationship, ExtractedEntity

REFERENCE_CONFIDENCE = 0.7
TEMPORAL_CONFIDENCE = 0.6
TEMPORAL_WINDOW = timedelta(days=7)
MAX_KEYWORD_VALUE_LENGTH = 50
MIN_KEYWORD_LENGTH = 4


def entity_keywords(entity: ExtractedEntity) -> set[str]:
    """Words longer than three characters from the title and short values."""
    words = [w for w in re.split(r"\W+", entity.title) if len(w) >= MIN_KEYWORD_LENGTH]
    for value in entity.data.values():
        if isinstance(value, str) and 0 < len(value) < MAX_KEYWORD_VALUE_LENGTH:
            words.extend(w for w in re.split(r"\W+", value) if len(w) >= MIN_KEYWORD_LENGTH)
    return {w.lower() for w in words}


def entity_date(entity: ExtractedEntity) -> datetime | None:
    for key, value in entity.data.items():
        if ("date" in key.lower() or "time" in key.lower()) and isinstance(value, str):
            parsed = parse_date(value)
            if parsed is not None:
                return parsed
    return None


def infer_relationships(entities: list[ExtractedEntity]) -> list[EntityRelationship]:
    """Keyword containment gives ``references``; close dates give ``related_to``.

    Each unordered pair yields at most one edge per relationship type.
    """
    relationships: list[EntityRelationship] = []
    keywords = {e.id: entity_keywords(e) for e in entities}
    serialized = {e.id: json.dumps(e.data, default=str).lower() for e in entities}
    dates = {e.id: entity_date(e) for e in entities}

    for a, b in combinations(entities, 2):
        shared = next(
            (k for k in sorted(keywords[a.id]) if k in serialized[b.id]), None
        ) or next(
            (k for k in sorted(keywords[b.id]) if k in serialized[a.id]), None
        )
        if shared:
            relationships.append(
                EntityRelationship(
                    source_id=a.id,
                    target_id=b.id,
                    relationship_type="references",
                    confidence=REFERENCE_CONFIDENCE,
                    evidence=f"shared keyword: {shared}",
                )
            )

        date_a, date_b = dates[a.id], dates[b.id]
        if date_a and date_b and abs(date_a - date_b) <= TEMPORAL_WINDOW:
            relationships.append(
                EntityRelationship(
                    source_id=a.id,
                    target_id=b.id,
                    relationship_type="related_to",
                    confidence=TEMPORAL_CONFIDENCE,
                    evidence=f"dates {date_a.date()} and {date_b.date()} within 7 days",
                )
            )
    return relationships
