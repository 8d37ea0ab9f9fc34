# src/extraction/validation.py - v1
"""Entity validation and extraction quality scoring."""

from __future__ import annotations

import re
from datetime import datetime
from typing import Callable

from crawlintel.core.models import utcnow
from crawlintel.core.text import parse_date
from crawlintel.extraction.models import EntityValidation, ExtractedEntity, StructuredDataPoint
from crawlintel.extraction.rules import required_fields

FUTURE_DATE_PENALTY = 0.1
INVALID_DATE_PENALTY = 0.2
BAD_EMAIL_PENALTY = 0.2
BAD_PHONE_PENALTY = 0.1
STRUCTURED_BONUS_PER_POINT = 0.01
STRUCTURED_BONUS_CAP = 0.2

_EMAIL_RE = re.compile(r"^[\w.+-]+@[\w-]+\.[\w.-]+$")
_PHONE_RE = re.compile(r"^(?:\+44\s?|0)\d[\d\s]{8,12}\d$")


def validate_entity(
    entity: ExtractedEntity, clock: Callable[[], datetime] = utcnow
) -> EntityValidation:
    """Score completeness, consistency and accuracy of one entity."""
    issues: list[str] = []
    critical = False

    required = required_fields(entity.type)
    present = [f for f in required if entity.data.get(f) not in (None, "", [])]
    completeness = len(present) / len(required) if required else 1.0
    for field in required:
        if field not in present:
            issues.append(f"Missing required field: {field}")
            critical = True

    consistency = 1.0
    now = clock()
    for key, value in entity.data.items():
        if "date" not in key.lower() or not isinstance(value, str):
            continue
        parsed = parse_date(value)
        if parsed is None:
            consistency -= INVALID_DATE_PENALTY
            issues.append(f"Invalid date in {key}: {value!r}")
        elif parsed > now:
            consistency -= FUTURE_DATE_PENALTY
            issues.append(f"Future date in {key}: {value}")

    accuracy = entity.confidence
    for key, value in entity.data.items():
        if not isinstance(value, str):
            continue
        if "email" in key.lower() and not _EMAIL_RE.match(value.strip()):
            accuracy -= BAD_EMAIL_PENALTY
            issues.append(f"Malformed email in {key}")
        if "phone" in key.lower() and not _PHONE_RE.match(value.strip()):
            accuracy -= BAD_PHONE_PENALTY
            issues.append(f"Malformed phone number in {key}")

    return EntityValidation(
        completeness=completeness,
        consistency=max(0.0, consistency),
        accuracy=max(0.0, min(1.0, accuracy)),
        issues=issues,
        critical=critical,
    )


def quality_score(
    entities: list[ExtractedEntity], structured: list[StructuredDataPoint]
) -> float:
    """Confidence-weighted mean validation score plus a structured-data bonus."""
    bonus = min(STRUCTURED_BONUS_CAP, len(structured) * STRUCTURED_BONUS_PER_POINT)
    total_confidence = sum(e.confidence for e in entities)
    if total_confidence <= 0:
        return min(1.0, bonus)
    weighted = sum(e.confidence * e.validation.score for e in entities) / total_confidence
    return max(0.0, min(1.0, weighted + bonus))
