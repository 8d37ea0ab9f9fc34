# src/extraction/extractor.py - v1
"""Content extractor: format dispatch, entity rules, structured data,
relationships, validation and quality scoring for one fetched document.

Errors in one entity type are recorded and skipped; the remaining types
are still extracted.
"""

from __future__ import annotations

import logging
import time
from collections import Counter
from datetime import datetime
from typing import Callable

from crawlintel.core.models import utcnow
from crawlintel.core.text import sha256_hex, tokenize
from crawlintel.extraction.entity_extractor import extract_entity, infer_entity_types
from crawlintel.extraction.language import detect_language
from crawlintel.extraction.models import (
    EntityType,
    ExtractedEntity,
    ExtractionMetadata,
    ExtractionResult,
)
from crawlintel.extraction.processors import create_processor
from crawlintel.extraction.relationships import infer_relationships
from crawlintel.extraction.structured_data import extract_structured_data
from crawlintel.extraction.validation import quality_score, validate_entity
from crawlintel.monitoring.monitor import Monitor

logger = logging.getLogger(__name__)

RELATIONSHIP_BONUS_PER_EDGE = 0.02
RELATIONSHIP_BONUS_CAP = 0.1
MAX_CONTENT_TAGS = 10
_TAG_STOPWORDS = frozenset(
    {"this", "that", "with", "have", "will", "from", "they", "been", "said", "there", "their"}
)


class ContentExtractor:
    """Turns fetched content into validated entities and structured data."""

    def __init__(
        self,
        monitor: Monitor | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._monitor = monitor
        self._clock = clock

    def extract_data(
        self,
        content: str,
        content_type: str,
        url: str,
        entity_types: list[EntityType] | None = None,
        max_entities: int | None = None,
    ) -> ExtractionResult:
        """Extract everything from one document.

        Raises:
            UnsupportedContentTypeError: If no processor handles ``content_type``.
            ContentParseError: If the content does not parse as its format.
        """
        start = time.perf_counter()
        timer_id = self._monitor.start_timing("data_extraction", {"url": url}) if self._monitor else None

        processor = create_processor(content_type)
        try:
            processed = processor.process(content, url)
        except ValueError as exc:
            self._record_error(exc, url)
            if timer_id:
                self._monitor.end_timing(timer_id, success=False)  # type: ignore[union-attr]
            raise

        types = entity_types or infer_entity_types(processed, url)
        entities: list[ExtractedEntity] = []
        errors: list[str] = []
        for entity_type in types:
            try:
                entity = extract_entity(processed, entity_type, url, content_type)
            except Exception as exc:  # recorded; remaining types continue
                self._record_error(exc, url, entity_type.value)
                errors.append(f"{entity_type.value}: {exc}")
                continue
            if entity is not None:
                entities.append(entity)
            if max_entities is not None and len(entities) >= max_entities:
                break

        structured = extract_structured_data(processed)
        relationships = infer_relationships(entities)

        for entity in entities:
            entity.validation = validate_entity(entity, self._clock)

        confidence = 0.0
        if entities:
            confidence = sum(e.confidence for e in entities) / len(entities)
            confidence += min(RELATIONSHIP_BONUS_CAP, len(relationships) * RELATIONSHIP_BONUS_PER_EDGE)

        text = processed.text_content
        result = ExtractionResult(
            entities=entities,
            structured_data=structured,
            relationships=relationships,
            semantic_tags=semantic_tags(text, entities),
            quality_score=quality_score(entities, structured),
            confidence=min(1.0, confidence),
            metadata=ExtractionMetadata(
                url=url,
                content_type=content_type,
                format=processor.format,
                processing_time_ms=(time.perf_counter() - start) * 1000.0,
                language=detect_language(text) if text else "unknown",
                checksum=sha256_hex(content),
                page_title=str(processed.metadata.get("title", "")),
                description=str(processed.metadata.get("description", "")),
                errors=errors,
            ),
        )

        if timer_id:
            self._monitor.end_timing(  # type: ignore[union-attr]
                timer_id, success=True,
                metadata={"entities": len(entities), "quality": result.quality_score},
            )
        logger.info(
            "Extraction complete for %s: %d entities, %d data points, quality %.2f",
            url, len(entities), len(structured), result.quality_score,
        )
        return result

    def _record_error(self, exc: Exception, url: str, entity_type: str | None = None) -> None:
        operation = f"extract:{entity_type}" if entity_type else "extract"
        if self._monitor is not None:
            self._monitor.record_error(exc, operation, url=url)
        else:
            logger.error("%s failed for %s: %s", operation, url, exc)


def semantic_tags(text: str, entities: list[ExtractedEntity]) -> list[str]:
    """Entity type names followed by the most frequent long content words."""
    tags = [e.type.value for e in entities]
    counts = Counter(w for w in tokenize(text) if len(w) > 4 and w not in _TAG_STOPWORDS)
    tags.extend(word for word, _ in counts.most_common(MAX_CONTENT_TAGS))
    return list(dict.fromkeys(tags))
