# src/core/models.py - v1
"""Shared domain models used across discovery, dedup and storage.

Component-specific shapes live in each subpackage's ``models.py``; this
module only holds what crosses component boundaries: the persisted corpus
record and the similarity result exchanged with storage.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, Field


def utcnow() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


def new_id(prefix: str = "") -> str:
    """Short random identifier, optionally prefixed."""
    token = uuid.uuid4().hex[:12]
    return f"{prefix}_{token}" if prefix else token


# === ENUMS ===


class SimilarityStrategy(str, Enum):
    """Duplicate detection strategies."""

    CONTENT_HASH = "content_hash"
    TITLE_SIMILARITY = "title_similarity"
    SEMANTIC_ANALYSIS = "semantic_analysis"
    URL_PATTERN = "url_pattern"
    TEMPORAL_PROXIMITY = "temporal_proximity"
    STRUCTURAL_SIMILARITY = "structural_similarity"
    COMBINED_FEATURES = "combined_features"


RecordStatus = Literal["active", "merged", "duplicate", "review"]


# === CORPUS RECORD ===


class CorpusRecord(BaseModel):
    """A persisted data item, the unit the dedup engine compares."""

    id: str = Field(default_factory=lambda: new_id("rec"))
    title: str
    description: str = ""
    data_type: str
    category: str = ""
    location: str = ""
    amount: float | None = None
    source_url: str = ""
    event_date: datetime | None = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    quality_score: float = Field(default=0.5, ge=0.0, le=1.0)
    metadata: dict[str, Any] = Field(default_factory=dict)
    tags: list[str] = Field(default_factory=list)
    status: RecordStatus = "active"
    merged_into: str | None = None

    @property
    def category_depth(self) -> int:
        """Number of '/'-separated levels in the category path."""
        return len([p for p in self.category.split("/") if p]) if self.category else 0


# === SIMILARITY ===


class SimilarItem(BaseModel):
    """One corpus record judged similar to a candidate by one strategy."""

    id: str
    similarity: float = Field(ge=0.0, le=1.0)
    matching_strategy: SimilarityStrategy
    matched_fields: list[str] = Field(default_factory=list)
