# src/extraction/models.py - v1
"""Extraction domain models: entity and format variants, entities,
structured data points, relationships and the extraction result."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, Field

from crawlintel.core.models import new_id, utcnow


class EntityType(str, Enum):
    """Closed set of entity kinds the extractor can materialize."""

    COUNCIL_MEETING = "council_meeting"
    PLANNING_APPLICATION = "planning_application"
    COUNCILLOR = "councillor"
    BUDGET_ITEM = "budget_item"
    POLICY_DOCUMENT = "policy_document"
    SERVICE_INFO = "service_info"
    TRANSPARENCY_DATA = "transparency_data"
    CONSULTATION = "consultation"
    CONTACT_INFO = "contact_info"
    EVENT = "event"
    LOCATION = "location"
    ORGANIZATION = "organization"
    PERSON = "person"
    FINANCIAL_DATA = "financial_data"


class ContentFormat(str, Enum):
    """Closed set of content formats with a registered processor."""

    HTML = "html"
    JSON = "json"
    XML = "xml"
    PDF = "pdf"
    CSV = "csv"
    EXCEL = "excel"


DataSource = Literal["html", "json-ld", "microdata", "table", "form", "derived"]
RelationshipType = Literal["references", "related_to"]


class ProcessedContent(BaseModel):
    """Format-normalized view of fetched content."""

    model_config = {"arbitrary_types_allowed": True}

    format: ContentFormat
    text_content: str = ""
    dom: Any = None  # BeautifulSoup tree for markup formats
    embedded_data: list[dict[str, Any]] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)


class EntityValidation(BaseModel):
    """Validation scores attached to an extracted entity."""

    completeness: float = Field(default=0.0, ge=0.0, le=1.0)
    consistency: float = Field(default=1.0, ge=0.0, le=1.0)
    accuracy: float = Field(default=0.0, ge=0.0, le=1.0)
    issues: list[str] = Field(default_factory=list)
    critical: bool = False

    @property
    def score(self) -> float:
        return (self.completeness + self.consistency + self.accuracy) / 3

    @property
    def is_valid(self) -> bool:
        return not self.critical


class SourceProvenance(BaseModel):
    url: str
    content_type: str
    extracted_at: datetime = Field(default_factory=utcnow)
    selectors: dict[str, str] = Field(default_factory=dict)


class ExtractedEntity(BaseModel):
    """An entity whose required fields all resolved."""

    id: str = Field(default_factory=lambda: new_id("ent"))
    type: EntityType
    title: str
    data: dict[str, Any] = Field(default_factory=dict)
    source: SourceProvenance
    confidence: float = Field(ge=0.0, le=1.0)
    validation: EntityValidation = Field(default_factory=EntityValidation)
    superseded_by: str | None = None


class StructuredDataPoint(BaseModel):
    key: str
    value: Any
    data_type: str = "string"
    source: DataSource
    confidence: float = Field(ge=0.0, le=1.0)
    context: str = ""


class EntityRelationship(BaseModel):
    source_id: str
    target_id: str
    relationship_type: RelationshipType
    confidence: float = Field(ge=0.0, le=1.0)
    evidence: str = ""


class ExtractionMetadata(BaseModel):
    url: str
    content_type: str
    format: ContentFormat
    processing_time_ms: float = 0.0
    language: str = "en"
    checksum: str = ""
    page_title: str = ""
    description: str = ""
    errors: list[str] = Field(default_factory=list)


class ExtractionResult(BaseModel):
    """Everything extracted from one fetched document."""

    entities: list[ExtractedEntity] = Field(default_factory=list)
    structured_data: list[StructuredDataPoint] = Field(default_factory=list)
    relationships: list[EntityRelationship] = Field(default_factory=list)
    semantic_tags: list[str] = Field(default_factory=list)
    quality_score: float = Field(default=0.0, ge=0.0, le=1.0)
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    metadata: ExtractionMetadata
