# src/scheduler/models.py - v1
"""Crawl scheduler models: targets, queue items and content analysis."""

from __future__ import annotations

import re
from datetime import datetime, timedelta
from typing import Any, Literal

from pydantic import BaseModel, Field

from crawlintel.core.models import utcnow

CrawlFrequency = Literal["realtime", "hourly", "daily", "weekly", "monthly"]
ChangeFrequency = Literal["never", "yearly", "monthly", "weekly", "daily", "hourly", "always"]
TargetHealth = Literal["active", "slow", "unstable", "down"]
RuleType = Literal["include_path", "exclude_path", "priority_boost", "custom_selector", "rate_limit"]
QueueStatus = Literal[
    "pending", "analyzing", "processing", "completed", "failed", "skipped", "deferred"
]
AnalysisContentType = Literal[
    "meeting", "planning", "finance", "transparency", "service",
    "consultation", "document", "other",
]
Structure = Literal["structured", "semi-structured", "unstructured"]
Sentiment = Literal["positive", "neutral", "negative"]
Complexity = Literal["simple", "moderate", "complex"]


# === TARGETS ===


class CrawlRule(BaseModel):
    """One per-target rule; ``pattern`` is a regex searched in the URL, ``*`` matches all."""

    type: RuleType
    pattern: str
    value: Any = None
    description: str = ""

    def matches(self, url: str) -> bool:
        if self.pattern == "*":
            return True
        try:
            return re.search(self.pattern, url) is not None
        except re.error:
            return self.pattern in url


class CrawlTarget(BaseModel):
    domain: str
    priority: int = Field(default=5, ge=0, le=20)
    crawl_frequency: CrawlFrequency = "daily"
    rules: list[CrawlRule] = Field(default_factory=list)
    content_types: list[str] = Field(default_factory=lambda: ["text/html"])
    expected_data_types: list[str] = Field(default_factory=list)
    health_status: TargetHealth = "active"
    last_successful: datetime | None = None
    average_response_ms: float = 0.0
    error_rate: float = Field(default=0.0, ge=0.0, le=1.0)

    def rules_of(self, rule_type: RuleType) -> list[CrawlRule]:
        return [r for r in self.rules if r.type == rule_type]

    @property
    def custom_selectors(self) -> list[str]:
        return [r.pattern for r in self.rules_of("custom_selector")]

    @property
    def rate_limit_ms(self) -> int | None:
        for rule in self.rules_of("rate_limit"):
            if rule.value is not None:
                return int(rule.value)
        return None


# === CONTENT ANALYSIS ===


class ExtractableData(BaseModel):
    tables: int = 0
    forms: int = 0
    lists: int = 0
    contacts: int = 0
    dates: int = 0
    amounts: int = 0
    links: int = 0

    @property
    def total(self) -> int:
        return sum(self.model_dump().values())


class ContentAnalysis(BaseModel):
    """Result of analysing one fetch; never mutated after attachment."""

    model_config = {"frozen": True}

    content_type: AnalysisContentType
    importance: int = Field(ge=1, le=10)
    freshness: int = Field(ge=1, le=10)
    structure: Structure
    extractable_data: ExtractableData = Field(default_factory=ExtractableData)
    keywords: list[str] = Field(default_factory=list)
    sentiment: Sentiment = "neutral"
    complexity: Complexity = "simple"
    confidence: float = Field(ge=0.0, le=1.0)
    change_frequency: ChangeFrequency = "weekly"
    analyzed_at: datetime = Field(default_factory=utcnow)


# === QUEUE ===


class Scheduling(BaseModel):
    next_scheduled: datetime = Field(default_factory=utcnow)
    interval: timedelta = timedelta(days=1)
    adaptive: bool = True


class QueueMetadata(BaseModel):
    estimated_processing_ms: float = 5000.0
    estimated_value: float = 0.0
    change_frequency: ChangeFrequency = "weekly"
    last_modified: datetime | None = None
    content_hash: str | None = None
    file_size: int | None = None


class QueueItem(BaseModel):
    url: str
    domain: str
    discovered_at: datetime = Field(default_factory=utcnow)
    last_attempted: datetime | None = None
    attempts: int = Field(default=0, ge=0)
    static_priority: float = Field(ge=1.0, le=20.0)
    dynamic_priority: float = Field(ge=1.0, le=20.0)
    category: str = "general"
    parent_url: str | None = None
    depth: int = 0
    analysis: ContentAnalysis | None = None
    scheduling: Scheduling = Field(default_factory=Scheduling)
    status: QueueStatus = "pending"
    metadata: QueueMetadata = Field(default_factory=QueueMetadata)
    last_error: str | None = None


class QueueStatistics(BaseModel):
    queue_size: int = 0
    ready_to_process: int = 0
    by_category: dict[str, int] = Field(default_factory=dict)
    by_status: dict[str, int] = Field(default_factory=dict)
    by_domain: dict[str, int] = Field(default_factory=dict)
    average_priority: float = 0.0
    next_scheduled: datetime | None = None
    estimated_processing_ms: float = 0.0
    targets: int = 0
    target_health: dict[str, TargetHealth] = Field(default_factory=dict)
