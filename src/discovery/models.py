# src/discovery/models.py - v1
"""URL discovery result models."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field

PatternType = Literal[
    "list_page", "detail_page", "archive", "search_results", "api_endpoint", "data_feed"
]
UrlCategory = Literal[
    "meetings", "planning", "transparency", "finance", "services",
    "consultations", "documents", "news", "general",
]


class DiscoveredPattern(BaseModel):
    """A group of at least three URLs sharing a base path."""

    pattern: str
    type: PatternType
    confidence: float = Field(ge=0.0, le=1.0)
    examples: list[str] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)


class SpecialUrls(BaseModel):
    """URL classes reported alongside the crawlable set."""

    sitemap_urls: list[str] = Field(default_factory=list)
    api_endpoints: list[str] = Field(default_factory=list)
    data_feeds: list[str] = Field(default_factory=list)
    social_links: list[str] = Field(default_factory=list)
    external_refs: list[str] = Field(default_factory=list)


class DiscoveryStatistics(BaseModel):
    total_found: int = 0
    candidates_extracted: int = 0
    rejected: int = 0
    categorized: int = 0
    high_priority: int = 0
    medium_priority: int = 0
    low_priority: int = 0
    processing_time_ms: float = 0.0
    unique_domains: int = 0
    patterns_detected: int = 0


class DiscoveryResult(BaseModel):
    """Scored, depth-capped URLs from one page, highest score first."""

    base_url: str
    depth: int = 0
    discovered_urls: list[str] = Field(default_factory=list)
    scores: dict[str, float] = Field(default_factory=dict)
    categories: dict[str, UrlCategory] = Field(default_factory=dict)
    priorities: dict[str, int] = Field(default_factory=dict)
    patterns: list[DiscoveredPattern] = Field(default_factory=list)
    special: SpecialUrls = Field(default_factory=SpecialUrls)
    statistics: DiscoveryStatistics = Field(default_factory=DiscoveryStatistics)
