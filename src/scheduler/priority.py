# src/scheduler/priority.py - v1
"""Static/dynamic priority and re-crawl interval calculations."""

from __future__ import annotations

from datetime import timedelta
from urllib.parse import urlparse

from crawlintel.scheduler.models import (
    ChangeFrequency,
    ContentAnalysis,
    CrawlFrequency,
    CrawlTarget,
    QueueMetadata,
)

PRIORITY_MIN = 1.0
PRIORITY_MAX = 20.0

CATEGORY_PRIORITIES: dict[str, int] = {
    "meetings": 9,
    "planning": 8,
    "transparency": 8,
    "finance": 7,
    "services": 6,
    "consultations": 5,
    "documents": 4,
    "general": 3,
}

PATH_CATEGORIES: tuple[tuple[tuple[str, ...], str], ...] = (
    (("meeting", "agenda", "minutes"), "meetings"),
    (("planning", "application"), "planning"),
    (("transparency", "foi", "spending"), "transparency"),
    (("council-tax", "finance", "budget"), "finance"),
    (("service", "department"), "services"),
    (("consultation", "survey"), "consultations"),
    (("document", "report", "policy"), "documents"),
)

INITIAL_INTERVALS: dict[CrawlFrequency, timedelta] = {
    "realtime": timedelta(minutes=1),
    "hourly": timedelta(hours=1),
    "daily": timedelta(days=1),
    "weekly": timedelta(days=7),
    "monthly": timedelta(days=30),
}

ADAPTIVE_BASE_INTERVALS: dict[ChangeFrequency, timedelta] = {
    "never": timedelta(days=365),
    "yearly": timedelta(days=30),
    "monthly": timedelta(days=7),
    "weekly": timedelta(days=1),
    "daily": timedelta(hours=4),
    "hourly": timedelta(hours=1),
    "always": timedelta(minutes=30),
}

# === Dynamic priority weights ===
NEUTRAL_IMPORTANCE = 5
NEUTRAL_FRESHNESS = 5
FRESHNESS_WEIGHT = 0.5
STRUCTURE_BONUS: dict[str, float] = {"structured": 2.0, "semi-structured": 1.0, "unstructured": 0.0}
DATA_WEIGHT = 0.1
DATA_BONUS_CAP = 3.0
NEUTRAL_CONFIDENCE = 0.5
CONFIDENCE_WEIGHT = 2.0
VOLATILE_PENALTY = 2.0

# === Adaptive interval factors ===
HIGH_IMPORTANCE = 8
LOW_IMPORTANCE = 3
HIGH_IMPORTANCE_FACTOR = 0.5
LOW_IMPORTANCE_FACTOR = 2.0
CHANGED_FACTOR = 0.7


def clamp_priority(value: float) -> float:
    return max(PRIORITY_MIN, min(PRIORITY_MAX, value))


def clamp_interval(interval: timedelta, minimum: timedelta, maximum: timedelta) -> timedelta:
    return max(minimum, min(maximum, interval))


def categorize_path(url: str) -> str:
    path = urlparse(url).path.lower()
    for words, category in PATH_CATEGORIES:
        if any(w in path for w in words):
            return category
    return "general"


def base_priority(url: str, target: CrawlTarget, category: str) -> float:
    """Target priority plus category weight plus matching boost rules, capped at 20."""
    priority = float(target.priority + CATEGORY_PRIORITIES.get(category, CATEGORY_PRIORITIES["general"]))
    for rule in target.rules_of("priority_boost"):
        if rule.matches(url):
            priority += float(rule.value or 0)
    return clamp_priority(priority)


def initial_interval(frequency: CrawlFrequency) -> timedelta:
    return INITIAL_INTERVALS.get(frequency, INITIAL_INTERVALS["daily"])


def dynamic_priority(
    static_priority: float, analysis: ContentAnalysis, metadata: QueueMetadata
) -> float:
    """Recompute priority from content analysis, clamped to [1, 20]."""
    priority = static_priority
    priority += analysis.importance - NEUTRAL_IMPORTANCE
    priority += (analysis.freshness - NEUTRAL_FRESHNESS) * FRESHNESS_WEIGHT
    priority += STRUCTURE_BONUS[analysis.structure]
    priority += min(DATA_BONUS_CAP, analysis.extractable_data.total * DATA_WEIGHT)
    priority += (analysis.confidence - NEUTRAL_CONFIDENCE) * CONFIDENCE_WEIGHT
    if metadata.change_frequency == "always":
        priority -= VOLATILE_PENALTY
    return round(clamp_priority(priority), 2)


def adaptive_interval(
    analysis: ContentAnalysis,
    change_frequency: ChangeFrequency,
    changed: bool,
    minimum: timedelta,
    maximum: timedelta,
) -> timedelta:
    interval = ADAPTIVE_BASE_INTERVALS.get(change_frequency, ADAPTIVE_BASE_INTERVALS["weekly"])
    if analysis.importance >= HIGH_IMPORTANCE:
        interval *= HIGH_IMPORTANCE_FACTOR
    elif analysis.importance <= LOW_IMPORTANCE:
        interval *= LOW_IMPORTANCE_FACTOR
    if changed:
        interval *= CHANGED_FACTOR
    return clamp_interval(interval, minimum, maximum)


def failure_interval(
    interval: timedelta, attempts: int, minimum: timedelta, maximum: timedelta
) -> timedelta:
    """Exponential backoff: ``interval * 2**attempts`` within bounds."""
    return clamp_interval(interval * (2 ** attempts), minimum, maximum)
