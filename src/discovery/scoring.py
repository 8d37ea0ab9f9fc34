# src/discovery/scoring.py - v1
"""Additive URL scoring, categorisation and per-depth caps."""

from __future__ import annotations

import re
from urllib.parse import parse_qs, urlparse

from crawlintel.discovery.models import DiscoveredPattern, UrlCategory
from crawlintel.discovery.patterns import pattern_matches

# === Score constants ===
BASE_SCORE = 5
SCORE_MIN = 1
SCORE_MAX = 20

KEYWORD_BONUSES: tuple[tuple[tuple[str, ...], int], ...] = (
    (("meeting", "agenda"), 10),
    (("planning", "application"), 8),
    (("transparency", "spending"), 7),
    (("council", "democracy"), 6),
    (("service",), 4),
    (("news", "press"), 3),
)
PDF_BONUS = 5
DATA_FILE_BONUS = 8
DATA_FILE_EXTENSIONS = (".csv", ".json", ".xml")
PATTERN_BONUS_FACTOR = 5
DEPTH_PENALTY = 2
PATH_PARTS_RANGE = (2, 6)
PATH_PARTS_BONUS = 2
SHORT_SEGMENT_LENGTH = 3
SHORT_SEGMENT_PENALTY = 1
USEFUL_PARAMS = ("id", "ref", "page")
USEFUL_PARAM_BONUS = 1
MAX_PARAMS = 5
MANY_PARAMS_PENALTY = 2

DEPTH_CAPS: dict[int, int] = {0: 100, 1: 200, 2: 300, 3: 150}
DEEP_CAP = 50

# === Category priority (1..10) ===
CATEGORY_RULES: tuple[tuple[tuple[str, ...], UrlCategory], ...] = (
    (("meeting", "agenda", "minutes"), "meetings"),
    (("planning", "application"), "planning"),
    (("transparency", "spending", "foi"), "transparency"),
    (("council-tax", "finance", "budget"), "finance"),
    (("service",), "services"),
    (("consultation", "survey"), "consultations"),
    (("document", "policy", "report"), "documents"),
    (("news", "press"), "news"),
)
CONTEXT_CATEGORY_RULES: tuple[tuple[frozenset[str], UrlCategory], ...] = (
    (frozenset({"meeting", "agenda", "committee"}), "meetings"),
    (frozenset({"planning", "development"}), "planning"),
)
CATEGORY_PRIORITIES: dict[str, int] = {
    "meetings": 9,
    "planning": 8,
    "transparency": 8,
    "finance": 7,
    "services": 6,
    "consultations": 5,
    "documents": 4,
    "news": 3,
    "general": 2,
}
HIGH_PRIORITY = 8
MEDIUM_PRIORITY = 5


def depth_cap(depth: int) -> int:
    return DEPTH_CAPS.get(depth, DEEP_CAP)


def score_url(url: str, patterns: list[DiscoveredPattern], depth: int) -> float:
    """Heuristic crawl value of ``url``, clipped to [1, 20]."""
    try:
        parsed = urlparse(url)
        params = parse_qs(parsed.query, keep_blank_values=True)
    except ValueError:
        return SCORE_MIN
    path = parsed.path.lower()
    score: float = BASE_SCORE

    for words, bonus in KEYWORD_BONUSES:
        if any(w in path for w in words):
            score += bonus

    if path.endswith(".pdf"):
        score += PDF_BONUS
    if path.endswith(DATA_FILE_EXTENSIONS):
        score += DATA_FILE_BONUS

    for pattern in patterns:
        if pattern_matches(pattern, url):
            score += pattern.confidence * PATTERN_BONUS_FACTOR

    score -= depth * DEPTH_PENALTY

    parts = [p for p in path.split("/") if p]
    if PATH_PARTS_RANGE[0] <= len(parts) <= PATH_PARTS_RANGE[1]:
        score += PATH_PARTS_BONUS
    if any(len(p) < SHORT_SEGMENT_LENGTH for p in parts):
        score -= SHORT_SEGMENT_PENALTY

    if any(p in params for p in USEFUL_PARAMS):
        score += USEFUL_PARAM_BONUS
    if len(params) > MAX_PARAMS:
        score -= MANY_PARAMS_PENALTY

    return max(SCORE_MIN, min(SCORE_MAX, score))


def context_keywords(*texts: str) -> set[str]:
    """Words longer than three characters from page title, h1 and meta keywords."""
    combined = " ".join(texts).lower()
    return {w for w in re.split(r"\W+", combined) if len(w) > 3}


def categorize_url(url: str, keywords: set[str]) -> UrlCategory:
    lowered = url.lower()
    for words, category in CATEGORY_RULES:
        if any(w in lowered for w in words):
            return category
    for words, category in CONTEXT_CATEGORY_RULES:
        if keywords & words:
            return category
    return "general"


def url_priority(url: str, category: str, keywords: set[str]) -> int:
    priority = CATEGORY_PRIORITIES.get(category, CATEGORY_PRIORITIES["general"])
    if ".pdf" in url:
        priority += 2
    if ".csv" in url or ".json" in url:
        priority += 3
    if any(k in url for k in keywords):
        priority += 1
    return max(1, min(10, priority))
