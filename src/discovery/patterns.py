# src/discovery/patterns.py - v1
"""URL pattern detection.

URLs are grouped by their first two path segments plus whether they carry
a query string. Groups of at least ``MIN_GROUP_SIZE`` members are
classified by keyword heuristics; later checks override earlier ones
(api endpoint > archive > list page > detail page).
"""

from __future__ import annotations

import re
from urllib.parse import urlparse

from crawlintel.discovery.models import DiscoveredPattern, PatternType

MIN_GROUP_SIZE = 3
MAX_PATTERN_EXAMPLES = 5

_YEAR = re.compile(r"\d{4}")

# Ordered weakest to strongest.
_GROUP_RULES: tuple[tuple[PatternType, float, tuple[str, ...], bool], ...] = (
    ("list_page", 0.8, ("list", "index", "search"), False),
    ("archive", 0.9, ("archive", "history"), True),
    ("api_endpoint", 0.95, ("api", ".json", ".xml"), False),
)

KNOWN_PATTERNS: tuple[DiscoveredPattern, ...] = (
    DiscoveredPattern(
        pattern="/council-and-democracy/meetings-agendas-and-minutes/*",
        type="list_page", confidence=0.95, metadata={"category": "meetings"},
    ),
    DiscoveredPattern(
        pattern="/environment-and-planning/planning-applications/*",
        type="list_page", confidence=0.9, metadata={"category": "planning"},
    ),
)


def group_key(url: str) -> str | None:
    try:
        parsed = urlparse(url)
    except ValueError:
        return None
    parts = [p for p in parsed.path.split("/") if p]
    return f"{'/'.join(parts[:2])}:{'has_params' if parsed.query else 'no_params'}"


def classify_group(urls: list[str]) -> DiscoveredPattern | None:
    if len(urls) < MIN_GROUP_SIZE:
        return None

    pattern_type: PatternType = "detail_page"
    confidence = 0.7
    for candidate_type, candidate_conf, markers, year_marks in _GROUP_RULES:
        if any(any(m in url for m in markers) or (year_marks and _YEAR.search(url)) for url in urls):
            pattern_type, confidence = candidate_type, candidate_conf

    path_base = "/".join(urlparse(urls[0]).path.split("/")[:-1])
    if not path_base:
        return None
    return DiscoveredPattern(
        pattern=path_base + "/*",
        type=pattern_type,
        confidence=confidence,
        examples=urls[:MAX_PATTERN_EXAMPLES],
        metadata={
            "total_urls": len(urls),
            "common_path": path_base,
            "has_parameters": any(urlparse(u).query for u in urls),
        },
    )


def detect_patterns(urls: list[str]) -> list[DiscoveredPattern]:
    groups: dict[str, list[str]] = {}
    for url in urls:
        key = group_key(url)
        if key is not None:
            groups.setdefault(key, []).append(url)
    detected = []
    for members in groups.values():
        pattern = classify_group(members)
        if pattern is not None:
            detected.append(pattern)
    return detected


def pattern_matches(pattern: DiscoveredPattern, url: str) -> bool:
    """True when ``url`` contains the pattern's path base."""
    if not pattern.pattern.replace("*", "").strip("/"):
        return False
    regex = ".*".join(re.escape(part) for part in pattern.pattern.split("*"))
    return re.search(regex, url) is not None
