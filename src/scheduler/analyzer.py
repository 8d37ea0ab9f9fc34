# src/scheduler/analyzer.py - v1
"""Heuristic content analysis feeding the dynamic priority calculator.

Classifies a fetched page into a coarse content type and scores
importance, freshness, structure, extractable data volume, sentiment and
complexity. No statistical NLP: keyword and markup counts only.
"""

from __future__ import annotations

import re
from datetime import datetime
from typing import Callable

from bs4 import BeautifulSoup

from crawlintel.core.models import utcnow
from crawlintel.core.text import parse_date, top_keywords
from crawlintel.scheduler.models import (
    AnalysisContentType,
    ChangeFrequency,
    Complexity,
    ContentAnalysis,
    ExtractableData,
    Sentiment,
    Structure,
)

_SLASH_DATE = re.compile(r"\d{1,2}/\d{1,2}/\d{4}")
_ANY_DATE = re.compile(r"\d{1,2}/\d{1,2}/\d{4}|\d{4}-\d{2}-\d{2}")
_POUND_AMOUNT = re.compile(r"£[\d,]+")

TYPE_IMPORTANCE: dict[str, int] = {
    "meeting": 9,
    "planning": 8,
    "finance": 8,
    "transparency": 7,
    "consultation": 6,
    "service": 5,
    "document": 4,
    "other": 3,
}

CHANGE_FREQUENCY_BY_TYPE: dict[str, ChangeFrequency] = {
    "meeting": "weekly",
    "planning": "daily",
    "finance": "monthly",
    "transparency": "monthly",
    "service": "yearly",
    "consultation": "weekly",
    "document": "yearly",
}

# (max age in days, freshness score), checked in order
FRESHNESS_BANDS: tuple[tuple[int, int], ...] = ((7, 10), (30, 8), (90, 6), (365, 4))
STALE_FRESHNESS = 2
UNKNOWN_FRESHNESS = 5
SHORT_CONTENT_LENGTH = 500

POSITIVE_WORDS = (
    "good", "great", "excellent", "approve", "support",
    "benefit", "improve", "success", "positive", "effective",
)
NEGATIVE_WORDS = (
    "bad", "poor", "reject", "oppose", "problem",
    "issue", "concern", "negative", "fail", "decline",
)
SENTIMENT_MARGIN = 1.2


class ContentAnalyzer:
    def __init__(self, clock: Callable[[], datetime] = utcnow) -> None:
        self._clock = clock

    def analyze(self, content: str, url: str) -> ContentAnalysis:
        soup = BeautifulSoup(content, "html.parser")
        content_type = detect_content_type(content, url, soup)
        structure = analyze_structure(soup)
        data = extractable_data(soup)
        text = soup.get_text(" ")
        return ContentAnalysis(
            content_type=content_type,
            importance=importance(content, content_type, soup),
            freshness=self.freshness(soup),
            structure=structure,
            extractable_data=data,
            keywords=top_keywords(text, limit=10),
            sentiment=sentiment(text),
            complexity=complexity(soup, content),
            confidence=confidence(content_type, structure, data),
            change_frequency=CHANGE_FREQUENCY_BY_TYPE.get(content_type, "weekly"),
            analyzed_at=self._clock(),
        )

    def freshness(self, soup: BeautifulSoup) -> int:
        """Recency score from the newest date in date-bearing elements."""
        text = " ".join(
            el.get_text(" ") for el in soup.select("time, .date, .published, .updated, .last-modified")
        )
        dates = [d for d in (parse_date(m) for m in _ANY_DATE.findall(text)) if d is not None]
        if not dates:
            return UNKNOWN_FRESHNESS
        age_days = (self._clock() - max(dates)).total_seconds() / 86400.0
        for max_age, score in FRESHNESS_BANDS:
            if age_days <= max_age:
                return score
        return STALE_FRESHNESS


def detect_content_type(content: str, url: str, soup: BeautifulSoup) -> AnalysisContentType:
    url_l = url.lower()
    body = content.lower()
    title = soup.title.get_text(" ").lower() if soup.title else ""

    if (
        any(w in url_l for w in ("meeting", "agenda", "minutes"))
        or "agenda item" in body or "committee" in body
        or "meeting" in title or "agenda" in title
    ):
        return "meeting"
    if (
        "planning" in url_l or "application" in url_l
        or "planning application" in body or "planning permission" in body
    ):
        return "planning"
    if (
        any(w in url_l for w in ("budget", "finance", "spending"))
        or "£" in body or "budget" in body
        or soup.select_one(".budget-item, .financial-data, .spending-data") is not None
    ):
        return "finance"
    if (
        "transparency" in url_l or "foi" in url_l
        or "freedom of information" in body or "transparency" in body
    ):
        return "transparency"
    if (
        "service" in url_l or "department" in url_l or "service" in title
        or soup.select_one(".service-info") is not None
    ):
        return "service"
    if (
        "consultation" in url_l or "survey" in url_l
        or "consultation" in body or len(soup.find_all("form")) > 2
    ):
        return "consultation"
    if (
        any(w in url_l for w in ("document", "policy", "report"))
        or len(soup.select(".document-link, .pdf-link")) > 5
    ):
        return "document"
    return "other"


def importance(content: str, content_type: str, soup: BeautifulSoup) -> int:
    score = TYPE_IMPORTANCE.get(content_type, 5)
    if soup.find("table") is not None:
        score += 1
    if soup.select_one(".data-table, .structured-data") is not None:
        score += 2
    if soup.select_one('a[href^="mailto:"], a[href^="tel:"]') is not None:
        score += 1
    if _POUND_AMOUNT.search(content):
        score += 1
    if _SLASH_DATE.search(content):
        score += 1
    if len(content) < SHORT_CONTENT_LENGTH:
        score -= 2
    return max(1, min(10, score))


def analyze_structure(soup: BeautifulSoup) -> Structure:
    score = (
        len(soup.find_all("table")) * 3
        + len(soup.find_all(["ul", "ol"])) * 2
        + len(soup.find_all("form")) * 2
        + len(soup.find_all(["h1", "h2", "h3", "h4", "h5", "h6"]))
    )
    if score >= 10:
        return "structured"
    if score >= 4:
        return "semi-structured"
    return "unstructured"


def extractable_data(soup: BeautifulSoup) -> ExtractableData:
    text = soup.get_text(" ")
    return ExtractableData(
        tables=len(soup.find_all("table")),
        forms=len(soup.find_all("form")),
        lists=len(soup.find_all(["ul", "ol"])),
        contacts=len(soup.select('a[href^="mailto:"], a[href^="tel:"]')),
        dates=len(_SLASH_DATE.findall(text)),
        amounts=len(_POUND_AMOUNT.findall(text)),
        links=len(soup.find_all("a", href=True)),
    )


def sentiment(text: str) -> Sentiment:
    lowered = text.lower()
    positive = sum(lowered.count(w) for w in POSITIVE_WORDS)
    negative = sum(lowered.count(w) for w in NEGATIVE_WORDS)
    if positive > negative * SENTIMENT_MARGIN:
        return "positive"
    if negative > positive * SENTIMENT_MARGIN:
        return "negative"
    return "neutral"


def _band(value: int, low: int, high: int) -> int:
    return 2 if value > high else 1 if value > low else 0


def complexity(soup: BeautifulSoup, content: str) -> Complexity:
    score = (
        _band(len(content.split()), 500, 2000)
        + _band(len(soup.find_all("table")), 0, 3)
        + _band(len(soup.find_all("form")), 0, 1)
        + _band(len(soup.find_all("a", href=True)), 10, 50)
    )
    if score >= 6:
        return "complex"
    if score >= 3:
        return "moderate"
    return "simple"


def confidence(content_type: str, structure: Structure, data: ExtractableData) -> float:
    value = 0.7
    if structure == "structured":
        value += 0.2
    elif structure == "semi-structured":
        value += 0.1
    if content_type != "other":
        value += 0.15
    value += min(0.15, (data.tables + data.forms + data.lists + data.contacts) * 0.02)
    return round(min(1.0, value), 4)
