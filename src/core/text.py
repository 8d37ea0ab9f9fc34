# src/core/text.py - v1
"""Text helpers shared by analysis, extraction and dedup.

Keyword extraction, date and amount parsing, and content hashing.
"""

from __future__ import annotations

import hashlib
import re
from collections import Counter
from datetime import datetime, timezone

STOPWORDS: frozenset[str] = frozenset(
    """
    the and for are but not you all any can had her was one our out day get
    has him his how man new now old see two way who boy did its let put say
    she too use that with have this will your from they know want been good
    much some time very when come here just like long make many over such
    take than them well were what into more only other their there these
    which would about after again also back being could does each even
    first most must should those through under where while within without
    page site click home contact please read information
    """.split()
)

_TOKEN_RE = re.compile(r"[a-z0-9][a-z0-9'-]*")
_DATE_FORMATS = (
    "%Y-%m-%d",
    "%Y-%m-%dT%H:%M:%S",
    "%d/%m/%Y",
    "%d-%m-%Y",
    "%d %B %Y",
    "%d %b %Y",
    "%B %d %Y",
    "%A %d %B %Y",
)
_ORDINAL_RE = re.compile(r"(\d{1,2})(st|nd|rd|th)\b", re.IGNORECASE)
_DATE_SCAN_RE = re.compile(
    r"\b\d{4}-\d{2}-\d{2}\b|\b\d{1,2}/\d{1,2}/\d{4}\b"
    r"|\b\d{1,2}(?:st|nd|rd|th)?\s+(?:jan|feb|mar|apr|may|jun|jul|aug|sep|oct|nov|dec)[a-z]*\s+\d{4}\b",
    re.IGNORECASE,
)
_AMOUNT_RE = re.compile(r"£\s?([\d,]+(?:\.\d+)?)\s*(k|m|million|bn|billion)?", re.IGNORECASE)
_NUMBER_RE = re.compile(r"-?[\d,]+(?:\.\d+)?")
_MULTIPLIERS = {"k": 1e3, "m": 1e6, "million": 1e6, "bn": 1e9, "billion": 1e9}


def normalize_whitespace(text: str) -> str:
    """Collapse whitespace runs and strip."""
    return " ".join(text.split())


def tokenize(text: str) -> list[str]:
    """Lowercased word tokens."""
    return _TOKEN_RE.findall(text.lower())


def keywords(text: str, min_length: int = 4) -> set[str]:
    """Distinct tokens at least ``min_length`` long, minus stopwords."""
    return {t for t in tokenize(text) if len(t) >= min_length and t not in STOPWORDS}


def top_keywords(text: str, limit: int = 10, min_length: int = 4) -> list[str]:
    """Most frequent keywords, ties broken by first appearance."""
    counts = Counter(
        t for t in tokenize(text) if len(t) >= min_length and t not in STOPWORDS
    )
    return [word for word, _ in counts.most_common(limit)]


def parse_date(value: str) -> datetime | None:
    """Parse common UK date spellings into an aware UTC datetime."""
    cleaned = _ORDINAL_RE.sub(r"\1", normalize_whitespace(value).replace(",", ""))
    for fmt in _DATE_FORMATS:
        try:
            parsed = datetime.strptime(cleaned, fmt)
        except ValueError:
            continue
        return parsed.replace(tzinfo=timezone.utc)
    try:
        parsed = datetime.fromisoformat(cleaned)
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def find_dates(text: str) -> list[datetime]:
    """All parseable dates mentioned in free text, in order."""
    found: list[datetime] = []
    for match in _DATE_SCAN_RE.finditer(text):
        parsed = parse_date(match.group(0))
        if parsed is not None:
            found.append(parsed)
    return found


def parse_amount(value: str) -> float | None:
    """Parse a money amount such as '£1,250.50' or '£2.5m'."""
    match = _AMOUNT_RE.search(value)
    if match:
        amount = float(match.group(1).replace(",", ""))
        suffix = (match.group(2) or "").lower()
        return amount * _MULTIPLIERS.get(suffix, 1.0)
    match = _NUMBER_RE.search(value)
    if match and any(ch.isdigit() for ch in match.group(0)):
        return float(match.group(0).replace(",", ""))
    return None


def sha256_hex(text: str) -> str:
    """SHA-256 hex digest of UTF-8 text."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()
