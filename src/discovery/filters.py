# src/discovery/filters.py - v1
"""URL resolution and accept/reject predicates."""

from __future__ import annotations

import re
from urllib.parse import urljoin, urlparse

UNWANTED_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"\.(css|js|jpg|jpeg|png|gif|ico|svg)$", re.IGNORECASE),
    re.compile(r"/print/"),
    re.compile(r"/mobile/"),
    re.compile(r"logout|signin|login"),
    re.compile(r"javascript:|mailto:|tel:|ftp:"),
    re.compile(r"#[^/]*$"),
)

SOCIAL_DOMAINS = ("facebook.com", "twitter.com", "x.com", "linkedin.com", "youtube.com", "instagram.com")
RELEVANT_EXTERNAL_DOMAINS = ("gov.uk", "nhs.uk", "police.uk")
API_MARKERS = ("/api/", ".json", ".xml", "/data/", "format=json", "format=xml")
FEED_MARKERS = (".rss", ".xml", ".json", ".csv")


def resolve_url(href: str, base_url: str) -> str | None:
    """Absolute form of ``href``; None when it cannot be resolved."""
    href = href.strip()
    if not href:
        return None
    if href.startswith("http"):
        return href
    if href.startswith("//"):
        return "https:" + href
    try:
        resolved = urljoin(base_url, href)
    except ValueError:
        return None
    return resolved if urlparse(resolved).scheme else None


def hostname(url: str) -> str:
    try:
        return (urlparse(url).hostname or "").lower()
    except ValueError:
        return ""


def is_allowed_domain(host: str, allowed: list[str]) -> bool:
    return bool(host) and any(domain in host for domain in allowed)


def is_unwanted_url(url: str, extra_patterns: list[str] | None = None) -> bool:
    if any(p.search(url) for p in UNWANTED_PATTERNS):
        return True
    return any(pattern in url for pattern in extra_patterns or [])


def looks_like_api_endpoint(href: str) -> bool:
    return any(marker in href for marker in API_MARKERS)


def looks_like_data_feed(href: str, link_text: str) -> bool:
    text = link_text.lower()
    return any(m in href for m in FEED_MARKERS) or "feed" in text or "data" in text


def is_social_media_url(href: str) -> bool:
    host = hostname(href)
    return any(host == d or host.endswith("." + d) for d in SOCIAL_DOMAINS)


def is_relevant_external(href: str, keywords: list[str]) -> bool:
    lowered = href.lower()
    return any(d in lowered for d in RELEVANT_EXTERNAL_DOMAINS) or any(
        k.lower() in lowered for k in keywords
    )
