# src/discovery/discovery.py - v1
"""URL discovery: extract, filter, pattern-detect and score candidate URLs
from one fetched page.

Flow:
    1. Extract candidates (links, forms, document images, script URLs,
       meta refresh, canonical).
    2. Reject off-allowlist hosts and unwanted URLs.
    3. Collect special URL classes (sitemaps, APIs, feeds, social, external).
    4. Detect URL patterns over accepted URLs plus API endpoints.
    5. Score, sort and keep the per-depth cap.
    6. Categorise and prioritise survivors; compile statistics.
"""

from __future__ import annotations

import logging
import re
import time

from bs4 import BeautifulSoup

from crawlintel.config.settings import Settings
from crawlintel.discovery.filters import (
    hostname,
    is_allowed_domain,
    is_relevant_external,
    is_social_media_url,
    is_unwanted_url,
    looks_like_api_endpoint,
    looks_like_data_feed,
    resolve_url,
)
from crawlintel.discovery.models import (
    DiscoveredPattern,
    DiscoveryResult,
    DiscoveryStatistics,
    SpecialUrls,
)
from crawlintel.discovery.patterns import KNOWN_PATTERNS, detect_patterns
from crawlintel.discovery.scoring import (
    HIGH_PRIORITY,
    MEDIUM_PRIORITY,
    categorize_url,
    context_keywords,
    depth_cap,
    score_url,
    url_priority,
)
from crawlintel.monitoring.monitor import Monitor

logger = logging.getLogger(__name__)

_SCRIPT_STRING = re.compile(r"""["']([^"'\s]+)["']""")
_META_REFRESH_URL = re.compile(r"url=([^;]+)", re.IGNORECASE)


class UrlDiscovery:
    """Finds and ranks crawlable URLs in fetched markup."""

    def __init__(
        self,
        settings: Settings | None = None,
        monitor: Monitor | None = None,
    ) -> None:
        self._settings = settings or Settings()
        self._monitor = monitor
        self._allowed = self._settings.allowed_domains_list
        self._external_keywords = self._settings.external_keywords_list
        self._extra_unwanted = self._settings.extra_unwanted_patterns_list
        self._known: dict[str, DiscoveredPattern] = {p.pattern: p for p in KNOWN_PATTERNS}

    @property
    def known_patterns(self) -> list[DiscoveredPattern]:
        """Seeded shapes plus every pattern detected so far."""
        return list(self._known.values())

    def discover_urls(self, content: str, base_url: str, depth: int = 0) -> DiscoveryResult:
        """Discover and rank the URLs in ``content`` fetched from ``base_url``."""
        start = time.perf_counter()
        timer_id = (
            self._monitor.start_timing("url_discovery", {"url": base_url, "depth": depth})
            if self._monitor else None
        )
        try:
            soup = BeautifulSoup(content, "html.parser")
            candidates = self.extract_candidates(soup, base_url)
            accepted = [u for u in candidates if self._accept(u)]
            special = self.find_special_urls(soup, base_url)

            patterns = detect_patterns(accepted + special.api_endpoints)
            for pattern in patterns:
                self._known[pattern.pattern] = pattern
            scoring_patterns = patterns + list(KNOWN_PATTERNS)

            scores = {u: score_url(u, scoring_patterns, depth) for u in accepted}
            ranked = sorted(accepted, key=lambda u: scores[u], reverse=True)[: depth_cap(depth)]

            keywords = context_keywords(
                soup.title.get_text(" ") if soup.title else "",
                " ".join(h.get_text(" ") for h in soup.find_all("h1")),
                _meta_keywords(soup),
            )
            categories = {u: categorize_url(u, keywords) for u in ranked}
            priorities = {u: url_priority(u, categories[u], keywords) for u in ranked}
        except Exception as exc:
            if timer_id:
                self._monitor.end_timing(timer_id, success=False)  # type: ignore[union-attr]
            if self._monitor is not None:
                self._monitor.record_error(exc, "url_discovery", url=base_url)
            raise

        result = DiscoveryResult(
            base_url=base_url,
            depth=depth,
            discovered_urls=ranked,
            scores={u: scores[u] for u in ranked},
            categories=categories,
            priorities=priorities,
            patterns=patterns,
            special=special,
            statistics=DiscoveryStatistics(
                total_found=len(ranked),
                candidates_extracted=len(candidates),
                rejected=len(candidates) - len(accepted),
                categorized=sum(1 for c in categories.values() if c != "general"),
                high_priority=sum(1 for p in priorities.values() if p >= HIGH_PRIORITY),
                medium_priority=sum(
                    1 for p in priorities.values() if MEDIUM_PRIORITY <= p < HIGH_PRIORITY
                ),
                low_priority=sum(1 for p in priorities.values() if p < MEDIUM_PRIORITY),
                processing_time_ms=(time.perf_counter() - start) * 1000.0,
                unique_domains=len({hostname(u) for u in ranked}),
                patterns_detected=len(patterns),
            ),
        )
        if timer_id:
            self._monitor.end_timing(  # type: ignore[union-attr]
                timer_id, success=True,
                metadata={"urls": len(ranked), "patterns": len(patterns)},
            )
        logger.info(
            "Discovered %d URLs (%d candidates, %d patterns) from %s at depth %d",
            len(ranked), len(candidates), len(patterns), base_url, depth,
        )
        return result

    # ------------------------------------------------------------------
    # Extraction
    # ------------------------------------------------------------------

    def extract_candidates(self, soup: BeautifulSoup, base_url: str) -> list[str]:
        """Resolved candidate URLs in document order, without repeats."""
        raw: list[str] = []
        raw.extend(str(a["href"]) for a in soup.find_all("a", href=True))
        raw.extend(
            str(f["action"]) for f in soup.find_all("form", action=True) if f["action"] != "#"
        )
        raw.extend(
            str(img["src"]) for img in soup.find_all("img", src=True)
            if ".pdf" in img["src"] or "document" in img["src"]
        )
        raw.extend(self._script_urls(soup))
        for meta in soup.find_all("meta", attrs={"http-equiv": re.compile("^refresh$", re.I)}):
            match = _META_REFRESH_URL.search(str(meta.get("content", "")))
            if match:
                raw.append(match.group(1).strip().strip("'\""))
        raw.extend(
            str(link["href"]) for link in soup.find_all("link", href=True)
            if "canonical" in (link.get("rel") or [])
        )

        urls: dict[str, None] = {}
        for href in raw:
            resolved = resolve_url(href, base_url)
            if resolved:
                urls.setdefault(resolved, None)
        return list(urls)

    def _script_urls(self, soup: BeautifulSoup) -> list[str]:
        """Absolute allowlisted URLs quoted inside inline scripts."""
        script_text = " ".join(s.get_text() for s in soup.find_all("script"))
        return [
            value for value in _SCRIPT_STRING.findall(script_text)
            if value.startswith("http") and is_allowed_domain(hostname(value), self._allowed)
        ]

    def _accept(self, url: str) -> bool:
        if not is_allowed_domain(hostname(url), self._allowed):
            return False
        return not is_unwanted_url(url, self._extra_unwanted)

    # ------------------------------------------------------------------
    # Special URLs
    # ------------------------------------------------------------------

    def find_special_urls(self, soup: BeautifulSoup, base_url: str) -> SpecialUrls:
        special = SpecialUrls()
        own_host = hostname(base_url)
        for anchor in soup.find_all("a", href=True):
            href = str(anchor["href"])
            resolved = resolve_url(href, base_url)
            if resolved is None:
                continue
            if "sitemap" in href:
                special.sitemap_urls.append(resolved)
            if looks_like_api_endpoint(href):
                special.api_endpoints.append(resolved)
            if looks_like_data_feed(href, anchor.get_text(" ")):
                special.data_feeds.append(resolved)
            if is_social_media_url(resolved):
                special.social_links.append(resolved)
            elif (
                href.startswith("http")
                and hostname(href) != own_host
                and is_relevant_external(href, self._external_keywords)
            ):
                special.external_refs.append(resolved)
        for field in SpecialUrls.model_fields:
            setattr(special, field, list(dict.fromkeys(getattr(special, field))))
        return special


def _meta_keywords(soup: BeautifulSoup) -> str:
    tag = soup.find("meta", attrs={"name": "keywords"})
    return str(tag.get("content", "")) if tag else ""
