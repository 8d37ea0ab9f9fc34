# tests/unit/discovery/test_filters.py - v1
"""Tests for discovery/filters.py and discovery/patterns.py."""

from __future__ import annotations

import pytest

from crawlintel.discovery.filters import (
    is_allowed_domain,
    is_relevant_external,
    is_social_media_url,
    is_unwanted_url,
    looks_like_data_feed,
    resolve_url,
)
from crawlintel.discovery.models import DiscoveredPattern
from crawlintel.discovery.patterns import detect_patterns, group_key, pattern_matches

BASE = "https://www.bolton.gov.uk/council/"


class TestResolveUrl:
    def test_relative(self):
        assert resolve_url("meetings", BASE) == "https://www.bolton.gov.uk/council/meetings"

    def test_root_relative(self):
        assert resolve_url("/news", BASE) == "https://www.bolton.gov.uk/news"

    def test_protocol_relative(self):
        assert resolve_url("//cdn.bolton.gov.uk/a.pdf", BASE) == "https://cdn.bolton.gov.uk/a.pdf"

    def test_absolute_untouched(self):
        assert resolve_url(" http://example.org/x ", BASE) == "http://example.org/x"

    def test_blank(self):
        assert resolve_url("   ", BASE) is None


class TestPredicates:
    def test_allowed_domain_substring(self):
        assert is_allowed_domain("www.bolton.gov.uk", ["gov.uk"])
        assert not is_allowed_domain("www.example.com", ["gov.uk"])
        assert not is_allowed_domain("", ["gov.uk"])

    @pytest.mark.parametrize(
        "url",
        [
            "https://x.gov.uk/styles/site.css",
            "https://x.gov.uk/print/page",
            "https://x.gov.uk/account/login",
            "mailto:help@x.gov.uk",
            "https://x.gov.uk/page#top",
        ],
    )
    def test_unwanted(self, url):
        assert is_unwanted_url(url)

    def test_wanted(self):
        assert not is_unwanted_url("https://x.gov.uk/council/meetings")

    def test_extra_patterns(self):
        assert is_unwanted_url("https://x.gov.uk/bin-collection/day", ["/bin-collection"])

    def test_social(self):
        assert is_social_media_url("https://www.facebook.com/boltoncouncil")
        assert not is_social_media_url("https://notfacebook.com/page")

    def test_relevant_external(self):
        assert is_relevant_external("https://www.nhs.uk/services", [])
        assert is_relevant_external("https://www.visitmanchester.com", ["manchester"])
        assert not is_relevant_external("https://www.example.com", ["manchester"])

    def test_data_feed_by_link_text(self):
        assert looks_like_data_feed("/downloads/latest", "Open Data download")
        assert looks_like_data_feed("/news.rss", "News")
        assert not looks_like_data_feed("/news", "News")


class TestPatterns:
    def test_group_key(self):
        assert group_key("https://x.gov.uk/news/2024/item?id=1") == "news/2024:has_params"

    def test_archive_by_year(self):
        urls = [f"https://x.gov.uk/news/2024/item-{i}" for i in range(3)]
        patterns = detect_patterns(urls)
        assert len(patterns) == 1
        assert patterns[0].pattern == "/news/2024/*"
        assert patterns[0].type == "archive"
        assert patterns[0].confidence == 0.9
        assert patterns[0].metadata["total_urls"] == 3

    def test_api_beats_archive(self):
        urls = [f"https://x.gov.uk/api/2024/item-{i}.json" for i in range(3)]
        assert detect_patterns(urls)[0].type == "api_endpoint"

    def test_detail_page_default(self):
        urls = [f"https://x.gov.uk/parks/bolton/park-{c}" for c in "abc"]
        pattern = detect_patterns(urls)[0]
        assert (pattern.type, pattern.confidence) == ("detail_page", 0.7)

    def test_small_groups_ignored(self):
        urls = [
            "https://x.gov.uk/news/item?id=1",
            "https://x.gov.uk/news/item?id=2",
            "https://x.gov.uk/news/item",
        ]
        assert detect_patterns(urls) == []

    def test_examples_capped(self):
        urls = [f"https://x.gov.uk/services/list/s-{i}" for i in range(8)]
        pattern = detect_patterns(urls)[0]
        assert pattern.type == "list_page"
        assert len(pattern.examples) == 5

    def test_pattern_matches(self):
        pattern = DiscoveredPattern(pattern="/news/2024/*", type="archive", confidence=0.9)
        assert pattern_matches(pattern, "https://x.gov.uk/news/2024/anything")
        assert not pattern_matches(pattern, "https://x.gov.uk/news/2023/anything")

    def test_root_level_group_has_no_pattern(self):
        urls = [f"https://x.gov.uk/news?id={i}" for i in range(4)]
        assert group_key(urls[0]) == "news:has_params"
        assert detect_patterns(urls) == []

    def test_bare_wildcard_matches_nothing(self):
        pattern = DiscoveredPattern(pattern="/*", type="list_page", confidence=0.8)
        assert not pattern_matches(pattern, "https://x.gov.uk/news/2024/anything")
