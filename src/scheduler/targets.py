# src/scheduler/targets.py - v1
"""Declarative crawl target registry.

Built-in defaults cover the council's main site, committee system,
planning portal and open data; ``load_targets`` replaces them from a JSON
file (a list of CrawlTarget objects).
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

from pydantic import TypeAdapter, ValidationError

from crawlintel.config.settings import ConfigurationError
from crawlintel.scheduler.models import CrawlRule, CrawlTarget

logger = logging.getLogger(__name__)

DEFAULT_TARGETS: list[CrawlTarget] = [
    CrawlTarget(
        domain="www.bolton.gov.uk",
        priority=10,
        crawl_frequency="daily",
        rules=[
            CrawlRule(
                type="priority_boost",
                pattern="/council-and-democracy/meetings-agendas-and-minutes",
                value=5, description="Boost meeting content",
            ),
            CrawlRule(
                type="include_path", pattern="/transparency-and-performance",
                description="Always include transparency data",
            ),
            CrawlRule(
                type="exclude_path", pattern="/waste-and-recycling/bin-collection-calendar",
                description="High volume, low value",
            ),
            CrawlRule(type="rate_limit", pattern="*", value=2000, description="Main site courtesy delay"),
        ],
        content_types=["text/html", "application/pdf", "application/json"],
        expected_data_types=["council_meeting", "service_info", "transparency_data", "policy_document"],
        average_response_ms=1500.0,
        error_rate=0.05,
    ),
    CrawlTarget(
        domain="bolton.moderngov.co.uk",
        priority=9,
        crawl_frequency="hourly",
        rules=[
            CrawlRule(type="custom_selector", pattern=".mgMainTable", description="ModernGov tables"),
            CrawlRule(
                type="priority_boost", pattern="ieListDocuments.aspx", value=3,
                description="Document listings",
            ),
        ],
        content_types=["text/html", "application/pdf"],
        expected_data_types=["council_meeting", "policy_document"],
        average_response_ms=2000.0,
        error_rate=0.03,
    ),
    CrawlTarget(
        domain="paplanning.bolton.gov.uk",
        priority=8,
        crawl_frequency="daily",
        rules=[
            CrawlRule(
                type="include_path", pattern="/online-applications/search.do",
                description="Planning application search",
            ),
            CrawlRule(type="custom_selector", pattern=".searchresults", description="Search results"),
        ],
        expected_data_types=["planning_application"],
        average_response_ms=3000.0,
        error_rate=0.08,
    ),
    CrawlTarget(
        domain="data.gov.uk",
        priority=6,
        crawl_frequency="weekly",
        rules=[
            CrawlRule(type="include_path", pattern="/dataset.*bolton", description="Local datasets only"),
        ],
        content_types=["text/html", "text/csv", "application/json", "application/xml"],
        expected_data_types=["transparency_data", "financial_data"],
        average_response_ms=5000.0,
        error_rate=0.02,
    ),
]

_TARGETS_ADAPTER = TypeAdapter(list[CrawlTarget])


def default_targets() -> list[CrawlTarget]:
    return [t.model_copy(deep=True) for t in DEFAULT_TARGETS]


def load_targets(path: Path | None) -> list[CrawlTarget]:
    """Load crawl targets from JSON, or the defaults when ``path`` is None.

    Raises:
        ConfigurationError: If the file is missing, unparsable or has
            duplicate domains.
    """
    if path is None:
        return default_targets()
    try:
        raw = json.loads(Path(path).read_text(encoding="utf-8"))
        targets = _TARGETS_ADAPTER.validate_python(raw)
    except (OSError, json.JSONDecodeError, ValidationError) as exc:
        raise ConfigurationError(f"Invalid crawl targets file {path}: {exc}") from exc

    domains = [t.domain for t in targets]
    duplicates = sorted({d for d in domains if domains.count(d) > 1})
    if duplicates:
        raise ConfigurationError(f"Duplicate crawl targets: {', '.join(duplicates)}")
    logger.info("Loaded %d crawl targets from %s", len(targets), path)
    return targets
