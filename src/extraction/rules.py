# src/extraction/rules.py - v1
"""Per-entity-type extraction rule tables and type inference keywords.

Each ``EntityType`` owns an explicit tuple of ``FieldRule``s. Selectors are
CSS selectors tried in order; patterns validate the selected text; the
transform normalizes the accepted value.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Callable

from crawlintel.core.text import normalize_whitespace, parse_amount, parse_date
from crawlintel.extraction.models import EntityType

Transform = Callable[[str], Any]


def to_date(value: str) -> str:
    """ISO date for parseable values; the raw text otherwise (flagged by validation)."""
    parsed = parse_date(value)
    return parsed.date().isoformat() if parsed else value


def to_amount(value: str) -> float | str:
    amount = parse_amount(value)
    return amount if amount is not None else value


@dataclass(frozen=True)
class FieldRule:
    """How to locate and validate one field of an entity."""

    name: str
    selectors: tuple[str, ...]
    weight: float
    required: bool = False
    patterns: tuple[re.Pattern[str], ...] = ()
    multiple: bool = False
    transform: Transform | None = None

    def accepts(self, value: str) -> bool:
        return not self.patterns or any(p.search(value) for p in self.patterns)


def _p(*patterns: str) -> tuple[re.Pattern[str], ...]:
    return tuple(re.compile(p, re.IGNORECASE) for p in patterns)


_DATE_PATTERNS = _p(
    r"\d{1,2}(?:st|nd|rd|th)?[\s/\-]\w{3,9}[\s/\-]\d{4}",
    r"\d{4}-\d{2}-\d{2}",
)
_EMAIL_PATTERNS = _p(r"[\w.+-]+@[\w-]+\.[\w.-]+")
_PHONE_PATTERNS = _p(r"(?:\+44\s?|0)\d[\d\s]{8,12}\d")
_POSTCODE_PATTERNS = (re.compile(r"[A-Z]{1,2}\d[A-Z\d]?\s?\d[A-Z]{2}"),)
_AMOUNT_PATTERNS = _p(r"£[\d,]+\.?\d*", r"\d+\.?\d*\s*million")
_YEAR_PATTERNS = _p(r"20\d{2}[-/]?(?:20)?\d{2}")

RULE_TABLES: dict[EntityType, tuple[FieldRule, ...]] = {
    EntityType.COUNCIL_MEETING: (
        FieldRule(
            "meeting_title", ("h1", ".meeting-title", ".agenda-title", "title"), 10,
            required=True,
            patterns=_p(r"committee\s+meeting", r"council\s+meeting", r"agenda"),
        ),
        FieldRule(
            "meeting_date", (".meeting-date", ".date", "time[datetime]"), 9,
            required=True, patterns=_DATE_PATTERNS, transform=to_date,
        ),
        FieldRule(
            "agenda_items", (".agenda-item", ".item", "ol li", "ul li"), 8,
            patterns=_p(r"^\d+\.?\s+"), multiple=True,
        ),
        FieldRule(
            "committee_name", (".committee", ".meeting-type", "h2"), 7,
            patterns=_p(r"committee$", r"board$", r"panel$"),
        ),
    ),
    EntityType.PLANNING_APPLICATION: (
        FieldRule(
            "application_number", (".app-number", ".reference", "[data-ref]"), 10,
            required=True, patterns=_p(r"\d{2}/\d{5}/[A-Z]+", r"[A-Z]{2}\d{8}"),
        ),
        FieldRule(
            "application_address", (".address", ".property", ".site"), 9,
            required=True,
            patterns=(re.compile(r"\d+\s+[A-Za-z\s,]+[A-Z]{1,2}\d{1,2}\s?\d[A-Z]{2}"),),
        ),
        FieldRule("proposal", (".proposal", ".description", ".development"), 8),
        FieldRule(
            "status", (".status", ".decision", ".outcome"), 7,
            patterns=_p(r"pending|approved|refused|withdrawn|granted"),
        ),
    ),
    EntityType.COUNCILLOR: (
        FieldRule("name", (".councillor-name", ".member-name", ".cllr-name"), 10, required=True),
        FieldRule("ward", (".ward", ".division", ".constituency"), 9, required=True),
        FieldRule("party", (".party", ".political-group"), 6),
        FieldRule("email", (".email", 'a[href^="mailto:"]'), 5, patterns=_EMAIL_PATTERNS),
    ),
    EntityType.BUDGET_ITEM: (
        FieldRule(
            "budget_category", (".category", ".department", ".budget-line", "th"), 10,
            required=True,
        ),
        FieldRule(
            "amount", (".amount", ".cost", ".budget", ".value"), 10,
            required=True, patterns=_AMOUNT_PATTERNS, transform=to_amount,
        ),
        FieldRule(
            "budget_year", (".year", ".financial-year", ".period"), 6,
            patterns=_YEAR_PATTERNS,
        ),
    ),
    EntityType.POLICY_DOCUMENT: (
        FieldRule("title", (".policy-title", ".document-title", "h1"), 10, required=True),
        FieldRule(
            "date", (".published", ".policy-date", ".date", "time[datetime]"), 8,
            required=True, patterns=_DATE_PATTERNS, transform=to_date,
        ),
        FieldRule("summary", (".summary", ".abstract"), 6),
        FieldRule("version", (".version",), 4),
    ),
    EntityType.SERVICE_INFO: (
        FieldRule("service_name", (".service-name", "h1", "title"), 10, required=True),
        FieldRule("description", (".service-description", ".summary", "main p"), 7),
        FieldRule("contact_phone", (".phone", ".telephone"), 5, patterns=_PHONE_PATTERNS),
        FieldRule("opening_hours", (".opening-hours", ".hours"), 4),
    ),
    EntityType.TRANSPARENCY_DATA: (
        FieldRule("dataset_title", (".dataset-title", "h1"), 10, required=True),
        FieldRule(
            "period", (".period", ".financial-year", ".quarter"), 7,
            patterns=_YEAR_PATTERNS,
        ),
        FieldRule(
            "download", ('a[href$=".csv"]', 'a[href$=".xlsx"]', 'a[href$=".json"]'), 6,
        ),
        FieldRule("publisher", (".publisher", ".department"), 5),
    ),
    EntityType.CONSULTATION: (
        FieldRule("consultation_title", (".consultation-title", "h1"), 10, required=True),
        FieldRule(
            "closing_date", (".closing-date", ".end-date", ".deadline"), 9,
            required=True, patterns=_DATE_PATTERNS, transform=to_date,
        ),
        FieldRule(
            "consultation_status", (".consultation-status", ".status"), 6,
            patterns=_p(r"open|closed|live"),
        ),
        FieldRule("summary", (".summary", ".consultation-summary"), 5),
    ),
    EntityType.CONTACT_INFO: (
        FieldRule(
            "email", (".email", 'a[href^="mailto:"]'), 10,
            required=True, patterns=_EMAIL_PATTERNS,
        ),
        FieldRule(
            "phone", (".phone", ".telephone", 'a[href^="tel:"]'), 8,
            patterns=_PHONE_PATTERNS,
        ),
        FieldRule("address", (".address", "address"), 7),
        FieldRule("department", (".department", ".team"), 5),
    ),
    EntityType.EVENT: (
        FieldRule("event_title", (".event-title", ".event h2", "h1"), 10, required=True),
        FieldRule(
            "event_date", (".event-date", "time[datetime]", ".date"), 9,
            required=True, patterns=_DATE_PATTERNS, transform=to_date,
        ),
        FieldRule("venue", (".venue", ".location"), 7),
        FieldRule("description", (".event-description", ".summary"), 5),
    ),
    EntityType.LOCATION: (
        FieldRule(
            "location_name", (".location-name", ".venue-name", '[itemtype*="Place"] [itemprop="name"]'),
            10, required=True,
        ),
        FieldRule("address", (".address", "address"), 8),
        FieldRule("postcode", (".postcode", ".address"), 7, patterns=_POSTCODE_PATTERNS),
    ),
    EntityType.ORGANIZATION: (
        FieldRule(
            "organization_name",
            (".organisation-name", ".organization-name", '[itemtype*="Organization"] [itemprop="name"]'),
            10, required=True,
        ),
        FieldRule("website", (".website", '[itemprop="url"]'), 6),
        FieldRule("contact", (".contact",), 5),
    ),
    EntityType.PERSON: (
        FieldRule(
            "person_name", (".person-name", '[itemtype*="Person"] [itemprop="name"]', ".author"),
            10, required=True,
        ),
        FieldRule("role", (".role", ".job-title", '[itemprop="jobTitle"]'), 7),
        FieldRule("email", (".email", 'a[href^="mailto:"]'), 5, patterns=_EMAIL_PATTERNS),
    ),
    EntityType.FINANCIAL_DATA: (
        FieldRule("metric", (".metric", ".financial-metric", "caption"), 10, required=True),
        FieldRule(
            "value", (".figure", ".amount", ".total"), 10,
            required=True, patterns=_AMOUNT_PATTERNS, transform=to_amount,
        ),
        FieldRule("period", (".period", ".financial-year"), 6, patterns=_YEAR_PATTERNS),
    ),
}

# URL substrings that suggest an entity type.
URL_TYPE_HINTS: tuple[tuple[tuple[str, ...], EntityType], ...] = (
    (("meeting", "agenda", "minutes"), EntityType.COUNCIL_MEETING),
    (("planning", "application"), EntityType.PLANNING_APPLICATION),
    (("budget", "finance"), EntityType.BUDGET_ITEM),
    (("councillor", "member"), EntityType.COUNCILLOR),
    (("policy", "policies", "strategy"), EntityType.POLICY_DOCUMENT),
    (("consultation", "have-your-say"), EntityType.CONSULTATION),
    (("transparency", "open-data", "spending"), EntityType.TRANSPARENCY_DATA),
    (("event", "whats-on"), EntityType.EVENT),
    (("contact",), EntityType.CONTACT_INFO),
)

# Whole-word content phrases that suggest an entity type.
CONTENT_TYPE_HINTS: tuple[tuple[re.Pattern[str], EntityType], ...] = (
    (re.compile(r"\bagenda item|\bcommittee\b", re.I), EntityType.COUNCIL_MEETING),
    (re.compile(r"\bplanning (?:application|permission)\b", re.I), EntityType.PLANNING_APPLICATION),
    (re.compile(r"£|\bbudget\b", re.I), EntityType.BUDGET_ITEM),
    (re.compile(r"\bcouncillors?\b|\bward\b", re.I), EntityType.COUNCILLOR),
    (re.compile(r"\bconsultation\b", re.I), EntityType.CONSULTATION),
    (re.compile(r"\btransparency\b|\bopen data\b", re.I), EntityType.TRANSPARENCY_DATA),
    (re.compile(r"\b(?:revenue|expenditure|financial statement)\b", re.I), EntityType.FINANCIAL_DATA),
    (re.compile(r"\bcontact us\b", re.I), EntityType.CONTACT_INFO),
)

# schema.org @type values found in JSON-LD.
JSONLD_TYPE_HINTS: dict[str, EntityType] = {
    "event": EntityType.EVENT,
    "organization": EntityType.ORGANIZATION,
    "governmentorganization": EntityType.ORGANIZATION,
    "person": EntityType.PERSON,
    "place": EntityType.LOCATION,
}


def rules_for(entity_type: EntityType) -> tuple[FieldRule, ...]:
    return RULE_TABLES[entity_type]


def required_fields(entity_type: EntityType) -> list[str]:
    return [r.name for r in RULE_TABLES[entity_type] if r.required]


def total_weight(entity_type: EntityType) -> float:
    return sum(r.weight for r in RULE_TABLES[entity_type])


def clean_text(value: str) -> str:
    return normalize_whitespace(value)
