# src/core/fingerprint.py - v1
"""Content fingerprints for corpus records."""

from __future__ import annotations

from crawlintel.core.models import CorpusRecord
from crawlintel.core.text import normalize_whitespace, sha256_hex


def normalized_identity(record: CorpusRecord) -> str:
    """Lowercased ``title|description|type|category|location`` string."""
    parts = [
        record.title,
        record.description,
        record.data_type,
        record.category,
        record.location,
    ]
    return "|".join(normalize_whitespace(p).lower() for p in parts)


def record_content_hash(record: CorpusRecord) -> str:
    """SHA-256 of the record's normalized identity fields."""
    return sha256_hex(normalized_identity(record))
