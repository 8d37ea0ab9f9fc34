# src/dedup/merge.py - v1
"""Merge strategies: build the surviving record from a primary and its
duplicates. The survivor always keeps the primary's id."""

from __future__ import annotations

from crawlintel.core.models import CorpusRecord, utcnow
from crawlintel.dedup.models import MergeStrategy

COMPLETENESS_FIELDS = (
    "description", "category", "location", "amount",
    "source_url", "event_date", "tags", "metadata",
)


class MergeError(Exception):
    """Raised when a merge cannot be applied."""


def _filled(record: CorpusRecord, field: str) -> bool:
    value = getattr(record, field)
    if field == "amount":
        return value is not None
    return bool(value)


def completeness(record: CorpusRecord) -> float:
    """Share of optional fields carrying a value."""
    return sum(_filled(record, f) for f in COMPLETENESS_FIELDS) / len(COMPLETENESS_FIELDS)


def _adopt(primary: CorpusRecord, chosen: CorpusRecord) -> tuple[CorpusRecord, list[str]]:
    if chosen.id == primary.id:
        return primary.model_copy(deep=True), []
    survivor = chosen.model_copy(deep=True, update={"id": primary.id, "created_at": primary.created_at})
    changed = [
        f for f in ("title", *COMPLETENESS_FIELDS)
        if getattr(survivor, f) != getattr(primary, f)
    ]
    return survivor, changed


def _complementary(primary: CorpusRecord, duplicates: list[CorpusRecord]) -> tuple[CorpusRecord, list[str]]:
    survivor = primary.model_copy(deep=True)
    changed: list[str] = []
    for dup in duplicates:
        for field in ("description", "category", "location", "amount", "source_url", "event_date"):
            if not _filled(survivor, field) and _filled(dup, field):
                setattr(survivor, field, getattr(dup, field))
                changed.append(field)
        new_tags = [t for t in dup.tags if t not in survivor.tags]
        if new_tags:
            survivor.tags.extend(new_tags)
            changed.append("tags")
        new_keys = {k: v for k, v in dup.metadata.items() if k not in survivor.metadata}
        if new_keys:
            survivor.metadata.update(new_keys)
            changed.append("metadata")
        survivor.quality_score = max(survivor.quality_score, dup.quality_score)
    return survivor, list(dict.fromkeys(changed))


def apply_merge(
    primary: CorpusRecord,
    duplicates: list[CorpusRecord],
    strategy: MergeStrategy,
) -> tuple[CorpusRecord, list[str]]:
    """Return ``(survivor, merged_fields)`` for a merge strategy.

    Raises:
        MergeError: For ``manual_review``, which never merges automatically.
    """
    pool = [primary, *duplicates]
    if strategy == MergeStrategy.MERGE_COMPLEMENTARY:
        survivor, changed = _complementary(primary, duplicates)
    elif strategy == MergeStrategy.KEEP_HIGHEST_QUALITY:
        survivor, changed = _adopt(primary, max(pool, key=lambda r: r.quality_score))
    elif strategy == MergeStrategy.KEEP_MOST_RECENT:
        survivor, changed = _adopt(primary, max(pool, key=lambda r: r.updated_at))
    elif strategy == MergeStrategy.KEEP_MOST_COMPLETE:
        survivor, changed = _adopt(primary, max(pool, key=completeness))
    else:
        raise MergeError(f"Strategy {strategy.value} requires manual review")

    survivor.status = "active"
    survivor.merged_into = None
    survivor.updated_at = utcnow()
    survivor.metadata.setdefault("merged_from", [])
    survivor.metadata["merged_from"] = sorted(
        set(survivor.metadata["merged_from"]) | {d.id for d in duplicates}
    )
    return survivor, changed
