# src/storage/models.py - v1
"""Query filter for corpus storage backends."""

from __future__ import annotations

from datetime import datetime
from urllib.parse import urlparse

from pydantic import BaseModel, Field

from crawlintel.core.models import CorpusRecord, RecordStatus


class RecordFilter(BaseModel):
    """Conjunctive filter; unset fields do not constrain the query."""

    ids: list[str] | None = None
    data_type: str | None = None
    status: RecordStatus | None = "active"
    content_hash: str | None = None
    host: str | None = None
    created_after: datetime | None = None
    created_before: datetime | None = None
    exclude_ids: list[str] = Field(default_factory=list)
    limit: int | None = None

    def matches(self, record: CorpusRecord, content_hash: str | None = None) -> bool:
        if self.ids is not None and record.id not in self.ids:
            return False
        if record.id in self.exclude_ids:
            return False
        if self.data_type is not None and record.data_type != self.data_type:
            return False
        if self.status is not None and record.status != self.status:
            return False
        if self.content_hash is not None and content_hash != self.content_hash:
            return False
        if self.host is not None and urlparse(record.source_url).netloc.lower() != self.host.lower():
            return False
        if self.created_after is not None and record.created_at < self.created_after:
            return False
        if self.created_before is not None and record.created_at > self.created_before:
            return False
        return True
