# src/storage/base_storage.py - v1
"""Abstract corpus storage interface.

The engine persists extracted records through ``upsert`` and relies on
``find_similar`` for the fuzzy lookups behind title and semantic dedup.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from crawlintel.core.models import CorpusRecord, SimilarItem, SimilarityStrategy
from crawlintel.storage.models import RecordFilter


class StorageError(Exception):
    """Raised when a storage operation cannot be completed."""


class RecordNotFoundError(StorageError):
    """Raised when a record id does not exist."""

    def __init__(self, record_id: str):
        self.record_id = record_id
        super().__init__(f"Record not found: {record_id}")


class BaseStorage(ABC):
    """Unified interface for corpus storage backends."""

    @abstractmethod
    async def upsert(self, record: CorpusRecord) -> str:
        """Insert or replace a record; returns its id."""

    @abstractmethod
    async def get(self, record_id: str) -> CorpusRecord | None:
        """Fetch one record by id."""

    @abstractmethod
    async def query(self, record_filter: RecordFilter) -> list[CorpusRecord]:
        """Return records matching the filter."""

    @abstractmethod
    async def find_similar(
        self,
        candidate: CorpusRecord,
        strategy: SimilarityStrategy,
        threshold: float,
        limit: int = 10,
    ) -> list[SimilarItem]:
        """Server-side similarity lookup (trigram titles or full-text rank).

        Raises:
            ValueError: If the backend does not support ``strategy``.
        """

    async def require(self, record_id: str) -> CorpusRecord:
        """Like ``get`` but raises RecordNotFoundError for unknown ids."""
        record = await self.get(record_id)
        if record is None:
            raise RecordNotFoundError(record_id)
        return record
