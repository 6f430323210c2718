"""VocabularyStore protocol: durable, indexed storage of vocabulary entries."""

from datetime import date
from typing import AsyncIterator, Dict, Iterable, List, Optional, Protocol, runtime_checkable

from ..vocabulary import VocabularyEntry


@runtime_checkable
class VocabularyStore(Protocol):
    """Storage interface for VocabularyEntry records keyed by id."""

    async def get_all(self) -> List[VocabularyEntry]:
        """Return every stored entry.

        Raises:
            StoreUnavailable: The storage engine cannot be accessed.
        """
        ...

    async def get(self, entry_id: str) -> Optional[VocabularyEntry]:
        """Look up one entry by id, or None if absent."""
        ...

    async def get_many(self, entry_ids: Iterable[str]) -> Dict[str, VocabularyEntry]:
        """Look up several entries at once; missing ids are simply absent."""
        ...

    async def get_by_level(self, level: int) -> List[VocabularyEntry]:
        """Return all entries of one HSK level (index lookup)."""
        ...

    async def get_by_simplified(self, simplified: str) -> Optional[VocabularyEntry]:
        """Return the first entry whose simplified form matches exactly."""
        ...

    async def count(self) -> int:
        """Return the number of stored entries."""
        ...

    async def put(self, entry: VocabularyEntry) -> None:
        """Insert or replace an entry by id."""
        ...

    async def put_batch(self, entries: Iterable[VocabularyEntry]) -> int:
        """Insert or replace several entries, tolerating per-record failures.

        Returns:
            Number of entries actually written.
        """
        ...

    def scan_by_next_review_up_to(self, until: date) -> AsyncIterator[VocabularyEntry]:
        """Lazily yield entries with ``next_review <= until``, earliest first."""
        ...

    async def clear(self) -> None:
        """Remove every entry. Failures propagate."""
        ...
