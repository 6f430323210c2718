"""
Vocabulary repository.

Query and mutation operations used by the practice, browse and progress
flows. All reads and writes go through a VocabularyStore; the only state
kept here is the practice configuration, the clock and the random source.
"""

import dataclasses
import logging
import random
from datetime import date, datetime
from typing import Callable, Collection, Iterable, List, Optional, Sequence

from ..domain.errors import EntryNotFound, StoreUnavailable
from ..domain.repositories import VocabularyStore
from ..domain.vocabulary import (
    HSK_LEVELS,
    IDIOM_LEVEL,
    ExampleSentence,
    FilterType,
    LevelProgress,
    PracticeConfig,
    ProgressStats,
    VocabularyEntry,
)
from .srs.srs_algorithm import compute_next_review

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 100


def chunked(items: Sequence, size: int) -> Iterable[Sequence]:
    """Yield consecutive slices of *items* of at most *size* elements."""
    for start in range(0, len(items), size):
        yield items[start : start + size]


class VocabularyRepository:
    """Practice-candidate selection and learning-progress mutations."""

    def __init__(
        self,
        store: VocabularyStore,
        config: Optional[PracticeConfig] = None,
        clock: Optional[Callable[[], datetime]] = None,
        rng: Optional[random.Random] = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
    ) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self.store = store
        self.config = config or PracticeConfig()
        self._clock = clock or datetime.now
        self._rng = rng or random.Random()
        self.batch_size = batch_size

    def now(self) -> datetime:
        return self._clock()

    def today(self) -> date:
        return self._clock().date()

    # ------------------------------------------------------------------
    # Plain lookups
    # ------------------------------------------------------------------

    async def get(self, entry_id: str) -> Optional[VocabularyEntry]:
        return await self.store.get(str(entry_id))

    async def get_all(self) -> List[VocabularyEntry]:
        return await self.store.get_all()

    async def get_by_level(self, level: int) -> List[VocabularyEntry]:
        return await self.store.get_by_level(level)

    async def get_by_simplified(self, simplified: str) -> Optional[VocabularyEntry]:
        return await self.store.get_by_simplified(simplified)

    async def get_favorites(self) -> List[VocabularyEntry]:
        return [entry for entry in await self.store.get_all() if entry.is_favorite]

    async def is_database_empty(self) -> bool:
        return await self.store.count() == 0

    # ------------------------------------------------------------------
    # Practice-candidate selection
    # ------------------------------------------------------------------

    async def get_due_for_review(
        self, count: int = 20, level: Optional[int] = None
    ) -> List[VocabularyEntry]:
        """Return up to *count* entries, due ones first, padded with random ones.

        Due entries (``next_review <= today``) are taken in ``next_review``
        order. If fewer than *count* are due, the remainder is drawn from
        ``get_random_words`` excluding what was already selected.
        """
        if count <= 0:
            return []

        results: List[VocabularyEntry] = []
        async for entry in self.store.scan_by_next_review_up_to(self.today()):
            if level is not None and entry.level != level:
                continue
            if not entry.has_examples:
                continue
            results.append(entry)
            if len(results) >= count:
                break

        if len(results) < count:
            supplements = await self.get_random_words(
                count - len(results), level, exclude_ids=[entry.id for entry in results]
            )
            logger.debug(
                f"{len(results)} due entries, supplemented with {len(supplements)} random"
            )
            results.extend(supplements)
        return results

    async def get_random_words(
        self,
        count: int = 20,
        level: Optional[int] = None,
        exclude_ids: Collection[str] = (),
    ) -> List[VocabularyEntry]:
        """Return up to *count* random entries with examples; never pads."""
        if count <= 0:
            return []
        excluded = {str(entry_id) for entry_id in exclude_ids}
        candidates = [
            entry
            for entry in await self.store.get_all()
            if entry.has_examples
            and (level is None or entry.level == level)
            and entry.id not in excluded
        ]
        self._rng.shuffle(candidates)
        return candidates[:count]

    async def select_practice_word(
        self,
        levels: Optional[Collection[int]] = None,
        only_never_correct: bool = False,
    ) -> Optional[VocabularyEntry]:
        """Pick the next word to practice.

        With *only_never_correct*, pick among entries still at SRS level 0.
        Otherwise prefer due entries and fall back to any entry of the
        selected levels. Only entries with examples are eligible.
        """
        selected_levels = set(levels) if levels is not None else set(self.config.active_levels)
        pool = [
            entry
            for entry in await self.store.get_all()
            if entry.level in selected_levels and entry.has_examples
        ]

        if only_never_correct:
            return self._pick([entry for entry in pool if entry.srs_level == 0])

        today = self.today()
        due = [entry for entry in pool if entry.is_due(today)]
        if due:
            return self._pick(due)
        return self._pick(pool)

    def random_example(self, entry: VocabularyEntry) -> Optional[ExampleSentence]:
        """Return one of the entry's example sentences at random."""
        if not entry.examples:
            return None
        return self._rng.choice(entry.examples)

    def _pick(self, candidates: List[VocabularyEntry]) -> Optional[VocabularyEntry]:
        if not candidates:
            return None
        return self._rng.choice(candidates)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def record_practice_outcome(self, entry_id: str, was_correct: bool) -> VocabularyEntry:
        """Apply one practice outcome and persist the updated entry.

        This is the only path that moves ``srs_level``, ``next_review`` and
        the counters together.

        Raises:
            EntryNotFound: No entry with *entry_id* exists.
        """
        entry = await self.store.get(str(entry_id))
        if entry is None:
            raise EntryNotFound(str(entry_id))

        now = self.now()
        new_level, next_review = compute_next_review(entry.srs_level, was_correct, now.date())
        if was_correct:
            counters = {"correct_count": entry.correct_count + 1}
        else:
            counters = {"incorrect_count": entry.incorrect_count + 1}

        updated = dataclasses.replace(
            entry,
            srs_level=new_level,
            next_review=next_review,
            last_practiced=now,
            **counters,
        )
        await self.store.put(updated)
        logger.info(
            f"Recorded {'correct' if was_correct else 'incorrect'} outcome for "
            f"{updated.id}: level {entry.srs_level} -> {new_level}, next review {next_review}"
        )
        return updated

    async def toggle_favorite(self, entry_id: str) -> VocabularyEntry:
        """Flip the favorite flag of an entry.

        Raises:
            EntryNotFound: No entry with *entry_id* exists.
        """
        entry = await self.store.get(str(entry_id))
        if entry is None:
            raise EntryNotFound(str(entry_id))
        updated = dataclasses.replace(entry, is_favorite=not entry.is_favorite)
        await self.store.put(updated)
        return updated

    async def reset_all_progress(self) -> int:
        """Reset learning progress of every entry, keeping favorites.

        Works in batches of ``batch_size``; each batch is committed on its
        own. If the store becomes unavailable partway, earlier batches stay
        reset and the count completed so far is returned.
        """
        entries = await self.store.get_all()
        today = self.today()
        reset = 0

        for batch in chunked(entries, self.batch_size):
            fresh = [
                dataclasses.replace(
                    entry,
                    srs_level=0,
                    next_review=today,
                    correct_count=0,
                    incorrect_count=0,
                    last_practiced=None,
                )
                for entry in batch
            ]
            try:
                reset += await self.store.put_batch(fresh)
            except StoreUnavailable as e:
                logger.error(
                    f"Progress reset stopped after {reset}/{len(entries)} entries: {e}",
                    exc_info=True,
                )
                break
            logger.info(f"Reset progress for {reset}/{len(entries)} words")

        return reset

    # ------------------------------------------------------------------
    # Browse and statistics
    # ------------------------------------------------------------------

    async def search_and_filter(
        self,
        search_term: str = "",
        level: Optional[int] = None,
        filter_type: FilterType = FilterType.ALL,
    ) -> List[VocabularyEntry]:
        """Filter the whole vocabulary in memory.

        *search_term* is matched case-insensitively as a substring of the
        simplified form, the pinyin or the meanings. Results are ordered by
        level and then simplified form.
        """
        filter_type = FilterType(filter_type)
        term = (search_term or "").strip().lower()

        def matches(entry: VocabularyEntry) -> bool:
            if level is not None and entry.level != level:
                return False
            if filter_type is FilterType.MASTERED and entry.correct_count <= 0:
                return False
            if filter_type is FilterType.LEARNING and entry.correct_count != 0:
                return False
            if filter_type is FilterType.FAVORITE and not entry.is_favorite:
                return False
            if term:
                haystacks = (entry.simplified, entry.pinyin, entry.meanings)
                return any(term in (text or "").lower() for text in haystacks)
            return True

        results = [entry for entry in await self.store.get_all() if matches(entry)]
        results.sort(key=lambda entry: (entry.level, entry.simplified))
        return results

    async def get_progress_stats(self) -> ProgressStats:
        """Summarize mastery overall and per level.

        HSK 1-6 and the idiom level are always listed; other levels present
        in the store follow them.
        """
        entries = await self.store.get_all()
        today = self.today()

        per_level = {level: LevelProgress(level=level) for level in (*HSK_LEVELS, IDIOM_LEVEL)}
        for entry in entries:
            progress = per_level.setdefault(entry.level, LevelProgress(level=entry.level))
            progress.total += 1
            if entry.is_mastered:
                progress.mastered += 1

        return ProgressStats(
            total_words=len(entries),
            mastered_words=sum(1 for entry in entries if entry.is_mastered),
            due_today=sum(1 for entry in entries if entry.is_due(today)),
            favorites=sum(1 for entry in entries if entry.is_favorite),
            by_level=list(per_level.values()),
        )
