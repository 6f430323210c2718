"""
Bulk vocabulary import and learning-progress backup/restore.

``import_from_remote`` replaces the whole vocabulary from a remote feed and
discards any learning progress; ``export_progress``/``import_progress`` let
a user carry progress across such a re-import.
"""

import dataclasses
import json
import logging
from datetime import date, datetime
from pathlib import Path
from typing import Any, Callable, Iterable, List, Mapping, Optional, Union

from pydantic import ValidationError

from ..domain.errors import EmptyFeed, InvalidFormat, StoreUnavailable
from ..domain.progress import ProgressRow, ProgressSnapshot
from ..domain.repositories import SettingsStore, VocabularyStore
from ..domain.vocabulary import ExampleSentence, VocabularyEntry
from ..utils.logging import get_import_logger, log_batch_progress
from .vocabulary_repository import DEFAULT_BATCH_SIZE, chunked

logger = logging.getLogger(__name__)

LAST_IMPORT_SETTING = "lastDatabaseImport"

SnapshotInput = Union[ProgressSnapshot, Mapping[str, Any], str, bytes]


def parse_examples(raw: Any) -> List[ExampleSentence]:
    """Parse feed examples given either as a JSON string or as a list."""
    if raw is None or raw == "":
        return []
    if isinstance(raw, (str, bytes)):
        try:
            raw = json.loads(raw)
        except ValueError:
            logger.warning("Could not parse examples string, treating as empty")
            return []
    if not isinstance(raw, list):
        return []

    examples = []
    for item in raw:
        if not isinstance(item, Mapping) or not item.get("simplified"):
            continue
        examples.append(
            ExampleSentence(
                simplified=str(item["simplified"]),
                pinyin=str(item.get("pinyin") or ""),
                english=str(item.get("english") or ""),
            )
        )
    return examples


def _meanings_text(raw: Any) -> str:
    if raw is None:
        return ""
    if isinstance(raw, (list, tuple)):
        return "; ".join(str(part) for part in raw if part)
    return str(raw)


def normalize_feed_record(raw: Mapping[str, Any], today: date) -> VocabularyEntry:
    """Build a fresh VocabularyEntry from one remote feed record.

    Progress fields in the feed are ignored: every imported entry starts at
    SRS level 0, due today, with zero counters and not a favorite.

    Raises:
        ValueError: The record lacks an id, a simplified form or a level.
    """
    if not isinstance(raw, Mapping):
        raise ValueError(f"Feed record must be an object, got {type(raw).__name__}")
    entry_id = raw.get("id")
    if entry_id is None or entry_id == "":
        raise ValueError("Feed record has no id")
    simplified = raw.get("simplified")
    if not simplified:
        raise ValueError(f"Feed record {entry_id} has no simplified form")
    if raw.get("level") is None:
        raise ValueError(f"Feed record {entry_id} has no level")

    return VocabularyEntry(
        id=str(entry_id),
        simplified=str(simplified),
        traditional=str(raw.get("traditional") or ""),
        pinyin=str(raw.get("pinyin") or ""),
        meanings=_meanings_text(raw.get("meanings")),
        level=int(raw["level"]),
        examples=tuple(parse_examples(raw.get("examples"))),
        srs_level=0,
        next_review=today,
        correct_count=0,
        incorrect_count=0,
        last_practiced=None,
        is_favorite=False,
    )


def parse_snapshot(data: SnapshotInput) -> ProgressSnapshot:
    """Validate a progress snapshot given as a model, a dict or JSON text.

    Raises:
        InvalidFormat: The data is not a well-formed progress snapshot.
    """
    if isinstance(data, ProgressSnapshot):
        return data
    try:
        if isinstance(data, (str, bytes)):
            return ProgressSnapshot.model_validate_json(data)
        return ProgressSnapshot.model_validate(data)
    except ValidationError as e:
        raise InvalidFormat(f"Invalid progress data format: {e}") from e


class ImportExportService:
    """Bulk writes against the vocabulary store, processed batch by batch."""

    def __init__(
        self,
        store: VocabularyStore,
        clock: Optional[Callable[[], datetime]] = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
        settings_store: Optional[SettingsStore] = None,
    ) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self.store = store
        self.settings_store = settings_store
        self._clock = clock or datetime.now
        self.batch_size = batch_size
        self._log = get_import_logger()

    async def import_from_remote(self, records: Iterable[Mapping[str, Any]]) -> int:
        """Replace the whole vocabulary with the records of a remote feed.

        Input is validated before the store is cleared. After ``clear()``
        the records are written in batches; a crash in between can leave
        the store partially populated, which a re-import repairs.

        Returns:
            Number of entries actually written.

        Raises:
            EmptyFeed: No records, or no usable record, were given.
            StoreUnavailable: The store could not be cleared or written.
        """
        records = list(records or [])
        if not records:
            raise EmptyFeed()

        today = self._clock().date()
        entries: List[VocabularyEntry] = []
        for raw in records:
            try:
                entries.append(normalize_feed_record(raw, today))
            except (TypeError, ValueError) as e:
                logger.warning(f"Skipping feed record: {e}")
        if not entries:
            raise EmptyFeed("Vocabulary feed contains no usable records")

        logger.info(
            f"Starting to import {len(entries)} words "
            f"in batches of up to {self.batch_size}"
        )
        await self.store.clear()

        imported = 0
        for batch in chunked(entries, self.batch_size):
            imported += await self.store.put_batch(batch)
            log_batch_progress("vocabulary import", imported, len(entries), logger=self._log)

        logger.info(f"Vocabulary import complete: {imported}/{len(entries)} words stored")
        if self.settings_store is not None:
            await self.settings_store.save_setting(
                LAST_IMPORT_SETTING, self._clock().isoformat()
            )
        return imported

    async def export_progress(self) -> ProgressSnapshot:
        """Snapshot the learning progress of every entry."""
        entries = await self.store.get_all()
        return ProgressSnapshot(
            export_date=self._clock(),
            progress_data=[ProgressRow.from_entry(entry) for entry in entries],
        )

    async def import_progress(self, snapshot: SnapshotInput) -> int:
        """Merge a progress snapshot into the existing vocabulary.

        Only entries that already exist are updated; rows for unknown ids
        are skipped because the vocabulary corpus decides which ids exist.

        Returns:
            Number of entries whose progress was overwritten.

        Raises:
            InvalidFormat: The snapshot is malformed (checked before any write).
        """
        parsed = parse_snapshot(snapshot)
        rows = parsed.progress_data
        merged = 0

        for batch in chunked(rows, self.batch_size):
            try:
                existing = await self.store.get_many(row.id for row in batch)
                updated = [
                    dataclasses.replace(
                        existing[row.id],
                        srs_level=row.srs_level,
                        next_review=row.next_review,
                        correct_count=row.correct_count,
                        incorrect_count=row.incorrect_count,
                        last_practiced=row.last_practiced,
                        is_favorite=row.is_favorite,
                    )
                    for row in batch
                    if row.id in existing
                ]
                merged += await self.store.put_batch(updated)
            except StoreUnavailable as e:
                logger.error(
                    f"Progress import stopped after {merged}/{len(rows)} entries: {e}",
                    exc_info=True,
                )
                break
            log_batch_progress("progress import", merged, len(rows), logger=self._log)

        skipped = len(rows) - merged
        if skipped:
            logger.info(f"Progress import skipped {skipped} rows with unknown ids or failed writes")
        return merged

    async def export_progress_to_file(self, path: Union[str, Path]) -> Path:
        """Write a progress snapshot to *path* as UTF-8 JSON."""
        path = Path(path)
        snapshot = await self.export_progress()
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(snapshot.to_json(), encoding="utf-8")
        logger.info(f"Exported progress for {len(snapshot.progress_data)} words to {path}")
        return path

    async def import_progress_from_file(self, path: Union[str, Path]) -> int:
        """Read a snapshot file written by ``export_progress_to_file`` and merge it."""
        text = Path(path).read_text(encoding="utf-8")
        return await self.import_progress(text)
