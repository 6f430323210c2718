"""SQLAlchemy implementation of VocabularyStore."""

import json
import logging
from datetime import date
from typing import AsyncIterator, Dict, Iterable, List, Optional, Tuple

from sqlalchemy import and_, delete, func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from hsk_srs.domain.errors import StoreUnavailable
from hsk_srs.domain.vocabulary import ExampleSentence, VocabularyEntry
from hsk_srs.models.vocabulary import VocabularyRecord

from ._session import open_session

logger = logging.getLogger(__name__)

# Keep IN (...) lists well under SQLite's bound-parameter limit.
_ID_CHUNK = 500


def encode_examples(examples: Iterable[ExampleSentence]) -> str:
    """Serialize example sentences for the ``examples`` column."""
    return json.dumps([example.to_dict() for example in examples], ensure_ascii=False)


def decode_examples(raw: Optional[str]) -> Tuple[ExampleSentence, ...]:
    """Parse the ``examples`` column; unreadable data yields no examples."""
    if not raw:
        return ()
    try:
        items = json.loads(raw)
    except (TypeError, ValueError):
        logger.warning("Unreadable examples column, treating as empty")
        return ()
    if not isinstance(items, list):
        return ()
    return tuple(
        ExampleSentence(
            simplified=item.get("simplified", ""),
            pinyin=item.get("pinyin", ""),
            english=item.get("english", ""),
        )
        for item in items
        if isinstance(item, dict)
    )


def record_to_entry(row: VocabularyRecord) -> VocabularyEntry:
    return VocabularyEntry(
        id=row.id,
        simplified=row.simplified,
        traditional=row.traditional,
        pinyin=row.pinyin,
        meanings=row.meanings,
        level=row.level,
        examples=decode_examples(row.examples),
        srs_level=row.srs_level,
        next_review=row.next_review,
        correct_count=row.correct_count,
        incorrect_count=row.incorrect_count,
        last_practiced=row.last_practiced,
        is_favorite=row.is_favorite,
    )


def entry_to_record(entry: VocabularyEntry) -> VocabularyRecord:
    return VocabularyRecord(
        id=entry.id,
        simplified=entry.simplified,
        traditional=entry.traditional,
        pinyin=entry.pinyin,
        meanings=entry.meanings,
        level=entry.level,
        examples=encode_examples(entry.examples),
        srs_level=entry.srs_level,
        next_review=entry.next_review,
        correct_count=entry.correct_count,
        incorrect_count=entry.incorrect_count,
        last_practiced=entry.last_practiced,
        is_favorite=entry.is_favorite,
    )


class SqlAlchemyVocabularyStore:
    """Concrete VocabularyStore backed by SQLAlchemy async sessions.

    Every public call opens its own session, so each ``put`` is its own
    durability unit and ``put_batch`` commits once per batch.
    """

    def __init__(self, session_factory: async_sessionmaker, scan_page_size: int = 200) -> None:
        self._session_factory = session_factory
        self._scan_page_size = scan_page_size

    async def get_all(self) -> List[VocabularyEntry]:
        async with open_session(self._session_factory) as session:
            result = await session.execute(select(VocabularyRecord))
            return [record_to_entry(row) for row in result.scalars().all()]

    async def get(self, entry_id: str) -> Optional[VocabularyEntry]:
        async with open_session(self._session_factory) as session:
            row = await session.get(VocabularyRecord, str(entry_id))
            return record_to_entry(row) if row else None

    async def get_many(self, entry_ids: Iterable[str]) -> Dict[str, VocabularyEntry]:
        ids = list(dict.fromkeys(str(entry_id) for entry_id in entry_ids))
        found: Dict[str, VocabularyEntry] = {}
        async with open_session(self._session_factory) as session:
            for start in range(0, len(ids), _ID_CHUNK):
                chunk = ids[start : start + _ID_CHUNK]
                result = await session.execute(
                    select(VocabularyRecord).where(VocabularyRecord.id.in_(chunk))
                )
                for row in result.scalars().all():
                    found[row.id] = record_to_entry(row)
        return found

    async def get_by_level(self, level: int) -> List[VocabularyEntry]:
        async with open_session(self._session_factory) as session:
            result = await session.execute(
                select(VocabularyRecord).where(VocabularyRecord.level == level)
            )
            return [record_to_entry(row) for row in result.scalars().all()]

    async def get_by_simplified(self, simplified: str) -> Optional[VocabularyEntry]:
        async with open_session(self._session_factory) as session:
            result = await session.execute(
                select(VocabularyRecord)
                .where(VocabularyRecord.simplified == simplified)
                .order_by(VocabularyRecord.id)
                .limit(1)
            )
            row = result.scalar_one_or_none()
            return record_to_entry(row) if row else None

    async def count(self) -> int:
        async with open_session(self._session_factory) as session:
            result = await session.execute(select(func.count()).select_from(VocabularyRecord))
            return result.scalar() or 0

    async def put(self, entry: VocabularyEntry) -> None:
        async with open_session(self._session_factory) as session:
            await session.merge(entry_to_record(entry))
            await session.commit()

    async def put_batch(self, entries: Iterable[VocabularyEntry]) -> int:
        """Write a batch in one transaction, isolating bad records on failure.

        If the batch commit fails for a record-level reason (constraint,
        bad data), each record is retried in its own transaction so that one
        bad record is logged and skipped while the rest are stored.
        StoreUnavailable always propagates.
        """
        rows: List[VocabularyRecord] = []
        for entry in entries:
            try:
                rows.append(entry_to_record(entry))
            except (TypeError, ValueError, AttributeError) as e:
                logger.error(f"Error preparing entry {getattr(entry, 'id', '?')}: {e}")
        if not rows:
            return 0

        try:
            async with open_session(self._session_factory) as session:
                for row in rows:
                    await session.merge(row)
                await session.commit()
            return len(rows)
        except StoreUnavailable:
            raise
        except SQLAlchemyError as e:
            logger.warning(
                f"Batch of {len(rows)} entries failed ({e.__class__.__name__}), "
                "retrying entries individually"
            )

        written = 0
        for row in rows:
            try:
                async with open_session(self._session_factory) as session:
                    await session.merge(row)
                    await session.commit()
                written += 1
            except StoreUnavailable:
                raise
            except SQLAlchemyError as e:
                logger.error(f"Error storing entry {row.id}: {e}", exc_info=True)
        return written

    async def scan_by_next_review_up_to(self, until: date) -> AsyncIterator[VocabularyEntry]:
        """Yield entries due on or before *until*, ordered by (next_review, id).

        Pages through the ``next_review`` index with keyset pagination; no
        session is held open while the caller consumes a page.
        """
        last_key: Optional[Tuple[date, str]] = None
        while True:
            stmt = select(VocabularyRecord).where(VocabularyRecord.next_review <= until)
            if last_key is not None:
                last_review, last_id = last_key
                stmt = stmt.where(
                    or_(
                        VocabularyRecord.next_review > last_review,
                        and_(
                            VocabularyRecord.next_review == last_review,
                            VocabularyRecord.id > last_id,
                        ),
                    )
                )
            stmt = stmt.order_by(VocabularyRecord.next_review, VocabularyRecord.id).limit(
                self._scan_page_size
            )

            async with open_session(self._session_factory) as session:
                result = await session.execute(stmt)
                page = [record_to_entry(row) for row in result.scalars().all()]

            for entry in page:
                yield entry

            if len(page) < self._scan_page_size:
                return
            last_key = (page[-1].next_review, page[-1].id)

    async def clear(self) -> None:
        async with open_session(self._session_factory) as session:
            await session.execute(delete(VocabularyRecord))
            await session.commit()
        logger.info("Vocabulary store cleared")
