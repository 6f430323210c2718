import logging
import os
import random
from datetime import datetime

import pytest

# Set test environment variables
os.environ["ENVIRONMENT"] = "test"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["LOG_TO_FILE"] = "false"
os.environ.pop("VOCABULARY_FEED_URL", None)

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402

from hsk_srs.domain.vocabulary import ExampleSentence, PracticeConfig, VocabularyEntry  # noqa: E402
from hsk_srs.infrastructure.repositories import (  # noqa: E402
    SqlAlchemySettingsStore,
    SqlAlchemyVocabularyStore,
)
from hsk_srs.models.base import Base  # noqa: E402
from hsk_srs.services.import_export_service import ImportExportService  # noqa: E402
from hsk_srs.services.vocabulary_repository import VocabularyRepository  # noqa: E402

NOW = datetime(2024, 1, 1, 9, 30)
TODAY = NOW.date()


@pytest.fixture(autouse=True)
def _strip_file_handlers():
    """Remove file handlers from root logger so tests never write to logs/app.log."""
    root = logging.getLogger()
    saved = [h for h in root.handlers if isinstance(h, logging.FileHandler)]
    for h in saved:
        root.removeHandler(h)
    yield
    for h in list(root.handlers):
        if isinstance(h, logging.FileHandler):
            root.removeHandler(h)
    for h in saved:
        root.addHandler(h)


@pytest.fixture
def clock():
    """Fixed wall clock at 2024-01-01 09:30."""
    return lambda: NOW


@pytest.fixture
async def async_engine(tmp_path):
    """Create a temporary-file async SQLite engine with all tables."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(async_engine):
    return async_sessionmaker(async_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def store(session_factory):
    return SqlAlchemyVocabularyStore(session_factory)


@pytest.fixture
def settings_store(session_factory):
    return SqlAlchemySettingsStore(session_factory)


@pytest.fixture
def repository(store, clock):
    return VocabularyRepository(store, PracticeConfig(), clock=clock, rng=random.Random(7))


@pytest.fixture
def import_export(store, clock):
    return ImportExportService(store, clock=clock)


@pytest.fixture
def make_entry():
    """Factory for VocabularyEntry objects with sensible defaults."""

    def _make(
        entry_id,
        level=1,
        examples=1,
        next_review=TODAY,
        **overrides,
    ) -> VocabularyEntry:
        fields = dict(
            id=str(entry_id),
            simplified=f"词{entry_id}",
            pinyin=f"ci{entry_id}",
            meanings=f"word {entry_id}",
            level=level,
            examples=tuple(
                ExampleSentence(f"例句{entry_id}-{i}", f"li ju {i}", f"example {i}")
                for i in range(examples)
            ),
            next_review=next_review,
        )
        fields.update(overrides)
        return VocabularyEntry(**fields)

    return _make


@pytest.fixture
def feed_records():
    """A small remote feed as the backend serves it (examples JSON-encoded)."""
    return [
        {
            "id": 1,
            "simplified": "爱",
            "traditional": "愛",
            "pinyin": "ài",
            "meanings": "to love",
            "level": 1,
            "examples": '[{"simplified": "我爱你", "pinyin": "wǒ ài nǐ", "english": "I love you"}]',
        },
        {
            "id": 2,
            "simplified": "八",
            "pinyin": "bā",
            "meanings": ["eight", "8"],
            "level": 1,
            "examples": [{"simplified": "八个人", "pinyin": "bā gè rén", "english": "eight people"}],
        },
        {
            "id": "c1",
            "simplified": "一石二鸟",
            "pinyin": "yī shí èr niǎo",
            "meanings": "kill two birds with one stone",
            "level": -1,
            "examples": "[]",
            "srsLevel": 5,
            "isFavorite": True,
        },
    ]
