"""
Service wiring.

Builds the store, repository, import/export and sync services around one
shared session factory. The practice configuration is read from the
settings table once, here, and passed into the repository.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.ext.asyncio import async_sessionmaker

from ..domain.vocabulary import PracticeConfig
from ..infrastructure.repositories import SqlAlchemySettingsStore, SqlAlchemyVocabularyStore
from ..services.import_export_service import ImportExportService
from ..services.sync_service import SyncService
from ..services.vocabulary_repository import VocabularyRepository
from .config import Settings, get_settings
from .database import init_database

logger = logging.getLogger(__name__)


@dataclass
class VocabularyServices:
    store: SqlAlchemyVocabularyStore
    settings_store: SqlAlchemySettingsStore
    repository: VocabularyRepository
    import_export: ImportExportService
    sync: SyncService


async def load_practice_config(settings_store: SqlAlchemySettingsStore) -> PracticeConfig:
    """Build the practice configuration from the settings table."""
    return PracticeConfig.from_settings(await settings_store.get_all_settings())


async def build_services(
    settings: Optional[Settings] = None,
    session_factory: Optional[async_sessionmaker] = None,
) -> VocabularyServices:
    """Create all services; initializes the database unless a factory is given."""
    settings = settings or get_settings()
    if session_factory is None:
        session_factory = await init_database(settings.database_url)

    store = SqlAlchemyVocabularyStore(session_factory)
    settings_store = SqlAlchemySettingsStore(session_factory)
    config = await load_practice_config(settings_store)
    logger.debug(
        f"Practice config: levels={sorted(config.active_levels)}, "
        f"prefer_offline={config.prefer_offline}"
    )

    repository = VocabularyRepository(store, config, batch_size=settings.import_batch_size)
    import_export = ImportExportService(
        store, batch_size=settings.import_batch_size, settings_store=settings_store
    )
    sync = SyncService(
        import_export,
        repository,
        feed_url=settings.vocabulary_feed_url,
        timeout=settings.feed_timeout,
        settings_store=settings_store,
    )
    return VocabularyServices(
        store=store,
        settings_store=settings_store,
        repository=repository,
        import_export=import_export,
        sync=sync,
    )
