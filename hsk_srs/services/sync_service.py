"""
Sync service for offline-first use.

Downloads the full vocabulary feed from the backend and replaces the local
store with it. Learning progress is not synced.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, List, Optional

import httpx

from ..domain.errors import DomainError, FeedUnavailable, StoreUnavailable
from ..domain.repositories import SettingsStore
from .import_export_service import ImportExportService
from .vocabulary_repository import VocabularyRepository

logger = logging.getLogger(__name__)

LAST_DOWNLOAD_SETTING = "lastDatabaseDownload"


@dataclass
class SyncResult:
    success: bool
    count: int = 0
    message: str = ""


class SyncService:
    """Fetch the remote vocabulary feed and import it into the local store."""

    def __init__(
        self,
        import_export: ImportExportService,
        repository: VocabularyRepository,
        feed_url: Optional[str],
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        settings_store: Optional[SettingsStore] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.import_export = import_export
        self.repository = repository
        self.feed_url = feed_url
        self.timeout = timeout
        self._transport = transport
        self.settings_store = settings_store
        self._clock = clock or datetime.now

    async def fetch_feed(self) -> List[Any]:
        """Download the vocabulary feed.

        Raises:
            FeedUnavailable: No URL configured, request failed, non-2xx
                status, or a body that is not a JSON list.
        """
        if not self.feed_url:
            raise FeedUnavailable("No vocabulary feed URL configured")

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport
            ) as client:
                response = await client.get(
                    self.feed_url,
                    headers={"ngrok-skip-browser-warning": "true"},
                )
        except httpx.HTTPError as e:
            raise FeedUnavailable(f"Vocabulary feed request failed: {e}") from e

        if not response.is_success:
            raise FeedUnavailable(
                f"Vocabulary feed returned {response.status_code}: {response.text[:200]}"
            )

        try:
            vocabulary = response.json()
        except ValueError as e:
            raise FeedUnavailable("Vocabulary feed did not return JSON") from e

        if not isinstance(vocabulary, list):
            raise FeedUnavailable("Vocabulary feed did not return a list")

        logger.info(f"Received {len(vocabulary)} words from server")
        return vocabulary

    async def download_full_database(self) -> SyncResult:
        """Fetch the feed and replace the local vocabulary with it."""
        try:
            vocabulary = await self.fetch_feed()
            count = await self.import_export.import_from_remote(vocabulary)
            if self.settings_store is not None:
                await self.settings_store.save_setting(
                    LAST_DOWNLOAD_SETTING, self._clock().isoformat()
                )
        except DomainError as e:
            logger.error(f"Database download failed: {e}")
            return SyncResult(success=False, message=f"Database download failed: {e}")

        return SyncResult(success=True, count=count, message=f"Imported {count} words")

    async def needs_initial_setup(self) -> bool:
        """True when the local store is empty or cannot be read."""
        try:
            return await self.repository.is_database_empty()
        except StoreUnavailable as e:
            logger.error(f"Error checking initial setup status: {e}")
            return True

    async def initialize(self) -> Optional[SyncResult]:
        """Download the vocabulary on first run; no-op when data exists."""
        if not await self.needs_initial_setup():
            logger.info("No initial setup needed, database already exists")
            return None

        logger.info("Initial setup needed, downloading database...")
        result = await self.download_full_database()
        if result.success:
            logger.info("Initial setup completed successfully")
        else:
            logger.error(f"Initial setup failed: {result.message}")
        return result
