"""SQLAlchemy implementation of SettingsStore."""

import json
import logging
from typing import Any, Dict

from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker

from hsk_srs.models.setting import Setting

from ._session import open_session

logger = logging.getLogger(__name__)


def _decode(raw: str) -> Any:
    try:
        return json.loads(raw)
    except (TypeError, ValueError):
        # Values written by other tools may be plain strings.
        return raw


class SqlAlchemySettingsStore:
    """Concrete SettingsStore; values are stored as JSON text."""

    def __init__(self, session_factory: async_sessionmaker) -> None:
        self._session_factory = session_factory

    async def get_setting(self, key: str, default: Any = None) -> Any:
        async with open_session(self._session_factory) as session:
            row = await session.get(Setting, key)
            if row is None:
                return default
            return _decode(row.value)

    async def save_setting(self, key: str, value: Any) -> Any:
        async with open_session(self._session_factory) as session:
            await session.merge(Setting(key=key, value=json.dumps(value, ensure_ascii=False)))
            await session.commit()
        logger.debug(f"Saved setting {key}")
        return value

    async def get_all_settings(self) -> Dict[str, Any]:
        async with open_session(self._session_factory) as session:
            result = await session.execute(select(Setting))
            return {row.key: _decode(row.value) for row in result.scalars().all()}
