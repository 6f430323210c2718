"""Session helper shared by the SQLAlchemy stores."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from hsk_srs.domain.errors import StoreUnavailable


@asynccontextmanager
async def open_session(
    session_factory: async_sessionmaker,
) -> AsyncGenerator[AsyncSession, None]:
    """Open a session, translating engine-level failures into StoreUnavailable."""
    try:
        async with session_factory() as session:
            yield session
    except (OperationalError, InterfaceError) as e:
        raise StoreUnavailable(f"Vocabulary store unavailable: {e}") from e
