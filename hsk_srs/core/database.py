import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncGenerator, Optional

from sqlalchemy import text
from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from ..domain.errors import StoreUnavailable
from ..models.base import Base

logger = logging.getLogger(__name__)

# Global variables for database connection
_engine: Optional[AsyncEngine] = None
_session_factory: Optional[async_sessionmaker] = None


def get_database_url() -> str:
    """Get database URL from settings (environment or .env)."""
    from .config import get_settings

    return get_settings().database_url


def _ensure_sqlite_directory(database_url: str) -> None:
    """Create the parent directory of a file-backed SQLite database."""
    if not database_url.startswith("sqlite") or ":memory:" in database_url:
        return
    _, _, path = database_url.partition(":///")
    if path:
        Path(path).expanduser().parent.mkdir(parents=True, exist_ok=True)


def create_engine_for(database_url: str) -> AsyncEngine:
    """Create an async engine; SQLite connections are not pooled."""
    _ensure_sqlite_directory(database_url)
    kwargs = {"echo": False}
    if "sqlite" in database_url:
        kwargs["poolclass"] = NullPool
    else:
        kwargs["pool_pre_ping"] = True
    return create_async_engine(database_url, **kwargs)


async def create_tables(engine: AsyncEngine) -> None:
    """Create all tables and indexes if they do not exist."""
    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
    except (OperationalError, InterfaceError, OSError) as e:
        raise StoreUnavailable(f"Cannot open vocabulary database: {e}") from e


async def init_database(database_url: Optional[str] = None) -> async_sessionmaker:
    """Initialize the shared engine, create tables and return the session factory."""
    global _engine, _session_factory

    database_url = database_url or get_database_url()
    logger.info(f"Initializing database: {database_url}")

    _engine = create_engine_for(database_url)
    _session_factory = async_sessionmaker(
        _engine, class_=AsyncSession, expire_on_commit=False
    )

    await create_tables(_engine)
    logger.info("Database tables created/verified")
    return _session_factory


async def close_database() -> None:
    """Close database connection"""
    global _engine, _session_factory
    if _engine:
        await _engine.dispose()
        logger.info("Database connection closed")
    _engine = None
    _session_factory = None


async def get_session_factory() -> async_sessionmaker:
    """Return the shared session factory, initializing the database on first use."""
    if not _session_factory:
        return await init_database()
    return _session_factory


@asynccontextmanager
async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Get database session context manager"""
    factory = await get_session_factory()

    async with factory() as session:
        try:
            yield session
        except Exception as e:
            await session.rollback()
            logger.error(f"Database session error: {e}")
            raise


async def health_check() -> bool:
    """Check if database is accessible"""
    try:
        async with get_db_session() as session:
            result = await session.execute(text("SELECT 1"))
            is_healthy = result.scalar() == 1
            if not is_healthy:
                logger.warning("Database health check query returned unexpected value")
            return is_healthy
    except Exception as e:
        logger.error(f"Database health check failed: {e}", exc_info=True)
        return False
