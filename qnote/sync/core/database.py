"""
Database Configuration.

SQLAlchemy async engine and session management for the local note cache.
Uses lazy initialization to prevent import-time failures when configuration
is not available (tests build their own engines).
"""

from pathlib import Path
from typing import Any

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from qnote.sync.core.logging import get_logger

logger = get_logger(__name__)

# Module-level state for lazy initialization
_engine: AsyncEngine | None = None
_async_session_factory: async_sessionmaker[AsyncSession] | None = None


def _enable_sqlite_pragmas(dbapi_connection: Any, connection_record: Any) -> None:
    """Use WAL so background batch writes do not block note-list reads."""
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA busy_timeout=5000")
    cursor.close()


def create_cache_engine(url: str, echo: bool = False) -> AsyncEngine:
    """
    Create an async engine for the local cache.

    Args:
        url: SQLAlchemy URL, e.g. sqlite+aiosqlite:///data/cache.db
        echo: Log emitted SQL

    Returns:
        Configured AsyncEngine
    """
    if url.startswith("sqlite") and ":memory:" not in url:
        db_file = url.split("///", 1)[-1]
        Path(db_file).parent.mkdir(parents=True, exist_ok=True)

    engine = create_async_engine(url, echo=echo)
    if engine.dialect.name == "sqlite":
        event.listen(engine.sync_engine, "connect", _enable_sqlite_pragmas)
    logger.debug("Cache engine created", extra={"url": url})
    return engine


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create a session factory bound to the given engine."""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


def get_engine() -> AsyncEngine:
    """
    Get the configured cache engine, creating it on first use.

    Returns:
        SQLAlchemy async engine instance
    """
    global _engine
    if _engine is None:
        from qnote.sync.core.config import get_app_config, get_cache_url

        _engine = create_cache_engine(
            get_cache_url(),
            echo=get_app_config().database.echo,
        )
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """
    Get the session factory, creating it on first use.

    Returns:
        SQLAlchemy async session factory
    """
    global _async_session_factory
    if _async_session_factory is None:
        _async_session_factory = create_session_factory(get_engine())
    return _async_session_factory


async def init_schema(engine: AsyncEngine) -> None:
    """Create cache tables if they do not exist."""
    from qnote.sync.models.base import Base

    # Import models so their tables are registered on the metadata
    from qnote.sync.models import note, sync_state  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def dispose_engine() -> None:
    """Dispose the module-level engine, if one was created."""
    global _engine, _async_session_factory
    if _engine is not None:
        await _engine.dispose()
        logger.info("Cache engine disposed")
    _engine = None
    _async_session_factory = None
