"""SQLAlchemy async engine & session for the SQLite cache (WAL mode)."""

from __future__ import annotations

import logging
from pathlib import Path

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from gallerysync.config import settings
from gallerysync.models.base import Base

logger = logging.getLogger(__name__)


def _configure_sqlite(dbapi_conn, _connection_record):
    """Apply SQLite PRAGMAs for a small-footprint cache database."""
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA synchronous=NORMAL")
    cursor.execute("PRAGMA cache_size=-8000")  # 8 MB
    cursor.execute("PRAGMA mmap_size=33554432")  # 32 MB
    cursor.close()


def create_engine_for(url: str, **kwargs) -> AsyncEngine:
    """Build an async engine with the cache PRAGMAs attached."""
    new_engine = create_async_engine(url, **kwargs)
    event.listen(new_engine.sync_engine, "connect", _configure_sqlite)
    return new_engine


def create_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind, class_=AsyncSession, expire_on_commit=False)


# Ensure DB directory exists
db_path = Path(settings.database_path)
db_path.parent.mkdir(parents=True, exist_ok=True)

DATABASE_URL = f"sqlite+aiosqlite:///{db_path}"

engine = create_engine_for(
    DATABASE_URL,
    echo=settings.debug and settings.log_level == "DEBUG",
    pool_size=settings.max_db_connections,
    max_overflow=0,
)

async_session = create_session_factory(engine)


async def init_db(bind: AsyncEngine | None = None) -> None:
    """Create all cache tables if missing."""
    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Cache tables created/verified at %s", db_path if bind is None else bind.url)
