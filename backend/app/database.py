"""Database engines and sessions.

- FastAPI request handlers use AsyncSession for auth lookups.
- Signal processing (Celery tasks, scripts, sync routes) uses sync Session.
"""

from __future__ import annotations

from typing import AsyncGenerator, Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import URL
from sqlalchemy.engine.url import make_url
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import NullPool

from .config import settings


def _is_sqlite(url: URL) -> bool:
    return url.drivername.startswith("sqlite")


raw_url: URL = make_url(settings.database_url)

# ----------------------------
# Sync engine/session (workers)
# ----------------------------

if _is_sqlite(raw_url):
    timeout_s = max(0.0, float(settings.sqlite_busy_timeout_ms) / 1000.0)
    sync_engine = create_engine(
        raw_url,
        connect_args={"check_same_thread": False, "timeout": timeout_s},
        poolclass=NullPool,
    )

    @event.listens_for(sync_engine, "connect")
    def _set_sqlite_pragmas(dbapi_connection, connection_record):
        """WAL + busy timeout so a worker and the API can share a local DB file."""
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA journal_mode=WAL;")
        cursor.execute(f"PRAGMA busy_timeout={int(settings.sqlite_busy_timeout_ms)};")
        cursor.execute("PRAGMA foreign_keys=ON;")
        cursor.close()
else:
    sync_url = raw_url
    if sync_url.drivername == "postgresql":
        sync_url = sync_url.set(drivername="postgresql+psycopg")
    sync_engine = create_engine(
        sync_url,
        pool_pre_ping=True,
        pool_size=max(1, settings.db_pool_size),
        max_overflow=max(0, settings.db_max_overflow),
        pool_timeout=max(1, settings.db_pool_timeout_s),
        pool_recycle=max(0, settings.db_pool_recycle_s),
    )

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=sync_engine)

# ----------------------------
# Async engine/session (API)
# ----------------------------

async_url = raw_url
if _is_sqlite(async_url):
    if async_url.drivername == "sqlite":
        async_url = async_url.set(drivername="sqlite+aiosqlite")
    async_engine = create_async_engine(async_url, pool_pre_ping=True)
else:
    if async_url.drivername == "postgresql":
        async_url = async_url.set(drivername="postgresql+asyncpg")
    async_engine = create_async_engine(
        async_url,
        pool_pre_ping=True,
        pool_size=max(1, settings.db_pool_size),
        max_overflow=max(0, settings.db_max_overflow),
    )

AsyncSessionLocal = async_sessionmaker(async_engine, expire_on_commit=False, autoflush=False)


def init_db():
    """
    Create tables for local SQLite databases.

    Postgres schema is managed via Alembic.
    """
    if not _is_sqlite(raw_url):
        return
    from .models import Base
    Base.metadata.create_all(bind=sync_engine)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency that yields an AsyncSession."""
    async with AsyncSessionLocal() as session:
        yield session


def get_sync_db() -> Generator:
    """Dependency that yields a sync DB session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
