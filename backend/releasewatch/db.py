"""Database configuration and session management."""

import logging
import os
from pathlib import Path

from sqlalchemy import event, text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

logger = logging.getLogger(__name__)

# Database URL from environment or default
# Default to /data/releasewatch.db (production path mounted as volume)
default_db = "sqlite+aiosqlite:////data/releasewatch.db"
DATABASE_URL = os.getenv("DATABASE_URL", default_db)

# Milliseconds a SQLite writer waits for another connection's write lock
SQLITE_BUSY_TIMEOUT_MS = 5000

# Ensure database directory exists (skip for in-memory databases used in tests)
if DATABASE_URL.startswith("sqlite") and ":memory:" not in DATABASE_URL:
    db_path = DATABASE_URL.replace("sqlite+aiosqlite:///", "").replace("sqlite+aiosqlite://", "")
    db_dir = Path(db_path).resolve().parent
    try:
        db_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        logger.error(f"Cannot create database directory {db_dir}: {e}")
        raise ValueError(f"Invalid DATABASE_URL path: {e}")


def _apply_sqlite_pragmas(dbapi_connection, connection_record) -> None:
    # busy_timeout and synchronous are per connection; WAL is stored in the file
    cursor = dbapi_connection.cursor()
    cursor.execute(f"PRAGMA busy_timeout={SQLITE_BUSY_TIMEOUT_MS}")
    cursor.execute("PRAGMA synchronous=NORMAL")
    cursor.close()


def build_engine(database_url: str) -> AsyncEngine:
    """Create the async engine for a database URL.

    An in-memory SQLite database only exists on its one connection, so it
    gets a StaticPool. A SQLite file gets the default pool: every session has
    its own connection and transaction, and writers queue on the file lock.
    Other backends get a bounded pool so one usage report never holds more
    than a couple of connections.
    """
    if "sqlite" in database_url and ":memory:" in database_url:
        from sqlalchemy.pool import StaticPool

        return create_async_engine(
            database_url,
            echo=False,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
            pool_reset_on_return=None,  # Concurrent sessions share the connection
        )

    if "sqlite" in database_url:
        sqlite_engine = create_async_engine(
            database_url,
            echo=False,
            connect_args={"check_same_thread": False},
        )
        event.listen(sqlite_engine.sync_engine, "connect", _apply_sqlite_pragmas)
        return sqlite_engine

    return create_async_engine(
        database_url,
        echo=False,
        pool_size=10,
        max_overflow=20,
        pool_timeout=30,
        pool_recycle=3600,
        pool_pre_ping=True,
    )


engine = build_engine(DATABASE_URL)

# Session factory
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)

# Base class for models
Base = declarative_base()


async def init_db() -> None:
    """Create tables and switch SQLite to WAL."""
    # Import models so every table is registered on Base.metadata
    import releasewatch.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    if "sqlite" in DATABASE_URL and ":memory:" not in DATABASE_URL:
        # WAL lets readers proceed while one connection writes
        async with engine.connect() as conn:
            await conn.execute(text("PRAGMA journal_mode=WAL"))
        logger.info(f"SQLite optimizations applied: WAL mode, {SQLITE_BUSY_TIMEOUT_MS // 1000}s busy timeout")
