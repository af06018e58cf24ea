"""
Database connection management.
Handles async SQLAlchemy engine, session factory and unit-of-work scoping.
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from sqlalchemy import event
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from leasequeue.config import Settings
from leasequeue.db.models import Base
from leasequeue.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


def _enable_sqlite_foreign_keys(dbapi_connection: Any, connection_record: Any) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_engine(settings: Settings) -> AsyncEngine:
    """
    Create the async database engine for the configured URL.

    Args:
        settings: Settings carrying ``database_url`` and pool options.

    Returns:
        AsyncEngine: The SQLAlchemy async engine instance.

    Raises:
        ConfigurationError: If no database URL is configured or it cannot be parsed.
    """
    if not settings.database_url:
        raise ConfigurationError("database_url is required for the database backend")

    try:
        url = make_url(settings.database_url)
    except Exception as e:
        raise ConfigurationError(f"Invalid database_url: {e}") from e

    options: dict[str, Any] = {
        "echo": settings.database_echo,
        "pool_pre_ping": True,
    }
    if url.get_backend_name() != "sqlite":
        options["pool_size"] = settings.database_pool_size
        options["max_overflow"] = settings.database_max_overflow

    engine = create_async_engine(url, **options)

    if url.get_backend_name() == "sqlite":
        event.listen(engine.sync_engine, "connect", _enable_sqlite_foreign_keys)

    logger.info(
        "Database engine created",
        extra={"dialect": url.get_backend_name(), "database": url.database},
    )
    return engine


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """
    Create the session factory used for units of work.

    Args:
        engine: The async engine to bind sessions to.

    Returns:
        async_sessionmaker: Factory producing non-expiring, non-autoflushing sessions.
    """
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


async def create_schema(engine: AsyncEngine) -> None:
    """Create the queues and messages tables if they do not exist."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database schema created")


async def drop_schema(engine: AsyncEngine) -> None:
    """Drop the queues and messages tables."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    logger.info("Database schema dropped")


@asynccontextmanager
async def unit_of_work(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession]:
    """
    Run a block inside a single transaction.

    Commits when the block exits normally, rolls back and re-raises otherwise.

    Yields:
        AsyncSession: An async database session with an open transaction.
    """
    async with session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
