"""
Database Session Management

Owns the async SQLAlchemy engine and session factory.

Usage:
    async with get_db_context() as db:
        repo = InstanceRepository(db)
        ...
        await db.commit()
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from src.config import get_settings

logger = logging.getLogger(__name__)

_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def get_engine() -> AsyncEngine:
    """Get or lazily create the async engine."""
    global _engine
    if _engine is None:
        settings = get_settings()
        _engine = create_async_engine(
            settings.database_url,
            echo=settings.debug,
            pool_size=settings.database_pool_size,
            max_overflow=settings.database_max_overflow,
            pool_pre_ping=True,
        )
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """
    Get the session factory.

    Sessions keep attribute values after commit (expire_on_commit=False) so
    sync results can be read once the batch has been committed.
    """
    global _session_factory
    if _session_factory is None:
        _session_factory = async_sessionmaker(
            get_engine(),
            class_=AsyncSession,
            expire_on_commit=False,
        )
    return _session_factory


@asynccontextmanager
async def get_db_context() -> AsyncGenerator[AsyncSession, None]:
    """
    Context manager yielding a session for workers and schedulers.

    Rolls back on error; committing is the caller's responsibility.
    """
    session = get_session_factory()()
    try:
        yield session
    except Exception:
        await session.rollback()
        raise
    finally:
        await session.close()


async def init_db() -> None:
    """Create the engine eagerly and verify connectivity."""
    engine = get_engine()
    async with engine.connect():
        pass
    logger.info("Database engine initialized")


async def close_db() -> None:
    """Dispose of the engine and forget the session factory."""
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _session_factory = None
    logger.info("Database engine disposed")


def reset_db_state() -> None:
    """Forget cached engine/factory without disposing (tests switch settings)."""
    global _engine, _session_factory
    _engine = None
    _session_factory = None
