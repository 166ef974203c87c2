"""
Pytest fixtures for console sync testing infrastructure.

This module provides:
1. Test environment (settings cache, global database state, account locks)
2. Database fixtures (in-memory SQLite via aiosqlite, full ORM schema)
3. Console API fixtures (FakeConsole behind httpx.MockTransport)
4. Common test data fixtures (instance, account)
"""

import os
import sys
from typing import AsyncGenerator
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

# Add parent directory to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from src.config import get_settings  # noqa: E402
from src.core.database import reset_db_state  # noqa: E402
from src.core.locks import account_locks  # noqa: E402
from src.models.orm import Base, ConsoleAccount, ConsoleInstance  # noqa: E402
from tests.helpers.console_api import BASE_URL, FakeConsole  # noqa: E402


# ==================== CONFIGURATION ====================

TEST_DATABASE_URL = "sqlite+aiosqlite://"


# ==================== ENVIRONMENT FIXTURES ====================


@pytest.fixture(autouse=True)
def setup_test_environment(monkeypatch):
    """Testing settings, fresh caches and no token state leaking between tests."""
    monkeypatch.setenv("CONSOLE_SYNC_ENVIRONMENT", "testing")
    monkeypatch.setenv("CONSOLE_SYNC_DATABASE_URL", TEST_DATABASE_URL)
    monkeypatch.setenv("CONSOLE_SYNC_REDIS_URL", "redis://localhost:6379/15")

    get_settings.cache_clear()
    reset_db_state()
    account_locks.clear()

    yield

    get_settings.cache_clear()
    reset_db_state()
    account_locks.clear()


# ==================== DATABASE FIXTURES ====================


@pytest_asyncio.fixture
async def async_engine() -> AsyncGenerator[AsyncEngine, None]:
    """
    In-memory SQLite engine with the ORM schema.

    StaticPool keeps the single in-memory database alive across sessions.
    pysqlite's own transaction handling is disabled so SAVEPOINTs
    (session.begin_nested) behave as on PostgreSQL.
    """
    engine = create_async_engine(
        TEST_DATABASE_URL,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    @event.listens_for(engine.sync_engine, "connect")
    def _disable_driver_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def async_session_factory(async_engine) -> async_sessionmaker[AsyncSession]:
    """Create async session factory."""
    return async_sessionmaker(
        async_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest_asyncio.fixture
async def db_session(async_session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Provide a database session for each test (fresh database per test)."""
    async with async_session_factory() as session:
        yield session
        await session.rollback()


# ==================== CONSOLE FIXTURES ====================


@pytest.fixture
def console() -> FakeConsole:
    """Remote console answering from memory."""
    return FakeConsole()


@pytest.fixture
def mock_redis():
    """Mock Redis connection for unit tests."""
    mock = AsyncMock()
    mock.set = AsyncMock(return_value=True)
    mock.delete = AsyncMock(return_value=1)
    mock.aclose = AsyncMock()
    return mock


# ==================== TEST DATA FIXTURES ====================


@pytest_asyncio.fixture
async def instance(db_session: AsyncSession) -> ConsoleInstance:
    """Enabled console instance pointing at the fake console."""
    instance = ConsoleInstance(name="primary", base_url=BASE_URL)
    db_session.add(instance)
    await db_session.commit()
    return instance


@pytest_asyncio.fixture
async def account(db_session: AsyncSession, instance: ConsoleInstance) -> ConsoleAccount:
    """Enabled account on the instance, without a cached token."""
    account = ConsoleAccount(
        instance=instance,
        instance_id=instance.id,
        email="owner@example.com",
        password="s3cret",
    )
    db_session.add(account)
    await db_session.commit()
    return account
