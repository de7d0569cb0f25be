"""
Shared pytest configuration for league backend tests.

Service tests run against an in-memory SQLite database by default. Set
TEST_DATABASE_URL to run them against PostgreSQL instead.

SAFETY: a non-SQLite TEST_DATABASE_URL must name a database containing
"test"; tables are dropped after every test.
"""

import os

# Must be set before the routes package is imported (disables rate limiting)
os.environ.setdefault("ENV", "test")

import pytest_asyncio
from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import NullPool, StaticPool
from league_backend.database.db import Base


def _resolve_test_database_url() -> str:
    """Build the test database URL with safety checks."""
    url = os.getenv("TEST_DATABASE_URL", "sqlite+aiosqlite:///:memory:")
    if url.startswith("sqlite"):
        return url

    db_name = url.rsplit("/", 1)[-1].split("?")[0]
    if "test" not in db_name.lower():
        raise RuntimeError(
            f"SAFETY: Refusing to run tests against database '{db_name}'. "
            f"Set TEST_DATABASE_URL to a database whose name contains 'test'."
        )
    return url


TEST_DATABASE_URL = _resolve_test_database_url()


@pytest_asyncio.fixture(scope="function")
async def test_engine():
    """Fresh schema per test."""
    if TEST_DATABASE_URL.startswith("sqlite"):
        # One shared connection so the in-memory database survives across sessions
        engine = create_async_engine(
            TEST_DATABASE_URL,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )

        # Let SQLAlchemy emit BEGIN itself so SAVEPOINTs nest inside the test transaction
        @event.listens_for(engine.sync_engine, "connect")
        def _disable_driver_begin(dbapi_connection, connection_record):
            dbapi_connection.isolation_level = None

        @event.listens_for(engine.sync_engine, "begin")
        def _emit_begin(conn):
            conn.exec_driver_sql("BEGIN")
    else:
        engine = create_async_engine(TEST_DATABASE_URL, poolclass=NullPool)

    async with engine.begin() as conn:
        from league_backend.database import models  # noqa: F401

        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(test_engine):
    """Database session; services commit through it like a request would."""
    async_session_maker = async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
    async with async_session_maker() as session:
        try:
            yield session
        finally:
            await session.rollback()
            await session.close()
