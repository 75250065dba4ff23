"""
Shared pytest configuration for ShotSpot tests.

Defaults to a local SQLite file through aiosqlite; set TEST_DATABASE_URL to
run against PostgreSQL instead.

SAFETY: This module REFUSES to run against any database whose name does not
contain the substring "test".  This prevents accidental wiping of the
development or production database when environment variables are missing
or misconfigured.
"""

import os

os.environ.setdefault("ENV", "test")
os.environ.setdefault("JWT_SECRET", "test-secret-key-that-is-long-enough-1234567890")
os.environ.setdefault("TWIZZIT_ENCRYPTION_KEY", "0f" * 32)

import pytest_asyncio  # noqa: E402
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker  # noqa: E402
from sqlalchemy.pool import NullPool  # noqa: E402

DEFAULT_TEST_DATABASE_URL = "sqlite+aiosqlite:///./shotspot_test.db"


def _resolve_test_database_url() -> str:
    """Build the test database URL with safety checks.

    Raises ``RuntimeError`` if the resolved URL does not point to a database
    whose name contains "test".
    """
    url = os.getenv("TEST_DATABASE_URL") or DEFAULT_TEST_DATABASE_URL

    db_name = url.rsplit("/", 1)[-1].split("?")[0]
    if "test" not in db_name.lower():
        raise RuntimeError(
            f"\n{'=' * 70}\n"
            f"  SAFETY: Refusing to run tests against database '{db_name}'.\n"
            f"  The database name must contain 'test' to prevent accidental\n"
            f"  data loss in development or production databases.\n\n"
            f"  Fix: set TEST_DATABASE_URL to a test database, e.g.:\n"
            f"    export TEST_DATABASE_URL=postgresql+asyncpg://.../shotspot_test\n"
            f"{'=' * 70}"
        )
    return url


TEST_DATABASE_URL = _resolve_test_database_url()
os.environ.setdefault("DATABASE_URL", TEST_DATABASE_URL)

from shotspot.database.db import Base  # noqa: E402


@pytest_asyncio.fixture(scope="function")
async def test_engine():
    """Create a test engine and point db.AsyncSessionLocal at it."""
    engine = create_async_engine(TEST_DATABASE_URL, echo=False, poolclass=NullPool)

    async with engine.begin() as conn:
        from shotspot.database import models  # noqa: F401

        await conn.run_sync(Base.metadata.create_all)

    # Code that opens its own sessions (workers, init_defaults) uses the test engine too
    from shotspot.database import db

    original_async_session_local = db.AsyncSessionLocal
    db.AsyncSessionLocal = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )

    yield engine

    db.AsyncSessionLocal = original_async_session_local
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(test_engine):
    """
    Test database session. Every table is emptied before the test runs.
    """
    async with test_engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            await conn.execute(table.delete())

    async_session_maker = async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)
    async with async_session_maker() as session:
        try:
            yield session
        finally:
            await session.rollback()
            await session.close()
