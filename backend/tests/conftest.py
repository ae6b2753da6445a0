"""
Shared fixtures: an in-memory SQLite database per test, the contact store
and resolver built on it, and an HTTP client wired to the FastAPI app.
"""

import os

# Must be set before config/database are imported
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("ENVIRONMENT", "testing")

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool

from database import Base
from identity.models import ContactDB
from identity.store import ContactStore
from identity.service import IdentityResolver

BASE_TIME = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


def at(minutes: int) -> datetime:
    """Fixed creation timestamp, ``minutes`` after BASE_TIME."""
    return BASE_TIME + timedelta(minutes=minutes)


@pytest.fixture
async def db_engine():
    """Fresh in-memory database with the contacts table."""
    engine = create_async_engine("sqlite+aiosqlite://", poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False
    )


@pytest.fixture
def store(session_factory):
    return ContactStore(session_factory)


@pytest.fixture
def resolver(store):
    return IdentityResolver(store)


@pytest.fixture
def all_contacts(session_factory):
    """Load every row (soft-deleted included), ordered by id."""
    async def _load():
        async with session_factory() as session:
            result = await session.execute(select(ContactDB).order_by(ContactDB.id))
            return list(result.scalars().all())
    return _load


@pytest.fixture(name="at")
def at_fixture():
    """Factory for fixed creation timestamps."""
    return at
