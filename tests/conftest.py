"""Shared test fixtures for the record sync test suite."""

from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession

from recordsync.core.config import Settings
from recordsync.core.database import Base
# Import all models so their metadata is registered on Base
import recordsync.models  # noqa: F401
from recordsync.services.store import SqlAlchemyRecordStore
from recordsync.services.sync import SyncService

OWNER = "user-1"
OTHER_OWNER = "user-2"


def record_payload(**overrides) -> dict:
    """A valid create payload as a client would send it."""
    payload = {
        "name": "Ada Lovelace",
        "title": "Analyst",
        "company": "Analytical Engines",
        "phone": "+441234567890",
        "email": "ada@example.com",
        "website": "https://example.com",
        "interests": ["math", "engines"],
        "notes": "Met at the booth",
        "capture_method": "business_card",
        "captured_at": "2025-03-01T10:00:00Z",
    }
    payload.update(overrides)
    return payload


def iso(dt: datetime) -> str:
    """Serialize a naive UTC datetime the way clients send it."""
    return dt.replace(tzinfo=timezone.utc).isoformat().replace("+00:00", "Z")


def later(dt: datetime, seconds: int = 60) -> datetime:
    return dt + timedelta(seconds=seconds)


@pytest_asyncio.fixture
async def async_session():
    """
    Provide an in-memory SQLite async session for tests.

    Creates all tables before the test, drops them after. Each test gets
    a clean database.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with session_factory() as session:
        yield session

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def store(async_session):
    return SqlAlchemyRecordStore(async_session)


@pytest.fixture
def sync_service(async_session):
    return SyncService.from_session(async_session, Settings())
