"""
Test configuration for secureport tests.

Every test gets its own SQLite database file (aiosqlite) under tmp_path, an
in-memory Redis (fakeredis) and a filesystem object store under tmp_path.
No docker services are needed.
"""
from __future__ import annotations

from typing import Optional
from uuid import uuid4

import fakeredis
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

import secureport.models  # noqa: F401  registers tables on Base.metadata
from secureport import store
from secureport.auth.identity import create_identity
from secureport.config import settings
from secureport.database import Base, create_engine
from secureport.evidence import LocalObjectStore
from secureport.profiles.schemas import UserProfile
from secureport.tests.factories import PASSWORD, PUBLIC_BASE_URL


# ---------------------------------------------------------------------------
# Infrastructure
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def fast_retries(monkeypatch):
    """No real backoff sleeps between upload attempts."""
    monkeypatch.setattr(settings, "upload_backoff_seconds", 0)


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'secureport.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def redis():
    client = fakeredis.FakeAsyncRedis(decode_responses=True)
    yield client
    await client.aclose()


@pytest.fixture
def object_store(tmp_path) -> LocalObjectStore:
    return LocalObjectStore(str(tmp_path / "storage"), PUBLIC_BASE_URL)


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------

@pytest.fixture
def make_profile(session_factory):
    """Create identity + profile in a committed transaction; returns the profile."""
    async def _make(
        role: str = "staff",
        region: Optional[str] = "TWU",
        email: Optional[str] = None,
    ) -> UserProfile:
        async with session_factory() as db:
            identity = await create_identity(db, email or f"{uuid4().hex[:10]}@estate.test", PASSWORD)
            profile = await store.create_profile(db, identity, role, region)
            await db.commit()
        return profile

    return _make
