"""
Pytest fixtures for test database, client, live updates and authentication.

Each test gets its own SQLite file (aiosqlite). Transactions are opened with
BEGIN IMMEDIATE so concurrent sessions serialize on the database lock the
way competing PostgreSQL transactions serialize on a row, which lets the
race tests exercise the real conditional UPDATE.
"""

import asyncio
import os
from typing import AsyncGenerator

# Must be set before parkspot reads its settings
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("REDIS_ENABLED", "false")
os.environ.setdefault("LIVE_UPDATES_BACKEND", "memory")

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker

import parkspot.models  # noqa: F401 - register tables on Base.metadata
from parkspot.main import app
from parkspot.db.base import Base
from parkspot.db.session import get_db
from parkspot.core.security import create_access_token
from parkspot.models.location import Location
from parkspot.services.channel_factory import get_live_updates
from parkspot.services.interfaces.memory_channel import InMemoryChannel
from parkspot.services.spot_store import provision_location


class Recorder:
    """Async callback that remembers every SpotChange it receives."""

    def __init__(self):
        self.events = []
        self._signal = asyncio.Event()

    async def __call__(self, change) -> None:
        self.events.append(change)
        self._signal.set()

    async def wait_for(self, count: int = 1, timeout: float = 1.0) -> None:
        async def _until() -> None:
            while len(self.events) < count:
                self._signal.clear()
                await self._signal.wait()

        await asyncio.wait_for(_until(), timeout)


@pytest_asyncio.fixture(scope="function")
async def engine(tmp_path):
    """Fresh SQLite database per test."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'parkspot_test.db'}")

    @event.listens_for(engine.sync_engine, "connect")
    def _disable_driver_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture(scope="function")
async def channel() -> AsyncGenerator[InMemoryChannel, None]:
    channel = InMemoryChannel(queue_size=10)
    yield channel
    await channel.close()


@pytest.fixture
def make_recorder():
    return Recorder


@pytest_asyncio.fixture(scope="function")
async def client(db_session: AsyncSession, channel: InMemoryChannel) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client that overrides the DB session and live update channel."""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_live_updates] = lambda: channel

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


def auth_headers_for(user_id: str) -> dict:
    token = create_access_token(data={"sub": user_id})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def make_headers():
    return auth_headers_for


@pytest.fixture
def alice_headers() -> dict:
    return auth_headers_for("alice")


@pytest.fixture
def bob_headers() -> dict:
    return auth_headers_for("bob")


@pytest_asyncio.fixture
async def downtown(db_session: AsyncSession) -> Location:
    """Downtown Mall: 5 rows x 10 spots, $5/hour, all available."""
    location = await provision_location(
        db_session,
        name="Downtown Mall",
        address="123 Main Street, City Center",
        rows=5,
        spots_per_row=10,
        price_per_hour=5,
    )
    await db_session.commit()
    return location


@pytest_asyncio.fixture
async def business_district(db_session: AsyncSession) -> Location:
    """Business District: 3 rows x 10 spots, $8/hour, all available."""
    location = await provision_location(
        db_session,
        name="Business District",
        address="456 Corporate Avenue",
        rows=3,
        spots_per_row=10,
        price_per_hour=8,
    )
    await db_session.commit()
    return location
