"""
Pytest fixtures for Scavenger Backend tests.
"""

import os
import tempfile
from typing import AsyncGenerator

import bcrypt
import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

# Create a temp file for SQLite test database
_test_db_file = tempfile.NamedTemporaryFile(suffix=".db", delete=False)
_test_db_path = _test_db_file.name
_test_db_file.close()

ADMIN_USERNAME = "operator"
ADMIN_PASSWORD = "hunt-master-2024"

# Set test environment - using SQLite
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_test_db_path}"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["ADMIN_USERNAME"] = ADMIN_USERNAME
os.environ["ADMIN_PASSWORD_HASH"] = bcrypt.hashpw(
    ADMIN_PASSWORD.encode("utf-8"), bcrypt.gensalt(rounds=4)
).decode("utf-8")

from scavenger_backend import database
from scavenger_backend.database import Base, get_db
from scavenger_backend.main import app
from scavenger_backend.models import Challenge, Player


# Fresh connections per checkout so no connection outlives its event loop
test_engine = create_async_engine(
    os.environ["DATABASE_URL"],
    echo=False,
    poolclass=NullPool,
)

test_session_factory = async_sessionmaker(
    test_engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


@pytest_asyncio.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with test_session_factory() as session:
        yield session

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest_asyncio.fixture
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Create an async test client sharing the test session."""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        yield client

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def admin_client(client: AsyncClient) -> AsyncClient:
    """Client carrying a valid operator bearer token."""
    response = await client.post(
        "/api/admin/login",
        json={"username": ADMIN_USERNAME, "password": ADMIN_PASSWORD},
    )
    assert response.status_code == 200
    client.headers["Authorization"] = f"Bearer {response.json()['token']}"
    return client


@pytest_asyncio.fixture
async def player(db_session: AsyncSession) -> Player:
    """An active player with access code LOVE2024."""
    player = Player(name="Juliet", code="LOVE2024")
    db_session.add(player)
    await db_session.commit()
    return player


@pytest_asyncio.fixture
async def challenge(db_session: AsyncSession) -> Challenge:
    """An active challenge at the Eiffel Tower with a 100 m radius."""
    challenge = Challenge(
        title="Iron Lady",
        description="Where we first met",
        password="kiss",
        letter="L",
        latitude=48.8584,
        longitude=2.2945,
        radius_meters=100,
        sort_order=1,
        gift_description="A box of macarons",
    )
    db_session.add(challenge)
    await db_session.commit()
    return challenge


@pytest_asyncio.fixture
async def pooled_client(
    db_session: AsyncSession,
    monkeypatch: pytest.MonkeyPatch,
) -> AsyncGenerator[AsyncClient, None]:
    """
    Client that runs the real get_db, so every request opens, commits
    and closes its own session against the test database.
    """
    monkeypatch.setattr(database, "async_session_factory", test_session_factory)
    app.dependency_overrides.clear()

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        yield client
