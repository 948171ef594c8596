"""Pytest configuration for all tests."""

from datetime import datetime, timezone
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from guildledger.infrastructure.auth.jwt_service import jwt_service
from guildledger.infrastructure.persistence.database import (
    Base,
    _enable_sqlite_foreign_keys,
)
from guildledger.infrastructure.persistence.models import UserModel

# (id, username) of the users seeded by the ``users`` fixture
SEED_USERS = [
    ("u1", "alice"),
    ("u2", "bob"),
    ("u3", "carol"),
    ("u4", "dave"),
]


@pytest_asyncio.fixture
async def db_engine() -> AsyncGenerator[AsyncEngine, None]:
    """Create an in-memory SQLite engine with foreign keys enforced."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )
    event.listen(engine.sync_engine, "connect", _enable_sqlite_foreign_keys)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory bound to the test engine."""
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session.

    Uses an in-memory SQLite database for testing.
    """
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture
async def users(db_session: AsyncSession) -> dict[str, UserModel]:
    """Seed the known users and return them keyed by ID."""
    seeded = {}
    for user_id, username in SEED_USERS:
        user = UserModel(id=user_id, username=username, created_at=datetime.now(timezone.utc))
        db_session.add(user)
        seeded[user_id] = user
    await db_session.commit()
    return seeded


@pytest_asyncio.fixture
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Create a test client with overridden database dependencies.

    Batch permission checks fall back to the request session, since the
    in-memory database lives on a single shared connection.
    """
    from guildledger.infrastructure.api.app import app
    from guildledger.infrastructure.persistence.database import (
        get_db_session,
        get_session_factory,
    )

    app.dependency_overrides[get_db_session] = lambda: db_session
    app.dependency_overrides[get_session_factory] = lambda: None

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides = {}


@pytest.fixture
def auth_headers():
    """Return a builder for Authorization headers carrying a valid access token."""

    def build(user_id: str, username: str | None = None) -> dict[str, str]:
        token = jwt_service.create_access_token(user_id=user_id, username=username or user_id)
        return {"Authorization": f"Bearer {token}"}

    return build
