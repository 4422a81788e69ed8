"""Test fixtures — a fresh in-memory database per test.

Each test gets its own SQLite database (aiosqlite) created from the ORM
metadata, so services can commit freely and nothing leaks between tests.
SQLite ignores SELECT ... FOR UPDATE; the pool's row locking is only
exercised against PostgreSQL.

Routes see the test session through a get_db override. The `client`
fixture also overrides get_current_user with a fixed signed-in account;
`unauthenticated_client` leaves the real JWT pipeline in place.
"""

import uuid

import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.pool import StaticPool

from auratask.ai.base import CompletionProvider
from auratask.api.ai import get_completion_provider
from auratask.auth.dependencies import CurrentIdentity, get_current_user
from auratask.db.engine import get_db
from auratask.db.models import Base, UserSettings
from auratask.main import app

TEST_DB_URL = "sqlite+aiosqlite:///:memory:"

USER_ID = uuid.UUID("00000000-0000-0000-0000-000000000001")
OTHER_USER_ID = uuid.UUID("00000000-0000-0000-0000-000000000002")
GUEST_ID = uuid.UUID("00000000-0000-0000-0000-00000000beef")


class FakeProvider(CompletionProvider):
    """Scripted completion provider that records every call."""

    def __init__(self, answer: str = "", error: Exception | None = None):
        self.answer = answer
        self.error = error
        self.calls: list[tuple[str, str]] = []

    @property
    def name(self) -> str:
        return "fake"

    async def generate(self, api_key: str, prompt: str) -> str:
        self.calls.append((api_key, prompt))
        if self.error:
            raise self.error
        return self.answer


@pytest_asyncio.fixture()
async def db_engine():
    engine = create_async_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    try:
        yield engine
    finally:
        await engine.dispose()


@pytest_asyncio.fixture()
async def db_session(db_engine):
    """Per-test session. expire_on_commit=False keeps loaded rows readable."""
    session = AsyncSession(bind=db_engine, expire_on_commit=False)
    try:
        yield session
    finally:
        await session.close()


@pytest_asyncio.fixture()
async def client(db_session):
    """HTTP client signed in as USER_ID (a regular account)."""

    async def override_get_db():
        yield db_session

    def override_get_current_user():
        return CurrentIdentity(user_id=str(USER_ID), identity_type="user")

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_user] = override_get_current_user

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture()
async def unauthenticated_client(db_session):
    """HTTP client WITHOUT the auth override — real JWT validation."""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture()
async def admin_settings(db_session):
    """Mark USER_ID as an administrator."""
    row = UserSettings(user_id=USER_ID, is_admin=True)
    db_session.add(row)
    await db_session.commit()
    return row


@pytest_asyncio.fixture()
async def fake_provider():
    """Swap the completion provider for a FakeProvider the test can script."""
    provider = FakeProvider()
    app.dependency_overrides[get_completion_provider] = lambda: provider
    yield provider
    app.dependency_overrides.pop(get_completion_provider, None)


def act_as(user_id: uuid.UUID, identity_type: str = "user") -> None:
    """Switch the `client` fixture's identity for the rest of the test."""
    app.dependency_overrides[get_current_user] = lambda: CurrentIdentity(
        user_id=str(user_id), identity_type=identity_type
    )
