"""
Shared fixtures: an in-memory SQLite database per test and an ASGI client
with the DB dependency pointed at it.
"""

import os

# Must be set before any project module reads ``config``.
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["SEED_DEMO_DATA"] = "false"
os.environ["BUSINESS_TIMEZONE"] = "UTC"
for _var in ("GOOGLE_CLIENT_ID", "GOOGLE_CLIENT_SECRET", "MICROSOFT_CLIENT_ID", "MICROSOFT_CLIENT_SECRET"):
    os.environ[_var] = ""
os.environ["OPENAI_API_KEY"] = ""
os.environ["ANTHROPIC_API_KEY"] = ""

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from config.settings import config
from database.models import Base, User
from database.session import get_db_session
from auth.password import hash_password
from main import app


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def user(db):
    user = User(
        username="emily",
        email="emily@example.com",
        display_name="Emily",
        password_hash=hash_password("secret123"),
        preferences={"replyTone": "professional"},
    )
    db.add(user)
    await db.commit()
    return user


@pytest_asyncio.fixture
async def client(session_factory):
    async def _override():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db_session] = _override
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def auth_client(client):
    """Client with a registered, logged-in user (session cookie set)."""
    resp = await client.post(
        "/api/auth/register",
        json={"username": "emily", "password": "secret123", "email": "emily@example.com"},
    )
    assert resp.status_code == 201
    return client


@pytest.fixture
def google_configured(monkeypatch):
    """Give the Google connector client credentials so the real OAuth path runs."""
    monkeypatch.setattr(config, "google_client_id", "test-client-id")
    monkeypatch.setattr(config, "google_client_secret", "test-client-secret")
