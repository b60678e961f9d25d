"""
Shared test fixtures — async SQLite DB, FastAPI test client, auth helpers.

Uses a throwaway SQLite file per test so tests are fast, isolated, and don't
require PostgreSQL. Every test gets a fresh app and a fresh schema.
"""

from __future__ import annotations

from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import Settings
from app.core.tokens import TokenService
from app.database import create_tables
from app.main import create_app
from app.schemas.auth import claims_for
from app.schemas.user import UserCreate
from app.services import user_service

TEST_ROUNDS = 4  # bcrypt minimum; keeps hashing fast


@pytest.fixture()
def settings(tmp_path) -> Settings:
    return Settings(
        _env_file=None,
        APP_ENV="test",
        DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        JWT_SECRET_KEY="test-secret-key",
        JWT_EXPIRE_MINUTES=60,
        BCRYPT_ROUNDS=TEST_ROUNDS,
    )


@pytest_asyncio.fixture()
async def app(settings: Settings):
    """FastAPI app wired to a fresh SQLite file database."""
    application = create_app(settings)
    await create_tables(application.state.engine)
    yield application
    await application.state.engine.dispose()


@pytest_asyncio.fixture()
async def app_client(app) -> AsyncGenerator[AsyncClient, None]:
    """``httpx.AsyncClient`` talking to the app in-process."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest_asyncio.fixture()
async def db_session(app) -> AsyncGenerator[AsyncSession, None]:
    """A session on the same database the app uses."""
    async with app.state.session_factory() as session:
        yield session


@pytest.fixture()
def token_service(app) -> TokenService:
    return app.state.token_service


# ── Auth helper fixtures ────────────────────────────────

TEST_USER = {
    "username": "testuser",
    "email": "test@example.com",
    "password": "testpass123",
}

ADMIN_USER = {
    "username": "admin",
    "email": "admin@example.com",
    "password": "admin123",
}


def bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


async def make_user(db: AsyncSession, **fields):
    """Insert a user straight through the store."""
    return await user_service.create_user(db, UserCreate(**fields), rounds=TEST_ROUNDS)


@pytest_asyncio.fixture()
async def registered_user(app_client: AsyncClient) -> dict:
    """Register a test user over the API; returns ``{"user", "token", "password"}``."""
    resp = await app_client.post("/api/v1/users", json=TEST_USER)
    assert resp.status_code == 201, resp.text
    data = resp.json()["data"]
    return {**data, "password": TEST_USER["password"]}


@pytest_asyncio.fixture()
async def auth_headers(registered_user: dict) -> dict[str, str]:
    """Authorization headers for the plain test user."""
    return bearer(registered_user["token"])


@pytest_asyncio.fixture()
async def admin_user(db_session: AsyncSession):
    return await make_user(db_session, role="admin", **ADMIN_USER)


@pytest_asyncio.fixture()
async def admin_headers(admin_user, token_service: TokenService) -> dict[str, str]:
    """Authorization headers for an admin."""
    return bearer(token_service.issue(claims_for(admin_user)))
