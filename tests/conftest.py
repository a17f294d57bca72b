"""
Test fixtures for the Wallet API test suite.

This module provides shared fixtures used across all test files:

  - db_engine / db_session: Fresh in-memory SQLite database for each test
  - client: Async HTTP test client (unauthenticated)
  - authenticated_client: Test client with a pre-registered member and JWT
  - second_authenticated_client: A second member for cross-user tests
  - admin_client: Test client with a pre-registered ADMIN user and JWT
  - member: A User row created directly in db_session for service-level tests

Key design decisions:
  - In-memory SQLite (sqlite+aiosqlite://) is used for speed and isolation.
    Each test gets a completely fresh database - no state leaks between tests.
  - We override FastAPI's get_db dependency to inject our test session,
    so the application code works exactly as it does in production.
  - Each authenticated fixture has its own AsyncClient, so one test can act
    as a member and an admin at the same time.
  - The admin_client fixture registers normally and then updates the role
    in the DB - admins are provisioned by an operator, never self-service.
"""

import os
import uuid

from cryptography.fernet import Fernet

# Required settings must exist before app.config is imported
os.environ.setdefault("SECRET_KEY", "test-secret-key-not-for-production")
os.environ.setdefault("ACCOUNT_ENCRYPTION_KEY", Fernet.generate_key().decode())
os.environ.setdefault("RETURN_VERIFICATION_CODE", "true")

import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy import update
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker

from app.database import Base, get_db
from app.main import app
from app.models.user import User, UserRole


# In-memory SQLite for fast, isolated tests
TEST_DATABASE_URL = "sqlite+aiosqlite://"

MEMBER_PASSWORD = "SecurePass123!"


def registration_payload(username: str, password: str = MEMBER_PASSWORD, **overrides) -> dict:
    payload = {
        "username": username,
        "email": f"{username}@example.com",
        "first_name": username.capitalize(),
        "last_name": "User",
        "password": password,
        "confirm_password": password,
        "accept_terms": True,
    }
    payload.update(overrides)
    return payload


def account_payload(**overrides) -> dict:
    payload = {
        "account_holder_name": "Test User",
        "account_number": "123456784821",
        "ifsc_code": "HDFC0001234",
        "bank_name": "Test Bank",
    }
    payload.update(overrides)
    return payload


def _new_client() -> AsyncClient:
    return AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    )


async def _register(client: AsyncClient, username: str) -> dict:
    response = await client.post("/auth/register", json=registration_payload(username))
    assert response.status_code == 201, f"Registration failed: {response.text}"
    data = response.json()
    client.headers["Authorization"] = f"Bearer {data['token']}"
    return data


@pytest_asyncio.fixture
async def db_engine():
    """Create a fresh async engine with all tables for each test."""
    engine = create_async_engine(TEST_DATABASE_URL)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(db_engine):
    """Provide an async session bound to the test engine."""
    async_session = async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
    async with async_session() as session:
        yield session


@pytest_asyncio.fixture
async def client(db_engine):
    """
    Async HTTP test client with the test database injected.

    This overrides the get_db dependency so all requests hit the
    in-memory test database instead of the real one.
    """
    async_session = async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async def override_get_db():
        async with async_session() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db

    async with _new_client() as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def authenticated_client(client):
    """
    Test client with a pre-registered member and JWT token.

    Registers via the real endpoint, then sets the Authorization header
    for all subsequent requests.
    """
    await _register(client, "alice")
    return client


@pytest_asyncio.fixture
async def second_authenticated_client(client):
    """
    A second member on its own client, for cross-user authorization tests.

    Use this alongside authenticated_client to verify that user A cannot
    reach user B's accounts, wallet or transactions.
    """
    async with _new_client() as ac:
        await _register(ac, "bob")
        yield ac


@pytest_asyncio.fixture
async def admin_client(client, db_engine):
    """
    Test client with a pre-registered ADMIN user and JWT token.

    Registers a normal user, promotes it to ADMIN directly in the database,
    then logs in again.
    """
    async with _new_client() as ac:
        data = await _register(ac, "admin")

        async_session = async_sessionmaker(
            db_engine, class_=AsyncSession, expire_on_commit=False,
        )
        async with async_session() as session:
            await session.execute(
                update(User)
                .where(User.id == uuid.UUID(data["user_id"]))
                .values(role=UserRole.ADMIN)
            )
            await session.commit()

        login_response = await ac.post(
            "/auth/login",
            json={"username": "admin", "password": MEMBER_PASSWORD},
        )
        assert login_response.status_code == 200
        ac.headers["Authorization"] = f"Bearer {login_response.json()['token']}"
        yield ac


@pytest_asyncio.fixture
async def member(db_session):
    """A USER row for tests that call services directly."""
    user = User(
        username="carol",
        email="carol@example.com",
        first_name="Carol",
        last_name="User",
        hashed_password="not-a-real-hash",
        role=UserRole.USER,
    )
    db_session.add(user)
    await db_session.commit()
    return user
