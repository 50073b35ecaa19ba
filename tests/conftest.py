"""Shared fixtures for the HeartGuide test suite.

Tests run against a throwaway SQLite database (aiosqlite) per test, so no
PostgreSQL server is needed. The application is built with create_app()
from test Settings and driven through httpx's ASGI transport.
"""

from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from pydantic import SecretStr
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from heartguide.core.auth import hash_password
from heartguide.core.config import Settings
from heartguide.core.database import Database
from heartguide.main import create_app
from heartguide.models import Base, User
from heartguide.models.user import ROLE_ADMIN
from heartguide.repositories.user_repository import UserRepository

# Security: This is a test-only secret. Production uses a real secret from env.
TEST_AUTH_SECRET = "test-secret-key-that-is-at-least-32-characters-long"  # nosec B105  # gitleaks:allow
TEST_PASSWORD = "Heart#Guide1"  # nosec B105
TEST_BASE_URL = "https://app.heartguide.test"


def make_settings(database_dsn: str = "sqlite+aiosqlite://", **overrides) -> Settings:
    """Build Settings for tests without reading .env.

    Args:
        database_dsn: SQLAlchemy URL for the test database.
        **overrides: Any Settings field.

    Returns:
        Settings with fast bcrypt, no cooldown, and rate limiting off.
    """
    values = {
        "database_dsn": database_dsn,
        "environment": "test",
        "auth_secret": SecretStr(TEST_AUTH_SECRET),
        "session_cookie_secure": False,
        "bcrypt_rounds": 4,
        "code_resend_cooldown_seconds": 0,
        "rate_limit_enabled": False,
        "app_url": TEST_BASE_URL,
        "google_client_id": "test-google-client-id",
        "google_client_secret": SecretStr("test-google-client-secret"),
        "github_client_id": "test-github-client-id",
        "github_client_secret": SecretStr("test-github-client-secret"),
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Test settings pointing at a per-test SQLite file."""
    return make_settings(f"sqlite+aiosqlite:///{tmp_path / 'heartguide.db'}")


@pytest_asyncio.fixture
async def db_engine(settings: Settings) -> AsyncGenerator[AsyncEngine, None]:
    """Create the test database engine and schema."""
    engine = create_async_engine(settings.database_url, echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(db_engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    """Create test database session."""
    async_session = async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with async_session() as session:
        yield session
        await session.rollback()


async def create_user(
    db: AsyncSession,
    *,
    email: str = "patient@example.com",
    password: str | None = TEST_PASSWORD,
    name: str = "Test Patient",
    phone: str | None = None,
    email_verified: bool = False,
    admin: bool = False,
) -> User:
    """Insert and commit a user.

    Args:
        db: Database session.
        email: Email address.
        password: Plain password, or None for an OAuth-only user.
        name: Display name.
        phone: E.164 phone number.
        email_verified: Whether the email is already confirmed.
        admin: Grant the admin role.

    Returns:
        The committed User.
    """
    user = await UserRepository.create(
        db,
        email=email,
        name=name,
        phone=phone,
        password_hash=hash_password(password, rounds=4) if password else None,
        email_verified=email_verified,
    )
    if admin:
        await UserRepository.set_role(db, user.id, ROLE_ADMIN)
    await db.commit()
    return user


@pytest_asyncio.fixture
async def test_user(db_session: AsyncSession) -> User:
    """A regular user with a password and a phone number."""
    return await create_user(db_session, phone="+15551234567")


@pytest_asyncio.fixture
async def admin_user(db_session: AsyncSession) -> User:
    """A user holding the admin role."""
    return await create_user(db_session, email="admin@example.com", admin=True)


@pytest.fixture
def app(settings: Settings, db_engine: AsyncEngine):
    """Application wired to the test database."""
    return create_app(settings, database=Database(settings, engine=db_engine))


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client without a session cookie."""
    transport = ASGITransport(app=app)
    async with AsyncClient(
        transport=transport,
        base_url="http://test",
        follow_redirects=False,
    ) as ac:
        yield ac


async def login(client: AsyncClient, email: str, password: str = TEST_PASSWORD):
    """Log in through the API; the client keeps the session cookie."""
    response = await client.post(
        "/api/v1/auth/login", json={"email": email, "password": password}
    )
    assert response.status_code == 200, response.text
    return response


@pytest_asyncio.fixture
async def user_client(client: AsyncClient, test_user: User) -> AsyncClient:
    """Client logged in as test_user."""
    await login(client, test_user.email)
    return client
