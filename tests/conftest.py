"""
Pytest configuration and fixtures for Libris tests.
"""

import sys
from pathlib import Path
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from libris.api.main import create_app
from libris.api.dependencies import (
    Settings,
    create_tables,
    dispose_database,
    get_reset_notifier,
    get_session_factory,
    get_settings,
    init_database,
)
from libris.storage import AccountRepository


# =============================================================================
# Test Settings
# =============================================================================

def get_test_settings(database_url: str) -> Settings:
    """Return settings configured for testing."""
    return Settings(
        database_url=database_url,
        database_echo=False,
        secret_key="test-secret-key",
        bcrypt_rounds=4,
        client_url="http://client.test",
        environment="test",
        debug=True,
    )


@pytest.fixture
def settings(tmp_path) -> Settings:
    return get_test_settings(f"sqlite+aiosqlite:///{tmp_path / 'libris-test.db'}")


# =============================================================================
# Database Fixtures
# =============================================================================

@pytest_asyncio.fixture(scope="function")
async def database(settings):
    """Fresh schema in a per-test SQLite file."""
    init_database(settings)
    await create_tables()

    yield

    await dispose_database()


@pytest_asyncio.fixture(scope="function")
async def db_session(database) -> AsyncGenerator[AsyncSession, None]:
    """Provide database session for tests."""
    async with get_session_factory()() as session:
        yield session


@pytest_asyncio.fixture
async def accounts(db_session) -> AccountRepository:
    return AccountRepository(db_session, bcrypt_rounds=4)


@pytest_asyncio.fixture
async def alice(accounts):
    return await accounts.register("Alice", "alice@example.com", "secret1")


@pytest_asyncio.fixture
async def bob(accounts):
    return await accounts.register("Bob", "bob@example.com", "secret2")


# =============================================================================
# Application Fixtures
# =============================================================================

class RecordingNotifier:
    """Captures reset links instead of delivering them."""

    def __init__(self):
        self.sent = []

    async def send_password_reset(self, account, reset_url):
        self.sent.append((account.email, reset_url))

    @property
    def last_token(self) -> str:
        return self.sent[-1][1].rsplit("/", 1)[-1]


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest_asyncio.fixture(scope="function")
async def app(settings, database, notifier):
    """Create FastAPI application for testing."""
    application = create_app(settings)

    application.dependency_overrides[get_settings] = lambda: settings
    application.dependency_overrides[get_reset_notifier] = lambda: notifier

    yield application

    application.dependency_overrides.clear()


@pytest_asyncio.fixture(scope="function")
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """Provide async HTTP client for API tests."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def register_user(client):
    """Register through the API and return (token, user)."""

    async def _register(name="Alice", email="alice@example.com", password="secret1"):
        response = await client.post(
            "/api/auth/register",
            json={"name": name, "email": email, "password": password},
        )
        assert response.status_code == 201, response.text
        body = response.json()
        return body["token"], body["user"]

    return _register


# =============================================================================
# Data Fixtures
# =============================================================================

@pytest.fixture
def dune() -> dict:
    return {
        "title": "Dune",
        "author": "Herbert",
        "isbn": "9780441013593",
        "year": 1965,
    }


@pytest.fixture
def sample_books_batch() -> list[dict]:
    return [
        {"title": "1984", "author": "George Orwell", "isbn": "9780451524935", "year": 1949},
        {"title": "To Kill a Mockingbird", "author": "Harper Lee", "isbn": "9780061120084", "year": 1960},
        {"title": "Pride and Prejudice", "author": "Jane Austen", "isbn": "9780141439518", "year": 1813},
    ]
