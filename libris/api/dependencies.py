"""
Dependency injection for FastAPI routes.

Provides injectable dependencies for:
- Configuration
- Database sessions
- Repositories and the session issuer
- Authentication (the request authorization gate)
"""

import os
from dataclasses import dataclass
from datetime import timedelta
from functools import lru_cache
from typing import AsyncGenerator, Optional

from fastapi import Depends, Request
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from libris.errors import AuthenticationError
from libris.notifications import LogResetNotifier, PasswordResetNotifier
from libris.security import SessionIssuer
from libris.storage import Account, AccountRepository, AuditLogger, BookRepository


# =============================================================================
# Configuration
# =============================================================================

@dataclass
class Settings:
    """Application settings loaded from environment."""

    # Database
    database_url: str = "sqlite+aiosqlite:///./libris.db"
    database_echo: bool = False

    # Sessions
    secret_key: str = "dev-secret-change-in-production"
    jwt_algorithm: str = "HS256"
    token_expire_days: int = 30

    # Credentials
    bcrypt_rounds: int = 12
    reset_token_expire_minutes: int = 60

    # Password reset links point at the client app
    client_url: str = "http://localhost:3001"

    # HTTP
    api_prefix: str = "/api"

    # Environment
    environment: str = "development"
    debug: bool = True

    @classmethod
    def from_env(cls) -> "Settings":
        """Load settings from environment variables."""
        return cls(
            database_url=os.getenv("DATABASE_URL", cls.database_url),
            database_echo=os.getenv("DATABASE_ECHO", "false").lower() == "true",
            secret_key=os.getenv("SECRET_KEY", cls.secret_key),
            jwt_algorithm=os.getenv("JWT_ALGORITHM", cls.jwt_algorithm),
            token_expire_days=int(os.getenv("TOKEN_EXPIRE_DAYS", cls.token_expire_days)),
            bcrypt_rounds=int(os.getenv("BCRYPT_ROUNDS", cls.bcrypt_rounds)),
            reset_token_expire_minutes=int(
                os.getenv("RESET_TOKEN_EXPIRE_MINUTES", cls.reset_token_expire_minutes)
            ),
            client_url=os.getenv("CLIENT_URL", cls.client_url),
            api_prefix=os.getenv("API_PREFIX", cls.api_prefix),
            environment=os.getenv("LIBRIS_ENV", cls.environment),
            debug=os.getenv("DEBUG", "true").lower() == "true",
        )


@lru_cache()
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings.from_env()


# =============================================================================
# Database
# =============================================================================

# Global engine and session factory (initialized in lifespan)
_engine = None
_async_session_factory = None


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    # SQLite ignores ON DELETE CASCADE unless enabled per connection
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys = ON")
    cursor.close()


def init_database(settings: Settings) -> None:
    """Initialize database engine and session factory."""
    global _engine, _async_session_factory

    engine_kwargs = {"echo": settings.database_echo}
    if settings.database_url.startswith("sqlite") and ":memory:" in settings.database_url:
        # One shared connection, otherwise every session sees an empty database
        engine_kwargs.update(
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
    else:
        engine_kwargs["pool_pre_ping"] = True

    _engine = create_async_engine(settings.database_url, **engine_kwargs)

    if settings.database_url.startswith("sqlite"):
        event.listen(_engine.sync_engine, "connect", _enable_sqlite_foreign_keys)

    _async_session_factory = async_sessionmaker(
        _engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


async def dispose_database() -> None:
    """Close all pooled connections."""
    global _engine, _async_session_factory
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _async_session_factory = None


def get_engine():
    if _engine is None:
        raise RuntimeError("Database not initialized. Call init_database first.")
    return _engine


def get_session_factory() -> async_sessionmaker:
    """Session factory for code running outside a request (scripts, tests)."""
    if _async_session_factory is None:
        raise RuntimeError("Database not initialized. Call init_database first.")
    return _async_session_factory


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency that provides a database session.

    Yields:
        AsyncSession for database operations.
    """
    if _async_session_factory is None:
        raise RuntimeError("Database not initialized. Call init_database first.")

    async with _async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def create_tables() -> None:
    """Create database tables."""
    from ..storage.models import Base

    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


# =============================================================================
# Repositories and Services
# =============================================================================

def get_account_repository(
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> AccountRepository:
    """Dependency for the account repository."""
    return AccountRepository(
        db,
        bcrypt_rounds=settings.bcrypt_rounds,
        reset_token_lifetime=timedelta(minutes=settings.reset_token_expire_minutes),
    )


def get_audit_logger(db: AsyncSession = Depends(get_db)) -> AuditLogger:
    """Dependency for the activity log."""
    return AuditLogger(db)


def get_book_repository(
    db: AsyncSession = Depends(get_db),
    audit: AuditLogger = Depends(get_audit_logger),
) -> BookRepository:
    """Dependency for the book repository, wired to the activity log."""
    return BookRepository(db, audit_sink=audit)


def get_session_issuer(settings: Settings = Depends(get_settings)) -> SessionIssuer:
    """Dependency for the session token issuer."""
    return SessionIssuer(
        secret_key=settings.secret_key,
        algorithm=settings.jwt_algorithm,
        expires_delta=timedelta(days=settings.token_expire_days),
    )


_reset_notifier: PasswordResetNotifier = LogResetNotifier()


def get_reset_notifier() -> PasswordResetNotifier:
    """Dependency for password reset delivery."""
    return _reset_notifier


# =============================================================================
# Authentication Dependencies
# =============================================================================

oauth2_scheme = OAuth2PasswordBearer(
    tokenUrl=f"{Settings.api_prefix}/auth/login",
    auto_error=False,
)


@dataclass
class AuthSession:
    """The verified identity behind one request."""

    account: Account
    token: str

    @property
    def account_id(self) -> str:
        return self.account.id


async def get_current_session(
    request: Request,
    token: Optional[str] = Depends(oauth2_scheme),
    issuer: SessionIssuer = Depends(get_session_issuer),
    accounts: AccountRepository = Depends(get_account_repository),
) -> AuthSession:
    """
    Resolve the bearer token to an account.

    Raises:
        AuthenticationError: No token, a bad or expired token, or an
            account that no longer exists.
    """
    if not token:
        raise AuthenticationError(
            "Not authorized. Please log in to access this resource.",
            code="NOT_AUTHORIZED",
        )

    account_id = issuer.verify(token)

    account = await accounts.get(account_id)
    if account is None:
        raise AuthenticationError(
            "User not found. Please log in again.",
            code="USER_NOT_FOUND",
        )

    session = AuthSession(account=account, token=token)
    request.state.session = session
    return session
