"""
Account Repository for Libris

Credential store for user accounts:
- Registration with validation and bcrypt hashing
- Credential verification with a single generic failure
- Theme preference
- Password reset tokens (hashed at rest, single use, 1 hour lifetime)

The password hash and reset token columns are deferred on the model, so only
the queries in this module that explicitly undefer them ever load them.
"""

import asyncio
import re
from dataclasses import dataclass
from datetime import datetime, timedelta
from functools import lru_cache
from typing import Optional
from uuid import uuid4

from loguru import logger
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import undefer

from libris.errors import (
    DuplicateEmail,
    InfrastructureError,
    InvalidCredentials,
    InvalidOrExpiredToken,
    NotFoundError,
    ValidationError,
)
from libris.security import (
    BCRYPT_ROUNDS,
    generate_reset_token,
    get_password_hash,
    hash_reset_token,
    verify_password,
)
from .models import User, utcnow


EMAIL_PATTERN = re.compile(r"^\w+(?:[.-]\w+)*@\w+(?:[.-]\w+)*\.\w{2,}$")
MAX_EMAIL_LENGTH = 254
THEMES = ("dark", "light")
DEFAULT_THEME = "dark"
MIN_PASSWORD_LENGTH = 6
# bcrypt only reads the first 72 bytes of a password
MAX_PASSWORD_BYTES = 72
NAME_LENGTH = (2, 50)
RESET_TOKEN_LIFETIME = timedelta(hours=1)


@dataclass
class Account:
    """Outward view of a user. Never carries credential material."""

    id: str
    name: str
    email: str
    theme: str
    created_at: Optional[datetime] = None

    @classmethod
    def from_model(cls, model: User) -> "Account":
        """Create from SQLAlchemy model."""
        return cls(
            id=model.id,
            name=model.name,
            email=model.email,
            theme=model.theme,
            created_at=model.created_at,
        )

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "theme": self.theme,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


def normalize_email(email: str) -> str:
    return email.strip().lower()


def validate_password(password) -> str:
    if not isinstance(password, str) or not password:
        raise ValidationError("Please provide a password")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters long"
        )
    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValidationError(
            f"Password cannot exceed {MAX_PASSWORD_BYTES} bytes"
        )
    return password


def validate_registration(name, email, password) -> tuple[str, str, str]:
    """
    Validate and normalize registration input.

    Returns:
        (name, email, password) with name trimmed and email lowercased.
    """
    if not name or not email or not password:
        raise ValidationError("Please provide name, email, and password")
    if not all(isinstance(v, str) for v in (name, email, password)):
        raise ValidationError("Name, email, and password must be strings")

    messages = []
    name = name.strip()
    if not NAME_LENGTH[0] <= len(name) <= NAME_LENGTH[1]:
        messages.append(
            f"Name must be between {NAME_LENGTH[0]} and {NAME_LENGTH[1]} characters"
        )

    email = normalize_email(email)
    if len(email) > MAX_EMAIL_LENGTH or not EMAIL_PATTERN.match(email):
        messages.append("Please enter a valid email")

    try:
        validate_password(password)
    except ValidationError as e:
        messages.append(e.message)

    if messages:
        raise ValidationError(". ".join(messages))
    return name, email, password


class AccountRepository:
    """
    Repository for user accounts.

    Usage:
        repo = AccountRepository(session)
        account = await repo.register("Alice", "alice@x.com", "secret1")
        account = await repo.verify("alice@x.com", "secret1")
    """

    def __init__(
        self,
        session: AsyncSession,
        bcrypt_rounds: int = BCRYPT_ROUNDS,
        reset_token_lifetime: timedelta = RESET_TOKEN_LIFETIME,
    ):
        self.session = session
        self.bcrypt_rounds = bcrypt_rounds
        self.reset_token_lifetime = reset_token_lifetime

    async def _hash(self, password: str) -> str:
        # bcrypt is deliberately slow; keep it off the event loop
        return await asyncio.to_thread(get_password_hash, password, self.bcrypt_rounds)

    async def _commit(self) -> None:
        try:
            await self.session.commit()
        except IntegrityError:
            await self.session.rollback()
            raise
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(f"Account storage failure: {type(e).__name__}: {e}")
            raise InfrastructureError()

    async def _find_by_email(self, email: str, *options) -> Optional[User]:
        stmt = select(User).where(User.email == normalize_email(email))
        if options:
            # Credential reads must see the row, not a stale identity-map copy
            stmt = stmt.options(*options).execution_options(populate_existing=True)
        return (await self.session.execute(stmt)).scalar_one_or_none()

    async def get(self, account_id: str) -> Optional[Account]:
        """Get account by ID."""
        user = await self.session.get(User, account_id)
        return Account.from_model(user) if user else None

    async def get_by_email(self, email: str) -> Optional[Account]:
        """Get account by email, case-insensitively."""
        user = await self._find_by_email(email)
        return Account.from_model(user) if user else None

    async def register(self, name: str, email: str, password: str) -> Account:
        """
        Create a new account.

        Raises:
            ValidationError: Name, email, or password malformed.
            DuplicateEmail: Email already registered (any letter case).
        """
        name, email, password = validate_registration(name, email, password)

        if await self._find_by_email(email) is not None:
            raise DuplicateEmail()

        user = User(
            id=str(uuid4()),
            name=name,
            email=email,
            theme=DEFAULT_THEME,
            hashed_password=await self._hash(password),
        )
        self.session.add(user)
        try:
            await self._commit()
        except IntegrityError:
            # Lost a race with a concurrent registration
            raise DuplicateEmail()

        logger.info(f"Registered account {user.id}")
        return Account.from_model(user)

    async def verify(self, email: str, password: str) -> Account:
        """
        Check credentials.

        Raises:
            InvalidCredentials: Unknown email or wrong password, indistinguishably.
        """
        if not isinstance(email, str) or not isinstance(password, str):
            raise InvalidCredentials()
        if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
            raise InvalidCredentials()

        user = await self._find_by_email(email, undefer(User.hashed_password))
        if user is None:
            # Burn comparable time so unknown emails are not faster
            await asyncio.to_thread(verify_password, password, _dummy_hash(self.bcrypt_rounds))
            raise InvalidCredentials()

        matches = await asyncio.to_thread(verify_password, password, user.hashed_password)
        if not matches:
            raise InvalidCredentials()
        return Account.from_model(user)

    async def set_preference(self, account_id: str, theme: str) -> Account:
        """Set the account's theme."""
        if theme not in THEMES:
            raise ValidationError('Invalid theme. Must be "dark" or "light"')

        user = await self.session.get(User, account_id)
        if user is None:
            raise NotFoundError("Account", account_id)

        user.theme = theme
        await self._commit()
        return Account.from_model(user)

    async def issue_reset_token(self, email: str) -> tuple[Account, str]:
        """
        Start a password reset.

        Only the token's digest and expiry are stored. The raw token is
        returned once for delivery to the user.

        Raises:
            NotFoundError: No account with that email.
        """
        user = await self._find_by_email(email)
        if user is None:
            raise NotFoundError("Account")

        raw_token, token_hash = generate_reset_token()
        user.reset_token_hash = token_hash
        user.reset_token_expires_at = utcnow() + self.reset_token_lifetime
        await self._commit()

        logger.info(f"Issued password reset token for account {user.id}")
        return Account.from_model(user), raw_token

    async def consume_reset_token(self, raw_token: str, new_password: str) -> Account:
        """
        Finish a password reset.

        The password swap and the clearing of the token happen in one
        conditional UPDATE, so a token is accepted at most once.

        Raises:
            ValidationError: New password too short.
            InvalidOrExpiredToken: Token unknown, expired, or already used.
        """
        validate_password(new_password)
        if not raw_token:
            raise InvalidOrExpiredToken()

        token_hash = hash_reset_token(raw_token)
        now = utcnow()
        new_hash = await self._hash(new_password)

        stmt = (
            update(User)
            .where(
                User.reset_token_hash == token_hash,
                User.reset_token_expires_at > now,
            )
            .values(
                hashed_password=new_hash,
                reset_token_hash=None,
                reset_token_expires_at=None,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
            .returning(User.id)
        )
        try:
            account_id = (await self.session.execute(stmt)).scalar_one_or_none()
            await self._commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(f"Password reset failed: {type(e).__name__}: {e}")
            raise InfrastructureError()

        if account_id is None:
            raise InvalidOrExpiredToken()

        logger.info(f"Password reset completed for account {account_id}")
        user = await self.session.get(User, account_id, populate_existing=True)
        return Account.from_model(user)

    async def set_password(self, email: str, new_password: str) -> Account:
        """Replace an account's password directly (operator use)."""
        validate_password(new_password)
        user = await self._find_by_email(email)
        if user is None:
            raise NotFoundError("Account")

        user.hashed_password = await self._hash(new_password)
        user.reset_token_hash = None
        user.reset_token_expires_at = None
        await self._commit()
        return Account.from_model(user)


@lru_cache(maxsize=4)
def _dummy_hash(rounds: int) -> str:
    return get_password_hash("libris-timing-equalizer", rounds=rounds)
