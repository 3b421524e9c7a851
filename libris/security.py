"""
Credential primitives for Libris.

- bcrypt password hashing
- Signed, time-bounded session tokens (JWT)
- Single-use password reset tokens, stored only as SHA-256 digests
"""

import hashlib
import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
from jose import ExpiredSignatureError, JWTError, jwt

from libris.errors import TokenExpiredError, TokenInvalidError


ALGORITHM = "HS256"
BCRYPT_ROUNDS = 12
TOKEN_EXPIRE_DAYS = 30
RESET_TOKEN_BYTES = 32


# =============================================================================
# Passwords
# =============================================================================

def get_password_hash(password: str, rounds: int = BCRYPT_ROUNDS) -> str:
    """Hash a password with a fresh salt."""
    salt = bcrypt.gensalt(rounds=rounds)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Check a password against a stored bcrypt hash."""
    if not hashed_password:
        return False
    try:
        return bcrypt.checkpw(
            plain_password.encode("utf-8"),
            hashed_password.encode("utf-8"),
        )
    except ValueError:
        # Malformed stored hash
        return False


# =============================================================================
# Session tokens
# =============================================================================

def create_access_token(
    data: dict,
    secret_key: str,
    expires_delta: Optional[timedelta] = None,
    algorithm: str = ALGORITHM,
) -> str:
    """Sign a JWT carrying `data` plus iat/exp claims."""
    now = datetime.now(timezone.utc)
    to_encode = data.copy()
    to_encode["iat"] = now
    to_encode["exp"] = now + (expires_delta or timedelta(days=TOKEN_EXPIRE_DAYS))
    return jwt.encode(to_encode, secret_key, algorithm=algorithm)


class SessionIssuer:
    """
    Issues and verifies stateless session tokens.

    The token asserts an account id (`sub`) and an expiry. Verification needs
    no storage; revocation is by expiry only.

    Usage:
        issuer = SessionIssuer(secret_key="...")
        token = issuer.issue(account_id)
        account_id = issuer.verify(token)
    """

    def __init__(
        self,
        secret_key: str,
        algorithm: str = ALGORITHM,
        expires_delta: timedelta = timedelta(days=TOKEN_EXPIRE_DAYS),
    ):
        if not secret_key:
            raise ValueError("secret_key must not be empty")
        self.secret_key = secret_key
        self.algorithm = algorithm
        self.expires_delta = expires_delta

    def issue(self, account_id: str, expires_delta: Optional[timedelta] = None) -> str:
        """Issue a token for an account."""
        return create_access_token(
            {"sub": account_id},
            secret_key=self.secret_key,
            expires_delta=expires_delta or self.expires_delta,
            algorithm=self.algorithm,
        )

    def verify(self, token: str) -> str:
        """
        Verify signature and expiry.

        Returns:
            The account id the token was issued for.

        Raises:
            TokenExpiredError: Signature is valid but the token has expired.
            TokenInvalidError: Malformed token, bad signature, or missing subject.
        """
        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except ExpiredSignatureError:
            raise TokenExpiredError()
        except JWTError:
            raise TokenInvalidError()

        account_id = payload.get("sub")
        if not isinstance(account_id, str) or not account_id:
            raise TokenInvalidError()
        return account_id


# =============================================================================
# Password reset tokens
# =============================================================================

def hash_reset_token(raw_token: str) -> str:
    """One-way digest used to store and look up reset tokens."""
    return hashlib.sha256(raw_token.encode("utf-8")).hexdigest()


def generate_reset_token() -> tuple[str, str]:
    """
    Create a reset token.

    Returns:
        (raw_token, token_hash). Only the hash may be persisted.
    """
    raw_token = secrets.token_hex(RESET_TOKEN_BYTES)
    return raw_token, hash_reset_token(raw_token)
