"""
Password reset delivery.

Email transport lives outside this service. The API only needs something with
`send_password_reset(account, reset_url)`; the default implementation writes
the link to the application log, which is enough for development.
"""

from typing import Protocol

from loguru import logger

from libris.storage.account_repository import Account


class PasswordResetNotifier(Protocol):
    async def send_password_reset(self, account: Account, reset_url: str) -> None:
        ...


def build_reset_url(client_url: str, raw_token: str) -> str:
    return f"{client_url.rstrip('/')}/reset-password/{raw_token}"


class LogResetNotifier:
    """Writes reset links to the log instead of sending mail."""

    async def send_password_reset(self, account: Account, reset_url: str) -> None:
        logger.info(f"Password reset link for {account.email}: {reset_url}")
