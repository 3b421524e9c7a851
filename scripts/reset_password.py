#!/usr/bin/env python3
"""
Libris - Operator password reset

Sets a new password for an account directly in the database, bypassing the
email reset flow. Any outstanding reset token for the account is cleared.

Usage:
    python scripts/reset_password.py alice@example.com
    python scripts/reset_password.py alice@example.com --password newsecret
"""

import argparse
import asyncio
import getpass
import sys
from pathlib import Path

from dotenv import load_dotenv

sys.path.insert(0, str(Path(__file__).parent.parent))

from libris.api.dependencies import (
    Settings,
    create_tables,
    dispose_database,
    get_session_factory,
    init_database,
)
from libris.errors import LibrisException
from libris.storage import AccountRepository


async def reset_password(settings: Settings, email: str, password: str) -> str:
    """Set the password and return the account id."""
    init_database(settings)
    try:
        await create_tables()
        async with get_session_factory()() as session:
            repo = AccountRepository(session, bcrypt_rounds=settings.bcrypt_rounds)
            account = await repo.set_password(email, password)
            return account.id
    finally:
        await dispose_database()


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Reset a Libris account password")
    parser.add_argument("email", help="Account email (case-insensitive)")
    parser.add_argument("--password", help="New password; prompted for when omitted")
    parser.add_argument("--database-url", help="Override DATABASE_URL")
    args = parser.parse_args(argv)

    load_dotenv()
    settings = Settings.from_env()
    if args.database_url:
        settings.database_url = args.database_url

    password = args.password or getpass.getpass("New password: ")

    try:
        account_id = asyncio.run(reset_password(settings, args.email, password))
    except LibrisException as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 1

    print(f"Password updated for account {account_id}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
