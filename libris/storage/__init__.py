"""
Storage Module for Libris

Persistent, account-scoped storage:
- User accounts and credentials
- Book records, unique ISBN per account
- Append-only activity log
"""

from libris.storage.models import (
    Base,
    User,
    BookModel,
    ActivityLogModel,
)
from libris.storage.account_repository import (
    Account,
    AccountRepository,
)
from libris.storage.book_repository import (
    AuditAction,
    BookRepository,
    MutationEvent,
    StoredBook,
)
from libris.storage.activity_log import (
    AuditLogger,
    LogEntry,
)

__all__ = [
    # Models
    "Base",
    "User",
    "BookModel",
    "ActivityLogModel",
    # Accounts
    "Account",
    "AccountRepository",
    # Books
    "AuditAction",
    "BookRepository",
    "MutationEvent",
    "StoredBook",
    # Activity log
    "AuditLogger",
    "LogEntry",
]
