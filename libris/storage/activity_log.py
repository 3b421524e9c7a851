"""
Activity log for Libris.

Append-only record of catalogue mutations per user. Entries keep a snapshot of
the book title so they stay readable after the book itself is deleted.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from loguru import logger
from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from libris.errors import InfrastructureError
from .book_repository import AuditAction, MutationEvent
from .models import ActivityLogModel, utcnow


DEFAULT_HISTORY_LIMIT = 50
MAX_HISTORY_LIMIT = 500


@dataclass
class LogEntry:
    """Data class for activity log entries."""

    id: int
    user_id: str
    action: str
    book_title: str
    description: str
    details: dict[str, Any] = field(default_factory=dict)
    timestamp: Optional[datetime] = None

    @classmethod
    def from_model(cls, model: ActivityLogModel) -> "LogEntry":
        return cls(
            id=model.id,
            user_id=model.user_id,
            action=model.action,
            book_title=model.book_title,
            description=model.description,
            details=model.details or {},
            timestamp=model.timestamp,
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "action": self.action,
            "book_title": self.book_title,
            "description": self.description,
            "details": self.details,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
        }


def describe(event: MutationEvent) -> tuple[str, str, dict[str, Any]]:
    """
    Build (book_title, description, details) for a mutation event.
    """
    if event.action == AuditAction.ADD:
        book = event.after
        return (
            book.title,
            f'Added "{book.title}" by {book.author} to the library',
            {"book_id": book.id, "author": book.author, "isbn": book.isbn, "year": book.year},
        )

    if event.action == AuditAction.EDIT:
        return (
            event.after.title,
            f'Updated "{event.before.title}" book details',
            {"book_id": event.after.id, "changes": event.changes},
        )

    if event.action == AuditAction.DELETE:
        book = event.before
        return (
            book.title,
            f'Removed "{book.title}" by {book.author} from the library',
            {"book_id": book.id, "author": book.author, "isbn": book.isbn, "year": book.year},
        )

    raise ValueError(f"Unknown audit action: {event.action}")


class AuditLogger:
    """
    Activity log sink and query interface.

    Records are never validated against business rules; the only way
    `record` fails is a storage fault.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def record(
        self,
        account_id: str,
        action: AuditAction,
        book_title: str,
        description: str,
        details: Optional[dict[str, Any]] = None,
    ) -> LogEntry:
        """Append one entry and commit it."""
        entry = ActivityLogModel(
            user_id=account_id,
            action=AuditAction(action).value,
            book_title=book_title,
            description=description,
            details=details or {},
            timestamp=utcnow(),
        )
        self.session.add(entry)
        try:
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(f"Activity log append failed: {type(e).__name__}: {e}")
            raise InfrastructureError("Failed to record activity")

        return LogEntry.from_model(entry)

    async def consume(self, event: MutationEvent) -> LogEntry:
        """Record a mutation event from the book repository."""
        book_title, description, details = describe(event)
        return await self.record(
            event.account_id,
            event.action,
            book_title,
            description,
            details,
        )

    async def history(self, account_id: str, limit: int = DEFAULT_HISTORY_LIMIT) -> list[LogEntry]:
        """Newest entries first, at most `limit` of them."""
        limit = max(1, min(int(limit), MAX_HISTORY_LIMIT))
        stmt = (
            select(ActivityLogModel)
            .where(ActivityLogModel.user_id == account_id)
            .order_by(ActivityLogModel.timestamp.desc(), ActivityLogModel.id.desc())
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return [LogEntry.from_model(entry) for entry in result.scalars()]

    async def clear(self, account_id: str) -> int:
        """Delete every entry owned by the account. Returns the number removed."""
        stmt = delete(ActivityLogModel).where(ActivityLogModel.user_id == account_id)
        try:
            result = await self.session.execute(stmt)
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(f"Activity log clear failed: {type(e).__name__}: {e}")
            raise InfrastructureError("Failed to clear activity history")

        logger.info(f"Cleared {result.rowcount} activity entries for account {account_id}")
        return result.rowcount
