"""
Book Repository for Libris

Account-scoped storage for book records using SQLAlchemy:
- Every query filters on (book id AND owning user id)
- ISBN unique within one user's catalogue, not globally
- Explicit validate -> persist pipeline on create and update
- Mutation events handed to an audit sink after each commit

Design Decisions:
1. Ownership misses are reported as NotFound, never Forbidden
2. Audit is best-effort: a failing sink is logged, the mutation still stands
3. The (user_id, isbn) unique constraint settles concurrent inserts
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional, Protocol
from uuid import uuid4

from loguru import logger
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from libris.errors import (
    DuplicateIsbnForAccount,
    InfrastructureError,
    NotFoundError,
    ValidationError,
)
from .models import BookModel, utcnow


BOOK_FIELDS = ("title", "author", "isbn", "year")
TITLE_LENGTH = (1, 200)
AUTHOR_LENGTH = (1, 100)
ISBN_LENGTH = (10, 17)
MIN_YEAR = 1000


class AuditAction(str, Enum):
    """Kinds of catalogue mutation."""
    ADD = "ADD"
    EDIT = "EDIT"
    DELETE = "DELETE"


@dataclass
class StoredBook:
    """Data class for book data transfer."""

    id: str
    user_id: str
    title: str
    author: str
    isbn: str
    year: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_model(cls, model: BookModel) -> "StoredBook":
        """Create from SQLAlchemy model."""
        return cls(
            id=model.id,
            user_id=model.user_id,
            title=model.title,
            author=model.author,
            isbn=model.isbn,
            year=model.year,
            created_at=model.created_at,
            updated_at=model.updated_at,
        )

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "user_id": self.user_id,
            "title": self.title,
            "author": self.author,
            "isbn": self.isbn,
            "year": self.year,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


@dataclass
class MutationEvent:
    """A committed change to one book, as seen by the audit sink."""

    action: AuditAction
    account_id: str
    before: Optional[StoredBook] = None
    after: Optional[StoredBook] = None
    changes: dict[str, Any] = field(default_factory=dict)


class AuditSink(Protocol):
    async def consume(self, event: MutationEvent) -> Any:
        ...


# =============================================================================
# Validation
# =============================================================================

def _clean_text(name: str, value: Any, bounds: tuple[int, int]) -> str:
    if not isinstance(value, str):
        raise ValidationError(f"{name.capitalize()} must be a string")
    value = value.strip()
    low, high = bounds
    if len(value) < low:
        raise ValidationError(f"{name.capitalize()} must be at least {low} characters long")
    if len(value) > high:
        raise ValidationError(f"{name.capitalize()} cannot exceed {high} characters")
    return value


def _clean_year(value: Any) -> int:
    if isinstance(value, bool):
        raise ValidationError("Year must be a number")
    if isinstance(value, str):
        try:
            value = int(value.strip())
        except ValueError:
            raise ValidationError("Year must be a number")
    if not isinstance(value, int):
        raise ValidationError("Year must be a number")

    max_year = utcnow().year + 1
    if value < MIN_YEAR:
        raise ValidationError("Year must be a valid 4-digit year")
    if value > max_year:
        raise ValidationError("Year cannot be in the future")
    return value


def validate_book_fields(fields: dict[str, Any]) -> dict[str, Any]:
    """
    Validate and normalize the supplied book fields.

    Only keys present in `fields` are checked; strings are trimmed.
    """
    cleaned = {}
    if "title" in fields:
        cleaned["title"] = _clean_text("title", fields["title"], TITLE_LENGTH)
    if "author" in fields:
        cleaned["author"] = _clean_text("author", fields["author"], AUTHOR_LENGTH)
    if "isbn" in fields:
        cleaned["isbn"] = _clean_text("ISBN", fields["isbn"], ISBN_LENGTH)
    if "year" in fields:
        cleaned["year"] = _clean_year(fields["year"])
    return cleaned


# =============================================================================
# Repository
# =============================================================================

class BookRepository:
    """
    Repository for one request's book operations.

    The account id passed to every method is the scoping identity: it must come
    from a verified session, never from client input.

    Usage:
        repo = BookRepository(session, audit_sink=AuditLogger(session))

        book = await repo.create(account_id, "Dune", "Frank Herbert", "9780441013593", 1965)
        books = await repo.list(account_id)
    """

    def __init__(self, session: AsyncSession, audit_sink: Optional[AuditSink] = None):
        self.session = session
        self.audit_sink = audit_sink

    async def _load(self, account_id: str, book_id: str) -> BookModel:
        stmt = select(BookModel).where(
            BookModel.id == book_id,
            BookModel.user_id == account_id,
        )
        book = (await self.session.execute(stmt)).scalar_one_or_none()
        if book is None:
            raise NotFoundError("Book", book_id)
        return book

    async def _isbn_taken(self, account_id: str, isbn: str, exclude_id: str = None) -> bool:
        stmt = select(BookModel.id).where(
            BookModel.user_id == account_id,
            BookModel.isbn == isbn,
        )
        if exclude_id:
            stmt = stmt.where(BookModel.id != exclude_id)
        return (await self.session.execute(stmt)).first() is not None

    async def _commit(self, isbn: str) -> None:
        try:
            await self.session.commit()
        except IntegrityError:
            await self.session.rollback()
            raise DuplicateIsbnForAccount(isbn)
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(f"Book storage failure: {type(e).__name__}: {e}")
            raise InfrastructureError()

    async def _emit(self, event: MutationEvent) -> None:
        """Hand a committed mutation to the audit sink; failures do not propagate."""
        if self.audit_sink is None:
            return
        try:
            await self.audit_sink.consume(event)
        except Exception:
            # The book change is already committed and stays authoritative.
            logger.opt(exception=True).error(
                f"Audit write failed for {event.action.value} by account {event.account_id}"
            )
            try:
                await self.session.rollback()
            except SQLAlchemyError:
                logger.opt(exception=True).error("Rollback after audit failure failed")

    async def list(self, account_id: str) -> list[StoredBook]:
        """All of the account's books, newest first."""
        stmt = (
            select(BookModel)
            .where(BookModel.user_id == account_id)
            .order_by(BookModel.created_at.desc())
        )
        result = await self.session.execute(stmt)
        return [StoredBook.from_model(book) for book in result.scalars()]

    async def get(self, account_id: str, book_id: str) -> StoredBook:
        """
        Get one of the account's books.

        Raises:
            NotFoundError: No such book, or it belongs to another account.
        """
        return StoredBook.from_model(await self._load(account_id, book_id))

    async def get_by_isbn(self, account_id: str, isbn: str) -> Optional[StoredBook]:
        """Exact ISBN lookup within the account's catalogue."""
        stmt = select(BookModel).where(
            BookModel.user_id == account_id,
            BookModel.isbn == isbn.strip(),
        )
        book = (await self.session.execute(stmt)).scalar_one_or_none()
        return StoredBook.from_model(book) if book else None

    async def create(
        self,
        account_id: str,
        title: Any,
        author: Any,
        isbn: Any,
        year: Any,
    ) -> StoredBook:
        """
        Add a book to the account's catalogue.

        Raises:
            ValidationError: A field is missing or out of bounds.
            DuplicateIsbnForAccount: The account already holds this ISBN.
        """
        supplied = {"title": title, "author": author, "isbn": isbn, "year": year}
        if any(value is None or value == "" for value in supplied.values()):
            raise ValidationError("All fields are required (title, author, isbn, year)")

        cleaned = validate_book_fields(supplied)

        if await self._isbn_taken(account_id, cleaned["isbn"]):
            raise DuplicateIsbnForAccount(cleaned["isbn"])

        book = BookModel(id=str(uuid4()), user_id=account_id, **cleaned)
        self.session.add(book)
        await self._commit(cleaned["isbn"])

        created = StoredBook.from_model(book)
        logger.info(f"Account {account_id} added book {created.id}")

        await self._emit(MutationEvent(AuditAction.ADD, account_id, after=created))
        return created

    async def update(self, account_id: str, book_id: str, fields: dict[str, Any]) -> StoredBook:
        """
        Change the supplied fields of one of the account's books.

        Ownership is checked before any field is validated.

        Raises:
            NotFoundError: No such book for this account.
            ValidationError: A supplied field is out of bounds.
            DuplicateIsbnForAccount: New ISBN already used by another of the account's books.
        """
        book = await self._load(account_id, book_id)
        before = StoredBook.from_model(book)

        supplied = {
            key: value
            for key, value in fields.items()
            if key in BOOK_FIELDS and value is not None
        }
        cleaned = validate_book_fields(supplied)

        new_isbn = cleaned.get("isbn")
        if new_isbn and new_isbn != book.isbn and await self._isbn_taken(account_id, new_isbn, exclude_id=book_id):
            raise DuplicateIsbnForAccount(new_isbn)

        changes = {}
        for key, value in cleaned.items():
            if getattr(book, key) != value:
                changes[key] = {"from": getattr(book, key), "to": value}
                setattr(book, key, value)

        if changes:
            book.updated_at = utcnow()
        await self._commit(book.isbn)

        updated = StoredBook.from_model(book)
        logger.info(f"Account {account_id} updated book {book_id}: {sorted(changes)}")

        await self._emit(MutationEvent(
            AuditAction.EDIT,
            account_id,
            before=before,
            after=updated,
            changes=changes,
        ))
        return updated

    async def delete(self, account_id: str, book_id: str) -> StoredBook:
        """
        Remove one of the account's books.

        Returns:
            The book as it was before deletion.

        Raises:
            NotFoundError: No such book for this account.
        """
        book = await self._load(account_id, book_id)
        deleted = StoredBook.from_model(book)

        await self.session.delete(book)
        await self._commit(deleted.isbn)
        logger.info(f"Account {account_id} deleted book {book_id}")

        await self._emit(MutationEvent(AuditAction.DELETE, account_id, before=deleted))
        return deleted
