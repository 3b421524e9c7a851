"""
Database models for Libris.

Every book and activity log row references exactly one owning user. Deleting a
user cascades to both tables; the service itself never deletes users.
"""

from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base, deferred, relationship

Base = declarative_base()


def utcnow() -> datetime:
    """Naive UTC timestamp, the form SQLite stores and returns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class User(Base):
    """Account used for authentication and ownership."""
    __tablename__ = "users"

    id = Column(String(36), primary_key=True)  # UUID
    name = Column(String(50), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    theme = Column(String(10), nullable=False, default="dark")
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    # Credential columns are only loaded when a query undefers them.
    hashed_password = deferred(Column(String(255), nullable=False))
    reset_token_hash = deferred(Column(String(64), index=True))
    reset_token_expires_at = deferred(Column(DateTime))

    books = relationship(
        "BookModel",
        back_populates="owner",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    activity_logs = relationship(
        "ActivityLogModel",
        back_populates="owner",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class BookModel(Base):
    """A book in one user's catalogue."""
    __tablename__ = "books"

    id = Column(String(36), primary_key=True)
    user_id = Column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    title = Column(String(200), nullable=False)
    author = Column(String(100), nullable=False)
    isbn = Column(String(17), nullable=False)
    year = Column(Integer, nullable=False)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    owner = relationship("User", back_populates="books")

    __table_args__ = (
        UniqueConstraint("user_id", "isbn", name="uq_books_user_isbn"),
        Index("idx_books_user_created", "user_id", "created_at"),
        Index("idx_books_title_author", "title", "author"),
    )


class ActivityLogModel(Base):
    """One mutation of a user's catalogue."""
    __tablename__ = "activity_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    action = Column(String(10), nullable=False)  # ADD, EDIT, DELETE
    book_title = Column(String(200), nullable=False)
    description = Column(Text, nullable=False)
    details = Column(JSON, default=dict)
    timestamp = Column(DateTime, default=utcnow, nullable=False)

    owner = relationship("User", back_populates="activity_logs")

    __table_args__ = (
        Index("idx_activity_user_timestamp", "user_id", "timestamp"),
    )
