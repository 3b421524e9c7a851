"""
Book API Routes

CRUD operations on the current user's catalogue. The owning account always
comes from the verified session; nothing in a request body or path can name
another account.
"""

from fastapi import APIRouter, Depends, status
from loguru import logger

from libris.api.dependencies import AuthSession, get_book_repository, get_current_session
from libris.api.schemas import (
    BookCreate,
    BookEnvelope,
    BookListEnvelope,
    BookResponse,
    BookUpdate,
    ErrorResponse,
)
from libris.storage import BookRepository


router = APIRouter(prefix="/books", tags=["books"])


@router.get("", response_model=BookListEnvelope)
async def list_books(
    session: AuthSession = Depends(get_current_session),
    repo: BookRepository = Depends(get_book_repository),
):
    """List the user's books, newest first."""
    books = await repo.list(session.account_id)
    return BookListEnvelope(
        message="Books retrieved successfully",
        count=len(books),
        data=[BookResponse.model_validate(book) for book in books],
    )


@router.get(
    "/{book_id}",
    response_model=BookEnvelope,
    responses={404: {"model": ErrorResponse, "description": "Book not found"}},
)
async def get_book(
    book_id: str,
    session: AuthSession = Depends(get_current_session),
    repo: BookRepository = Depends(get_book_repository),
):
    """Get one book."""
    book = await repo.get(session.account_id, book_id)
    return BookEnvelope(data=BookResponse.model_validate(book))


@router.post(
    "",
    response_model=BookEnvelope,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse, "description": "Invalid or duplicate book"}},
)
async def create_book(
    book: BookCreate,
    session: AuthSession = Depends(get_current_session),
    repo: BookRepository = Depends(get_book_repository),
):
    """Add a book to the user's library."""
    logger.info(f"Creating book for account {session.account_id}")
    created = await repo.create(
        session.account_id,
        title=book.title,
        author=book.author,
        isbn=book.isbn,
        year=book.year,
    )
    return BookEnvelope(
        message="Book added successfully to your library",
        data=BookResponse.model_validate(created),
    )


@router.put(
    "/{book_id}",
    response_model=BookEnvelope,
    responses={
        400: {"model": ErrorResponse, "description": "Invalid book data"},
        404: {"model": ErrorResponse, "description": "Book not found"},
    },
)
async def update_book(
    book_id: str,
    book: BookUpdate,
    session: AuthSession = Depends(get_current_session),
    repo: BookRepository = Depends(get_book_repository),
):
    """
    Update a book.

    Supports partial updates - only provided fields are modified.
    """
    updated = await repo.update(
        session.account_id,
        book_id,
        book.model_dump(exclude_unset=True),
    )
    return BookEnvelope(
        message="Book updated successfully",
        data=BookResponse.model_validate(updated),
    )


@router.delete(
    "/{book_id}",
    response_model=BookEnvelope,
    responses={404: {"model": ErrorResponse, "description": "Book not found"}},
)
async def delete_book(
    book_id: str,
    session: AuthSession = Depends(get_current_session),
    repo: BookRepository = Depends(get_book_repository),
):
    """Delete a book. Returns the removed record."""
    deleted = await repo.delete(session.account_id, book_id)
    return BookEnvelope(
        message=f'"{deleted.title}" has been removed from your library',
        data=BookResponse.model_validate(deleted),
    )
