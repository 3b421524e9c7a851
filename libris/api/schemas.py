"""
API Schemas for Libris

Pydantic models for request parsing and response serialization:
- Auth models
- Book models
- Activity log models

Request models only check shapes; business rules (lengths, year range, email
format) live in the repositories so every entry point enforces them the same
way. Every response carries `success`.
"""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


# =============================================================================
# Auth Schemas
# =============================================================================

class RegisterRequest(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None

    model_config = ConfigDict(
        json_schema_extra={
            "example": {"name": "Alice", "email": "alice@example.com", "password": "secret1"}
        }
    )


class LoginRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None


class ThemeRequest(BaseModel):
    theme: Optional[str] = None


class ForgotPasswordRequest(BaseModel):
    email: Optional[str] = None


class ResetPasswordRequest(BaseModel):
    password: Optional[str] = None


class UserResponse(BaseModel):
    """Public account fields."""

    id: str
    name: str
    email: str
    theme: str
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class AuthResponse(BaseModel):
    success: bool = True
    token: str
    user: UserResponse


class CurrentUserResponse(BaseModel):
    success: bool = True
    user: UserResponse


class ThemeResponse(BaseModel):
    success: bool = True
    message: str = "Theme updated successfully"
    theme: str


class MessageResponse(BaseModel):
    success: bool = True
    message: str


# =============================================================================
# Book Schemas
# =============================================================================

class BookCreate(BaseModel):
    """Book creation request. All four fields are required."""

    title: Any = None
    author: Any = None
    isbn: Any = None
    year: Any = None

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "title": "Dune",
                "author": "Frank Herbert",
                "isbn": "9780441013593",
                "year": 1965,
            }
        }
    )


class BookUpdate(BaseModel):
    """Book update request (partial)."""

    # Untyped so a foreign book id is reported before a malformed field
    title: Any = None
    author: Any = None
    isbn: Any = None
    year: Any = None


class BookResponse(BaseModel):
    id: str
    title: str
    author: str
    isbn: str
    year: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class BookEnvelope(BaseModel):
    success: bool = True
    message: Optional[str] = None
    data: BookResponse


class BookListEnvelope(BaseModel):
    success: bool = True
    message: Optional[str] = None
    count: int
    data: list[BookResponse]


# =============================================================================
# Activity Log Schemas
# =============================================================================

class LogEntryResponse(BaseModel):
    id: int
    action: str
    book_title: str
    description: str
    details: dict[str, Any] = Field(default_factory=dict)
    timestamp: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class LogListEnvelope(BaseModel):
    success: bool = True
    count: int
    data: list[LogEntryResponse]


# =============================================================================
# System Schemas
# =============================================================================

class ErrorResponse(BaseModel):
    """Standard error response."""

    success: bool = False
    message: str
    code: str
    detail: Optional[str] = None
    timestamp: Optional[datetime] = None

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "success": False,
                "message": "Book not found",
                "code": "NOT_FOUND",
                "detail": "No book with identifier 'abc123' exists",
                "timestamp": "2025-01-20T12:00:00Z",
            }
        }
    )


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "healthy"
    version: str
    database: str = "connected"
