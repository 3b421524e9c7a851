"""
Libris - FastAPI Backend.

HTTP/JSON API for a personal, per-user book catalogue.
"""

from .main import app, create_app, main
from .dependencies import (
    AuthSession,
    Settings,
    get_settings,
    get_db,
    get_current_session,
)
from .schemas import (
    BookCreate,
    BookUpdate,
    BookResponse,
    BookEnvelope,
    BookListEnvelope,
    LogEntryResponse,
    LogListEnvelope,
    UserResponse,
    AuthResponse,
    HealthResponse,
    ErrorResponse,
)

__all__ = [
    # Application
    "app",
    "create_app",
    "main",
    # Dependencies
    "AuthSession",
    "Settings",
    "get_settings",
    "get_db",
    "get_current_session",
    # Schemas
    "BookCreate",
    "BookUpdate",
    "BookResponse",
    "BookEnvelope",
    "BookListEnvelope",
    "LogEntryResponse",
    "LogListEnvelope",
    "UserResponse",
    "AuthResponse",
    "HealthResponse",
    "ErrorResponse",
]
