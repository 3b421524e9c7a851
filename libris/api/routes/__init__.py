"""
API Routes for Libris

Route modules:
- auth: Registration, login, profile, password reset
- books: Book CRUD
- logs: Activity history
"""

from libris.api.routes.auth import router as auth_router
from libris.api.routes.books import router as books_router
from libris.api.routes.logs import router as logs_router

__all__ = [
    "auth_router",
    "books_router",
    "logs_router",
]
