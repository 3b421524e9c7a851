"""
Error Handling for Libris

Centralized error handling:
- Structured error responses in the {success, message} envelope
- Logging of errors
- Exception translation
"""

from datetime import datetime, timezone

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from loguru import logger
from starlette.exceptions import HTTPException as StarletteHTTPException

from libris.errors import LibrisException


def create_error_response(
    message: str,
    code: str,
    status_code: int,
    detail: str = None,
) -> JSONResponse:
    """Create standardized error response."""
    content = {
        "success": False,
        "message": message,
        "code": code,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
    if detail:
        content["detail"] = detail
    return JSONResponse(status_code=status_code, content=content)


def _describe_validation_errors(exc: RequestValidationError) -> str:
    messages = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        messages.append(f"{location}: {error.get('msg')}" if location else error.get("msg"))
    return "; ".join(messages)


def setup_exception_handlers(app: FastAPI) -> None:
    """Register exception handlers with FastAPI app."""

    @app.exception_handler(LibrisException)
    async def libris_exception_handler(request: Request, exc: LibrisException):
        if exc.status_code >= 500:
            logger.error(f"Libris error: {exc.code} - {exc.message} ({request.url.path})")
        else:
            logger.warning(f"Libris error: {exc.code} - {exc.message} ({request.url.path})")
        return create_error_response(
            message=exc.message,
            code=exc.code,
            status_code=exc.status_code,
            # Internal failures keep their detail in the log only
            detail=exc.detail if exc.status_code < 500 else None,
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        detail = _describe_validation_errors(exc)
        logger.warning(f"Validation error: {detail}")
        return create_error_response(
            message="Invalid request",
            code="VALIDATION_ERROR",
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=detail,
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        message = exc.detail if isinstance(exc.detail, str) else "Request failed"
        if exc.status_code == status.HTTP_404_NOT_FOUND and message == "Not Found":
            message = f"Route {request.url.path} not found"
        return create_error_response(
            message=message,
            code="HTTP_ERROR",
            status_code=exc.status_code,
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        logger.opt(exception=exc).error(
            f"Unhandled exception on {request.method} {request.url.path}: {type(exc).__name__}"
        )
        return create_error_response(
            message="Internal Server Error",
            code="INTERNAL_ERROR",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="An unexpected error occurred",
        )
