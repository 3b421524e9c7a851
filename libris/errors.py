"""
Exception hierarchy for Libris.

Every error the service reports to a client derives from LibrisException and
carries the HTTP status it maps to. Repositories raise these directly; the API
layer only translates them into the JSON envelope.
"""


class LibrisException(Exception):
    """Base exception for Libris errors."""

    def __init__(
        self,
        message: str,
        code: str = "INTERNAL_ERROR",
        status_code: int = 500,
        detail: str = None,
    ):
        self.message = message
        self.code = code
        self.status_code = status_code
        self.detail = detail
        super().__init__(message)


class ValidationError(LibrisException):
    """Input validation failed."""

    def __init__(self, message: str, detail: str = None, code: str = "VALIDATION_ERROR"):
        super().__init__(
            message=message,
            code=code,
            status_code=400,
            detail=detail,
        )


class InvalidOrExpiredToken(ValidationError):
    """Password reset token is unknown, already used, or past its expiry."""

    def __init__(self):
        super().__init__(
            message="Invalid or expired reset token",
            code="INVALID_RESET_TOKEN",
        )


class ConflictError(LibrisException):
    """A uniqueness rule was violated."""

    def __init__(self, message: str, code: str = "CONFLICT", detail: str = None):
        super().__init__(
            message=message,
            code=code,
            status_code=400,
            detail=detail,
        )


class DuplicateEmail(ConflictError):
    def __init__(self):
        super().__init__(
            message="An account with this email already exists",
            code="DUPLICATE_EMAIL",
        )


class DuplicateIsbnForAccount(ConflictError):
    def __init__(self, isbn: str):
        super().__init__(
            message="A book with this ISBN already exists in your library",
            code="DUPLICATE_ISBN",
            detail=f"ISBN {isbn} is already catalogued",
        )


class AuthenticationError(LibrisException):
    """Missing or rejected credentials."""

    def __init__(self, message: str, code: str = "NOT_AUTHORIZED"):
        super().__init__(
            message=message,
            code=code,
            status_code=401,
        )


class InvalidCredentials(AuthenticationError):
    # Same message for unknown email and wrong password.
    def __init__(self):
        super().__init__(
            message="Invalid email or password",
            code="INVALID_CREDENTIALS",
        )


class TokenInvalidError(AuthenticationError):
    def __init__(self):
        super().__init__(
            message="Token is invalid or expired. Please log in again.",
            code="TOKEN_INVALID",
        )


class TokenExpiredError(AuthenticationError):
    def __init__(self):
        super().__init__(
            message="Token is invalid or expired. Please log in again.",
            code="TOKEN_EXPIRED",
        )


class NotFoundError(LibrisException):
    """
    Resource not found.

    Also raised for resources owned by another account, so callers cannot
    probe for the existence of records they do not own.
    """

    def __init__(self, resource: str, identifier: str = None):
        super().__init__(
            message=f"{resource} not found",
            code="NOT_FOUND",
            status_code=404,
            detail=f"No {resource.lower()} with identifier '{identifier}' exists" if identifier else None,
        )


class InfrastructureError(LibrisException):
    """Storage or another backing service failed."""

    def __init__(self, message: str = "Storage unavailable", detail: str = None):
        super().__init__(
            message=message,
            code="INFRASTRUCTURE_ERROR",
            status_code=500,
            detail=detail,
        )
