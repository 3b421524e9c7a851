"""
Authentication API Routes for Libris.

Handles:
- User registration and login (token issue)
- Current user retrieval
- Theme preference
- Forgotten password flow
"""

from fastapi import APIRouter, Depends, status
from loguru import logger

from libris.api.dependencies import (
    AuthSession,
    Settings,
    get_account_repository,
    get_current_session,
    get_reset_notifier,
    get_session_issuer,
    get_settings,
)
from libris.api.schemas import (
    AuthResponse,
    CurrentUserResponse,
    ErrorResponse,
    ForgotPasswordRequest,
    LoginRequest,
    MessageResponse,
    RegisterRequest,
    ResetPasswordRequest,
    ThemeRequest,
    ThemeResponse,
    UserResponse,
)
from libris.errors import InfrastructureError, ValidationError
from libris.notifications import PasswordResetNotifier, build_reset_url
from libris.security import SessionIssuer
from libris.storage import Account, AccountRepository

router = APIRouter(prefix="/auth", tags=["auth"])


def _token_response(account: Account, issuer: SessionIssuer) -> AuthResponse:
    return AuthResponse(
        token=issuer.issue(account.id),
        user=UserResponse.model_validate(account),
    )


# --- Endpoints ---

@router.post(
    "/register",
    response_model=AuthResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}},
)
async def register(
    body: RegisterRequest,
    accounts: AccountRepository = Depends(get_account_repository),
    issuer: SessionIssuer = Depends(get_session_issuer),
):
    """Register a new user and log them in."""
    account = await accounts.register(body.name, body.email, body.password)
    return _token_response(account, issuer)


@router.post(
    "/login",
    response_model=AuthResponse,
    responses={401: {"model": ErrorResponse}},
)
async def login(
    body: LoginRequest,
    accounts: AccountRepository = Depends(get_account_repository),
    issuer: SessionIssuer = Depends(get_session_issuer),
):
    """
    Login endpoint.
    Returns a session token if credentials are valid.
    """
    if not body.email or not body.password:
        raise ValidationError("Please provide email and password")

    account = await accounts.verify(body.email, body.password)
    logger.info(f"Account {account.id} logged in")
    return _token_response(account, issuer)


@router.get("/me", response_model=CurrentUserResponse)
async def read_current_user(session: AuthSession = Depends(get_current_session)):
    """Get current user profile."""
    return CurrentUserResponse(user=UserResponse.model_validate(session.account))


@router.put(
    "/theme",
    response_model=ThemeResponse,
    responses={400: {"model": ErrorResponse}},
)
async def update_theme(
    body: ThemeRequest,
    session: AuthSession = Depends(get_current_session),
    accounts: AccountRepository = Depends(get_account_repository),
):
    """Update the user's theme preference."""
    account = await accounts.set_preference(session.account_id, body.theme)
    return ThemeResponse(theme=account.theme)


@router.post(
    "/forgot-password",
    response_model=MessageResponse,
    responses={404: {"model": ErrorResponse}},
)
async def forgot_password(
    body: ForgotPasswordRequest,
    accounts: AccountRepository = Depends(get_account_repository),
    notifier: PasswordResetNotifier = Depends(get_reset_notifier),
    settings: Settings = Depends(get_settings),
):
    """Send a password reset link to the account's email."""
    if not body.email:
        raise ValidationError("Please provide your email address")

    account, raw_token = await accounts.issue_reset_token(body.email)
    try:
        await notifier.send_password_reset(account, build_reset_url(settings.client_url, raw_token))
    except Exception:
        logger.opt(exception=True).error(f"Reset link delivery failed for account {account.id}")
        raise InfrastructureError("Failed to send reset email. Please try again.")

    return MessageResponse(message="Password reset link sent to your email")


@router.post(
    "/reset-password/{token}",
    response_model=MessageResponse,
    responses={400: {"model": ErrorResponse}},
)
async def reset_password(
    token: str,
    body: ResetPasswordRequest,
    accounts: AccountRepository = Depends(get_account_repository),
):
    """Set a new password using a reset token."""
    if not body.password:
        raise ValidationError("Please provide a new password")

    await accounts.consume_reset_token(token, body.password)
    return MessageResponse(
        message="Password reset successful! You can now login with your new password."
    )
