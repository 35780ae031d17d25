"""Authentication endpoints: register, login, refresh, logout, password reset."""
from fastapi import APIRouter, Depends, status

from api.dependencies import get_auth_service, rate_limit_auth
from schemas.auth import (
    ForgotPasswordRequest,
    LoginRequest,
    MessageResponse,
    RefreshRequest,
    RegisterRequest,
    ResetPasswordRequest,
    TokenPairResponse,
)
from services.auth_service import AuthService

router = APIRouter(
    prefix="/auth",
    tags=["auth"],
    dependencies=[Depends(rate_limit_auth)],
)

# Same answer whether or not the email exists
FORGOT_PASSWORD_MESSAGE = "If the email is registered, a reset link has been sent"


@router.post("/register", response_model=TokenPairResponse, status_code=status.HTTP_201_CREATED)
async def register(
    data: RegisterRequest,
    auth_service: AuthService = Depends(get_auth_service),
) -> TokenPairResponse:
    """Create an account and return a token pair."""
    pair = await auth_service.register(data)
    return pair.to_response()


@router.post("/login", response_model=TokenPairResponse)
async def login(
    data: LoginRequest,
    auth_service: AuthService = Depends(get_auth_service),
) -> TokenPairResponse:
    """Exchange email and password for a token pair."""
    pair = await auth_service.login(data.email, data.password)
    return pair.to_response()


@router.post("/refresh-token", response_model=TokenPairResponse)
async def refresh_token(
    data: RefreshRequest,
    auth_service: AuthService = Depends(get_auth_service),
) -> TokenPairResponse:
    """
    Rotate a refresh token.

    The presented refresh token is consumed; use the new one from the response.
    """
    pair = await auth_service.refresh(data.refresh_token)
    return pair.to_response()


@router.post("/logout", response_model=MessageResponse)
async def logout(
    data: RefreshRequest,
    auth_service: AuthService = Depends(get_auth_service),
) -> MessageResponse:
    """Revoke a refresh token. Succeeds even if the token is unknown."""
    await auth_service.logout(data.refresh_token)
    return MessageResponse(message="Logged out")


@router.post("/forgot-password", response_model=MessageResponse)
async def forgot_password(
    data: ForgotPasswordRequest,
    auth_service: AuthService = Depends(get_auth_service),
) -> MessageResponse:
    """
    Start a password reset.

    The reset token is never returned here; delivery happens out of band.
    """
    await auth_service.forgot_password(data.email)
    return MessageResponse(message=FORGOT_PASSWORD_MESSAGE)


@router.post("/reset-password", response_model=MessageResponse)
async def reset_password(
    data: ResetPasswordRequest,
    auth_service: AuthService = Depends(get_auth_service),
) -> MessageResponse:
    """Set a new password with a reset token. Signs the user out everywhere."""
    await auth_service.reset_password(data.token, data.new_password)
    return MessageResponse(message="Password has been reset")
