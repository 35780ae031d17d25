"""Pydantic schemas for authentication endpoints."""
from dataclasses import dataclass
from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from models.user import Role, User
from schemas.user import UserResponse
from schemas.validators import normalize_email, validate_password


class RegisterRequest(BaseModel):
    """Self-registration. Admin accounts can't be created this way."""

    email: str
    password: str
    full_name: str = Field(..., min_length=1, max_length=255)
    role: Role | None = Field(
        default=None,
        description="Defaults to 'user'. 'admin' is rejected.",
    )
    avatar_url: str | None = Field(default=None, max_length=255)

    @field_validator("email")
    @classmethod
    def check_email(cls, v: str) -> str:
        """Normalize the email."""
        return normalize_email(v)

    @field_validator("password")
    @classmethod
    def check_password(cls, v: str) -> str:
        """Validate password length."""
        return validate_password(v)

    @field_validator("role")
    @classmethod
    def check_role(cls, v: Role | None) -> Role | None:
        """Reject self-assigned admin role."""
        if v == Role.ADMIN:
            raise ValueError("Cannot self-register as admin")
        return v


class LoginRequest(BaseModel):
    """
    Login credentials.

    The password isn't validated here beyond being present: a too-short password
    must fail like any wrong password, not with a validation error.
    """

    email: str
    password: str = Field(..., min_length=1)

    @field_validator("email")
    @classmethod
    def strip_email(cls, v: str) -> str:
        """Normalize without format checks (unknown emails fail as bad credentials)."""
        return v.strip().lower()


class RefreshRequest(BaseModel):
    """Body for refresh and logout."""

    refresh_token: str = Field(..., min_length=1)


class ForgotPasswordRequest(BaseModel):
    """Request a password reset for an email."""

    email: str

    @field_validator("email")
    @classmethod
    def strip_email(cls, v: str) -> str:
        """Normalize the email."""
        return v.strip().lower()


class ResetPasswordRequest(BaseModel):
    """Consume a password reset token."""

    token: str = Field(..., min_length=1)
    new_password: str

    @field_validator("new_password")
    @classmethod
    def check_password(cls, v: str) -> str:
        """Validate password length."""
        return validate_password(v)


class MessageResponse(BaseModel):
    """Generic acknowledgement."""

    message: str


class TokenPairResponse(BaseModel):
    """
    Access/refresh token pair returned by register, login and refresh.

    The refresh token is only shown here - it is stored hashed server-side.
    """

    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_at: datetime
    refresh_expires_at: datetime
    user: UserResponse


@dataclass(frozen=True)
class TokenPair:
    """Token pair as produced by the session manager, before serialization."""

    access_token: str
    refresh_token: str
    expires_at: datetime
    refresh_expires_at: datetime
    user: User
    token_type: str = "bearer"

    def to_response(self) -> TokenPairResponse:
        """Project into the public response (drops the ORM user)."""
        return TokenPairResponse(
            access_token=self.access_token,
            refresh_token=self.refresh_token,
            token_type=self.token_type,
            expires_at=self.expires_at,
            refresh_expires_at=self.refresh_expires_at,
            user=UserResponse.model_validate(self.user),
        )
