"""Pydantic schemas for user endpoints."""
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from models.user import Role
from schemas.validators import UTCDateTime, normalize_email, validate_password


class UserResponse(BaseModel):
    """
    Public-safe projection of a user.

    Never includes the password hash.
    """

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    email: str
    full_name: str
    role: Role
    avatar_url: str | None = None
    created_at: UTCDateTime
    updated_at: UTCDateTime


class ProfileUpdate(BaseModel):
    """Self-service profile update. Omitted fields are left unchanged."""

    full_name: str | None = Field(default=None, min_length=1, max_length=255)
    avatar_url: str | None = Field(default=None, max_length=255)
    password: str | None = None

    @field_validator("password")
    @classmethod
    def check_password(cls, v: str | None) -> str | None:
        """Validate the new password, if one is given."""
        return validate_password(v) if v is not None else None


class AdminUserUpdate(ProfileUpdate):
    """Admin update of any user; may also change email and role."""

    email: str | None = None
    role: Role | None = None

    @field_validator("email")
    @classmethod
    def check_email(cls, v: str | None) -> str | None:
        """Normalize the email, if one is given."""
        return normalize_email(v) if v is not None else None


class UserListResponse(BaseModel):
    """Paginated list of users."""

    items: list[UserResponse]
    total: int
    page: int
    page_size: int
