"""Pydantic schemas for category endpoints."""
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from schemas.validators import UTCDateTime, validate_slug


class CategoryCreate(BaseModel):
    """Create a category. The slug is derived from the name when omitted."""

    name: str = Field(..., min_length=1, max_length=100)
    description: str | None = None
    slug: str | None = Field(default=None, max_length=100)

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        """Trim surrounding whitespace."""
        v = v.strip()
        if not v:
            raise ValueError("Name cannot be empty")
        return v

    @field_validator("slug")
    @classmethod
    def check_slug(cls, v: str | None) -> str | None:
        """Validate an explicit slug."""
        return validate_slug(v)


class CategoryUpdate(BaseModel):
    """Partial category update."""

    name: str | None = Field(default=None, min_length=1, max_length=100)
    description: str | None = None
    slug: str | None = Field(default=None, max_length=100)

    @field_validator("slug")
    @classmethod
    def check_slug(cls, v: str | None) -> str | None:
        """Validate an explicit slug."""
        return validate_slug(v)


class CategoryResponse(BaseModel):
    """Category projection (also the cached form)."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    description: str | None
    slug: str
    created_at: UTCDateTime
    updated_at: UTCDateTime
