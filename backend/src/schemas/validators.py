"""
Shared validation functions for Pydantic schemas.

Used by the auth, user and catalog schemas. Entity-specific validators remain in
their respective schema modules.
"""
import re
from datetime import datetime
from typing import Annotated

from pydantic import AfterValidator

from models.base import as_utc

# Deliberately loose: one @, something on each side, a dot in the domain.
# Deliverability is not checked.
EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

# Slug format: lowercase alphanumeric with hyphens (e.g., 'web-development')
SLUG_PATTERN = re.compile(r"^[a-z0-9]+(-[a-z0-9]+)*$")

PASSWORD_MIN_LENGTH = 6
PASSWORD_MAX_LENGTH = 128

# Response timestamps are always timezone-aware UTC, whichever store produced them
UTCDateTime = Annotated[datetime, AfterValidator(as_utc)]


def normalize_email(email: str) -> str:
    """
    Normalize and validate an email address.

    Args:
        email: The email to validate.

    Returns:
        The normalized email (lowercase, trimmed).

    Raises:
        ValueError: If the email has an invalid format.
    """
    normalized = email.strip().lower()
    if not EMAIL_PATTERN.match(normalized):
        raise ValueError("Invalid email address")
    return normalized


def validate_password(password: str) -> str:
    """Check password length bounds. Content rules are left to the user."""
    if len(password) < PASSWORD_MIN_LENGTH:
        raise ValueError(f"Password must be at least {PASSWORD_MIN_LENGTH} characters")
    if len(password) > PASSWORD_MAX_LENGTH:
        raise ValueError(f"Password must be at most {PASSWORD_MAX_LENGTH} characters")
    return password


def validate_slug(slug: str | None) -> str | None:
    """Validate an explicitly supplied slug; None means derive from the name."""
    if slug is None:
        return None
    normalized = slug.strip().lower()
    if not SLUG_PATTERN.match(normalized):
        raise ValueError(
            f"Invalid slug format: '{normalized}'. "
            "Use lowercase letters, numbers, and hyphens only (e.g., 'web-development').",
        )
    return normalized
