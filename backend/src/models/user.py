"""User model for registered accounts."""
from enum import Enum

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from models.base import Base, TimestampMixin, UUIDv7Mixin


class Role(str, Enum):
    """Closed set of account roles consulted by authorization checks."""

    USER = "user"
    INSTRUCTOR = "instructor"
    ADMIN = "admin"


class User(Base, UUIDv7Mixin, TimestampMixin):
    """User model - identity, credentials and role."""

    __tablename__ = "users"

    # id provided by UUIDv7Mixin
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    password_hash: Mapped[str] = mapped_column(
        String(255),
        comment="bcrypt hash - never serialized outward",
    )
    full_name: Mapped[str] = mapped_column(String(255))
    role: Mapped[str] = mapped_column(
        String(50),
        default=Role.USER.value,
        server_default=Role.USER.value,
        index=True,
    )
    avatar_url: Mapped[str | None] = mapped_column(String(255), nullable=True)

    def has_role(self, *roles: Role) -> bool:
        """True if the user's role is one of `roles`."""
        return self.role in {role.value for role in roles}
