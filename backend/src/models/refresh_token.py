"""Refresh token model - one row per active session grant."""
from datetime import datetime
from uuid import UUID

from sqlalchemy import DateTime, ForeignKey, String, func
from sqlalchemy.orm import Mapped, mapped_column

from models.base import Base, UUIDv7Mixin, as_utc, utc_now


class RefreshToken(Base, UUIDv7Mixin):
    """
    Server-side record of an opaque refresh token.

    Tokens are stored hashed - the plaintext only exists in the response that
    issued it. A row is single-use: refreshing deletes it and issues a new one.
    Expiry is not a stored state; it is evaluated at use time.
    """

    __tablename__ = "refresh_tokens"

    # id provided by UUIDv7Mixin
    user_id: Mapped[UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        index=True,
    )
    token_hash: Mapped[str] = mapped_column(
        String(64),
        unique=True,
        index=True,
        comment="SHA-256 hash of the token",
    )
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utc_now,
        server_default=func.now(),
        nullable=False,
    )

    def is_expired(self, now: datetime) -> bool:
        """True when the token's expiry is before `now`."""
        return as_utc(self.expires_at) < now
