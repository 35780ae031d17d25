"""Service layer for refresh token storage."""
from datetime import datetime, timedelta, UTC
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from models.refresh_token import RefreshToken
from services.token_utils import generate_opaque_token, hash_token


async def create_refresh_token(
    db: AsyncSession,
    user_id: UUID,
    ttl: timedelta,
) -> tuple[RefreshToken, str]:
    """
    Create and persist a new refresh token for a user.

    Args:
        db: Database session.
        user_id: Owner of the token.
        ttl: Lifetime of the token.

    Returns:
        Tuple of (RefreshToken model, plaintext_token).
        The plaintext token is only available at creation time.

    Note:
        Does not commit. Caller (session generator) handles commit at request end.
    """
    plaintext = generate_opaque_token()
    refresh_token = RefreshToken(
        user_id=user_id,
        token_hash=hash_token(plaintext),
        expires_at=datetime.now(UTC) + ttl,
    )
    db.add(refresh_token)
    await db.flush()
    return refresh_token, plaintext


async def get_by_token(
    db: AsyncSession,
    plaintext_token: str,
) -> RefreshToken | None:
    """
    Look up a refresh token by its plaintext value.

    Expired tokens are returned as well; expiry is the caller's decision.

    Args:
        db: Database session.
        plaintext_token: The plaintext token presented by the client.

    Returns:
        RefreshToken if one exists with that value, None otherwise.
    """
    result = await db.execute(
        select(RefreshToken).where(RefreshToken.token_hash == hash_token(plaintext_token)),
    )
    return result.scalar_one_or_none()


async def consume(db: AsyncSession, token: RefreshToken) -> bool:
    """
    Atomically claim a refresh token by deleting its row.

    The DELETE is conditional on the row still existing, so when two requests
    race with the same token only one of them sees a deleted row. The other
    must treat the token as already used.

    Returns:
        True if this call removed the row, False if it was already gone.
    """
    result = await db.execute(
        delete(RefreshToken)
        .where(RefreshToken.id == token.id)
        .execution_options(synchronize_session=False),
    )
    if token in db:
        db.expunge(token)
    return result.rowcount == 1


async def delete_by_token(db: AsyncSession, plaintext_token: str) -> bool:
    """
    Delete a refresh token by its plaintext value.

    Returns:
        True if a row was deleted, False if no such token existed.
    """
    result = await db.execute(
        delete(RefreshToken)
        .where(RefreshToken.token_hash == hash_token(plaintext_token))
        .execution_options(synchronize_session=False),
    )
    return result.rowcount > 0


async def delete_all_for_user(db: AsyncSession, user_id: UUID) -> int:
    """
    Delete every refresh token belonging to a user (global logout).

    Returns:
        Number of tokens deleted.
    """
    result = await db.execute(
        delete(RefreshToken)
        .where(RefreshToken.user_id == user_id)
        .execution_options(synchronize_session=False),
    )
    return result.rowcount
