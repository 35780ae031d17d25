"""
Session lifecycle: registration, login, token rotation, logout and password reset.

Access tokens are stateless signed JWTs. Refresh tokens are opaque, stored
hashed, and single-use: every refresh deletes the presented row and issues a
new one. Password reset grants live only in the cache, keyed by the hash of the
reset token, and a successful reset revokes every refresh token the user holds.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, UTC
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from core.cache import CacheKeys, JsonCache
from core.config import Settings
from core.password_hasher import PasswordHasher
from core.token_signer import AccessTokenClaims, TokenSigner
from models.user import Role, User
from schemas.auth import RegisterRequest, TokenPair
from services import refresh_token_service, user_service
from services.exceptions import (
    DuplicateEmailError,
    InvalidCredentialsError,
    InvalidRefreshTokenError,
    InvalidResetTokenError,
    InvalidTokenError,
    RefreshTokenExpiredError,
)
from services.token_utils import generate_opaque_token, hash_token

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PasswordResetGrant:
    """Cache-resident record behind a password reset token."""

    user_id: UUID
    email: str

    def to_dict(self) -> dict[str, str]:
        """JSON form stored in the cache."""
        return {"user_id": str(self.user_id), "email": self.email}

    @classmethod
    def from_dict(cls, data: object) -> "PasswordResetGrant":
        """
        Parse the cached form.

        Raises:
            InvalidResetTokenError: If the cached value is not a well-formed grant.
        """
        try:
            return cls(user_id=UUID(data["user_id"]), email=data["email"])  # type: ignore[index]
        except (KeyError, TypeError, ValueError) as e:
            raise InvalidResetTokenError() from e


class AuthService:
    """
    Session/token manager.

    One instance per request: it holds the request's database session, plus
    the process-wide cache, hasher and signer.
    """

    def __init__(
        self,
        db: AsyncSession,
        cache: JsonCache,
        password_hasher: PasswordHasher,
        token_signer: TokenSigner,
        settings: Settings,
    ) -> None:
        self.db = db
        self.cache = cache
        self.password_hasher = password_hasher
        self.token_signer = token_signer
        self.settings = settings

    @property
    def access_token_ttl(self) -> timedelta:
        """Lifetime of access tokens."""
        return timedelta(hours=self.settings.access_token_expire_hours)

    @property
    def refresh_token_ttl(self) -> timedelta:
        """Lifetime of refresh tokens."""
        return timedelta(hours=self.settings.refresh_token_expire_hours)

    async def register(self, data: RegisterRequest) -> TokenPair:
        """
        Create an account and sign it in.

        Raises:
            DuplicateEmailError: If the email is already registered.
        """
        if await user_service.get_user_by_email(self.db, data.email) is not None:
            raise DuplicateEmailError(data.email)

        user = await user_service.create_user(
            self.db,
            email=data.email,
            password_hash=self.password_hasher.hash(data.password),
            full_name=data.full_name,
            role=data.role or Role.USER,
            avatar_url=data.avatar_url,
        )
        logger.info("user_registered user_id=%s role=%s", user.id, user.role)
        return await self.issue_token_pair(user)

    async def login(self, email: str, password: str) -> TokenPair:
        """
        Check credentials and sign in.

        Raises:
            InvalidCredentialsError: If the email is unknown or the password is
                wrong. Both cases are indistinguishable to the caller.
        """
        user = await user_service.get_user_by_email(self.db, email)
        if user is None:
            # Same bcrypt cost as a real check, so timing doesn't reveal the miss
            self.password_hasher.verify(password, self.password_hasher.dummy_hash)
            logger.info("auth_login_failed reason=unknown_email")
            raise InvalidCredentialsError()
        if not self.password_hasher.verify(password, user.password_hash):
            logger.info("auth_login_failed reason=bad_password user_id=%s", user.id)
            raise InvalidCredentialsError()

        logger.info("auth_login user_id=%s", user.id)
        return await self.issue_token_pair(user)

    async def issue_token_pair(self, user: User) -> TokenPair:
        """Sign an access token and persist a new refresh token for `user`."""
        now = datetime.now(UTC)
        access_token, expires_at = self.token_signer.sign(
            AccessTokenClaims(user_id=user.id, email=user.email, role=user.role),
            self.access_token_ttl,
            now=now,
        )
        refresh_row, refresh_token = await refresh_token_service.create_refresh_token(
            self.db,
            user.id,
            self.refresh_token_ttl,
        )
        return TokenPair(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_at=expires_at,
            refresh_expires_at=refresh_row.expires_at,
            user=user,
        )

    async def refresh(self, refresh_token: str) -> TokenPair:
        """
        Rotate a refresh token into a new token pair.

        On success the presented token is gone for good. Expired tokens are
        rejected but not deleted; they are harmless and only ever fail.

        Raises:
            InvalidRefreshTokenError: If the token doesn't exist, was already
                rotated or revoked, lost a concurrent rotation race, or its
                owner no longer exists.
            RefreshTokenExpiredError: If the token exists but has expired.
        """
        row = await refresh_token_service.get_by_token(self.db, refresh_token)
        if row is None:
            logger.info("refresh_token_unknown")
            raise InvalidRefreshTokenError()

        if row.is_expired(datetime.now(UTC)):
            logger.info("refresh_token_expired user_id=%s", row.user_id)
            raise RefreshTokenExpiredError()

        user_id = row.user_id
        if not await refresh_token_service.consume(self.db, row):
            # Another request rotated this token between our lookup and delete
            logger.warning("refresh_token_reuse user_id=%s", user_id)
            raise InvalidRefreshTokenError()

        user = await user_service.get_user_by_id(self.db, user_id)
        if user is None:
            raise InvalidRefreshTokenError()

        logger.info("refresh_token_rotated user_id=%s", user_id)
        return await self.issue_token_pair(user)

    async def logout(self, refresh_token: str) -> None:
        """Revoke a refresh token. Unknown tokens are treated as already logged out."""
        deleted = await refresh_token_service.delete_by_token(self.db, refresh_token)
        logger.info("auth_logout revoked=%s", deleted)

    async def forgot_password(self, email: str) -> str | None:
        """
        Start a password reset.

        Always succeeds from the caller's point of view. For a known email, a
        reset grant is stored in the cache for `password_reset_ttl_seconds`.

        Returns:
            The plaintext reset token for a known email, None otherwise. Only
            in-process callers see it; it is never sent in an HTTP response.
        """
        user = await user_service.get_user_by_email(self.db, email)
        if user is None:
            logger.info("password_reset_requested_unknown_email")
            return None

        token = generate_opaque_token()
        grant = PasswordResetGrant(user_id=user.id, email=user.email)
        stored = await self.cache.set_json(
            CacheKeys.reset_token(hash_token(token)),
            grant.to_dict(),
            self.settings.password_reset_ttl_seconds,
        )
        if not stored:
            # Without the grant the token is useless; the caller still sees success
            logger.warning("password_reset_grant_not_stored user_id=%s", user.id)
        logger.info("password_reset_requested user_id=%s", user.id)
        logger.debug("password_reset_token_issued user_id=%s", user.id)
        return token

    async def reset_password(self, token: str, new_password: str) -> None:
        """
        Complete a password reset and sign the user out everywhere.

        Raises:
            InvalidResetTokenError: If the token is unknown, expired, already
                used, or its user no longer exists.
        """
        # Claim the grant before anything else; only one caller can win it
        data = await self.cache.pop_json(CacheKeys.reset_token(hash_token(token)))
        if data is None:
            raise InvalidResetTokenError()
        grant = PasswordResetGrant.from_dict(data)

        user = await user_service.get_user_by_id(self.db, grant.user_id)
        if user is None:
            raise InvalidResetTokenError()

        await user_service.set_password(self.db, user, self.password_hasher.hash(new_password))
        revoked = await refresh_token_service.delete_all_for_user(self.db, user.id)
        logger.info("password_reset user_id=%s sessions_revoked=%s", user.id, revoked)

    async def authenticate_access_token(self, token: str) -> User:
        """
        Resolve a bearer access token to its user.

        Raises:
            InvalidTokenError: If the token is invalid or its user no longer exists.
        """
        claims = self.token_signer.verify(token)
        user = await user_service.get_user_by_id(self.db, claims.user_id)
        if user is None:
            raise InvalidTokenError("User not found")
        return user
