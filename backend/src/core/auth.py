"""Authentication module: bearer access tokens and role checks."""
import logging
from collections.abc import Awaitable, Callable

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from core.cache import JsonCache
from core.config import Settings, get_settings
from core.password_hasher import PasswordHasher
from core.token_signer import TokenSigner
from db.session import get_async_session
from models.user import Role, User
from services.auth_service import AuthService
from services.exceptions import InvalidTokenError

logger = logging.getLogger(__name__)


# HTTP Bearer token scheme
security = HTTPBearer(auto_error=False)


def get_cache(request: Request) -> JsonCache:
    """JSON cache created at startup."""
    return request.app.state.cache


def get_password_hasher(request: Request) -> PasswordHasher:
    """Password hasher created at startup."""
    return request.app.state.password_hasher


def get_token_signer(request: Request) -> TokenSigner:
    """Access token signer created at startup."""
    return request.app.state.token_signer


def get_auth_service(
    db: AsyncSession = Depends(get_async_session),
    cache: JsonCache = Depends(get_cache),
    password_hasher: PasswordHasher = Depends(get_password_hasher),
    token_signer: TokenSigner = Depends(get_token_signer),
    settings: Settings = Depends(get_settings),
) -> AuthService:
    """Session manager bound to the request's database session."""
    return AuthService(db, cache, password_hasher, token_signer, settings)


async def get_current_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    auth_service: AuthService = Depends(get_auth_service),
) -> User:
    """
    Resolve the bearer access token to the current user.

    Raises:
        InvalidTokenError: If no token was sent, or it is invalid or expired, or
            its user no longer exists. Mapped to 401 by the app.
    """
    if credentials is None:
        raise InvalidTokenError("Not authenticated")
    try:
        user = await auth_service.authenticate_access_token(credentials.credentials)
    except InvalidTokenError as e:
        logger.info("auth_token_rejected reason=%s", e)
        raise
    request.state.user_id = user.id
    return user


def require_roles(*roles: Role) -> Callable[..., Awaitable[User]]:
    """
    Build a dependency that admits only users holding one of `roles`.

    Example:
        @router.post("/", dependencies=[Depends(require_roles(Role.ADMIN))])
    """
    allowed = ", ".join(role.value for role in roles)

    async def check_role(current_user: User = Depends(get_current_user)) -> User:
        if not current_user.has_role(*roles):
            logger.info(
                "auth_forbidden user_id=%s role=%s required=%s",
                current_user.id, current_user.role, allowed,
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )
        return current_user

    return check_role
