"""Tests for the bearer token and role-check dependencies."""
from datetime import timedelta
from unittest.mock import MagicMock

import pytest
from fastapi import HTTPException
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from uuid6 import uuid7

from core.auth import get_current_user, require_roles
from core.token_signer import AccessTokenClaims, TokenSigner
from models.user import Role, User
from services import user_service
from services.auth_service import AuthService
from services.exceptions import InvalidTokenError


def credentials(token: str) -> HTTPAuthorizationCredentials:
    """Bearer credentials as HTTPBearer would parse them."""
    return HTTPAuthorizationCredentials(scheme="Bearer", credentials=token)


@pytest.fixture
async def user(db_session: AsyncSession) -> User:
    """A plain user."""
    return await user_service.create_user(
        db_session, email="auth@example.com", password_hash="x", full_name="Auth User",
    )


class TestGetCurrentUser:
    """Resolving the bearer token to a user."""

    async def test__valid_token__returns_user(
        self, auth_service: AuthService, token_signer: TokenSigner, user: User,
    ) -> None:
        """A valid token resolves to its user and records the id on the request."""
        token, _ = token_signer.sign(
            AccessTokenClaims(user_id=user.id, email=user.email, role=user.role),
            timedelta(hours=1),
        )
        request = MagicMock()

        result = await get_current_user(request, credentials(token), auth_service)

        assert result.id == user.id
        assert request.state.user_id == user.id

    async def test__no_credentials__rejected(self, auth_service: AuthService) -> None:
        """A missing header is not authenticated."""
        with pytest.raises(InvalidTokenError, match="Not authenticated"):
            await get_current_user(MagicMock(), None, auth_service)

    async def test__invalid_token__rejected(self, auth_service: AuthService) -> None:
        """A garbage token is rejected."""
        with pytest.raises(InvalidTokenError):
            await get_current_user(MagicMock(), credentials("garbage"), auth_service)

    async def test__deleted_user__rejected(
        self, auth_service: AuthService, token_signer: TokenSigner,
    ) -> None:
        """A valid signature for a user that no longer exists is rejected."""
        token, _ = token_signer.sign(
            AccessTokenClaims(user_id=uuid7(), email="gone@example.com", role="user"),
            timedelta(hours=1),
        )
        with pytest.raises(InvalidTokenError, match="User not found"):
            await get_current_user(MagicMock(), credentials(token), auth_service)


class TestRequireRoles:
    """Role checks built by require_roles."""

    async def test__allowed_role__passes(self) -> None:
        """A user holding one of the roles gets through."""
        check = require_roles(Role.ADMIN, Role.INSTRUCTOR)
        instructor = User(email="i@example.com", full_name="I", role=Role.INSTRUCTOR.value)
        assert await check(current_user=instructor) is instructor

    async def test__other_role__forbidden(self) -> None:
        """Any other role gets a 403."""
        check = require_roles(Role.ADMIN)
        student = User(email="s@example.com", full_name="S", role=Role.USER.value)
        with pytest.raises(HTTPException) as exc_info:
            await check(current_user=student)
        assert exc_info.value.status_code == 403
        assert exc_info.value.detail == "Insufficient permissions"
