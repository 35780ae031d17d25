"""Shared fixtures for API tests."""
from datetime import timedelta

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from core.password_hasher import PasswordHasher
from core.token_signer import AccessTokenClaims, TokenSigner
from models.user import Role, User
from services import user_service

TEST_PASSWORD = "password123"

# Constant for non-existent entity ID
FAKE_UUID = "00000000-0000-0000-0000-000000000000"


async def make_user(
    db_session: AsyncSession,
    password_hasher: PasswordHasher,
    email: str,
    role: Role = Role.USER,
    full_name: str = "Test User",
) -> User:
    """Insert a user with TEST_PASSWORD."""
    return await user_service.create_user(
        db_session,
        email=email,
        password_hash=password_hasher.hash(TEST_PASSWORD),
        full_name=full_name,
        role=role,
    )


def bearer(token_signer: TokenSigner, user: User) -> dict[str, str]:
    """Authorization header carrying a fresh access token for `user`."""
    token, _ = token_signer.sign(
        AccessTokenClaims(user_id=user.id, email=user.email, role=user.role),
        timedelta(hours=1),
    )
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
async def student(db_session: AsyncSession, password_hasher: PasswordHasher) -> User:
    """A regular user."""
    return await make_user(db_session, password_hasher, "student@example.com")


@pytest.fixture
async def instructor(db_session: AsyncSession, password_hasher: PasswordHasher) -> User:
    """An instructor."""
    return await make_user(
        db_session, password_hasher, "instructor@example.com", Role.INSTRUCTOR, "Ivy Instructor",
    )


@pytest.fixture
async def admin(db_session: AsyncSession, password_hasher: PasswordHasher) -> User:
    """An admin."""
    return await make_user(db_session, password_hasher, "admin@example.com", Role.ADMIN, "Ada Admin")


@pytest.fixture
def student_headers(token_signer: TokenSigner, student: User) -> dict[str, str]:
    """Auth headers for the student."""
    return bearer(token_signer, student)


@pytest.fixture
def instructor_headers(token_signer: TokenSigner, instructor: User) -> dict[str, str]:
    """Auth headers for the instructor."""
    return bearer(token_signer, instructor)


@pytest.fixture
def admin_headers(token_signer: TokenSigner, admin: User) -> dict[str, str]:
    """Auth headers for the admin."""
    return bearer(token_signer, admin)
