"""Service layer for user accounts."""
import logging
from uuid import UUID

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from core.cache import JsonCache
from core.password_hasher import PasswordHasher
from models.course import Course
from models.enrollment import Enrollment
from models.progress import Progress
from models.refresh_token import RefreshToken
from models.user import Role, User
from schemas.user import AdminUserUpdate, ProfileUpdate
from services import refresh_token_service
from services.course_service import invalidate_courses, taught_course_ids
from services.exceptions import DuplicateEmailError, UserNotFoundError

logger = logging.getLogger(__name__)


def normalize_email(email: str) -> str:
    """Emails are compared trimmed and lower-cased."""
    return email.strip().lower()


async def create_user(
    db: AsyncSession,
    email: str,
    password_hash: str,
    full_name: str,
    role: Role = Role.USER,
    avatar_url: str | None = None,
) -> User:
    """
    Create a user.

    The unique index on email is the final arbiter: a concurrent registration
    that slips past the caller's existence check fails here instead.

    Raises:
        DuplicateEmailError: If the email is already registered.

    Note:
        Does not commit. Caller (session generator) handles commit at request end.
    """
    user = User(
        email=normalize_email(email),
        password_hash=password_hash,
        full_name=full_name,
        role=role.value,
        avatar_url=avatar_url,
    )
    try:
        async with db.begin_nested():
            db.add(user)
            await db.flush()
    except IntegrityError as e:
        raise DuplicateEmailError(user.email) from e
    return user


async def get_user_by_id(db: AsyncSession, user_id: UUID) -> User | None:
    """Get a user by ID."""
    return await db.get(User, user_id)


async def get_user_by_email(db: AsyncSession, email: str) -> User | None:
    """Get a user by (normalized) email."""
    result = await db.execute(
        select(User).where(User.email == normalize_email(email)),
    )
    return result.scalar_one_or_none()


async def require_user(db: AsyncSession, user_id: UUID) -> User:
    """
    Get a user by ID or raise.

    Raises:
        UserNotFoundError: If the user doesn't exist.
    """
    user = await get_user_by_id(db, user_id)
    if user is None:
        raise UserNotFoundError(user_id)
    return user


async def list_users(
    db: AsyncSession,
    page: int = 1,
    page_size: int = 20,
) -> tuple[list[User], int]:
    """
    List users, newest first.

    Returns:
        Tuple of (users on the page, total user count).
    """
    total = await db.scalar(select(func.count()).select_from(User))
    result = await db.execute(
        select(User)
        .order_by(User.created_at.desc(), User.id.desc())
        .offset((page - 1) * page_size)
        .limit(page_size),
    )
    return list(result.scalars().all()), total or 0


async def set_password(
    db: AsyncSession,
    user: User,
    password_hash: str,
) -> User:
    """Replace a user's password hash."""
    user.password_hash = password_hash
    await db.flush()
    return user


async def update_profile(
    db: AsyncSession,
    cache: JsonCache,
    user: User,
    data: ProfileUpdate,
    password_hasher: PasswordHasher,
) -> User:
    """
    Apply a self-service profile update.

    A new password is re-hashed and every refresh token of the user is revoked,
    so other devices have to sign in again. A new name or avatar drops the cached
    courses the user teaches, which embed both.
    """
    summary = (user.full_name, user.avatar_url)
    if data.full_name is not None:
        user.full_name = data.full_name
    if "avatar_url" in data.model_fields_set:
        user.avatar_url = data.avatar_url
    if data.password is not None:
        user.password_hash = password_hasher.hash(data.password)
    await db.flush()

    if data.password is not None:
        revoked = await refresh_token_service.delete_all_for_user(db, user.id)
        logger.info("password_changed user_id=%s sessions_revoked=%s", user.id, revoked)
    if (user.full_name, user.avatar_url) != summary:
        course_ids = await taught_course_ids(db, user.id)
        if course_ids:
            await invalidate_courses(cache, course_ids)
    return user


async def update_user(
    db: AsyncSession,
    cache: JsonCache,
    user_id: UUID,
    data: AdminUserUpdate,
    password_hasher: PasswordHasher,
) -> User:
    """
    Admin update of any user, including email and role.

    Raises:
        UserNotFoundError: If the user doesn't exist.
        DuplicateEmailError: If the new email belongs to another user.
    """
    user = await require_user(db, user_id)
    if data.email is not None and data.email != user.email:
        existing = await get_user_by_email(db, data.email)
        if existing is not None:
            raise DuplicateEmailError(data.email)
        user.email = data.email
    if data.role is not None:
        user.role = data.role.value
    await update_profile(db, cache, user, data, password_hasher)
    logger.info("user_updated user_id=%s", user_id)
    return user


async def delete_user(db: AsyncSession, cache: JsonCache, user_id: UUID) -> None:
    """
    Delete a user and everything they own.

    Refresh tokens, enrollments and progress are removed explicitly rather than
    relying on ON DELETE CASCADE. Courses they teach survive without an
    instructor, and their cached details and list pages are dropped.

    Raises:
        UserNotFoundError: If the user doesn't exist.
    """
    user = await require_user(db, user_id)
    course_ids = await taught_course_ids(db, user_id)
    await db.execute(delete(RefreshToken).where(RefreshToken.user_id == user_id))
    await db.execute(delete(Progress).where(Progress.user_id == user_id))
    await db.execute(delete(Enrollment).where(Enrollment.user_id == user_id))
    await db.execute(
        update(Course)
        .where(Course.instructor_id == user_id)
        .values(instructor_id=None)
        .execution_options(synchronize_session=False),
    )
    await db.delete(user)
    await db.flush()
    if course_ids:
        await invalidate_courses(cache, course_ids)
    logger.info("user_deleted user_id=%s", user_id)
