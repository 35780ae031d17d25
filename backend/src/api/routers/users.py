"""User profile and admin user management endpoints."""
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import (
    Pagination,
    get_async_session,
    get_cache,
    get_course_service,
    get_current_user,
    get_password_hasher,
    require_admin,
)
from core.cache import JsonCache
from core.password_hasher import PasswordHasher
from models.user import User
from schemas.course import EnrollmentListResponse, EnrollmentResponse
from schemas.user import AdminUserUpdate, ProfileUpdate, UserListResponse, UserResponse
from services import user_service
from services.course_service import CourseService

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/me", response_model=UserResponse)
async def get_me(current_user: User = Depends(get_current_user)) -> User:
    """Get the current authenticated user's profile."""
    return current_user


@router.put("/me", response_model=UserResponse)
async def update_me(
    data: ProfileUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
    cache: JsonCache = Depends(get_cache),
    password_hasher: PasswordHasher = Depends(get_password_hasher),
) -> User:
    """
    Update the current user's name, avatar or password.

    Changing the password signs the user out of every other session.
    """
    return await user_service.update_profile(db, cache, current_user, data, password_hasher)


@router.get("/me/enrollments", response_model=EnrollmentListResponse)
async def list_my_enrollments(
    pagination: Pagination = Depends(),
    current_user: User = Depends(get_current_user),
    course_service: CourseService = Depends(get_course_service),
) -> EnrollmentListResponse:
    """Courses the current user is enrolled in, most recent first."""
    enrollments, total = await course_service.list_enrollments(
        current_user.id, pagination.page, pagination.page_size,
    )
    return EnrollmentListResponse(
        items=[EnrollmentResponse.model_validate(e) for e in enrollments],
        total=total,
        page=pagination.page,
        page_size=pagination.page_size,
    )


@router.get("", response_model=UserListResponse, dependencies=[Depends(require_admin)])
async def list_users(
    pagination: Pagination = Depends(),
    db: AsyncSession = Depends(get_async_session),
) -> UserListResponse:
    """List all users (admin only)."""
    users, total = await user_service.list_users(db, pagination.page, pagination.page_size)
    return UserListResponse(
        items=[UserResponse.model_validate(u) for u in users],
        total=total,
        page=pagination.page,
        page_size=pagination.page_size,
    )


@router.get("/{user_id}", response_model=UserResponse, dependencies=[Depends(require_admin)])
async def get_user(
    user_id: UUID,
    db: AsyncSession = Depends(get_async_session),
) -> User:
    """Get any user (admin only)."""
    return await user_service.require_user(db, user_id)


@router.put("/{user_id}", response_model=UserResponse, dependencies=[Depends(require_admin)])
async def update_user(
    user_id: UUID,
    data: AdminUserUpdate,
    db: AsyncSession = Depends(get_async_session),
    cache: JsonCache = Depends(get_cache),
    password_hasher: PasswordHasher = Depends(get_password_hasher),
) -> User:
    """Update any user, including role (admin only)."""
    return await user_service.update_user(db, cache, user_id, data, password_hasher)


@router.delete(
    "/{user_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_admin)],
)
async def delete_user(
    user_id: UUID,
    db: AsyncSession = Depends(get_async_session),
    cache: JsonCache = Depends(get_cache),
) -> None:
    """Delete a user with their sessions, enrollments and progress (admin only)."""
    await user_service.delete_user(db, cache, user_id)
