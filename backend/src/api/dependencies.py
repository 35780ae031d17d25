"""FastAPI dependencies for injection."""
from fastapi import Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from core.auth import (
    get_auth_service,
    get_cache,
    get_current_user,
    get_password_hasher,
    get_token_signer,
    require_roles,
)
from core.cache import JsonCache
from core.config import Settings, get_settings
from core.rate_limiter import rate_limit_auth
from db.session import get_async_session
from models.user import Role
from services.category_service import CategoryService
from services.course_service import CourseService

# Pre-built role checks
require_admin = require_roles(Role.ADMIN)
require_course_manager = require_roles(Role.ADMIN, Role.INSTRUCTOR)


def get_category_service(
    db: AsyncSession = Depends(get_async_session),
    cache: JsonCache = Depends(get_cache),
    settings: Settings = Depends(get_settings),
) -> CategoryService:
    """Category service bound to the request's database session."""
    return CategoryService(db, cache, settings)


def get_course_service(
    db: AsyncSession = Depends(get_async_session),
    cache: JsonCache = Depends(get_cache),
    settings: Settings = Depends(get_settings),
) -> CourseService:
    """Course service bound to the request's database session."""
    return CourseService(db, cache, settings)


class Pagination:
    """Page/page_size query parameters."""

    def __init__(
        self,
        page: int = Query(default=1, ge=1),
        page_size: int = Query(default=10, ge=1, le=100),
    ) -> None:
        self.page = page
        self.page_size = page_size


__all__ = [
    "Pagination",
    "get_async_session",
    "get_auth_service",
    "get_cache",
    "get_category_service",
    "get_course_service",
    "get_current_user",
    "get_password_hasher",
    "get_settings",
    "get_token_signer",
    "rate_limit_auth",
    "require_admin",
    "require_course_manager",
    "require_roles",
]
