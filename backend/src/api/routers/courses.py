"""Course endpoints: catalog reads, enrollment, and course management."""
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import (
    Pagination,
    get_async_session,
    get_course_service,
    get_current_user,
    require_course_manager,
)
from models.enrollment import Enrollment
from models.lesson import Lesson
from models.user import User
from schemas.course import (
    CourseCreate,
    CourseDetail,
    CourseListItem,
    CourseListResponse,
    CourseUpdate,
    EnrollmentResponse,
    LessonCreate,
    LessonResponse,
)
from schemas.progress import CourseProgressResponse
from services import progress_service
from services.course_service import CourseService

router = APIRouter(prefix="/courses", tags=["courses"])
admin_router = APIRouter(prefix="/admin/courses", tags=["courses"])


@router.get("", response_model=CourseListResponse)
async def list_courses(
    pagination: Pagination = Depends(),
    category: str | None = Query(default=None, max_length=100),
    course_service: CourseService = Depends(get_course_service),
) -> CourseListResponse:
    """One page of courses, newest first, optionally filtered by category."""
    return await course_service.list_courses(pagination.page, pagination.page_size, category)


@router.get("/featured", response_model=list[CourseListItem])
async def featured_courses(
    course_service: CourseService = Depends(get_course_service),
) -> list[CourseListItem]:
    """Featured courses for the landing page."""
    return await course_service.featured()


@router.get("/{course_id}", response_model=CourseDetail)
async def get_course(
    course_id: UUID,
    course_service: CourseService = Depends(get_course_service),
) -> CourseDetail:
    """Course detail with instructor and lessons."""
    return await course_service.get(course_id)


@router.get("/{course_id}/lessons", response_model=list[LessonResponse])
async def list_lessons(
    course_id: UUID,
    course_service: CourseService = Depends(get_course_service),
) -> list[Lesson]:
    """Lessons of a course in order."""
    return await course_service.list_lessons(course_id)


@router.post(
    "/{course_id}/enroll",
    response_model=EnrollmentResponse,
    status_code=status.HTTP_201_CREATED,
)
async def enroll(
    course_id: UUID,
    current_user: User = Depends(get_current_user),
    course_service: CourseService = Depends(get_course_service),
) -> Enrollment:
    """Enroll the current user in a course."""
    return await course_service.enroll(current_user.id, course_id)


@router.get("/{course_id}/progress", response_model=CourseProgressResponse)
async def get_course_progress(
    course_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
) -> CourseProgressResponse:
    """The current user's progress across a course."""
    return await progress_service.get_course_progress(db, current_user.id, course_id)


@admin_router.post("", response_model=CourseDetail, status_code=status.HTTP_201_CREATED)
async def create_course(
    data: CourseCreate,
    current_user: User = Depends(require_course_manager),
    course_service: CourseService = Depends(get_course_service),
) -> CourseDetail:
    """Create a course (admin or instructor)."""
    return await course_service.create(data, current_user)


@admin_router.put("/{course_id}", response_model=CourseDetail)
async def update_course(
    course_id: UUID,
    data: CourseUpdate,
    current_user: User = Depends(require_course_manager),
    course_service: CourseService = Depends(get_course_service),
) -> CourseDetail:
    """Update a course (admin, or the instructor who teaches it)."""
    return await course_service.update(course_id, data, current_user)


@admin_router.delete("/{course_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_course(
    course_id: UUID,
    current_user: User = Depends(require_course_manager),
    course_service: CourseService = Depends(get_course_service),
) -> None:
    """Delete a course (admin, or the instructor who teaches it)."""
    await course_service.delete(course_id, current_user)


@admin_router.post(
    "/{course_id}/lessons",
    response_model=LessonResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_lesson(
    course_id: UUID,
    data: LessonCreate,
    current_user: User = Depends(require_course_manager),
    course_service: CourseService = Depends(get_course_service),
) -> Lesson:
    """Add a lesson to a course (admin, or the instructor who teaches it)."""
    return await course_service.add_lesson(course_id, data, current_user)
