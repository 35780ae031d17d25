"""
Service layer for courses, lessons and enrollments.

Reads of course detail, the unfiltered course list and the featured list are
cache-aside. Every course mutation deletes the course's detail key, the
featured list, and every list page recorded in the list index, right after the
store write and before the request returns. Changes to an instructor's name,
avatar or account do the same for each course they teach. If that delete
doesn't reach Redis, readers may see the old data until the entry's TTL runs out.
"""
import logging
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ValidationError
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from core.cache import CacheKeys, JsonCache
from core.config import Settings
from models.course import Course
from models.enrollment import Enrollment
from models.lesson import Lesson
from models.user import Role, User
from schemas.course import (
    CourseCreate,
    CourseDetail,
    CourseListItem,
    CourseListResponse,
    CourseUpdate,
    LessonCreate,
)
from services.exceptions import (
    AlreadyEnrolledError,
    CourseAccessDeniedError,
    CourseNotFoundError,
)

logger = logging.getLogger(__name__)

FEATURED_LIMIT = 5

# Fields an update may explicitly clear with null
NULLABLE_FIELDS = frozenset({"description", "thumbnail", "category"})


async def invalidate_courses(cache: JsonCache, course_ids: list[UUID]) -> None:
    """Drop the detail of each course plus every cached list that could show them."""
    await cache.invalidate(
        *(CacheKeys.course(course_id) for course_id in course_ids),
        CacheKeys.COURSES_FEATURED,
    )
    await cache.invalidate_tracked(CacheKeys.COURSE_LIST_INDEX)


async def taught_course_ids(db: AsyncSession, instructor_id: UUID) -> list[UUID]:
    """Ids of the courses an instructor teaches."""
    result = await db.scalars(select(Course.id).where(Course.instructor_id == instructor_id))
    return list(result.all())


class CourseService:
    """Course catalog reads and writes with cache-aside and invalidation."""

    def __init__(self, db: AsyncSession, cache: JsonCache, settings: Settings) -> None:
        self.db = db
        self.cache = cache
        self.settings = settings

    # ---- reads -------------------------------------------------------------

    async def get(self, course_id: UUID) -> CourseDetail:
        """
        Course detail with instructor and ordered lessons.

        Served from `course:<id>` when cached; the cached and freshly built
        projections are the same model.

        Raises:
            CourseNotFoundError: If the course doesn't exist.
        """
        key = CacheKeys.course(course_id)
        cached = await self._get_cached(key, CourseDetail)
        if cached is not None:
            return cached

        detail = CourseDetail.model_validate(await self._load(course_id))
        await self.cache.set_json(key, detail.model_dump(mode="json"), self.settings.cache_ttl_course)
        return detail

    async def list_courses(
        self,
        page: int = 1,
        page_size: int = 10,
        category: str | None = None,
    ) -> CourseListResponse:
        """
        One page of courses, newest first.

        Unfiltered pages are cached and recorded in the list index so mutations
        can find them. Category-filtered pages always come from the store.
        """
        key = CacheKeys.course_list(page, page_size) if category is None else None
        if key is not None:
            cached = await self._get_cached(key, CourseListResponse)
            if cached is not None:
                return cached

        query = select(Course)
        count_query = select(func.count()).select_from(Course)
        if category is not None:
            query = query.where(Course.category == category)
            count_query = count_query.where(Course.category == category)

        total = await self.db.scalar(count_query)
        result = await self.db.execute(
            query.order_by(Course.created_at.desc(), Course.id.desc())
            .offset((page - 1) * page_size)
            .limit(page_size),
        )
        response = CourseListResponse(
            items=[CourseListItem.model_validate(c) for c in result.scalars().all()],
            total=total or 0,
            page=page,
            page_size=page_size,
        )

        if key is not None:
            ttl = self.settings.cache_ttl_course_list
            # Index first: a page that can't be tracked must not be cached
            if await self.cache.track(CacheKeys.COURSE_LIST_INDEX, key, ttl):
                await self.cache.set_json(key, response.model_dump(mode="json"), ttl)
        return response

    async def featured(self, limit: int = FEATURED_LIMIT) -> list[CourseListItem]:
        """
        Featured courses, newest first.

        Falls back to the newest courses when none are flagged as featured.
        """
        cached = await self.cache.get_json(CacheKeys.COURSES_FEATURED)
        if cached is not None:
            try:
                return [CourseListItem.model_validate(item) for item in cached]
            except (TypeError, ValidationError) as e:
                logger.warning(
                    "cache_projection_invalid key=%s error=%s", CacheKeys.COURSES_FEATURED, e,
                )

        newest = (Course.created_at.desc(), Course.id.desc())
        result = await self.db.execute(
            select(Course).where(Course.is_featured.is_(True)).order_by(*newest).limit(limit),
        )
        courses = list(result.scalars().all())
        if not courses:
            result = await self.db.execute(select(Course).order_by(*newest).limit(limit))
            courses = list(result.scalars().all())

        items = [CourseListItem.model_validate(c) for c in courses]
        await self.cache.set_json(
            CacheKeys.COURSES_FEATURED,
            [item.model_dump(mode="json") for item in items],
            self.settings.cache_ttl_featured,
        )
        return items

    async def list_lessons(self, course_id: UUID) -> list[Lesson]:
        """
        Lessons of a course in order.

        Raises:
            CourseNotFoundError: If the course doesn't exist.
        """
        await self._require(course_id)
        result = await self.db.execute(
            select(Lesson)
            .where(Lesson.course_id == course_id)
            .order_by(Lesson.order_number, Lesson.created_at),
        )
        return list(result.scalars().all())

    # ---- writes ------------------------------------------------------------

    async def create(self, data: CourseCreate, current_user: User) -> CourseDetail:
        """
        Create a course.

        Instructors always own the courses they create; admins may name any
        instructor (or none).
        """
        fields = data.model_dump(exclude={"instructor_id"})
        if current_user.has_role(Role.ADMIN):
            instructor_id = data.instructor_id
        else:
            instructor_id = current_user.id
        course = Course(**fields, instructor_id=instructor_id)
        self.db.add(course)
        await self.db.flush()
        await self._invalidate(course.id)
        logger.info("course_created course_id=%s instructor_id=%s", course.id, instructor_id)
        return CourseDetail.model_validate(await self._load(course.id))

    async def update(
        self,
        course_id: UUID,
        data: CourseUpdate,
        current_user: User,
    ) -> CourseDetail:
        """
        Update a course. Omitted fields are left unchanged.

        Raises:
            CourseNotFoundError: If the course doesn't exist.
            CourseAccessDeniedError: If an instructor doesn't teach the course.
        """
        course = await self._require(course_id)
        self._check_can_manage(course, current_user)
        for field, value in data.model_dump(exclude_unset=True).items():
            if value is None and field not in NULLABLE_FIELDS:
                continue
            setattr(course, field, value)
        await self.db.flush()
        await self._invalidate(course_id)
        logger.info("course_updated course_id=%s", course_id)
        return CourseDetail.model_validate(await self._load(course_id))

    async def delete(self, course_id: UUID, current_user: User) -> None:
        """
        Delete a course with its lessons and enrollments.

        Raises:
            CourseNotFoundError: If the course doesn't exist.
            CourseAccessDeniedError: If an instructor doesn't teach the course.
        """
        course = await self._require(course_id)
        self._check_can_manage(course, current_user)
        await self.db.delete(course)
        await self.db.flush()
        await self._invalidate(course_id)
        logger.info("course_deleted course_id=%s", course_id)

    async def add_lesson(
        self,
        course_id: UUID,
        data: LessonCreate,
        current_user: User,
    ) -> Lesson:
        """
        Add a lesson to a course.

        Only the course detail embeds lessons, so only its key is invalidated.

        Raises:
            CourseNotFoundError: If the course doesn't exist.
            CourseAccessDeniedError: If an instructor doesn't teach the course.
        """
        course = await self._require(course_id)
        self._check_can_manage(course, current_user)
        lesson = Lesson(course_id=course_id, **data.model_dump())
        self.db.add(lesson)
        await self.db.flush()
        await self.cache.invalidate(CacheKeys.course(course_id))
        logger.info("lesson_created lesson_id=%s course_id=%s", lesson.id, course_id)
        return lesson

    # ---- enrollments -------------------------------------------------------

    async def enroll(self, user_id: UUID, course_id: UUID) -> Enrollment:
        """
        Enroll a user in a course.

        Raises:
            CourseNotFoundError: If the course doesn't exist.
            AlreadyEnrolledError: If the user is already enrolled.
        """
        await self._require(course_id)
        if await self.get_enrollment(user_id, course_id) is not None:
            raise AlreadyEnrolledError(course_id)

        enrollment = Enrollment(user_id=user_id, course_id=course_id)
        try:
            async with self.db.begin_nested():
                self.db.add(enrollment)
                await self.db.flush()
        except IntegrityError as e:
            raise AlreadyEnrolledError(course_id) from e
        logger.info("course_enrolled user_id=%s course_id=%s", user_id, course_id)
        return await self._load_enrollment(enrollment.id)

    async def get_enrollment(self, user_id: UUID, course_id: UUID) -> Enrollment | None:
        """The user's enrollment in a course, if any."""
        result = await self.db.execute(
            select(Enrollment).where(
                Enrollment.user_id == user_id,
                Enrollment.course_id == course_id,
            ),
        )
        return result.scalar_one_or_none()

    async def list_enrollments(
        self,
        user_id: UUID,
        page: int = 1,
        page_size: int = 10,
    ) -> tuple[list[Enrollment], int]:
        """
        A user's enrollments, most recent first, with course summaries loaded.

        Returns:
            Tuple of (enrollments on the page, total enrollment count).
        """
        total = await self.db.scalar(
            select(func.count()).select_from(Enrollment).where(Enrollment.user_id == user_id),
        )
        result = await self.db.execute(
            select(Enrollment)
            .options(selectinload(Enrollment.course))
            .where(Enrollment.user_id == user_id)
            .order_by(Enrollment.enrolled_at.desc(), Enrollment.id.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
            .execution_options(populate_existing=True),
        )
        return list(result.scalars().all()), total or 0

    # ---- helpers -----------------------------------------------------------

    async def _require(self, course_id: UUID) -> Course:
        course = await self.db.get(Course, course_id)
        if course is None:
            raise CourseNotFoundError(course_id)
        return course

    async def _load(self, course_id: UUID) -> Course:
        """Load a course with lessons and instructor for projection."""
        result = await self.db.execute(
            select(Course)
            .options(selectinload(Course.lessons), selectinload(Course.instructor))
            .where(Course.id == course_id)
            .execution_options(populate_existing=True),
        )
        course = result.scalar_one_or_none()
        if course is None:
            raise CourseNotFoundError(course_id)
        return course

    async def _load_enrollment(self, enrollment_id: UUID) -> Enrollment:
        result = await self.db.execute(
            select(Enrollment)
            .options(selectinload(Enrollment.course))
            .where(Enrollment.id == enrollment_id)
            .execution_options(populate_existing=True),
        )
        return result.scalar_one()

    @staticmethod
    def _check_can_manage(course: Course, user: User) -> None:
        if user.has_role(Role.ADMIN):
            return
        if course.instructor_id != user.id:
            raise CourseAccessDeniedError(course.id)

    async def _get_cached(self, key: str, model: type[BaseModel]) -> Any | None:
        cached = await self.cache.get_json(key)
        if cached is None:
            return None
        try:
            return model.model_validate(cached)
        except ValidationError as e:
            # Written by an older projection shape; rebuild from the store
            logger.warning("cache_projection_invalid key=%s error=%s", key, e)
            await self.cache.invalidate(key)
            return None

    async def _invalidate(self, course_id: UUID) -> None:
        await invalidate_courses(self.cache, [course_id])
