"""
Tests for the course service: cache-aside reads, invalidation on writes,
ownership checks and enrollments.
"""
import json
from decimal import Decimal
from unittest.mock import AsyncMock, patch

import pytest
from redis.asyncio import Redis
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession
from uuid6 import uuid7

from core.cache import CacheKeys, JsonCache
from core.config import Settings
from core.redis import RedisClient
from models.course import Course
from models.user import Role, User
from schemas.course import CourseCreate, CourseDetail, CourseUpdate, LessonCreate
from services import user_service
from services.course_service import CourseService
from services.exceptions import (
    AlreadyEnrolledError,
    CourseAccessDeniedError,
    CourseNotFoundError,
)


async def make_user(db: AsyncSession, email: str, role: Role) -> User:
    """Insert a user with a placeholder hash."""
    return await user_service.create_user(
        db, email=email, password_hash="hash", full_name=email.split("@")[0].title(), role=role,
    )


@pytest.fixture
async def instructor(db_session: AsyncSession) -> User:
    """An instructor."""
    return await make_user(db_session, "ivy@example.com", Role.INSTRUCTOR)


@pytest.fixture
async def other_instructor(db_session: AsyncSession) -> User:
    """A second instructor."""
    return await make_user(db_session, "otto@example.com", Role.INSTRUCTOR)


@pytest.fixture
async def admin(db_session: AsyncSession) -> User:
    """An admin."""
    return await make_user(db_session, "ada@example.com", Role.ADMIN)


@pytest.fixture
async def student(db_session: AsyncSession) -> User:
    """A regular user."""
    return await make_user(db_session, "sam@example.com", Role.USER)


@pytest.fixture
async def course(course_service: CourseService, instructor: User) -> CourseDetail:
    """A course taught by `instructor`, with two lessons."""
    created = await course_service.create(
        CourseCreate(
            title="Python for Web APIs",
            description="FastAPI end to end",
            price=Decimal("49.00"),
            level="intermediate",
            category="web-development",
        ),
        instructor,
    )
    await course_service.add_lesson(
        created.id, LessonCreate(title="Routing", order_number=2, duration=600), instructor,
    )
    await course_service.add_lesson(
        created.id, LessonCreate(title="Setup", order_number=1, duration=300), instructor,
    )
    return await course_service.get(created.id)


async def create_courses(
    course_service: CourseService, owner: User, count: int, **fields: object,
) -> list[CourseDetail]:
    """Create `count` courses titled 'Course 0', 'Course 1', ..."""
    return [
        await course_service.create(CourseCreate(title=f"Course {i}", **fields), owner)
        for i in range(count)
    ]


# =============================================================================
# Course detail
# =============================================================================


class TestGetCourse:
    """Cache-aside reads of `course:<id>`."""

    async def test__get__projection(self, course: CourseDetail, instructor: User) -> None:
        """Detail carries the instructor and lessons in order."""
        assert course.title == "Python for Web APIs"
        assert course.price == Decimal("49.00")
        assert course.level == "intermediate"
        assert course.instructor is not None
        assert course.instructor.id == instructor.id
        assert [lesson.title for lesson in course.lessons] == ["Setup", "Routing"]

    async def test__get__populates_cache_with_ttl(
        self, course_service: CourseService, course: CourseDetail, redis_server: Redis,
    ) -> None:
        """A miss fills `course:<id>` for an hour."""
        key = CacheKeys.course(course.id)
        await redis_server.delete(key)

        await course_service.get(course.id)

        assert await redis_server.exists(key) == 1
        assert 3595 <= await redis_server.ttl(key) <= 3600

    async def test__get__hit_skips_store(
        self, course_service: CourseService, course: CourseDetail, db_session: AsyncSession,
    ) -> None:
        """A cached detail is returned even if the row changed behind the service's back."""
        await db_session.execute(
            update(Course).where(Course.id == course.id).values(title="Changed directly"),
        )
        assert (await course_service.get(course.id)).title == "Python for Web APIs"

    async def test__get__same_content_from_cache_or_store(
        self, course_service: CourseService, course: CourseDetail, cache: JsonCache,
    ) -> None:
        """The cached projection equals the one built from the store."""
        await cache.invalidate(CacheKeys.course(course.id))
        from_store = await course_service.get(course.id)
        from_cache = await course_service.get(course.id)
        assert from_cache == from_store

    async def test__get__missing(self, course_service: CourseService) -> None:
        """Unknown ids raise, and nothing is cached."""
        with pytest.raises(CourseNotFoundError):
            await course_service.get(uuid7())

    async def test__get__corrupt_entry_rebuilt(
        self, course_service: CourseService, course: CourseDetail, redis_server: Redis,
    ) -> None:
        """An entry that doesn't fit the projection is dropped and rebuilt."""
        key = CacheKeys.course(course.id)
        await redis_server.set(key, json.dumps({"id": "not-a-course"}))

        result = await course_service.get(course.id)

        assert result.title == "Python for Web APIs"
        assert json.loads(await redis_server.get(key))["title"] == "Python for Web APIs"

    async def test__get__works_without_redis(
        self,
        db_session: AsyncSession,
        disconnected_redis_client: RedisClient,
        settings: Settings,
        instructor: User,
    ) -> None:
        """With the cache down every read goes to the store."""
        service = CourseService(
            db_session,
            JsonCache(disconnected_redis_client),
            settings,
        )
        created = await service.create(CourseCreate(title="Offline"), instructor)
        assert (await service.get(created.id)).title == "Offline"


# =============================================================================
# Invalidation on writes
# =============================================================================


class TestInvalidation:
    """Every course mutation removes the keys that could hold stale data."""

    async def test__update__drops_detail_and_serves_new_data(
        self,
        course_service: CourseService,
        course: CourseDetail,
        instructor: User,
        redis_server: Redis,
    ) -> None:
        """After an update the next read sees the change."""
        key = CacheKeys.course(course.id)
        assert await redis_server.exists(key) == 1

        await course_service.update(course.id, CourseUpdate(title="Renamed"), instructor)

        assert await redis_server.exists(key) == 0
        assert (await course_service.get(course.id)).title == "Renamed"

    async def test__delete__drops_detail(
        self,
        course_service: CourseService,
        course: CourseDetail,
        instructor: User,
        redis_server: Redis,
    ) -> None:
        """A deleted course is gone from the cache and the store."""
        await course_service.delete(course.id, instructor)

        assert await redis_server.exists(CacheKeys.course(course.id)) == 0
        with pytest.raises(CourseNotFoundError):
            await course_service.get(course.id)

    async def test__add_lesson__drops_detail_only(
        self,
        course_service: CourseService,
        course: CourseDetail,
        instructor: User,
        redis_server: Redis,
    ) -> None:
        """Lessons only appear in the detail, so list pages survive."""
        await course_service.list_courses(1, 10)
        page_key = CacheKeys.course_list(1, 10)

        await course_service.add_lesson(course.id, LessonCreate(title="Deploy"), instructor)

        assert await redis_server.exists(CacheKeys.course(course.id)) == 0
        assert await redis_server.exists(page_key) == 1
        assert [lesson.title for lesson in (await course_service.get(course.id)).lessons] == [
            "Deploy", "Setup", "Routing",
        ]

    async def test__create__drops_list_pages_and_featured(
        self,
        course_service: CourseService,
        course: CourseDetail,  # noqa: ARG002
        instructor: User,
        redis_server: Redis,
    ) -> None:
        """A new course invalidates every tracked list page and the featured list."""
        await course_service.list_courses(1, 10)
        await course_service.list_courses(2, 5)
        await course_service.featured()
        assert await redis_server.smembers(CacheKeys.COURSE_LIST_INDEX) == {
            CacheKeys.course_list(1, 10), CacheKeys.course_list(2, 5),
        }

        await course_service.create(CourseCreate(title="Brand new"), instructor)

        assert await redis_server.exists(CacheKeys.course_list(1, 10)) == 0
        assert await redis_server.exists(CacheKeys.course_list(2, 5)) == 0
        assert await redis_server.exists(CacheKeys.COURSE_LIST_INDEX) == 0
        assert await redis_server.exists(CacheKeys.COURSES_FEATURED) == 0
        page = await course_service.list_courses(1, 10)
        assert page.total == 2
        assert page.items[0].title == "Brand new"

    async def test__update__list_reflects_change(
        self, course_service: CourseService, course: CourseDetail, instructor: User,
    ) -> None:
        """List pages cached before an update don't survive it."""
        before = await course_service.list_courses(1, 10)
        assert before.items[0].title == "Python for Web APIs"

        await course_service.update(course.id, CourseUpdate(title="Renamed"), instructor)

        assert (await course_service.list_courses(1, 10)).items[0].title == "Renamed"

    async def test__update__null_clears_nullable_fields_only(
        self, course_service: CourseService, course: CourseDetail, instructor: User,
    ) -> None:
        """Explicit null clears optional fields; it never clears required ones."""
        updated = await course_service.update(
            course.id, CourseUpdate(description=None, title=None, price=None), instructor,
        )
        assert updated.description is None
        assert updated.title == "Python for Web APIs"
        assert updated.price == Decimal("49.00")


# =============================================================================
# Course list and featured
# =============================================================================


class TestListCourses:
    """Paginated listing."""

    async def test__list__newest_first_and_paginated(
        self, course_service: CourseService, instructor: User,
    ) -> None:
        """Pages slice the newest-first list."""
        await create_courses(course_service, instructor, 5)

        page1 = await course_service.list_courses(1, 2)
        page3 = await course_service.list_courses(3, 2)

        assert page1.total == 5
        assert [c.title for c in page1.items] == ["Course 4", "Course 3"]
        assert [c.title for c in page3.items] == ["Course 0"]
        assert page1.items[0].instructor.full_name == "Ivy"

    async def test__list__page_cached_and_tracked(
        self, course_service: CourseService, instructor: User, redis_server: Redis,
    ) -> None:
        """Unfiltered pages are cached for 30 minutes and recorded in the index."""
        await create_courses(course_service, instructor, 2)

        await course_service.list_courses(1, 10)

        key = CacheKeys.course_list(1, 10)
        assert key == "courses:list:page:1:size:10"
        assert 1795 <= await redis_server.ttl(key) <= 1800
        assert await redis_server.sismember(CacheKeys.COURSE_LIST_INDEX, key)

    async def test__list__pages_with_large_numbers_do_not_collide(
        self, course_service: CourseService, instructor: User, redis_server: Redis,
    ) -> None:
        """Page 1 of size 10 and page 10 of size 1 are different cache entries."""
        await create_courses(course_service, instructor, 12)

        first = await course_service.list_courses(1, 10)
        tenth = await course_service.list_courses(10, 1)

        assert len(first.items) == 10
        assert [c.title for c in tenth.items] == ["Course 2"]
        assert await redis_server.exists(
            CacheKeys.course_list(1, 10), CacheKeys.course_list(10, 1),
        ) == 2

    async def test__list__category_filter_not_cached(
        self, course_service: CourseService, instructor: User, redis_server: Redis,
    ) -> None:
        """Filtered pages always come from the store."""
        await create_courses(course_service, instructor, 2, category="design")
        await create_courses(course_service, instructor, 1, category="devops")

        page = await course_service.list_courses(1, 10, category="design")

        assert page.total == 2
        assert {c.category for c in page.items} == {"design"}
        assert await redis_server.keys("courses:list:*") == []

    async def test__list__untracked_page_not_cached(
        self, course_service: CourseService, instructor: User, cache: JsonCache,
        redis_server: Redis,
    ) -> None:
        """A page whose key can't be recorded in the index isn't cached at all."""
        await create_courses(course_service, instructor, 1)

        with patch.object(cache, "track", AsyncMock(return_value=False)):
            page = await course_service.list_courses(1, 10)

        assert page.total == 1
        assert await redis_server.exists(CacheKeys.course_list(1, 10)) == 0


class TestFeatured:
    """Featured courses."""

    async def test__featured__flagged_courses(
        self, course_service: CourseService, instructor: User, redis_server: Redis,
    ) -> None:
        """Only flagged courses are returned when any exist, and the result is cached."""
        await create_courses(course_service, instructor, 2)
        await course_service.create(CourseCreate(title="Star", is_featured=True), instructor)

        featured = await course_service.featured()

        assert [c.title for c in featured] == ["Star"]
        assert 3595 <= await redis_server.ttl(CacheKeys.COURSES_FEATURED) <= 3600

    async def test__featured__falls_back_to_newest(
        self, course_service: CourseService, instructor: User,
    ) -> None:
        """With nothing flagged, the newest courses are shown."""
        await create_courses(course_service, instructor, 7)

        featured = await course_service.featured()

        assert [c.title for c in featured] == [f"Course {i}" for i in range(6, 1, -1)]

    async def test__featured__served_from_cache(
        self, course_service: CourseService, instructor: User, db_session: AsyncSession,
    ) -> None:
        """A cached featured list is reused."""
        [only] = await create_courses(course_service, instructor, 1, is_featured=True)
        first = await course_service.featured()

        await db_session.execute(
            update(Course).where(Course.id == only.id).values(is_featured=False),
        )

        assert await course_service.featured() == first


# =============================================================================
# Ownership
# =============================================================================


class TestOwnership:
    """Instructors manage their own courses; admins manage all."""

    async def test__create__instructor_owns_course(
        self, course_service: CourseService, instructor: User, other_instructor: User,
    ) -> None:
        """An instructor can't create a course on someone else's behalf."""
        created = await course_service.create(
            CourseCreate(title="Mine", instructor_id=other_instructor.id), instructor,
        )
        assert created.instructor.id == instructor.id

    async def test__create__admin_assigns_instructor(
        self, course_service: CourseService, admin: User, instructor: User,
    ) -> None:
        """Admins may name the instructor."""
        created = await course_service.create(
            CourseCreate(title="Assigned", instructor_id=instructor.id), admin,
        )
        assert created.instructor.id == instructor.id

    async def test__update__other_instructor_denied(
        self,
        course_service: CourseService,
        course: CourseDetail,
        other_instructor: User,
        redis_server: Redis,
    ) -> None:
        """A denied update changes nothing, cache included."""
        with pytest.raises(CourseAccessDeniedError):
            await course_service.update(course.id, CourseUpdate(title="Hijack"), other_instructor)
        assert await redis_server.exists(CacheKeys.course(course.id)) == 1

    async def test__delete__other_instructor_denied(
        self, course_service: CourseService, course: CourseDetail, other_instructor: User,
    ) -> None:
        """Only the owner (or an admin) may delete."""
        with pytest.raises(CourseAccessDeniedError):
            await course_service.delete(course.id, other_instructor)

    async def test__add_lesson__other_instructor_denied(
        self, course_service: CourseService, course: CourseDetail, other_instructor: User,
    ) -> None:
        """Only the owner (or an admin) may add lessons."""
        with pytest.raises(CourseAccessDeniedError):
            await course_service.add_lesson(course.id, LessonCreate(title="X"), other_instructor)

    async def test__admin_manages_any_course(
        self, course_service: CourseService, course: CourseDetail, admin: User,
    ) -> None:
        """Admins can update and delete any course."""
        updated = await course_service.update(course.id, CourseUpdate(is_featured=True), admin)
        assert updated.is_featured is True
        await course_service.delete(course.id, admin)

    async def test__update__missing_course(
        self, course_service: CourseService, admin: User,
    ) -> None:
        """Unknown ids raise."""
        with pytest.raises(CourseNotFoundError):
            await course_service.update(uuid7(), CourseUpdate(title="X"), admin)


# =============================================================================
# Lessons and enrollments
# =============================================================================


class TestLessons:
    """Lesson listing."""

    async def test__list_lessons__ordered(
        self, course_service: CourseService, course: CourseDetail,
    ) -> None:
        """Lessons come back by order number."""
        lessons = await course_service.list_lessons(course.id)
        assert [lesson.title for lesson in lessons] == ["Setup", "Routing"]

    async def test__list_lessons__missing_course(self, course_service: CourseService) -> None:
        """Unknown courses raise."""
        with pytest.raises(CourseNotFoundError):
            await course_service.list_lessons(uuid7())


class TestEnrollments:
    """Enrolling and listing enrollments."""

    async def test__enroll(
        self, course_service: CourseService, course: CourseDetail, student: User,
    ) -> None:
        """Enrollment links user and course and carries the course summary."""
        enrollment = await course_service.enroll(student.id, course.id)
        assert enrollment.user_id == student.id
        assert enrollment.course.title == "Python for Web APIs"
        assert await course_service.get_enrollment(student.id, course.id) is not None

    async def test__enroll__twice_rejected(
        self, course_service: CourseService, course: CourseDetail, student: User,
    ) -> None:
        """A user can enroll in a course once."""
        await course_service.enroll(student.id, course.id)
        with pytest.raises(AlreadyEnrolledError):
            await course_service.enroll(student.id, course.id)

    async def test__enroll__race_caught_by_unique_constraint(
        self, course_service: CourseService, course: CourseDetail, student: User,
    ) -> None:
        """A concurrent enrollment that slips past the check hits the constraint."""
        await course_service.enroll(student.id, course.id)
        with (
            patch.object(course_service, "get_enrollment", AsyncMock(return_value=None)),
            pytest.raises(AlreadyEnrolledError),
        ):
            await course_service.enroll(student.id, course.id)

    async def test__enroll__missing_course(
        self, course_service: CourseService, student: User,
    ) -> None:
        """Enrolling in an unknown course raises."""
        with pytest.raises(CourseNotFoundError):
            await course_service.enroll(student.id, uuid7())

    async def test__list_enrollments(
        self, course_service: CourseService, instructor: User, student: User,
    ) -> None:
        """A user's enrollments, most recent first."""
        courses = await create_courses(course_service, instructor, 3)
        for created in courses:
            await course_service.enroll(student.id, created.id)

        enrollments, total = await course_service.list_enrollments(student.id, 1, 2)

        assert total == 3
        assert [e.course.title for e in enrollments] == ["Course 2", "Course 1"]
