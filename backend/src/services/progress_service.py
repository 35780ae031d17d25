"""Service layer for lesson watch progress."""
import logging
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from models.base import utc_now
from models.course import Course
from models.enrollment import Enrollment
from models.lesson import Lesson
from models.progress import Progress
from schemas.progress import CourseProgressResponse, ProgressResponse
from services.exceptions import CourseNotFoundError, LessonNotFoundError, NotEnrolledError

logger = logging.getLogger(__name__)


async def _is_enrolled(db: AsyncSession, user_id: UUID, course_id: UUID) -> bool:
    result = await db.execute(
        select(Enrollment.id).where(
            Enrollment.user_id == user_id,
            Enrollment.course_id == course_id,
        ),
    )
    return result.first() is not None


async def record_progress(
    db: AsyncSession,
    user_id: UUID,
    lesson_id: UUID,
    position_seconds: int,
    completed: bool = False,
) -> Progress:
    """
    Record how far a user has watched a lesson.

    Creates the progress row on first report, then updates it in place. Once a
    lesson is completed it stays completed, even if a later report says
    otherwise (e.g. the user rewatches from the start).

    Raises:
        LessonNotFoundError: If the lesson doesn't exist.
        NotEnrolledError: If the user isn't enrolled in the lesson's course.

    Note:
        Does not commit. Caller (session generator) handles commit at request end.
    """
    lesson = await db.get(Lesson, lesson_id)
    if lesson is None:
        raise LessonNotFoundError(lesson_id)
    if not await _is_enrolled(db, user_id, lesson.course_id):
        raise NotEnrolledError(lesson.course_id)

    progress = await _get_progress(db, user_id, lesson_id)
    if progress is None:
        progress = Progress(
            user_id=user_id,
            lesson_id=lesson_id,
            position_seconds=position_seconds,
            completed=completed,
        )
        try:
            async with db.begin_nested():
                db.add(progress)
                await db.flush()
            return progress
        except IntegrityError:
            # A concurrent first report created the row; update that one instead
            progress = await _get_progress(db, user_id, lesson_id)
            if progress is None:
                raise

    progress.position_seconds = position_seconds
    progress.completed = progress.completed or completed
    progress.last_watched_at = utc_now()
    await db.flush()
    logger.debug(
        "progress_recorded user_id=%s lesson_id=%s completed=%s",
        user_id, lesson_id, progress.completed,
    )
    return progress


async def _get_progress(db: AsyncSession, user_id: UUID, lesson_id: UUID) -> Progress | None:
    result = await db.execute(
        select(Progress).where(
            Progress.user_id == user_id,
            Progress.lesson_id == lesson_id,
        ),
    )
    return result.scalar_one_or_none()


async def get_course_progress(
    db: AsyncSession,
    user_id: UUID,
    course_id: UUID,
) -> CourseProgressResponse:
    """
    A user's progress across every lesson of a course.

    Lessons the user hasn't started are counted in the total but have no row.

    Raises:
        CourseNotFoundError: If the course doesn't exist.
        NotEnrolledError: If the user isn't enrolled in the course.
    """
    if await db.get(Course, course_id) is None:
        raise CourseNotFoundError(course_id)
    if not await _is_enrolled(db, user_id, course_id):
        raise NotEnrolledError(course_id)

    total = await db.scalar(
        select(func.count()).select_from(Lesson).where(Lesson.course_id == course_id),
    )
    result = await db.execute(
        select(Progress)
        .join(Lesson, Lesson.id == Progress.lesson_id)
        .where(Progress.user_id == user_id, Lesson.course_id == course_id)
        .order_by(Lesson.order_number, Lesson.created_at),
    )
    rows = [ProgressResponse.model_validate(p) for p in result.scalars().all()]
    return CourseProgressResponse(
        course_id=course_id,
        lessons=rows,
        completed_lessons=sum(1 for p in rows if p.completed),
        total_lessons=total or 0,
    )
