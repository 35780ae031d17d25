"""Pydantic schemas for course, lesson and enrollment endpoints."""
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from models.course import CourseLevel
from schemas.validators import UTCDateTime


class InstructorSummary(BaseModel):
    """Public view of a course's instructor."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    full_name: str
    avatar_url: str | None = None


class LessonCreate(BaseModel):
    """Add a lesson to a course."""

    title: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    video_url: str | None = Field(default=None, max_length=500)
    video_id: str | None = Field(default=None, max_length=100)
    duration: int = Field(default=0, ge=0, description="Length in seconds")
    order_number: int = Field(default=0, ge=0)


class LessonResponse(BaseModel):
    """Lesson projection."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    course_id: UUID
    title: str
    description: str | None
    video_url: str | None
    video_id: str | None
    duration: int
    order_number: int


class CourseCreate(BaseModel):
    """Create a course. The instructor is the caller unless an admin names one."""

    model_config = ConfigDict(use_enum_values=True)

    title: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    thumbnail: str | None = Field(default=None, max_length=255)
    price: Decimal = Field(default=Decimal("0.00"), ge=0, max_digits=10, decimal_places=2)
    level: CourseLevel = CourseLevel.BEGINNER
    duration: int = Field(default=0, ge=0, description="Total length in minutes")
    category: str | None = Field(default=None, max_length=100)
    is_featured: bool = False
    instructor_id: UUID | None = None


class CourseUpdate(BaseModel):
    """Partial course update. Omitted fields are left unchanged."""

    model_config = ConfigDict(use_enum_values=True)

    title: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = None
    thumbnail: str | None = Field(default=None, max_length=255)
    price: Decimal | None = Field(default=None, ge=0, max_digits=10, decimal_places=2)
    level: CourseLevel | None = None
    duration: int | None = Field(default=None, ge=0)
    category: str | None = Field(default=None, max_length=100)
    is_featured: bool | None = None


class CourseListItem(BaseModel):
    """Course as shown in lists (no lessons)."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    title: str
    description: str | None
    thumbnail: str | None
    price: Decimal
    level: CourseLevel
    duration: int
    category: str | None
    is_featured: bool
    instructor: InstructorSummary | None = None
    created_at: UTCDateTime
    updated_at: UTCDateTime


class CourseDetail(CourseListItem):
    """Course detail with its ordered lessons."""

    lessons: list[LessonResponse] = []


class CourseListResponse(BaseModel):
    """One page of courses."""

    items: list[CourseListItem]
    total: int
    page: int
    page_size: int


class EnrollmentResponse(BaseModel):
    """A user's enrollment, with the course summary."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    course_id: UUID
    enrolled_at: UTCDateTime
    course: CourseListItem


class EnrollmentListResponse(BaseModel):
    """One page of enrollments."""

    items: list[EnrollmentResponse]
    total: int
    page: int
    page_size: int
