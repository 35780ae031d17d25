"""Pydantic schemas for lesson progress endpoints."""
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from schemas.validators import UTCDateTime


class ProgressUpdate(BaseModel):
    """Report the playback position for a lesson."""

    position_seconds: int = Field(..., ge=0)
    completed: bool = False


class ProgressResponse(BaseModel):
    """Progress on one lesson."""

    model_config = ConfigDict(from_attributes=True)

    lesson_id: UUID
    position_seconds: int
    completed: bool
    last_watched_at: UTCDateTime


class CourseProgressResponse(BaseModel):
    """Progress across a course's lessons."""

    course_id: UUID
    lessons: list[ProgressResponse]
    completed_lessons: int
    total_lessons: int
