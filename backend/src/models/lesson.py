"""Lesson model - an ordered video within a course."""
from uuid import UUID

from sqlalchemy import ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from models.base import Base, TimestampMixin, UUIDv7Mixin


class Lesson(Base, UUIDv7Mixin, TimestampMixin):
    """Lesson within a course, ordered by order_number."""

    __tablename__ = "lessons"

    course_id: Mapped[UUID] = mapped_column(
        ForeignKey("courses.id", ondelete="CASCADE"),
        index=True,
    )
    title: Mapped[str] = mapped_column(String(255))
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    video_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    video_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    duration: Mapped[int] = mapped_column(
        Integer,
        default=0,
        server_default="0",
        comment="Length in seconds",
    )
    order_number: Mapped[int] = mapped_column(Integer, default=0, server_default="0")
