"""Course model."""
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import Boolean, CheckConstraint, ForeignKey, Integer, Numeric, String, Text, false
from sqlalchemy.orm import Mapped, mapped_column, relationship

from models.base import Base, TimestampMixin, UUIDv7Mixin

if TYPE_CHECKING:
    from models.lesson import Lesson
    from models.user import User


class CourseLevel(str, Enum):
    """Difficulty level of a course."""

    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"


class Course(Base, UUIDv7Mixin, TimestampMixin):
    """
    A course in the catalog.

    `category` holds the category slug as plain text rather than a foreign key,
    so deleting a category leaves its courses in place.
    """

    __tablename__ = "courses"

    title: Mapped[str] = mapped_column(String(255))
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    thumbnail: Mapped[str | None] = mapped_column(String(255), nullable=True)
    instructor_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0.00"))
    level: Mapped[str] = mapped_column(
        String(20),
        default=CourseLevel.BEGINNER.value,
        server_default=CourseLevel.BEGINNER.value,
    )
    duration: Mapped[int] = mapped_column(
        Integer,
        default=0,
        server_default="0",
        comment="Total length in minutes",
    )
    category: Mapped[str | None] = mapped_column(String(100), nullable=True, index=True)
    is_featured: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        server_default=false(),
    )

    instructor: Mapped["User | None"] = relationship(lazy="selectin")
    lessons: Mapped[list["Lesson"]] = relationship(
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="Lesson.order_number",
    )

    __table_args__ = (
        CheckConstraint(
            "level IN ('beginner', 'intermediate', 'advanced')",
            name="ck_course_level",
        ),
        CheckConstraint("price >= 0", name="ck_course_price"),
    )
