"""SQLAlchemy models."""
from models.base import Base, TimestampMixin, UUIDv7Mixin
from models.user import Role, User
from models.refresh_token import RefreshToken
from models.category import Category
from models.course import Course, CourseLevel
from models.lesson import Lesson
from models.enrollment import Enrollment
from models.progress import Progress

__all__ = [
    "Base",
    "Category",
    "Course",
    "CourseLevel",
    "Enrollment",
    "Lesson",
    "Progress",
    "RefreshToken",
    "Role",
    "TimestampMixin",
    "UUIDv7Mixin",
    "User",
]
