"""Domain exceptions raised by the service layer.

None of these carry HTTP details; api/main.py maps them to responses.
"""
from uuid import UUID


class InvalidTokenError(Exception):
    """Raised when an access token is missing, forged, expired, or malformed."""

    def __init__(self, message: str = "Invalid token") -> None:
        super().__init__(message)


class DuplicateEmailError(Exception):
    """Raised when registering (or renaming to) an email that already exists."""

    def __init__(self, email: str) -> None:
        self.email = email
        super().__init__("Email already exists")


class InvalidCredentialsError(Exception):
    """
    Raised on login failure.

    Unknown email and wrong password raise the same error with the same message
    so callers can't tell which one was wrong.
    """

    def __init__(self) -> None:
        super().__init__("Invalid email or password")


class InvalidRefreshTokenError(Exception):
    """Raised when a refresh token doesn't exist (never issued, rotated, or revoked)."""

    def __init__(self) -> None:
        super().__init__("Invalid refresh token")


class RefreshTokenExpiredError(Exception):
    """Raised when a stored refresh token is past its expiry."""

    def __init__(self) -> None:
        super().__init__("Refresh token expired")


class InvalidResetTokenError(Exception):
    """Raised when a password reset token is unknown, expired, or already used."""

    def __init__(self) -> None:
        super().__init__("Invalid or expired token")


class NotFoundError(Exception):
    """Base class for entity lookups that found nothing."""

    entity = "Resource"

    def __init__(self, entity_id: UUID | str | None = None) -> None:
        self.entity_id = entity_id
        super().__init__(f"{self.entity} not found")


class UserNotFoundError(NotFoundError):
    """Raised when a user doesn't exist."""

    entity = "User"


class CategoryNotFoundError(NotFoundError):
    """Raised when a category doesn't exist."""

    entity = "Category"


class CourseNotFoundError(NotFoundError):
    """Raised when a course doesn't exist."""

    entity = "Course"


class LessonNotFoundError(NotFoundError):
    """Raised when a lesson doesn't exist."""

    entity = "Lesson"


class DuplicateSlugError(Exception):
    """Raised when a category slug is already taken."""

    def __init__(self, slug: str) -> None:
        self.slug = slug
        super().__init__(f"Slug already exists: {slug}")


class AlreadyEnrolledError(Exception):
    """Raised when a user enrolls in a course they're already enrolled in."""

    def __init__(self, course_id: UUID) -> None:
        self.course_id = course_id
        super().__init__("Already enrolled in this course")


class NotEnrolledError(Exception):
    """Raised when recording progress for a course the user isn't enrolled in."""

    def __init__(self, course_id: UUID) -> None:
        self.course_id = course_id
        super().__init__("Not enrolled in this course")


class CourseAccessDeniedError(Exception):
    """Raised when an instructor tries to manage a course they don't teach."""

    def __init__(self, course_id: UUID) -> None:
        self.course_id = course_id
        super().__init__("You can only manage your own courses")
