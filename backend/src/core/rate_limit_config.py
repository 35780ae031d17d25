"""
Rate limiting configuration and types.

This module contains the policy - which endpoints are limited and how hard -
separate from enforcement (rate_limiter.py). The per-minute budget itself comes
from Settings.auth_rate_limit_per_minute.
"""
from dataclasses import dataclass
from enum import Enum


class RateLimitScope(Enum):
    """Bucket family a request is counted against."""

    AUTH = "auth"


# Fixed window length for auth endpoints, in seconds
AUTH_WINDOW_SECONDS = 60


@dataclass
class RateLimitResult:
    """Result of a rate limit check with all info needed for headers."""

    allowed: bool
    limit: int  # Max requests in current window
    remaining: int  # Requests remaining in current window
    reset: int  # Unix timestamp when window resets
    retry_after: int  # Seconds until retry allowed (0 if allowed)

    @classmethod
    def fail_open(cls, limit: int) -> "RateLimitResult":
        """Result used when the limiter can't reach Redis."""
        return cls(allowed=True, limit=limit, remaining=limit, reset=0, retry_after=0)

    def headers(self) -> dict[str, str]:
        """`X-RateLimit-*` response headers, plus `Retry-After` once the limit is hit."""
        headers = {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(self.reset),
        }
        if not self.allowed:
            headers["Retry-After"] = str(self.retry_after)
        return headers


class RateLimitExceededError(Exception):
    """Raised when rate limit is exceeded."""

    def __init__(self, result: RateLimitResult) -> None:
        self.result = result
        super().__init__("Rate limit exceeded")
