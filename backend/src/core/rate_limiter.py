"""
Redis-based rate limiting enforcement.

This module contains the enforcement logic - the "how" of rate limiting.
For configuration (scopes, windows), see rate_limit_config.py.
"""
import logging
import time

from fastapi import Depends, Request

from core.config import Settings, get_settings
from core.rate_limit_config import (
    AUTH_WINDOW_SECONDS,
    RateLimitExceededError,
    RateLimitResult,
    RateLimitScope,
)
from core.redis import RedisClient

logger = logging.getLogger(__name__)


async def check_rate_limit(
    redis_client: RedisClient | None,
    identifier: str,
    scope: RateLimitScope,
    max_requests: int,
    window_seconds: int,
) -> RateLimitResult:
    """
    Count a request against a fixed window and report whether it is allowed.

    Falls back to allowing requests if Redis is unavailable.
    """
    if redis_client is None or not redis_client.is_connected:
        logger.warning("redis_unavailable", extra={"operation": "rate_limit"})
        return RateLimitResult.fail_open(max_requests)

    now = int(time.time())
    key = f"rate:{scope.value}:{identifier}"
    result = await redis_client.eval_fixed_window(
        key=key,
        max_requests=max_requests,
        window_seconds=window_seconds,
    )
    if result is None:
        return RateLimitResult.fail_open(max_requests)

    allowed, remaining, ttl, retry_after = result
    rate_result = RateLimitResult(
        allowed=bool(allowed),
        limit=max_requests,
        remaining=max(0, remaining),
        reset=now + ttl if ttl > 0 else now + window_seconds,
        retry_after=max(0, retry_after) if not allowed else 0,
    )
    if not rate_result.allowed:
        logger.warning(
            "rate_limit_exceeded",
            extra={"scope": scope.value, "identifier": identifier},
        )
    return rate_result


def client_ip(request: Request) -> str:
    """Best-effort client address; the socket peer, not a forwarded header."""
    return request.client.host if request.client else "unknown"


async def rate_limit_auth(
    request: Request,
    settings: Settings = Depends(get_settings),
) -> None:
    """
    Dependency that limits auth endpoints per client IP.

    Raises:
        RateLimitExceededError: If the IP used up its window.
    """
    redis_client = getattr(request.app.state, "redis_client", None)
    result = await check_rate_limit(
        redis_client,
        client_ip(request),
        RateLimitScope.AUTH,
        settings.auth_rate_limit_per_minute,
        AUTH_WINDOW_SECONDS,
    )
    request.state.rate_limit_info = result
    if not result.allowed:
        raise RateLimitExceededError(result)
