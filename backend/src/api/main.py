"""FastAPI application entry point."""
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from api.routers import auth, categories, courses, health, lessons, users
from core.cache import JsonCache
from core.config import get_settings
from core.password_hasher import PasswordHasher
from core.rate_limit_config import RateLimitExceededError, RateLimitResult
from core.redis import RedisClient
from core.token_signer import TokenSigner
from services.exceptions import (
    AlreadyEnrolledError,
    CourseAccessDeniedError,
    DuplicateEmailError,
    DuplicateSlugError,
    InvalidCredentialsError,
    InvalidRefreshTokenError,
    InvalidResetTokenError,
    InvalidTokenError,
    NotEnrolledError,
    NotFoundError,
    RefreshTokenExpiredError,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    """Manage application lifespan - startup and shutdown."""
    app_settings = get_settings()
    logging.basicConfig(level=app_settings.log_level)

    # Startup: Connect to Redis
    redis_client = RedisClient(
        url=app_settings.redis_url,
        enabled=app_settings.redis_enabled,
        pool_size=app_settings.redis_pool_size,
        socket_timeout=app_settings.redis_socket_timeout,
    )
    await redis_client.connect()

    # Shared clients live on app.state; dependencies read them from the request
    app.state.redis_client = redis_client
    app.state.cache = JsonCache(redis_client)
    app.state.password_hasher = PasswordHasher(rounds=app_settings.bcrypt_rounds)
    app.state.token_signer = TokenSigner(
        secret=app_settings.jwt_secret,
        issuer=app_settings.app_name,
    )

    yield

    # Shutdown: Clean up Redis
    await redis_client.close()


SECURITY_HEADERS = {
    # Clients only reach LearnHub over TLS; remember that for a year
    "Strict-Transport-Security": "max-age=31536000; includeSubDomains",
    "X-Content-Type-Options": "nosniff",
    # JSON only, nothing here is meant to be shown inside a frame
    "X-Frame-Options": "DENY",
}


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Stamp every LearnHub response, errors included, with `SECURITY_HEADERS`."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint,
    ) -> Response:
        response = await call_next(request)
        response.headers.update(SECURITY_HEADERS)
        return response


class RateLimitHeadersMiddleware(BaseHTTPMiddleware):
    """
    Tell auth clients how much of their request budget is left.

    Only the rate-limited `/auth/*` routes leave a `RateLimitResult` on
    `request.state`; a result from a fail-open check (Redis unreachable) has no
    window and adds nothing. Denied requests get their headers from the 429
    handler instead.
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint,
    ) -> Response:
        response = await call_next(request)
        result: RateLimitResult | None = getattr(request.state, "rate_limit_info", None)
        if result is not None and result.reset:
            response.headers.update(result.headers())
        return response


app_settings = get_settings()

app = FastAPI(
    title="LearnHub API",
    description="Course catalog, enrollment and progress tracking with token-based auth.",
    version="0.1.0",
    lifespan=lifespan,
)


# Domain error -> HTTP status. Subclasses match their base (e.g. all NotFoundError).
ERROR_STATUS: dict[type[Exception], int] = {
    DuplicateEmailError: status.HTTP_409_CONFLICT,
    InvalidCredentialsError: status.HTTP_401_UNAUTHORIZED,
    InvalidRefreshTokenError: status.HTTP_401_UNAUTHORIZED,
    RefreshTokenExpiredError: status.HTTP_401_UNAUTHORIZED,
    InvalidResetTokenError: status.HTTP_400_BAD_REQUEST,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    DuplicateSlugError: status.HTTP_409_CONFLICT,
    AlreadyEnrolledError: status.HTTP_409_CONFLICT,
    NotEnrolledError: status.HTTP_403_FORBIDDEN,
    CourseAccessDeniedError: status.HTTP_403_FORBIDDEN,
}


async def domain_exception_handler(_request: Request, exc: Exception) -> JSONResponse:
    """Map a domain exception to its status code with the exception's message."""
    status_code = next(
        code for exc_type, code in ERROR_STATUS.items() if isinstance(exc, exc_type)
    )
    return JSONResponse(status_code=status_code, content={"detail": str(exc)})


for _exc_type in ERROR_STATUS:
    app.add_exception_handler(_exc_type, domain_exception_handler)


@app.exception_handler(InvalidTokenError)
async def invalid_token_exception_handler(
    _request: Request, exc: InvalidTokenError,
) -> JSONResponse:
    """Handle missing or bad access tokens."""
    return JSONResponse(
        status_code=status.HTTP_401_UNAUTHORIZED,
        content={"detail": str(exc)},
        headers={"WWW-Authenticate": "Bearer"},
    )


@app.exception_handler(RateLimitExceededError)
async def rate_limit_exception_handler(
    _request: Request, exc: RateLimitExceededError,
) -> JSONResponse:
    """Handle rate limit exceeded with proper headers."""
    return JSONResponse(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        content={"detail": "Rate limit exceeded. Please try again later."},
        headers=exc.result.headers(),
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Anything unexpected: log it, tell the client nothing specific."""
    logger.exception(
        "unhandled_error method=%s path=%s",
        request.method, request.url.path,
        exc_info=exc,
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"},
    )


# Rate limit headers middleware (runs first, adds headers to successful responses)
app.add_middleware(RateLimitHeadersMiddleware)

# Security headers middleware (runs after CORS, adds headers to responses)
app.add_middleware(SecurityHeadersMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=app_settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router)
app.include_router(auth.router)
app.include_router(users.router)
app.include_router(categories.router)
app.include_router(categories.admin_router)
app.include_router(courses.router)
app.include_router(courses.admin_router)
app.include_router(lessons.router)
