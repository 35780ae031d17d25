"""Health check endpoints."""
import logging

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from db.session import get_async_session


logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    database: str
    redis: str


@router.get("/health", response_model=HealthResponse)
async def health_check(
    request: Request,
    db: AsyncSession = Depends(get_async_session),
) -> HealthResponse:
    """
    Check application, database and Redis health.

    Redis being down only degrades caching and rate limiting, so it never makes
    the status "unhealthy" on its own.
    """
    db_status = "healthy"
    try:
        await db.execute(text("SELECT 1"))
    except (SQLAlchemyError, OSError):
        logger.exception("Database health check failed")
        db_status = "unhealthy"

    redis_client = getattr(request.app.state, "redis_client", None)
    if redis_client is None or not redis_client.is_connected:
        redis_status = "unavailable"
    elif await redis_client.ping():
        redis_status = "healthy"
    else:
        redis_status = "unhealthy"

    if db_status != "healthy":
        overall = "unhealthy"
    elif redis_status != "healthy":
        overall = "degraded"
    else:
        overall = "healthy"
    return HealthResponse(status=overall, database=db_status, redis=redis_status)
