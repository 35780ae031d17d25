"""Lesson progress endpoints."""
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_async_session, get_current_user
from models.progress import Progress
from models.user import User
from schemas.progress import ProgressResponse, ProgressUpdate
from services import progress_service

router = APIRouter(prefix="/lessons", tags=["lessons"])


@router.post("/{lesson_id}/progress", response_model=ProgressResponse)
async def record_progress(
    lesson_id: UUID,
    data: ProgressUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
) -> Progress:
    """Report the playback position for a lesson. Requires enrollment."""
    return await progress_service.record_progress(
        db, current_user.id, lesson_id, data.position_seconds, data.completed,
    )
