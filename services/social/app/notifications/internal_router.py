from __future__ import annotations

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.live import Wakeups, get_wakeups
from app.notifications import controller
from app.notifications.schemas import ContentEventRequest

router = APIRouter(prefix="/notifications/internal", tags=["Notifications"])


@router.post(
    "",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Internal: fan out a content event (service-to-service).",
    description="Likes, comments, mentions and story views. Self-targeted events are dropped.",
)
async def create_notification_internal(
    body: ContentEventRequest,
    db: AsyncSession = Depends(get_db),
    wakeups: Wakeups = Depends(get_wakeups),
) -> None:
    await controller.emit_content_event(db, wakeups, body)
