"""
Notifications domain — user-facing routes.

Routes under /api/v1/notifications:
  GET    ""                        My notifications, newest first
  GET    /unread-count             Unread count
  GET    /unread-count/stream      Unread count as Server-Sent Events
  POST   /mark-all-read            Mark all read
  POST   /{notification_id}/read   Mark one read (owner only)
  DELETE /{notification_id}        Delete one (owner only)
  DELETE ""                        Clear all
"""
from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import StreamingResponse
from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db, get_session_factory
from app.dependencies import get_current_user
from app.live import Wakeups, get_wakeups
from app.notifications import controller
from app.notifications.schemas import (
    ClearedResponse,
    NotificationsPageResponse,
    UnreadCountResponse,
)
from app.redis_client import get_redis
from shared.models.user import CurrentUser

router = APIRouter(prefix="/notifications", tags=["Notifications"])


@router.get(
    "",
    response_model=NotificationsPageResponse,
    summary="List my notifications",
    description="Returns notifications for the authenticated user, newest first.",
)
async def list_notifications(
    limit: int = Query(20, ge=1, le=50, description="Page size."),
    offset: int = Query(0, ge=0, description="Pagination offset."),
    only_unread: bool = Query(
        default=False,
        description="When true, return only unread notifications.",
    ),
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> NotificationsPageResponse:
    return await controller.get_notifications(
        db, current_user.id, limit=limit, offset=offset, only_unread=only_unread
    )


@router.get(
    "/unread-count",
    response_model=UnreadCountResponse,
    summary="Count my unread notifications",
)
async def unread_count(
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> UnreadCountResponse:
    return await controller.unread_count(db, current_user.id)


@router.get(
    "/unread-count/stream",
    summary="Stream my unread count (Server-Sent Events)",
    description=(
        "Emits an `unread_count` event immediately and again whenever the count "
        "changes. Closes when the client disconnects."
    ),
    response_class=StreamingResponse,
)
async def unread_count_stream(
    current_user: CurrentUser = Depends(get_current_user),
    redis: Redis = Depends(get_redis),
) -> StreamingResponse:
    events = controller.unread_count_events(get_session_factory(), current_user.id, redis)
    return StreamingResponse(
        events,
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


@router.post(
    "/mark-all-read",
    response_model=ClearedResponse,
    summary="Mark all my notifications as read",
)
async def mark_all_read(
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    wakeups: Wakeups = Depends(get_wakeups),
) -> ClearedResponse:
    return await controller.mark_all_read(db, wakeups, current_user.id)


@router.post(
    "/{notification_id}/read",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Mark a single notification as read",
)
async def mark_read(
    notification_id: UUID,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    wakeups: Wakeups = Depends(get_wakeups),
) -> None:
    await controller.mark_read(db, wakeups, current_user.id, notification_id)


@router.delete(
    "/{notification_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a single notification",
)
async def delete_notification(
    notification_id: UUID,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    wakeups: Wakeups = Depends(get_wakeups),
) -> None:
    await controller.delete_notification(db, wakeups, current_user.id, notification_id)


@router.delete(
    "",
    response_model=ClearedResponse,
    summary="Delete all my notifications",
)
async def clear_all(
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    wakeups: Wakeups = Depends(get_wakeups),
) -> ClearedResponse:
    return await controller.clear_all(db, wakeups, current_user.id)
