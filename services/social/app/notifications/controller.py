"""
Notifications domain — request orchestration.
"""
from __future__ import annotations

from collections.abc import AsyncIterator
from uuid import UUID

from pydantic import TypeAdapter
from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.live import Wakeups
from app.notifications import fanout, service
from app.notifications.models import Notification
from app.notifications.schemas import (
    ClearedResponse,
    ContentEventRequest,
    NotificationItem,
    NotificationsPageResponse,
    UnreadCountResponse,
)
from app.notifications.stream import watch_unread_count
from app.profile import service as profile_svc
from app.retry import with_read_retry
from shared.events.schemas import GraphEvent

_item_adapter: TypeAdapter[NotificationItem] = TypeAdapter(NotificationItem)


def to_item(n: Notification) -> NotificationItem:
    data = dict(n.context or {})
    data.update(
        id=n.notification_id,
        type=n.type.value,
        actor_id=n.actor_id,
        message=n.message,
        is_read=n.is_read,
        created_at=n.created_at,
        follow_request_id=n.follow_request_id,
        action_taken=n.action_taken.value if n.action_taken is not None else None,
    )
    return _item_adapter.validate_python(data)


async def get_notifications(
    session: AsyncSession,
    user_id: UUID,
    limit: int,
    offset: int,
    only_unread: bool,
) -> NotificationsPageResponse:
    items, total = await with_read_retry(
        session,
        lambda: service.list_notifications(session, user_id, limit, offset, only_unread),
    )
    return NotificationsPageResponse(
        items=[to_item(n) for n in items],
        total=total,
        limit=limit,
        offset=offset,
    )


async def unread_count(session: AsyncSession, user_id: UUID) -> UnreadCountResponse:
    count = await with_read_retry(session, lambda: service.count_unread(session, user_id))
    return UnreadCountResponse(unread_count=count)


async def unread_count_events(
    factory: async_sessionmaker[AsyncSession],
    user_id: UUID,
    redis: Redis | None,
) -> AsyncIterator[str]:
    """Server-Sent Events frames for the unread-count stream."""
    async for count in watch_unread_count(factory, user_id, redis=redis):
        payload = UnreadCountResponse(unread_count=count).model_dump_json()
        yield f"event: unread_count\ndata: {payload}\n\n"


async def mark_read(
    session: AsyncSession, wakeups: Wakeups, user_id: UUID, notification_id: UUID
) -> None:
    await service.mark_as_read(session, user_id, notification_id)
    await wakeups.commit_and_schedule(session)


async def mark_all_read(
    session: AsyncSession, wakeups: Wakeups, user_id: UUID
) -> ClearedResponse:
    count = await service.mark_all_as_read(session, user_id)
    await wakeups.commit_and_schedule(session)
    return ClearedResponse(count=count)


async def delete_notification(
    session: AsyncSession, wakeups: Wakeups, user_id: UUID, notification_id: UUID
) -> None:
    await service.delete_notification(session, user_id, notification_id)
    await wakeups.commit_and_schedule(session)


async def clear_all(
    session: AsyncSession, wakeups: Wakeups, user_id: UUID
) -> ClearedResponse:
    count = await service.clear_all(session, user_id)
    await wakeups.commit_and_schedule(session)
    return ClearedResponse(count=count)


async def emit_content_event(
    session: AsyncSession, wakeups: Wakeups, body: ContentEventRequest
) -> None:
    await profile_svc.get_profile(session, body.to_user)
    payload = body.model_dump(
        include={"content_id", "content_type", "comment_text", "story_id"},
        exclude_none=True,
    )
    await fanout.emit(session, GraphEvent(
        type=body.type,
        from_user=body.from_user,
        to_user=body.to_user,
        actor=body.actor,
        payload=payload,
    ))
    await wakeups.commit_and_schedule(session)
