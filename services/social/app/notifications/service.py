"""
Notifications domain — read model and owner-only mutations (zero FastAPI imports).

Every query is scoped by the recipient's user_id: a notification is only
ever read, marked or deleted by its owner.
"""
from __future__ import annotations

import uuid

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import NotificationNotFound
from app.notifications.fanout import mark_unread_changed
from app.notifications.models import Notification


async def list_notifications(
    session: AsyncSession,
    user_id: uuid.UUID,
    limit: int,
    offset: int,
    only_unread: bool = False,
) -> tuple[list[Notification], int]:
    """Newest first, with the total matching count."""
    base = sa.select(Notification).where(Notification.user_id == user_id)
    if only_unread:
        base = base.where(Notification.is_read.is_(False))

    count_query = sa.select(sa.func.count()).select_from(base.subquery())
    total = (await session.execute(count_query)).scalar_one()

    rows = await session.execute(
        base.order_by(Notification.created_at.desc(), Notification.notification_id)
        .offset(offset)
        .limit(limit)
    )
    return list(rows.scalars().all()), total


async def count_unread(session: AsyncSession, user_id: uuid.UUID) -> int:
    result = await session.execute(
        sa.select(sa.func.count())
        .select_from(Notification)
        .where(Notification.user_id == user_id, Notification.is_read.is_(False))
    )
    return result.scalar_one()


async def mark_as_read(
    session: AsyncSession, user_id: uuid.UUID, notification_id: uuid.UUID
) -> None:
    result = await session.execute(
        sa.update(Notification)
        .where(
            Notification.user_id == user_id,
            Notification.notification_id == notification_id,
        )
        .values(is_read=True)
    )
    if result.rowcount == 0:
        raise NotificationNotFound()
    mark_unread_changed(session, user_id)


async def mark_all_as_read(session: AsyncSession, user_id: uuid.UUID) -> int:
    result = await session.execute(
        sa.update(Notification)
        .where(Notification.user_id == user_id, Notification.is_read.is_(False))
        .values(is_read=True)
    )
    if result.rowcount:
        mark_unread_changed(session, user_id)
    return result.rowcount


async def delete_notification(
    session: AsyncSession, user_id: uuid.UUID, notification_id: uuid.UUID
) -> None:
    result = await session.execute(
        sa.delete(Notification).where(
            Notification.user_id == user_id,
            Notification.notification_id == notification_id,
        )
    )
    if result.rowcount == 0:
        raise NotificationNotFound()
    mark_unread_changed(session, user_id)


async def clear_all(session: AsyncSession, user_id: uuid.UUID) -> int:
    result = await session.execute(
        sa.delete(Notification).where(Notification.user_id == user_id)
    )
    if result.rowcount:
        mark_unread_changed(session, user_id)
    return result.rowcount


async def delete_for_account(session: AsyncSession, user_id: uuid.UUID) -> int:
    """Remove notifications the user received or caused (account deletion)."""
    result = await session.execute(
        sa.delete(Notification).where(
            sa.or_(Notification.user_id == user_id, Notification.actor_id == user_id)
        )
    )
    return result.rowcount
