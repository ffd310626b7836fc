"""
Notifications domain — live unread count.
"""
from __future__ import annotations

import uuid
from collections.abc import AsyncIterator

from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app import live
from app.notifications import service
from app.notifications.constants import unread_channel


def watch_unread_count(
    factory: async_sessionmaker[AsyncSession],
    user_id: uuid.UUID,
    *,
    redis: Redis | None = None,
    interval: float | None = None,
) -> AsyncIterator[int]:
    """Yield the current unread count, then every change to it."""
    return live.watch(
        factory,
        unread_channel(user_id),
        lambda session: service.count_unread(session, user_id),
        redis=redis,
        interval=interval,
    )
