"""
Live reads: pub/sub wake-ups plus a polling fallback.

Writers mark the Redis channels their transaction touched on
``session.info``; Wakeups.commit_and_schedule commits and publishes those
channels in a background task.  watch() re-reads a value in a short-lived
session whenever its channel is nudged, or after ``interval`` seconds without
a nudge, and yields only when the value differs from the last one.
"""
from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Awaitable, Callable, Iterable
from typing import TypeVar

from fastapi import BackgroundTasks, Depends
from redis.asyncio import Redis
from redis.asyncio.client import PubSub
from redis.exceptions import RedisError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.config import get_settings
from app.redis_client import get_redis
from app.retry import with_read_retry

logger = logging.getLogger(__name__)

T = TypeVar("T")

# session.info key holding the channels changed in this transaction
CHANGED_CHANNELS_KEY = "changed_channels"


def mark_changed(session: AsyncSession, channel: str) -> None:
    session.info.setdefault(CHANGED_CHANNELS_KEY, set()).add(channel)


def pop_changed(session: AsyncSession) -> set[str]:
    return session.info.pop(CHANGED_CHANNELS_KEY, set())


async def publish_changed(redis: Redis, channels: Iterable[str]) -> None:
    """Nudge watchers. Runs after commit; watchers also re-read periodically."""
    for channel in channels:
        try:
            await redis.publish(channel, "1")
        except RedisError as exc:
            logger.warning("Wake-up on %s not published: %s", channel, exc)


class Wakeups:
    """Publishes the channels touched by the request's transaction once it has committed."""

    def __init__(self, background_tasks: BackgroundTasks, redis: Redis) -> None:
        self._background_tasks = background_tasks
        self._redis = redis

    async def commit_and_schedule(self, session: AsyncSession) -> None:
        """Commit now so woken watchers re-read against the new rows."""
        await session.commit()
        channels = pop_changed(session)
        if channels:
            self._background_tasks.add_task(publish_changed, self._redis, sorted(channels))


def get_wakeups(
    background_tasks: BackgroundTasks,
    redis: Redis = Depends(get_redis),
) -> Wakeups:
    return Wakeups(background_tasks, redis)


async def _subscribe(redis: Redis | None, channel: str) -> PubSub | None:
    if redis is None:
        return None
    pubsub = redis.pubsub()
    try:
        await pubsub.subscribe(channel)
    except RedisError as exc:
        logger.warning("Watcher on %s falls back to polling: %s", channel, exc)
        await pubsub.aclose()
        return None
    return pubsub


async def _read(
    factory: async_sessionmaker[AsyncSession],
    read: Callable[[AsyncSession], Awaitable[T]],
) -> T:
    async with factory() as session:
        return await with_read_retry(session, lambda: read(session))


async def watch(
    factory: async_sessionmaker[AsyncSession],
    channel: str,
    read: Callable[[AsyncSession], Awaitable[T]],
    *,
    redis: Redis | None = None,
    interval: float | None = None,
) -> AsyncIterator[T]:
    """Yield the current value of ``read``, then every change to it."""
    if interval is None:
        interval = get_settings().stream_poll_interval_seconds
    pubsub = await _subscribe(redis, channel)
    first = True
    last = None
    try:
        while True:
            value = await _read(factory, read)
            if first or value != last:
                first = False
                last = value
                yield value
            if pubsub is None:
                await asyncio.sleep(interval)
                continue
            try:
                await pubsub.get_message(ignore_subscribe_messages=True, timeout=interval)
            except RedisError as exc:
                logger.warning("Watcher on %s lost pub/sub, polling: %s", channel, exc)
                await pubsub.aclose()
                pubsub = None
    finally:
        if pubsub is not None:
            await pubsub.aclose()
