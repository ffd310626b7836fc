"""
Social graph domain — live follow stats and pending requests.

Both watchers read through app.live: they re-read on a pub/sub wake-up for
the user's channel, or every poll interval, and yield only on change.
"""
from __future__ import annotations

import uuid
from collections.abc import AsyncIterator

from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app import live
from app.profile import service as profile_svc
from app.social_graph import requests
from app.social_graph.constants import requests_channel, stats_channel
from app.social_graph.schemas import (
    FollowRequestListResponse,
    FollowRequestResponse,
    FollowStatsResponse,
)


async def _read_stats(session: AsyncSession, user_id: uuid.UUID) -> FollowStatsResponse | None:
    profile = await profile_svc.find_profile(session, user_id)
    if profile is None:
        return None
    return FollowStatsResponse(
        followers_count=profile.followers_count,
        following_count=profile.following_count,
    )


async def _read_pending(session: AsyncSession, user_id: uuid.UUID) -> FollowRequestListResponse:
    pending = await requests.list_pending_for(session, user_id)
    return FollowRequestListResponse(
        items=[FollowRequestResponse.model_validate(r) for r in pending],
        total=len(pending),
    )


def watch_follow_stats(
    factory: async_sessionmaker[AsyncSession],
    user_id: uuid.UUID,
    *,
    redis: Redis | None = None,
    interval: float | None = None,
) -> AsyncIterator[FollowStatsResponse | None]:
    """Yield the user's counters, then every change; None once the profile is gone."""
    return live.watch(
        factory,
        stats_channel(user_id),
        lambda session: _read_stats(session, user_id),
        redis=redis,
        interval=interval,
    )


def watch_follow_requests(
    factory: async_sessionmaker[AsyncSession],
    user_id: uuid.UUID,
    *,
    redis: Redis | None = None,
    interval: float | None = None,
) -> AsyncIterator[FollowRequestListResponse]:
    """Yield the pending requests addressed to the user, then every change to them."""
    return live.watch(
        factory,
        requests_channel(user_id),
        lambda session: _read_pending(session, user_id),
        redis=redis,
        interval=interval,
    )
