"""
Social graph domain — request orchestration.

Mutations commit through Wakeups so watchers of the touched channels
(unread counts, follow stats, pending requests) are nudged only once the new
rows are visible.  Reads go through the bounded read retry.
"""
from __future__ import annotations

import uuid
from collections.abc import AsyncIterator
from datetime import timedelta

from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.exceptions import PrivateAccount
from app.live import Wakeups
from app.profile import service as profile_svc
from app.retry import with_read_retry
from app.social_graph import service as svc
from app.social_graph.schemas import (
    CleanupResponse,
    FollowListItem,
    FollowListResponse,
    FollowRequestListResponse,
    FollowRequestResponse,
    FollowResponse,
    FollowStatsResponse,
    RelationshipResponse,
    SocialUserRef,
    StoryVisibilityResponse,
    UserIdListResponse,
)
from app.social_graph.stream import watch_follow_requests, watch_follow_stats
from shared.events.schemas import ActorSnapshot


def _outcome(outcome: svc.FollowOutcome) -> FollowResponse:
    return FollowResponse(
        state=outcome.state,
        created=outcome.created,
        request_id=outcome.request.request_id if outcome.request is not None else None,
    )


def _list_response(rows, total: int, page: int, size: int) -> FollowListResponse:
    return FollowListResponse(
        items=[
            FollowListItem(
                id=f.follow_id,
                user=SocialUserRef.model_validate(u),
                created_at=f.created_at,
                is_followed_by_me=followed,
            )
            for f, u, followed in rows
        ],
        total=total,
        page=page,
        size=size,
    )


# ── Mutations ──────────────────────────────────────────────────────────────────

async def follow_user(
    session: AsyncSession,
    wakeups: Wakeups,
    follower_id: uuid.UUID,
    followee_id: uuid.UUID,
) -> FollowResponse:
    outcome = await svc.follow(session, follower_id, followee_id)
    await wakeups.commit_and_schedule(session)
    return _outcome(outcome)


async def unfollow_user(
    session: AsyncSession,
    wakeups: Wakeups,
    follower_id: uuid.UUID,
    followee_id: uuid.UUID,
) -> None:
    await svc.unfollow(session, follower_id, followee_id)
    await wakeups.commit_and_schedule(session)


async def send_follow_request(
    session: AsyncSession,
    wakeups: Wakeups,
    from_user_id: uuid.UUID,
    to_user_id: uuid.UUID,
    from_user_info: ActorSnapshot | None,
) -> FollowResponse:
    outcome = await svc.send_follow_request(session, from_user_id, to_user_id, from_user_info)
    await wakeups.commit_and_schedule(session)
    return _outcome(outcome)


async def cancel_follow_request(
    session: AsyncSession,
    wakeups: Wakeups,
    from_user_id: uuid.UUID,
    to_user_id: uuid.UUID,
) -> None:
    await svc.cancel_follow_request(session, from_user_id, to_user_id)
    await wakeups.commit_and_schedule(session)


async def accept_follow_request(
    session: AsyncSession,
    wakeups: Wakeups,
    request_id: uuid.UUID,
    acting_user_id: uuid.UUID,
) -> FollowRequestResponse:
    request = await svc.accept_follow_request(session, request_id, acting_user_id)
    await wakeups.commit_and_schedule(session)
    return FollowRequestResponse.model_validate(request)


async def reject_follow_request(
    session: AsyncSession,
    wakeups: Wakeups,
    request_id: uuid.UUID,
    acting_user_id: uuid.UUID,
) -> FollowRequestResponse:
    request = await svc.reject_follow_request(session, request_id, acting_user_id)
    await wakeups.commit_and_schedule(session)
    return FollowRequestResponse.model_validate(request)


# ── Reads ──────────────────────────────────────────────────────────────────────

async def my_follow_requests(
    session: AsyncSession, user_id: uuid.UUID
) -> FollowRequestListResponse:
    pending = await with_read_retry(session, lambda: svc.get_follow_requests(session, user_id))
    return FollowRequestListResponse(
        items=[FollowRequestResponse.model_validate(r) for r in pending],
        total=len(pending),
    )


async def _ensure_lists_visible(
    session: AsyncSession, viewer_id: uuid.UUID, user_id: uuid.UUID
) -> None:
    """Follow lists of a private account are visible to the owner and followers only."""
    profile = await profile_svc.get_profile(session, user_id)
    if viewer_id == user_id or not profile.is_private:
        return
    if not await svc.is_following(session, viewer_id, user_id):
        raise PrivateAccount()


async def view_user_following(
    session: AsyncSession,
    viewer_id: uuid.UUID,
    user_id: uuid.UUID,
    page: int,
    size: int,
) -> FollowListResponse:
    async def read():
        await _ensure_lists_visible(session, viewer_id, user_id)
        return await svc.get_following(
            session, user_id, viewer_id=viewer_id, page=page, size=size
        )

    rows, total = await with_read_retry(session, read)
    return _list_response(rows, total, page, size)


async def view_user_followers(
    session: AsyncSession,
    viewer_id: uuid.UUID,
    user_id: uuid.UUID,
    page: int,
    size: int,
) -> FollowListResponse:
    async def read():
        await _ensure_lists_visible(session, viewer_id, user_id)
        return await svc.get_followers(
            session, user_id, viewer_id=viewer_id, page=page, size=size
        )

    rows, total = await with_read_retry(session, read)
    return _list_response(rows, total, page, size)


async def follower_ids(
    session: AsyncSession, viewer_id: uuid.UUID, user_id: uuid.UUID
) -> UserIdListResponse:
    async def read():
        await _ensure_lists_visible(session, viewer_id, user_id)
        return await svc.get_user_followers(session, user_id)

    return UserIdListResponse(user_ids=await with_read_retry(session, read))


async def following_ids(
    session: AsyncSession, viewer_id: uuid.UUID, user_id: uuid.UUID
) -> UserIdListResponse:
    async def read():
        await _ensure_lists_visible(session, viewer_id, user_id)
        return await svc.get_user_following(session, user_id)

    return UserIdListResponse(user_ids=await with_read_retry(session, read))


async def follow_stats(session: AsyncSession, user_id: uuid.UUID) -> FollowStatsResponse:
    stats = await with_read_retry(session, lambda: svc.get_user_follow_stats(session, user_id))
    return FollowStatsResponse(
        followers_count=stats.followers_count,
        following_count=stats.following_count,
    )


async def relationship(
    session: AsyncSession, viewer_id: uuid.UUID, user_id: uuid.UUID
) -> RelationshipResponse:
    rel = await with_read_retry(session, lambda: svc.get_relationship(session, viewer_id, user_id))
    return RelationshipResponse(
        user_id=user_id,
        is_following=rel.is_following,
        is_followed_by=rel.is_followed_by,
        has_pending_request=rel.has_pending_request,
        can_see_stories=rel.can_see_stories,
    )


async def story_visibility(
    session: AsyncSession, viewer_id: uuid.UUID, owner_id: uuid.UUID
) -> StoryVisibilityResponse:
    visible = await with_read_retry(
        session, lambda: svc.can_see_user_stories(session, viewer_id, owner_id)
    )
    return StoryVisibilityResponse(can_see_stories=visible)


# ── Live streams ───────────────────────────────────────────────────────────────

async def ensure_user_exists(
    factory: async_sessionmaker[AsyncSession], user_id: uuid.UUID
) -> None:
    async with factory() as session:
        await with_read_retry(session, lambda: profile_svc.get_profile(session, user_id))


async def follow_stats_events(
    factory: async_sessionmaker[AsyncSession],
    user_id: uuid.UUID,
    redis: Redis | None,
) -> AsyncIterator[str]:
    """Server-Sent Events frames for a user's follower / following counters."""
    stream = watch_follow_stats(factory, user_id, redis=redis)
    try:
        async for stats in stream:
            if stats is None:
                break
            yield f"event: follow_stats\ndata: {stats.model_dump_json()}\n\n"
    finally:
        await stream.aclose()


async def follow_request_events(
    factory: async_sessionmaker[AsyncSession],
    user_id: uuid.UUID,
    redis: Redis | None,
) -> AsyncIterator[str]:
    """Server-Sent Events frames for the pending requests addressed to a user."""
    async for pending in watch_follow_requests(factory, user_id, redis=redis):
        yield f"event: follow_requests\ndata: {pending.model_dump_json()}\n\n"


# ── Admin ──────────────────────────────────────────────────────────────────────

async def reconcile_counts(
    session: AsyncSession, wakeups: Wakeups, user_id: uuid.UUID
) -> FollowStatsResponse:
    stats = await svc.reconcile_follow_counts(session, user_id)
    await wakeups.commit_and_schedule(session)
    return FollowStatsResponse(
        followers_count=stats.followers_count,
        following_count=stats.following_count,
    )


async def cleanup_requests(session: AsyncSession, older_than_days: int) -> CleanupResponse:
    deleted = await svc.cleanup_resolved_requests(session, timedelta(days=older_than_days))
    return CleanupResponse(deleted=deleted, older_than_days=older_than_days)
