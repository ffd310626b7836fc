"""
Social graph domain — pure business logic (zero FastAPI imports).

Follow graph manager: edges, follow requests, privacy gate and the
notifications each mutation fans out.  Every function works inside the
caller's transaction; get_db commits on success and rolls back on error, so
a mutation is applied in full or not at all.

Counters are only ever changed through app.social_graph.edges.
"""
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import timedelta

import sqlalchemy as sa
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app import live
from app.exceptions import (
    AlreadyFollowing,
    CannotFollowSelf,
    FollowRequestNotApplied,
    NotRequestTarget,
)
from app.notifications import fanout
from app.notifications import service as notification_svc
from app.notifications.constants import RequestAction
from app.profile import service as profile_svc
from app.profile.models import UserProfile
from app.social_graph import edges, requests
from app.social_graph.constants import FollowRequestStatus, FollowState, stats_channel
from app.social_graph.models import Follow, FollowRequest
from shared.events.schemas import ActorSnapshot, GraphEvent

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FollowOutcome:
    state: FollowState
    # False when the call changed nothing (already following / already requested)
    created: bool
    request: FollowRequest | None = None


@dataclass(frozen=True)
class FollowStats:
    followers_count: int
    following_count: int


@dataclass(frozen=True)
class Relationship:
    is_following: bool
    is_followed_by: bool
    has_pending_request: bool
    can_see_stories: bool


# ── Follow / unfollow ──────────────────────────────────────────────────────────

async def follow(
    session: AsyncSession,
    follower_id: uuid.UUID,
    followee_id: uuid.UUID,
) -> FollowOutcome:
    """Follow a public account, or file a follow request for a private one."""
    if follower_id == followee_id:
        raise CannotFollowSelf()
    followee = await profile_svc.get_profile(session, followee_id)
    if await edges.edge_exists(session, follower_id, followee_id):
        return FollowOutcome(FollowState.FOLLOWING, created=False)
    if followee.is_private:
        return await send_follow_request(session, follower_id, followee_id)

    follower = await profile_svc.ensure_profile(session, follower_id)
    created = await edges.add_edge(session, follower_id, followee_id)
    if created:
        await _emit_follow(session, follower, followee_id)
        logger.info("User %s followed %s", follower_id, followee_id)
    return FollowOutcome(FollowState.FOLLOWING, created=created)


async def unfollow(
    session: AsyncSession,
    follower_id: uuid.UUID,
    followee_id: uuid.UUID,
) -> bool:
    """Remove the edge. Returns False when there was nothing to remove."""
    if follower_id == followee_id:
        raise CannotFollowSelf()
    removed = await edges.remove_edge(session, follower_id, followee_id)
    if removed:
        logger.info("User %s unfollowed %s", follower_id, followee_id)
    return removed


async def _emit_follow(
    session: AsyncSession, follower: UserProfile, followee_id: uuid.UUID
) -> None:
    await fanout.emit(session, GraphEvent(
        type="follow",
        from_user=follower.id,
        to_user=followee_id,
        actor=profile_svc.snapshot(follower),
    ))


# ── Follow requests ────────────────────────────────────────────────────────────

async def send_follow_request(
    session: AsyncSession,
    from_user_id: uuid.UUID,
    to_user_id: uuid.UUID,
    from_user_info: ActorSnapshot | None = None,
) -> FollowOutcome:
    """
    Ask to follow ``to_user_id``.

    A public target is followed immediately; the request is still recorded,
    already accepted.  For a private target a pending request is created, or
    the existing one returned unchanged.
    """
    if from_user_id == to_user_id:
        raise CannotFollowSelf()
    target = await profile_svc.get_profile(session, to_user_id)
    requester = await profile_svc.ensure_profile(session, from_user_id)
    if await edges.edge_exists(session, from_user_id, to_user_id):
        raise AlreadyFollowing()

    existing = await requests.find_pending(session, from_user_id, to_user_id)
    if existing is not None:
        return FollowOutcome(FollowState.REQUESTED, created=False, request=existing)

    info = from_user_info or profile_svc.snapshot(requester)

    if not target.is_private:
        request = await requests.record_accepted(session, from_user_id, to_user_id, info)
        created = await edges.add_edge(session, from_user_id, to_user_id)
        if created:
            await _emit_follow(session, requester, to_user_id)
            logger.info("User %s followed %s (public account)", from_user_id, to_user_id)
        return FollowOutcome(FollowState.FOLLOWING, created=created, request=request)

    request, created = await requests.create_pending(session, from_user_id, to_user_id, info)
    if created:
        await fanout.emit(session, GraphEvent(
            type="follow_request",
            from_user=from_user_id,
            to_user=to_user_id,
            actor=info,
            payload={"follow_request_id": str(request.request_id)},
        ))
        logger.info("User %s requested to follow %s", from_user_id, to_user_id)
    return FollowOutcome(FollowState.REQUESTED, created=created, request=request)


async def accept_follow_request(
    session: AsyncSession,
    request_id: uuid.UUID,
    acting_user_id: uuid.UUID,
) -> FollowRequest:
    """
    Accept a pending request: status, edge, counters and both notifications
    change together.  Accepting an already-accepted request is a no-op;
    accepting a rejected one raises RequestAlreadyResolved.

    If the store fails part-way the transaction is rolled back, the request
    stays pending, and FollowRequestNotApplied tells the caller to retry.
    """
    request = await requests.get_request(session, request_id, for_update=True)
    if request.to_user_id != acting_user_id:
        raise NotRequestTarget()
    from_user_id = request.from_user_id
    try:
        if not await requests.resolve(session, request, FollowRequestStatus.ACCEPTED):
            return request
        accepter = await profile_svc.get_profile(session, acting_user_id)
        await edges.add_edge(session, from_user_id, acting_user_id)
        await fanout.emit(session, GraphEvent(
            type="follow_accepted",
            from_user=acting_user_id,
            to_user=from_user_id,
            actor=profile_svc.snapshot(accepter),
            payload={"follow_request_id": str(request_id)},
        ))
        await fanout.resolve_request_notification(session, request_id, RequestAction.ACCEPTED)
    except SQLAlchemyError as exc:
        logger.warning("Accepting follow request %s failed, rolled back: %s", request_id, exc)
        await session.rollback()
        live.pop_changed(session)
        raise FollowRequestNotApplied() from exc

    fanout.mark_unread_changed(session, acting_user_id)
    logger.info("User %s accepted follow request from %s", acting_user_id, from_user_id)
    return request


async def reject_follow_request(
    session: AsyncSession,
    request_id: uuid.UUID,
    acting_user_id: uuid.UUID,
) -> FollowRequest:
    """Reject a pending request. No edge, no counters, no notification to the requester.

    Rejecting a request that is already resolved, either way, returns it unchanged.
    """
    request = await requests.get_request(session, request_id, for_update=True)
    if request.to_user_id != acting_user_id:
        raise NotRequestTarget()
    if not await requests.resolve(session, request, FollowRequestStatus.REJECTED):
        return request

    await fanout.resolve_request_notification(session, request_id, RequestAction.REJECTED)
    fanout.mark_unread_changed(session, acting_user_id)
    logger.info("User %s rejected follow request from %s", acting_user_id, request.from_user_id)
    return request


async def cancel_follow_request(
    session: AsyncSession,
    from_user_id: uuid.UUID,
    to_user_id: uuid.UUID,
) -> bool:
    """Withdraw the caller's pending request. Returns False when nothing was pending."""
    request = await requests.find_pending(session, from_user_id, to_user_id)
    if request is None:
        return False
    if await fanout.retract_request_notification(session, request.request_id):
        fanout.mark_unread_changed(session, to_user_id)
    await requests.delete_request(session, request)
    logger.info("User %s cancelled follow request to %s", from_user_id, to_user_id)
    return True


async def get_follow_request(
    session: AsyncSession,
    from_user_id: uuid.UUID,
    to_user_id: uuid.UUID,
) -> FollowRequest | None:
    """The pending request from → to, if any."""
    return await requests.find_pending(session, from_user_id, to_user_id)


async def get_follow_requests(
    session: AsyncSession, user_id: uuid.UUID
) -> list[FollowRequest]:
    return await requests.list_pending_for(session, user_id)


async def cleanup_resolved_requests(
    session: AsyncSession, older_than: timedelta
) -> int:
    return await requests.cleanup_resolved_requests(session, older_than)


# ── Reads ──────────────────────────────────────────────────────────────────────

async def is_following(
    session: AsyncSession, follower_id: uuid.UUID, followee_id: uuid.UUID
) -> bool:
    return await edges.edge_exists(session, follower_id, followee_id)


async def get_user_followers(session: AsyncSession, user_id: uuid.UUID) -> list[uuid.UUID]:
    """Ids of everyone following ``user_id``, most recent first."""
    result = await session.execute(
        sa.select(Follow.follower_id)
        .where(Follow.followee_id == user_id)
        .order_by(Follow.created_at.desc(), Follow.follower_id)
    )
    return list(result.scalars().all())


async def get_user_following(session: AsyncSession, user_id: uuid.UUID) -> list[uuid.UUID]:
    """Ids of everyone ``user_id`` follows, most recent first."""
    result = await session.execute(
        sa.select(Follow.followee_id)
        .where(Follow.follower_id == user_id)
        .order_by(Follow.created_at.desc(), Follow.followee_id)
    )
    return list(result.scalars().all())


async def get_user_follow_stats(session: AsyncSession, user_id: uuid.UUID) -> FollowStats:
    """Read the denormalized counters; nothing is recomputed."""
    profile = await profile_svc.get_profile(session, user_id)
    return FollowStats(profile.followers_count, profile.following_count)


async def reconcile_follow_counts(session: AsyncSession, user_id: uuid.UUID) -> FollowStats:
    """Recompute both counters from the edge set and write them back."""
    profile = await profile_svc.get_profile(session, user_id)
    followers, following = await edges.count_edges(session, user_id)
    if (profile.followers_count, profile.following_count) != (followers, following):
        logger.warning(
            "Follow counters for %s drifted: followers %d→%d, following %d→%d",
            user_id, profile.followers_count, followers, profile.following_count, following,
        )
        profile.followers_count = followers
        profile.following_count = following
        await session.flush()
        live.mark_changed(session, stats_channel(user_id))
    return FollowStats(followers, following)


async def can_see_user_stories(
    session: AsyncSession, viewer_id: uuid.UUID, owner_id: uuid.UUID
) -> bool:
    if viewer_id == owner_id:
        return True
    owner = await profile_svc.find_profile(session, owner_id)
    if owner is None:
        return False
    if not owner.is_private:
        return True
    return await edges.edge_exists(session, viewer_id, owner_id)


async def get_relationship(
    session: AsyncSession, viewer_id: uuid.UUID, target_id: uuid.UUID
) -> Relationship:
    await profile_svc.get_profile(session, target_id)
    pending = await requests.find_pending(session, viewer_id, target_id)
    return Relationship(
        is_following=await edges.edge_exists(session, viewer_id, target_id),
        is_followed_by=await edges.edge_exists(session, target_id, viewer_id),
        has_pending_request=pending is not None,
        can_see_stories=await can_see_user_stories(session, viewer_id, target_id),
    )


async def get_following(
    session: AsyncSession,
    user_id: uuid.UUID,
    *,
    viewer_id: uuid.UUID,
    page: int,
    size: int,
) -> tuple[list[tuple[Follow, UserProfile, bool]], int]:
    """
    Return (rows, total) where each row is (Follow, UserProfile[followee], is_followed_by_viewer).
    """
    total_r = await session.execute(
        sa.select(sa.func.count()).select_from(Follow).where(Follow.follower_id == user_id)
    )
    total = total_r.scalar_one()

    rows_r = await session.execute(
        sa.select(Follow, UserProfile)
        .join(UserProfile, UserProfile.id == Follow.followee_id)
        .where(Follow.follower_id == user_id)
        .order_by(Follow.created_at.desc(), Follow.follow_id)
        .limit(size)
        .offset((page - 1) * size)
    )
    rows = rows_r.all()

    followed_set = await _batch_followed_by(session, viewer_id, [u.id for _, u in rows])
    return [(f, u, u.id in followed_set) for f, u in rows], total


async def get_followers(
    session: AsyncSession,
    user_id: uuid.UUID,
    *,
    viewer_id: uuid.UUID,
    page: int,
    size: int,
) -> tuple[list[tuple[Follow, UserProfile, bool]], int]:
    """
    Return (rows, total) where each row is (Follow, UserProfile[follower], is_followed_by_viewer).
    """
    total_r = await session.execute(
        sa.select(sa.func.count()).select_from(Follow).where(Follow.followee_id == user_id)
    )
    total = total_r.scalar_one()

    rows_r = await session.execute(
        sa.select(Follow, UserProfile)
        .join(UserProfile, UserProfile.id == Follow.follower_id)
        .where(Follow.followee_id == user_id)
        .order_by(Follow.created_at.desc(), Follow.follow_id)
        .limit(size)
        .offset((page - 1) * size)
    )
    rows = rows_r.all()

    followed_set = await _batch_followed_by(session, viewer_id, [u.id for _, u in rows])
    return [(f, u, u.id in followed_set) for f, u in rows], total


async def _batch_followed_by(
    session: AsyncSession,
    viewer_id: uuid.UUID,
    target_ids: list[uuid.UUID],
) -> set[uuid.UUID]:
    """Return the subset of target_ids that viewer_id follows."""
    if not target_ids:
        return set()
    result = await session.execute(
        sa.select(Follow.followee_id).where(
            Follow.follower_id == viewer_id,
            Follow.followee_id.in_(target_ids),
        )
    )
    return {row[0] for row in result.all()}


# ── Account deletion ───────────────────────────────────────────────────────────

async def delete_account(session: AsyncSession, user_id: uuid.UUID) -> None:
    """
    Delete a profile and everything hanging off it.

    Edges are removed one by one through the edge rule so every counterpart's
    counter is decremented before the rows disappear.
    """
    profile = await profile_svc.get_profile(session, user_id)
    for followee_id in await get_user_following(session, user_id):
        await edges.remove_edge(session, user_id, followee_id)
    for follower_id in await get_user_followers(session, user_id):
        await edges.remove_edge(session, follower_id, user_id)

    notifications = await notification_svc.delete_for_account(session, user_id)
    request_count = await requests.delete_for_user(session, user_id)
    await session.delete(profile)
    await session.flush()
    # Ends any follow-stats stream on this profile
    live.mark_changed(session, stats_channel(user_id))
    logger.info(
        "Deleted account %s (%d notifications, %d follow requests)",
        user_id, notifications, request_count,
    )
