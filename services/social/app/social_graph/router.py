"""
Social graph domain — user-facing routes.

Routes under /api/v1/users (same prefix as the profile router, different
sub-paths):
  GET    /me/follow-requests          Pending requests addressed to me
  GET    /me/follow-requests/stream   Pending requests as Server-Sent Events
  POST   /{user_id}/follow            Follow (50/hour); private accounts get a request
  DELETE /{user_id}/follow            Unfollow
  POST   /{user_id}/follow-requests   Send a follow request
  DELETE /{user_id}/follow-requests   Withdraw my pending request
  GET    /{user_id}/following         Paginated following list (403 if private and not followed)
  GET    /{user_id}/followers         Paginated followers list (403 if private and not followed)
  GET    /{user_id}/following-ids     Full id list
  GET    /{user_id}/follower-ids      Full id list
  GET    /{user_id}/follow-stats      Denormalized counters
  GET    /{user_id}/follow-stats/stream  Counters as Server-Sent Events
  GET    /{user_id}/relationship      Follow-button state
  GET    /{user_id}/stories/visibility

Routes under /api/v1/follow-requests:
  POST   /{request_id}/accept
  POST   /{request_id}/reject

Note: /me/... routes are registered before /{user_id}/... routes of the same
shape so Starlette's literal-path matching takes precedence.
"""
from __future__ import annotations

import uuid

from fastapi import APIRouter, Body, Depends, Query, Request, status
from fastapi.responses import StreamingResponse
from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db, get_session_factory
from app.dependencies import get_current_user
from app.live import Wakeups, get_wakeups
from app.rate_limit import limiter
from app.redis_client import get_redis
from app.social_graph import controller as ctrl
from app.social_graph.schemas import (
    FollowListResponse,
    FollowRequestListResponse,
    FollowRequestResponse,
    FollowResponse,
    FollowStatsResponse,
    RelationshipResponse,
    SendFollowRequestBody,
    StoryVisibilityResponse,
    UserIdListResponse,
)
from shared.models.user import CurrentUser

router = APIRouter(prefix="/users", tags=["social-graph"])
requests_router = APIRouter(prefix="/follow-requests", tags=["social-graph"])


# ── My lists (must be registered before /{user_id}/... to avoid mis-routing) ──

@router.get(
    "/me/follow-requests",
    response_model=FollowRequestListResponse,
    summary="Pending follow requests addressed to me",
)
async def my_follow_requests(
    current_user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
) -> FollowRequestListResponse:
    return await ctrl.my_follow_requests(session, current_user.id)


@router.get(
    "/me/follow-requests/stream",
    summary="Stream my pending follow requests (Server-Sent Events)",
    description=(
        "Emits a `follow_requests` event immediately and again whenever a request "
        "addressed to me arrives, is withdrawn, or is resolved."
    ),
    response_class=StreamingResponse,
)
async def my_follow_requests_stream(
    current_user: CurrentUser = Depends(get_current_user),
    redis: Redis = Depends(get_redis),
) -> StreamingResponse:
    events = ctrl.follow_request_events(get_session_factory(), current_user.id, redis)
    return StreamingResponse(
        events,
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


# ── Follow ─────────────────────────────────────────────────────────────────────

@router.post(
    "/{user_id}/follow",
    response_model=FollowResponse,
    status_code=status.HTTP_200_OK,
    summary="Follow a user",
    description=(
        "Rate-limited to 50 follow actions per hour. Following a private account "
        "sends a follow request instead (state = requested)."
    ),
)
@limiter.limit("50/hour")
async def follow_user(
    request: Request,
    user_id: uuid.UUID,
    current_user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
    wakeups: Wakeups = Depends(get_wakeups),
) -> FollowResponse:
    return await ctrl.follow_user(session, wakeups, current_user.id, user_id)


@router.delete(
    "/{user_id}/follow",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Unfollow a user",
)
async def unfollow_user(
    user_id: uuid.UUID,
    current_user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
    wakeups: Wakeups = Depends(get_wakeups),
) -> None:
    await ctrl.unfollow_user(session, wakeups, current_user.id, user_id)


# ── Follow requests ────────────────────────────────────────────────────────────

@router.post(
    "/{user_id}/follow-requests",
    response_model=FollowResponse,
    status_code=status.HTTP_200_OK,
    summary="Send a follow request",
    description="409 if already following. A public account is followed immediately.",
)
async def send_follow_request(
    user_id: uuid.UUID,
    body: SendFollowRequestBody | None = Body(default=None),
    current_user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
    wakeups: Wakeups = Depends(get_wakeups),
) -> FollowResponse:
    info = body.from_user_info if body is not None else None
    return await ctrl.send_follow_request(session, wakeups, current_user.id, user_id, info)


@router.delete(
    "/{user_id}/follow-requests",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Withdraw my pending follow request",
)
async def cancel_follow_request(
    user_id: uuid.UUID,
    current_user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
    wakeups: Wakeups = Depends(get_wakeups),
) -> None:
    await ctrl.cancel_follow_request(session, wakeups, current_user.id, user_id)


@requests_router.post(
    "/{request_id}/accept",
    response_model=FollowRequestResponse,
    summary="Accept a follow request addressed to me",
)
async def accept_follow_request(
    request_id: uuid.UUID,
    current_user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
    wakeups: Wakeups = Depends(get_wakeups),
) -> FollowRequestResponse:
    return await ctrl.accept_follow_request(session, wakeups, request_id, current_user.id)


@requests_router.post(
    "/{request_id}/reject",
    response_model=FollowRequestResponse,
    summary="Reject a follow request addressed to me",
)
async def reject_follow_request(
    request_id: uuid.UUID,
    current_user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
    wakeups: Wakeups = Depends(get_wakeups),
) -> FollowRequestResponse:
    return await ctrl.reject_follow_request(session, wakeups, request_id, current_user.id)


# ── Another user's graph ───────────────────────────────────────────────────────

@router.get(
    "/{user_id}/following",
    response_model=FollowListResponse,
    summary="View a user's following list",
    description="Returns 403 for a private account you do not follow.",
)
async def user_following(
    user_id: uuid.UUID,
    page: int = Query(1, ge=1, description="Page number"),
    size: int = Query(20, ge=1, le=100, description="Items per page"),
    current_user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
) -> FollowListResponse:
    return await ctrl.view_user_following(session, current_user.id, user_id, page, size)


@router.get(
    "/{user_id}/followers",
    response_model=FollowListResponse,
    summary="View a user's followers list",
    description="Returns 403 for a private account you do not follow.",
)
async def user_followers(
    user_id: uuid.UUID,
    page: int = Query(1, ge=1, description="Page number"),
    size: int = Query(20, ge=1, le=100, description="Items per page"),
    current_user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
) -> FollowListResponse:
    return await ctrl.view_user_followers(session, current_user.id, user_id, page, size)


@router.get("/{user_id}/following-ids", response_model=UserIdListResponse)
async def user_following_ids(
    user_id: uuid.UUID,
    current_user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
) -> UserIdListResponse:
    return await ctrl.following_ids(session, current_user.id, user_id)


@router.get("/{user_id}/follower-ids", response_model=UserIdListResponse)
async def user_follower_ids(
    user_id: uuid.UUID,
    current_user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
) -> UserIdListResponse:
    return await ctrl.follower_ids(session, current_user.id, user_id)


@router.get(
    "/{user_id}/follow-stats",
    response_model=FollowStatsResponse,
    summary="Follower / following counts",
)
async def user_follow_stats(
    user_id: uuid.UUID,
    current_user: CurrentUser = Depends(get_current_user),  # noqa: ARG001
    session: AsyncSession = Depends(get_db),
) -> FollowStatsResponse:
    return await ctrl.follow_stats(session, user_id)


@router.get(
    "/{user_id}/follow-stats/stream",
    summary="Stream follower / following counts (Server-Sent Events)",
    description=(
        "Emits a `follow_stats` event immediately and again whenever either counter "
        "changes. 404 for an unknown user; the stream ends if the profile is deleted."
    ),
    response_class=StreamingResponse,
)
async def user_follow_stats_stream(
    user_id: uuid.UUID,
    current_user: CurrentUser = Depends(get_current_user),  # noqa: ARG001
    redis: Redis = Depends(get_redis),
) -> StreamingResponse:
    factory = get_session_factory()
    await ctrl.ensure_user_exists(factory, user_id)
    return StreamingResponse(
        ctrl.follow_stats_events(factory, user_id, redis),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


@router.get(
    "/{user_id}/relationship",
    response_model=RelationshipResponse,
    summary="My relationship with a user",
)
async def user_relationship(
    user_id: uuid.UUID,
    current_user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
) -> RelationshipResponse:
    return await ctrl.relationship(session, current_user.id, user_id)


@router.get(
    "/{user_id}/stories/visibility",
    response_model=StoryVisibilityResponse,
    summary="Whether I may see this user's stories",
)
async def user_story_visibility(
    user_id: uuid.UUID,
    current_user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
) -> StoryVisibilityResponse:
    return await ctrl.story_visibility(session, current_user.id, user_id)
