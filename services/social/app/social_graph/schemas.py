"""
Social graph domain — Pydantic V2 request/response schemas.
"""
from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from app.social_graph.constants import FollowRequestStatus, FollowState
from shared.events.schemas import ActorSnapshot


# ── Embedded user reference (used inside list items) ───────────────────────────

class SocialUserRef(BaseModel):
    """Minimal profile embedded in follower / following list items."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    username: str
    display_name: str
    avatar_url: str | None
    is_verified: bool
    is_private: bool


# ── Follow ─────────────────────────────────────────────────────────────────────

class FollowResponse(BaseModel):
    state: FollowState
    created: bool = Field(description="False when the call changed nothing.")
    request_id: uuid.UUID | None = None


class FollowListItem(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID           # follow_id
    user: SocialUserRef     # the other party (followee or follower depending on context)
    created_at: datetime
    is_followed_by_me: bool


class FollowListResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    items: list[FollowListItem]
    total: int
    page: int
    size: int


class UserIdListResponse(BaseModel):
    user_ids: list[uuid.UUID]


class FollowStatsResponse(BaseModel):
    followers_count: int
    following_count: int


class RelationshipResponse(BaseModel):
    user_id: uuid.UUID
    is_following: bool
    is_followed_by: bool
    has_pending_request: bool
    can_see_stories: bool


class StoryVisibilityResponse(BaseModel):
    can_see_stories: bool


# ── Follow requests ────────────────────────────────────────────────────────────

class SendFollowRequestBody(BaseModel):
    """Optional display snapshot; defaults to the sender's current profile."""

    model_config = ConfigDict(extra="forbid")

    from_user_info: ActorSnapshot | None = None


class FollowRequestResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    request_id: uuid.UUID
    from_user_id: uuid.UUID
    to_user_id: uuid.UUID
    status: FollowRequestStatus
    from_user_info: ActorSnapshot
    created_at: datetime
    resolved_at: datetime | None


class FollowRequestListResponse(BaseModel):
    items: list[FollowRequestResponse]
    total: int


# ── Admin ──────────────────────────────────────────────────────────────────────

class CleanupResponse(BaseModel):
    deleted: int
    older_than_days: int
