"""
Notifications domain — Pydantic V2 schemas.

Each notification type carries only the fields that make sense for it; the
``type`` field is the discriminator.
"""
from __future__ import annotations

from datetime import datetime
from typing import Annotated, Literal, Union
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from shared.events.schemas import ActorSnapshot


class _NotificationBase(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: UUID
    actor_id: UUID | None = None
    actor: ActorSnapshot | None = None
    message: str
    is_read: bool
    created_at: datetime


class FollowRequestNotification(_NotificationBase):
    type: Literal["follow_request"]
    follow_request_id: UUID | None = None
    action_taken: Literal["accepted", "rejected"] | None = None


class FollowAcceptedNotification(_NotificationBase):
    type: Literal["follow_accepted"]


class FollowNotification(_NotificationBase):
    type: Literal["follow"]


class LikeNotification(_NotificationBase):
    type: Literal["like"]
    content_id: str | None = None
    content_type: str | None = None


class CommentNotification(_NotificationBase):
    type: Literal["comment"]
    content_id: str | None = None
    comment_text: str | None = None


class MentionNotification(_NotificationBase):
    type: Literal["mention"]
    content_id: str | None = None


class StoryViewNotification(_NotificationBase):
    type: Literal["story_view"]
    story_id: str | None = None


NotificationItem = Annotated[
    Union[
        FollowRequestNotification,
        FollowAcceptedNotification,
        FollowNotification,
        LikeNotification,
        CommentNotification,
        MentionNotification,
        StoryViewNotification,
    ],
    Field(discriminator="type"),
]


class NotificationsPageResponse(BaseModel):
    """Offset-paginated notifications list for the current user."""

    items: list[NotificationItem]
    total: int = Field(description="Total notifications matching the filter.")
    limit: int = Field(description="Requested page size.")
    offset: int = Field(description="Requested offset.")


class UnreadCountResponse(BaseModel):
    unread_count: int


class ClearedResponse(BaseModel):
    count: int


class ContentEventRequest(BaseModel):
    """Internal fan-out body sent by the content services."""

    model_config = ConfigDict(extra="forbid")

    type: Literal["like", "comment", "mention", "story_view"]
    from_user: UUID
    to_user: UUID
    actor: ActorSnapshot | None = None
    content_id: str | None = None
    content_type: str | None = None
    comment_text: str | None = Field(None, max_length=2000)
    story_id: str | None = None
