from datetime import datetime, timezone
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

GraphEventType = Literal[
    "follow_request",
    "follow_accepted",
    "follow",
    "like",
    "comment",
    "mention",
    "story_view",
]


class ActorSnapshot(BaseModel):
    """Denormalized actor info captured at event time, shown without a join."""

    model_config = ConfigDict(extra="ignore")

    username: str
    display_name: str
    avatar_url: str | None = None
    is_verified: bool = False


class GraphEvent(BaseModel):
    """A state change that produces exactly one notification for to_user."""

    model_config = ConfigDict(extra="forbid")

    type: GraphEventType
    from_user: UUID
    to_user: UUID
    actor: ActorSnapshot | None = None
    payload: dict[str, Any] = Field(default_factory=dict)
    occurred_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
