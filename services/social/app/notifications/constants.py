"""
Notifications domain — enums and channel names.
"""
from __future__ import annotations

import enum
import uuid


class NotificationType(str, enum.Enum):
    FOLLOW_REQUEST = "follow_request"
    FOLLOW_ACCEPTED = "follow_accepted"
    FOLLOW = "follow"
    LIKE = "like"
    COMMENT = "comment"
    MENTION = "mention"
    STORY_VIEW = "story_view"


class RequestAction(str, enum.Enum):
    """What the recipient did with a follow_request notification."""

    ACCEPTED = "accepted"
    REJECTED = "rejected"


COMMENT_PREVIEW_LENGTH = 50


def unread_channel(user_id: uuid.UUID) -> str:
    """Redis pub/sub channel nudged whenever the user's unread count may have changed."""
    return f"notifications:{user_id}:unread"
