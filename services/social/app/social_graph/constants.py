"""
Social graph domain — enums and channel names.
"""
from __future__ import annotations

import enum
import uuid


class FollowRequestStatus(str, enum.Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


TERMINAL_STATUSES = frozenset({FollowRequestStatus.ACCEPTED, FollowRequestStatus.REJECTED})


class FollowState(str, enum.Enum):
    """Outcome of a follow attempt, as shown on the follow button."""

    FOLLOWING = "following"
    REQUESTED = "requested"


def stats_channel(user_id: uuid.UUID) -> str:
    """Redis pub/sub channel nudged whenever the user's follow counters may have changed."""
    return f"graph:{user_id}:stats"


def requests_channel(user_id: uuid.UUID) -> str:
    """Redis pub/sub channel nudged whenever the pending requests addressed to the user change."""
    return f"graph:{user_id}:follow-requests"
