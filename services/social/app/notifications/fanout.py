"""
Notifications domain — fan-out of graph events into notification rows.

emit() turns one GraphEvent into exactly one Notification inside the caller's
transaction.  Recipients' unread channels are marked on the session so the
router can publish wake-ups once the transaction has committed.
"""
from __future__ import annotations

import logging
import uuid

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncSession

from app import live
from app.notifications.constants import (
    COMMENT_PREVIEW_LENGTH,
    NotificationType,
    RequestAction,
    unread_channel,
)
from app.notifications.models import Notification
from shared.events.schemas import GraphEvent

logger = logging.getLogger(__name__)


def _actor_name(event: GraphEvent) -> str:
    if event.actor is None:
        return "Someone"
    return event.actor.display_name or event.actor.username


def _comment_preview(text: str) -> str:
    if len(text) <= COMMENT_PREVIEW_LENGTH:
        return text
    return text[:COMMENT_PREVIEW_LENGTH] + "…"


def render_message(event: GraphEvent) -> str:
    name = _actor_name(event)
    payload = event.payload
    kind = NotificationType(event.type)
    if kind is NotificationType.FOLLOW_REQUEST:
        return f"{name} wants to follow you"
    if kind is NotificationType.FOLLOW_ACCEPTED:
        return f"{name} accepted your follow request"
    if kind is NotificationType.FOLLOW:
        return f"{name} started following you"
    if kind is NotificationType.LIKE:
        return f"{name} liked your {payload.get('content_type') or 'post'}"
    if kind is NotificationType.COMMENT:
        return f"{name} commented: {_comment_preview(payload.get('comment_text') or '')}"
    if kind is NotificationType.MENTION:
        return f"{name} mentioned you"
    return f"{name} viewed your story"


def mark_unread_changed(session: AsyncSession, user_id: uuid.UUID) -> None:
    live.mark_changed(session, unread_channel(user_id))


async def emit(session: AsyncSession, event: GraphEvent) -> Notification | None:
    """Persist the notification for ``event``.

    Self-targeted events (actor == recipient) produce nothing.  Identical
    events are not deduplicated: each call writes a new row.
    """
    if event.from_user == event.to_user:
        logger.debug("Dropping self-targeted %s event for %s", event.type, event.to_user)
        return None

    context: dict = dict(event.payload)
    if event.actor is not None:
        context["actor"] = event.actor.model_dump(mode="json")

    follow_request_id = None
    if event.type == NotificationType.FOLLOW_REQUEST.value and event.payload.get("follow_request_id"):
        follow_request_id = uuid.UUID(str(event.payload["follow_request_id"]))

    notification = Notification(
        user_id=event.to_user,
        actor_id=event.from_user,
        type=NotificationType(event.type),
        message=render_message(event),
        follow_request_id=follow_request_id,
        context=context,
        is_read=False,
        created_at=event.occurred_at,
    )
    session.add(notification)
    await session.flush()
    mark_unread_changed(session, event.to_user)
    return notification


async def resolve_request_notification(
    session: AsyncSession,
    follow_request_id: uuid.UUID,
    action: RequestAction,
) -> int:
    """Record the recipient's decision on the follow_request notification and mark it read."""
    result = await session.execute(
        sa.update(Notification)
        .where(
            Notification.follow_request_id == follow_request_id,
            Notification.type == NotificationType.FOLLOW_REQUEST,
        )
        .values(action_taken=action, is_read=True)
        .execution_options(synchronize_session="fetch")
    )
    return result.rowcount


async def retract_request_notification(
    session: AsyncSession, follow_request_id: uuid.UUID
) -> int:
    """Delete the follow_request notification of a withdrawn request."""
    result = await session.execute(
        sa.delete(Notification)
        .where(
            Notification.follow_request_id == follow_request_id,
            Notification.type == NotificationType.FOLLOW_REQUEST,
        )
        .execution_options(synchronize_session="fetch")
    )
    return result.rowcount

