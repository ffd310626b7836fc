"""
Notifications domain — SQLAlchemy ORM model.
"""
from __future__ import annotations

import uuid
from datetime import datetime, timezone

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from app.notifications.constants import NotificationType, RequestAction
from shared.database.postgres import Base


def _enum(enum_cls: type, name: str) -> sa.Enum:
    return sa.Enum(
        enum_cls,
        name=name,
        native_enum=False,
        length=32,
        values_callable=lambda e: [x.value for x in e],
    )


class Notification(Base):
    __tablename__ = "notifications"

    notification_id: Mapped[uuid.UUID] = mapped_column(
        sa.Uuid(), primary_key=True, default=uuid.uuid4
    )
    # Recipient
    user_id: Mapped[uuid.UUID] = mapped_column(
        sa.Uuid(),
        sa.ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    # Actor who caused the event (nullable for system events)
    actor_id: Mapped[uuid.UUID | None] = mapped_column(sa.Uuid(), nullable=True)
    type: Mapped[NotificationType] = mapped_column(
        _enum(NotificationType, "notificationtype"), nullable=False
    )
    message: Mapped[str] = mapped_column(sa.Text, nullable=False)
    # Set for follow_request notifications only
    follow_request_id: Mapped[uuid.UUID | None] = mapped_column(
        sa.Uuid(),
        sa.ForeignKey("follow_requests.request_id", ondelete="SET NULL"),
        nullable=True,
    )
    action_taken: Mapped[RequestAction | None] = mapped_column(
        _enum(RequestAction, "requestaction"), nullable=True
    )
    # Actor snapshot plus per-type payload (content_id, comment_text, ...)
    context: Mapped[dict] = mapped_column(
        sa.JSON().with_variant(JSONB(), "postgresql"), nullable=False, default=dict
    )
    is_read: Mapped[bool] = mapped_column(
        sa.Boolean, nullable=False, default=False, server_default=sa.false()
    )
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        sa.Index("ix_notifications_user_created_at", "user_id", "created_at"),
        sa.Index("ix_notifications_user_is_read", "user_id", "is_read"),
        sa.Index("ix_notifications_follow_request_id", "follow_request_id"),
    )
