"""
Social graph domain — SQLAlchemy ORM models.

Tables:
  follows          directed follow edges (follower → followee)
  follow_requests  pending / resolved requests to follow a private account
"""
from __future__ import annotations

import uuid
from datetime import datetime, timezone

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from app.social_graph.constants import FollowRequestStatus
from shared.database.postgres import Base


def _now() -> datetime:
    return datetime.now(timezone.utc)


class Follow(Base):
    __tablename__ = "follows"

    follow_id: Mapped[uuid.UUID] = mapped_column(
        sa.Uuid(), primary_key=True, default=uuid.uuid4
    )
    follower_id: Mapped[uuid.UUID] = mapped_column(
        sa.Uuid(),
        sa.ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    followee_id: Mapped[uuid.UUID] = mapped_column(
        sa.Uuid(),
        sa.ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), nullable=False, default=_now
    )

    __table_args__ = (
        sa.UniqueConstraint("follower_id", "followee_id", name="uq_follows_pair"),
        sa.CheckConstraint("follower_id != followee_id", name="ck_follows_no_self"),
        sa.Index("idx_follows_follower_id", "follower_id"),
        sa.Index("idx_follows_followee_id", "followee_id"),
    )


class FollowRequest(Base):
    __tablename__ = "follow_requests"

    request_id: Mapped[uuid.UUID] = mapped_column(
        sa.Uuid(), primary_key=True, default=uuid.uuid4
    )
    from_user_id: Mapped[uuid.UUID] = mapped_column(
        sa.Uuid(),
        sa.ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    to_user_id: Mapped[uuid.UUID] = mapped_column(
        sa.Uuid(),
        sa.ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    status: Mapped[FollowRequestStatus] = mapped_column(
        sa.Enum(
            FollowRequestStatus,
            name="followrequeststatus",
            native_enum=False,
            length=16,
            values_callable=lambda e: [x.value for x in e],
        ),
        nullable=False,
        default=FollowRequestStatus.PENDING,
    )
    # Requester's display info captured at request time (ActorSnapshot shape)
    from_user_info: Mapped[dict] = mapped_column(
        sa.JSON().with_variant(JSONB(), "postgresql"), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), nullable=False, default=_now
    )
    resolved_at: Mapped[datetime | None] = mapped_column(
        sa.DateTime(timezone=True), nullable=True
    )

    __table_args__ = (
        sa.CheckConstraint("from_user_id != to_user_id", name="ck_follow_requests_no_self"),
        # At most one pending request per ordered pair
        sa.Index(
            "uq_follow_requests_pending_pair",
            "from_user_id",
            "to_user_id",
            unique=True,
            postgresql_where=sa.text("status = 'pending'"),
            sqlite_where=sa.text("status = 'pending'"),
        ),
        sa.Index("idx_follow_requests_to_status", "to_user_id", "status", "created_at"),
    )
