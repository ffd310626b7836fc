"""
Profile domain — SQLAlchemy ORM models.

Tables owned by this module:
  users   Public profile, privacy flag and denormalized social counters

followers_count / following_count are a cache of the follow edge set.  They
are written only by app.social_graph.edges (and the reconcile / account
deletion paths in the social graph service), never by profile edits.
"""
from __future__ import annotations

import uuid
from datetime import datetime, timezone

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column

from shared.database.postgres import Base


def _now() -> datetime:
    return datetime.now(timezone.utc)


class UserProfile(Base):
    __tablename__ = "users"
    __table_args__ = (
        sa.CheckConstraint("followers_count >= 0", name="ck_users_followers_count_non_negative"),
        sa.CheckConstraint("following_count >= 0", name="ck_users_following_count_non_negative"),
        sa.CheckConstraint("posts_count >= 0", name="ck_users_posts_count_non_negative"),
    )

    # Same uid as the auth provider's account
    id: Mapped[uuid.UUID] = mapped_column(sa.Uuid(), primary_key=True, default=uuid.uuid4)

    # ── Profile fields ────────────────────────────────────────────────────────
    # Unique handle displayed as @username; mutable
    username: Mapped[str] = mapped_column(sa.String(30), unique=True, nullable=False, index=True)
    display_name: Mapped[str] = mapped_column(sa.String(100), nullable=False)
    avatar_url: Mapped[str | None] = mapped_column(sa.String(500), nullable=True)
    bio: Mapped[str | None] = mapped_column(sa.Text(), nullable=True)

    # ── Privacy / badges ──────────────────────────────────────────────────────
    is_private: Mapped[bool] = mapped_column(
        sa.Boolean(), nullable=False, default=False, server_default=sa.false()
    )
    is_verified: Mapped[bool] = mapped_column(
        sa.Boolean(), nullable=False, default=False, server_default=sa.false()
    )

    # ── Denormalized counters ─────────────────────────────────────────────────
    followers_count: Mapped[int] = mapped_column(
        sa.Integer(), nullable=False, default=0, server_default=sa.text("0")
    )
    following_count: Mapped[int] = mapped_column(
        sa.Integer(), nullable=False, default=0, server_default=sa.text("0")
    )
    posts_count: Mapped[int] = mapped_column(
        sa.Integer(), nullable=False, default=0, server_default=sa.text("0")
    )

    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), nullable=False, default=_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), nullable=False, default=_now, onupdate=_now
    )
