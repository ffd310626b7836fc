"""Initial social schema: profiles, follow graph, follow requests, notifications

Revision ID: 001
Revises:
Create Date: 2026-10-17

Tables created:
  - users            Profiles with privacy flag and denormalized counters
  - follows          Directed follow edges (follower → followee)
  - follow_requests  Requests to follow private accounts; at most one pending per pair
  - notifications    One row per graph / content event, owned by the recipient

Enums are stored as constrained VARCHARs (non-native) so the schema also
runs on SQLite for local development.
"""
from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

_JSON = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


# ─────────────────────────────────────────────────────────────────────────────
#  UPGRADE
# ─────────────────────────────────────────────────────────────────────────────

def upgrade() -> None:
    # ── 1. users ──────────────────────────────────────────────────────────────
    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("username", sa.String(30), nullable=False),
        sa.Column("display_name", sa.String(100), nullable=False),
        sa.Column("avatar_url", sa.String(500), nullable=True),
        sa.Column("bio", sa.Text(), nullable=True),
        sa.Column("is_private", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_verified", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("followers_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("following_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("posts_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_users"),
        sa.CheckConstraint("followers_count >= 0", name="ck_users_followers_count_non_negative"),
        sa.CheckConstraint("following_count >= 0", name="ck_users_following_count_non_negative"),
        sa.CheckConstraint("posts_count >= 0", name="ck_users_posts_count_non_negative"),
    )
    op.create_index("ix_users_username", "users", ["username"], unique=True)

    # ── 2. follows ────────────────────────────────────────────────────────────
    op.create_table(
        "follows",
        sa.Column("follow_id", sa.Uuid(), nullable=False),
        sa.Column("follower_id", sa.Uuid(), nullable=False),
        sa.Column("followee_id", sa.Uuid(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("follow_id", name="pk_follows"),
        sa.ForeignKeyConstraint(
            ["follower_id"],
            ["users.id"],
            name="fk_follows_follower_id",
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["followee_id"],
            ["users.id"],
            name="fk_follows_followee_id",
            ondelete="CASCADE",
        ),
        sa.UniqueConstraint("follower_id", "followee_id", name="uq_follows_pair"),
        sa.CheckConstraint("follower_id != followee_id", name="ck_follows_no_self"),
    )
    op.create_index("idx_follows_follower_id", "follows", ["follower_id"])
    op.create_index("idx_follows_followee_id", "follows", ["followee_id"])

    # ── 3. follow_requests ────────────────────────────────────────────────────
    op.create_table(
        "follow_requests",
        sa.Column("request_id", sa.Uuid(), nullable=False),
        sa.Column("from_user_id", sa.Uuid(), nullable=False),
        sa.Column("to_user_id", sa.Uuid(), nullable=False),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("from_user_info", _JSON, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("request_id", name="pk_follow_requests"),
        sa.ForeignKeyConstraint(
            ["from_user_id"],
            ["users.id"],
            name="fk_follow_requests_from_user_id",
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["to_user_id"],
            ["users.id"],
            name="fk_follow_requests_to_user_id",
            ondelete="CASCADE",
        ),
        sa.CheckConstraint("from_user_id != to_user_id", name="ck_follow_requests_no_self"),
    )
    # At most one pending request per ordered pair
    op.create_index(
        "uq_follow_requests_pending_pair",
        "follow_requests",
        ["from_user_id", "to_user_id"],
        unique=True,
        postgresql_where=sa.text("status = 'pending'"),
        sqlite_where=sa.text("status = 'pending'"),
    )
    op.create_index(
        "idx_follow_requests_to_status",
        "follow_requests",
        ["to_user_id", "status", "created_at"],
    )

    # ── 4. notifications ──────────────────────────────────────────────────────
    op.create_table(
        "notifications",
        sa.Column("notification_id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("actor_id", sa.Uuid(), nullable=True),
        sa.Column("type", sa.String(32), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        # Set for follow_request notifications; nulled when the request is purged
        sa.Column("follow_request_id", sa.Uuid(), nullable=True),
        sa.Column("action_taken", sa.String(32), nullable=True),
        sa.Column("context", _JSON, nullable=False),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("notification_id", name="pk_notifications"),
        sa.ForeignKeyConstraint(
            ["user_id"],
            ["users.id"],
            name="fk_notifications_user_id",
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["follow_request_id"],
            ["follow_requests.request_id"],
            name="fk_notifications_follow_request_id",
            ondelete="SET NULL",
        ),
    )
    op.create_index(
        "ix_notifications_user_created_at", "notifications", ["user_id", "created_at"]
    )
    op.create_index("ix_notifications_user_is_read", "notifications", ["user_id", "is_read"])
    op.create_index(
        "ix_notifications_follow_request_id", "notifications", ["follow_request_id"]
    )


# ─────────────────────────────────────────────────────────────────────────────
#  DOWNGRADE
# ─────────────────────────────────────────────────────────────────────────────

def downgrade() -> None:
    op.drop_index("ix_notifications_follow_request_id", table_name="notifications")
    op.drop_index("ix_notifications_user_is_read", table_name="notifications")
    op.drop_index("ix_notifications_user_created_at", table_name="notifications")
    op.drop_table("notifications")

    op.drop_index("idx_follow_requests_to_status", table_name="follow_requests")
    op.drop_index("uq_follow_requests_pending_pair", table_name="follow_requests")
    op.drop_table("follow_requests")

    op.drop_index("idx_follows_followee_id", table_name="follows")
    op.drop_index("idx_follows_follower_id", table_name="follows")
    op.drop_table("follows")

    op.drop_index("ix_users_username", table_name="users")
    op.drop_table("users")
