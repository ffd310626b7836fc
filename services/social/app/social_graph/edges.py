"""
Social graph domain — follow edge writes and counter maintenance.

Every edge mutation goes through add_edge / remove_edge, which adjust the
denormalized followers_count / following_count in the same transaction and
only when the edge write actually changed a row.  Both users' stats channels
are then marked for a post-commit wake-up.  Concurrent duplicate follows
therefore cannot double-count: the loser of the race hits the unique pair
constraint, inserts nothing, and leaves the counters alone.
"""
from __future__ import annotations

import uuid
from datetime import datetime, timezone

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from app import live
from app.exceptions import CannotFollowSelf
from app.profile.models import UserProfile
from app.social_graph.constants import stats_channel
from app.social_graph.models import Follow

_DIALECT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def insert_ignoring_conflicts(session: AsyncSession, table: sa.Table):
    """INSERT ... ON CONFLICT DO NOTHING for the session's dialect."""
    dialect = session.get_bind().dialect.name
    try:
        insert = _DIALECT_INSERTS[dialect]
    except KeyError:
        raise RuntimeError(f"Unsupported database dialect: {dialect}") from None
    return insert(table)


async def _increment(session: AsyncSession, user_id: uuid.UUID, column: str) -> None:
    col = getattr(UserProfile, column)
    await session.execute(
        sa.update(UserProfile).where(UserProfile.id == user_id).values({column: col + 1})
    )


async def _decrement(session: AsyncSession, user_id: uuid.UUID, column: str) -> None:
    # Clamped at zero: a drifted counter stays at 0 instead of going negative.
    col = getattr(UserProfile, column)
    await session.execute(
        sa.update(UserProfile)
        .where(UserProfile.id == user_id, col > 0)
        .values({column: col - 1})
    )


def _mark_stats_changed(session: AsyncSession, *user_ids: uuid.UUID) -> None:
    for user_id in user_ids:
        live.mark_changed(session, stats_channel(user_id))


async def edge_exists(
    session: AsyncSession, follower_id: uuid.UUID, followee_id: uuid.UUID
) -> bool:
    result = await session.execute(
        sa.select(sa.exists().where(
            Follow.follower_id == follower_id,
            Follow.followee_id == followee_id,
        ))
    )
    return result.scalar_one()


async def add_edge(
    session: AsyncSession, follower_id: uuid.UUID, followee_id: uuid.UUID
) -> bool:
    """Create follower → followee and bump both counters.

    Returns False (and touches nothing) when the edge already exists.
    """
    if follower_id == followee_id:
        raise CannotFollowSelf()
    stmt = (
        insert_ignoring_conflicts(session, Follow.__table__)
        .values(
            follow_id=uuid.uuid4(),
            follower_id=follower_id,
            followee_id=followee_id,
            created_at=datetime.now(timezone.utc),
        )
        .on_conflict_do_nothing()
    )
    result = await session.execute(stmt)
    if result.rowcount != 1:
        return False
    await _increment(session, followee_id, "followers_count")
    await _increment(session, follower_id, "following_count")
    _mark_stats_changed(session, follower_id, followee_id)
    return True


async def remove_edge(
    session: AsyncSession, follower_id: uuid.UUID, followee_id: uuid.UUID
) -> bool:
    """Delete follower → followee and decrement both counters (clamped at zero).

    Returns False (and touches nothing) when there was no edge.
    """
    result = await session.execute(
        sa.delete(Follow).where(
            Follow.follower_id == follower_id,
            Follow.followee_id == followee_id,
        )
    )
    if result.rowcount != 1:
        return False
    await _decrement(session, followee_id, "followers_count")
    await _decrement(session, follower_id, "following_count")
    _mark_stats_changed(session, follower_id, followee_id)
    return True


async def count_edges(session: AsyncSession, user_id: uuid.UUID) -> tuple[int, int]:
    """Return (followers, following) counted from the edge set."""
    followers = await session.execute(
        sa.select(sa.func.count()).select_from(Follow).where(Follow.followee_id == user_id)
    )
    following = await session.execute(
        sa.select(sa.func.count()).select_from(Follow).where(Follow.follower_id == user_id)
    )
    return followers.scalar_one(), following.scalar_one()
