"""
Profile domain — pure business logic (zero FastAPI imports).

Counter columns are deliberately absent from update_profile's writable set;
see app.social_graph.edges.
"""
from __future__ import annotations

import uuid

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import InvalidUsername, UserNotFound, UsernameTaken
from app.profile.constants import USERNAME_PATTERN, default_username
from app.profile.models import UserProfile
from shared.events.schemas import ActorSnapshot

_WRITABLE_FIELDS = frozenset(
    {"username", "display_name", "avatar_url", "bio", "is_private"}
)


async def find_profile(session: AsyncSession, user_id: uuid.UUID) -> UserProfile | None:
    result = await session.execute(sa.select(UserProfile).where(UserProfile.id == user_id))
    return result.scalar_one_or_none()


async def get_profile(session: AsyncSession, user_id: uuid.UUID) -> UserProfile:
    """Load a profile by PK; raise 404 if not found."""
    profile = await find_profile(session, user_id)
    if profile is None:
        raise UserNotFound()
    return profile


async def ensure_profile(session: AsyncSession, user_id: uuid.UUID) -> UserProfile:
    """Return the caller's profile, creating a placeholder on first access."""
    profile = await find_profile(session, user_id)
    if profile is not None:
        return profile
    profile = UserProfile(
        id=user_id,
        username=default_username(user_id),
        display_name="New user",
    )
    session.add(profile)
    await session.flush()
    return profile


async def _username_taken(
    session: AsyncSession, username: str, exclude_id: uuid.UUID
) -> bool:
    result = await session.execute(
        sa.select(
            sa.exists().where(
                sa.func.lower(UserProfile.username) == username.lower(),
                UserProfile.id != exclude_id,
            )
        )
    )
    return result.scalar_one()


async def update_profile(
    session: AsyncSession,
    user_id: uuid.UUID,
    fields: dict,
) -> UserProfile:
    """Create-or-patch the caller's profile with the provided fields."""
    unknown = set(fields) - _WRITABLE_FIELDS
    if unknown:
        raise ValueError(f"Not writable: {', '.join(sorted(unknown))}")

    username = fields.get("username")
    if username is not None:
        if not USERNAME_PATTERN.match(username):
            raise InvalidUsername()
        if await _username_taken(session, username, exclude_id=user_id):
            raise UsernameTaken()

    profile = await ensure_profile(session, user_id)
    for key, value in fields.items():
        setattr(profile, key, value)
    # flush: writes changes within the open transaction; get_db commits at request end.
    await session.flush()
    return profile


def snapshot(profile: UserProfile) -> ActorSnapshot:
    """Capture the display fields stored on requests and notifications."""
    return ActorSnapshot(
        username=profile.username,
        display_name=profile.display_name,
        avatar_url=profile.avatar_url,
        is_verified=profile.is_verified,
    )
