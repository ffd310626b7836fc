"""
Profile domain — Pydantic V2 request/response schemas.
"""
from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class _Base(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)


class UpdateProfileRequest(_Base):
    """PATCH /users/me — all fields optional; only provided fields are written.

    Counters and the verified badge are not writable here.
    """

    username: str | None = Field(None, min_length=3, max_length=30)
    display_name: str | None = Field(None, min_length=1, max_length=100)
    avatar_url: str | None = Field(None, max_length=500)
    bio: str | None = Field(None, max_length=500)
    is_private: bool | None = None


class ProfileResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    username: str
    display_name: str
    avatar_url: str | None
    bio: str | None
    is_private: bool
    is_verified: bool
    followers_count: int
    following_count: int
    posts_count: int
    created_at: datetime
