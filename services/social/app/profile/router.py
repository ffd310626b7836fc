"""
Profile domain — router.

Routes:
  GET    /api/v1/users/me          Get own profile (created on first access)
  PATCH  /api/v1/users/me          Create / update own profile (partial)
  DELETE /api/v1/users/me          Delete own account (cascades to the graph)
  GET    /api/v1/users/{user_id}   Get any user's public profile

All routes require a valid Bearer token.
"""
from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.dependencies import get_current_user
from app.live import Wakeups, get_wakeups
from app.profile import controller as ctrl
from app.profile.schemas import ProfileResponse, UpdateProfileRequest
from shared.models.user import CurrentUser

router = APIRouter(prefix="/users", tags=["profile"])


@router.get("/me", response_model=ProfileResponse, summary="Get own profile")
async def get_me(
    current_user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
) -> ProfileResponse:
    return await ctrl.get_me(session, current_user.id)


@router.patch(
    "/me",
    response_model=ProfileResponse,
    summary="Create or update own profile (only provided fields are written)",
)
async def update_me(
    body: UpdateProfileRequest,
    current_user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
) -> ProfileResponse:
    return await ctrl.update_me(session, current_user.id, body)


@router.delete(
    "/me",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete own account",
    description=(
        "Removes the profile together with every follow edge, follow request and "
        "notification that references it. Counterparts' counters are adjusted."
    ),
)
async def delete_me(
    current_user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
    wakeups: Wakeups = Depends(get_wakeups),
) -> None:
    await ctrl.delete_me(session, wakeups, current_user.id)


@router.get(
    "/{user_id}",
    response_model=ProfileResponse,
    summary="Get any user's public profile",
)
async def get_user(
    user_id: uuid.UUID,
    current_user: CurrentUser = Depends(get_current_user),  # noqa: ARG001
    session: AsyncSession = Depends(get_db),
) -> ProfileResponse:
    return await ctrl.get_user(session, user_id)
