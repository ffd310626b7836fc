"""
Social graph domain — admin-facing routes.

Routes:
  POST /api/v1/admin/users/{user_id}/reconcile-follow-counts  Recompute counters from edges
  POST /api/v1/admin/follow-requests/cleanup                  Purge old resolved requests

Requires: ADMIN or SUPER_ADMIN role.
"""
from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import get_settings
from app.database import get_db
from app.dependencies import require_admin
from app.live import Wakeups, get_wakeups
from app.social_graph import controller as ctrl
from app.social_graph.schemas import CleanupResponse, FollowStatsResponse
from shared.models.user import CurrentUser

router = APIRouter(prefix="/admin", tags=["admin-social-graph"])


@router.post(
    "/users/{user_id}/reconcile-follow-counts",
    response_model=FollowStatsResponse,
    summary="[Admin] Repair a user's follower / following counters",
    description="Counts the follow edges and overwrites both denormalized counters.",
)
async def reconcile_follow_counts(
    user_id: uuid.UUID,
    admin: CurrentUser = Depends(require_admin),  # noqa: ARG001
    session: AsyncSession = Depends(get_db),
    wakeups: Wakeups = Depends(get_wakeups),
) -> FollowStatsResponse:
    return await ctrl.reconcile_counts(session, wakeups, user_id)


@router.post(
    "/follow-requests/cleanup",
    response_model=CleanupResponse,
    summary="[Admin] Purge resolved follow requests",
    description="Deletes accepted / rejected requests older than the retention window. Pending requests are kept.",
)
async def cleanup_follow_requests(
    older_than_days: int | None = Query(
        None, ge=0, description="Defaults to FOLLOW_REQUEST_RETENTION_DAYS."
    ),
    admin: CurrentUser = Depends(require_admin),  # noqa: ARG001
    session: AsyncSession = Depends(get_db),
) -> CleanupResponse:
    days = older_than_days if older_than_days is not None else get_settings().follow_request_retention_days
    return await ctrl.cleanup_requests(session, days)
