"""
Profile domain — request orchestration (thin glue between router and service).
"""
from __future__ import annotations

import logging
import uuid

from sqlalchemy.ext.asyncio import AsyncSession

from app.live import Wakeups
from app.profile import service as svc
from app.profile.schemas import ProfileResponse, UpdateProfileRequest
from app.retry import with_read_retry
from app.social_graph import service as graph_svc

logger = logging.getLogger(__name__)


async def get_me(session: AsyncSession, user_id: uuid.UUID) -> ProfileResponse:
    profile = await svc.ensure_profile(session, user_id)
    return ProfileResponse.model_validate(profile)


async def get_user(session: AsyncSession, user_id: uuid.UUID) -> ProfileResponse:
    profile = await with_read_retry(session, lambda: svc.get_profile(session, user_id))
    return ProfileResponse.model_validate(profile)


async def update_me(
    session: AsyncSession,
    user_id: uuid.UUID,
    body: UpdateProfileRequest,
) -> ProfileResponse:
    fields = body.model_dump(exclude_unset=True, exclude_none=True)
    profile = await svc.update_profile(session, user_id, fields)
    return ProfileResponse.model_validate(profile)


async def delete_me(session: AsyncSession, wakeups: Wakeups, user_id: uuid.UUID) -> None:
    await graph_svc.delete_account(session, user_id)
    await wakeups.commit_and_schedule(session)
    logger.info("Account %s deleted", user_id)
