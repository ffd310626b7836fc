"""
Social graph domain — follow request store and state machine.

    pending ──accept──▶ accepted
       └────reject──▶ rejected

accepted and rejected are terminal.  Rejecting a resolved request is a no-op,
as is accepting an accepted one; accepting a rejected request raises
RequestAlreadyResolved.

Writes that change the pending set addressed to a user mark that user's
requests channel for a post-commit wake-up.
"""
from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta, timezone

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncSession

from app import live
from app.exceptions import RequestAlreadyResolved, RequestNotFound
from app.social_graph.constants import TERMINAL_STATUSES, FollowRequestStatus, requests_channel
from app.social_graph.edges import insert_ignoring_conflicts
from app.social_graph.models import FollowRequest
from shared.events.schemas import ActorSnapshot

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def transition(request: FollowRequest, target: FollowRequestStatus) -> bool:
    """Move a request to a terminal status. Returns False when nothing changed."""
    if target not in TERMINAL_STATUSES:
        raise ValueError(f"{target.value} is not a terminal status")
    if request.status == FollowRequestStatus.PENDING:
        request.status = target
        request.resolved_at = _now()
        return True
    if request.status == target or target == FollowRequestStatus.REJECTED:
        return False
    raise RequestAlreadyResolved(request.status.value)


async def resolve(
    session: AsyncSession, request: FollowRequest, target: FollowRequestStatus
) -> bool:
    """Apply transition() and flush; the request leaves the target's pending set."""
    if not transition(request, target):
        return False
    await session.flush()
    live.mark_changed(session, requests_channel(request.to_user_id))
    return True


async def get_request(
    session: AsyncSession, request_id: uuid.UUID, *, for_update: bool = False
) -> FollowRequest:
    stmt = sa.select(FollowRequest).where(FollowRequest.request_id == request_id)
    if for_update:
        # Serializes concurrent resolutions of the same request (no-op on SQLite).
        stmt = stmt.with_for_update()
    result = await session.execute(stmt)
    request = result.scalar_one_or_none()
    if request is None:
        raise RequestNotFound()
    return request


async def find_pending(
    session: AsyncSession, from_user_id: uuid.UUID, to_user_id: uuid.UUID
) -> FollowRequest | None:
    result = await session.execute(
        sa.select(FollowRequest).where(
            FollowRequest.from_user_id == from_user_id,
            FollowRequest.to_user_id == to_user_id,
            FollowRequest.status == FollowRequestStatus.PENDING,
        )
    )
    return result.scalar_one_or_none()


async def find_latest(
    session: AsyncSession, from_user_id: uuid.UUID, to_user_id: uuid.UUID
) -> FollowRequest | None:
    """The most recently created request from → to, whatever its status."""
    result = await session.execute(
        sa.select(FollowRequest)
        .where(
            FollowRequest.from_user_id == from_user_id,
            FollowRequest.to_user_id == to_user_id,
        )
        .order_by(FollowRequest.created_at.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def create_pending(
    session: AsyncSession,
    from_user_id: uuid.UUID,
    to_user_id: uuid.UUID,
    from_user_info: ActorSnapshot,
) -> tuple[FollowRequest, bool]:
    """Insert a pending request unless one already exists for the pair.

    Returns (request, created).  A concurrent duplicate loses on the partial
    unique index and gets the winner's row back with created=False.  If the
    winner was resolved before it could be read, a rejection (or withdrawal)
    frees the pair and the insert is tried once more; an acceptance raises
    RequestAlreadyResolved.
    """
    for _ in range(2):
        request_id = uuid.uuid4()
        stmt = (
            insert_ignoring_conflicts(session, FollowRequest.__table__)
            .values(
                request_id=request_id,
                from_user_id=from_user_id,
                to_user_id=to_user_id,
                status=FollowRequestStatus.PENDING,
                from_user_info=from_user_info.model_dump(mode="json"),
                created_at=_now(),
            )
            .on_conflict_do_nothing()
        )
        result = await session.execute(stmt)
        if result.rowcount == 1:
            live.mark_changed(session, requests_channel(to_user_id))
            return await get_request(session, request_id), True

        existing = await find_pending(session, from_user_id, to_user_id)
        if existing is not None:
            return existing, False

        latest = await find_latest(session, from_user_id, to_user_id)
        if latest is not None and latest.status == FollowRequestStatus.ACCEPTED:
            raise RequestAlreadyResolved(latest.status.value)
        logger.info("Pending request %s → %s resolved mid-insert, retrying", from_user_id, to_user_id)

    latest = await find_latest(session, from_user_id, to_user_id)
    status = latest.status if latest is not None else FollowRequestStatus.REJECTED
    raise RequestAlreadyResolved(status.value)


async def record_accepted(
    session: AsyncSession,
    from_user_id: uuid.UUID,
    to_user_id: uuid.UUID,
    from_user_info: ActorSnapshot,
) -> FollowRequest:
    """Record a request to a public account, which is accepted on arrival."""
    now = _now()
    request = FollowRequest(
        from_user_id=from_user_id,
        to_user_id=to_user_id,
        status=FollowRequestStatus.ACCEPTED,
        from_user_info=from_user_info.model_dump(mode="json"),
        created_at=now,
        resolved_at=now,
    )
    session.add(request)
    await session.flush()
    return request


async def list_pending_for(
    session: AsyncSession, to_user_id: uuid.UUID
) -> list[FollowRequest]:
    """Pending requests addressed to a user, newest first."""
    result = await session.execute(
        sa.select(FollowRequest)
        .where(
            FollowRequest.to_user_id == to_user_id,
            FollowRequest.status == FollowRequestStatus.PENDING,
        )
        .order_by(FollowRequest.created_at.desc(), FollowRequest.request_id)
    )
    return list(result.scalars().all())


async def delete_request(session: AsyncSession, request: FollowRequest) -> None:
    was_pending = request.status == FollowRequestStatus.PENDING
    to_user_id = request.to_user_id
    await session.delete(request)
    await session.flush()
    if was_pending:
        live.mark_changed(session, requests_channel(to_user_id))


async def delete_for_user(session: AsyncSession, user_id: uuid.UUID) -> int:
    """Remove every request the user sent or received."""
    targets = await session.execute(
        sa.select(FollowRequest.to_user_id).where(
            FollowRequest.from_user_id == user_id,
            FollowRequest.status == FollowRequestStatus.PENDING,
        )
    )
    for to_user_id in targets.scalars().all():
        live.mark_changed(session, requests_channel(to_user_id))
    result = await session.execute(
        sa.delete(FollowRequest).where(
            sa.or_(
                FollowRequest.from_user_id == user_id,
                FollowRequest.to_user_id == user_id,
            )
        )
    )
    return result.rowcount


async def cleanup_resolved_requests(
    session: AsyncSession,
    older_than: timedelta,
    *,
    now: datetime | None = None,
) -> int:
    """Purge accepted / rejected requests resolved before ``now - older_than``.

    Pending requests are never touched regardless of age.
    """
    cutoff = (now or _now()) - older_than
    result = await session.execute(
        sa.delete(FollowRequest).where(
            FollowRequest.status.in_(list(TERMINAL_STATUSES)),
            FollowRequest.resolved_at < cutoff,
        )
    )
    deleted = result.rowcount
    logger.info("Purged %d resolved follow requests older than %s", deleted, cutoff.isoformat())
    return deleted
