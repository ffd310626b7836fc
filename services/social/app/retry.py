"""
Bounded retry for idempotent store reads.

Writes are never retried here: a multi-step write that fails is rolled back by
get_db and surfaced to the caller, who decides whether to replay it.
"""
from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import get_settings
from app.exceptions import TransientStoreError

logger = logging.getLogger(__name__)

T = TypeVar("T")

RETRYABLE_ERRORS: tuple[type[BaseException], ...] = (
    OperationalError,
    InterfaceError,
    TimeoutError,
)


async def with_read_retry(
    session: AsyncSession,
    read: Callable[[], Awaitable[T]],
    *,
    attempts: int | None = None,
    base_delay: float | None = None,
) -> T:
    """Run ``read`` up to ``attempts`` times with exponential backoff.

    The session is rolled back between attempts so the next try starts on a
    fresh transaction.  Raises TransientStoreError once attempts are exhausted.
    """
    settings = get_settings()
    attempts = attempts or settings.read_retry_attempts
    delay = settings.read_retry_base_delay_seconds if base_delay is None else base_delay

    for attempt in range(1, attempts + 1):
        try:
            return await read()
        except RETRYABLE_ERRORS as exc:
            await session.rollback()
            if attempt == attempts:
                logger.error("Store read failed after %d attempts: %s", attempts, exc)
                raise TransientStoreError() from exc
            logger.warning("Store read failed (attempt %d/%d): %s", attempt, attempts, exc)
            await asyncio.sleep(delay * 2 ** (attempt - 1))
    raise TransientStoreError()
