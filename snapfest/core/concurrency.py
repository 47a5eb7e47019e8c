"""Optimistic concurrency helpers for versioned booking rows."""

import logging
from collections.abc import Awaitable, Callable
from datetime import timedelta
from typing import TypeVar

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from snapfest.core.exceptions import ConcurrencyError, ConflictError
from snapfest.utils.datetime_normaliser import ensure_utc, utcnow

logger = logging.getLogger(__name__)

T = TypeVar("T")


def check_expected_version(booking, expected_version: int | None) -> None:
    """Reject a command issued against an older view of the booking.

    Raises:
        ConcurrencyError: ``expected_version`` given and not current
    """
    if expected_version is not None and expected_version != booking.version:
        raise ConcurrencyError(
            f"Booking version is {booking.version}, request expected {expected_version}. "
            "Reload and try again."
        )


async def flush_or_conflict(db: AsyncSession) -> None:
    """Flush pending writes; a lost versioned UPDATE becomes ConcurrencyError."""
    try:
        await db.flush()
    except StaleDataError as e:
        raise ConcurrencyError() from e


async def claim_for_gateway(db: AsyncSession, booking, ttl: timedelta) -> None:
    """Commit a claim on ``booking`` before money moves at a gateway.

    The claim is a versioned UPDATE, so of two requests that loaded the
    same version only one reaches the gateway. A claim younger than
    ``ttl`` blocks later requests until it is released.

    Raises:
        ConflictError: Another charge or refund holds the booking
        ConcurrencyError: Lost the race to claim
    """
    now = utcnow()
    claimed_at = ensure_utc(booking.gateway_claimed_at)
    if claimed_at is not None and now - claimed_at < ttl:
        raise ConflictError("A payment operation is already in progress for this booking")

    booking.gateway_claimed_at = now
    await flush_or_conflict(db)
    await db.commit()


async def release_gateway_claim(db: AsyncSession, booking) -> None:
    """Drop a claim when the gateway call ends without a booking update."""
    booking.gateway_claimed_at = None
    await flush_or_conflict(db)
    await db.commit()


async def retry_on_conflict(
    db: AsyncSession,
    operation: Callable[[], Awaitable[T]],
    attempts: int,
) -> T:
    """Run ``operation``, rolling back and re-running it on ConcurrencyError.

    Only for callers that own the whole transaction (webhook consumers):
    the rollback discards everything pending in ``db``.
    """
    for attempt in range(1, attempts + 1):
        try:
            return await operation()
        except ConcurrencyError:
            await db.rollback()
            if attempt == attempts:
                raise
            logger.warning(f"Concurrent booking update, retrying ({attempt}/{attempts})")
    raise ConcurrencyError()
