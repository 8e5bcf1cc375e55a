"""
Reservation service: the only writer of spot occupancy.

STATE MACHINE
=============

    AVAILABLE --book(user)--> OCCUPIED_BY(user) --cancel(same user)--> AVAILABLE

No other transition is legal.

CONCURRENCY STRATEGY: Conditional Update (compare-and-set)
==========================================================

Problem:
  Two users look at the same empty spot and press "Book" together.
  With fetch-then-update, both read is_occupied=false, both write their
  own id, the second silently overwrites the first. Two people drive to
  one spot.

Solution:
  The precondition goes into the UPDATE itself (see spot_store):

    UPDATE spots SET is_occupied = true, booked_by = :user, booking_start = :now
    WHERE location_id = :l AND spot_number = :n AND is_occupied IS false

  The database applies it atomically per row. Exactly one racer gets
  rowcount == 1; the other gets 0 and a ConflictError. A taken spot stays
  taken for that request, so there is no retry loop here.

  Cancellation is the same shape with "AND booked_by = :user", which makes
  ownership isolation a database guarantee rather than a UI convention.

  No row locks, no global lock: each spot's write is independently atomic
  and writes on different spots never contend.

After commit, in this order:
  1. The cached location listing is invalidated.
  2. A SpotChange built from the values just written is published on the
     live update channel (fire-and-forget), so every viewer of the
     location re-reads and finds a fresh listing.
  3. The spot is re-read for the response. If that read fails the write
     still stands; the caller gets the spot as written.
  Nothing is published for a rolled-back attempt.

Failure handling:
  - Storage connectivity errors -> TransientError (retry with backoff)
  - The conditional UPDATE plus its commit exceeding
    RESERVATION_TIMEOUT_SECONDS -> IndeterminateError. The write may or may
    not have committed, so the listing cache is invalidated anyway; callers
    must re-read before retrying, otherwise their own successful booking
    comes back as a Conflict.
"""

import asyncio
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Awaitable, Callable, Optional

from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from parkspot.core.config import get_settings
from parkspot.core.errors import (
    ConflictError,
    ForbiddenError,
    IndeterminateError,
    ReservationError,
    TransientError,
)
from parkspot.core.logging import get_logger
from parkspot.core.metrics import record_reservation
from parkspot.models.spot import Spot
from parkspot.services import cache_service, spot_store
from parkspot.services.interfaces.live_updates import LiveUpdateChannel, SpotChange

logger = get_logger(__name__)

STATUS_AVAILABLE = "available"
STATUS_OCCUPIED = "occupied"
STATUS_YOURS = "yours"

STORAGE_ERRORS = (OperationalError, InterfaceError)


async def book_spot(
    db: AsyncSession,
    location_id: int,
    spot_number: int,
    user_id: str,
    channel: LiveUpdateChannel,
    timeout: Optional[float] = None,
) -> Spot:
    """Occupy an available spot for user_id. Raises ConflictError if it is taken."""
    timeout = _resolve_timeout(timeout)
    started = time.perf_counter()
    try:
        now = datetime.now(timezone.utc)
        committed = await _commit_transition(
            "book",
            db,
            location_id,
            spot_number,
            lambda: spot_store.try_occupy(db, location_id, spot_number, user_id, now),
            timeout,
        )
        if not committed:
            current = await _read_rejected(db, "book", location_id, spot_number)
            if current.booked_by == user_id:
                detail = f"Spot {spot_number} is already booked by you"
            else:
                detail = f"Spot {spot_number} is no longer available. Please refresh and choose another spot."
            logger.warning(
                "booking_conflict",
                location_id=location_id,
                spot_number=spot_number,
                user_id=user_id,
            )
            raise ConflictError(detail)
    except ReservationError as e:
        record_reservation("book", e.kind, time.perf_counter() - started)
        raise

    record_reservation("book", "success", time.perf_counter() - started)
    logger.info(
        "spot_booked",
        location_id=location_id,
        spot_number=spot_number,
        user_id=user_id,
        booking_start=now.isoformat(),
    )
    await _announce(channel, location_id, spot_number, is_occupied=True)

    as_written = Spot(
        location_id=location_id,
        spot_number=spot_number,
        is_occupied=True,
        booked_by=user_id,
        booking_start=now,
    )
    return await _read_committed(db, as_written, timeout)


async def cancel_booking(
    db: AsyncSession,
    location_id: int,
    spot_number: int,
    user_id: str,
    channel: LiveUpdateChannel,
    timeout: Optional[float] = None,
) -> Spot:
    """Release a spot held by user_id. Raises ForbiddenError for anyone else."""
    timeout = _resolve_timeout(timeout)
    started = time.perf_counter()
    try:
        committed = await _commit_transition(
            "cancel",
            db,
            location_id,
            spot_number,
            lambda: spot_store.try_release(db, location_id, spot_number, user_id),
            timeout,
        )
        if not committed:
            current = await _read_rejected(db, "cancel", location_id, spot_number)
            if current.is_occupied:
                detail = f"Spot {spot_number} is booked by another user"
            else:
                detail = f"Spot {spot_number} is not booked"
            logger.warning(
                "cancellation_forbidden",
                location_id=location_id,
                spot_number=spot_number,
                user_id=user_id,
                occupied=current.is_occupied,
            )
            raise ForbiddenError(detail)
    except ReservationError as e:
        record_reservation("cancel", e.kind, time.perf_counter() - started)
        raise

    record_reservation("cancel", "success", time.perf_counter() - started)
    logger.info(
        "booking_cancelled",
        location_id=location_id,
        spot_number=spot_number,
        user_id=user_id,
    )
    await _announce(channel, location_id, spot_number, is_occupied=False)

    as_written = Spot(
        location_id=location_id,
        spot_number=spot_number,
        is_occupied=False,
        booked_by=None,
        booking_start=None,
    )
    return await _read_committed(db, as_written, timeout)


async def get_user_bookings(
    db: AsyncSession,
    user_id: str,
    location_id: Optional[int] = None,
) -> list[Spot]:
    """Spots currently held by a user, optionally within one location."""
    if location_id is not None:
        await spot_store.get_location(db, location_id)
    return await spot_store.get_spots_booked_by(db, user_id, location_id)


def spot_status(spot: Spot, viewer_id: Optional[str]) -> str:
    if not spot.is_occupied:
        return STATUS_AVAILABLE
    if viewer_id is not None and spot.booked_by == viewer_id:
        return STATUS_YOURS
    return STATUS_OCCUPIED


def is_selectable(spot: Spot, viewer_id: Optional[str]) -> bool:
    """Available spots can be picked to book, the viewer's own spots to cancel."""
    return spot_status(spot, viewer_id) != STATUS_OCCUPIED


def _resolve_timeout(timeout: Optional[float]) -> float:
    if timeout is None:
        return get_settings().RESERVATION_TIMEOUT_SECONDS
    return timeout


@asynccontextmanager
async def _storage_guard(db: AsyncSession, action: str, location_id: int, spot_number: int):
    """Turn connectivity failures into TransientError after rolling back."""
    try:
        yield
    except STORAGE_ERRORS as e:
        logger.error(
            "reservation_storage_error",
            action=action,
            location_id=location_id,
            spot_number=spot_number,
            error=str(e),
        )
        await _discard(db)
        raise TransientError("Parking data is temporarily unavailable. Please try again.") from e


async def _commit_transition(
    action: str,
    db: AsyncSession,
    location_id: int,
    spot_number: int,
    transition: Callable[[], Awaitable[bool]],
    timeout: float,
) -> bool:
    """
    Run one conditional UPDATE and commit it if a row changed.

    Only the UPDATE and the commit are bounded by the timeout. Returns
    whether the transition committed; on True the listing cache has
    already been invalidated.
    """

    async def attempt() -> bool:
        if await transition():
            await db.commit()
            return True
        await db.rollback()
        return False

    async with _storage_guard(db, action, location_id, spot_number):
        try:
            changed = await asyncio.wait_for(attempt(), timeout=timeout)
        except asyncio.TimeoutError:
            logger.error(
                "reservation_timeout",
                action=action,
                location_id=location_id,
                spot_number=spot_number,
                timeout=timeout,
            )
            await _discard(db)
            # The commit may have landed
            await cache_service.invalidate_listing_cache()
            raise IndeterminateError(
                f"{action.capitalize()} of spot {spot_number} timed out and may or may not have "
                "completed. Refresh the lot before trying again."
            )

    if changed:
        await cache_service.invalidate_listing_cache()
    return changed


async def _read_rejected(db: AsyncSession, action: str, location_id: int, spot_number: int) -> Spot:
    """Current state of a spot whose transition was refused (NotFoundError if absent)."""
    async with _storage_guard(db, action, location_id, spot_number):
        return await spot_store.get_spot(db, location_id, spot_number)


async def _read_committed(db: AsyncSession, as_written: Spot, timeout: float) -> Spot:
    try:
        return await asyncio.wait_for(
            spot_store.get_spot(db, as_written.location_id, as_written.spot_number),
            timeout=timeout,
        )
    except (asyncio.TimeoutError, *STORAGE_ERRORS) as e:
        logger.warning(
            "committed_spot_reread_failed",
            location_id=as_written.location_id,
            spot_number=as_written.spot_number,
            error=str(e) or type(e).__name__,
        )
        await _discard(db)
        return as_written


async def _discard(db: AsyncSession) -> None:
    """Roll back whatever the interrupted attempt left open."""
    try:
        await db.rollback()
    except Exception as e:
        logger.error("rollback_failed", error=str(e))


async def _announce(channel: LiveUpdateChannel, location_id: int, spot_number: int, is_occupied: bool) -> None:
    event = SpotChange(location_id=location_id, spot_number=spot_number, is_occupied=is_occupied)
    try:
        await channel.publish(event)
    except Exception as e:
        # The commit stands; viewers recover on their next re-read
        logger.error(
            "live_update_publish_failed",
            location_id=location_id,
            spot_number=spot_number,
            error=str(e),
        )
