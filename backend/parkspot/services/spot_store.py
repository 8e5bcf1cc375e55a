"""
Spot store: the durable record of every spot's occupancy.

Reads are plain SELECTs that always overwrite whatever the session already
has in its identity map (populate_existing), so a re-read after a conflict
or a commit reflects the database rather than a stale object.

Writes are exposed only as two conditional-update primitives. Each is a
single UPDATE whose WHERE clause carries the precondition, so the database
decides atomically whether the transition happens:

    try_occupy:  ... WHERE location_id = :l AND spot_number = :n AND is_occupied IS false
    try_release: ... WHERE location_id = :l AND spot_number = :n AND booked_by = :user

rowcount == 1 means the transition committed to this transaction; 0 means
the precondition did not hold (or the spot does not exist). There is no
read-then-write window for a concurrent writer to slip into.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import select, update, func
from sqlalchemy.ext.asyncio import AsyncSession

from parkspot.models.location import Location
from parkspot.models.spot import Spot
from parkspot.core.errors import NotFoundError
from parkspot.core.logging import get_logger

logger = get_logger(__name__)


async def get_location(db: AsyncSession, location_id: int) -> Location:
    result = await db.execute(
        select(Location)
        .where(Location.id == location_id)
        .execution_options(populate_existing=True)
    )
    location = result.scalar_one_or_none()
    if not location:
        raise NotFoundError(f"Location {location_id} not found")
    return location


async def list_locations(db: AsyncSession) -> list[Location]:
    result = await db.execute(select(Location).order_by(Location.id.asc()))
    return list(result.scalars().all())


async def get_spots(db: AsyncSession, location_id: int) -> list[Spot]:
    """All spots of a location ordered by spot number."""
    await get_location(db, location_id)
    result = await db.execute(
        select(Spot)
        .where(Spot.location_id == location_id)
        .order_by(Spot.spot_number.asc())
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


async def get_spot(db: AsyncSession, location_id: int, spot_number: int) -> Spot:
    result = await db.execute(
        select(Spot)
        .where(Spot.location_id == location_id, Spot.spot_number == spot_number)
        .execution_options(populate_existing=True)
    )
    spot = result.scalar_one_or_none()
    if spot:
        return spot
    # Distinguish a missing location from a missing spot
    await get_location(db, location_id)
    raise NotFoundError(f"Spot {spot_number} not found at location {location_id}")


async def occupied_counts(db: AsyncSession) -> dict[int, int]:
    """Occupied spot count per location, for the listing."""
    result = await db.execute(
        select(Spot.location_id, func.count())
        .where(Spot.is_occupied.is_(True))
        .group_by(Spot.location_id)
    )
    return {location_id: count for location_id, count in result.all()}


async def get_spots_booked_by(
    db: AsyncSession,
    user_id: str,
    location_id: Optional[int] = None,
) -> list[Spot]:
    query = select(Spot).where(Spot.booked_by == user_id)
    if location_id is not None:
        query = query.where(Spot.location_id == location_id)
    result = await db.execute(
        query
        .order_by(Spot.location_id.asc(), Spot.spot_number.asc())
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


async def provision_location(
    db: AsyncSession,
    name: str,
    address: str,
    rows: int,
    spots_per_row: int,
    price_per_hour: Decimal | int | str = 0,
) -> Location:
    """
    Create a location and its full spot grid, every spot available.
    The caller owns the transaction and must commit.
    """
    if rows <= 0 or spots_per_row <= 0:
        raise ValueError("rows and spots_per_row must be positive")
    price = Decimal(str(price_per_hour))
    if price < 0:
        raise ValueError("price_per_hour must be non-negative")

    location = Location(
        name=name,
        address=address,
        total_spots=rows * spots_per_row,
        price_per_hour=price,
        rows=rows,
        spots_per_row=spots_per_row,
    )
    db.add(location)
    await db.flush()

    db.add_all(
        Spot(location_id=location.id, spot_number=n, is_occupied=False)
        for n in range(1, location.total_spots + 1)
    )
    await db.flush()

    logger.info(
        "location_provisioned",
        location_id=location.id,
        name=name,
        total_spots=location.total_spots,
    )
    return location


async def try_occupy(
    db: AsyncSession,
    location_id: int,
    spot_number: int,
    user_id: str,
    now: datetime,
) -> bool:
    result = await db.execute(
        update(Spot)
        .where(
            Spot.location_id == location_id,
            Spot.spot_number == spot_number,
            Spot.is_occupied.is_(False),
        )
        .values(is_occupied=True, booked_by=user_id, booking_start=now)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def try_release(
    db: AsyncSession,
    location_id: int,
    spot_number: int,
    user_id: str,
) -> bool:
    result = await db.execute(
        update(Spot)
        .where(
            Spot.location_id == location_id,
            Spot.spot_number == spot_number,
            Spot.booked_by == user_id,
        )
        .values(is_occupied=False, booked_by=None, booking_start=None)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1
