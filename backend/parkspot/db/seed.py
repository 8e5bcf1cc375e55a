"""
Demo catalog seeding.

    python -m parkspot.db.seed            # create tables if missing, add demo lots
    python -m parkspot.db.seed --occupy   # also pre-book the demo occupied spots

Pre-booked spots are held by DEMO_OCCUPANT through the reservation service,
the same path real bookings take.
"""

import argparse
import asyncio

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from parkspot.core.logging import setup_logging, get_logger
from parkspot.db.base import Base
from parkspot.db.session import AsyncSessionLocal, engine
from parkspot.models import Location
from parkspot.services import spot_store
from parkspot.services.interfaces.null_channel import NullChannel
from parkspot.services.reservation_service import book_spot

logger = get_logger(__name__)

DEMO_OCCUPANT = "demo-occupant"

DEMO_LOCATIONS = [
    {
        "name": "Downtown Mall",
        "address": "123 Main Street, City Center",
        "rows": 5,
        "spots_per_row": 10,
        "price_per_hour": 5,
        "occupied": [1, 3, 7, 12, 15, 23, 28, 34, 37, 41, 45],
    },
    {
        "name": "Business District",
        "address": "456 Corporate Avenue",
        "rows": 3,
        "spots_per_row": 10,
        "price_per_hour": 8,
        "occupied": [2, 5, 8, 11, 14, 18, 22, 25, 28],
    },
    {
        "name": "City Park",
        "address": "789 Park Boulevard",
        "rows": 4,
        "spots_per_row": 10,
        "price_per_hour": 3,
        "occupied": [],
    },
    {
        "name": "Airport Terminal",
        "address": "Airport Road, Terminal 1",
        "rows": 10,
        "spots_per_row": 10,
        "price_per_hour": 12,
        "occupied": [],
    },
]


async def seed_demo_locations(db: AsyncSession, occupy: bool = False) -> list[Location]:
    """Provision any demo location not already present (matched by name)."""
    existing = set((await db.execute(select(Location.name))).scalars().all())
    channel = NullChannel()
    created = []

    for demo in DEMO_LOCATIONS:
        if demo["name"] in existing:
            logger.info("seed_location_exists", name=demo["name"])
            continue
        location = await spot_store.provision_location(
            db,
            name=demo["name"],
            address=demo["address"],
            rows=demo["rows"],
            spots_per_row=demo["spots_per_row"],
            price_per_hour=demo["price_per_hour"],
        )
        await db.commit()
        created.append(location)

        if occupy:
            for spot_number in demo["occupied"]:
                await book_spot(db, location.id, spot_number, DEMO_OCCUPANT, channel)

    logger.info("seed_complete", created=len(created))
    return created


async def main(occupy: bool) -> None:
    setup_logging()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    async with AsyncSessionLocal() as session:
        await seed_demo_locations(session, occupy=occupy)
    await engine.dispose()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Seed demo parking locations")
    parser.add_argument("--occupy", action="store_true", help="pre-book the demo occupied spots")
    args = parser.parse_args()
    asyncio.run(main(args.occupy))
