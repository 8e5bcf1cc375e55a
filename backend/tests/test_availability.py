"""
Tests for grid layout and the availability view.
"""

import pytest

from parkspot.models.location import Location
from parkspot.models.spot import Spot
from parkspot.services import spot_store
from parkspot.services.availability import (
    availability_from_count,
    classify_level,
    compute_availability,
)
from parkspot.services.layout import spot_number_at, spot_position
from parkspot.services.reservation_service import book_spot


def test_spot_position_row_major():
    """Spot 47 in a 5x10 lot sits in row 4, column 6 (0-indexed)."""
    assert spot_position(47, rows=5, spots_per_row=10) == (4, 6)
    assert spot_position(1, rows=5, spots_per_row=10) == (0, 0)
    assert spot_position(10, rows=5, spots_per_row=10) == (0, 9)
    assert spot_position(11, rows=5, spots_per_row=10) == (1, 0)
    assert spot_position(50, rows=5, spots_per_row=10) == (4, 9)


def test_spot_numbering_is_bijective():
    positions = [spot_position(n, 5, 10) for n in range(1, 51)]
    assert len(set(positions)) == 50
    assert [spot_number_at(r, c, 5, 10) for r, c in positions] == list(range(1, 51))


@pytest.mark.parametrize("spot_number", [0, 51, -3])
def test_spot_position_out_of_range(spot_number):
    with pytest.raises(ValueError):
        spot_position(spot_number, rows=5, spots_per_row=10)


def test_spot_number_at_out_of_range():
    with pytest.raises(ValueError):
        spot_number_at(5, 0, rows=5, spots_per_row=10)


@pytest.mark.parametrize(
    "available,level",
    [(0, "full"), (1, "low"), (5, "low"), (6, "medium"), (10, "medium"), (11, "high"), (50, "high")],
)
def test_classify_level_default_thresholds(available, level):
    assert classify_level(available) == level


def test_classify_level_custom_thresholds():
    assert classify_level(20, high_threshold=25, medium_threshold=15) == "medium"


def test_compute_availability_counts_occupied():
    location = Location(id=1, name="Lot", address="here", total_spots=4, rows=2, spots_per_row=2)
    spots = [
        Spot(location_id=1, spot_number=1, is_occupied=True, booked_by="a"),
        Spot(location_id=1, spot_number=2, is_occupied=False),
        Spot(location_id=1, spot_number=3, is_occupied=True, booked_by="b"),
        Spot(location_id=1, spot_number=4, is_occupied=False),
    ]

    availability = compute_availability(location, spots)

    assert availability.available == 2
    assert availability.total == 4
    assert availability.level == "low"
    assert availability.full is False


def test_availability_full_lot():
    location = Location(id=1, name="Lot", address="here", total_spots=3, rows=1, spots_per_row=3)
    availability = availability_from_count(location, 3)
    assert availability.available == 0
    assert availability.full is True
    assert availability.level == "full"


@pytest.mark.asyncio
async def test_availability_after_bookings(db_session, downtown, channel):
    """50 provisioned spots are all available; three bookings leave 47."""
    spots = await spot_store.get_spots(db_session, downtown.id)
    assert [s.spot_number for s in spots] == list(range(1, 51))
    assert compute_availability(downtown, spots).available == 50

    for n, user in ((4, "alice"), (17, "bob"), (33, "carol")):
        await book_spot(db_session, downtown.id, n, user, channel)

    spots = await spot_store.get_spots(db_session, downtown.id)
    availability = compute_availability(downtown, spots)
    assert availability.available == 47
    assert availability.total == 50

    assert await spot_store.occupied_counts(db_session) == {downtown.id: 3}


@pytest.mark.asyncio
async def test_provision_rejects_bad_grid(db_session):
    with pytest.raises(ValueError):
        await spot_store.provision_location(db_session, "Bad", "nowhere", rows=0, spots_per_row=10)
    with pytest.raises(ValueError):
        await spot_store.provision_location(
            db_session, "Bad", "nowhere", rows=1, spots_per_row=1, price_per_hour=-1
        )
