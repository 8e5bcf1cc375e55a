"""
Booking endpoints with concurrency-safe spot reservation.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from parkspot.api.presenters import spot_response
from parkspot.db.session import get_db
from parkspot.schemas.spot import BookingResponse, SpotResponse
from parkspot.services import spot_store
from parkspot.services.reservation_service import book_spot, cancel_booking, get_user_bookings
from parkspot.services.channel_factory import get_live_updates
from parkspot.services.interfaces.live_updates import LiveUpdateChannel
from parkspot.core.security import get_current_user_id

router = APIRouter(tags=["Bookings"])

SPOT_BOOKING_PATH = "/locations/{location_id}/spots/{spot_number}/booking"


@router.post(SPOT_BOOKING_PATH, response_model=SpotResponse, status_code=status.HTTP_201_CREATED)
async def book_spot_endpoint(
    location_id: int,
    spot_number: int,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    channel: LiveUpdateChannel = Depends(get_live_updates),
):
    """
    Book a spot.

    The write only succeeds if the spot is still free at commit time. If
    someone else got there first this returns 409 and the client should
    refresh the lot and pick again.
    """
    spot = await book_spot(db, location_id, spot_number, user_id, channel)
    location = await spot_store.get_location(db, location_id)
    return spot_response(location, spot, user_id)


@router.delete(SPOT_BOOKING_PATH, response_model=SpotResponse)
async def cancel_booking_endpoint(
    location_id: int,
    spot_number: int,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    channel: LiveUpdateChannel = Depends(get_live_updates),
):
    """Cancel your own booking. 403 if the spot is not booked by you."""
    spot = await cancel_booking(db, location_id, spot_number, user_id, channel)
    location = await spot_store.get_location(db, location_id)
    return spot_response(location, spot, user_id)


@router.get("/bookings", response_model=list[BookingResponse])
async def list_user_bookings(
    location_id: Optional[int] = Query(None, ge=1),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Spots you currently hold, optionally filtered to one location."""
    return await get_user_bookings(db, user_id, location_id)
