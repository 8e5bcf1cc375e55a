"""
Location endpoints: listing with availability, the lot view, and the live
update WebSocket for a lot.
"""

from typing import Optional

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect, status
from sqlalchemy.ext.asyncio import AsyncSession

from parkspot.api.presenters import availability_response, lot_response
from parkspot.db.session import get_db
from parkspot.schemas.location import (
    LocationListResponse,
    LocationResponse,
    LocationWithAvailability,
    LotResponse,
)
from parkspot.schemas.spot import SpotChangeMessage
from parkspot.services import spot_store
from parkspot.services.availability import availability_from_count
from parkspot.services.cache_service import get_cached_listing, set_cached_listing
from parkspot.services.channel_factory import get_live_updates
from parkspot.services.interfaces.live_updates import LiveUpdateChannel, SpotChange
from parkspot.core.errors import NotFoundError
from parkspot.core.security import get_optional_user_id
from parkspot.core.logging import get_logger

logger = get_logger(__name__)
router = APIRouter(prefix="/locations", tags=["Locations"])


@router.get("/", response_model=LocationListResponse)
async def list_locations_endpoint(db: AsyncSession = Depends(get_db)):
    """
    All locations with available/total spot counts.
    Cached in Redis; every committed booking or cancellation invalidates the cache.
    """
    cached, generation = await get_cached_listing()
    if cached:
        logger.info("locations_list_cache_hit")
        cached["cached"] = True
        return LocationListResponse(**cached)

    locations = await spot_store.list_locations(db)
    occupied = await spot_store.occupied_counts(db)

    response = LocationListResponse(
        locations=[
            LocationWithAvailability(
                location=LocationResponse.model_validate(location),
                availability=availability_response(
                    availability_from_count(location, occupied.get(location.id, 0))
                ),
            )
            for location in locations
        ],
        total=len(locations),
    )

    await set_cached_listing(response.model_dump(mode="json"), generation)
    return response


@router.get("/{location_id}", response_model=LotResponse)
async def get_lot_endpoint(
    location_id: int,
    viewer_id: Optional[str] = Depends(get_optional_user_id),
    db: AsyncSession = Depends(get_db),
):
    """
    One location with its full spot grid, as seen by the caller.
    Never cached: this is the view users book from.
    """
    location = await spot_store.get_location(db, location_id)
    spots = await spot_store.get_spots(db, location_id)
    return lot_response(location, spots, viewer_id)


@router.websocket("/{location_id}/live")
async def live_updates_endpoint(
    websocket: WebSocket,
    location_id: int,
    db: AsyncSession = Depends(get_db),
    channel: LiveUpdateChannel = Depends(get_live_updates),
):
    """
    Push a message for every committed book/cancel at this location.

    Messages mean "re-read the lot"; they may arrive out of order or not at
    all, so clients re-fetch GET /locations/{id} on connect and on each one.
    """
    try:
        await spot_store.get_location(db, location_id)
    except NotFoundError as e:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason=e.detail)
        return
    finally:
        await db.close()

    await websocket.accept()

    async def forward(event: SpotChange) -> None:
        message = SpotChangeMessage(
            location_id=event.location_id,
            spot_number=event.spot_number,
            is_occupied=event.is_occupied,
            occurred_at=event.occurred_at,
        )
        await websocket.send_json(message.model_dump(mode="json"))

    subscription = await channel.subscribe(location_id, forward)
    try:
        await websocket.send_json({"type": "subscribed", "location_id": location_id})
        while True:
            # Client pings keep the socket open; content is ignored
            await websocket.receive_text()
    except WebSocketDisconnect:
        logger.info("live_viewer_disconnected", location_id=location_id)
    finally:
        await channel.unsubscribe(subscription)
