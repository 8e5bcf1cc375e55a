"""
Model -> response schema conversion shared by the HTTP and WebSocket routes.
"""

from typing import Optional

from parkspot.models.location import Location
from parkspot.models.spot import Spot
from parkspot.schemas.location import AvailabilityResponse, LocationResponse, LotResponse
from parkspot.schemas.spot import SpotResponse
from parkspot.services.availability import Availability, compute_availability
from parkspot.services.layout import spot_position
from parkspot.services.reservation_service import is_selectable, spot_status, STATUS_YOURS


def availability_response(availability: Availability) -> AvailabilityResponse:
    return AvailabilityResponse(
        available=availability.available,
        total=availability.total,
        level=availability.level,
        full=availability.full,
    )


def spot_response(location: Location, spot: Spot, viewer_id: Optional[str]) -> SpotResponse:
    row, column = spot_position(spot.spot_number, location.rows, location.spots_per_row)
    status = spot_status(spot, viewer_id)
    return SpotResponse(
        location_id=spot.location_id,
        spot_number=spot.spot_number,
        row=row,
        column=column,
        is_occupied=spot.is_occupied,
        status=status,
        selectable=is_selectable(spot, viewer_id),
        # Only the owner sees when their booking started
        booking_start=spot.booking_start if status == STATUS_YOURS else None,
    )


def lot_response(location: Location, spots: list[Spot], viewer_id: Optional[str]) -> LotResponse:
    return LotResponse(
        location=LocationResponse.model_validate(location),
        availability=availability_response(compute_availability(location, spots)),
        spots=[spot_response(location, spot, viewer_id) for spot in spots],
    )
