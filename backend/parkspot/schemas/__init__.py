from parkspot.schemas.spot import SpotResponse, BookingResponse, SpotChangeMessage
from parkspot.schemas.location import (
    AvailabilityResponse,
    LocationResponse,
    LocationWithAvailability,
    LocationListResponse,
    LotResponse,
)

__all__ = [
    "SpotResponse", "BookingResponse", "SpotChangeMessage",
    "AvailabilityResponse", "LocationResponse", "LocationWithAvailability",
    "LocationListResponse", "LotResponse",
]
