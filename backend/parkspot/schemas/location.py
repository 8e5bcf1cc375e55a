"""
Pydantic schemas for location listings and the lot view.
"""

from decimal import Decimal
from pydantic import BaseModel

from parkspot.schemas.spot import SpotResponse


class AvailabilityResponse(BaseModel):
    available: int
    total: int
    level: str  # high, medium, low, full
    full: bool


class LocationResponse(BaseModel):
    id: int
    name: str
    address: str
    total_spots: int
    price_per_hour: Decimal
    rows: int
    spots_per_row: int

    model_config = {"from_attributes": True}


class LocationWithAvailability(BaseModel):
    location: LocationResponse
    availability: AvailabilityResponse


class LocationListResponse(BaseModel):
    locations: list[LocationWithAvailability]
    total: int
    cached: bool = False


class LotResponse(BaseModel):
    location: LocationResponse
    availability: AvailabilityResponse
    spots: list[SpotResponse]
