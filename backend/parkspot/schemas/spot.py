"""
Pydantic schemas for spots as seen by a particular viewer.

Other users' identities are never exposed: a viewer learns whether a spot is
occupied and whether it is theirs, not who holds it.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel


class SpotResponse(BaseModel):
    location_id: int
    spot_number: int
    row: int
    column: int
    is_occupied: bool
    status: str  # available, occupied, yours
    selectable: bool
    booking_start: Optional[datetime] = None


class BookingResponse(BaseModel):
    location_id: int
    spot_number: int
    booking_start: Optional[datetime]

    model_config = {"from_attributes": True}


class SpotChangeMessage(BaseModel):
    type: str = "spot_changed"
    location_id: int
    spot_number: int
    is_occupied: bool
    occurred_at: datetime
