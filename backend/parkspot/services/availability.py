"""
Availability view: pure derivation of available/total from spot state.

Nothing here mutates or caches. Callers recompute after every change they
learn about; a stale availability figure is exactly what leads users into
conflicting booking attempts.

Badge levels are display policy, configured by
AVAILABILITY_HIGH_THRESHOLD / AVAILABILITY_MEDIUM_THRESHOLD:

    available == 0          -> full
    available >  high       -> high
    available >  medium     -> medium
    otherwise               -> low
"""

from dataclasses import dataclass
from typing import Iterable, Optional

from parkspot.core.config import get_settings
from parkspot.models.location import Location
from parkspot.models.spot import Spot


@dataclass(frozen=True)
class Availability:
    available: int
    total: int
    level: str

    @property
    def full(self) -> bool:
        return self.available == 0


def classify_level(
    available: int,
    high_threshold: Optional[int] = None,
    medium_threshold: Optional[int] = None,
) -> str:
    settings = get_settings()
    high = settings.AVAILABILITY_HIGH_THRESHOLD if high_threshold is None else high_threshold
    medium = settings.AVAILABILITY_MEDIUM_THRESHOLD if medium_threshold is None else medium_threshold
    if available <= 0:
        return "full"
    if available > high:
        return "high"
    if available > medium:
        return "medium"
    return "low"


def availability_from_count(location: Location, occupied: int) -> Availability:
    available = max(location.total_spots - occupied, 0)
    return Availability(
        available=available,
        total=location.total_spots,
        level=classify_level(available),
    )


def compute_availability(location: Location, spots: Iterable[Spot]) -> Availability:
    occupied = sum(1 for spot in spots if spot.is_occupied)
    return availability_from_count(location, occupied)
