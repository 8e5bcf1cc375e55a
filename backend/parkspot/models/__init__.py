from parkspot.models.location import Location
from parkspot.models.spot import Spot

__all__ = ["Location", "Spot"]
