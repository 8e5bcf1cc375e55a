"""
Location model: a parking facility with a fixed grid of spots.

Key design decisions:
- Locations are maintained by the external catalog; this service only reads
  them (and provisions their spot grid once)
- rows * spots_per_row == total_spots is enforced at the DB level so the
  grid layout and the availability total can never disagree
"""

from sqlalchemy import Column, Integer, String, Numeric, CheckConstraint

from parkspot.db.base import Base, TimestampMixin


class Location(Base, TimestampMixin):
    __tablename__ = "locations"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    address = Column(String(500), nullable=False)
    total_spots = Column(Integer, nullable=False)
    price_per_hour = Column(Numeric(10, 2), nullable=False, default=0)
    rows = Column(Integer, nullable=False)
    spots_per_row = Column(Integer, nullable=False)

    __table_args__ = (
        CheckConstraint("total_spots > 0", name="check_total_spots_positive"),
        CheckConstraint("rows > 0 AND spots_per_row > 0", name="check_grid_positive"),
        CheckConstraint("rows * spots_per_row = total_spots", name="check_grid_matches_total"),
        CheckConstraint("price_per_hour >= 0", name="check_price_non_negative"),
    )

    def __repr__(self) -> str:
        return f"<Location(id={self.id}, name={self.name}, spots={self.total_spots})>"
