"""
Spot model: one numbered space within a location.

Key design decisions:
- Composite primary key (location_id, spot_number); numbers run 1..total_spots
- is_occupied is kept alongside booked_by so the booking precondition is a
  plain column comparison, and a CHECK constraint keeps the two in lockstep
- booked_by is the identity provider's opaque user id, not a foreign key
- Index on booked_by for "spots I hold" lookups
"""

from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, Index, CheckConstraint

from parkspot.db.base import Base, TimestampMixin


class Spot(Base, TimestampMixin):
    __tablename__ = "spots"

    location_id = Column(Integer, ForeignKey("locations.id", ondelete="CASCADE"), primary_key=True)
    spot_number = Column(Integer, primary_key=True)
    is_occupied = Column(Boolean, nullable=False, default=False)
    booked_by = Column(String(255), nullable=True)
    booking_start = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        CheckConstraint("spot_number >= 1", name="check_spot_number_positive"),
        # Occupied if and only if someone owns it
        CheckConstraint("is_occupied = (booked_by IS NOT NULL)", name="check_occupied_has_owner"),
        CheckConstraint("(booked_by IS NULL) = (booking_start IS NULL)", name="check_owner_has_start"),
        Index("ix_spots_booked_by", "booked_by"),
    )

    def __repr__(self) -> str:
        return (
            f"<Spot(location={self.location_id}, number={self.spot_number}, "
            f"occupied={self.is_occupied}, booked_by={self.booked_by})>"
        )
