"""Initial schema: locations and spots with grid and occupancy constraints.

Revision ID: 001
Revises: None
Create Date: 2026-10-18
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Locations table (maintained by the catalog, read-only here)
    op.create_table(
        "locations",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("address", sa.String(500), nullable=False),
        sa.Column("total_spots", sa.Integer(), nullable=False),
        sa.Column("price_per_hour", sa.Numeric(10, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("rows", sa.Integer(), nullable=False),
        sa.Column("spots_per_row", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("total_spots > 0", name="check_total_spots_positive"),
        sa.CheckConstraint("rows > 0 AND spots_per_row > 0", name="check_grid_positive"),
        sa.CheckConstraint("rows * spots_per_row = total_spots", name="check_grid_matches_total"),
        sa.CheckConstraint("price_per_hour >= 0", name="check_price_non_negative"),
    )
    op.create_index("ix_locations_id", "locations", ["id"])

    # Spots table
    op.create_table(
        "spots",
        sa.Column(
            "location_id",
            sa.Integer(),
            sa.ForeignKey("locations.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("spot_number", sa.Integer(), primary_key=True),
        sa.Column("is_occupied", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("booked_by", sa.String(255), nullable=True),
        sa.Column("booking_start", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("spot_number >= 1", name="check_spot_number_positive"),
        # OCCUPANCY INVARIANT: a spot is occupied if and only if it has an owner.
        # The conditional updates in the reservation service always write both
        # columns together; this constraint rejects anything that does not.
        sa.CheckConstraint("is_occupied = (booked_by IS NOT NULL)", name="check_occupied_has_owner"),
        sa.CheckConstraint("(booked_by IS NULL) = (booking_start IS NULL)", name="check_owner_has_start"),
    )
    # "My bookings" lookups filter on booked_by across all locations
    op.create_index("ix_spots_booked_by", "spots", ["booked_by"])


def downgrade() -> None:
    op.drop_table("spots")
    op.drop_table("locations")
