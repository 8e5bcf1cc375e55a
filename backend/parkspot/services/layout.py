"""
Grid geometry for a location's spots.

Spots are numbered 1..rows*spots_per_row in row-major order starting at the
entrance, so spot n sits at row (n - 1) // spots_per_row and column
(n - 1) % spots_per_row, both 0-indexed.
"""


def spot_position(spot_number: int, rows: int, spots_per_row: int) -> tuple[int, int]:
    """(row, column) of a spot number."""
    if rows <= 0 or spots_per_row <= 0:
        raise ValueError("rows and spots_per_row must be positive")
    if not 1 <= spot_number <= rows * spots_per_row:
        raise ValueError(f"Spot {spot_number} is outside a {rows}x{spots_per_row} grid")
    index = spot_number - 1
    return index // spots_per_row, index % spots_per_row


def spot_number_at(row: int, column: int, rows: int, spots_per_row: int) -> int:
    """Inverse of spot_position."""
    if not (0 <= row < rows and 0 <= column < spots_per_row):
        raise ValueError(f"({row}, {column}) is outside a {rows}x{spots_per_row} grid")
    return row * spots_per_row + column + 1
