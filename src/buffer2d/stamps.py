"""Offset tables for the pixel-stamping primitives.

Each table is a tuple of (dx, dy) offsets, in write order, relative to the
stamp anchor. Offsets may repeat; a repeated write is harmless and the
order is kept so that the enumeration stays reproducible.
"""
from __future__ import annotations

from typing import Final

Offsets = tuple[tuple[int, int], ...]

DIAMOND_RADIUS: Final[int] = 3

# 2x2 block anchored at the top-left pixel
BLOCK4_OFFSETS: Final[Offsets] = ((1, 1), (1, 0), (0, 1), (0, 0))

# 3x3 neighborhood, row-major
SQUARE9_OFFSETS: Final[Offsets] = tuple(
    (dx, dy) for dy in (-1, 0, 1) for dx in (-1, 0, 1)
)


def _diamond_offsets(radius: int) -> Offsets:
    inner = radius - 1
    offsets: list[tuple[int, int]] = []
    for i in range(-radius, radius + 1):
        offsets.extend(
            (
                (radius, i),
                (-radius, i),
                (inner, i),
                (-inner, i),
                (i, -radius),
                (i, radius),
                (i, -inner),
                (i, inner),
            )
        )
    return tuple(offsets)


# Outline traced by set_pixel_diamond. Not a true circle; the exact point
# set is what overlay consumers match against.
DIAMOND_OFFSETS: Final[Offsets] = _diamond_offsets(DIAMOND_RADIUS)


def unique_offsets(offsets: Offsets) -> frozenset[tuple[int, int]]:
    """Get the distinct points a stamp touches.

    Args:
        offsets: Offset table.

    Returns:
        Set of distinct (dx, dy) offsets.
    """
    return frozenset(offsets)
