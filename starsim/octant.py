"""
Axis-aligned cubic regions of space with lazily created child octants.

Orientation: +y is top, +z is north, +x is east.
"""

from enum import IntEnum
from typing import Iterator, List, Optional

from .vector import Vector4


class PositionSpecifier(IntEnum):
    """The 8 child octant positions, shared by Octant and OctantTree."""
    TOP_NORTH_WEST = 0
    TOP_NORTH_EAST = 1
    TOP_SOUTH_EAST = 2
    TOP_SOUTH_WEST = 3
    BOTTOM_NORTH_WEST = 4
    BOTTOM_NORTH_EAST = 5
    BOTTOM_SOUTH_EAST = 6
    BOTTOM_SOUTH_WEST = 7


# Direction of each child's midpoint from the parent's midpoint, in quarter side lengths
CHILD_DIRECTIONS = (
    (-1.0, +1.0, +1.0),
    (+1.0, +1.0, +1.0),
    (+1.0, +1.0, -1.0),
    (-1.0, +1.0, -1.0),
    (-1.0, -1.0, +1.0),
    (+1.0, -1.0, +1.0),
    (+1.0, -1.0, -1.0),
    (-1.0, -1.0, -1.0),
)

# Horizontal quadrant index for (north, east)
_QUADRANTS = {
    (True, False): 0,
    (True, True): 1,
    (False, True): 2,
    (False, False): 3,
}


def to_specifier(specifier) -> PositionSpecifier:
    """Validate a child label; anything outside the 8 positions is an error."""
    if isinstance(specifier, bool):
        raise ValueError(f"Invalid octant position specifier: {specifier!r}")
    try:
        return PositionSpecifier(specifier)
    except ValueError:
        raise ValueError(f"Octant position specifier out of range: {specifier!r}") from None


def octant_for(point: Vector4, midpoint: Vector4) -> PositionSpecifier:
    """
    Which child octant of a region centred on ``midpoint`` holds ``point``.

    Points on a dividing plane go to the top, north and east halves.
    """
    top = point.y >= midpoint.y
    north = point.z >= midpoint.z
    east = point.x >= midpoint.x
    return PositionSpecifier((0 if top else 4) + _QUADRANTS[(north, east)])


class Octant:
    """
    A cube of space described by its midpoint and side length.

    Children are built on first access and cached; a child has half the
    parent's side and sits a quarter side away from the parent's midpoint on
    every axis.
    """

    __slots__ = ("_midpoint", "_length", "_half_length", "_quarter_length", "_children")

    def __init__(self, midpoint: Vector4, length: float):
        self._midpoint = Vector4.of(midpoint)
        self._length = float(length)
        self._half_length = self._length / 2
        self._quarter_length = self._length / 4
        self._children: List[Optional["Octant"]] = [None] * 8

    @property
    def midpoint(self) -> Vector4:
        return self._midpoint

    @property
    def length(self) -> float:
        return self._length

    @property
    def half_length(self) -> float:
        return self._half_length

    def contains_point(self, point: Vector4) -> bool:
        """Inclusive bounds test on the first 3 components; w is ignored."""
        m = self._midpoint
        h = self._half_length
        return (m.x - h <= point.x <= m.x + h and
                m.y - h <= point.y <= m.y + h and
                m.z - h <= point.z <= m.z + h)

    def child(self, specifier) -> "Octant":
        """Return the given child octant, creating it on first access."""
        index = to_specifier(specifier)
        octant = self._children[index]
        if octant is None:
            dx, dy, dz = CHILD_DIRECTIONS[index]
            q = self._quarter_length
            octant = Octant(self._midpoint + Vector4(dx * q, dy * q, dz * q), self._half_length)
            self._children[index] = octant
        return octant

    __getitem__ = child

    def has_child(self, specifier) -> bool:
        return self._children[to_specifier(specifier)] is not None

    def children(self) -> Iterator["Octant"]:
        """Iterate over the children created so far."""
        return (octant for octant in self._children if octant is not None)

    def octant_for(self, point: Vector4) -> PositionSpecifier:
        return octant_for(point, self._midpoint)

    def __repr__(self) -> str:
        return f"Octant(midpoint={self._midpoint}, length={self._length:.4g})"
