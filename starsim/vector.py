"""
Four component double precision vector.

The first three components carry the physics; ``w`` is the homogeneous
coordinate kept for projection code and otherwise rides along unchanged.
"""

import math
from dataclasses import dataclass
from typing import Iterator, Sequence

import numpy as np


@dataclass(frozen=True, slots=True)
class Vector4:
    """Immutable value type; every operator returns a new vector."""
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0
    w: float = 0.0

    @classmethod
    def of(cls, value) -> "Vector4":
        """Coerce a Vector4 or a 3/4 element sequence into a Vector4."""
        if isinstance(value, Vector4):
            return value
        return cls(*(float(v) for v in value))

    @classmethod
    def from_array(cls, array: Sequence[float], w: float = 0.0) -> "Vector4":
        return cls(float(array[0]), float(array[1]), float(array[2]), w)

    def to_array(self) -> np.ndarray:
        """The spatial part as a float64 array of shape (3,)."""
        return np.array([self.x, self.y, self.z], dtype=np.float64)

    def _combine(self, other, op):
        if isinstance(other, Vector4):
            return Vector4(op(self.x, other.x), op(self.y, other.y),
                           op(self.z, other.z), op(self.w, other.w))
        if isinstance(other, (int, float)):
            return Vector4(op(self.x, other), op(self.y, other),
                           op(self.z, other), op(self.w, other))
        return NotImplemented

    def __add__(self, other):
        return self._combine(other, lambda a, b: a + b)

    def __radd__(self, other):
        return self._combine(other, lambda a, b: b + a)

    def __sub__(self, other):
        return self._combine(other, lambda a, b: a - b)

    def __rsub__(self, other):
        return self._combine(other, lambda a, b: b - a)

    def __mul__(self, other):
        return self._combine(other, lambda a, b: a * b)

    def __rmul__(self, other):
        return self._combine(other, lambda a, b: b * a)

    def __truediv__(self, other):
        return self._combine(other, lambda a, b: a / b)

    def __rtruediv__(self, other):
        return self._combine(other, lambda a, b: b / a)

    def __neg__(self) -> "Vector4":
        return Vector4(-self.x, -self.y, -self.z, -self.w)

    def __getitem__(self, index: int) -> float:
        if index == 0:
            return self.x
        if index == 1:
            return self.y
        if index == 2:
            return self.z
        if index == 3:
            return self.w
        raise IndexError(f"Vector4 index out of range: {index}")

    def __iter__(self) -> Iterator[float]:
        yield self.x
        yield self.y
        yield self.z
        yield self.w

    def dot(self, other: "Vector4") -> float:
        """Dot product of the spatial parts."""
        return self.x * other.x + self.y * other.y + self.z * other.z

    def magnitude_squared(self) -> float:
        return self.x * self.x + self.y * self.y + self.z * self.z

    def magnitude(self) -> float:
        return math.sqrt(self.magnitude_squared())

    def __str__(self) -> str:
        return f"({self.x:.4g}, {self.y:.4g}, {self.z:.4g})"


ZERO = Vector4()
