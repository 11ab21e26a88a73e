"""
Mutable point-mass state advanced by the update driver.

Units follow the configuration: positions in metres, velocities in metres
per second, masses in kilograms, forces in newtons.
"""

from collections import deque
from typing import Deque, Optional

from config import starsim as config
from .kernels import pair_force
from .octant import Octant
from .vector import Vector4, ZERO


class OrbitTracer:
    """Bounded trail of previous positions, keeping one sample every few updates."""

    def __init__(self, stored_positions: Optional[int] = None, sample_rate: Optional[int] = None):
        tracer_cfg = config.TRACER
        self.stored_positions = int(tracer_cfg["stored_positions"] if stored_positions is None else stored_positions)
        self.sample_rate = int(tracer_cfg["sample_rate"] if sample_rate is None else sample_rate)
        self.previous_positions: Deque[Vector4] = deque(maxlen=self.stored_positions)
        self._sample_counter = 0

    def enqueue(self, position: Vector4) -> None:
        self._sample_counter += 1
        if self._sample_counter < self.sample_rate:
            return
        self.previous_positions.append(position)
        self._sample_counter = 0

    def clear(self) -> None:
        self.previous_positions.clear()
        self._sample_counter = 0

    def __len__(self) -> int:
        return len(self.previous_positions)


class Body:
    """
    A massive particle.

    Mass must be positive; it divides the force in every update.

    ``generation`` and ``id`` identify the body across copies and never
    change; equality of state is never used to decide whether two bodies are
    the same entity.
    """

    def __init__(self, position, velocity, mass: float, generation: int = 1, id: int = 1,
                 record_previous_positions: bool = False):
        if not mass > 0.0:
            raise ValueError(f"Body mass must be positive, got {mass!r}")
        self._position = Vector4.of(position)
        self._velocity = Vector4.of(velocity)
        self._mass = float(mass)
        self._force = ZERO
        self._generation = int(generation)
        self._id = int(id)
        self.record_previous_positions = record_previous_positions
        self.orbit_tracer = OrbitTracer()

    @property
    def position(self) -> Vector4:
        return self._position

    @property
    def velocity(self) -> Vector4:
        return self._velocity

    @property
    def mass(self) -> float:
        return self._mass

    @property
    def force(self) -> Vector4:
        """Force accumulated during the current tick."""
        return self._force

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def id(self) -> int:
        return self._id

    @staticmethod
    def force_between(a: "Body", b: "Body", G: Optional[float] = None,
                      softening: Optional[float] = None) -> Vector4:
        """Gravitational force exerted on ``a`` by ``b``."""
        return point_force(b.mass, b.position, a, G, softening)

    def add_force(self, other: "Body", G: Optional[float] = None,
                  softening: Optional[float] = None) -> None:
        self._force = self._force + Body.force_between(self, other, G, softening)

    def apply_force(self, force: Vector4) -> None:
        self._force = self._force + force

    def reset_force(self) -> None:
        self._force = ZERO

    def collide(self, other: "Body") -> None:
        """Merge ``other`` into this body, conserving mass and momentum."""
        total = self._mass + other.mass
        if total > 0.0:
            self._velocity = (self._mass * self._velocity + other.mass * other.velocity) / total
        self._mass = total
        self._force = self._force + other.force

    def distance_to(self, other: "Body") -> float:
        return (other.position - self._position).magnitude()

    def is_in_octant(self, octant: Octant) -> bool:
        return octant.contains_point(self._position)

    def same_entity(self, other: "Body") -> bool:
        return self._generation == other.generation and self._id == other.id

    def update(self, dt: float, force: Optional[Vector4] = None) -> None:
        """Semi-implicit Euler step: velocity first, then position with the new velocity."""
        if force is None:
            force = self._force
        self._velocity = self._velocity + dt * force / self._mass
        if self.record_previous_positions:
            self.orbit_tracer.enqueue(self._position)
        self._position = self._position + dt * self._velocity

    def __repr__(self) -> str:
        return (f"Body {self._generation:2d}.{self._id:<4d}: Pos-{self._position}, "
                f"Vel-{self._velocity} Mass-{self._mass:.4g}")


def point_force(source_mass: float, source_position: Vector4, target: Body,
                G: Optional[float] = None, softening: Optional[float] = None) -> Vector4:
    """Force on ``target`` from a point of ``source_mass`` at ``source_position``."""
    sim_cfg = config.SIMULATION
    G = sim_cfg["G"] if G is None else G
    softening = sim_cfg["softening"] if softening is None else softening

    delta = source_position - target.position
    fx, fy, fz = pair_force(delta.x, delta.y, delta.z, source_mass, target.mass,
                            float(G), float(softening) ** 2)
    return Vector4(fx, fy, fz)
