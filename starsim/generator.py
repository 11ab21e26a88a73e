"""
Initial conditions: random positions, near-circular orbits around a central
attractor, and batches of bodies.

Every generator takes an explicit numpy Generator so runs are reproducible
from a seed.
"""

import math
from typing import List, Optional

import numpy as np

from config import starsim as config
from .body import Body
from .vector import Vector4, ZERO


def make_rng(seed: Optional[int] = None) -> np.random.Generator:
    return np.random.default_rng(seed)


class OrbitGenerator:
    """Positions scattered through the universe and orbital velocities around the origin."""

    def __init__(self, rng: np.random.Generator, G: Optional[float] = None,
                 central_body_mass: Optional[float] = None,
                 universe_radius: Optional[float] = None,
                 vertical_spread: Optional[float] = None):
        sim_cfg = config.SIMULATION
        gen_cfg = config.GENERATOR
        self.rng = rng
        self.G = float(sim_cfg["G"] if G is None else G)
        self.central_body_mass = float(gen_cfg["central_body_mass"] if central_body_mass is None else central_body_mass)
        self.universe_radius = float(sim_cfg["universe_radius"] if universe_radius is None else universe_radius)
        self.vertical_spread = float(gen_cfg["vertical_spread"] if vertical_spread is None else vertical_spread)

    def random_position(self) -> Vector4:
        spread = 2.0 * self.universe_radius * math.exp(-1.8)
        x, y, z = spread * (0.5 - self.rng.random(3))
        return Vector4(float(x), float(y), float(z))

    def circular_velocity(self, position: Vector4) -> Vector4:
        """
        Velocity for a circular orbit around the central body at the origin.

        Speed is sqrt(G*M/r), directed tangentially around the vertical (y)
        axis; points on that axis orbit around the x axis instead.
        """
        distance = position.magnitude()
        if distance == 0.0:
            return ZERO
        speed = math.sqrt(self.G * self.central_body_mass / distance)

        # Tangent = axis x position
        tx, ty, tz = position.z, 0.0, -position.x
        if tx == 0.0 and tz == 0.0:
            tx, ty, tz = 0.0, -position.z, position.y
        norm = math.sqrt(tx * tx + ty * ty + tz * tz)
        return Vector4(speed * tx / norm, speed * ty / norm, speed * tz / norm)

    def random_orbit(self, position: Vector4) -> Vector4:
        """Circular velocity with a small random vertical drift and a random sense of rotation."""
        velocity = self.circular_velocity(position)
        distance = position.magnitude()
        if distance > 0.0:
            vertical = min(2e8 / distance, self.vertical_spread)
            velocity = velocity + Vector4(0.0, float(self.rng.random() - 0.5) * vertical, 0.0)

        if self.rng.random() <= 0.5:
            return -velocity
        return velocity


class BodyGenerator:
    """Creates numbered batches of bodies; each batch is a new generation."""

    def __init__(self, rng: np.random.Generator, orbit_generator: Optional[OrbitGenerator] = None,
                 solar_mass: Optional[float] = None):
        gen_cfg = config.GENERATOR
        self.rng = rng
        self.orbits = orbit_generator or OrbitGenerator(rng)
        self.solar_mass = float(gen_cfg["solar_mass"] if solar_mass is None else solar_mass)
        self.current_generation = 0

    def generate_bodies(self, count: int = 2, central_attractor: bool = False) -> List[Body]:
        self.current_generation += 1

        bodies = []
        for i in range(count):
            mass = float(self.rng.random()) * self.solar_mass
            position = self.orbits.random_position()
            velocity = self.orbits.random_orbit(position)
            bodies.append(Body(position, velocity, mass, self.current_generation, i))

        if central_attractor and count >= 2:
            bodies[0] = Body(ZERO, ZERO, self.orbits.central_body_mass, self.current_generation, 0)

        return bodies


def generate_bodies(count: Optional[int] = None, central_attractor: Optional[bool] = None,
                    seed: Optional[int] = None) -> List[Body]:
    """One generation of bodies from the default configuration."""
    gen_cfg = config.GENERATOR
    count = gen_cfg["body_count"] if count is None else count
    central_attractor = gen_cfg["central_attractor"] if central_attractor is None else central_attractor
    seed = gen_cfg["seed"] if seed is None else seed
    return BodyGenerator(make_rng(seed)).generate_bodies(count, central_attractor)
