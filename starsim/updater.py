"""
Per-tick update driver.

Two interchangeable algorithms advance a set of bodies by one time step:

- brute force: exact O(n^2) pairwise forces for every body
- Barnes-Hut: a fresh octant tree over the universe bound each tick,
  O(n log n) approximate forces for the bodies inside that bound

Both integrate with semi-implicit Euler (velocity, then position).
"""

from typing import Optional, Sequence

import numpy as np

from config import starsim as config
from .body import Body
from .kernels import direct_forces
from .octant import Octant
from .octant_tree import OctantTree
from .vector import Vector4, ZERO

METHODS = ("barnes_hut", "brute_force")


class BodyUpdater:
    """
    Runs simulation ticks with the configured constants.

    The tree built for a tick is discarded when the tick ends; only its node
    and query counts are kept for reporting.
    """

    def __init__(self, G: Optional[float] = None, softening: Optional[float] = None,
                 theta: Optional[float] = None, universe_radius: Optional[float] = None,
                 max_tree_depth: Optional[int] = None, method: Optional[str] = None):
        sim_cfg = config.SIMULATION
        self.G = float(sim_cfg["G"] if G is None else G)
        self.softening = float(sim_cfg["softening"] if softening is None else softening)
        self.theta = float(sim_cfg["theta"] if theta is None else theta)
        self.universe_radius = float(sim_cfg["universe_radius"] if universe_radius is None else universe_radius)
        self.max_tree_depth = int(sim_cfg["max_tree_depth"] if max_tree_depth is None else max_tree_depth)
        self.method = method or sim_cfg["method"]
        if self.method not in METHODS:
            raise ValueError(f"Unknown update method: {self.method!r} (expected one of {METHODS})")

        # Statistics from the last tick
        self.tree_nodes = 0
        self.approximations = 0
        self.interactions = 0
        self.excluded = 0

    @classmethod
    def from_settings(cls, settings: dict) -> "BodyUpdater":
        return cls(
            G=settings.get("G"),
            softening=settings.get("softening"),
            theta=settings.get("theta"),
            universe_radius=settings.get("universe_radius"),
            max_tree_depth=settings.get("max_tree_depth"),
            method=settings.get("method"),
        )

    def universe_octant(self) -> Octant:
        """A fresh root region: a cube centred on the origin enclosing the universe bound."""
        return Octant(ZERO, 2.0 * self.universe_radius)

    def advance(self, bodies: Sequence[Body], dt: float) -> None:
        """Run one full tick with the configured method, mutating bodies in place."""
        if self.method == "brute_force":
            self.update_bodies_brute_force(bodies, dt)
        else:
            self.update_bodies_barnes_hut(bodies, dt)

    def update_bodies_brute_force(self, bodies: Sequence[Body], dt: float) -> None:
        """Exact pairwise forces for every body, then integrate every body."""
        n = len(bodies)
        self.tree_nodes = 0
        self.approximations = 0
        self.interactions = n * (n - 1)
        self.excluded = 0
        if n == 0:
            return

        positions = np.empty((n, 3), dtype=np.float64)
        masses = np.empty(n, dtype=np.float64)
        for i, body in enumerate(bodies):
            p = body.position
            positions[i] = (p.x, p.y, p.z)
            masses[i] = body.mass

        forces = np.zeros((n, 3), dtype=np.float64)
        direct_forces(positions, masses, forces, self.G, self.softening)

        for body, force in zip(bodies, forces):
            body.reset_force()
            body.apply_force(Vector4(float(force[0]), float(force[1]), float(force[2])))
            body.update(dt)

    def update_bodies_barnes_hut(self, bodies: Sequence[Body], dt: float) -> None:
        """
        Approximate forces through a fresh octant tree, then integrate.

        Bodies outside the universe bound are left out of the tree, have their
        force reset, and are not integrated; they stay frozen where they are.
        """
        universe = self.universe_octant()
        tree = OctantTree(
            universe,
            theta=self.theta,
            G=self.G,
            softening=self.softening,
            max_depth=self.max_tree_depth,
            capacity=4 * len(bodies) + 1,
        )

        in_bounds = [body for body in bodies if body.is_in_octant(universe)]
        tree.insert_all(in_bounds)

        for body in bodies:
            body.reset_force()

        query = tree.accumulate_forces(in_bounds)
        for body in in_bounds:
            body.update(dt)

        self.tree_nodes = tree.node_count
        self.approximations = query.approximations
        self.interactions = query.interactions
        self.excluded = len(bodies) - len(in_bounds)


def advance(bodies: Sequence[Body], dt: Optional[float] = None, method: Optional[str] = None) -> None:
    """Advance bodies by one tick using the default configuration."""
    if dt is None:
        dt = config.SIMULATION["time_step"]
    BodyUpdater(method=method).advance(bodies, dt)
