"""
Numba kernels for gravitational force accumulation.

All kernels work on flat arrays: body positions (n, 3), masses (n,), and the
octant tree arena (one row per node, children addressed by index, -1 where
a child does not exist).
"""

import math
import numpy as np
from numba import njit, prange


@njit(cache=True)
def pair_force(dx: float, dy: float, dz: float,
               source_mass: float, target_mass: float,
               G: float, softening_sq: float):
    """
    Force on a target from a point source displaced by (dx, dy, dz).

    The magnitude is softened, G*m*M / (d^2 + eps^2), while the direction is
    normalised by the raw distance d. Coincident points contribute nothing.
    """
    dist_sq = dx * dx + dy * dy + dz * dz
    if dist_sq == 0.0:
        return 0.0, 0.0, 0.0

    dist = math.sqrt(dist_sq)
    force = G * source_mass * target_mass / (dist_sq + softening_sq)
    return force * dx / dist, force * dy / dist, force * dz / dist


@njit(cache=True)
def tree_force(
    px: float, py: float, pz: float,
    mass: float,
    self_index: int,
    self_leaf: int,
    node_count: np.ndarray,     # (max_nodes,)
    node_masses: np.ndarray,    # (max_nodes,)
    node_com: np.ndarray,       # (max_nodes, 3)
    node_sides: np.ndarray,     # (max_nodes,)
    node_children: np.ndarray,  # (max_nodes, 8)
    node_occupant: np.ndarray,  # (max_nodes,)
    theta_sq: float,
    G: float,
    softening_sq: float,
    stack_size: int,
):
    """
    Barnes-Hut force on one reference point.

    Stack-based traversal from the root (node 0):
      - single-body node whose occupant is not the reference: exact point mass
      - side^2 < theta^2 * d^2: whole subtree as one aggregate point mass
      - otherwise: push every existing child; a depth-capped node with no
        children is evaluated as one aggregate instead

    Returns (fx, fy, fz, approximations, interactions).
    """
    fx, fy, fz = 0.0, 0.0, 0.0
    approximations = 0
    interactions = 0

    stack = np.empty(stack_size, dtype=np.int64)
    stack[0] = 0
    stack_ptr = 1

    while stack_ptr > 0:
        stack_ptr -= 1
        node = stack[stack_ptr]

        count = node_count[node]
        if count == 0:
            continue

        dx = node_com[node, 0] - px
        dy = node_com[node, 1] - py
        dz = node_com[node, 2] - pz

        if count == 1:
            if node_occupant[node] != self_index:
                ax, ay, az = pair_force(dx, dy, dz, node_masses[node], mass, G, softening_sq)
                fx += ax
                fy += ay
                fz += az
                interactions += 1
            continue

        side = node_sides[node]
        if side * side < theta_sq * (dx * dx + dy * dy + dz * dz):
            ax, ay, az = pair_force(dx, dy, dz, node_masses[node], mass, G, softening_sq)
            fx += ax
            fy += ay
            fz += az
            approximations += 1
            interactions += 1
            continue

        opened = False
        for c in range(8):
            child = node_children[node, c]
            if child >= 0:
                stack[stack_ptr] = child
                stack_ptr += 1
                opened = True
        if opened:
            continue

        # Depth-capped node: its bodies share one aggregate, minus the reference if it is one of them
        source_mass = node_masses[node]
        if node == self_leaf:
            source_mass -= mass
            if source_mass <= 0.0:
                continue
            dx = (node_masses[node] * node_com[node, 0] - mass * px) / source_mass - px
            dy = (node_masses[node] * node_com[node, 1] - mass * py) / source_mass - py
            dz = (node_masses[node] * node_com[node, 2] - mass * pz) / source_mass - pz
        ax, ay, az = pair_force(dx, dy, dz, source_mass, mass, G, softening_sq)
        fx += ax
        fy += ay
        fz += az
        interactions += 1

    return fx, fy, fz, approximations, interactions


@njit(parallel=True, cache=True)
def tree_forces(
    positions: np.ndarray,
    masses: np.ndarray,
    self_indices: np.ndarray,
    self_leaves: np.ndarray,
    forces: np.ndarray,
    approximations: np.ndarray,
    interactions: np.ndarray,
    node_count: np.ndarray,
    node_masses: np.ndarray,
    node_com: np.ndarray,
    node_sides: np.ndarray,
    node_children: np.ndarray,
    node_occupant: np.ndarray,
    theta: float,
    G: float,
    softening: float,
    stack_size: int,
):
    """Barnes-Hut forces for a batch of reference points (read-only tree)."""
    theta_sq = theta * theta
    softening_sq = softening * softening

    for i in prange(positions.shape[0]):
        fx, fy, fz, approx, inter = tree_force(
            positions[i, 0], positions[i, 1], positions[i, 2],
            masses[i], self_indices[i], self_leaves[i],
            node_count, node_masses, node_com, node_sides,
            node_children, node_occupant,
            theta_sq, G, softening_sq, stack_size
        )
        forces[i, 0] = fx
        forces[i, 1] = fy
        forces[i, 2] = fz
        approximations[i] = approx
        interactions[i] = inter


@njit(cache=True)
def direct_forces(positions: np.ndarray, masses: np.ndarray, forces: np.ndarray,
                  G: float, softening: float):
    """Exact O(n^2) forces; every body against every other body."""
    softening_sq = softening * softening
    n = positions.shape[0]

    for i in range(n):
        fx, fy, fz = 0.0, 0.0, 0.0
        for j in range(n):
            if i == j:
                continue
            ax, ay, az = pair_force(
                positions[j, 0] - positions[i, 0],
                positions[j, 1] - positions[i, 1],
                positions[j, 2] - positions[i, 2],
                masses[j], masses[i], G, softening_sq
            )
            fx += ax
            fy += ay
            fz += az
        forces[i, 0] = fx
        forces[i, 1] = fy
        forces[i, 2] = fz
