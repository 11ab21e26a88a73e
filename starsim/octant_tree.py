"""
Barnes-Hut mass-aggregating octant tree.

The tree is a flat arena: node 0 is the root, every node is a row in a set of
parallel arrays, and children are addressed by index (-1 when absent). Each
node shadows one Octant and keeps a running body count, total mass and
center of mass of every body inserted beneath it.
"""

from typing import Iterable, Iterator, List, NamedTuple, Optional, Sequence

import numpy as np

from config import starsim as config
from .body import Body
from .kernels import tree_force, tree_forces
from .octant import Octant, to_specifier
from .vector import Vector4

ROOT = 0
NO_NODE = -1


class ForceQuery(NamedTuple):
    """Work done by one or more force queries."""
    approximations: int  # subtrees treated as a single aggregate mass
    interactions: int    # point-mass force evaluations of any kind


class OctantTree:
    """
    Incrementally built Barnes-Hut tree over a root octant.

    The first body inserted at a node is stored as its occupant. The second
    turns the node internal: both the new body and the stored occupant are
    routed into child nodes, and every later body is routed straight down.
    The occupant reference is kept afterwards and only used to exclude a
    body's own contribution from its force query.
    """

    def __init__(self, octant: Octant, theta: Optional[float] = None,
                 G: Optional[float] = None, softening: Optional[float] = None,
                 max_depth: Optional[int] = None, capacity: int = 64):
        sim_cfg = config.SIMULATION
        self.theta = float(sim_cfg["theta"] if theta is None else theta)
        self.G = float(sim_cfg["G"] if G is None else G)
        self.softening = float(sim_cfg["softening"] if softening is None else softening)
        self.max_depth = int(sim_cfg["max_tree_depth"] if max_depth is None else max_depth)

        capacity = max(1, int(capacity))
        self._node_count = np.zeros(capacity, dtype=np.int64)
        self._node_masses = np.zeros(capacity, dtype=np.float64)
        self._node_com = np.zeros((capacity, 3), dtype=np.float64)
        self._node_sides = np.zeros(capacity, dtype=np.float64)
        self._node_children = np.full((capacity, 8), NO_NODE, dtype=np.int64)
        self._node_occupant = np.full(capacity, NO_NODE, dtype=np.int64)
        self._node_depth = np.zeros(capacity, dtype=np.int64)
        self._regions: List[Octant] = []
        self._num_nodes = 0
        self._depth = 0

        self._bodies: List[Body] = []
        self._leaves: List[int] = []  # deepest node holding each body
        self._handles = {}

        self._allocate(octant, 0)

    # ------------------------------------------------------------------
    # Arena management
    # ------------------------------------------------------------------

    def _grow(self) -> None:
        old = self._node_count.shape[0]
        new = old * 2

        def extend(array, fill):
            grown = np.full((new,) + array.shape[1:], fill, dtype=array.dtype)
            grown[:old] = array
            return grown

        self._node_count = extend(self._node_count, 0)
        self._node_masses = extend(self._node_masses, 0.0)
        self._node_com = extend(self._node_com, 0.0)
        self._node_sides = extend(self._node_sides, 0.0)
        self._node_children = extend(self._node_children, NO_NODE)
        self._node_occupant = extend(self._node_occupant, NO_NODE)
        self._node_depth = extend(self._node_depth, 0)

    def _allocate(self, octant: Octant, depth: int) -> int:
        if self._num_nodes == self._node_count.shape[0]:
            self._grow()
        node = self._num_nodes
        self._num_nodes += 1
        self._node_sides[node] = octant.length
        self._node_depth[node] = depth
        self._regions.append(octant)
        self._depth = max(self._depth, depth)
        return node

    def _child_node(self, node: int, specifier) -> int:
        """Child tree node for the given position, built over the matching child octant."""
        child = self._node_children[node, specifier]
        if child == NO_NODE:
            child = self._allocate(self._regions[node].child(specifier), int(self._node_depth[node]) + 1)
            self._node_children[node, specifier] = child
        return int(child)

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    def insert(self, body: Body) -> None:
        """Add a body to the tree. The body must lie inside the root octant."""
        if not body.is_in_octant(self._regions[ROOT]):
            raise ValueError(f"{body!r} lies outside the tree's root octant")

        index = len(self._bodies)
        self._bodies.append(body)
        self._leaves.append(ROOT)
        self._handles[id(body)] = index
        self._insert(ROOT, index)

    def _insert(self, node: int, index: int) -> None:
        body = self._bodies[index]
        position = body.position
        mass = body.mass

        total = self._node_masses[node] + mass
        if total > 0.0:
            com = self._node_com[node]
            self._node_com[node] = (self._node_masses[node] * com +
                                    mass * np.array([position.x, position.y, position.z])) / total
        else:
            self._node_com[node] = (position.x, position.y, position.z)
        self._node_masses[node] = total
        self._node_count[node] += 1

        count = self._node_count[node]
        if count == 1:
            self._node_occupant[node] = index
            self._leaves[index] = node
            return

        if self._node_depth[node] >= self.max_depth:
            # Too small to split further; the node simply aggregates
            self._leaves[index] = node
            return

        region = self._regions[node]
        self._insert(self._child_node(node, region.octant_for(position)), index)

        if count == 2:
            occupant = int(self._node_occupant[node])
            occupant_position = self._bodies[occupant].position
            self._insert(self._child_node(node, region.octant_for(occupant_position)), occupant)

    def insert_all(self, bodies: Iterable[Body]) -> None:
        for body in bodies:
            self.insert(body)

    # ------------------------------------------------------------------
    # Force queries
    # ------------------------------------------------------------------

    def _self_handles(self, reference: Body) -> tuple:
        """Insertion index and leaf node of a member body; (-1, -1) for outsiders."""
        index = self._handles.get(id(reference), NO_NODE)
        if index == NO_NODE:
            return NO_NODE, NO_NODE
        return index, self._leaves[index]

    def _stack_size(self) -> int:
        # Each popped node pushes at most 8, so 7 per level plus the root
        return 7 * (self._depth + 1) + 8

    def accumulate_force(self, reference: Body) -> ForceQuery:
        """Add the net pull of the whole tree to ``reference``'s force accumulator."""
        position = reference.position
        fx, fy, fz, approximations, interactions = tree_force(
            position.x, position.y, position.z,
            reference.mass,
            *self._self_handles(reference),
            self._node_count, self._node_masses, self._node_com,
            self._node_sides, self._node_children, self._node_occupant,
            self.theta * self.theta, self.G, self.softening * self.softening,
            self._stack_size()
        )
        reference.apply_force(Vector4(fx, fy, fz))
        return ForceQuery(int(approximations), int(interactions))

    def accumulate_forces(self, references: Sequence[Body]) -> ForceQuery:
        """Batch form of accumulate_force; queries are independent of each other."""
        n = len(references)
        if n == 0:
            return ForceQuery(0, 0)

        positions = np.empty((n, 3), dtype=np.float64)
        masses = np.empty(n, dtype=np.float64)
        self_indices = np.empty(n, dtype=np.int64)
        self_leaves = np.empty(n, dtype=np.int64)
        for i, body in enumerate(references):
            p = body.position
            positions[i] = (p.x, p.y, p.z)
            masses[i] = body.mass
            self_indices[i], self_leaves[i] = self._self_handles(body)

        forces = np.zeros((n, 3), dtype=np.float64)
        approximations = np.zeros(n, dtype=np.int64)
        interactions = np.zeros(n, dtype=np.int64)

        tree_forces(
            positions, masses, self_indices, self_leaves,
            forces, approximations, interactions,
            self._node_count, self._node_masses, self._node_com,
            self._node_sides, self._node_children, self._node_occupant,
            self.theta, self.G, self.softening,
            self._stack_size()
        )

        for body, force in zip(references, forces):
            body.apply_force(Vector4(float(force[0]), float(force[1]), float(force[2])))

        return ForceQuery(int(approximations.sum()), int(interactions.sum()))

    # ------------------------------------------------------------------
    # Inspection
    # ------------------------------------------------------------------

    @property
    def node_count(self) -> int:
        return self._num_nodes

    @property
    def depth(self) -> int:
        """Deepest level that holds a node; the root is level 0."""
        return self._depth

    def nodes(self) -> Iterator[int]:
        return iter(range(self._num_nodes))

    def _check(self, node: int) -> int:
        if not 0 <= node < self._num_nodes:
            raise IndexError(f"No tree node with handle {node}")
        return node

    def body_count(self, node: int = ROOT) -> int:
        return int(self._node_count[self._check(node)])

    def aggregate_mass(self, node: int = ROOT) -> float:
        return float(self._node_masses[self._check(node)])

    def center_of_mass(self, node: int = ROOT) -> Vector4:
        return Vector4.from_array(self._node_com[self._check(node)])

    def occupant(self, node: int = ROOT) -> Optional[Body]:
        index = self._node_occupant[self._check(node)]
        return None if index == NO_NODE else self._bodies[index]

    def region(self, node: int = ROOT) -> Octant:
        return self._regions[self._check(node)]

    def child(self, node: int, specifier) -> Optional[int]:
        """Handle of an existing child node, or None. Never creates nodes."""
        child = self._node_children[self._check(node), to_specifier(specifier)]
        return None if child == NO_NODE else int(child)

    def node_at(self, path: Iterable) -> Optional[int]:
        """Follow a sequence of position specifiers down from the root."""
        node = ROOT
        for specifier in path:
            node = self.child(node, specifier)
            if node is None:
                return None
        return node

    def paths(self) -> Iterator[tuple]:
        """Yield (path, handle) for every node, root first."""
        pending = [((), ROOT)]
        while pending:
            path, node = pending.pop()
            yield path, node
            for c in range(7, -1, -1):
                child = self._node_children[node, c]
                if child != NO_NODE:
                    pending.append((path + (c,), int(child)))
