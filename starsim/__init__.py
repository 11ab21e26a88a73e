"""StarSim: Barnes-Hut N-body gravitational simulation core."""

from .vector import Vector4
from .body import Body, OrbitTracer
from .octant import Octant, PositionSpecifier
from .octant_tree import OctantTree, ForceQuery
from .updater import BodyUpdater, advance
from .generator import BodyGenerator, OrbitGenerator, make_rng, generate_bodies
from .settings import load_settings, save_settings

__all__ = [
    "Vector4",
    "Body",
    "OrbitTracer",
    "Octant",
    "PositionSpecifier",
    "OctantTree",
    "ForceQuery",
    "BodyUpdater",
    "advance",
    "BodyGenerator",
    "OrbitGenerator",
    "make_rng",
    "generate_bodies",
    "load_settings",
    "save_settings",
]
