import numpy as np
import pytest

from starsim.body import Body


@pytest.fixture
def rng():
    return np.random.default_rng(0)


def random_bodies(rng, n, half_size=1.0, mass_offset=0.1):
    """Bodies scattered uniformly through a cube centred on the origin."""
    positions = (rng.random((n, 3)) - 0.5) * 2.0 * half_size * 0.99
    masses = rng.random(n) + mass_offset
    return [Body(p, (0.0, 0.0, 0.0), m, 1, i) for i, (p, m) in enumerate(zip(positions, masses))]


def naive_forces(bodies, G, softening):
    """Reference all-pairs forces, softened magnitude over the raw direction."""
    pos = np.array([b.position.to_array() for b in bodies])
    mass = np.array([b.mass for b in bodies])
    forces = np.zeros_like(pos)
    eps2 = softening * softening
    for i in range(len(bodies)):
        for j in range(len(bodies)):
            if i == j:
                continue
            d = pos[j] - pos[i]
            r2 = (d * d).sum()
            if r2 == 0.0:
                continue
            forces[i] += G * mass[i] * mass[j] / (r2 + eps2) * d / np.sqrt(r2)
    return forces
