import math

import numpy as np
import pytest

from config import starsim as config
from starsim.body import Body
from starsim.generator import generate_bodies
from starsim.updater import METHODS, BodyUpdater, advance
from starsim.vector import Vector4, ZERO

from conftest import random_bodies


def make_updater(method, **kwargs):
    kwargs.setdefault("G", 1.0)
    kwargs.setdefault("softening", 0.0)
    kwargs.setdefault("theta", 0.5)
    kwargs.setdefault("universe_radius", 10.0)
    return BodyUpdater(method=method, **kwargs)


def positions(bodies):
    return np.array([b.position.to_array() for b in bodies])


@pytest.mark.parametrize("method", METHODS)
def test_two_bodies_pull_together(method):
    G, m, d, eps, dt = 1.0, 2.0, 4.0, 0.5, 0.1
    a = Body((-d / 2, 0.0, 0.0), ZERO, m)
    b = Body((d / 2, 0.0, 0.0), ZERO, m)
    make_updater(method, G=G, softening=eps).advance([a, b], dt)

    speed = dt * G * m / (d * d + eps * eps)
    np.testing.assert_allclose(a.velocity.to_array(), [speed, 0.0, 0.0])
    np.testing.assert_allclose(b.velocity.to_array(), [-speed, 0.0, 0.0])
    np.testing.assert_allclose(a.position.to_array(), [-d / 2 + dt * speed, 0.0, 0.0])
    np.testing.assert_allclose(b.position.to_array(), [d / 2 - dt * speed, 0.0, 0.0])


def test_circular_orbit_stays_bound():
    G, M, m, r = 1.0, 1000.0, 1e-3, 10.0
    v = math.sqrt(G * M / r)
    runs = {}
    for method in METHODS:
        star = Body(ZERO, ZERO, M)
        planet = Body((r, 0.0, 0.0), (0.0, 0.0, v), m)
        updater = make_updater(method, G=G, softening=1e-3, universe_radius=100.0)
        for _ in range(2000):
            updater.advance([star, planet], 0.001)
            assert 9.5 <= planet.distance_to(star) <= 10.5
        runs[method] = positions([star, planet])

    np.testing.assert_allclose(runs["barnes_hut"], runs["brute_force"], rtol=1e-8, atol=1e-10)


def test_bodies_outside_universe_are_frozen():
    inside = [Body((-1.0, 0.0, 0.0), ZERO, 1.0), Body((1.0, 0.0, 0.0), ZERO, 1.0)]
    outsider = Body((200.0, 0.0, 0.0), (1.0, 2.0, 3.0), 1e6)
    outsider.apply_force(Vector4(5.0, 5.0, 5.0))

    updater = make_updater("barnes_hut", universe_radius=100.0)
    updater.advance(inside + [outsider], 0.1)

    assert outsider.position == Vector4(200.0, 0.0, 0.0)
    assert outsider.velocity == Vector4(1.0, 2.0, 3.0)
    assert outsider.force == ZERO
    assert updater.excluded == 1

    # The outsider's mass does not reach the bodies inside
    reference = [Body((-1.0, 0.0, 0.0), ZERO, 1.0), Body((1.0, 0.0, 0.0), ZERO, 1.0)]
    make_updater("barnes_hut", universe_radius=100.0).advance(reference, 0.1)
    np.testing.assert_array_equal(positions(inside), positions(reference))


def test_brute_force_ignores_universe_bound():
    a = Body((0.0, 0.0, 0.0), ZERO, 1.0)
    far = Body((200.0, 0.0, 0.0), ZERO, 1.0)
    make_updater("brute_force", universe_radius=100.0).advance([a, far], 1.0)
    assert a.velocity.x > 0.0
    assert far.velocity.x < 0.0


def test_forces_are_recomputed_every_tick():
    bodies = [Body((-1.0, 0.0, 0.0), ZERO, 1.0), Body((1.0, 0.0, 0.0), ZERO, 1.0)]
    updater = make_updater("barnes_hut")
    updater.advance(bodies, 0.01)
    first = bodies[0].force
    updater.advance(bodies, 0.01)
    assert bodies[0].force.x > first.x
    assert bodies[0].force.x < 2 * first.x


def test_barnes_hut_matches_brute_force_for_small_theta(rng):
    cloud = random_bodies(rng, 80, half_size=5.0)
    copy = [Body(b.position, b.velocity, b.mass, b.generation, b.id) for b in cloud]

    make_updater("barnes_hut", theta=0.0, softening=0.05).advance(cloud, 0.01)
    make_updater("brute_force", softening=0.05).advance(copy, 0.01)
    np.testing.assert_allclose(positions(cloud), positions(copy), rtol=1e-10, atol=1e-12)


def test_tick_statistics(rng):
    bodies = random_bodies(rng, 50, half_size=5.0)
    updater = make_updater("barnes_hut", theta=0.0)
    updater.advance(bodies, 0.01)
    assert updater.tree_nodes > 50
    assert updater.approximations == 0
    assert updater.interactions == 50 * 49
    assert updater.excluded == 0

    updater = make_updater("brute_force")
    updater.advance(bodies, 0.01)
    assert updater.tree_nodes == 0
    assert updater.interactions == 50 * 49


def test_empty_tick_is_a_no_op():
    for method in METHODS:
        updater = make_updater(method)
        updater.advance([], 0.1)
        assert updater.interactions == 0


def test_unknown_method_rejected():
    with pytest.raises(ValueError):
        BodyUpdater(method="fast_multipole")


def test_defaults_come_from_config():
    updater = BodyUpdater()
    assert updater.G == config.SIMULATION["G"]
    assert updater.theta == config.SIMULATION["theta"]
    assert updater.method == config.SIMULATION["method"]
    assert updater.universe_octant().length == 2 * config.SIMULATION["universe_radius"]


def test_from_settings():
    updater = BodyUpdater.from_settings({"G": 2.0, "theta": 0.3, "method": "brute_force"})
    assert updater.G == 2.0
    assert updater.theta == 0.3
    assert updater.method == "brute_force"
    assert updater.softening == config.SIMULATION["softening"]


def test_module_advance_with_generated_system():
    bodies = generate_bodies(count=30, central_attractor=True, seed=5)
    before = positions(bodies)
    advance(bodies)
    after = positions(bodies)
    assert np.isfinite(after).all()
    assert not np.array_equal(before[1:], after[1:])
