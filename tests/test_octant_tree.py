import numpy as np
import pytest

from starsim.body import Body
from starsim.octant import Octant, PositionSpecifier
from starsim.octant_tree import ROOT, ForceQuery, OctantTree
from starsim.vector import Vector4, ZERO

from conftest import naive_forces, random_bodies


def make_tree(**kwargs):
    kwargs.setdefault("G", 1.0)
    kwargs.setdefault("softening", 0.0)
    kwargs.setdefault("theta", 0.5)
    return OctantTree(Octant(ZERO, 2.0), **kwargs)


def test_empty_tree():
    tree = make_tree()
    probe = Body((0.1, 0.2, 0.3), ZERO, 1.0)
    assert tree.node_count == 1
    assert tree.body_count() == 0
    assert tree.occupant() is None
    assert tree.accumulate_force(probe) == ForceQuery(0, 0)
    assert probe.force == ZERO


def test_first_body_becomes_occupant():
    tree = make_tree()
    body = Body((0.5, 0.5, 0.5), ZERO, 3.0)
    tree.insert(body)
    assert tree.node_count == 1
    assert tree.body_count() == 1
    assert tree.occupant() is body
    assert tree.aggregate_mass() == 3.0
    assert tree.center_of_mass() == Vector4(0.5, 0.5, 0.5)


def test_second_body_splits_node_new_body_first():
    tree = OctantTree(Octant(ZERO, 8.0), G=1.0, softening=0.0)
    a = Body((1.0, 1.0, 1.0), ZERO, 1.0)
    b = Body((-1.0, -1.0, -1.0), ZERO, 3.0)
    tree.insert(a)
    tree.insert(b)

    assert tree.node_count == 3
    assert tree.body_count() == 2
    assert tree.aggregate_mass() == 4.0
    assert tree.center_of_mass() == Vector4(-0.5, -0.5, -0.5)

    # The new body is routed before the stored occupant
    assert tree.child(ROOT, PositionSpecifier.BOTTOM_SOUTH_WEST) == 1
    assert tree.child(ROOT, PositionSpecifier.TOP_NORTH_EAST) == 2
    assert tree.occupant(1) is b
    assert tree.occupant(2) is a
    assert tree.child(ROOT, PositionSpecifier.TOP_NORTH_WEST) is None
    assert tree.region(2).midpoint == Vector4(2.0, 2.0, 2.0)


def test_third_body_routes_only_itself():
    tree = OctantTree(Octant(ZERO, 8.0), G=1.0, softening=0.0)
    tree.insert_all([
        Body((1.0, 1.0, 1.0), ZERO, 1.0),
        Body((-1.0, -1.0, -1.0), ZERO, 1.0),
        Body((3.0, 3.0, 3.0), ZERO, 1.0),
    ])
    tne = tree.node_at([PositionSpecifier.TOP_NORTH_EAST])
    assert tree.body_count(tne) == 2
    assert tree.body_count(tree.node_at([PositionSpecifier.BOTTOM_SOUTH_WEST])) == 1
    assert tree.body_count() == 3
    assert tree.center_of_mass(tne) == Vector4(2.0, 2.0, 2.0)


def test_aggregates_match_contained_bodies(rng):
    bodies = random_bodies(rng, 200)
    tree = make_tree()
    tree.insert_all(bodies)

    masses = np.array([b.mass for b in bodies])
    positions = np.array([b.position.to_array() for b in bodies])
    np.testing.assert_allclose(tree.aggregate_mass(), masses.sum())
    np.testing.assert_allclose(tree.center_of_mass().to_array(),
                               (masses[:, None] * positions).sum(axis=0) / masses.sum(), atol=1e-12)

    for node in tree.nodes():
        inside = [b for b in bodies if b.is_in_octant(tree.region(node))]
        assert tree.body_count(node) == len(inside)
        np.testing.assert_allclose(tree.aggregate_mass(node), sum(b.mass for b in inside))


def test_insert_outside_root_raises():
    tree = make_tree()
    with pytest.raises(ValueError):
        tree.insert(Body((5.0, 0.0, 0.0), ZERO, 1.0))
    assert tree.body_count() == 0


def test_invalid_child_label_raises():
    tree = make_tree()
    with pytest.raises(ValueError):
        tree.child(ROOT, 8)
    with pytest.raises(IndexError):
        tree.body_count(17)


def test_rebuild_is_idempotent(rng):
    bodies = random_bodies(rng, 100)
    first = make_tree()
    first.insert_all(bodies)
    second = make_tree()
    second.insert_all(bodies)
    assert list(first.paths()) == list(second.paths())


def test_structure_does_not_depend_on_insertion_order(rng):
    bodies = random_bodies(rng, 100)
    forward = make_tree()
    forward.insert_all(bodies)
    backward = make_tree()
    backward.insert_all(reversed(bodies))

    nodes_forward, nodes_backward = dict(forward.paths()), dict(backward.paths())
    assert nodes_forward.keys() == nodes_backward.keys()
    for path, node in nodes_forward.items():
        other = nodes_backward[path]
        assert forward.body_count(node) == backward.body_count(other)
        np.testing.assert_allclose(forward.aggregate_mass(node), backward.aggregate_mass(other), rtol=1e-12)
        np.testing.assert_allclose(forward.center_of_mass(node).to_array(),
                                   backward.center_of_mass(other).to_array(), rtol=0, atol=1e-12)


def test_coincident_bodies_stop_at_depth_cap():
    tree = OctantTree(Octant(ZERO, 8.0), G=1.0, softening=0.0, theta=0.0, max_depth=4)
    twins = [Body((1.0, 1.0, 1.0), ZERO, 1.0, 1, i) for i in range(3)]
    tree.insert_all(twins)
    assert tree.depth == 4
    assert tree.node_count == 5
    assert tree.body_count() == 3

    # An outside probe feels all three; a member feels nothing from its twins
    probe = Body((-3.0, -3.0, -3.0), ZERO, 1.0)
    tree.accumulate_force(probe)
    expected = 3.0 / 48.0 * np.ones(3) / np.sqrt(3.0)
    np.testing.assert_allclose(probe.force.to_array(), expected)

    tree.accumulate_force(twins[0])
    assert twins[0].force == ZERO


def test_reference_excludes_itself():
    tree = OctantTree(Octant(ZERO, 8.0), G=1.0, softening=0.0, theta=0.0)
    a = Body((1.0, 0.0, 0.0), ZERO, 2.0)
    b = Body((-1.0, 0.0, 0.0), ZERO, 2.0)
    tree.insert_all([a, b])

    query = tree.accumulate_force(a)
    assert query == ForceQuery(approximations=0, interactions=1)
    np.testing.assert_allclose(a.force.to_array(), [-1.0, 0.0, 0.0])


def test_state_equal_copy_is_not_excluded():
    tree = OctantTree(Octant(ZERO, 8.0), G=1.0, softening=0.0, theta=0.0)
    a = Body((1.0, 0.0, 0.0), ZERO, 2.0)
    tree.insert_all([a, Body((-1.0, 0.0, 0.0), ZERO, 2.0)])
    twin = Body((1.0, 0.0, 0.0), ZERO, 2.0)
    assert tree.accumulate_force(twin).interactions == 2


def test_zero_theta_matches_direct_sum(rng):
    bodies = random_bodies(rng, 40)
    tree = make_tree(theta=0.0, softening=1e-2)
    tree.insert_all(bodies)
    query = tree.accumulate_forces(bodies)

    exact = naive_forces(bodies, 1.0, 1e-2)
    approx = np.array([b.force.to_array() for b in bodies])
    np.testing.assert_allclose(approx, exact, rtol=1e-9, atol=1e-9 * np.abs(exact).max())
    assert query.approximations == 0
    assert query.interactions == 40 * 39


def test_single_and_batch_queries_agree(rng):
    bodies = random_bodies(rng, 60)
    tree = make_tree(theta=0.7)
    tree.insert_all(bodies)

    singles = []
    for body in bodies:
        tree.accumulate_force(body)
        singles.append(body.force.to_array())
        body.reset_force()

    tree.accumulate_forces(bodies)
    batch = np.array([b.force.to_array() for b in bodies])
    np.testing.assert_allclose(batch, np.array(singles), rtol=1e-12)


def test_approximation_is_close_to_exact(rng):
    bodies = random_bodies(rng, 300)
    tree = make_tree(theta=0.5, softening=1e-2)
    tree.insert_all(bodies)
    query = tree.accumulate_forces(bodies)

    exact = naive_forces(bodies, 1.0, 1e-2)
    approx = np.array([b.force.to_array() for b in bodies])
    rel = np.linalg.norm(approx - exact) / np.linalg.norm(exact)
    assert query.approximations > 0
    assert rel < 0.05


def test_smaller_theta_never_does_less_work(rng):
    bodies = random_bodies(rng, 150)
    interactions = []
    for theta in (1.2, 0.8, 0.5, 0.2, 0.0):
        tree = make_tree(theta=theta)
        tree.insert_all(bodies)
        interactions.append(tree.accumulate_forces(bodies).interactions)
        for body in bodies:
            body.reset_force()
    assert interactions == sorted(interactions)
    assert interactions[-1] == 150 * 149


def test_opening_criterion_on_a_single_node():
    # Root holds two bodies near the origin; side 2, distance 10
    bodies = [Body((0.5, 0.5, 0.5), ZERO, 1.0), Body((-0.5, -0.5, -0.5), ZERO, 1.0)]
    far = Vector4(10.0, 0.0, 0.0)

    for theta, expected in ((0.3, 1), (0.19, 0)):
        tree = OctantTree(Octant(ZERO, 2.0), G=1.0, softening=0.0, theta=theta)
        tree.insert_all(bodies)
        probe = Body(far, ZERO, 1.0)
        assert tree.accumulate_force(probe).approximations == expected
