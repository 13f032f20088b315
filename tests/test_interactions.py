import math

import numpy as np
import pytest

from swarm_evac.config import InteractionConfig
from swarm_evac.model.interactions import InteractionEngine


@pytest.fixture
def engine():
    return InteractionEngine(InteractionConfig())


def test_collision(engine, agent_factory):
    a = agent_factory(0, position=(0.0, 0.0), radius=0.4)
    b = agent_factory(1, position=(0.5, 0.0), radius=0.4)
    c = agent_factory(2, position=(1.0, 0.0), radius=0.4)
    assert engine.collision(a, b)
    assert not engine.collision(a, c)


def test_push_scenario_without_relative_motion(engine, agent_factory):
    a = agent_factory(0, position=(0.0, 0.0), radius=0.4)
    b = agent_factory(1, position=(0.5, 0.0), radius=0.4)
    force = engine.push(a, b)

    magnitude = engine.config.repulsion_strength * math.exp(0.3 / engine.config.compressive_tolerance)
    assert np.allclose(force, [magnitude, 0.0])
    assert np.allclose(b.social_force, [magnitude, 0.0])
    assert np.allclose(a.social_force, [-magnitude, 0.0])


def test_push_adds_friction_from_tangential_motion(engine, agent_factory):
    a = agent_factory(0, position=(0.0, 0.0), velocity=(0.0, 1.0), radius=0.4)
    b = agent_factory(1, position=(0.5, 0.0), radius=0.4)
    force = engine.push(a, b)

    cfg = engine.config
    repulsion = cfg.repulsion_strength * math.exp(0.3 / cfg.compressive_tolerance)
    friction = cfg.friction_strength * 0.3 * 1.0
    assert np.allclose(force, [repulsion, friction])
    assert np.allclose(a.social_force + b.social_force, 0.0)


def test_push_without_contact_does_nothing(engine, agent_factory):
    a = agent_factory(0, position=(0.0, 0.0), radius=0.3)
    b = agent_factory(1, position=(1.0, 0.0), radius=0.3)
    assert np.array_equal(engine.push(a, b), np.zeros(2))
    assert np.array_equal(a.social_force, np.zeros(2))
    assert np.array_equal(b.social_force, np.zeros(2))


def test_push_coincident_centres(engine, agent_factory):
    a = agent_factory(0, position=(1.0, 1.0))
    b = agent_factory(1, position=(1.0, 1.0))
    force = engine.push(a, b)
    assert np.all(np.isfinite(force))
    assert np.allclose(a.social_force + b.social_force, 0.0)


def test_push_conserves_momentum_for_random_pairs(engine, agent_factory):
    rng = np.random.default_rng(4)
    for _ in range(50):
        a = agent_factory(0, position=rng.uniform(0, 1, 2), velocity=rng.normal(size=2),
                          radius=rng.uniform(0.25, 0.6))
        b = agent_factory(1, position=rng.uniform(0, 1, 2), velocity=rng.normal(size=2),
                          radius=rng.uniform(0.25, 0.6))
        engine.push(a, b)
        assert np.allclose(a.social_force + b.social_force, 0.0, atol=1e-9)


def test_orient_aligns_slower_neighbour(engine, agent_factory, open_room):
    a = agent_factory(0, position=(10.0, 10.0), velocity=(1.0, 0.5))
    b = agent_factory(1, position=(11.0, 10.0), velocity=(0.2, 0.0))
    engine.orient(a, b, open_room)
    assert np.allclose(b.social_force, engine.config.orientation_gain * a.velocity)
    assert np.array_equal(a.social_force, np.zeros(2))


def test_orient_ignores_slower_or_distant_agents(engine, agent_factory, open_room):
    a = agent_factory(0, position=(10.0, 10.0), velocity=(0.1, 0.0))
    b = agent_factory(1, position=(11.0, 10.0), velocity=(1.0, 0.0))
    engine.orient(a, b, open_room)
    assert np.array_equal(b.social_force, np.zeros(2))

    far = agent_factory(2, position=(20.0, 10.0))
    engine.orient(b, far, open_room)
    assert np.array_equal(far.social_force, np.zeros(2))


def test_speed_attract_pulls_toward_faster_agent(engine, agent_factory, open_room):
    a = agent_factory(0, position=(20.0, 10.0), velocity=(2.0, 0.0))
    b = agent_factory(1, position=(10.0, 10.0), velocity=(0.0, 0.0))
    engine.speed_attract(a, b, open_room)
    cfg = engine.config
    assert np.allclose(b.social_force, [cfg.attraction_gain * 2.0, 0.0])


def test_speed_attract_threshold(engine, agent_factory, open_room):
    a = agent_factory(0, position=(20.0, 10.0), velocity=(0.4, 0.0))
    b = agent_factory(1, position=(10.0, 10.0), velocity=(0.0, 0.0))
    engine.speed_attract(a, b, open_room)
    assert np.array_equal(b.social_force, np.zeros(2))


def test_apply_skips_self_and_exited(engine, agent_factory, open_room):
    a = agent_factory(0, position=(10.0, 10.0), velocity=(2.0, 0.0))
    b = agent_factory(1, position=(10.5, 10.0))
    gone = agent_factory(2, position=(10.2, 10.0))
    gone.exited = True
    engine.apply(a, [a, b, gone], open_room)

    assert np.array_equal(gone.social_force, np.zeros(2))
    assert not np.array_equal(b.social_force, np.zeros(2))
    # Only the push reacts back onto the updated agent
    assert a.social_force[0] < 0
