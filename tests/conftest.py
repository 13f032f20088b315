from pathlib import Path

import numpy as np
import pytest

from swarm_evac.config import (
    AgentConfig,
    DynamicsConfig,
    InteractionConfig,
    RoomConfig,
    SimulationConfig,
)
from swarm_evac.model.agent import Agent
from swarm_evac.model.room import Room

CONFIG_DIR = Path(__file__).resolve().parent.parent / "configs"


@pytest.fixture
def open_room():
    """50 x 50 open field with one exit in the middle of the east edge."""
    room = Room((0.0, 0.0), (50.0, 50.0), 1.0)
    room.add_exit((50.0, 25.0))
    room.update_exit_distances()
    return room


@pytest.fixture
def small_room():
    """10 x 10 open field with an exit on the east edge."""
    room = Room((0.0, 0.0), (10.0, 10.0), 1.0)
    room.add_exit((10.0, 5.0))
    room.update_exit_distances()
    return room


def make_agent(agent_id=0, position=(0.0, 0.0), velocity=(0.0, 0.0),
               mass=70.0, radius=0.3, max_speed=2.0):
    return Agent(agent_id, np.array(position, dtype=float),
                 np.array(velocity, dtype=float), mass, radius, max_speed)


def make_config(count=5, duration=10.0, seed=0, walls=(), exits=((10.0, 5.0),),
                size=10.0, **dynamics):
    return SimulationConfig(
        room=RoomConfig(
            min_corner=(0.0, 0.0),
            max_corner=(size, size),
            fineness=1.0,
            walls=list(walls),
            exits=list(exits),
        ),
        agents=AgentConfig(
            count=count,
            spawn_min=(1.0, 1.0),
            spawn_max=(size - 1.0, size - 1.0),
        ),
        duration=duration,
        dynamics=DynamicsConfig(**dynamics),
        interactions=InteractionConfig(),
        seed=seed,
    )


@pytest.fixture
def agent_factory():
    return make_agent


@pytest.fixture
def config_factory():
    return make_config


@pytest.fixture
def config_dir():
    return CONFIG_DIR
