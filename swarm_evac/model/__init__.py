"""Model package for the evacuation simulation."""

from .errors import (
    SimulationError,
    ConfigurationError,
    OutOfBoundsError,
    MalformedGeometryError,
    DisconnectedRegionError,
    FieldInvariantError,
    SchedulerError,
)
from .geometry import Segment
from .state import AgentSnapshot, SimulationState
from .room import Room, OUTSIDE
from .agent import Agent
from .interactions import InteractionEngine
from .scheduler import EventScheduler
from .engine import SimulationEngine

__all__ = [
    'SimulationError',
    'ConfigurationError',
    'OutOfBoundsError',
    'MalformedGeometryError',
    'DisconnectedRegionError',
    'FieldInvariantError',
    'SchedulerError',
    'Segment',
    'AgentSnapshot',
    'SimulationState',
    'Room',
    'OUTSIDE',
    'Agent',
    'InteractionEngine',
    'EventScheduler',
    'SimulationEngine',
]
