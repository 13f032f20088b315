"""Configuration dataclasses and YAML loader for the evacuation simulation."""

import math
from dataclasses import dataclass, field
from typing import List, Tuple, Dict, Any, Optional
from pathlib import Path
import yaml

from .model.errors import ConfigurationError

Point = Tuple[float, float]
Range = Tuple[float, float]
WallCoords = Tuple[float, float, float, float]


@dataclass
class RoomConfig:
    min_corner: Point
    max_corner: Point
    fineness: float = 1.0           # grid resolution (meters)
    distance_exponent: float = 0.75  # concave transform of exit distances
    walls: List[WallCoords] = field(default_factory=list)
    exits: List[Point] = field(default_factory=list)


@dataclass
class AgentConfig:
    count: int
    spawn_min: Point
    spawn_max: Point
    mass_range: Range = (65.0, 75.0)
    radius_range: Range = (0.25, 0.35)
    max_speed_range: Range = (1.0, 4.0)
    initial_speed_fraction: float = 0.2  # of max speed


@dataclass
class DynamicsConfig:
    max_step_distance: float = 0.1    # farthest an agent moves per update
    max_update_interval: float = 0.5  # forces updates of slow agents
    self_force_weight: float = 300.0
    noise_scale: float = 0.3          # noise std relative to gradient magnitude
    wall_damping: float = 0.5         # tangential speed kept after hitting a wall
    exit_radius: float = 1.0          # distance to an exit point that counts as out
    speed_floor: float = 1e-6


@dataclass
class InteractionConfig:
    repulsion_strength: float = 100.0
    compressive_tolerance: float = 0.1
    friction_strength: float = 200.0
    orientation_range: float = 2.0
    orientation_gain: float = 5.0
    attraction_gain: float = 10.0
    attraction_threshold: float = 0.5


@dataclass
class SimulationConfig:
    room: RoomConfig
    agents: AgentConfig
    duration: float
    dynamics: DynamicsConfig = field(default_factory=DynamicsConfig)
    interactions: InteractionConfig = field(default_factory=InteractionConfig)
    frame_rate: float = 0.5  # simulated seconds between recorded frames
    trials: int = 1

    # Export flags (can be overridden by CLI)
    csv_enabled: bool = True
    snapshot_enabled: bool = True
    gif_enabled: bool = False
    quiet: bool = False
    seed: Optional[int] = None
    out_dir: Path = field(default_factory=lambda: Path("./output"))


def _point(value: Any, name: str) -> Point:
    """Parse an [x, y] pair."""
    try:
        x, y = (float(v) for v in value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"{name} must be an [x, y] pair, got {value!r}")
    return (x, y)


def _range(value: Any, name: str) -> Range:
    """Parse a [low, high] pair with low <= high."""
    try:
        low, high = (float(v) for v in value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"{name} must be a [low, high] pair, got {value!r}")
    if low > high:
        raise ConfigurationError(f"{name} has low {low} above high {high}")
    return (low, high)


def _parse_walls(walls_raw: List[Any]) -> List[WallCoords]:
    """Parse wall segments given as [x1, y1, x2, y2] or {start, end}."""
    walls = []
    for w in walls_raw:
        if isinstance(w, dict):
            coords = list(_point(w['start'], 'wall start')) + list(_point(w['end'], 'wall end'))
        else:
            try:
                coords = [float(v) for v in w]
            except (TypeError, ValueError):
                raise ConfigurationError(f"Cannot parse wall {w!r}")
            if len(coords) != 4:
                raise ConfigurationError(f"Wall needs 4 coordinates, got {w!r}")
        walls.append(tuple(coords))
    return walls


def _parse_room(raw: Dict[str, Any]) -> RoomConfig:
    """Parse the room section."""
    return RoomConfig(
        min_corner=_point(raw['min'], 'room.min'),
        max_corner=_point(raw['max'], 'room.max'),
        fineness=float(raw.get('fineness', 1.0)),
        distance_exponent=float(raw.get('distance_exponent', 0.75)),
        walls=_parse_walls(raw.get('walls', [])),
        exits=[_point(e, 'exit') for e in raw.get('exits', [])]
    )


def _parse_agents(raw: Dict[str, Any]) -> AgentConfig:
    """Parse the agents section."""
    defaults = AgentConfig(count=0, spawn_min=(0.0, 0.0), spawn_max=(0.0, 0.0))
    return AgentConfig(
        count=int(raw.get('count', 0)),
        spawn_min=_point(raw['spawn_min'], 'agents.spawn_min'),
        spawn_max=_point(raw['spawn_max'], 'agents.spawn_max'),
        mass_range=_range(raw.get('mass_range', defaults.mass_range), 'agents.mass_range'),
        radius_range=_range(raw.get('radius_range', defaults.radius_range), 'agents.radius_range'),
        max_speed_range=_range(raw.get('max_speed_range', defaults.max_speed_range),
                               'agents.max_speed_range'),
        initial_speed_fraction=float(raw.get('initial_speed_fraction',
                                              defaults.initial_speed_fraction))
    )


def _parse_section(cls, raw: Optional[Dict[str, Any]], name: str):
    """Build a flat dataclass of floats from a mapping, keeping defaults."""
    raw = raw or {}
    known = cls.__dataclass_fields__.keys()
    unknown = set(raw) - set(known)
    if unknown:
        raise ConfigurationError(f"Unknown {name} keys: {sorted(unknown)}")
    return cls(**{k: float(v) for k, v in raw.items()})


def validate_config(config: SimulationConfig) -> None:
    """Reject values that would make the simulation meaningless."""
    agents = config.agents
    if agents.count < 0:
        raise ConfigurationError(f"Agent count must be non-negative, got {agents.count}")
    if agents.mass_range[0] <= 0:
        raise ConfigurationError("Agent mass must be positive")
    if agents.radius_range[0] <= 0:
        raise ConfigurationError("Agent radius must be positive")
    if agents.max_speed_range[0] <= 0:
        raise ConfigurationError("Agent max speed must be positive")
    if not 0 <= agents.initial_speed_fraction <= 1:
        raise ConfigurationError("initial_speed_fraction must be in [0, 1]")
    if agents.spawn_min[0] > agents.spawn_max[0] or agents.spawn_min[1] > agents.spawn_max[1]:
        raise ConfigurationError("Spawn rectangle min corner lies above its max corner")

    dynamics = config.dynamics
    for name in ('max_step_distance', 'max_update_interval', 'speed_floor', 'exit_radius'):
        if not getattr(dynamics, name) > 0:
            raise ConfigurationError(f"dynamics.{name} must be positive")
    if not 0 <= dynamics.wall_damping <= 1:
        raise ConfigurationError("dynamics.wall_damping must be in [0, 1]")
    if dynamics.noise_scale < 0:
        raise ConfigurationError("dynamics.noise_scale must be non-negative")

    if not config.interactions.compressive_tolerance > 0:
        raise ConfigurationError("interactions.compressive_tolerance must be positive")

    if not (math.isfinite(config.duration) and config.duration >= 0):
        raise ConfigurationError(f"Duration must be a finite non-negative time, got {config.duration}")
    if not config.frame_rate > 0:
        raise ConfigurationError("frame_rate must be positive")
    if config.trials < 1:
        raise ConfigurationError("At least one trial is required")


def config_from_dict(raw: Dict[str, Any]) -> SimulationConfig:
    """Build and validate a SimulationConfig from parsed YAML data."""
    if not isinstance(raw, dict):
        raise ConfigurationError("Configuration must be a mapping")
    try:
        room = _parse_room(raw['room'])
        agents = _parse_agents(raw['agents'])
        sim_raw = raw['simulation']
        duration = float(sim_raw['duration'])
    except KeyError as e:
        raise ConfigurationError(f"Missing configuration key: {e}")

    dynamics = _parse_section(DynamicsConfig, raw.get('dynamics'), 'dynamics')
    interactions = _parse_section(InteractionConfig, raw.get('interactions'), 'interactions')

    # Parse export config (optional)
    export_raw = raw.get('export', {})

    seed = sim_raw.get('seed')
    config = SimulationConfig(
        room=room,
        agents=agents,
        duration=duration,
        dynamics=dynamics,
        interactions=interactions,
        frame_rate=float(sim_raw.get('frame_rate', 0.5)),
        trials=int(sim_raw.get('trials', 1)),
        csv_enabled=export_raw.get('csv', True),
        snapshot_enabled=export_raw.get('snapshot', True),
        gif_enabled=export_raw.get('gif', False),
        seed=int(seed) if seed is not None else None
    )
    validate_config(config)
    return config


def load_config(config_path: Path) -> SimulationConfig:
    """Load and validate YAML configuration file."""
    with open(config_path) as f:
        raw = yaml.safe_load(f)
    return config_from_dict(raw)
