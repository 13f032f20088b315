"""Agent kinematics: self force, integration and wall-aware movement."""

import math
from typing import TYPE_CHECKING
import numpy as np

from .geometry import EPS, first_intersection
from .state import AgentSnapshot

if TYPE_CHECKING:
    from ..config import AgentConfig, DynamicsConfig
    from .room import Room


class Agent:
    """
    Individual pedestrian moving under the force model.

    Each agent keeps its own clock: `last_update_time` is when its state was
    last integrated and `next_update_time` is its key in the event
    scheduler. Only `update` changes either, and it must only be called on
    an agent that has been popped from the scheduler.
    """

    def __init__(self, agent_id: int,
                 position: np.ndarray,
                 velocity: np.ndarray,
                 mass: float,
                 radius: float,
                 max_speed: float):
        self.id = agent_id
        self.position = np.array(position, dtype=float)
        self.velocity = np.array(velocity, dtype=float)
        self.mass = float(mass)
        self.radius = float(radius)
        self.max_speed = float(max_speed)

        self.social_force = np.zeros(2)  # sum of forces from other agents (N)
        self.self_force = np.zeros(2)    # navigation force (N)
        self.last_update_time = 0.0
        self.next_update_time = 0.0
        self.exited = False

    @classmethod
    def spawn(cls, agent_id: int, rng: np.random.Generator,
              config: "AgentConfig") -> "Agent":
        """Create an agent with randomised parameters and pose."""
        mass = rng.uniform(*config.mass_range)
        radius = rng.uniform(*config.radius_range)
        max_speed = rng.uniform(*config.max_speed_range)
        position = rng.uniform(config.spawn_min, config.spawn_max)

        # Random heading, speed up to a fraction of max speed
        speed = max_speed * config.initial_speed_fraction * rng.random()
        theta = 2.0 * math.pi * rng.random()
        velocity = speed * np.array([math.cos(theta), math.sin(theta)])

        return cls(agent_id, position, velocity, mass, radius, max_speed)

    @property
    def speed(self) -> float:
        return float(np.linalg.norm(self.velocity))

    def add_force(self, force: np.ndarray) -> None:
        """Add a social force acting on the agent until its next update."""
        self.social_force += force

    def update(self, t: float, room: "Room", rng: np.random.Generator,
               dynamics: "DynamicsConfig") -> None:
        """Accelerate and move the agent to time `t`, then reschedule it."""
        if t < self.last_update_time:
            raise ValueError(
                f"Agent {self.id} updated at t={t} before its last update "
                f"at t={self.last_update_time}")
        dt = t - self.last_update_time

        self._update_self_force(room, rng, dynamics.noise_scale)
        self._accelerate(dt, dynamics.self_force_weight)
        self._move(dt, room, dynamics.wall_damping)

        # Social forces are consumed by a single step
        self.social_force = np.zeros(2)

        self.schedule_next(t, dynamics)
        self.last_update_time = t

    def _update_self_force(self, room: "Room", rng: np.random.Generator,
                           noise_scale: float) -> None:
        gradient = room.get_gradient(self.position)
        magnitude = float(np.linalg.norm(gradient))
        self.self_force = gradient + rng.normal(0.0, noise_scale * magnitude, size=2)

    def _accelerate(self, dt: float, self_force_weight: float) -> None:
        acceleration = (self_force_weight * self.self_force + self.social_force) / self.mass
        self.velocity = self.velocity + acceleration * dt

        speed = self.speed
        if speed > self.max_speed:
            self.velocity = self.velocity * (self.max_speed / speed)

    def _move(self, dt: float, room: "Room", wall_damping: float) -> None:
        """Move along the velocity, stopping a radius short of the first wall hit."""
        displacement = self.velocity * dt
        distance = float(np.linalg.norm(displacement))
        if distance < EPS:
            return

        direction = displacement / distance
        reach = distance + self.radius
        hit = first_intersection(self.position, self.position + direction * reach,
                                 room.wall_array)
        if hit is None:
            self.position = self.position + displacement
            return

        fraction, wall_index = hit
        travel = max(fraction * reach - self.radius, 0.0)
        self.position = self.position + direction * travel

        # Slide along the wall: keep the damped tangential component only
        tangent = room.walls[wall_index].tangent
        self.velocity = wall_damping * float(self.velocity @ tangent) * tangent

    def schedule_next(self, t: float, dynamics: "DynamicsConfig") -> None:
        """Set the next update time so no step exceeds the step distance or interval."""
        speed = max(self.speed, dynamics.speed_floor)
        self.next_update_time = t + min(dynamics.max_step_distance / speed,
                                        dynamics.max_update_interval)

    def snapshot(self) -> AgentSnapshot:
        return AgentSnapshot(
            agent_id=self.id,
            x=float(self.position[0]),
            y=float(self.position[1]),
            vx=float(self.velocity[0]),
            vy=float(self.velocity[1]),
            radius=self.radius,
            exited=self.exited
        )

    def __repr__(self) -> str:
        return (f"Agent(id={self.id}, pos=({self.position[0]:.2f}, "
                f"{self.position[1]:.2f}), speed={self.speed:.2f})")
