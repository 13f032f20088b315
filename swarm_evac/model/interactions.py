"""Pairwise social forces between agents."""

import math
from typing import TYPE_CHECKING, Iterable
import numpy as np

from .agent import Agent
from .geometry import EPS

if TYPE_CHECKING:
    from ..config import InteractionConfig
    from .room import Room


class InteractionEngine:
    """
    Evaluates social forces between an updated agent and the rest of the crowd.

    Three interactions are modeled:
    - push: contact repulsion plus sliding friction between overlapping agents
    - orient: a faster agent nearby drags slower agents along its heading
    - speed_attract: slower agents are drawn toward faster ones, along the
      walkable direction rather than the straight line

    Every update evaluates all three against every other live agent, so the
    cost is O(N) per update and O(N^2) overall.
    """

    def __init__(self, config: "InteractionConfig"):
        self.config = config

    @staticmethod
    def collision(a: Agent, b: Agent) -> bool:
        """True iff the two agents' bodies overlap."""
        return float(np.linalg.norm(a.position - b.position)) < a.radius + b.radius

    def push(self, pusher: Agent, pushee: Agent) -> np.ndarray:
        """
        Apply contact forces between two colliding agents.

        Repulsion grows exponentially with compression along the line of
        centres; friction is proportional to compression times the relative
        tangential velocity. The force is added to `pushee` and its negation
        to `pusher`. Returns the force on `pushee` (zero without contact).
        """
        offset = pushee.position - pusher.position
        distance = float(np.linalg.norm(offset))
        compression = pusher.radius + pushee.radius - distance
        if compression <= 0:
            return np.zeros(2)

        if distance > EPS:
            normal = offset / distance
        else:
            # Coincident centres: separate along the relative motion if any
            relative = pusher.velocity - pushee.velocity
            rel_speed = float(np.linalg.norm(relative))
            normal = relative / rel_speed if rel_speed > EPS else np.array([1.0, 0.0])
        tangent = np.array([-normal[1], normal[0]])

        repulsion = (self.config.repulsion_strength *
                     math.exp(compression / self.config.compressive_tolerance)) * normal
        tangential_velocity = float((pusher.velocity - pushee.velocity) @ tangent)
        friction = (self.config.friction_strength * compression * tangential_velocity) * tangent

        force = repulsion + friction
        pushee.add_force(force)
        pusher.add_force(-force)
        return force

    def orient(self, a: Agent, b: Agent, room: "Room") -> None:
        """Nudge `b` along `a`'s velocity when `a` is nearby and faster."""
        if a.speed <= b.speed:
            return
        reach = self.config.orientation_range
        # Walking distance is never shorter than the straight line
        if float(np.linalg.norm(a.position - b.position)) > reach:
            return
        if room.get_distance_between(a.position, b.position) <= reach:
            b.add_force(self.config.orientation_gain * a.velocity)

    def speed_attract(self, a: Agent, b: Agent, room: "Room") -> None:
        """Pull `b` toward `a` when `a` is faster by more than the threshold."""
        differential = a.speed - b.speed
        if differential <= self.config.attraction_threshold:
            return
        direction = room.get_gradient_between(b.position, a.position)
        b.add_force(self.config.attraction_gain * differential * direction)

    def apply(self, updated: Agent, agents: Iterable[Agent], room: "Room") -> None:
        """Broadcast social forces from `updated` onto every other live agent."""
        # TODO: bucket agents into a spatial hash so only nearby pairs are visited
        for other in agents:
            if other is updated or other.exited:
                continue
            if self.collision(updated, other):
                self.push(updated, other)
            self.orient(updated, other, room)
            self.speed_attract(updated, other, room)
