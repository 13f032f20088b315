"""Simulation engine for the asynchronous evacuation model."""

import logging
from typing import List, Dict, Tuple, Optional, TYPE_CHECKING

import numpy as np

from .agent import Agent
from .geometry import Segment
from .interactions import InteractionEngine
from .room import Room
from .scheduler import EventScheduler
from .state import SimulationState

if TYPE_CHECKING:
    from ..config import SimulationConfig

logger = logging.getLogger(__name__)


class SimulationEngine:
    """
    Owns the whole simulated world and drives the discrete-event loop.

    Implements:
    1. Room construction, wall pruning and exit labelling
    2. Agent spawning with one seeded generator
    3. Asynchronous updates: pop the due agent, update it, broadcast its
       social forces, reinsert it
    4. State snapshots for external recorders
    """

    def __init__(self, config: "SimulationConfig"):
        self.config = config
        self.current_time = 0.0
        self.rng = np.random.default_rng(config.seed)
        self._finished = False

        self.room = self._build_room()
        self.interactions = InteractionEngine(config.interactions)

        # Metrics tracking
        self.exited_count = 0
        self.updates = 0
        self.exit_times: List[float] = []

        self.agents: List[Agent] = []
        self.scheduler = EventScheduler()
        self._spawn_agents()
        self.remaining_series: List[Tuple[float, float]] = [(0.0, self.remaining_fraction)]

        logger.info("Simulation ready: %d agents, duration %.1f s",
                    len(self.agents), config.duration)

    def _build_room(self) -> Room:
        """Construct the room graph from config and label exit distances."""
        room_config = self.config.room
        room = Room(room_config.min_corner, room_config.max_corner,
                    room_config.fineness, room_config.distance_exponent)
        for coords in room_config.walls:
            room.add_wall(Segment(*coords))
        for point in room_config.exits:
            room.add_exit(point)
        room.update_exit_distances()
        return room

    def _spawn_agents(self) -> None:
        """Create agents and schedule their first update."""
        for agent_id in range(self.config.agents.count):
            agent = Agent.spawn(agent_id, self.rng, self.config.agents)
            agent.schedule_next(0.0, self.config.dynamics)
            self.agents.append(agent)
            self.scheduler.insert(agent)

    @property
    def active_agents(self) -> List[Agent]:
        return [a for a in self.agents if not a.exited]

    @property
    def remaining_fraction(self) -> float:
        if not self.agents:
            return 0.0
        return 1.0 - self.exited_count / len(self.agents)

    def step(self) -> Optional[Agent]:
        """
        Process the single most urgent agent update.

        1. Pop the agent with the smallest next update time
        2. Integrate its forces and move it to that time
        3. Retire it if it left the room or reached an exit
        4. Broadcast its social forces onto all other live agents
        5. Reinsert it into the schedule

        Returns the updated agent, or None once the next update would fall
        beyond the configured duration.
        """
        if self.is_finished():
            return None
        if self.scheduler.peek_time() > self.config.duration:
            self._finish(self.config.duration)
            return None

        agent = self.scheduler.pop_due()
        t = agent.next_update_time
        self.current_time = t

        agent.update(t, self.room, self.rng, self.config.dynamics)
        self.updates += 1

        if self._has_exited(agent):
            agent.exited = True
            self.exited_count += 1
            self.exit_times.append(t)
            self.remaining_series.append((t, self.remaining_fraction))
            logger.debug("Agent %d exited at t=%.3f (%d remaining)",
                         agent.id, t, len(self.scheduler))
        else:
            self.interactions.apply(agent, self.agents, self.room)
            self.scheduler.reinsert(agent)

        if len(self.scheduler) == 0:
            self._finish(t)
        return agent

    def _has_exited(self, agent: Agent) -> bool:
        return (not self.room.contains(agent.position) or
                self.room.at_exit(agent.position, self.config.dynamics.exit_radius))

    def _finish(self, t: float) -> None:
        self._finished = True
        self.current_time = t
        if self.remaining_series[-1][0] < t:
            self.remaining_series.append((t, self.remaining_fraction))
        logger.info("Simulation finished at t=%.3f after %d updates; %d/%d agents exited",
                    t, self.updates, self.exited_count, len(self.agents))

    def is_finished(self) -> bool:
        """Check if simulation should terminate."""
        return self._finished or len(self.scheduler) == 0

    def run(self) -> Dict:
        """Step until the duration is reached or every agent has left."""
        while not self.is_finished():
            self.step()
        return self.get_summary()

    def snapshot(self) -> SimulationState:
        """Create immutable snapshot of current simulation state."""
        active = len(self.scheduler)
        metrics = {
            'active_agents': active,
            'exited': self.exited_count,
            'total_agents': len(self.agents),
            'remaining_fraction': self.remaining_fraction,
        }
        return SimulationState(
            time=self.current_time,
            agents=[a.snapshot() for a in self.agents],
            metrics=metrics
        )

    def get_summary(self) -> Dict:
        """Get summary statistics for the simulation."""
        return {
            'final_time': self.current_time,
            'updates': self.updates,
            'agents_exited': self.exited_count,
            'agents_total': len(self.agents),
            'agents_remaining': len(self.agents) - self.exited_count,
            'remaining_fraction': self.remaining_fraction,
            'mean_exit_time': (float(np.mean(self.exit_times))
                               if self.exit_times else float('nan')),
            'graph_targets_computed': self.room.targets_computed,
        }
