"""Event scheduler ordering agents by their next update time."""

import heapq
import itertools
import math
from typing import Dict, List, Tuple

from .agent import Agent
from .errors import SchedulerError


class EventScheduler:
    """
    Min-heap of agents keyed by `next_update_time`.

    The key is captured at insertion. Callers must pop an agent, change its
    timing, then reinsert it; changing the key of a scheduled agent is
    detected when it is popped. Ties are broken by insertion order.
    """

    def __init__(self):
        self._heap: List[Tuple[float, int, Agent]] = []
        self._keys: Dict[int, float] = {}
        self._counter = itertools.count()

    def __len__(self) -> int:
        return len(self._keys)

    def __contains__(self, agent: Agent) -> bool:
        return agent.id in self._keys

    def insert(self, agent: Agent) -> None:
        """Schedule an agent at its current next_update_time."""
        if agent.id in self._keys:
            raise SchedulerError(f"Agent {agent.id} is already scheduled")
        if agent.exited:
            raise SchedulerError(f"Agent {agent.id} has exited and cannot be scheduled")
        key = float(agent.next_update_time)
        if math.isnan(key):
            raise SchedulerError(f"Agent {agent.id} has no valid update time")
        heapq.heappush(self._heap, (key, next(self._counter), agent))
        self._keys[agent.id] = key

    def pop_due(self) -> Agent:
        """Remove and return the agent with the smallest next_update_time."""
        if not self._heap:
            raise SchedulerError("No agents are scheduled")
        key, _, agent = heapq.heappop(self._heap)
        del self._keys[agent.id]
        if agent.next_update_time != key:
            raise SchedulerError(
                f"Agent {agent.id} changed its update time from {key} to "
                f"{agent.next_update_time} while scheduled")
        return agent

    def reinsert(self, agent: Agent) -> None:
        """Put a popped and updated agent back into the schedule."""
        if agent.next_update_time < agent.last_update_time:
            raise SchedulerError(
                f"Agent {agent.id} would be scheduled at {agent.next_update_time}, "
                f"before its last update at {agent.last_update_time}")
        self.insert(agent)

    def peek_time(self) -> float:
        """Time of the next due update, or inf when empty."""
        return self._heap[0][0] if self._heap else math.inf
