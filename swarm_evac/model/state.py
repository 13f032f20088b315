"""State snapshot dataclasses for the evacuation simulation."""

from dataclasses import dataclass
from typing import List, Dict
import numpy as np


@dataclass(frozen=True)
class AgentSnapshot:
    """Immutable snapshot of an agent's kinematic state."""
    agent_id: int
    x: float
    y: float
    vx: float
    vy: float
    radius: float
    exited: bool


@dataclass
class SimulationState:
    """Complete snapshot of simulation state at a given simulated time."""
    time: float
    agents: List[AgentSnapshot]
    metrics: Dict[str, float]  # active, exited, remaining_fraction

    @property
    def positions(self) -> np.ndarray:
        return np.array([[a.x, a.y] for a in self.agents], dtype=float).reshape(-1, 2)

    @property
    def velocities(self) -> np.ndarray:
        return np.array([[a.vx, a.vy] for a in self.agents], dtype=float).reshape(-1, 2)

    @property
    def radii(self) -> np.ndarray:
        return np.array([a.radius for a in self.agents], dtype=float)

    def to_csv_rows(self) -> List[Dict]:
        """Convert to CSV-compatible format."""
        return [
            {
                "time": round(self.time, 6),
                "agent_id": a.agent_id,
                "x": a.x,
                "y": a.y,
                "vx": a.vx,
                "vy": a.vy,
                "radius": a.radius,
                "exited": int(a.exited)
            }
            for a in self.agents
        ]
