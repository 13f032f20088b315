"""Pull-based frame sampling of a running simulation."""

from typing import List, TYPE_CHECKING

if TYPE_CHECKING:
    from ..model.engine import SimulationEngine
    from ..model.state import SimulationState


class FrameRecorder:
    """
    Samples engine snapshots at a fixed simulated-time interval.

    The engine never pushes frames; the driving loop calls `sample` after
    each step and the recorder decides whether a frame is due.
    """

    def __init__(self, frame_interval: float):
        if frame_interval <= 0:
            raise ValueError(f"Frame interval must be positive, got {frame_interval}")
        self.frame_interval = frame_interval
        self.next_frame_time = 0.0
        self.frames: List["SimulationState"] = []

    def sample(self, engine: "SimulationEngine") -> List["SimulationState"]:
        """Capture a frame for every frame time the engine has passed."""
        captured = []
        while engine.current_time >= self.next_frame_time:
            state = engine.snapshot()
            self.frames.append(state)
            captured.append(state)
            self.next_frame_time += self.frame_interval
        return captured

    def clear(self) -> None:
        self.frames.clear()
