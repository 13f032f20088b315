"""Visualization and export for the evacuation simulation."""

import numpy as np
import matplotlib
matplotlib.use('Agg')  # Use non-interactive backend
import matplotlib.pyplot as plt
from matplotlib.collections import LineCollection, PatchCollection
from matplotlib.patches import Circle
from pathlib import Path
from typing import List, Optional, TYPE_CHECKING
from PIL import Image
import io

if TYPE_CHECKING:
    from ..model.room import Room
    from ..model.state import SimulationState


class Visualizer:
    """
    Draws room geometry and agent bodies with matplotlib.

    Walls and exits are fixed at construction; each call renders one
    SimulationState. The walkable graph can be overlaid to check wall pruning.
    """

    COLORS = {
        'wall': '#2C3E50',
        'floor': '#ECF0F1',
        'edge': '#BDC3C7',
        'exit': '#F39C12',
        'agent': '#3498DB',
    }

    def __init__(self, min_corner: np.ndarray, max_corner: np.ndarray,
                 walls: np.ndarray, exits: np.ndarray,
                 edges: Optional[np.ndarray] = None):
        self.min_corner = np.asarray(min_corner, dtype=float)
        self.max_corner = np.asarray(max_corner, dtype=float)
        self.walls = np.asarray(walls, dtype=float).reshape(-1, 4)
        self.exits = np.asarray(exits, dtype=float).reshape(-1, 2)
        self.edges = None if edges is None else np.asarray(edges, dtype=float).reshape(-1, 4)
        self.frames: List[Image.Image] = []

    @classmethod
    def for_room(cls, room: "Room", show_graph: bool = False) -> "Visualizer":
        """Build a visualizer from a room's exported geometry."""
        return cls(room.min_corner, room.max_corner,
                   room.walls_as_array(), room.exits_as_array(),
                   room.edges_as_array() if show_graph else None)

    def _create_figure(self, state: "SimulationState") -> plt.Figure:
        """Create matplotlib figure for state visualization."""
        width, height = self.max_corner - self.min_corner
        aspect = width / height
        fig_height = 6
        fig_width = max(8, fig_height * aspect)
        fig, ax = plt.subplots(figsize=(fig_width, fig_height))
        ax.set_facecolor(self.COLORS['floor'])

        if self.edges is not None and len(self.edges):
            ax.add_collection(LineCollection(
                self.edges.reshape(-1, 2, 2), colors=self.COLORS['edge'],
                linewidths=0.3, zorder=1))

        if len(self.walls):
            ax.add_collection(LineCollection(
                self.walls.reshape(-1, 2, 2), colors=self.COLORS['wall'],
                linewidths=2.0, zorder=2))

        if len(self.exits):
            ax.plot(self.exits[:, 0], self.exits[:, 1], 's', color=self.COLORS['exit'],
                    markersize=8, markeredgecolor='black', markeredgewidth=0.5,
                    zorder=3)

        # Draw agents at their true size
        bodies = [Circle((a.x, a.y), a.radius) for a in state.agents if not a.exited]
        if bodies:
            ax.add_collection(PatchCollection(
                bodies, facecolor=self.COLORS['agent'], edgecolor='white',
                linewidth=0.3, zorder=4))

        ax.set_title(f't = {state.time:.1f} s | Active Agents: '
                     f'{int(state.metrics.get("active_agents", len(bodies)))} | '
                     f'Exited: {int(state.metrics.get("exited", 0))}')
        ax.set_xlabel('X (m)')
        ax.set_ylabel('Y (m)')
        ax.set_xlim(self.min_corner[0], self.max_corner[0])
        ax.set_ylim(self.min_corner[1], self.max_corner[1])
        ax.set_aspect('equal')

        plt.tight_layout()
        return fig

    def render(self, state: "SimulationState", dpi: int = 80) -> Image.Image:
        """Rasterise one state into an in-memory RGB image."""
        fig = self._create_figure(state)
        try:
            with io.BytesIO() as buf:
                fig.savefig(buf, format='png', dpi=dpi)
                buf.seek(0)
                with Image.open(buf) as img:
                    return img.convert('RGB')
        finally:
            plt.close(fig)

    def buffer_frame(self, state: "SimulationState") -> None:
        """Queue a rendered frame for the animation."""
        self.frames.append(self.render(state))

    def save_snapshot(self, state: "SimulationState", output_path: Path,
                      dpi: int = 150) -> None:
        """Write one state as a PNG, creating parent directories."""
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        fig = self._create_figure(state)
        try:
            fig.savefig(output_path, dpi=dpi, bbox_inches='tight')
        finally:
            plt.close(fig)

    def generate_gif(self, output_path: Path, fps: int = 10) -> None:
        """Write the queued frames as a looping GIF; no-op without frames."""
        if not self.frames:
            return
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        first, *rest = self.frames
        first.save(output_path, save_all=True, append_images=rest,
                   duration=int(1000 / fps), loop=0)

    def clear_frames(self) -> None:
        self.frames.clear()
