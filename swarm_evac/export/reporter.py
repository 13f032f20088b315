"""Summary report generation for the evacuation simulation."""

import math
from typing import Optional, Sequence, TYPE_CHECKING
from pathlib import Path

if TYPE_CHECKING:
    from ..trials import TrialResult


class Reporter:
    """Generates summary statistics and formatted text report."""

    def __init__(self, config_path: str, seed: Optional[int]):
        self.config_path = config_path
        self.seed = seed

    @staticmethod
    def evacuation_time(series: Sequence, fraction: float) -> Optional[float]:
        """First time the remaining fraction drops to `fraction` or below."""
        for t, remaining in series:
            if remaining <= fraction:
                return t
        return None

    def generate_summary(self, results: Sequence["TrialResult"],
                         output_dir: Path,
                         csv_enabled: bool,
                         snapshot_enabled: bool,
                         gif_enabled: bool) -> str:
        """Returns formatted text report."""
        lines = [
            "",
            "=" * 80,
            "                    CROWD EVACUATION SIMULATION REPORT",
            "=" * 80,
            f"Configuration: {self.config_path}",
            f"Random Seed: {self.seed if self.seed is not None else 'None (random)'}",
            f"Trials: {len(results)}",
            "",
            "SIMULATION METRICS",
            "-" * 40,
        ]

        for result in results:
            summary = result.summary
            total = int(summary.get('agents_total', 0))
            exited = int(summary.get('agents_exited', 0))
            completion_pct = (exited / total * 100) if total > 0 else 0
            half_time = self.evacuation_time(result.remaining_series, 0.5)
            mean_exit = summary.get('mean_exit_time', math.nan)
            lines += [
                f"Trial {result.trial} (seed {result.seed})",
                f"  Final Time:            {summary.get('final_time', 0):.2f} s",
                f"  Agent Updates:         {summary.get('updates', 0)}",
                f"  Agents Exited:         {exited} / {total} ({completion_pct:.1f}%)",
                f"  Half Evacuated At:     "
                f"{f'{half_time:.2f} s' if half_time is not None else '(not reached)'}",
                f"  Mean Exit Time:        "
                f"{f'{mean_exit:.2f} s' if not math.isnan(mean_exit) else '(none)'}",
                f"  Graph Targets Solved:  {summary.get('graph_targets_computed', 0)}",
            ]

        lines += [
            "",
            "OUTPUT FILES",
            "-" * 40,
        ]

        outputs = [
            ("CSV Log:   ", csv_enabled, "simulation_log.csv"),
            ("Remaining: ", csv_enabled, "remaining_fraction.csv"),
            ("Snapshot:  ", snapshot_enabled, "final_state.png"),
            ("Animation: ", gif_enabled, "simulation.gif"),
        ]
        for label, enabled, filename in outputs:
            target = output_dir / filename if enabled else "(disabled)"
            lines.append(f"{label} {target}")

        lines.append("=" * 80)

        return "\n".join(lines)
