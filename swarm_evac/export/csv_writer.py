"""CSV export of recorded frames and per-trial evacuation curves."""

import csv
from pathlib import Path
from typing import IO, Optional, Sequence, TYPE_CHECKING

if TYPE_CHECKING:
    from ..model.state import SimulationState
    from ..trials import TrialResult


class CSVWriter:
    """
    Streams one row per agent per recorded frame.

    Output format:
        time,agent_id,x,y,vx,vy,radius,exited
        0.0,0,5.1,10.3,0.2,-0.1,0.31,0
        ...

    Exited agents keep appearing with their last pose and exited=1, so every
    frame has the same number of rows.
    """

    FIELDNAMES = ['time', 'agent_id', 'x', 'y', 'vx', 'vy', 'radius', 'exited']

    def __init__(self, output_path: Path):
        self.output_path = Path(output_path)
        self._file: Optional[IO[str]] = None
        self._writer: Optional[csv.DictWriter] = None

    @property
    def is_open(self) -> bool:
        return self._writer is not None

    def open(self) -> None:
        """Create the file (and parent directories) and write the header."""
        self.output_path.parent.mkdir(parents=True, exist_ok=True)
        self._file = open(self.output_path, 'w', newline='')
        self._writer = csv.DictWriter(self._file, fieldnames=self.FIELDNAMES)
        self._writer.writeheader()

    def append(self, state: "SimulationState") -> None:
        """Write every agent row of one frame, opening lazily."""
        if not self.is_open:
            self.open()
        self._writer.writerows(state.to_csv_rows())
        self._file.flush()

    def close(self) -> None:
        if self._file is not None:
            self._file.close()
        self._file = None
        self._writer = None

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False


def write_remaining_series(output_path: Path, results: Sequence["TrialResult"]) -> None:
    """Write the fraction of agents remaining over time for every trial."""
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, 'w', newline='') as f:
        writer = csv.writer(f)
        writer.writerow(['trial', 'seed', 'time', 'remaining_fraction'])
        for result in results:
            for t, fraction in result.remaining_series:
                writer.writerow([result.trial, result.seed, round(t, 6), fraction])
