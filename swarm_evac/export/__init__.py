"""I/O package for the evacuation simulation."""

from .csv_writer import CSVWriter, write_remaining_series
from .recorder import FrameRecorder
from .visualizer import Visualizer
from .reporter import Reporter

__all__ = ['CSVWriter', 'write_remaining_series', 'FrameRecorder', 'Visualizer', 'Reporter']
