#!/usr/bin/env python3
"""
Crowd Evacuation Simulation

An asynchronous discrete-event simulator of agents leaving a walled room.

Usage:
    swarm-evac --config configs/two_door_hall.yaml [options]

Examples:
    swarm-evac --config configs/two_door_hall.yaml
    swarm-evac --config configs/two_door_hall.yaml --gif --out-dir results/
    swarm-evac --config configs/open_field.yaml --no-csv --no-snapshot --quiet
    swarm-evac --config configs/two_door_hall.yaml --trials 10 --seed 42
"""

import argparse
import logging
import sys
from pathlib import Path

import yaml

from .config import SimulationConfig, load_config
from .model.engine import SimulationEngine
from .model.errors import ConfigurationError
from .trials import run_trials
from .export.csv_writer import CSVWriter, write_remaining_series
from .export.recorder import FrameRecorder
from .export.visualizer import Visualizer
from .export.reporter import Reporter


def parse_args(argv=None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description='Asynchronous Crowd Evacuation Simulation',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    swarm-evac --config configs/two_door_hall.yaml
    swarm-evac --config configs/two_door_hall.yaml --gif --out-dir results/
    swarm-evac --config configs/open_field.yaml --no-csv --no-snapshot --quiet
    swarm-evac --config configs/two_door_hall.yaml --trials 10 --seed 42
        """
    )

    # Required arguments
    parser.add_argument('--config', type=Path, required=True,
                        help='Path to YAML configuration file')

    # Optional overrides
    parser.add_argument('--duration', type=float, default=None,
                        help='Override simulated duration (seconds)')
    parser.add_argument('--trials', type=int, default=None,
                        help='Override number of independent trials')
    parser.add_argument('--out-dir', type=Path, default=Path('./output'),
                        help='Output directory for exports (default: ./output)')

    # Export toggles
    parser.add_argument('--csv', dest='csv', action='store_true', default=None,
                        help='Enable CSV export (default)')
    parser.add_argument('--no-csv', dest='csv', action='store_false',
                        help='Disable CSV export')

    parser.add_argument('--snapshot', dest='snapshot', action='store_true', default=None,
                        help='Enable final snapshot (default)')
    parser.add_argument('--no-snapshot', dest='snapshot', action='store_false',
                        help='Disable final snapshot')

    parser.add_argument('--gif', action='store_true', default=False,
                        help='Enable GIF animation export')

    parser.add_argument('--quiet', action='store_true', default=False,
                        help='Suppress stdout output')

    parser.add_argument('--seed', type=int, default=None,
                        help='Random seed for reproducibility')

    parser.add_argument('--log-level', default='WARNING',
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
                        help='Logging level (default: WARNING)')

    return parser.parse_args(argv)


def run_recorded(engine: SimulationEngine, config: SimulationConfig) -> None:
    """Run one engine to completion, sampling frames for the exporters."""
    recorder = FrameRecorder(config.frame_rate)
    visualizer = Visualizer.for_room(engine.room)

    csv_writer = None
    if config.csv_enabled:
        csv_writer = CSVWriter(config.out_dir / 'simulation_log.csv')
        csv_writer.open()

    try:
        recorder.sample(engine)
        next_report = 10.0
        while not engine.is_finished():
            engine.step()

            for state in recorder.sample(engine):
                if csv_writer:
                    csv_writer.append(state)
                if config.gif_enabled:
                    visualizer.buffer_frame(state)

            # Progress indicator
            if not config.quiet and engine.current_time >= next_report:
                print(f"  t = {engine.current_time:.1f} s: {len(engine.scheduler)} active, "
                      f"{engine.exited_count} exited")
                next_report += 10.0

    except KeyboardInterrupt:
        if not config.quiet:
            print("\nSimulation interrupted by user.")

    # Cleanup and final exports
    if csv_writer:
        csv_writer.close()
        if not config.quiet:
            print(f"\nCSV saved: {config.out_dir / 'simulation_log.csv'}")

    final_state = engine.snapshot()
    if config.snapshot_enabled:
        snapshot_path = config.out_dir / 'final_state.png'
        visualizer.save_snapshot(final_state, snapshot_path)
        if not config.quiet:
            print(f"Snapshot saved: {snapshot_path}")

    if config.gif_enabled:
        visualizer.buffer_frame(final_state)
        gif_path = config.out_dir / 'simulation.gif'
        if not config.quiet:
            print(f"Generating GIF ({len(visualizer.frames)} frames)...")
        visualizer.generate_gif(gif_path, fps=10)
        if not config.quiet:
            print(f"Animation saved: {gif_path}")


def main(argv=None) -> int:
    """Main entry point."""
    args = parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s - %(levelname)s - %(name)s - %(message)s"
    )

    # Load configuration
    try:
        config = load_config(args.config)
    except FileNotFoundError:
        print(f"Error: Configuration file not found: {args.config}", file=sys.stderr)
        return 1
    except (ConfigurationError, yaml.YAMLError) as e:
        print(f"Error loading config: {e}", file=sys.stderr)
        return 1

    # Apply CLI overrides
    if args.duration is not None:
        config.duration = args.duration
    if args.trials is not None:
        config.trials = args.trials
    if args.csv is not None:
        config.csv_enabled = args.csv
    if args.snapshot is not None:
        config.snapshot_enabled = args.snapshot
    if args.gif:
        config.gif_enabled = True
    config.quiet = args.quiet
    if args.seed is not None:
        config.seed = args.seed
    config.out_dir = args.out_dir

    if config.trials < 1 or config.duration < 0:
        print("Error: trials must be at least 1 and duration non-negative", file=sys.stderr)
        return 1

    if not config.quiet:
        print("Initializing simulation...")
        print(f"  Room: {config.room.min_corner} - {config.room.max_corner} "
              f"(fineness {config.room.fineness})")
        print(f"  Walls: {len(config.room.walls)}, Exits: {len(config.room.exits)}")
        print(f"  Agents: {config.agents.count}")
        print(f"  Duration: {config.duration} s, Trials: {config.trials}")

    def run_trial(trial: int, engine: SimulationEngine) -> None:
        if not config.quiet:
            print(f"\nRunning trial {trial} (seed {engine.config.seed})...")
        # Only the first trial is recorded frame by frame
        if trial == 0:
            run_recorded(engine, config)
        else:
            engine.run()

    try:
        results = run_trials(config, runner=run_trial)
    except ConfigurationError as e:
        print(f"Error building room: {e}", file=sys.stderr)
        return 1

    if config.csv_enabled:
        write_remaining_series(config.out_dir / 'remaining_fraction.csv', results)

    # Print summary report
    if not config.quiet:
        reporter = Reporter(str(args.config), config.seed)
        report = reporter.generate_summary(
            results,
            config.out_dir,
            config.csv_enabled,
            config.snapshot_enabled,
            config.gif_enabled
        )
        print(report)

    return 0


if __name__ == '__main__':
    sys.exit(main())
