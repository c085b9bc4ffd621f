#!/usr/bin/env python3
"""
Memory Controller Report Generator.
Runs an LFSR traffic scenario through the controller model and generates
charts plus a JSON metrics dump.

Usage:
    memctrl-report all --transactions 200 --seed 7
    python -m memctrl.visualization.report_generator timeline -o output/charts
"""

import sys
import json
import logging
import argparse
from pathlib import Path
from datetime import datetime


logger = logging.getLogger(__name__)


def run_scenario(config, transactions: int, seed: int, write_percent: int,
                 max_cycles: int):
    """Run LFSR traffic to completion and return the system."""
    from memctrl.testbench import LfsrTrafficGenerator, MemoryControllerSystem, TrafficMix

    print(f"Running {transactions} transactions (seed={seed}, writes={write_percent}%)...")
    system = MemoryControllerSystem(config)
    generator = LfsrTrafficGenerator(config, seed=seed, mix=TrafficMix(write_percent=write_percent))
    system.submit_all(generator.generate(transactions))
    if not system.run_until_idle(max_cycles):
        logger.warning("Scenario did not drain within %d cycles", max_cycles)
    print(f"  Finished at cycle {system.cycle}")
    return system


def demo_timeline(collector, save_dir: Path, show: bool = False):
    """Generate grant timeline."""
    from memctrl.visualization import plot_grant_timeline
    import matplotlib.pyplot as plt

    print("Generating grant timeline...")
    save_path = save_dir / "grant_timeline.png"
    fig = plot_grant_timeline(collector, save_path=str(save_path))
    print(f"  Saved: {save_path}")

    if show:
        plt.show()
    else:
        plt.close(fig)


def demo_occupancy(collector, save_dir: Path, show: bool = False):
    """Generate queue occupancy curves."""
    from memctrl.visualization import plot_queue_occupancy
    import matplotlib.pyplot as plt

    print("Generating queue occupancy curves...")
    save_path = save_dir / "queue_occupancy.png"
    fig = plot_queue_occupancy(collector, save_path=str(save_path))
    print(f"  Saved: {save_path}")

    if show:
        plt.show()
    else:
        plt.close(fig)


def demo_save_metrics(system, save_dir: Path) -> Path:
    """Save run statistics and snapshots as JSON."""
    print("Saving metrics...")
    payload = {
        "config": system.config.to_dict(),
        "stats": system.stats.to_dict(),
        "scoreboard": {
            "writes": system.scoreboard.report.writes,
            "reads_checked": system.scoreboard.report.reads_checked,
            "reads_skipped": system.scoreboard.report.reads_skipped,
            "mismatches": len(system.scoreboard.report.mismatches),
        },
    }
    if system.metrics is not None:
        payload.update(system.metrics.to_dict())

    json_path = save_dir / "metrics.json"
    with open(json_path, "w") as f:
        json.dump(payload, f, indent=2)
    print(f"  JSON: {json_path}")
    return json_path


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Memory Controller Report Generator",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        'command',
        choices=['timeline', 'occupancy', 'save', 'all'],
        default='all',
        nargs='?',
        help='Output to generate (default: all)',
    )
    parser.add_argument(
        '--save-dir', '-o',
        default='output/charts',
        help='Output directory (default: output/charts)',
    )
    parser.add_argument(
        '--show', '-s',
        action='store_true',
        help='Show plots interactively',
    )
    parser.add_argument(
        '--config', '-c',
        default=None,
        help='Controller configuration JSON (default: built-in defaults)',
    )
    parser.add_argument(
        '--transactions', '-n',
        type=int,
        default=200,
        help='Number of random transactions (default: 200)',
    )
    parser.add_argument(
        '--seed',
        type=int,
        default=1,
        help='LFSR seed (default: 1)',
    )
    parser.add_argument(
        '--write-percent',
        type=int,
        default=50,
        help='Share of write transactions, 0-100 (default: 50)',
    )
    parser.add_argument(
        '--max-cycles',
        type=int,
        default=100000,
        help='Simulation cycle limit (default: 100000)',
    )
    parser.add_argument(
        '--log-file',
        default=None,
        help='Write a DEBUG-level trace to this file',
    )
    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='DEBUG-level console logging',
    )
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)

    from memctrl.setup_logging import setup_logging
    setup_logging(
        log_file_path=args.log_file,
        console_level=logging.DEBUG if args.verbose else logging.WARNING,
    )

    if not args.show:
        import matplotlib
        matplotlib.use("Agg")

    from memctrl.config import MemCtrlConfig

    save_dir = Path(args.save_dir)
    save_dir.mkdir(parents=True, exist_ok=True)

    print("=" * 60)
    print(" Memory Controller Report Generator")
    print("=" * 60)
    print(f"Timestamp: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    print(f"Config:    {args.config or 'defaults'}")
    print(f"Output:    {save_dir}")
    print()

    if args.config:
        config_path = Path(args.config)
        if not config_path.exists():
            print(f"Error: Config file not found: {config_path}")
            return 1
        config = MemCtrlConfig.from_json(config_path)
    else:
        config = MemCtrlConfig()

    system = run_scenario(config, args.transactions, args.seed,
                          args.write_percent, args.max_cycles)
    print()
    print(system.stats)
    print(system.scoreboard.report)

    if args.command in ('timeline', 'all'):
        demo_timeline(system.metrics, save_dir, args.show)

    if args.command in ('occupancy', 'all'):
        demo_occupancy(system.metrics, save_dir, args.show)

    if args.command in ('save', 'all'):
        demo_save_metrics(system, save_dir)

    print()
    print("=" * 60)
    print(" Done!")
    print("=" * 60)

    return 0 if system.scoreboard.report.passed else 2


if __name__ == '__main__':
    sys.exit(main())
