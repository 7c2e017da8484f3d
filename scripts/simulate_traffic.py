#!/usr/bin/env python3
"""Simulate visitor traffic against a container of experiments.

Prints how often each experiment and variation was picked, which is a quick
way to check container weights and targeting before shipping a config.
"""

import argparse
import json
from pathlib import Path

from loguru import logger

from pickpick import ExperimentContainer, configure_logging
from pickpick.simulation import simulate_traffic

project_root = Path(__file__).parent.parent


def parse_args():
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Simulate traffic against an experiments file",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument(
        "--experiments",
        type=str,
        default=str(project_root / "examples" / "experiments.json"),
        help="JSON file with a serialized container",
    )
    parser.add_argument(
        "--visitors",
        type=str,
        default=str(project_root / "examples" / "visitors.json"),
        help="JSON file with a list of visitor records",
    )
    parser.add_argument(
        "--size",
        type=int,
        default=1000,
        help="Number of visits to simulate",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=None,
        help="Seed for reproducible picks",
    )

    return parser.parse_args()


def main():
    """Run the simulation and print the tallies."""
    args = parse_args()
    configure_logging()

    container = ExperimentContainer.load(args.experiments, seed=args.seed)

    with open(args.visitors, encoding="utf-8") as f:
        visitors = json.load(f)

    logger.info(f"Targeting features: {sorted(container.targeting_features)}")

    report = simulate_traffic(container, visitors, size=args.size)
    print(report.to_table())


if __name__ == "__main__":
    main()
