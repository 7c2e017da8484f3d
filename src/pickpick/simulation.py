"""Traffic simulation for checking how a container splits visitors."""

import json
from collections import Counter
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from loguru import logger

from pickpick.container import ExperimentContainer
from pickpick.selection import RoundRobinSelector

NO_EXPERIMENT = "default"


def _count_key(value: Any) -> Any:
    try:
        hash(value)
    except TypeError:
        return json.dumps(value, sort_keys=True, default=str)
    return value


@dataclass
class SimulationReport:
    """Tallies of a simulation run."""

    visits: int = 0
    experiments: Counter = field(default_factory=Counter)
    variations: Counter = field(default_factory=Counter)

    def share(self, experiment_id: str) -> float:
        """Fraction of visits that got the given experiment."""
        if self.visits == 0:
            return 0.0
        return self.experiments[experiment_id] / self.visits

    def to_table(self, width: int = 40) -> str:
        lines = [f"{'experiment':<{width}}count"]
        lines += [f"{str(k):<{width}}{v}" for k, v in sorted(self.experiments.items(), key=str)]
        lines.append("")
        lines.append(f"{'variation':<{width}}count")
        lines += [f"{str(k):<{width}}{v}" for k, v in sorted(self.variations.items(), key=str)]
        return "\n".join(lines)


def simulate_traffic(
    container: ExperimentContainer,
    visitors: Sequence[Any],
    size: int,
    leaf: bool = True,
) -> SimulationReport:
    """Run visitors through a container.

    Visitors are replayed in order, cycling until ``size`` visits were made.

    Args:
        container: Container to pick from.
        visitors: Visitor records.
        size: Number of visits.
        leaf: Resolve nested experiments down to a leaf payload.

    Returns:
        Experiment ids (``"default"`` when nothing matched) and variation
        payload counts.
    """
    traffic = RoundRobinSelector([(visitor, 1) for visitor in visitors])
    report = SimulationReport()

    for _ in range(size):
        visitor = traffic.pick()
        experiment = container.pick(visitor)
        report.visits += 1

        if experiment is None:
            report.experiments[NO_EXPERIMENT] += 1
            continue

        report.experiments[experiment.id] += 1
        variation = experiment.pick_leaf() if leaf else experiment.pick()
        report.variations[_count_key(variation)] += 1

    logger.info(f"Simulated {report.visits} visits over {len(visitors)} visitor profiles")
    return report
