"""ExperimentContainer: registry of experiments and the per-visitor experiment pick."""

import json
import threading
from collections.abc import Iterable, Iterator, Mapping
from pathlib import Path
from typing import Any

import numpy as np
from loguru import logger

from pickpick.config import Settings, get_settings
from pickpick.exceptions import DuplicateExperimentError, ValidationError
from pickpick.experiment import Experiment
from pickpick.selection import WeightedRandomSelector
from pickpick.variation import Variation


class ExperimentContainer:
    """Holds experiments with unique ids and picks one per visitor.

    Each experiment is stored wrapped in a Variation whose weight biases the
    random pick among the experiments matching a visitor. The container also
    collects every targeting feature of its experiments, so an integration
    layer knows which visitor attributes to gather.

    Usage:
        container = ExperimentContainer.create(experiments=[e1, e2])
        experiment = container.pick({"geo": "US", "page": "buy"})
        if experiment is not None:
            variation = experiment.pick()
    """

    def __init__(self, seed: int | None = None):
        """Initialize an empty container.

        Args:
            seed: Seed for reproducible picks. Unseeded containers draw
                from fresh OS entropy.
        """
        self._seed = seed
        self._entries: list[Variation] = []
        self._by_id: dict[str, Variation] = {}
        self._targeting_features: set[str] = set()
        self._rng = np.random.default_rng(seed)
        self._lock = threading.RLock()

    @property
    def seed(self) -> int | None:
        return self._seed

    @property
    def targeting_features(self) -> frozenset[str]:
        """All features referenced by the targeting of any held experiment."""
        return frozenset(self._targeting_features)

    @property
    def entries(self) -> tuple[Variation, ...]:
        """The (experiment, weight) wrappers, in insertion order."""
        return tuple(self._entries)

    def add(self, *items: Any) -> None:
        """Add experiments.

        Each item may be an Experiment (weight 1), a Variation wrapping an
        Experiment or an experiment literal, a ``{"object", "weight"}``
        literal, or a bare experiment literal.

        Raises:
            DuplicateExperimentError: If an experiment id is already held.
                Items before the duplicate stay added.
        """
        for item in items:
            entry = self._to_entry(item)
            experiment = entry.object

            with self._lock:
                if experiment.id in self._by_id:
                    raise DuplicateExperimentError(experiment.id)

                self._targeting_features.update(experiment.targeting.features)
                self._entries.append(entry)
                self._by_id[experiment.id] = entry

            logger.info(f"Added experiment '{experiment.id}' with weight {entry.weight}")

    @staticmethod
    def _to_entry(item: Any) -> Variation:
        if isinstance(item, Experiment):
            return Variation(item)

        if isinstance(item, Mapping):
            if Variation.is_literal(item):
                item = Variation.from_value(item)
            else:
                return Variation(Experiment.from_dict(item))

        if isinstance(item, Variation):
            payload = item.object
            if isinstance(payload, Experiment):
                return item
            if isinstance(payload, Mapping):
                return Variation(Experiment.from_dict(payload), item.weight)

        raise ValidationError(f"invalid container entry: {item!r}")

    def pick(self, visitor: Any) -> Experiment | None:
        """Pick one of the experiments matching the visitor.

        Among the matching experiments the pick is random, proportional to
        each experiment's container weight.

        Returns:
            The picked Experiment, or None if no experiment matches.
        """
        with self._lock:
            candidates = [e for e in self._entries if e.object.match(visitor)]

            if not candidates:
                logger.debug(f"No experiment matches {visitor!r}")
                return None

            selector = WeightedRandomSelector(
                [(e.object, e.weight) for e in candidates],
                rng=self._rng,
            )
            experiment = selector.pick()

        logger.debug(
            f"Picked experiment '{experiment.id}' out of {len(candidates)} candidates"
        )
        return experiment

    def has(self, experiment: Experiment) -> bool:
        """Check whether this exact experiment instance is held.

        Raises:
            TypeError: If the argument is not an Experiment.
        """
        if not isinstance(experiment, Experiment):
            raise TypeError(f"has() expects an Experiment, got {type(experiment).__name__}")
        entry = self._by_id.get(experiment.id)
        return entry is not None and entry.object is experiment

    def has_id(self, experiment_id: str | None) -> bool:
        if not experiment_id:
            return False
        return experiment_id in self._by_id

    def get(self, experiment_id: str) -> Experiment | None:
        """Get a held experiment by id."""
        entry = self._by_id.get(experiment_id)
        return entry.object if entry is not None else None

    def __iter__(self) -> Iterator[Experiment]:
        return iter([entry.object for entry in self._entries])

    def __len__(self) -> int:
        return len(self._entries)

    def to_json(self) -> dict[str, Any]:
        """Convert to a JSON-compatible dict accepted by :meth:`from_dict`."""
        return {
            "experiments": [entry.to_json() for entry in self._entries],
            "seed": self._seed,
        }

    def __repr__(self) -> str:
        return f"ExperimentContainer(experiments={len(self)}, seed={self._seed!r})"

    @classmethod
    def create(
        cls,
        experiments: Iterable[Any] = (),
        seed: int | None = None,
    ) -> "ExperimentContainer":
        """Create a container and add an initial batch of experiments."""
        container = cls(seed)
        container.add(*experiments)
        return container

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ExperimentContainer":
        """Create a container from its JSON form (see :meth:`to_json`)."""
        return cls.create(experiments=data.get("experiments", ()), seed=data.get("seed"))

    @classmethod
    def load(cls, path: str | Path, seed: int | None = None) -> "ExperimentContainer":
        """Load a container from a JSON file.

        Args:
            path: File holding a serialized container.
            seed: Overrides the seed stored in the file.
        """
        path = Path(path)
        with open(path, encoding="utf-8") as f:
            data = json.load(f)

        if seed is not None:
            data["seed"] = seed

        container = cls.from_dict(data)
        logger.info(f"Loaded {len(container)} experiments from {path}")
        return container

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "ExperimentContainer":
        """Build a container from the configured experiments file and seed."""
        settings = settings or get_settings()
        if settings.experiments_file is None:
            return cls(settings.seed)
        return cls.load(settings.experiments_file, seed=settings.seed)
