"""Experiment: weighted variations behind a targeting predicate."""

import threading
from collections.abc import Iterable, Iterator, Mapping
from typing import Any

from loguru import logger

from pickpick.exceptions import ValidationError
from pickpick.selection import RoundRobinSelector
from pickpick.targeting import Targeting
from pickpick.variation import Variation


class Experiment:
    """A named, identified set of variations gated by a targeting.

    Variations are dispensed by a weighted round-robin whose cursor lives on
    the experiment and is rebuilt whenever a variation is added. A variation
    payload may itself be an Experiment; :meth:`pick` returns it as is and
    the caller decides whether to pick from it (see :meth:`pick_leaf`).

    Usage:
        experiment = Experiment.create(
            id="btn-color",
            name="buy page button color",
            variations=["#ff0000", {"object": "#00ff00", "weight": 2}],
            targeting={"page": "buy"},
        )
        if experiment.match({"page": "buy"}):
            color = experiment.pick()
    """

    def __init__(
        self,
        id: str,
        variations: Iterable[Variation],
        name: str | None = None,
        targeting: Targeting | None = None,
        user_data: Any = None,
    ):
        """Initialize experiment.

        Args:
            id: Unique experiment id.
            variations: Non-empty sequence of Variation instances.
            name: Display name, defaults to the id.
            targeting: Targeting instance, defaults to match-all.
            user_data: Opaque metadata carried along with the experiment.
        """
        if not id:
            raise ValidationError("experiment id is required")

        if targeting is None:
            targeting = Targeting.default()
        if not isinstance(targeting, Targeting):
            raise ValidationError("invalid targeting")

        variations = list(variations)
        if not variations:
            raise ValidationError(f"experiment '{id}' requires at least one variation")
        for index, variation in enumerate(variations):
            if not isinstance(variation, Variation):
                raise ValidationError(f"invalid variation at index {index}")

        self._id = id
        self._name = name if name is not None else id
        self._targeting = targeting
        self._variations = variations
        self._user_data = user_data
        self._lock = threading.RLock()
        self._engine = self._build_engine()

    def _build_engine(self) -> RoundRobinSelector[Variation]:
        return RoundRobinSelector([(v, v.weight) for v in self._variations])

    @property
    def id(self) -> str:
        return self._id

    @property
    def name(self) -> str:
        return self._name

    @property
    def targeting(self) -> Targeting:
        return self._targeting

    @property
    def variations(self) -> tuple[Variation, ...]:
        return tuple(self._variations)

    @property
    def user_data(self) -> Any:
        return self._user_data

    def match(self, visitor: Any) -> bool:
        """Check whether this experiment targets the visitor."""
        return self._targeting.match(visitor)

    def pick_variation(self) -> Variation:
        """Advance the round-robin and return the selected Variation.

        A weight reassigned on a held variation restarts the round-robin
        with the new weights, the same as :meth:`add`.
        """
        with self._lock:
            if self._engine.weights != tuple(v.weight for v in self._variations):
                self._engine = self._build_engine()
            variation = self._engine.pick()
        logger.debug(f"Experiment '{self._id}' picked {variation!r}")
        return variation

    def pick(self) -> Any:
        """Return the payload of the next variation.

        Nested experiments are returned, not picked from.
        """
        return self.pick_variation().object

    def pick_leaf(self) -> Any:
        """Pick, then keep picking through nested experiments until a leaf payload."""
        value = self.pick()
        while isinstance(value, Experiment):
            value = value.pick()
        return value

    def add(self, variation: Any) -> Variation:
        """Append a variation and restart the round-robin.

        Args:
            variation: Variation, variation literal or bare payload. To nest
                an experiment, wrap it in a Variation first.

        Returns:
            The appended Variation.
        """
        if isinstance(variation, Experiment):
            raise ValidationError(
                "an experiment cannot be added as a variation, wrap it in a Variation"
            )

        variation = Variation.from_value(variation)
        with self._lock:
            self._variations.append(variation)
            self._engine = self._build_engine()
        return variation

    def __iter__(self) -> Iterator[Variation]:
        return iter(list(self._variations))

    def __len__(self) -> int:
        return len(self._variations)

    def to_json(self) -> dict[str, Any]:
        """Convert to a JSON-compatible dict accepted by :meth:`from_dict`."""
        data = {
            "id": self._id,
            "name": self._name,
            "targeting": self._targeting.to_json(),
            "variations": [v.to_json() for v in self._variations],
        }
        if self._user_data is not None:
            data["userData"] = self._user_data
        return data

    def describe(self, indent: str = "") -> str:
        lines = [
            f"{indent}Experiment (",
            f"{indent}\tId: {self._id}",
            f"{indent}\tName: {self._name}",
            f"{indent}\t{self._targeting}",
            f"{indent}\tVariations:",
        ]
        child_indent = indent + "\t\t"
        for index, variation in enumerate(self._variations):
            lines.append(f"{child_indent}#{index} {variation.describe(child_indent)}")
        lines.append(f"{indent})")
        return "\n".join(lines)

    def __str__(self) -> str:
        return self.describe()

    def __repr__(self) -> str:
        return f"Experiment(id={self._id!r}, name={self._name!r}, variations={len(self)})"

    @classmethod
    def create(
        cls,
        id: str | None = None,
        variations: Iterable[Any] = (),
        name: str | None = None,
        targeting: Any = None,
        user_data: Any = None,
    ) -> "Experiment":
        """Create an experiment from raw parts.

        Args:
            id: Unique experiment id.
            variations: Variations, ``{"object", "weight"}`` literals or bare
                payloads (weight 1). Experiments are wrapped as nested
                sub-experiments.
            name: Display name.
            targeting: Targeting, matcher mapping or expression string.
            user_data: Opaque metadata.
        """
        return cls(
            id=id,
            variations=[Variation.from_value(v) for v in variations],
            name=name,
            targeting=Targeting.create(targeting),
            user_data=user_data,
        )

    @staticmethod
    def is_literal(raw: Any) -> bool:
        """Whether ``raw`` looks like the JSON form of an experiment."""
        return isinstance(raw, Mapping) and "id" in raw and "variations" in raw

    @classmethod
    def _variation_from_dict(cls, raw: Any) -> Variation:
        if Variation.is_literal(raw) and cls.is_literal(raw.get("object")):
            return Variation.create(object=cls.from_dict(raw["object"]), weight=raw.get("weight"))
        if cls.is_literal(raw):
            return Variation(cls.from_dict(raw))
        return Variation.from_value(raw)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Experiment":
        """Create an experiment from its JSON form (see :meth:`to_json`).

        Variation payloads that are experiment literals (mappings with
        ``id`` and ``variations``) are restored as nested experiments.
        """
        user_data = data.get("userData", data.get("user_data"))
        return cls.create(
            id=data.get("id"),
            variations=[cls._variation_from_dict(v) for v in data.get("variations", ())],
            name=data.get("name"),
            targeting=data.get("targeting"),
            user_data=user_data,
        )


create_experiment = Experiment.create
