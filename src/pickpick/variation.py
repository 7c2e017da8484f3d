"""Variation: a payload value with a selection weight."""

from collections.abc import Mapping
from enum import Enum
from typing import Any

from pickpick.exceptions import ValidationError
from pickpick.matchers import strict_equals
from pickpick.selection import validate_weight

LITERAL_KEYS = frozenset({"object", "weight"})


class PayloadKind(Enum):
    """What a variation carries."""

    LEAF = "leaf"
    EXPERIMENT = "experiment"


class Variation:
    """A weighted payload.

    The payload is immutable; the weight may be reassigned and is
    re-validated on every assignment. A payload may itself be an
    :class:`~pickpick.experiment.Experiment` (a mutually exclusive
    sub-experiment); check :attr:`kind` before using it.
    """

    __slots__ = ("_object", "_weight")

    def __init__(self, object: Any, weight: int = 1):
        if object is None:
            raise ValidationError("variation object is required")
        self._object = object
        self.weight = weight

    @property
    def object(self) -> Any:
        return self._object

    @property
    def weight(self) -> int:
        return self._weight

    @weight.setter
    def weight(self, value: int) -> None:
        self._weight = validate_weight(value)

    @property
    def kind(self) -> PayloadKind:
        from pickpick.experiment import Experiment

        if isinstance(self._object, Experiment):
            return PayloadKind.EXPERIMENT
        return PayloadKind.LEAF

    @property
    def is_experiment(self) -> bool:
        return self.kind is PayloadKind.EXPERIMENT

    def with_weight(self, weight: int) -> "Variation":
        """Copy of this variation with another weight."""
        return Variation(self._object, weight)

    def to_json(self) -> dict[str, Any]:
        payload = self._object.to_json() if self.is_experiment else self._object
        return {"object": payload, "weight": self._weight}

    def describe(self, indent: str = "") -> str:
        if self.is_experiment:
            payload = "\n" + self._object.describe(indent + "\t")
        else:
            payload = repr(self._object)
        return f"Variation ( object: {payload}, weight: {self._weight} )"

    def __str__(self) -> str:
        return self.describe()

    def __repr__(self) -> str:
        return f"Variation(object={self._object!r}, weight={self._weight})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Variation):
            return NotImplemented
        return self._weight == other._weight and (
            self._object is other._object or strict_equals(self._object, other._object)
        )

    @classmethod
    def create(cls, object: Any = None, weight: int | None = None) -> "Variation":
        """Create a variation, defaulting the weight to 1."""
        return cls(object, 1 if weight is None else weight)

    @staticmethod
    def is_literal(raw: Any) -> bool:
        """Whether ``raw`` is a ``{"object": ..., "weight": ...}`` literal."""
        return isinstance(raw, Mapping) and bool(raw) and set(raw) <= LITERAL_KEYS

    @classmethod
    def from_value(cls, raw: Any) -> "Variation":
        """Normalize a Variation, a variation literal or a bare payload.

        Raises:
            ValidationError: If a variation literal has no ``object``.
        """
        if isinstance(raw, Variation):
            return raw
        if cls.is_literal(raw):
            if "object" not in raw:
                raise ValidationError(f"malformed variation literal: {raw!r}")
            return cls.create(object=raw["object"], weight=raw.get("weight"))
        return cls(raw)
