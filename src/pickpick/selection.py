"""Weighted selection policies.

Both selectors take an ordered, non-empty sequence of ``(value, weight)``
pairs with positive integer weights.

- :class:`RoundRobinSelector` is deterministic and stateful: an item with
  weight ``w`` is dispensed ``w`` times in a row before moving on, so every
  cycle of ``sum(weights)`` picks visits each item exactly ``w`` times.
- :class:`WeightedRandomSelector` draws independently on every pick with
  probability proportional to weight, from a (optionally seeded) numpy
  generator.
"""

import bisect
from collections.abc import Sequence
from itertools import accumulate
from numbers import Real
from typing import Any, Generic, TypeVar

import numpy as np

from pickpick.exceptions import ValidationError

T = TypeVar("T")


def validate_weight(value: Any) -> int:
    """Validate a selection weight.

    Returns:
        The weight as an int.

    Raises:
        ValidationError: If the weight is not a positive integer.
    """
    if isinstance(value, bool) or not isinstance(value, Real):
        raise ValidationError("weight must be a number")
    if value % 1 != 0:
        raise ValidationError("weight must be an integer")
    if value < 1:
        raise ValidationError("weight must be greater than 0")
    return int(value)


def _split(entries: Sequence[tuple[T, Any]]) -> tuple[list[T], list[int]]:
    if not entries:
        raise ValidationError("cannot select from an empty collection")
    values = [value for value, _ in entries]
    weights = [validate_weight(weight) for _, weight in entries]
    return values, weights


class RoundRobinSelector(Generic[T]):
    """Weighted round-robin over a fixed sequence.

    The cursor persists across calls. Build a new selector when the
    underlying sequence changes.
    """

    def __init__(self, entries: Sequence[tuple[T, int]]):
        self._values, self._weights = _split(entries)
        self._index = 0
        self._dispensed = 0

    @property
    def cycle_length(self) -> int:
        return sum(self._weights)

    @property
    def weights(self) -> tuple[int, ...]:
        return tuple(self._weights)

    def pick(self) -> T:
        value = self._values[self._index]
        self._dispensed += 1
        if self._dispensed >= self._weights[self._index]:
            self._dispensed = 0
            self._index = (self._index + 1) % len(self._values)
        return value

    def __len__(self) -> int:
        return len(self._values)


class WeightedRandomSelector(Generic[T]):
    """Weighted random draw, proportional to weight among the given entries."""

    def __init__(
        self,
        entries: Sequence[tuple[T, int]],
        rng: np.random.Generator | None = None,
        seed: int | None = None,
    ):
        """Initialize selector.

        Args:
            entries: ``(value, weight)`` pairs.
            rng: Generator to draw from. Takes precedence over ``seed``.
            seed: Seed for a new generator when ``rng`` is not given.
        """
        self._values, weights = _split(entries)
        self._cumulative = list(accumulate(weights))
        self._rng = rng if rng is not None else np.random.default_rng(seed)

    @property
    def total_weight(self) -> int:
        return self._cumulative[-1]

    def pick(self) -> T:
        draw = int(self._rng.integers(self.total_weight))
        return self._values[bisect.bisect_right(self._cumulative, draw)]

    def __len__(self) -> int:
        return len(self._values)
