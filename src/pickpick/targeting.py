"""Targeting: the predicate deciding which visitors an experiment applies to.

Two front-ends share one contract (``match``, ``features``, ``has``,
iteration and ``to_json``):

- :class:`MatcherTargeting` - a mapping of feature name to matcher, e.g.
  ``{"geo": "US", "page": ["buy", "index"]}``.
- :class:`ExpressionTargeting` - a compiled boolean expression, e.g.
  ``'_.geo === "US" && _.page in ["buy", "index"]'``.

Use :meth:`Targeting.create` to build either from its raw form.
"""

from collections.abc import Iterator, Mapping
from typing import Any

from loguru import logger

from pickpick.exceptions import ValidationError
from pickpick.expression import compile_expression, read_feature
from pickpick.matchers import Matcher, value_of

_UNSET = object()


class Targeting:
    """Base class for targeting front-ends."""

    @property
    def features(self) -> frozenset[str]:
        """Names of the visitor attributes this targeting reads."""
        raise NotImplementedError

    def match(self, visitor: Any) -> bool:
        """Check whether a visitor record satisfies this targeting.

        Args:
            visitor: Mapping (or object) of visitor attributes.

        Raises:
            TypeError: If visitor is None.
        """
        if visitor is None:
            raise TypeError("visitor cannot be None")

        matched = self._match(visitor)
        logger.debug(f"{self} match({visitor!r}) -> {matched}")
        return matched

    def _match(self, visitor: Any) -> bool:
        raise NotImplementedError

    def has(self, feature: str, matcher: Any = _UNSET) -> bool:
        raise NotImplementedError

    def items(self) -> Iterator[tuple[str, Matcher | None]]:
        raise NotImplementedError

    def __iter__(self) -> Iterator[tuple[str, Matcher | None]]:
        return self.items()

    def to_json(self) -> Any:
        raise NotImplementedError

    @classmethod
    def create(cls, expression: Any = None) -> "Targeting":
        """Build a targeting from a Targeting, a matcher mapping or an expression string.

        Raises:
            ValidationError: If the expression has an unsupported type.
        """
        if expression is None:
            return _DEFAULT
        if isinstance(expression, Targeting):
            return expression
        if isinstance(expression, str):
            return ExpressionTargeting(expression)
        if isinstance(expression, Mapping):
            return MatcherTargeting(expression)
        raise ValidationError(
            f"invalid targeting: {type(expression).__name__} for value: {expression!r}"
        )

    @staticmethod
    def default() -> "MatcherTargeting":
        """The match-everything targeting (no features)."""
        return _DEFAULT


class MatcherTargeting(Targeting):
    """Conjunction of one matcher per feature.

    Only features named in the expression are consulted; other visitor
    attributes are ignored. A feature missing from the visitor fails the
    match unless its matcher accepts anything (``"*"``).
    """

    def __init__(self, expression: Mapping[str, Any]):
        matchers: dict[str, Matcher] = {}
        for feature, raw in expression.items():
            if not isinstance(feature, str):
                raise ValidationError(f"feature names must be strings, got {feature!r}")
            matchers[feature] = value_of(raw)
        self._matchers = matchers

    @property
    def features(self) -> frozenset[str]:
        return frozenset(self._matchers)

    @property
    def matchers(self) -> dict[str, Matcher]:
        return dict(self._matchers)

    def _match(self, visitor: Any) -> bool:
        for feature, matcher in self._matchers.items():
            value = read_feature(visitor, feature)
            if value is None and not matcher.matches_missing:
                return False
            if not matcher.match(value):
                return False
        return True

    def has(self, feature: str, matcher: Any = _UNSET) -> bool:
        """Check whether ``feature`` is targeted, optionally by an equal matcher.

        Args:
            feature: Feature name, e.g. ``"geo"``.
            matcher: Matcher or raw literal to compare with the stored one.
        """
        stored = self._matchers.get(feature)
        if stored is None:
            return False
        if matcher is _UNSET:
            return True
        return stored == value_of(matcher)

    def items(self) -> Iterator[tuple[str, Matcher]]:
        return iter(list(self._matchers.items()))

    def __len__(self) -> int:
        return len(self._matchers)

    def to_json(self) -> dict[str, Any]:
        return {feature: matcher.to_json() for feature, matcher in self._matchers.items()}

    def __str__(self) -> str:
        body = ", ".join(
            f"{feature}: {matcher.name} {matcher.to_json()!r}"
            for feature, matcher in self._matchers.items()
        )
        return f"Targeting ( {body or '*'} )"

    def __repr__(self) -> str:
        return f"MatcherTargeting({self.to_json()!r})"


class ExpressionTargeting(Targeting):
    """Targeting backed by a compiled boolean expression.

    Iteration yields ``(feature, None)`` pairs since the constraint on each
    feature lives inside the expression.
    """

    def __init__(self, expression: str):
        self._compiled = compile_expression(expression)

    @property
    def expression(self) -> str:
        return self._compiled.source

    @property
    def features(self) -> frozenset[str]:
        return self._compiled.features

    def _match(self, visitor: Any) -> bool:
        return self._compiled.is_match(visitor)

    def has(self, feature: str, matcher: Any = _UNSET) -> bool:
        # an expression cannot be compared structurally with a matcher
        return matcher is _UNSET and feature in self._compiled.features

    def items(self) -> Iterator[tuple[str, None]]:
        return iter([(feature, None) for feature in sorted(self._compiled.features)])

    def __len__(self) -> int:
        return len(self._compiled.features)

    def to_json(self) -> str:
        return self._compiled.source

    def __str__(self) -> str:
        return f"Targeting ( {self._compiled.source} )"

    def __repr__(self) -> str:
        return f"ExpressionTargeting({self._compiled.source!r})"


_DEFAULT = MatcherTargeting({})
