"""Matchers: predicates over a single visitor attribute value.

A targeting expression maps each feature to a matcher. Raw literals are
normalized with :func:`value_of`:

- ``"*"``            -> :func:`is_any`
- ``[a, b, ...]``    -> :func:`is_in`
- ``"!value"``       -> :func:`is_not`
- str / number / bool -> :func:`is_exactly`

Single-key operator mappings (``{"$eq": v}``, ``{"$not": v}``,
``{"$and": [...]}``) are accepted as well; they are what matchers without
an unambiguous plain literal serialize to.
"""

from collections.abc import Mapping
from numbers import Real
from typing import Any

from pickpick.exceptions import ValidationError

EQ_OPERATOR = "$eq"
NOT_OPERATOR = "$not"
AND_OPERATOR = "$and"


def strict_equals(left: Any, right: Any) -> bool:
    """Equality without cross-type coercion.

    Booleans never equal numbers, while ints and floats still compare
    numerically.
    """
    if isinstance(left, bool) or isinstance(right, bool):
        return type(left) is type(right) and left == right
    return left == right


def _is_plain_literal(value: Any) -> bool:
    if isinstance(value, str):
        return value != "*" and not value.startswith("!")
    return isinstance(value, (bool, Real))


class Matcher:
    """Base matcher. Subclasses implement :meth:`match`."""

    name = "matcher"

    __slots__ = ("_value",)

    def __init__(self, value: Any = None):
        self._value = value

    @property
    def value(self) -> Any:
        return self._value

    @property
    def matches_missing(self) -> bool:
        """Whether a missing visitor attribute can satisfy this matcher."""
        return False

    def match(self, candidate: Any) -> bool:
        raise NotImplementedError

    def to_json(self) -> Any:
        return self._value

    def _same_value(self, other: "Matcher") -> bool:
        return strict_equals(self._value, other._value)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Matcher):
            return NotImplemented
        return type(self) is type(other) and self._same_value(other)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._value!r})"


class IsAnyMatcher(Matcher):
    """Matches every value, including a missing one."""

    name = "any"

    __slots__ = ()

    @property
    def matches_missing(self) -> bool:
        return True

    def match(self, candidate: Any) -> bool:
        return True

    def to_json(self) -> str:
        return "*"

    def __repr__(self) -> str:
        return "IsAnyMatcher()"


class IsExactlyMatcher(Matcher):
    name = "isExactly"

    __slots__ = ()

    def match(self, candidate: Any) -> bool:
        return strict_equals(candidate, self._value)

    def to_json(self) -> Any:
        if _is_plain_literal(self._value):
            return self._value
        return {EQ_OPERATOR: self._value}


class IsNotMatcher(Matcher):
    name = "isNot"

    __slots__ = ()

    def match(self, candidate: Any) -> bool:
        return not strict_equals(candidate, self._value)

    def to_json(self) -> Any:
        if isinstance(self._value, str):
            return f"!{self._value}"
        return {NOT_OPERATOR: self._value}


class IsInMatcher(Matcher):
    """Set membership. Equality with another ``IsInMatcher`` ignores order."""

    name = "isIn"

    __slots__ = ()

    def __init__(self, values):
        super().__init__(tuple(values))

    @property
    def value(self) -> list:
        return list(self._value)

    def match(self, candidate: Any) -> bool:
        return any(strict_equals(candidate, item) for item in self._value)

    def to_json(self) -> list:
        return list(self._value)

    def _same_value(self, other: "Matcher") -> bool:
        mine, theirs = self._value, other._value
        if len(mine) != len(theirs):
            return False
        return all(any(strict_equals(a, b) for b in theirs) for a in mine) and all(
            any(strict_equals(b, a) for a in mine) for b in theirs
        )


class AndMatcher(Matcher):
    """Conjunction of matchers.

    Note that ``and_("US", "MX")`` can never match: no single value equals
    both. Combine negations instead, e.g. ``and_("!US", "!MX")``.
    """

    name = "and"

    __slots__ = ()

    def __init__(self, matchers):
        matchers = tuple(value_of(m) for m in matchers)
        if not matchers:
            raise ValidationError("and_() requires at least one matcher")
        super().__init__(matchers)

    @property
    def value(self) -> list[Matcher]:
        return list(self._value)

    @property
    def matches_missing(self) -> bool:
        return all(m.matches_missing for m in self._value)

    def match(self, candidate: Any) -> bool:
        return all(m.match(candidate) for m in self._value)

    def to_json(self) -> dict[str, list]:
        return {AND_OPERATOR: [m.to_json() for m in self._value]}

    def _same_value(self, other: "Matcher") -> bool:
        return self._value == other._value


_ANY = IsAnyMatcher()


def is_any() -> IsAnyMatcher:
    return _ANY


def is_exactly(value: Any) -> IsExactlyMatcher:
    return IsExactlyMatcher(value)


def is_not(value: Any) -> IsNotMatcher:
    return IsNotMatcher(value)


def is_in(values) -> IsInMatcher:
    return IsInMatcher(values)


def and_(*matchers) -> AndMatcher:
    return AndMatcher(matchers)


def _from_operator(raw: Mapping) -> Matcher | None:
    if len(raw) != 1:
        return None
    operator, operand = next(iter(raw.items()))
    if operator == EQ_OPERATOR:
        return IsExactlyMatcher(operand)
    if operator == NOT_OPERATOR:
        return IsNotMatcher(operand)
    if operator == AND_OPERATOR and isinstance(operand, (list, tuple)):
        return AndMatcher(operand)
    return None


def value_of(raw: Any) -> Matcher:
    """Normalize a raw literal (or an existing matcher) into a matcher.

    Raises:
        ValidationError: If the literal type is not supported.
    """
    if isinstance(raw, Matcher):
        return raw

    if isinstance(raw, str):
        if raw == "*":
            return _ANY
        if raw.startswith("!"):
            return IsNotMatcher(raw[1:])
        return IsExactlyMatcher(raw)

    if isinstance(raw, (list, tuple)):
        return IsInMatcher(raw)

    if isinstance(raw, (bool, Real)):
        return IsExactlyMatcher(raw)

    if isinstance(raw, Mapping):
        matcher = _from_operator(raw)
        if matcher is not None:
            return matcher

    raise ValidationError(f"unsupported type: {type(raw).__name__} for value: {raw!r}")


__all__ = [
    "Matcher",
    "IsAnyMatcher",
    "IsExactlyMatcher",
    "IsNotMatcher",
    "IsInMatcher",
    "AndMatcher",
    "is_any",
    "is_exactly",
    "is_not",
    "is_in",
    "and_",
    "value_of",
    "strict_equals",
]
