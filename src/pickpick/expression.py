"""Targeting expression compiler.

Compiles free-form boolean expressions over a visitor object ``_`` into a
predicate, e.g.::

    _.geo === "US" && _.page in ["buy", "index"]
    _.page != "home" and not _["logged_in"]

JavaScript-style operators (``===``, ``!==``, ``&&``, ``||``, ``!``) and
literals (``true``, ``false``, ``null``, ``undefined``) are accepted next to
their Python spellings. Expressions are parsed with :mod:`ast` and only a
small whitelist of node types is allowed; nothing is ever passed to
``eval``.
"""

import ast
import operator
import re
from collections.abc import Callable, Mapping
from numbers import Real
from typing import Any, NamedTuple

from pickpick.exceptions import ExpressionError
from pickpick.matchers import strict_equals

VISITOR_NAME = "_"

_STRING_LITERAL = re.compile(r"(\"(?:\\.|[^\"\\])*\"|'(?:\\.|[^'\\])*')")

_JS_REWRITES = [
    (re.compile(r"!=="), "!="),
    (re.compile(r"==="), "=="),
    (re.compile(r"&&"), " and "),
    (re.compile(r"\|\|"), " or "),
    (re.compile(r"!(?!=)"), " not "),
    (re.compile(r"(?<![.\w])true\b"), "True"),
    (re.compile(r"(?<![.\w])false\b"), "False"),
    (re.compile(r"(?<![.\w])(?:null|undefined)\b"), "None"),
]

_ORDERING = {
    ast.Lt: operator.lt,
    ast.LtE: operator.le,
    ast.Gt: operator.gt,
    ast.GtE: operator.ge,
}

Evaluator = Callable[[Any], Any]


class CompiledExpression(NamedTuple):
    """Result of :func:`compile_expression`."""

    source: str
    is_match: Callable[[Any], bool]
    features: frozenset[str]


def read_feature(visitor: Any, feature: str) -> Any:
    """Read a feature from a visitor record; missing features read as None."""
    if isinstance(visitor, Mapping):
        return visitor.get(feature)
    return getattr(visitor, feature, None)


def _contains(container: Any, item: Any) -> bool:
    if isinstance(container, str):
        return isinstance(item, str) and item in container
    if isinstance(container, (list, tuple)):
        return any(strict_equals(item, candidate) for candidate in container)
    return False


def _ordered(compare: Callable[[Any, Any], bool], left: Any, right: Any) -> bool:
    if left is None or right is None:
        return False
    try:
        return bool(compare(left, right))
    except TypeError:
        # incomparable types never satisfy an ordering
        return False


def _compare(op: ast.cmpop, left: Any, right: Any) -> bool:
    if isinstance(op, ast.Eq):
        return strict_equals(left, right)
    if isinstance(op, ast.NotEq):
        return not strict_equals(left, right)
    if isinstance(op, ast.In):
        return _contains(right, left)
    if isinstance(op, ast.NotIn):
        return not _contains(right, left)
    return _ordered(_ORDERING[type(op)], left, right)


def to_python_syntax(expression: str) -> str:
    """Rewrite JavaScript-style operators outside of string literals."""
    parts = _STRING_LITERAL.split(expression)
    for index in range(0, len(parts), 2):
        code = parts[index]
        for pattern, replacement in _JS_REWRITES:
            code = pattern.sub(replacement, code)
        parts[index] = code
    return "".join(parts).strip()


class _Compiler:
    """Turns a validated expression AST into nested closures."""

    def __init__(self, source: str):
        self.source = source
        self.features: set[str] = set()

    def fail(self, reason: str) -> ExpressionError:
        return ExpressionError(f"{reason} in targeting expression {self.source!r}")

    def compile(self, node: ast.AST) -> Evaluator:
        if isinstance(node, ast.Constant):
            return self._constant(node)
        if isinstance(node, (ast.List, ast.Tuple, ast.Set)):
            items = [self.compile(element) for element in node.elts]
            return lambda visitor: [item(visitor) for item in items]
        if isinstance(node, (ast.Attribute, ast.Subscript)):
            return self._feature(node)
        if isinstance(node, ast.BoolOp):
            return self._bool_op(node)
        if isinstance(node, ast.UnaryOp):
            return self._unary_op(node)
        if isinstance(node, ast.Compare):
            return self._compare(node)
        if isinstance(node, ast.Name):
            raise self.fail(f"unknown name '{node.id}'")
        raise self.fail(f"unsupported syntax '{type(node).__name__}'")

    def _constant(self, node: ast.Constant) -> Evaluator:
        value = node.value
        if value is not None and not isinstance(value, (str, bool, Real)):
            raise self.fail(f"unsupported literal {value!r}")
        return lambda visitor: value

    def _feature(self, node: ast.Attribute | ast.Subscript) -> Evaluator:
        target = node.value
        if not (isinstance(target, ast.Name) and target.id == VISITOR_NAME):
            raise self.fail(f"features must be read from '{VISITOR_NAME}'")

        if isinstance(node, ast.Attribute):
            feature = node.attr
        elif isinstance(node.slice, ast.Constant) and isinstance(node.slice.value, str):
            feature = node.slice.value
        else:
            raise self.fail("feature subscripts must be string literals")

        self.features.add(feature)
        return lambda visitor: read_feature(visitor, feature)

    def _bool_op(self, node: ast.BoolOp) -> Evaluator:
        operands = [self.compile(value) for value in node.values]
        is_and = isinstance(node.op, ast.And)

        def evaluate(visitor):
            result = None
            for operand in operands:
                result = operand(visitor)
                if bool(result) != is_and:
                    return result
            return result

        return evaluate

    def _unary_op(self, node: ast.UnaryOp) -> Evaluator:
        if isinstance(node.op, ast.Not):
            operand = self.compile(node.operand)
            return lambda visitor: not operand(visitor)

        if isinstance(node.op, ast.USub) and isinstance(node.operand, ast.Constant):
            value = node.operand.value
            if isinstance(value, Real) and not isinstance(value, bool):
                return lambda visitor: -value

        raise self.fail(f"unsupported operator '{type(node.op).__name__}'")

    def _compare(self, node: ast.Compare) -> Evaluator:
        for op in node.ops:
            if not isinstance(op, (ast.Eq, ast.NotEq, ast.In, ast.NotIn, *_ORDERING)):
                raise self.fail(f"unsupported comparison '{type(op).__name__}'")

        left = self.compile(node.left)
        comparators = [self.compile(comparator) for comparator in node.comparators]
        ops = list(node.ops)

        def evaluate(visitor):
            current = left(visitor)
            for op, comparator in zip(ops, comparators):
                right = comparator(visitor)
                if not _compare(op, current, right):
                    return False
                current = right
            return True

        return evaluate


def compile_expression(expression: str) -> CompiledExpression:
    """Compile a targeting expression.

    Args:
        expression: Boolean expression over the visitor object ``_``.

    Returns:
        The predicate and the set of features it reads.

    Raises:
        ExpressionError: If the expression is empty, malformed, or uses
            syntax outside the supported subset.
    """
    if not isinstance(expression, str) or not expression.strip():
        raise ExpressionError("targeting expression must be a non-empty string")

    try:
        tree = ast.parse(to_python_syntax(expression), mode="eval")
    except SyntaxError as e:
        raise ExpressionError(f"invalid targeting expression {expression!r}: {e.msg}") from e

    compiler = _Compiler(expression)
    evaluate = compiler.compile(tree.body)

    def is_match(visitor: Any) -> bool:
        return bool(evaluate(visitor))

    return CompiledExpression(
        source=expression,
        is_match=is_match,
        features=frozenset(compiler.features),
    )
