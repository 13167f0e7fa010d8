"""
Mongo-style query normalization and matching.

A query maps field names to conditions. A condition is either a literal,
which implies `$eq`, or a mapping of operator names to operands:

    {"forename": "Foo"}
    {"age": {"$gte": 18, "$lt": 65}}
    {"$or": [{"forename": "Foo"}, {"forename": "Bar"}]}

Every key of a query must hold for a document to match.
"""

from __future__ import annotations

import operator
from collections.abc import Callable, Mapping
from typing import Any

from .errors import QueryError

Query = Mapping[str, Any]
Operator = Callable[[Any, Any], bool]

_SEQUENCES = (list, tuple)


def normalize(query: object) -> Query:
    """
    Turn user input into a condition mapping.

    `None` matches everything; a bare string or number is shorthand for
    `{"_id": value}`.
    """
    if query is None:
        return {}
    if isinstance(query, Mapping):
        return query
    if isinstance(query, (str, int, float)) and not isinstance(query, bool):
        return {"_id": query}
    raise QueryError(f"unsupported query type: {type(query).__name__}")


def matches(document: Mapping[str, Any], query: Query) -> bool:
    """
    Return True when `document` satisfies every condition in `query`.
    """
    for name, condition in query.items():
        if name in TOP_LEVEL_OPERATORS:
            if not TOP_LEVEL_OPERATORS[name](document, condition):
                return False
            continue

        if isinstance(name, str) and name.startswith("$"):
            if name in OPERATORS:
                raise QueryError(f"operator '{name}' must be applied to a field")
            raise QueryError(f"unrecognised operator '{name}'")

        if name not in document:
            return False

        if not _check_condition(document[name], condition):
            return False
    return True


def _check_condition(value: Any, condition: Any) -> bool:
    if not isinstance(condition, Mapping):
        return _eq(value, condition)

    if not condition:
        raise QueryError("condition must name at least one operator")

    for name, operand in condition.items():
        op = OPERATORS.get(name)
        if op is None:
            raise QueryError(f"unrecognised operator '{name}'")
        if not op(value, operand):
            return False
    return True


# --- comparison helpers ------------------------------------------------


def _as_number(value: Any) -> float | None:
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return None
    return None


def _eq(a: Any, b: Any) -> bool:
    if a == b:
        return True
    # Numeric strings compare equal to the numbers they spell.
    if isinstance(a, str) != isinstance(b, str):
        left, right = _as_number(a), _as_number(b)
        return left is not None and left == right
    return False


def _ne(a: Any, b: Any) -> bool:
    return not _eq(a, b)


def _ordered(compare: Callable[[Any, Any], bool]) -> Operator:
    def _op(a: Any, b: Any) -> bool:
        try:
            return bool(compare(a, b))
        except TypeError:
            left, right = _as_number(a), _as_number(b)
            if left is None or right is None:
                return False
            return bool(compare(left, right))

    return _op


def _contains(a: Any, b: Any) -> bool:
    if isinstance(a, str):
        return isinstance(b, str) and b in a
    if isinstance(a, _SEQUENCES):
        return b in a
    return False


def _alternatives(name: str, operand: Any) -> list[Any]:
    if not isinstance(operand, _SEQUENCES):
        raise QueryError(f"{name} operator expects a list")
    return list(operand)


def _or(a: Any, b: Any) -> bool:
    options = _alternatives("$or", b)
    if isinstance(a, Mapping):
        return any(matches(a, normalize(option)) for option in options)
    return any(_eq(a, option) for option in options)


def _and(a: Any, b: Any) -> bool:
    options = _alternatives("$and", b)
    return all(matches(a, normalize(option)) for option in options)


def _in(a: Any, b: Any) -> bool:
    return any(_eq(a, option) for option in _alternatives("$in", b))


def _nin(a: Any, b: Any) -> bool:
    return not _in(a, b)


OPERATORS: dict[str, Operator] = {
    "$eq": _eq,
    "$ne": _ne,
    "$gt": _ordered(operator.gt),
    "$gte": _ordered(operator.ge),
    "$lt": _ordered(operator.lt),
    "$lte": _ordered(operator.le),
    "$contains": _contains,
    "$or": _or,
    "$in": _in,
    "$nin": _nin,
}

# Operators that take the whole document as their left operand.
TOP_LEVEL_OPERATORS: dict[str, Operator] = {
    "$or": _or,
    "$and": _and,
}
