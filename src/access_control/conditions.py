"""Condition evaluation for attribute-based rules.

Attribute lookups produce a tagged :class:`Value` instead of a raw Python
object so comparison operators dispatch on the value kind. This keeps
``True`` from equalling ``1`` and strings from being ordered numerically.
Evaluation never raises because of malformed policy data: a missing
attribute, a type mismatch, or an invalid regular expression all make the
condition false. A missing attribute (ABSENT) and an explicit ``None``
(NULL) are distinct kinds.
"""

from __future__ import annotations

import logging
import numbers
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Mapping

from .policy import (
    Attribute,
    AttributeSource,
    ComparisonOperator,
    Condition,
    ConditionNode,
    LogicalCondition,
    LogicalOperator,
    PolicyContext,
)

logger = logging.getLogger(__name__)

REFERENCE_PATTERN = re.compile(r"^\$\{(user|resource|environment|action)\.([^}]+)\}$")


class ValueKind(Enum):
    ABSENT = "absent"
    NULL = "null"
    BOOL = "bool"
    NUMBER = "number"
    STRING = "string"
    ARRAY = "array"
    MAP = "map"


@dataclass(frozen=True)
class Value:
    kind: ValueKind
    payload: Any = None

    @classmethod
    def of(cls, raw: Any) -> "Value":
        """Classify a raw attribute value. ``None`` is NULL; unsupported types are ABSENT."""
        if raw is None:
            return NULL
        if isinstance(raw, bool):
            return cls(ValueKind.BOOL, raw)
        if isinstance(raw, numbers.Real):
            return cls(ValueKind.NUMBER, raw)
        if isinstance(raw, str):
            return cls(ValueKind.STRING, raw)
        if isinstance(raw, (list, tuple)):
            return cls(ValueKind.ARRAY, tuple(raw))
        if isinstance(raw, Mapping):
            return cls(ValueKind.MAP, raw)
        return ABSENT


ABSENT = Value(ValueKind.ABSENT)
NULL = Value(ValueKind.NULL)


def _source_root(source: AttributeSource, context: PolicyContext) -> Mapping[str, Any]:
    if source is AttributeSource.USER:
        return context.user
    if source is AttributeSource.RESOURCE:
        return context.resource
    if source is AttributeSource.ENVIRONMENT:
        return context.environment
    return {"value": context.action}


def lookup(attribute: Attribute, context: PolicyContext) -> Value:
    """Resolve ``attribute`` against ``context`` by walking its dotted key."""
    current: Any = _source_root(attribute.source, context)
    for segment in attribute.key.split("."):
        if isinstance(current, Mapping):
            if segment not in current:
                return ABSENT
            current = current[segment]
        elif isinstance(current, (list, tuple)) and segment.isdigit():
            index = int(segment)
            if index >= len(current):
                return ABSENT
            current = current[index]
        else:
            return ABSENT
    return Value.of(current)


def resolve_expected(expected: Any, context: PolicyContext) -> Value:
    """Return the expected value, expanding ``${source.key}`` references."""
    if isinstance(expected, str):
        match = REFERENCE_PATTERN.match(expected)
        if match:
            return lookup(Attribute(AttributeSource(match.group(1)), match.group(2)), context)
    return Value.of(expected)


def strict_equal(left: Value, right: Value) -> bool:
    if left.kind is not right.kind:
        return False
    if left.kind is ValueKind.ARRAY:
        return len(left.payload) == len(right.payload) and all(
            strict_equal(Value.of(a), Value.of(b)) for a, b in zip(left.payload, right.payload)
        )
    if left.kind is ValueKind.MAP:
        return set(left.payload) == set(right.payload) and all(
            strict_equal(Value.of(left.payload[key]), Value.of(right.payload[key]))
            for key in left.payload
        )
    return left.payload == right.payload


def _member(item: Value, collection: Value) -> bool:
    return any(strict_equal(item, Value.of(element)) for element in collection.payload)


def _ordered(test: Callable[[Any, Any], bool]) -> Callable[[Value, Value], bool]:
    def compare(actual: Value, expected: Value) -> bool:
        if actual.kind is not ValueKind.NUMBER or expected.kind is not ValueKind.NUMBER:
            return False
        return test(actual.payload, expected.payload)

    return compare


def _in(actual: Value, expected: Value) -> bool:
    return expected.kind is ValueKind.ARRAY and _member(actual, expected)


def _not_in(actual: Value, expected: Value) -> bool:
    return expected.kind is ValueKind.ARRAY and not _member(actual, expected)


def _contains(actual: Value, expected: Value) -> bool:
    if actual.kind is ValueKind.STRING and expected.kind is ValueKind.STRING:
        return expected.payload in actual.payload
    if actual.kind is ValueKind.ARRAY:
        return _member(expected, actual)
    return False


def _matches(actual: Value, expected: Value) -> bool:
    if actual.kind is not ValueKind.STRING or expected.kind is not ValueKind.STRING:
        return False
    try:
        return re.search(expected.payload, actual.payload) is not None
    except re.error:
        logger.warning("Ignoring invalid regular expression in policy condition: %r", expected.payload)
        return False


COMPARATORS: dict[ComparisonOperator, Callable[[Value, Value], bool]] = {
    ComparisonOperator.EQUALS: strict_equal,
    ComparisonOperator.NOT_EQUALS: lambda actual, expected: not strict_equal(actual, expected),
    ComparisonOperator.GREATER_THAN: _ordered(lambda a, b: a > b),
    ComparisonOperator.GREATER_THAN_OR_EQUAL: _ordered(lambda a, b: a >= b),
    ComparisonOperator.LESS_THAN: _ordered(lambda a, b: a < b),
    ComparisonOperator.LESS_THAN_OR_EQUAL: _ordered(lambda a, b: a <= b),
    ComparisonOperator.IN: _in,
    ComparisonOperator.NOT_IN: _not_in,
    ComparisonOperator.CONTAINS: _contains,
    ComparisonOperator.MATCHES: _matches,
}


def compare(actual: Value, operator: ComparisonOperator, expected: Value) -> bool:
    comparator = COMPARATORS.get(operator)
    if comparator is None:
        return False
    return comparator(actual, expected)


def evaluate_simple(condition: Condition, context: PolicyContext) -> bool:
    actual = lookup(condition.attribute, context)
    expected = resolve_expected(condition.value, context)
    return compare(actual, condition.operator, expected)


def evaluate_logical(condition: LogicalCondition, context: PolicyContext) -> bool:
    children = condition.conditions
    if condition.operator is LogicalOperator.AND:
        # An empty AND is false, unlike the mathematical identity.
        return bool(children) and all(evaluate(child, context) for child in children)
    if condition.operator is LogicalOperator.OR:
        return any(evaluate(child, context) for child in children)
    if condition.operator is LogicalOperator.NOT:
        return bool(children) and not evaluate(children[0], context)
    return False


def evaluate(node: ConditionNode, context: PolicyContext) -> bool:
    """Evaluate a condition tree against ``context``."""
    if isinstance(node, LogicalCondition):
        return evaluate_logical(node, context)
    if isinstance(node, Condition):
        return evaluate_simple(node, context)
    return False


__all__ = [
    "ABSENT",
    "NULL",
    "Value",
    "ValueKind",
    "compare",
    "evaluate",
    "lookup",
    "resolve_expected",
    "strict_equal",
]
