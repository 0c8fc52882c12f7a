"""Policy definition types: conditions, rules, policies, and evaluation context.

These are plain dataclasses with ``from_dict``/``to_dict`` helpers so that a
policy document round-trips losslessly through JSON storage, including
condition trees of arbitrary depth.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Mapping, Optional, Union


class PolicyDefinitionError(ValueError):
    """Raised when a policy document cannot be parsed."""


class PolicyEffect(str, Enum):
    ALLOW = "allow"
    DENY = "deny"


class ComparisonOperator(str, Enum):
    EQUALS = "eq"
    NOT_EQUALS = "ne"
    GREATER_THAN = "gt"
    GREATER_THAN_OR_EQUAL = "gte"
    LESS_THAN = "lt"
    LESS_THAN_OR_EQUAL = "lte"
    IN = "in"
    NOT_IN = "nin"
    CONTAINS = "contains"
    MATCHES = "matches"


class LogicalOperator(str, Enum):
    AND = "and"
    OR = "or"
    NOT = "not"


class AttributeSource(str, Enum):
    USER = "user"
    RESOURCE = "resource"
    ENVIRONMENT = "environment"
    ACTION = "action"


def _enum(enum_cls, raw, what: str):
    try:
        return enum_cls(raw)
    except ValueError as exc:
        raise PolicyDefinitionError(f"Unknown {what}: {raw!r}") from exc


@dataclass(frozen=True)
class Attribute:
    """Reference to a context attribute, e.g. ``user`` + ``profile.department``."""

    source: AttributeSource
    key: str

    def to_dict(self) -> dict:
        return {"source": self.source.value, "key": self.key}


@dataclass(frozen=True)
class Condition:
    """Compare one context attribute against an expected value."""

    attribute: Attribute
    operator: ComparisonOperator
    value: Any = None

    def to_dict(self) -> dict:
        return {
            "attribute": self.attribute.to_dict(),
            "operator": self.operator.value,
            "value": self.value,
        }


@dataclass(frozen=True)
class LogicalCondition:
    """Combine child nodes with AND, OR, or NOT (NOT uses the first child only)."""

    operator: LogicalOperator
    conditions: tuple = ()

    def to_dict(self) -> dict:
        return {
            "operator": self.operator.value,
            "conditions": [child.to_dict() for child in self.conditions],
        }


ConditionNode = Union[Condition, LogicalCondition]


def parse_condition(data: Mapping[str, Any]) -> ConditionNode:
    """Build a condition node from its dict form.

    A mapping carrying a ``conditions`` list is a logical node; anything else
    must be a simple condition with ``attribute``, ``operator`` and ``value``.
    """
    if not isinstance(data, Mapping):
        raise PolicyDefinitionError(f"Condition must be an object, got {type(data).__name__}")

    if "conditions" in data:
        children = data["conditions"]
        if not isinstance(children, (list, tuple)):
            raise PolicyDefinitionError("Logical condition 'conditions' must be a list")
        return LogicalCondition(
            operator=_enum(LogicalOperator, data.get("operator"), "logical operator"),
            conditions=tuple(parse_condition(child) for child in children),
        )

    attribute = data.get("attribute")
    if not isinstance(attribute, Mapping) or not isinstance(attribute.get("key"), str):
        raise PolicyDefinitionError("Condition requires an attribute with 'source' and 'key'")
    return Condition(
        attribute=Attribute(
            source=_enum(AttributeSource, attribute.get("source"), "attribute source"),
            key=attribute["key"],
        ),
        operator=_enum(ComparisonOperator, data.get("operator"), "comparison operator"),
        value=data.get("value"),
    )


@dataclass(frozen=True)
class PolicyRule:
    id: str
    conditions: ConditionNode
    effect: PolicyEffect
    priority: int = 0
    description: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "PolicyRule":
        if not data.get("id"):
            raise PolicyDefinitionError("Rule requires an 'id'")
        priority = data.get("priority")
        if priority is None:
            priority = 0
        if isinstance(priority, bool) or not isinstance(priority, int):
            raise PolicyDefinitionError(f"Rule {data['id']!r} priority must be an integer")
        return cls(
            id=str(data["id"]),
            conditions=parse_condition(data.get("conditions")),
            effect=_enum(PolicyEffect, data.get("effect"), "effect"),
            priority=priority,
            description=data.get("description") or "",
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "description": self.description,
            "conditions": self.conditions.to_dict(),
            "effect": self.effect.value,
            "priority": self.priority,
        }


@dataclass(frozen=True)
class Policy:
    """A named, versioned bundle of rules evaluated together."""

    id: str
    name: str
    version: str = "1.0.0"
    enabled: bool = True
    rules: tuple = ()
    description: str = ""
    tags: tuple = ()
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Policy":
        rules = data.get("rules") or []
        if not isinstance(rules, (list, tuple)):
            raise PolicyDefinitionError("Policy 'rules' must be a list")
        return cls(
            id=str(data.get("id") or ""),
            name=data.get("name") or "",
            version=str(data.get("version") or "1.0.0"),
            enabled=bool(data.get("enabled", True)),
            rules=tuple(
                rule if isinstance(rule, PolicyRule) else PolicyRule.from_dict(rule)
                for rule in rules
            ),
            description=data.get("description") or "",
            tags=tuple(data.get("tags") or ()),
            created_by=data.get("created_by"),
            created_at=_parse_datetime(data.get("created_at")),
            updated_at=_parse_datetime(data.get("updated_at")),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "version": self.version,
            "enabled": self.enabled,
            "tags": list(self.tags),
            "created_by": self.created_by,
            "rules": [rule.to_dict() for rule in self.rules],
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


def _parse_datetime(raw) -> Optional[datetime]:
    if raw is None or isinstance(raw, datetime):
        return raw
    try:
        return datetime.fromisoformat(raw)
    except (TypeError, ValueError) as exc:
        raise PolicyDefinitionError(f"Invalid timestamp: {raw!r}") from exc


@dataclass(frozen=True)
class PolicyContext:
    """Attribute snapshot handed to the evaluator for a single decision."""

    user: Mapping[str, Any] = field(default_factory=dict)
    resource: Mapping[str, Any] = field(default_factory=dict)
    environment: Mapping[str, Any] = field(default_factory=dict)
    action: str = ""


@dataclass(frozen=True)
class EvaluationResult:
    effect: PolicyEffect
    matched_rules: tuple = ()
    reason: str = ""

    @property
    def allowed(self) -> bool:
        return self.effect is PolicyEffect.ALLOW


@dataclass(frozen=True)
class AuthorizationContext:
    """Caller-facing request for a decision.

    Attribute maps are optional; when omitted the policy context falls back
    to ``{"id": subject_id}`` for the user and ``{"type": resource}`` for the
    resource. An explicitly empty map is kept as is.
    """

    subject_id: str
    resource: str
    action: str
    user_attributes: Optional[Mapping[str, Any]] = None
    resource_attributes: Optional[Mapping[str, Any]] = None
    environment_attributes: Optional[Mapping[str, Any]] = None
    owner_id: Optional[str] = None

    def to_policy_context(self) -> PolicyContext:
        return PolicyContext(
            user={"id": self.subject_id} if self.user_attributes is None else self.user_attributes,
            resource={"type": self.resource} if self.resource_attributes is None else self.resource_attributes,
            environment={} if self.environment_attributes is None else self.environment_attributes,
            action=self.action,
        )


__all__ = [
    "Attribute",
    "AttributeSource",
    "AuthorizationContext",
    "ComparisonOperator",
    "Condition",
    "ConditionNode",
    "EvaluationResult",
    "LogicalCondition",
    "LogicalOperator",
    "Policy",
    "PolicyContext",
    "PolicyDefinitionError",
    "PolicyEffect",
    "PolicyRule",
    "parse_condition",
]
