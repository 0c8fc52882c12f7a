"""Shared helpers for tests (policy builders, fake Redis, audit sinks)."""

from __future__ import annotations

from typing import Any, Dict, List

from access_control.audit import AuditRecord, AuditSink, shutdown_audit_delivery
from access_control.policy import Policy, PolicyRule


class FakeRedis:
    """Minimal Redis stub supporting the stream command used by the audit sink."""

    def __init__(self):
        self.streams: Dict[str, List[dict]] = {}

    def xadd(self, name: str, fields: dict) -> str:
        """Append fields to an in-memory stream and return a fake entry id."""
        entries = self.streams.setdefault(name, [])
        entries.append(fields)
        return f"{len(entries)}-0"


class RecordingAuditSink(AuditSink):
    """Keep delivered records in memory for assertions."""

    def __init__(self):
        self.records: List[AuditRecord] = []

    def deliver(self, record: AuditRecord) -> None:
        self.records.append(record)


class FailingAuditSink(AuditSink):
    """Sink whose backend is always down."""

    def deliver(self, record: AuditRecord) -> None:
        raise ConnectionError("audit backend unavailable")


def cond(source: str, key: str, operator: str, value: Any) -> dict:
    return {"attribute": {"source": source, "key": key}, "operator": operator, "value": value}


def all_of(*conditions: dict) -> dict:
    return {"operator": "and", "conditions": list(conditions)}


def make_rule(rule_id: str, effect: str, *conditions: dict, priority: int | None = None) -> PolicyRule:
    data = {"id": rule_id, "effect": effect, "conditions": all_of(*conditions)}
    if priority is not None:
        data["priority"] = priority
    return PolicyRule.from_dict(data)


def make_policy(policy_id: str, *rules: PolicyRule, enabled: bool = True) -> Policy:
    return Policy(id=policy_id, name=policy_id, enabled=enabled, rules=tuple(rules))


def drain_audit_delivery() -> None:
    """Block until every queued audit record has reached its sink."""
    shutdown_audit_delivery(wait=True)
