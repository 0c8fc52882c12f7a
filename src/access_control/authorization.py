"""Hybrid RBAC + ABAC authorizer and the process-wide instance.

Decision order:

1. RBAC. An RBAC allow is final; ABAC policies are not consulted, so an
   ABAC deny rule never overrides a role grant.
2. ABAC, only when RBAC denies and the authorizer was built with an
   :class:`AbacCapability`. If no policy applies the RBAC deny stands.
"""

import logging
import threading
from dataclasses import dataclass, field
from typing import Optional

from django.conf import settings

from .audit import AuditRecord, AuditSink, build_audit_sink, notify
from .engine import PolicyEngine
from .examples import EXAMPLE_POLICIES
from .policy import AuthorizationContext, EvaluationResult, Policy
from .rbac import RBACAuthorizer, RoleStore
from .stores import (
    DatabasePolicyRepository,
    InMemoryPolicyRepository,
    PolicyInput,
    PolicyRepository,
)

logger = logging.getLogger(__name__)


class PolicyStoreUnavailable(RuntimeError):
    """Raised by policy management calls on an RBAC-only authorizer."""

    def __init__(self):
        super().__init__("Policy store not available")


@dataclass
class AbacCapability:
    repository: PolicyRepository
    engine: PolicyEngine = field(default_factory=PolicyEngine)


@dataclass(frozen=True)
class AccessDecision:
    allowed: bool
    method: str
    result: Optional[EvaluationResult] = None


class HybridAuthorizer:
    def __init__(
        self,
        rbac: Optional[RBACAuthorizer] = None,
        abac: Optional[AbacCapability] = None,
        audit_sink: Optional[AuditSink] = None,
    ):
        self.rbac = rbac if rbac is not None else RBACAuthorizer(RoleStore(), audit_sink)
        self.abac = abac
        self.audit_sink = audit_sink if audit_sink is not None else self.rbac.audit_sink

    @property
    def roles(self) -> RoleStore:
        return self.rbac.store

    def evaluate(self, context: AuthorizationContext) -> AccessDecision:
        """Return the decision along with how it was reached."""
        if self.rbac.can_access(context.subject_id, context.resource, context.action, context.owner_id):
            return AccessDecision(True, "RBAC")
        if self.abac is None:
            return AccessDecision(False, "RBAC")

        policy_context = context.to_policy_context()
        policies = self.abac.repository.find_applicable_policies(policy_context)
        if not policies:
            return AccessDecision(False, "RBAC")

        result = self.abac.engine.evaluate_policies(policies, policy_context)
        logger.debug(
            "ABAC decision for subject=%s resource=%s action=%s: %s (%s)",
            context.subject_id,
            context.resource,
            context.action,
            result.effect.value,
            result.reason,
        )
        notify(
            self.audit_sink,
            AuditRecord.for_decision(
                context.subject_id,
                context.resource,
                result.allowed,
                metadata={
                    "evaluation_method": "ABAC",
                    "matched_rules": list(result.matched_rules),
                    "reason": result.reason,
                },
            ),
        )
        return AccessDecision(result.allowed, "ABAC", result)

    def can_access_with_context(self, context: AuthorizationContext) -> bool:
        return self.evaluate(context).allowed

    def can_access(self, subject_id: str, resource: str, action: str, owner_id: Optional[str] = None) -> bool:
        return self.rbac.can_access(subject_id, resource, action, owner_id)

    @property
    def repository(self) -> PolicyRepository:
        if self.abac is None:
            raise PolicyStoreUnavailable()
        return self.abac.repository

    def add_policy(self, policy: PolicyInput) -> Policy:
        return self.repository.create_policy(policy)

    def remove_policy(self, policy_id: str) -> None:
        self.repository.delete_policy(policy_id)

    def reset(self) -> None:
        self.rbac.store.reset()
        if self.abac is not None:
            self.abac.repository.reset()


def build_repository(backend: Optional[str] = None) -> PolicyRepository:
    backend = backend or settings.ACCESS_CONTROL_POLICY_BACKEND
    if backend == "database":
        return DatabasePolicyRepository()
    return InMemoryPolicyRepository()


def build_authorizer() -> HybridAuthorizer:
    """Construct an authorizer from the ``ACCESS_CONTROL_*`` settings."""
    audit_sink = build_audit_sink()
    repository = build_repository()
    if settings.ACCESS_CONTROL_SEED_EXAMPLES and not repository.list_policies():
        for policy in EXAMPLE_POLICIES:
            repository.create_policy(policy)
    return HybridAuthorizer(
        RBACAuthorizer(RoleStore(), audit_sink),
        AbacCapability(repository),
        audit_sink,
    )


_authorizer: HybridAuthorizer | None = None
_authorizer_lock = threading.Lock()


def get_authorizer() -> HybridAuthorizer:
    """Return the process-wide authorizer, creating it on first use."""
    global _authorizer
    if _authorizer is None:
        with _authorizer_lock:
            if _authorizer is None:
                _authorizer = build_authorizer()
    return _authorizer


def reset_for_tests() -> None:
    """Clear roles, grants and policies and re-seed the default roles.

    Test helper only; never call this from request handling code.
    """
    get_authorizer().reset()


__all__ = [
    "AbacCapability",
    "AccessDecision",
    "HybridAuthorizer",
    "PolicyStoreUnavailable",
    "build_authorizer",
    "build_repository",
    "get_authorizer",
    "reset_for_tests",
]
