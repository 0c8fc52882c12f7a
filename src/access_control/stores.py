"""Policy repositories: in-memory and Django ORM backed.

Both implement the same contract so the authorizer does not care where
policy definitions live.
"""

import logging
import uuid
from abc import ABC, abstractmethod
from dataclasses import replace
from typing import Any, Iterable, Mapping, Optional, Union

from django.utils import timezone

from .models import PolicyRecord
from .policy import Policy, PolicyContext, PolicyDefinitionError

logger = logging.getLogger(__name__)

PolicyInput = Union[Policy, Mapping[str, Any]]

# Fields callers may not overwrite through update_policy().
_IMMUTABLE_FIELDS = ("id", "created_at", "updated_at")


class PolicyNotFound(LookupError):
    """Raised when updating or deleting a policy id that does not exist."""

    def __init__(self, policy_id: str):
        super().__init__(f"Policy not found: {policy_id}")
        self.policy_id = policy_id


def _as_dict(policy: PolicyInput) -> dict:
    return policy.to_dict() if isinstance(policy, Policy) else dict(policy)


def _matches_filter(policy: Policy, enabled: Optional[bool], tags: Optional[Iterable[str]]) -> bool:
    if enabled is not None and policy.enabled != enabled:
        return False
    if tags:
        return any(tag in policy.tags for tag in tags)
    return True


class PolicyRepository(ABC):
    """CRUD and lookup of policy definitions."""

    @abstractmethod
    def create_policy(self, policy: PolicyInput) -> Policy:
        """Store a new policy, assigning its id and timestamps."""

    @abstractmethod
    def get_policy(self, policy_id: str) -> Optional[Policy]:
        """Return the policy or ``None``."""

    @abstractmethod
    def list_policies(self, enabled: Optional[bool] = None, tags: Optional[Iterable[str]] = None) -> list[Policy]:
        """List policies, optionally filtered by enabled flag and any-of tags."""

    @abstractmethod
    def update_policy(self, policy_id: str, **updates) -> Policy:
        """Apply field updates; raises :class:`PolicyNotFound`."""

    @abstractmethod
    def delete_policy(self, policy_id: str) -> None:
        """Remove a policy; raises :class:`PolicyNotFound`."""

    @abstractmethod
    def reset(self) -> None:
        """Drop every stored policy."""

    def find_applicable_policies(self, context: PolicyContext) -> list[Policy]:
        """Policies worth evaluating for ``context``: every enabled policy."""
        return self.list_policies(enabled=True)


class InMemoryPolicyRepository(PolicyRepository):
    def __init__(self, policies: Iterable[PolicyInput] = ()):
        self._policies: dict[str, Policy] = {}
        for policy in policies:
            self.create_policy(policy)

    def create_policy(self, policy: PolicyInput) -> Policy:
        now = timezone.now()
        data = _as_dict(policy)
        data.update(id=str(uuid.uuid4()), created_at=now, updated_at=now)
        created = Policy.from_dict(data)
        self._policies[created.id] = created
        return created

    def get_policy(self, policy_id: str) -> Optional[Policy]:
        return self._policies.get(policy_id)

    def list_policies(self, enabled=None, tags=None) -> list[Policy]:
        return [p for p in self._policies.values() if _matches_filter(p, enabled, tags)]

    def update_policy(self, policy_id: str, **updates) -> Policy:
        existing = self._policies.get(policy_id)
        if existing is None:
            raise PolicyNotFound(policy_id)
        data = existing.to_dict()
        data.update({k: v for k, v in updates.items() if k not in _IMMUTABLE_FIELDS})
        updated = replace(
            Policy.from_dict(data),
            id=existing.id,
            created_at=existing.created_at,
            updated_at=timezone.now(),
        )
        self._policies[policy_id] = updated
        return updated

    def delete_policy(self, policy_id: str) -> None:
        if self._policies.pop(policy_id, None) is None:
            raise PolicyNotFound(policy_id)

    def reset(self) -> None:
        self._policies.clear()


class DatabasePolicyRepository(PolicyRepository):
    """Repository persisting policies through the :class:`PolicyRecord` model."""

    @staticmethod
    def _to_policy(record: PolicyRecord) -> Policy:
        return Policy.from_dict(
            {
                "id": str(record.pk),
                "name": record.name,
                "description": record.description,
                "version": record.version,
                "enabled": record.enabled,
                "tags": record.tags,
                "rules": record.rules,
                "created_by": record.created_by,
                "created_at": record.created_at,
                "updated_at": record.updated_at,
            }
        )

    @staticmethod
    def _get_record(policy_id: str) -> Optional[PolicyRecord]:
        try:
            pk = uuid.UUID(str(policy_id))
        except ValueError:
            return None
        return PolicyRecord.objects.filter(pk=pk).first()

    @staticmethod
    def _apply(record: PolicyRecord, policy: Policy) -> None:
        record.name = policy.name
        record.description = policy.description
        record.version = policy.version
        record.enabled = policy.enabled
        record.tags = list(policy.tags)
        record.rules = [rule.to_dict() for rule in policy.rules]
        record.created_by = policy.created_by

    def create_policy(self, policy: PolicyInput) -> Policy:
        data = _as_dict(policy)
        data.update(id=None, created_at=None, updated_at=None)
        parsed = Policy.from_dict(data)
        record = PolicyRecord()
        self._apply(record, parsed)
        record.save()
        return self._to_policy(record)

    def get_policy(self, policy_id: str) -> Optional[Policy]:
        record = self._get_record(policy_id)
        return self._to_policy(record) if record else None

    def list_policies(self, enabled=None, tags=None) -> list[Policy]:
        queryset = PolicyRecord.objects.all()
        if enabled is not None:
            queryset = queryset.filter(enabled=enabled)
        policies = []
        for record in queryset:
            try:
                policies.append(self._to_policy(record))
            except PolicyDefinitionError:
                # Unreadable records are skipped; the remaining policies still apply.
                logger.exception("Skipping stored policy %s (%s): invalid definition", record.pk, record.name)
        # JSON containment lookups are not portable across backends; filter tags here.
        return [p for p in policies if _matches_filter(p, None, tags)]

    def update_policy(self, policy_id: str, **updates) -> Policy:
        record = self._get_record(policy_id)
        if record is None:
            raise PolicyNotFound(policy_id)
        data = self._to_policy(record).to_dict()
        data.update({k: v for k, v in updates.items() if k not in _IMMUTABLE_FIELDS})
        self._apply(record, Policy.from_dict(data))
        record.save()
        return self._to_policy(record)

    def delete_policy(self, policy_id: str) -> None:
        record = self._get_record(policy_id)
        if record is None:
            raise PolicyNotFound(policy_id)
        record.delete()

    def reset(self) -> None:
        PolicyRecord.objects.all().delete()


__all__ = [
    "DatabasePolicyRepository",
    "InMemoryPolicyRepository",
    "PolicyNotFound",
    "PolicyRepository",
]
