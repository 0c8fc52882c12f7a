"""In-memory role/permission store and the RBAC authorizer built on it.

Permission strings have the form ``"<resource>:<action>"``; a trailing
``":own"`` restricts the grant to resources owned by the acting subject.
Matching is exact, there is no wildcard expansion.
"""

from dataclasses import dataclass
from typing import Optional

from .audit import AuditRecord, AuditSink, notify

OWN_SUFFIX = ":own"

DEFAULT_ROLES: dict[str, frozenset[str]] = {
    "admin": frozenset(
        {
            "users:create",
            "users:read",
            "users:update",
            "users:delete",
            "posts:create",
            "posts:read",
            "posts:update",
            "posts:delete",
            "settings:read",
            "settings:update",
        }
    ),
    "user": frozenset(
        {
            "posts:create",
            "posts:read",
            "posts:update:own",
            "posts:delete:own",
            "profile:read",
            "profile:update",
        }
    ),
    "guest": frozenset({"posts:read", "profile:read"}),
}


def permission_for(resource: str, action: str) -> str:
    return f"{resource}:{action}"


class RoleStore:
    """Subject->roles, subject->direct permissions, and role->permissions maps.

    Every mutation is a plain set edit with no suspension point, so it is
    atomic under cooperative scheduling. Revoking something that was never
    granted is a no-op.
    """

    def __init__(self):
        self.user_roles: dict[str, set[str]] = {}
        self.user_permissions: dict[str, set[str]] = {}
        self.role_permissions: dict[str, set[str]] = {}
        self.seed_defaults()

    def seed_defaults(self) -> None:
        for role, permissions in DEFAULT_ROLES.items():
            self.role_permissions[role] = set(permissions)

    def reset(self) -> None:
        self.user_roles.clear()
        self.user_permissions.clear()
        self.role_permissions.clear()
        self.seed_defaults()

    def assign_role(self, subject_id: str, role: str) -> None:
        self.user_roles.setdefault(subject_id, set()).add(role)

    def revoke_role(self, subject_id: str, role: str) -> None:
        _discard(self.user_roles, subject_id, role)

    def grant_permission(self, subject_id: str, permission: str) -> None:
        self.user_permissions.setdefault(subject_id, set()).add(permission)

    def revoke_permission(self, subject_id: str, permission: str) -> None:
        _discard(self.user_permissions, subject_id, permission)

    def add_role_permission(self, role: str, permission: str) -> None:
        self.role_permissions.setdefault(role, set()).add(permission)

    def remove_role_permission(self, role: str, permission: str) -> None:
        permissions = self.role_permissions.get(role)
        if permissions is not None:
            permissions.discard(permission)


def _discard(mapping: dict[str, set[str]], key: str, item: str) -> None:
    """Remove ``item`` from ``mapping[key]``, dropping the key once empty."""
    items = mapping.get(key)
    if items is None:
        return
    items.discard(item)
    if not items:
        del mapping[key]


@dataclass(frozen=True)
class RbacDecision:
    allowed: bool
    permission: Optional[str] = None
    via_ownership: bool = False


class RBACAuthorizer:
    """Answer role, permission and ownership questions over a :class:`RoleStore`."""

    def __init__(self, store: Optional[RoleStore] = None, audit_sink: Optional[AuditSink] = None):
        self.store = store if store is not None else RoleStore()
        self.audit_sink = audit_sink

    def has_role(self, subject_id: str, role: str) -> bool:
        return role in self.store.user_roles.get(subject_id, ())

    def get_user_roles(self, subject_id: str) -> list[str]:
        return sorted(self.store.user_roles.get(subject_id, ()))

    def has_permission(self, subject_id: str, permission: str) -> bool:
        if permission in self.store.user_permissions.get(subject_id, ()):
            return True
        return any(
            permission in self.store.role_permissions.get(role, ())
            for role in self.store.user_roles.get(subject_id, ())
        )

    def get_user_permissions(self, subject_id: str) -> list[str]:
        permissions = set(self.store.user_permissions.get(subject_id, ()))
        for role in self.store.user_roles.get(subject_id, ()):
            permissions |= self.store.role_permissions.get(role, set())
        return sorted(permissions)

    def decide(self, subject_id: str, resource: str, action: str, owner_id: Optional[str] = None) -> RbacDecision:
        """Compute the RBAC decision without side effects."""
        permission = permission_for(resource, action)
        if self.has_permission(subject_id, permission):
            return RbacDecision(True, permission)

        own_permission = permission + OWN_SUFFIX
        if owner_id is not None and owner_id == subject_id and self.has_permission(subject_id, own_permission):
            return RbacDecision(True, own_permission, via_ownership=True)
        return RbacDecision(False)

    def can_access(self, subject_id: str, resource: str, action: str, owner_id: Optional[str] = None) -> bool:
        """Decide, then report the outcome to the audit sink."""
        decision = self.decide(subject_id, resource, action, owner_id)
        notify(
            self.audit_sink,
            AuditRecord.for_decision(
                subject_id,
                resource,
                decision.allowed,
                resource_id=owner_id if decision.via_ownership else None,
            ),
        )
        return decision.allowed


__all__ = ["DEFAULT_ROLES", "RBACAuthorizer", "RbacDecision", "RoleStore", "permission_for"]
