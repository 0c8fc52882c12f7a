"""DRF permission class delegating to the hybrid authorizer."""

from typing import Optional

from rest_framework import permissions

from .audit import AuditRecord, notify
from .authorization import get_authorizer
from .policy import AuthorizationContext
from .rbac import OWN_SUFFIX, permission_for

METHOD_ACTIONS = {
    "GET": "read",
    "HEAD": "read",
    "OPTIONS": "read",
    "POST": "create",
    "PUT": "update",
    "PATCH": "update",
    "DELETE": "delete",
}


class HybridAccessPermission(permissions.BasePermission):
    """Check access to the view's ``protected_resource`` for the request subject.

    The HTTP method selects the action (``read``, ``create``, ``update``,
    ``delete``). Object-level checks pass the object's owner so that ``:own``
    permissions apply. Views may supply ABAC attributes and the owner through
    optional hooks:

    - ``get_owner_id(obj)``, defaulting to ``obj.owner_id``
    - ``get_resource_attributes(request, obj)``
    - ``get_environment_attributes(request)``

    Without an object, a subject holding only the ``:own`` variant of the
    permission is let through with ``request.owner_scoped`` set and an
    owner-scoped grant is audited; the view narrows its listing and object
    checks enforce ownership.
    """

    message = "You do not have permission to perform this action on this resource."

    def has_permission(self, request, view) -> bool:
        return self._check(request, view, obj=None)

    def has_object_permission(self, request, view, obj) -> bool:
        return self._check(request, view, obj=obj)

    def _check(self, request, view, obj) -> bool:
        resource = getattr(view, "protected_resource", None)
        action = METHOD_ACTIONS.get(request.method)
        subject_id = self._subject_id(request)
        if not resource or not action or not subject_id:
            return False

        context = AuthorizationContext(
            subject_id=subject_id,
            resource=resource,
            action=action,
            resource_attributes=self._call(view, "get_resource_attributes", request, obj),
            environment_attributes=self._call(view, "get_environment_attributes", request),
            owner_id=self._owner_id(view, obj),
        )
        authorizer = get_authorizer()
        if authorizer.can_access_with_context(context):
            return True
        if obj is None and action != "create":
            own_permission = permission_for(resource, action) + OWN_SUFFIX
            if authorizer.rbac.has_permission(subject_id, own_permission):
                request.owner_scoped = True
                notify(
                    authorizer.audit_sink,
                    AuditRecord.for_decision(
                        subject_id, resource, True, metadata={"permission": own_permission, "scope": "own"}
                    ),
                )
                return True
        return False

    @staticmethod
    def _subject_id(request) -> Optional[str]:
        user = getattr(request, "user", None)
        if not user or not getattr(user, "is_authenticated", False):
            return None
        return getattr(user, "id", None)

    @staticmethod
    def _owner_id(view, obj) -> Optional[str]:
        if obj is None:
            return None
        getter = getattr(view, "get_owner_id", None)
        return getter(obj) if getter else getattr(obj, "owner_id", None)

    @staticmethod
    def _call(view, hook: str, *args):
        getter = getattr(view, hook, None)
        return getter(*args) if getter else None


__all__ = ["HybridAccessPermission", "METHOD_ACTIONS"]
