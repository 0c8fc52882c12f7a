"""Decision endpoint and read-only policy inspection."""

from django.http import Http404
from django.utils import timezone
from drf_spectacular.utils import extend_schema, inline_serializer
from rest_framework import serializers

from core.response import BaseAPIView, BaseReadOnlyViewSet, api_response
from .authorization import get_authorizer
from .permissions import HybridAccessPermission
from .serializers import AuthorizationRequestSerializer


class AuthorizeView(BaseAPIView):
    """Answer an allow/deny question for a trusted internal caller.

    Only the boolean is returned; the deny reason goes to the audit sink and
    is never echoed to the caller.
    """

    authentication_classes: list = []
    permission_classes: list = []

    @extend_schema(
        request=AuthorizationRequestSerializer,
        responses=inline_serializer("AuthorizationDecision", {"allowed": serializers.BooleanField()}),
    )
    def post(self, request):
        serializer = AuthorizationRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        allowed = get_authorizer().can_access_with_context(serializer.to_context())
        return api_response({"allowed": allowed})


class PolicyViewSet(BaseReadOnlyViewSet):
    """List and inspect ABAC policies held by the process-wide repository."""

    permission_classes = [HybridAccessPermission]
    protected_resource = "policies"

    def get_owner_id(self, policy):
        return policy.created_by

    def get_resource_attributes(self, request, policy):
        attributes = {"type": self.protected_resource}
        if policy is not None:
            attributes.update(id=policy.id, tags=list(policy.tags), createdBy=policy.created_by)
        return attributes

    def get_environment_attributes(self, request):
        return {"ipAddress": request.META.get("REMOTE_ADDR"), "hour": timezone.now().hour}

    def _repository(self):
        # Raises PolicyStoreUnavailable for an RBAC-only authorizer.
        return get_authorizer().repository

    def list(self, request):
        enabled = request.query_params.get("enabled")
        tags = [t for t in request.query_params.get("tags", "").split(",") if t]
        policies = self._repository().list_policies(
            enabled=None if enabled is None else enabled.lower() == "true",
            tags=tags or None,
        )
        if getattr(request, "owner_scoped", False):
            policies = [policy for policy in policies if policy.created_by == request.user.id]
        return api_response([policy.to_dict() for policy in policies])

    def retrieve(self, request, pk=None):
        policy = self._repository().get_policy(pk)
        if policy is None:
            raise Http404("Policy not found.")
        self.check_object_permissions(request, policy)
        return api_response(policy.to_dict())


__all__ = ["AuthorizeView", "PolicyViewSet"]
