"""Serializers for decision requests and policy documents."""

from rest_framework import serializers

from .policy import AuthorizationContext, PolicyDefinitionError, PolicyRule


class AuthorizationRequestSerializer(serializers.Serializer):
    """Validate a decision request from a trusted internal caller."""

    subject_id = serializers.CharField()
    resource = serializers.CharField()
    action = serializers.CharField()
    owner_id = serializers.CharField(required=False, allow_null=True)
    user_attributes = serializers.DictField(required=False)
    resource_attributes = serializers.DictField(required=False)
    environment_attributes = serializers.DictField(required=False)

    def to_context(self) -> AuthorizationContext:
        return AuthorizationContext(**self.validated_data)


class RuleField(serializers.Field):
    """A policy rule with its condition tree, validated by the policy parser."""

    def to_internal_value(self, data):
        try:
            return PolicyRule.from_dict(data).to_dict()
        except (PolicyDefinitionError, AttributeError, TypeError) as exc:
            raise serializers.ValidationError(str(exc)) from exc

    def to_representation(self, value):
        return value


class PolicyDefinitionSerializer(serializers.Serializer):
    """Policy document in the exchange format used by authoring tools."""

    name = serializers.CharField(max_length=255)
    description = serializers.CharField(required=False, allow_blank=True, default="")
    version = serializers.CharField(max_length=50, default="1.0.0")
    enabled = serializers.BooleanField(default=True)
    tags = serializers.ListField(child=serializers.CharField(), required=False, default=list)
    created_by = serializers.CharField(required=False, allow_null=True, default=None)
    rules = serializers.ListField(child=RuleField(), allow_empty=True)

    def validate_rules(self, rules):
        """Rule ids must be unique within a policy."""
        ids = [rule["id"] for rule in rules]
        duplicates = sorted({rule_id for rule_id in ids if ids.count(rule_id) > 1})
        if duplicates:
            raise serializers.ValidationError(f"Duplicate rule ids: {', '.join(duplicates)}")
        return rules


__all__ = ["AuthorizationRequestSerializer", "PolicyDefinitionSerializer", "RuleField"]
