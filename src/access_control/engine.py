"""Policy evaluation with deny-overrides combination."""

from typing import Iterable

from . import conditions
from .policy import EvaluationResult, Policy, PolicyContext, PolicyEffect, PolicyRule

POLICY_DISABLED = "policy disabled"
NO_MATCHING_RULES = "no matching rules in policy"
DEFAULT_DENY = "no matching policy rules found (default deny)"


class PolicyEngine:
    """Evaluate rules, single policies, and policy sets.

    Within a policy every rule is evaluated, highest priority first, so the
    result reports all matches. Across policies the per-policy matches are
    concatenated and any deny match wins.
    """

    def evaluate_rule(self, rule: PolicyRule, context: PolicyContext) -> bool:
        return conditions.evaluate(rule.conditions, context)

    def evaluate_policy(self, policy: Policy, context: PolicyContext) -> EvaluationResult:
        if not policy.enabled:
            return EvaluationResult(PolicyEffect.DENY, (), POLICY_DISABLED)

        denied: list[str] = []
        allowed: list[str] = []
        # sorted() is stable, so equal priorities keep their declared order.
        for rule in sorted(policy.rules, key=lambda r: r.priority, reverse=True):
            if not self.evaluate_rule(rule, context):
                continue
            if rule.effect is PolicyEffect.DENY:
                denied.append(rule.id)
            else:
                allowed.append(rule.id)

        if denied:
            return EvaluationResult(
                PolicyEffect.DENY, tuple(denied), f"denied by rules: {', '.join(denied)}"
            )
        if allowed:
            return EvaluationResult(
                PolicyEffect.ALLOW, tuple(allowed), f"allowed by rules: {', '.join(allowed)}"
            )
        return EvaluationResult(PolicyEffect.DENY, (), NO_MATCHING_RULES)

    def evaluate_policies(self, policies: Iterable[Policy], context: PolicyContext) -> EvaluationResult:
        denied: list[str] = []
        allowed: list[str] = []
        for policy in policies:
            if not policy.enabled:
                continue
            result = self.evaluate_policy(policy, context)
            if result.effect is PolicyEffect.DENY:
                denied.extend(result.matched_rules)
            else:
                allowed.extend(result.matched_rules)

        if denied:
            return EvaluationResult(
                PolicyEffect.DENY, tuple(denied), f"access denied by rules: {', '.join(denied)}"
            )
        if allowed:
            return EvaluationResult(
                PolicyEffect.ALLOW, tuple(allowed), f"access granted by rules: {', '.join(allowed)}"
            )
        return EvaluationResult(PolicyEffect.DENY, (), DEFAULT_DENY)


__all__ = ["PolicyEngine", "POLICY_DISABLED", "NO_MATCHING_RULES", "DEFAULT_DENY"]
