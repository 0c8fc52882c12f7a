"""Policy evaluator and aggregator tests (priority, deny-overrides, default deny)."""

from __future__ import annotations

from django.test import SimpleTestCase

from access_control.engine import DEFAULT_DENY, NO_MATCHING_RULES, POLICY_DISABLED, PolicyEngine
from access_control.policy import Policy, PolicyContext, PolicyEffect
from tests.utils import cond, make_policy, make_rule


class PolicyEvaluationTests(SimpleTestCase):
    """Single-policy evaluation."""

    def setUp(self):
        self.engine = PolicyEngine()
        self.context = PolicyContext(
            user={"id": "u1", "role": "employee"},
            resource={"type": "document", "status": "published"},
            environment={"hour": 11},
            action="update",
        )

    def test_deny_overrides_allow_within_policy(self):
        """Matching DENY (priority 50) beats matching ALLOW (priority 10); deny id first."""
        policy = make_policy(
            "p1",
            make_rule("allow-employees", "allow", cond("user", "role", "eq", "employee"), priority=10),
            make_rule("deny-published", "deny", cond("resource", "status", "eq", "published"), priority=50),
        )
        result = self.engine.evaluate_policy(policy, self.context)

        self.assertEqual(result.effect, PolicyEffect.DENY)
        self.assertEqual(result.matched_rules[0], "deny-published")
        self.assertEqual(result.matched_rules, ("deny-published",))

    def test_all_matching_rules_reported_in_priority_order(self):
        policy = make_policy(
            "p1",
            make_rule("low", "allow", cond("user", "role", "eq", "employee"), priority=1),
            make_rule("high", "allow", cond("environment", "hour", "gte", 9), priority=20),
            make_rule("mid", "allow", cond("action", "value", "eq", "update"), priority=5),
        )
        result = self.engine.evaluate_policy(policy, self.context)

        self.assertEqual(result.effect, PolicyEffect.ALLOW)
        self.assertEqual(result.matched_rules, ("high", "mid", "low"))

    def test_equal_priorities_keep_declared_order(self):
        policy = make_policy(
            "p1",
            make_rule("first", "deny", cond("user", "role", "eq", "employee")),
            make_rule("second", "deny", cond("action", "value", "eq", "update")),
            make_rule("third", "deny", cond("environment", "hour", "eq", 11)),
        )
        result = self.engine.evaluate_policy(policy, self.context)
        self.assertEqual(result.matched_rules, ("first", "second", "third"))

    def test_missing_priority_defaults_to_zero(self):
        policy = make_policy(
            "p1",
            make_rule("unset", "allow", cond("user", "role", "eq", "employee")),
            make_rule("negative", "allow", cond("user", "role", "eq", "employee"), priority=-1),
            make_rule("positive", "allow", cond("user", "role", "eq", "employee"), priority=1),
        )
        result = self.engine.evaluate_policy(policy, self.context)
        self.assertEqual(result.matched_rules, ("positive", "unset", "negative"))

    def test_no_matching_rules(self):
        policy = make_policy("p1", make_rule("admins", "allow", cond("user", "role", "eq", "admin")))
        result = self.engine.evaluate_policy(policy, self.context)

        self.assertEqual(result.effect, PolicyEffect.DENY)
        self.assertEqual(result.matched_rules, ())
        self.assertEqual(result.reason, NO_MATCHING_RULES)

    def test_disabled_policy_denies_without_matches(self):
        policy = make_policy(
            "p1", make_rule("everyone", "allow", cond("user", "role", "eq", "employee")), enabled=False
        )
        result = self.engine.evaluate_policy(policy, self.context)

        self.assertEqual(result.effect, PolicyEffect.DENY)
        self.assertEqual(result.matched_rules, ())
        self.assertEqual(result.reason, POLICY_DISABLED)

    def test_bad_regex_rule_does_not_stop_other_rules(self):
        policy = make_policy(
            "p1",
            make_rule("broken", "deny", cond("user", "role", "matches", "(["), priority=100),
            make_rule("works", "allow", cond("user", "role", "eq", "employee")),
        )
        with self.assertLogs("access_control.conditions", level="WARNING"):
            result = self.engine.evaluate_policy(policy, self.context)
        self.assertEqual(result.effect, PolicyEffect.ALLOW)
        self.assertEqual(result.matched_rules, ("works",))


class PolicySetEvaluationTests(SimpleTestCase):
    """Aggregation across policies."""

    def setUp(self):
        self.engine = PolicyEngine()
        self.context = PolicyContext(
            user={"id": "u1", "role": "employee"},
            resource={"type": "report", "restricted": True},
            action="read",
        )
        self.allow_employees = make_policy(
            "A", make_rule("employee-rule", "allow", cond("user", "role", "eq", "employee"))
        )
        self.deny_restricted = make_policy(
            "B", make_rule("restricted-rule", "deny", cond("resource", "restricted", "eq", True))
        )

    def test_deny_overrides_across_policies(self):
        result = self.engine.evaluate_policies([self.allow_employees, self.deny_restricted], self.context)

        self.assertEqual(result.effect, PolicyEffect.DENY)
        self.assertEqual(result.matched_rules, ("restricted-rule",))
        self.assertIn("restricted-rule", result.reason)

    def test_allow_when_only_allow_matches(self):
        result = self.engine.evaluate_policies([self.allow_employees], self.context)

        self.assertTrue(result.allowed)
        self.assertEqual(result.matched_rules, ("employee-rule",))

    def test_default_deny_when_nothing_matches(self):
        policies = [
            make_policy("X", make_rule("admins", "allow", cond("user", "role", "eq", "admin"))),
            make_policy("Y", make_rule("night", "deny", cond("environment", "hour", "gt", 22))),
        ]
        result = self.engine.evaluate_policies(policies, self.context)

        self.assertEqual(result.effect, PolicyEffect.DENY)
        self.assertEqual(result.matched_rules, ())
        self.assertEqual(result.reason, DEFAULT_DENY)

    def test_empty_policy_set_is_default_deny(self):
        result = self.engine.evaluate_policies([], self.context)
        self.assertEqual(result.reason, DEFAULT_DENY)

    def test_disabled_policies_are_skipped(self):
        disabled_deny = make_policy(
            "B", make_rule("restricted-rule", "deny", cond("resource", "restricted", "eq", True)), enabled=False
        )
        result = self.engine.evaluate_policies([self.allow_employees, disabled_deny], self.context)
        self.assertTrue(result.allowed)

    def test_matches_concatenate_in_policy_order(self):
        second_allow = make_policy("C", make_rule("reader-rule", "allow", cond("action", "value", "eq", "read")))
        second_deny = make_policy("D", make_rule("report-rule", "deny", cond("resource", "type", "eq", "report")))

        allowed = self.engine.evaluate_policies([second_allow, self.allow_employees], self.context)
        self.assertEqual(allowed.matched_rules, ("reader-rule", "employee-rule"))

        denied = self.engine.evaluate_policies(
            [self.deny_restricted, self.allow_employees, second_deny], self.context
        )
        self.assertEqual(denied.matched_rules, ("restricted-rule", "report-rule"))

    def test_policy_round_trips_through_dict(self):
        policy = Policy.from_dict(
            {
                "id": "p",
                "name": "Nested",
                "tags": ["t"],
                "rules": [
                    {
                        "id": "r",
                        "effect": "deny",
                        "priority": 3,
                        "conditions": {
                            "operator": "or",
                            "conditions": [
                                cond("user", "a.b", "in", [1, 2]),
                                {"operator": "not", "conditions": [cond("environment", "x", "eq", None)]},
                            ],
                        },
                    }
                ],
            }
        )
        self.assertEqual(Policy.from_dict(policy.to_dict()), policy)
