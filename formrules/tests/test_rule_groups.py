"""
Unit tests for rule group normalization and combination.

Tests cover:
- Shape detection for rules and groups
- Normalizing the legacy and keyed wire formats
- Multi-member `not` groups
- and / or / not combination, including empty and inapplicable members
- stopOnFirstError short-circuiting
- Group failure messages
"""

import pytest

from formrules.core.rule_groups import (
    DEFAULT_GROUP_MESSAGE,
    GroupOperator,
    MemberOutcome,
    combine,
    evaluate_group,
    group_failure_message,
    is_rule,
    is_rule_group,
    normalize_group_payload,
)
from formrules.core.schema import RuleGroup, ValidationRule


# --- Helpers ---


def make_group(operator: str, count: int, **extra) -> RuleGroup:
    """A group of `count` placeholder rules named r0, r1, ..."""
    rules = [{"type": "custom", "message": f"r{i}"} for i in range(count)]
    return RuleGroup.model_validate({"operator": operator, "rules": rules, **extra})


def scripted(failures: list[bool | None]):
    """Member runner returning pre-scripted outcomes in member order.

    None means the member does not apply.
    """
    calls: list[str] = []
    script = iter(failures)

    def run_member(member: ValidationRule) -> MemberOutcome | None:
        calls.append(member.message)
        failed = next(script)
        if failed is None:
            return None
        return MemberOutcome(failed=failed, message=f"{member.message} failed")

    return run_member, calls


# =============================================================
# Test: Shape detection
# =============================================================


class TestShapeDetection:

    def test_rule(self):
        assert is_rule({"type": "required"}) is True
        assert is_rule({"operator": "and", "rules": []}) is False

    def test_legacy_group(self):
        assert is_rule_group({"operator": "or", "rules": []}) is True

    def test_keyed_group(self):
        assert is_rule_group({"and": []}) is True
        assert is_rule_group({"not": {"type": "required"}}) is True

    def test_rule_with_logical_looking_key_is_not_group(self):
        assert is_rule_group({"type": "custom", "and": []}) is False

    def test_non_dict(self):
        assert is_rule_group(["and"]) is False


# =============================================================
# Test: Normalization
# =============================================================


class TestNormalizeGroupPayload:

    def test_legacy_format(self):
        payload = normalize_group_payload({
            "operator": "or",
            "rules": [{"type": "required"}],
            "groupMessage": "Need one",
            "stopOnFirstError": True,
        })
        assert payload == {
            "operator": "or",
            "rules": [{"type": "required"}],
            "group_message": "Need one",
            "message": None,
            "stop_on_first_error": True,
        }

    def test_keyed_format(self):
        payload = normalize_group_payload({"and": [{"type": "email"}], "message": "Bad"})
        assert payload["operator"] == "and"
        assert payload["rules"] == [{"type": "email"}]
        assert payload["message"] == "Bad"
        assert payload["stop_on_first_error"] is False

    def test_keyed_not_with_single_object(self):
        payload = normalize_group_payload({"not": {"type": "email"}})
        assert payload["operator"] == "not"
        assert payload["rules"] == [{"type": "email"}]

    def test_not_with_several_members_wraps_in_and(self):
        payload = normalize_group_payload({
            "operator": "not",
            "rules": [{"type": "required"}, {"type": "email"}],
        })
        assert payload["operator"] == "not"
        assert payload["rules"] == [
            {"operator": "and", "rules": [{"type": "required"}, {"type": "email"}]}
        ]

    def test_both_formats_parse_to_same_group(self):
        legacy = RuleGroup.model_validate(
            {"operator": "or", "rules": [{"type": "required"}, {"type": "email"}]}
        )
        keyed = RuleGroup.model_validate({"or": [{"type": "required"}, {"type": "email"}]})
        assert legacy == keyed

    def test_nested_groups_are_parsed(self):
        group = RuleGroup.model_validate({
            "or": [
                {"and": [{"type": "required"}, {"type": "stringLength", "min": 5}]},
                {"type": "email"},
            ]
        })
        assert isinstance(group.rules[0], RuleGroup)
        assert group.rules[0].operator == GroupOperator.AND
        assert isinstance(group.rules[1], ValidationRule)


# =============================================================
# Test: Combination
# =============================================================


class TestCombine:

    @pytest.mark.parametrize("operator, failures, expected", [
        (GroupOperator.AND, [False, False], False),
        (GroupOperator.AND, [False, True], True),
        (GroupOperator.OR, [True, False], False),
        (GroupOperator.OR, [True, True], True),
        (GroupOperator.NOT, [False], True),
        (GroupOperator.NOT, [True], False),
    ])
    def test_truth_table(self, operator, failures, expected):
        assert combine(operator, failures) is expected

    @pytest.mark.parametrize("operator", list(GroupOperator))
    def test_empty_members_never_fail(self, operator):
        assert combine(operator, []) is False


class TestEvaluateGroup:

    def test_and_runs_all_members_by_default(self):
        run_member, calls = scripted([True, True, False])
        outcome = evaluate_group(make_group("and", 3), run_member)
        assert outcome.failed is True
        assert calls == ["r0", "r1", "r2"]
        assert outcome.member_messages == ("r0 failed", "r1 failed")

    def test_stop_on_first_error_short_circuits_and(self):
        run_member, calls = scripted([False, True, True])
        outcome = evaluate_group(make_group("and", 3, stopOnFirstError=True), run_member)
        assert outcome.failed is True
        assert calls == ["r0", "r1"]

    def test_stop_on_first_error_ignored_for_or(self):
        run_member, calls = scripted([True, True, False])
        outcome = evaluate_group(make_group("or", 3, stopOnFirstError=True), run_member)
        assert outcome.failed is False
        assert calls == ["r0", "r1", "r2"]

    def test_or_passes_if_any_member_passes(self):
        run_member, _ = scripted([True, False])
        assert evaluate_group(make_group("or", 2), run_member).failed is False

    def test_not_inverts_member(self):
        run_member, _ = scripted([False])
        outcome = evaluate_group(make_group("not", 1), run_member)
        assert outcome.failed is True
        assert outcome.message == DEFAULT_GROUP_MESSAGE

    def test_inapplicable_member_counts_as_passing_under_or(self):
        run_member, _ = scripted([None, True])
        outcome = evaluate_group(make_group("or", 2), run_member)
        assert outcome.failed is False
        assert outcome.message is None

    def test_inapplicable_members_take_no_part_under_and(self):
        run_member, _ = scripted([None, True])
        outcome = evaluate_group(make_group("and", 2), run_member)
        assert outcome.failed is True
        assert outcome.member_messages == ("r1 failed",)

    def test_not_over_inapplicable_member_passes(self):
        run_member, _ = scripted([None])
        assert evaluate_group(make_group("not", 1), run_member).failed is False

    def test_all_members_inapplicable(self):
        run_member, _ = scripted([None, None])
        assert evaluate_group(make_group("or", 2), run_member).failed is False

    def test_passing_group_has_no_message(self):
        run_member, _ = scripted([False])
        assert evaluate_group(make_group("and", 1), run_member).message is None


class TestGroupFailureMessage:

    def test_group_message_wins(self):
        group = make_group("and", 1, groupMessage="Group", message="Message")
        assert group_failure_message(group, ["a"]) == "Group"

    def test_message_fallback(self):
        group = make_group("and", 1, message="Message")
        assert group_failure_message(group, ["a"]) == "Message"

    def test_joined_member_messages(self):
        group = make_group("and", 2)
        assert group_failure_message(group, ["a", "b"]) == "a, b"

    def test_default(self):
        assert group_failure_message(make_group("and", 0), []) == DEFAULT_GROUP_MESSAGE
