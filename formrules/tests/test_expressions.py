"""
Unit tests for the conditional expression evaluator.

Tests cover:
- Parsing every expression shape into its condition variant
- Direct equality, implicit membership, explicit operator pairs
- Full {field, operator, value} form
- and / or / not combinators, including nesting
- Operator table (==, !=, ordering, in, notIn, contains, startswith, endswith)
- Missing fields, unknown operators, malformed expressions (fail-open)
- Field extraction
"""

import pytest

from formrules.core.context import ValidationContext
from formrules.core.expressions import (
    ALWAYS,
    AllOf,
    AnyOf,
    Comparison,
    Equality,
    Membership,
    Not,
    compare_values,
    evaluate,
    evaluate_in_context,
    extract_fields,
    is_operator_pair,
    loose_equals,
    parse_expression,
)


# --- Helpers ---


def check(expression, data: dict) -> bool:
    """Evaluate an expression against a flat or nested data dict."""
    return evaluate(expression, ValidationContext(data).get_value)


# =============================================================
# Test: Parsing
# =============================================================


class TestParseExpression:
    """Every raw shape maps to exactly one condition variant."""

    def test_none_is_always(self):
        assert parse_expression(None) is ALWAYS

    def test_empty_dict_is_always(self):
        assert parse_expression({}) is ALWAYS

    def test_scalar_is_equality(self):
        assert parse_expression({"age": 18}) == Equality("age", 18)

    def test_list_is_membership(self):
        assert parse_expression({"role": ["admin", "editor"]}) == Membership(
            "role", ("admin", "editor")
        )

    def test_operator_pair_is_comparison(self):
        assert parse_expression({"age": [">=", 18]}) == Comparison("age", ">=", 18)

    def test_full_form_is_comparison(self):
        raw = {"field": "age", "operator": "<", "value": 65}
        assert parse_expression(raw) == Comparison("age", "<", 65)

    def test_top_level_list_is_all_of(self):
        parsed = parse_expression([{"a": 1}, {"b": 2}])
        assert parsed == AllOf((Equality("a", 1), Equality("b", 2)))

    def test_and_or_not(self):
        assert isinstance(parse_expression({"and": [{"a": 1}]}), AllOf)
        assert isinstance(parse_expression({"or": [{"a": 1}]}), AnyOf)
        assert parse_expression({"not": {"a": 1}}) == Not(Equality("a", 1))

    def test_single_operand_logical_key_is_wrapped(self):
        assert parse_expression({"and": {"a": 1}}) == AllOf((Equality("a", 1),))

    def test_multi_key_dict_without_logical_key_is_always(self):
        assert parse_expression({"a": 1, "b": 2}) is ALWAYS

    def test_two_element_list_without_operator_is_membership(self):
        assert parse_expression({"x": ["a", "b"]}) == Membership("x", ("a", "b"))

    def test_non_string_first_element_is_membership(self):
        assert parse_expression({"x": [1, 2]}) == Membership("x", (1, 2))


class TestIsOperatorPair:

    def test_recognized_operator(self):
        assert is_operator_pair([">", 5]) is True

    def test_unrecognized_keyword(self):
        assert is_operator_pair(["between", 5]) is False

    def test_wrong_length(self):
        assert is_operator_pair([">", 5, 6]) is False

    def test_not_a_list(self):
        assert is_operator_pair(">") is False


# =============================================================
# Test: Shorthand forms
# =============================================================


class TestDirectEquality:
    """{field: scalar} compares with loose equality."""

    def test_match(self):
        assert check({"status": "active"}, {"status": "active"}) is True

    def test_mismatch(self):
        assert check({"status": "active"}, {"status": "inactive"}) is False

    def test_numeric_string_equals_number(self):
        assert check({"age": 18}, {"age": "18"}) is True

    def test_boolean(self):
        assert check({"subscribed": True}, {"subscribed": True}) is True
        assert check({"subscribed": True}, {"subscribed": 1}) is False

    def test_missing_field_is_not_equal(self):
        assert check({"status": "active"}, {}) is False

    def test_null_matches_missing_field(self):
        assert check({"status": None}, {}) is True


class TestImplicitMembership:
    """{field: [v1, v2, ...]} holds when the value is one of the list."""

    def test_member(self):
        assert check({"country": ["US", "CA"]}, {"country": "US"}) is True

    def test_non_member(self):
        assert check({"country": ["US", "CA"]}, {"country": "DE"}) is False

    def test_membership_is_strict(self):
        assert check({"level": [1, 2]}, {"level": "1"}) is False

    def test_empty_list_never_matches(self):
        assert check({"country": []}, {"country": "US"}) is False


class TestExplicitOperator:

    def test_greater_or_equal(self):
        assert check({"age": [">=", 18]}, {"age": 21}) is True
        assert check({"age": [">=", 18]}, {"age": 17}) is False

    def test_not_equal(self):
        assert check({"status": ["!=", "closed"]}, {"status": "open"}) is True

    def test_in_operator_pair(self):
        assert check({"tier": ["in", ["gold", "silver"]]}, {"tier": "gold"}) is True


class TestFullForm:

    def test_comparison(self):
        expr = {"field": "age", "operator": ">", "value": 30}
        assert check(expr, {"age": 31}) is True
        assert check(expr, {"age": 30}) is False

    def test_nested_path(self):
        expr = {"field": "address.country", "operator": "==", "value": "US"}
        assert check(expr, {"address": {"country": "US"}}) is True


# =============================================================
# Test: Logical combinators
# =============================================================


class TestLogicalCombinators:

    def test_and_requires_all(self):
        expr = {"and": [{"a": 1}, {"b": 2}]}
        assert check(expr, {"a": 1, "b": 2}) is True
        assert check(expr, {"a": 1, "b": 3}) is False

    def test_or_requires_any(self):
        expr = {"or": [{"a": 1}, {"b": 2}]}
        assert check(expr, {"a": 0, "b": 2}) is True
        assert check(expr, {"a": 0, "b": 0}) is False

    def test_not_negates(self):
        expr = {"not": {"a": 1}}
        assert check(expr, {"a": 2}) is True
        assert check(expr, {"a": 1}) is False

    def test_top_level_list_is_conjunction(self):
        expr = [{"a": 1}, {"b": [">", 5]}]
        assert check(expr, {"a": 1, "b": 6}) is True
        assert check(expr, {"a": 1, "b": 5}) is False

    def test_nested_combinators(self):
        expr = {
            "and": [
                {"country": ["US", "CA"]},
                {"or": [{"age": [">=", 21]}, {"guardian": True}]},
            ]
        }
        assert check(expr, {"country": "US", "age": 25}) is True
        assert check(expr, {"country": "CA", "age": 16, "guardian": True}) is True
        assert check(expr, {"country": "CA", "age": 16}) is False
        assert check(expr, {"country": "DE", "age": 30}) is False

    def test_empty_and_holds(self):
        assert check({"and": []}, {}) is True

    def test_empty_or_fails(self):
        assert check({"or": []}, {}) is False

    def test_and_takes_precedence_over_other_keys(self):
        expr = {"and": [{"a": 1}], "or": [{"b": 2}]}
        assert check(expr, {"a": 1, "b": 0}) is True


# =============================================================
# Test: Operator table
# =============================================================


class TestCompareValues:

    @pytest.mark.parametrize("field_value, compare_value, operator, expected", [
        (5, 5, "==", True),
        ("5", 5, "==", True),
        (5, 6, "!=", True),
        (None, None, "==", True),
        (None, 0, "==", False),
        (10, 5, ">", True),
        (5, 10, "<", True),
        (5, 5, ">=", True),
        (5, 5, "<=", True),
        ("10", 5, ">", True),
        ("b", "a", ">", True),
        ("abc", 5, ">", False),
        (None, 5, ">", False),
        ("a", ["a", "b"], "in", True),
        ("c", ["a", "b"], "in", False),
        ("c", ["a", "b"], "notIn", True),
        ("a", ["a", "b"], "notIn", False),
        ("hello world", "world", "contains", True),
        (["x", "y"], "y", "contains", True),
        (5, 5, "contains", False),
        ("prefix-value", "prefix", "startswith", True),
        ("value-suffix", "suffix", "endswith", True),
        (5, "5", "startswith", False),
    ])
    def test_operator(self, field_value, compare_value, operator, expected):
        assert compare_values(field_value, compare_value, operator) is expected

    def test_in_with_non_list_is_false(self):
        assert compare_values("a", "a", "in") is False

    def test_not_in_with_non_list_is_true(self):
        assert compare_values("a", "a", "notIn") is True

    def test_unknown_operator_is_false(self, caplog):
        assert compare_values(1, 1, "between") is False
        assert "Unknown comparison operator" in caplog.text

    def test_ordering_date_strings(self):
        assert compare_values("2026-05-01", "2026-04-01", ">=") is True


class TestLooseEquals:

    def test_none_only_equals_none(self):
        assert loose_equals(None, None) is True
        assert loose_equals(None, "") is False
        assert loose_equals(0, None) is False

    def test_booleans_never_equal_numbers(self):
        assert loose_equals(True, 1) is False
        assert loose_equals(False, 0) is False

    def test_non_numeric_string_against_number(self):
        assert loose_equals("abc", 1) is False


# =============================================================
# Test: Fail-open behavior
# =============================================================


class TestFailOpen:
    """Absent or unrecognized expressions never block anything."""

    @pytest.mark.parametrize("expression", [None, {}, "string", 42, {"a": 1, "b": 2}])
    def test_unrecognized_holds(self, expression):
        assert check(expression, {"a": 0}) is True

    def test_evaluate_in_context(self):
        context = ValidationContext({"a": 1})
        assert evaluate_in_context({"a": 1}, context) is True
        assert evaluate_in_context(None, context) is True

    def test_evaluation_is_deterministic(self):
        expr = {"or": [{"a": [">", 1]}, {"b": ["x", "y"]}]}
        data = {"a": 0, "b": "y"}
        assert check(expr, data) == check(expr, data)

    def test_data_is_not_mutated(self):
        data = {"a": {"b": 1}}
        check({"a.b": 1}, data)
        check({"field": "a.c", "operator": "==", "value": None}, data)
        assert data == {"a": {"b": 1}}


# =============================================================
# Test: Field extraction
# =============================================================


class TestExtractFields:

    def test_single_field(self):
        assert extract_fields({"age": 18}) == ["age"]

    def test_nested_combinators_in_first_seen_order(self):
        expr = {
            "and": [
                {"country": ["US"]},
                {"or": [{"age": [">=", 21]}, {"country": "CA"}]},
                {"not": {"field": "status", "operator": "==", "value": "closed"}},
            ]
        }
        assert extract_fields(expr) == ["country", "age", "status"]

    def test_logical_keys_are_not_fields(self):
        assert extract_fields({"and": [], "or": []}) == []

    def test_none_and_empty(self):
        assert extract_fields(None) == []
        assert extract_fields({}) == []

    def test_top_level_list(self):
        assert extract_fields([{"a": 1}, {"b": 2}]) == ["a", "b"]
