"""
Deterministic evaluator for conditional expressions.

Conditional expressions drive visibleIf / disabledIf / readonlyIf /
requiredIf on fields and the `when` gate on validation rules. The raw
JSON value is shape-polymorphic, so it is parsed once into a closed set
of condition variants and every caller works with those variants:

    {"age": 18}                          -> Equality
    {"role": ["admin", "editor"]}        -> Membership
    {"age": [">=", 18]}                  -> Comparison
    {"field": "age", "operator": ">=", "value": 18}  -> Comparison
    {"and": [...]} / [...]               -> AllOf
    {"or": [...]}                        -> AnyOf
    {"not": {...}}                       -> Not
    None / {} / anything unrecognized    -> Always (fail-open)

Evaluation only reads form data through a lookup callable.
"""

import logging
import operator as op
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from formrules.core.context import ValidationContext
from formrules.core.utils import is_number, to_number

logger = logging.getLogger(__name__)

Lookup = Callable[[str], Any]

OPERATORS: frozenset[str] = frozenset(
    {"==", "!=", ">", "<", ">=", "<=", "in", "notIn", "contains", "startswith", "endswith"}
)
LOGICAL_KEYS: tuple[str, ...] = ("and", "or", "not")

_ORDERING = {">": op.gt, "<": op.lt, ">=": op.ge, "<=": op.le}


# --- Condition variants ---


@dataclass(frozen=True)
class Always:
    """Degenerate condition that is always satisfied."""


@dataclass(frozen=True)
class AllOf:
    conditions: tuple["Condition", ...]


@dataclass(frozen=True)
class AnyOf:
    conditions: tuple["Condition", ...]


@dataclass(frozen=True)
class Not:
    condition: "Condition"


@dataclass(frozen=True)
class Comparison:
    """Field value compared to a static value through an operator."""

    field: str
    operator: str
    value: Any


@dataclass(frozen=True)
class Membership:
    """Field value must be one of the listed values."""

    field: str
    values: tuple[Any, ...]


@dataclass(frozen=True)
class Equality:
    """Field value must loosely equal a scalar."""

    field: str
    value: Any


Condition = Always | AllOf | AnyOf | Not | Comparison | Membership | Equality

ALWAYS = Always()


# --- Parsing ---


def parse_expression(raw: Any) -> Condition:
    """Parse a raw conditional expression into a condition variant.

    This is the only place that inspects the expression's shape.

    Args:
        raw: The expression as found in the configuration.

    Returns:
        The matching Condition. Unrecognized shapes yield Always.
    """
    if isinstance(raw, (list, tuple)):
        return AllOf(tuple(parse_expression(item) for item in raw))

    if not isinstance(raw, dict) or not raw:
        return ALWAYS

    if _is_set(raw.get("and")):
        return AllOf(tuple(parse_expression(item) for item in _as_list(raw["and"])))

    if _is_set(raw.get("or")):
        return AnyOf(tuple(parse_expression(item) for item in _as_list(raw["or"])))

    if _is_set(raw.get("not")):
        return Not(parse_expression(raw["not"]))

    if "field" in raw and "operator" in raw and "value" in raw:
        return Comparison(str(raw["field"]), str(raw["operator"]), raw["value"])

    if len(raw) == 1:
        field, criterion = next(iter(raw.items()))
        if field not in LOGICAL_KEYS:
            return _parse_field_criterion(field, criterion)

    return ALWAYS


def _parse_field_criterion(field: str, criterion: Any) -> Condition:
    """Resolve the `{field: criterion}` short forms."""
    if isinstance(criterion, (list, tuple)):
        if is_operator_pair(criterion):
            return Comparison(field, criterion[0], criterion[1])
        return Membership(field, tuple(criterion))
    return Equality(field, criterion)


def is_operator_pair(criterion: Any) -> bool:
    """True when a list is the explicit `[operator, value]` form.

    A 2-element list whose first element is a recognized operator keyword
    is an operator pair; any other list is an implicit membership list.
    """
    return (
        isinstance(criterion, (list, tuple))
        and len(criterion) == 2
        and isinstance(criterion[0], str)
        and criterion[0] in OPERATORS
    )


def _is_set(value: Any) -> bool:
    # Empty lists and dicts count as set; None, False, 0 and "" do not.
    if value is None or value is False:
        return False
    if isinstance(value, str):
        return value != ""
    if is_number(value):
        return value != 0
    return True


def _as_list(value: Any) -> list[Any]:
    return list(value) if isinstance(value, (list, tuple)) else [value]


# --- Evaluation ---


def evaluate(expression: Any, lookup: Lookup) -> bool:
    """Evaluate a raw conditional expression against form data.

    Args:
        expression: Raw expression (dict, list, or None).
        lookup: Resolves a dotted field path to its value, None if missing.

    Returns:
        True if the condition holds. None and empty expressions hold.
    """
    return evaluate_condition(parse_expression(expression), lookup)


def evaluate_condition(condition: Condition, lookup: Lookup) -> bool:
    """Evaluate an already-parsed condition."""
    match condition:
        case AllOf(conditions=conditions):
            return all(evaluate_condition(c, lookup) for c in conditions)
        case AnyOf(conditions=conditions):
            return any(evaluate_condition(c, lookup) for c in conditions)
        case Not(condition=inner):
            return not evaluate_condition(inner, lookup)
        case Comparison(field=field, operator=operator, value=value):
            return compare_values(lookup(field), value, operator)
        case Membership(field=field, values=values):
            return contains_value(values, lookup(field))
        case Equality(field=field, value=value):
            return loose_equals(lookup(field), value)

    return True


def evaluate_in_context(expression: Any, context: ValidationContext) -> bool:
    """Evaluate an expression with a ValidationContext as the lookup."""
    return evaluate(expression, context.get_value)


def compare_values(field_value: Any, compare_value: Any, operator: str) -> bool:
    """Compare a field value to a compare value using an operator keyword.

    Unknown operators log a warning and evaluate to False. `notIn` with a
    compare value that is not a list evaluates to True.
    """
    match operator:
        case "==":
            return loose_equals(field_value, compare_value)

        case "!=":
            return not loose_equals(field_value, compare_value)

        case ">" | "<" | ">=" | "<=":
            return _compare_ordered(field_value, compare_value, _ORDERING[operator])

        case "in":
            if isinstance(compare_value, (list, tuple)):
                return contains_value(compare_value, field_value)
            return False

        case "notIn":
            if isinstance(compare_value, (list, tuple)):
                return not contains_value(compare_value, field_value)
            return True

        case "contains":
            if isinstance(field_value, str) and isinstance(compare_value, str):
                return compare_value in field_value
            if isinstance(field_value, (list, tuple)):
                return contains_value(field_value, compare_value)
            return False

        case "startswith":
            if isinstance(field_value, str) and isinstance(compare_value, str):
                return field_value.startswith(compare_value)
            return False

        case "endswith":
            if isinstance(field_value, str) and isinstance(compare_value, str):
                return field_value.endswith(compare_value)
            return False

    logger.warning("Unknown comparison operator: %s", operator)
    return False


def loose_equals(left: Any, right: Any) -> bool:
    """Loose equality.

    - None only equals None.
    - Booleans only equal booleans of the same value.
    - A numeric string equals its numeric counterpart ("18" == 18).
    - Everything else uses plain equality.
    """
    if left is None or right is None:
        return left is None and right is None

    if isinstance(left, bool) or isinstance(right, bool):
        return isinstance(left, bool) and isinstance(right, bool) and left is right

    if is_number(left) and isinstance(right, str):
        number = to_number(right)
        return number is not None and number == left

    if isinstance(left, str) and is_number(right):
        number = to_number(left)
        return number is not None and number == right

    return left == right


def same_value(left: Any, right: Any) -> bool:
    """Strict equality used for list membership (no string/number coercion)."""
    if isinstance(left, bool) or isinstance(right, bool):
        return isinstance(left, bool) and isinstance(right, bool) and left is right
    if is_number(left) and is_number(right):
        return left == right
    if type(left) is not type(right):
        return False
    return left == right


def contains_value(values: Any, target: Any) -> bool:
    """True if `target` is one of `values`. Nested lists are not searched."""
    return any(same_value(item, target) for item in values)


def _compare_ordered(left: Any, right: Any, comparator: Callable[[Any, Any], bool]) -> bool:
    if is_number(left) and isinstance(right, str):
        right = to_number(right)
    elif isinstance(left, str) and is_number(right):
        left = to_number(left)

    if left is None or right is None:
        return False

    try:
        return bool(comparator(left, right))
    except TypeError:
        return False


# --- Field extraction ---


def extract_fields(expression: Any) -> list[str]:
    """Return the field names an expression reads, in first-seen order.

    Walks the same grammar as evaluation, so logical keys are never
    reported as fields.
    """
    fields: list[str] = []
    _collect_fields(parse_expression(expression), fields)
    return fields


def _collect_fields(condition: Condition, fields: list[str]) -> None:
    match condition:
        case AllOf(conditions=conditions) | AnyOf(conditions=conditions):
            for inner in conditions:
                _collect_fields(inner, fields)
        case Not(condition=inner):
            _collect_fields(inner, fields)
        case Comparison(field=field) | Membership(field=field) | Equality(field=field):
            if field not in fields:
                fields.append(field)
