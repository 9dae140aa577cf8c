"""
Deterministic field-state evaluation.

Decides, for one field and the current form data, whether the field is
visible, disabled, read-only and required, and whether each validation
rule's `when` gate lets it apply.

Two failure policies meet here:
- Conditional expressions themselves are fail-open (malformed -> true).
- If evaluating a condition raises, the field state falls back to the
  stricter side: visible, enabled, required, and the rule applies.
"""

import logging
from dataclasses import dataclass
from typing import Any

from formrules.core.context import ValidationContext
from formrules.core.expressions import evaluate
from formrules.core.schema import FieldConfig, RuleOrGroup, RuleType, ValidationRule, iter_rules

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FieldState:
    visible: bool = True
    disabled: bool = False
    readonly: bool = False
    required: bool = False


def evaluate_field_state(field: FieldConfig, context: ValidationContext) -> FieldState:
    """Evaluate every conditional property of a field.

    A field hidden by its visibleIf is also treated as disabled, so a
    hidden field can never be visible=False yet disabled=False.

    Args:
        field: The field descriptor.
        context: Current form data.

    Returns:
        The field's FieldState.
    """
    visible = is_field_visible(field, context)
    if field.visible_if is not None and not visible:
        disabled = True
    else:
        disabled = _condition(field.disabled_if, context, default=False, on_error=False)

    return FieldState(
        visible=visible,
        disabled=disabled,
        readonly=_condition(field.readonly_if, context, default=False, on_error=False),
        required=is_field_required(field, context),
    )


def is_field_visible(field: FieldConfig, context: ValidationContext) -> bool:
    """A field without visibleIf is always visible."""
    return _condition(field.visible_if, context, default=True, on_error=True)


def is_field_required(field: FieldConfig, context: ValidationContext) -> bool:
    """requiredIf decides when present; otherwise any `required` rule makes the field required."""
    if field.required_if is not None:
        return _condition(field.required_if, context, default=True, on_error=True)
    return has_required_rule(field.validation_rules)


def has_required_rule(entries: list[RuleOrGroup]) -> bool:
    """True if a `required` rule appears anywhere in the rules, groups included."""
    return any(rule.type == RuleType.REQUIRED.value for rule in iter_rules(entries))


def should_apply_rule(rule: ValidationRule, context: ValidationContext) -> bool:
    """Decide whether a rule applies given its `when` condition.

    Rules without `when` always apply. If the condition cannot be
    evaluated the rule is applied anyway.
    """
    if rule.when is None:
        return True

    try:
        return evaluate(rule.when, context.get_value)
    except Exception:
        logger.error("Error evaluating 'when' condition of %s rule", rule.type, exc_info=True)
        return True


def filter_applicable_rules(
    rules: list[ValidationRule], context: ValidationContext
) -> list[ValidationRule]:
    """Keep only the rules whose `when` condition holds."""
    return [rule for rule in rules if should_apply_rule(rule, context)]


def _condition(expression: Any, context: ValidationContext, default: bool, on_error: bool) -> bool:
    if expression is None:
        return default

    try:
        return evaluate(expression, context.get_value)
    except Exception:
        logger.error("Error evaluating field condition %r", expression, exc_info=True)
        return on_error
