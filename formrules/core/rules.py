"""
Primitive validation rules.

Each rule type is a small stateless check against one value. Checks
raise RuleViolation with the message to report; RuleEngine.validate()
turns that into a RuleOutcome. Empty values are generally left to the
`required` rule.
"""

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

from formrules.core.context import ValidationContext
from formrules.core.expressions import compare_values
from formrules.core.registry import CURRENT_VALUE_KEY, CallbackRegistry
from formrules.core.schema import RuleType, ValidationRule
from formrules.core.utils import is_number, parse_datetime, to_number

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^ @]+@[^ @]+\.[^ @]+$")


class RuleViolation(Exception):
    """Raised by a rule check when the value violates the rule."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


@dataclass(frozen=True)
class RuleOutcome:
    valid: bool
    error: str | None = None


class RuleEngine:
    """Executes single validation rules against a value.

    Args:
        registry: Resolves named custom and cross-field callbacks.
    """

    def __init__(self, registry: CallbackRegistry):
        self.registry = registry

    def validate(self, value: Any, rule: ValidationRule, context: ValidationContext) -> RuleOutcome:
        """Run one rule.

        Args:
            value: The field value (already defaulted for missing fields).
            rule: The rule to apply.
            context: Form data, for rules that read other fields.

        Returns:
            RuleOutcome with the error message when the rule fails.
        """
        try:
            self._check(value, rule, context)
        except RuleViolation as e:
            return RuleOutcome(valid=False, error=e.message)
        return RuleOutcome(valid=True)

    # -----------------------------------------------------------------
    # Dispatch
    # -----------------------------------------------------------------

    def _check(self, value: Any, rule: ValidationRule, context: ValidationContext) -> None:
        match rule.type:
            case RuleType.REQUIRED.value:
                self._check_required(value, rule)
            case RuleType.EMAIL.value:
                self._check_email(value, rule)
            case RuleType.NUMERIC.value:
                self._check_numeric(value, rule)
            case RuleType.STRING_LENGTH.value:
                self._check_string_length(value, rule)
            case RuleType.ARRAY_LENGTH.value:
                self._check_array_length(value, rule)
            case RuleType.RANGE.value:
                self._check_range(value, rule)
            case RuleType.PATTERN.value:
                self._check_pattern(value, rule)
            case RuleType.COMPARE.value:
                self._check_compare(value, rule, context)
            case RuleType.CUSTOM.value:
                self._check_custom(value, rule, context)
            case RuleType.CROSS_FIELD.value:
                self._check_cross_field(value, rule, context)
            case RuleType.TEMPORAL.value:
                self._check_temporal(rule)
            case RuleType.ASYNC.value:
                # Remote validation is handled outside the engine.
                logger.debug("Skipping remote rule for endpoint %s", rule.api_endpoint)
            case RuleType.COMPUTED.value:
                pass
            case _:
                logger.debug("Unknown rule type '%s' passes", rule.type)

    # -----------------------------------------------------------------
    # Value rules
    # -----------------------------------------------------------------

    def _check_required(self, value: Any, rule: ValidationRule) -> None:
        """Rejects None and blank strings; 0, False and [] are present values."""
        if value is None or (isinstance(value, str) and not value.strip()):
            raise RuleViolation(rule.message or "This field is required")

    def _check_email(self, value: Any, rule: ValidationRule) -> None:
        if value is None or value == "":
            return
        if not isinstance(value, str) or not EMAIL_PATTERN.match(value):
            raise RuleViolation(rule.message or "Invalid email format")

    def _check_numeric(self, value: Any, rule: ValidationRule) -> None:
        if value is None:
            return
        if not _as_number(value)[0]:
            raise RuleViolation(rule.message or "Value must be a number")

    def _check_string_length(self, value: Any, rule: ValidationRule) -> None:
        if value is None:
            return
        if not isinstance(value, str):
            raise RuleViolation(rule.message or "Value must be a string")
        if rule.min is not None and len(value) < rule.min:
            raise RuleViolation(rule.message or f"String length must be at least {rule.min}")
        if rule.max is not None and len(value) > rule.max:
            raise RuleViolation(rule.message or f"String length must be at most {rule.max}")

    def _check_array_length(self, value: Any, rule: ValidationRule) -> None:
        if value is None:
            return
        if not isinstance(value, list):
            raise RuleViolation(rule.message or "Value must be an array")
        if rule.min is not None and len(value) < rule.min:
            raise RuleViolation(rule.message or f"Array must have at least {rule.min} items")
        if rule.max is not None and len(value) > rule.max:
            raise RuleViolation(rule.message or f"Array must have at most {rule.max} items")

    def _check_range(self, value: Any, rule: ValidationRule) -> None:
        if value is None:
            return
        ok, number = _as_number(value)
        if not ok:
            raise RuleViolation(rule.message or "Value must be a number")
        if rule.min is not None and number < rule.min:
            raise RuleViolation(rule.message or f"Value must be at least {rule.min}")
        if rule.max is not None and number > rule.max:
            raise RuleViolation(rule.message or f"Value must be at most {rule.max}")

    def _check_pattern(self, value: Any, rule: ValidationRule) -> None:
        if not rule.pattern or value is None:
            return
        message = rule.message or "Value does not match the required pattern"
        if not isinstance(value, str):
            raise RuleViolation(message)
        try:
            matched = re.search(rule.pattern, value)
        except re.error as e:
            logger.warning("Invalid pattern %r in validation rule: %s", rule.pattern, e)
            raise RuleViolation(message)
        if not matched:
            raise RuleViolation(message)

    # -----------------------------------------------------------------
    # Rules that read other fields or callbacks
    # -----------------------------------------------------------------

    def _check_compare(self, value: Any, rule: ValidationRule, context: ValidationContext) -> None:
        if not rule.comparison_target:
            return

        target_value = context.get_value(rule.comparison_target)
        comparison = rule.comparison_type or "=="
        if not compare_values(value, target_value, comparison):
            raise RuleViolation(rule.message or f"Value must be {comparison} {target_value}")

    def _check_custom(self, value: Any, rule: ValidationRule, context: ValidationContext) -> None:
        if not rule.validation_callback:
            return

        callback = rule.validation_callback
        if isinstance(callback, str):
            callback = self.registry.resolve(callback)

        message = rule.message or "Custom validation failed"
        if not self._run_callback(callback, value, context, message):
            raise RuleViolation(message)

    def _check_cross_field(
        self, value: Any, rule: ValidationRule, context: ValidationContext
    ) -> None:
        if not rule.target_fields or not rule.cross_field_validator:
            return

        validator_ref = rule.cross_field_validator
        params: dict[str, Any] | None = None
        if isinstance(validator_ref, str):
            callback = self.registry.resolve(validator_ref)
        elif isinstance(validator_ref, dict) and "name" in validator_ref:
            callback = self.registry.resolve(validator_ref["name"])
            params = validator_ref.get("params")
        elif callable(validator_ref):
            callback = validator_ref
        else:
            logger.warning("Unsupported crossFieldValidator format: %r", validator_ref)
            return

        values: dict[str, Any] = {CURRENT_VALUE_KEY: value}
        for target in rule.target_fields:
            values[target] = context.get_value(target)

        message = rule.message or "Cross-field validation failed"
        if not self._run_callback(callback, values, context.with_params(params), message):
            raise RuleViolation(message)

    def _run_callback(self, callback, argument: Any, context: ValidationContext, message: str) -> bool:
        """Run a user callback; a callback that raises counts as a failure."""
        try:
            return bool(callback(argument, context))
        except RuleViolation:
            raise
        except Exception as e:
            logger.warning("Validation callback raised: %s", e, exc_info=True)
            raise RuleViolation(str(e) or message)

    def _check_temporal(self, rule: ValidationRule) -> None:
        """The rule only accepts submissions inside [validFrom - grace, validUntil]."""
        valid_from = parse_datetime(rule.valid_from)
        valid_until = parse_datetime(rule.valid_until)

        if valid_from is not None:
            now = datetime.now(valid_from.tzinfo)
            grace = timedelta(milliseconds=rule.grace_period or 0)
            if now < valid_from - grace:
                raise RuleViolation(
                    rule.message or f"This field is not valid until {valid_from.isoformat()}"
                )

        if valid_until is not None:
            now = datetime.now(valid_until.tzinfo)
            if now > valid_until:
                raise RuleViolation(
                    rule.message or f"This field expired on {valid_until.isoformat()}"
                )


def _as_number(value: Any) -> tuple[bool, float | None]:
    """Numbers pass; numeric non-blank strings convert; nothing else does."""
    if is_number(value):
        return True, value
    if isinstance(value, str) and value.strip():
        number = to_number(value)
        return number is not None, number
    return False, None
