"""
Registry of named validation callbacks.

`custom` rules reference a single-value callback by name
(`validationCallback`), `crossField` rules reference a multi-value
callback (`crossFieldValidator`). A registry instance is owned by the
Validator that uses it and is passed in explicitly, so independent
validation runs never share mutable registry state.

Single-value callbacks receive (value, context).
Cross-field callbacks receive (values, context), where `values` maps each
target field to its value plus `_currentValue` for the validated field.
Parameterized cross-field callbacks read `context.params`.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from formrules.core.context import ValidationContext
from formrules.core.utils import is_empty, parse_datetime, to_number

logger = logging.getLogger(__name__)

ValidationCallback = Callable[[Any, ValidationContext], bool]

CURRENT_VALUE_KEY = "_currentValue"

CALLBACK_TYPES = ("custom", "crossField", "computed")


@dataclass(frozen=True)
class RegistryEntry:
    callback: ValidationCallback
    type: str = "custom"
    description: str | None = None
    predefined: bool = False


class CallbackRegistry:
    """Named validation callbacks with optional built-in validators."""

    def __init__(self):
        self._callbacks: dict[str, RegistryEntry] = {}

    @classmethod
    def with_predefined(cls) -> "CallbackRegistry":
        """Create a registry pre-populated with the built-in validators."""
        registry = cls()
        registry.register_predefined()
        return registry

    def register(
        self,
        name: str,
        callback: ValidationCallback,
        type: str = "custom",
        description: str | None = None,
        overwrite: bool = False,
    ) -> bool:
        """Register a callback under a name.

        Predefined validators are only replaced with overwrite=True.

        Returns:
            True if the callback was stored.
        """
        if type not in CALLBACK_TYPES:
            raise ValueError(f"Unknown callback type '{type}'. Expected one of {CALLBACK_TYPES}")

        existing = self._callbacks.get(name)
        if existing is not None and existing.predefined and not overwrite:
            logger.warning(
                "Cannot override predefined validator '%s'. Use overwrite=True to force.", name
            )
            return False

        self._callbacks[name] = RegistryEntry(callback=callback, type=type, description=description)
        return True

    def get(self, name: str) -> ValidationCallback | None:
        entry = self._callbacks.get(name)
        return entry.callback if entry else None

    def has(self, name: str) -> bool:
        return name in self._callbacks

    def unregister(self, name: str) -> bool:
        """Remove a custom callback. Predefined validators cannot be removed."""
        entry = self._callbacks.get(name)
        if entry is None:
            return False
        if entry.predefined:
            logger.warning("Cannot unregister predefined validator '%s'", name)
            return False
        del self._callbacks[name]
        return True

    def list_all(self) -> list[dict[str, Any]]:
        """Describe every registered callback."""
        return [
            {
                "name": name,
                "type": entry.type,
                "description": entry.description,
                "predefined": entry.predefined,
            }
            for name, entry in self._callbacks.items()
        ]

    def clear_custom(self) -> None:
        """Drop every callback that is not predefined."""
        self._callbacks = {
            name: entry for name, entry in self._callbacks.items() if entry.predefined
        }

    def resolve(self, name: str) -> ValidationCallback:
        """Look up a callback, falling back to one that always fails.

        A rule that names an unregistered callback must not pass silently.
        """
        callback = self.get(name)
        if callback is not None:
            return callback

        logger.warning(
            "Validator '%s' not found in registry. Available validators: %s",
            name,
            ", ".join(self._callbacks),
        )

        def _missing(_value: Any, _context: ValidationContext) -> bool:
            logger.error("Validator '%s' was not registered. Validation will fail.", name)
            return False

        return _missing

    def register_predefined(self) -> None:
        """Install the built-in validators."""
        for name, (callback, callback_type, description) in PREDEFINED_VALIDATORS.items():
            self._callbacks[name] = RegistryEntry(
                callback=callback,
                type=callback_type,
                description=description,
                predefined=True,
            )


# -----------------------------------------------------------------
# Built-in validators
# -----------------------------------------------------------------


def _target_values(values: dict[str, Any]) -> list[Any]:
    return [v for k, v in values.items() if k != CURRENT_VALUE_KEY]


def _first_present(values: dict[str, Any]) -> Any:
    return next((v for v in _target_values(values) if v is not None), None)


def _all_equal(values: dict[str, Any], _context: ValidationContext) -> bool:
    # The validated field's own value takes part in the match.
    field_values = list(values.values())
    if len(field_values) < 2:
        return False
    first, *rest = field_values
    return all(value == first for value in rest)


def _date_range_valid(values: dict[str, Any], _context: ValidationContext) -> bool:
    dates = [parse_datetime(v) for v in _target_values(values)]
    if len(dates) < 2 or any(d is None for d in dates):
        return False
    return all(earlier <= later for earlier, later in zip(dates, dates[1:]))


def _numeric_range_valid(values: dict[str, Any], _context: ValidationContext) -> bool:
    numbers = [to_number(v) for v in _target_values(values)]
    if len(numbers) < 2 or any(n is None for n in numbers):
        return False
    return all(lower <= upper for lower, upper in zip(numbers, numbers[1:]))


def _not_empty(value: Any, _context: ValidationContext) -> bool:
    return not is_empty(value)


def _is_positive(value: Any, _context: ValidationContext) -> bool:
    number = to_number(value)
    return number is not None and number > 0


def _is_non_negative(value: Any, _context: ValidationContext) -> bool:
    number = to_number(value)
    return number is not None and number >= 0


def _target_not_empty(values: dict[str, Any], _context: ValidationContext) -> bool:
    return not is_empty(_first_present(values))


def _target_is_true(values: dict[str, Any], _context: ValidationContext) -> bool:
    return _first_present(values) is True


def _target_is_false(values: dict[str, Any], _context: ValidationContext) -> bool:
    return _first_present(values) is False


def _target_equals(values: dict[str, Any], context: ValidationContext) -> bool:
    params = context.params or {}
    return _first_present(values) == params.get("value")


def _target_in(values: dict[str, Any], context: ValidationContext) -> bool:
    params = context.params or {}
    return _first_present(values) in (params.get("values") or [])


def _target_not_in(values: dict[str, Any], context: ValidationContext) -> bool:
    params = context.params or {}
    return _first_present(values) not in (params.get("values") or [])


def _array_contains_any(values: dict[str, Any], context: ValidationContext) -> bool:
    params = context.params or {}
    array = _first_present(values)
    if not isinstance(array, list):
        return False
    return any(candidate in array for candidate in params.get("values") or [])


def _sum_equals(values: dict[str, Any], _context: ValidationContext) -> bool:
    total = sum(to_number(v) or 0 for v in _target_values(values))
    return to_number(values.get(CURRENT_VALUE_KEY)) == total


def _percentage_sum(values: dict[str, Any], _context: ValidationContext) -> bool:
    return sum(to_number(v) or 0 for v in _target_values(values)) == 100


def _date_in_range(values: dict[str, Any], _context: ValidationContext) -> bool:
    targets = _target_values(values)
    if len(targets) < 2:
        return True

    start, end = parse_datetime(targets[0]), parse_datetime(targets[1])
    current = parse_datetime(values.get(CURRENT_VALUE_KEY))
    # Missing or unparseable dates are left to other rules.
    if start is None or end is None or current is None:
        return True
    return start <= current <= end


def _at_least_one_required(values: dict[str, Any], _context: ValidationContext) -> bool:
    return any(not is_empty(v) for v in _target_values(values))


def _product_equals(values: dict[str, Any], _context: ValidationContext) -> bool:
    targets = [to_number(v) or 0 for v in _target_values(values)]
    if not targets:
        return True
    product = 1
    for number in targets:
        product *= number
    return (to_number(values.get(CURRENT_VALUE_KEY)) or 0) == product


PREDEFINED_VALIDATORS: dict[str, tuple[ValidationCallback, str, str]] = {
    "passwordMatch": (
        _all_equal,
        "crossField",
        "Checks that all target fields hold the same value (password confirmation)",
    ),
    "emailMatch": (_all_equal, "crossField", "Checks that all target email fields match"),
    "dateRangeValid": (
        _date_range_valid,
        "crossField",
        "Validates that target dates are in ascending order",
    ),
    "numericRangeValid": (
        _numeric_range_valid,
        "crossField",
        "Validates that target numbers are in ascending order",
    ),
    "notEmpty": (_not_empty, "custom", "Checks that a value is not empty"),
    "isPositive": (_is_positive, "custom", "Checks that a value is a positive number"),
    "isNonNegative": (_is_non_negative, "custom", "Checks that a value is >= 0"),
    "isNotEmpty": (_target_not_empty, "crossField", "Checks that the target field is not empty"),
    "isTrue": (_target_is_true, "crossField", "Checks that the target field is true"),
    "isFalse": (_target_is_false, "crossField", "Checks that the target field is false"),
    "equals": (_target_equals, "crossField", "Checks that the target equals params.value"),
    "valueIn": (_target_in, "crossField", "Checks that the target is in params.values"),
    "valueNotIn": (_target_not_in, "crossField", "Checks that the target is not in params.values"),
    "arrayContainsAny": (
        _array_contains_any,
        "crossField",
        "Checks that the target list contains any of params.values",
    ),
    "validateSumEquals": (
        _sum_equals,
        "crossField",
        "Checks that the current value equals the sum of the target fields",
    ),
    "validatePercentageSum": (
        _percentage_sum,
        "crossField",
        "Checks that the target fields sum to exactly 100",
    ),
    "validateDateInRange": (
        _date_in_range,
        "crossField",
        "Checks that the current date lies between the two target dates",
    ),
    "atLeastOneRequired": (
        _at_least_one_required,
        "crossField",
        "Checks that at least one target field is not empty",
    ),
    "validateProductEquals": (
        _product_equals,
        "crossField",
        "Checks that the current value equals the product of the target fields",
    ),
}
