"""
Form configuration models.

These Pydantic models define the contract shared by form-rendering
front ends and the backend. A configuration is a tree of field
descriptors; each may carry conditional expressions (visibleIf,
disabledIf, readonlyIf, requiredIf) and a list of validation rules or
rule groups.

Wire keys are camelCase; snake_case names are accepted as well.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from formrules.core.rule_groups import (
    GroupOperator,
    is_rule,
    is_rule_group,
    normalize_group_payload,
)


# --- Enums ---


class FieldKind(str, Enum):
    """What a field descriptor is, decided once when it is parsed."""

    CONTAINER = "container"
    DATA = "data"
    NON_VALIDATABLE = "non_validatable"


class RuleType(str, Enum):
    """Validation rule types understood by the rule engine."""

    REQUIRED = "required"
    EMAIL = "email"
    NUMERIC = "numeric"
    STRING_LENGTH = "stringLength"
    ARRAY_LENGTH = "arrayLength"
    RANGE = "range"
    PATTERN = "pattern"
    COMPARE = "compare"
    CUSTOM = "custom"
    CROSS_FIELD = "crossField"
    TEMPORAL = "temporal"
    ASYNC = "async"
    COMPUTED = "computed"


CONTAINER_TYPES: frozenset[str] = frozenset({"group", "tabbed", "tab", "form", "grid", "tree"})
NON_VALIDATABLE_TYPES: frozenset[str] = frozenset({"button", "empty"})


def classify_field_type(field_type: str) -> FieldKind:
    """Map a field `type` string to its FieldKind."""
    if field_type in CONTAINER_TYPES:
        return FieldKind.CONTAINER
    if field_type in NON_VALIDATABLE_TYPES:
        return FieldKind.NON_VALIDATABLE
    return FieldKind.DATA


# --- Validation rules ---


class ValidationRule(BaseModel):
    """A single named check against one field's value.

    The optional `when` expression gates whether the rule applies at all.
    """

    model_config = ConfigDict(populate_by_name=True, extra="allow", arbitrary_types_allowed=True)

    type: str = Field(..., min_length=1, description="Rule type (see RuleType)")
    message: str | None = Field(default=None, description="Custom error message")
    when: Any = Field(default=None, description="Conditional expression gating the rule")

    min: int | float | None = None
    max: int | float | None = None
    pattern: str | None = None

    comparison_target: str | None = Field(default=None, alias="comparisonTarget")
    comparison_type: str | None = Field(default=None, alias="comparisonType")

    target_fields: list[str] | None = Field(default=None, alias="targetFields")
    cross_field_validator: Any = Field(default=None, alias="crossFieldValidator")
    validation_callback: Any = Field(default=None, alias="validationCallback")

    valid_from: str | None = Field(default=None, alias="validFrom")
    valid_until: str | None = Field(default=None, alias="validUntil")
    grace_period: int | None = Field(default=None, alias="gracePeriod", description="Milliseconds")

    api_endpoint: str | None = Field(default=None, alias="apiEndpoint")
    subtype: str | None = None

    def referenced_fields(self) -> list[str]:
        """Other fields this rule reads (compare target, cross-field targets)."""
        fields: list[str] = []
        if self.type == RuleType.COMPARE.value and self.comparison_target:
            fields.append(self.comparison_target)
        if self.type == RuleType.CROSS_FIELD.value and self.target_fields:
            for target in self.target_fields:
                if target not in fields:
                    fields.append(target)
        return fields


class RuleGroup(BaseModel):
    """Logical combinator over rules and nested groups.

    Accepts both the legacy `{operator, rules}` format and the keyed
    `{and|or|not: ...}` format; both normalize to operator + rules.
    """

    model_config = ConfigDict(populate_by_name=True)

    operator: GroupOperator
    rules: list["ValidationRule | RuleGroup"] = Field(default_factory=list)
    group_message: str | None = None
    message: str | None = None
    stop_on_first_error: bool = False

    @model_validator(mode="before")
    @classmethod
    def normalize_wire_format(cls, data: Any) -> Any:
        if isinstance(data, dict):
            return normalize_group_payload(data)
        return data

    @field_validator("rules", mode="before")
    @classmethod
    def parse_members(cls, value: Any) -> Any:
        return parse_rule_entries(value)


RuleOrGroup = ValidationRule | RuleGroup


def parse_rule_entry(raw: Any) -> RuleOrGroup:
    """Parse one `validationRules` entry into a rule or a group.

    Raises:
        ValueError: If the entry is neither a rule nor a group.
    """
    if isinstance(raw, (ValidationRule, RuleGroup)):
        return raw
    if is_rule_group(raw):
        return RuleGroup.model_validate(raw)
    if is_rule(raw):
        return ValidationRule.model_validate(raw)
    raise ValueError(f"Unrecognized validation rule entry: {raw!r}")


def parse_rule_entries(value: Any) -> Any:
    if value is None:
        return []
    if not isinstance(value, list):
        return value
    return [parse_rule_entry(entry) for entry in value]


def iter_rules(entries: list[RuleOrGroup]):
    """Yield every ValidationRule in a rule list, descending into groups."""
    for entry in entries:
        if isinstance(entry, RuleGroup):
            yield from iter_rules(entry.rules)
        else:
            yield entry


# --- Field descriptors ---


class FieldConfig(BaseModel):
    """Definition of a single field or container in the form tree."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    type: str = Field(..., min_length=1, description="Widget/field type")
    name: str | None = Field(default=None, description="Field name used in form data")
    data_field: str | None = Field(default=None, alias="dataField")
    items: list["FieldConfig"] | None = Field(
        default=None,
        description="Nested items (containers only)",
    )

    visible_if: Any = Field(default=None, alias="visibleIf")
    disabled_if: Any = Field(default=None, alias="disabledIf")
    readonly_if: Any = Field(default=None, alias="readonlyIf")
    required_if: Any = Field(default=None, alias="requiredIf")

    validation_rules: list[RuleOrGroup] = Field(default_factory=list, alias="validationRules")
    exclude_from_path: bool = Field(default=False, alias="excludeFromPath")

    kind: FieldKind | None = Field(default=None, exclude=True)

    @field_validator("validation_rules", mode="before")
    @classmethod
    def parse_validation_rules(cls, value: Any) -> Any:
        return parse_rule_entries(value)

    @model_validator(mode="after")
    def assign_kind(self) -> "FieldConfig":
        if self.kind is None:
            self.kind = classify_field_type(self.type)
        return self

    @property
    def field_name(self) -> str | None:
        """The field's name, falling back to dataField."""
        return self.name or self.data_field

    @property
    def is_container(self) -> bool:
        return self.kind == FieldKind.CONTAINER

    @property
    def is_data(self) -> bool:
        return self.kind == FieldKind.DATA

    def conditions(self) -> dict[str, Any]:
        """The field's conditional expressions that are set, keyed by wire name."""
        candidates = {
            "visibleIf": self.visible_if,
            "disabledIf": self.disabled_if,
            "readonlyIf": self.readonly_if,
            "requiredIf": self.required_if,
        }
        return {key: expr for key, expr in candidates.items() if expr is not None}


# --- Top-level form configuration ---


class FormConfig(BaseModel):
    """Top-level form configuration."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    form_id: str = Field(..., min_length=1, alias="formId")
    items: list[FieldConfig] = Field(default_factory=list)

    @model_validator(mode="after")
    def validate_unique_names(self) -> "FormConfig":
        """Field names key the dependency graph, so they must be unique."""
        seen: set[str] = set()
        for field in iter_fields(self.items):
            name = field.field_name
            if name is None:
                continue
            if name in seen:
                raise ValueError(f"Duplicate field name: '{name}'")
            seen.add(name)
        return self


def iter_fields(items: list[FieldConfig] | None):
    """Depth-first walk over a field tree, containers included."""
    for item in items or []:
        yield item
        yield from iter_fields(item.items)


RuleGroup.model_rebuild()
FieldConfig.model_rebuild()
FormConfig.model_rebuild()
