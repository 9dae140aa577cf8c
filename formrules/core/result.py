"""
Validation result models.

A ValidationResult collects every error of a validation pass together
with a per-field view (valid / errors / skipped). Field keys are the
dotted field paths produced by formrules.core.paths.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class ValidationError(BaseModel):
    """A single failed rule or group."""

    field: str
    message: str
    rule: str
    params: dict[str, Any] | None = None


class FieldResult(BaseModel):
    """Outcome for one field."""

    valid: bool = True
    errors: list[ValidationError] = Field(default_factory=list)
    skipped: bool = False
    skip_reason: str | None = None


class ValidationMetadata(BaseModel):
    timestamp: datetime
    duration_ms: float
    execution_mode: str
    level_count: int


class ValidationResult(BaseModel):
    """Result of validating form data against a form configuration."""

    valid: bool = True
    errors: list[ValidationError] = Field(default_factory=list)
    field_results: dict[str, FieldResult] = Field(default_factory=dict)
    metadata: ValidationMetadata | None = None
    dependency_graph: dict[str, Any] | None = None

    def add_error(
        self,
        field: str,
        message: str,
        rule: str,
        params: dict[str, Any] | None = None,
    ) -> None:
        """Record an error and mark the field invalid."""
        error = ValidationError(field=field, message=message, rule=rule, params=params)
        self.valid = False
        self.errors.append(error)

        field_result = self.field_results.setdefault(field, FieldResult())
        field_result.valid = False
        field_result.skipped = False
        field_result.errors.append(error)

    def set_field_valid(self, field: str) -> None:
        field_result = self.field_results.setdefault(field, FieldResult())
        field_result.skipped = False
        field_result.skip_reason = None

    def set_field_skipped(self, field: str, reason: str) -> None:
        self.field_results[field] = FieldResult(skipped=True, skip_reason=reason)

    def merge(self, other: "ValidationResult") -> None:
        """Fold another result's errors and field results into this one."""
        if not other.valid:
            self.valid = False
        self.errors.extend(other.errors)

        for field, result in other.field_results.items():
            existing = self.field_results.get(field)
            if existing is None:
                self.field_results[field] = result
                continue
            if not result.valid:
                existing.valid = False
            existing.errors.extend(result.errors)

    def field_errors(self, field: str) -> list[ValidationError]:
        return [error for error in self.errors if error.field == field]

    def is_field_valid(self, field: str) -> bool:
        result = self.field_results.get(field)
        return result.valid if result else True

    def is_field_skipped(self, field: str) -> bool:
        result = self.field_results.get(field)
        return result.skipped if result else False
