"""
Validation orchestrator.

Validates submitted form data against a form configuration:

1. Build the dependency graph and refuse cyclic configurations.
2. Walk the graph level by level. A level only starts once every field
   of the previous level is done; fields inside one level run either
   sequentially or on a thread pool.
3. Per field: evaluate visibility / disabled / required, skip hidden or
   disabled fields, then run each rule or rule group.
"""

import logging
import time
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from formrules.core.context import ValidationContext
from formrules.core.graph import DependencyGraph, DependencyGraphBuilder, DependencyNode
from formrules.core.registry import CallbackRegistry
from formrules.core.result import ValidationMetadata, ValidationResult
from formrules.core.rule_groups import DEFAULT_RULE_MESSAGE, MemberOutcome, evaluate_group
from formrules.core.rules import RuleEngine
from formrules.core.schema import FormConfig, RuleGroup, RuleOrGroup, RuleType, ValidationRule
from formrules.core.visibility import evaluate_field_state, should_apply_rule

logger = logging.getLogger(__name__)


class ExecutionMode(str, Enum):
    SEQUENTIAL = "sequential"
    PARALLEL = "parallel"


class ValidatorConfig(BaseModel):
    """Settings for a Validator instance."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    mode: ExecutionMode = Field(
        default=ExecutionMode.SEQUENTIAL,
        description="How fields within one dependency level are executed",
    )
    max_workers: int | None = Field(
        default=None,
        ge=1,
        description="Thread pool size for parallel mode (None = executor default)",
    )
    include_graph: bool = Field(
        default=False,
        description="Attach the dependency graph export to every result",
    )
    custom_validators: dict[str, Callable[..., bool]] = Field(
        default_factory=dict,
        description="Extra named callbacks registered on the validator's registry",
    )


# Values substituted for fields missing from the submitted data.
_DEFAULTS_BY_TYPE: dict[str, Any] = {
    **dict.fromkeys(("number", "range", "rating"), 0),
    **dict.fromkeys(("boolean", "switch", "checkbox"), False),
    **dict.fromkeys(("date", "datetime", "time", "file", "image"), None),
}
_LIST_TYPES = frozenset({"array", "multiselect", "list"})
_OBJECT_TYPES = frozenset({"object", "json"})


def default_value_for_type(field_type: str) -> Any:
    """Default for a missing value of the given field type ("" for text-like types)."""
    if field_type in _LIST_TYPES:
        return []
    if field_type in _OBJECT_TYPES:
        return {}
    return _DEFAULTS_BY_TYPE.get(field_type, "")


class Validator:
    """Validates form data against form configurations.

    Args:
        config: Validator settings.
        registry: Callback registry. A fresh registry with the built-in
            validators is created when omitted; it is never shared
            implicitly between validators.
    """

    def __init__(
        self,
        config: ValidatorConfig | None = None,
        registry: CallbackRegistry | None = None,
    ):
        self.config = config or ValidatorConfig()
        self.registry = registry if registry is not None else CallbackRegistry.with_predefined()

        for name, callback in self.config.custom_validators.items():
            self.registry.register(name, callback, description=f"Custom validator: {name}")

        self.rule_engine = RuleEngine(self.registry)
        self.graph_builder = DependencyGraphBuilder()

    # -----------------------------------------------------------------
    # Public API
    # -----------------------------------------------------------------

    def dependency_graph(self, form_config: FormConfig | dict[str, Any]) -> DependencyGraph:
        """Build the dependency graph of a configuration (cycles are reported, not raised)."""
        return self.graph_builder.build(_as_form_config(form_config))

    def validate(
        self,
        data: dict[str, Any],
        form_config: FormConfig | dict[str, Any],
    ) -> ValidationResult:
        """Validate form data.

        Args:
            data: Submitted form data.
            form_config: A FormConfig or its raw dict form.

        Returns:
            The ValidationResult, keyed by field path.

        Raises:
            CircularDependencyError: If the configuration has dependency cycles.
            pydantic.ValidationError: If a raw configuration is malformed.
        """
        started = time.perf_counter()
        timestamp = datetime.now(timezone.utc)

        config = _as_form_config(form_config)
        graph = self.graph_builder.build(config)
        graph.ensure_acyclic()

        context = ValidationContext(data)
        result = ValidationResult()

        if self.config.mode == ExecutionMode.PARALLEL:
            with ThreadPoolExecutor(max_workers=self.config.max_workers) as pool:
                self._run_levels(graph, context, result, pool)
        else:
            self._run_levels(graph, context, result, None)

        result.metadata = ValidationMetadata(
            timestamp=timestamp,
            duration_ms=(time.perf_counter() - started) * 1000,
            execution_mode=self.config.mode.value,
            level_count=len(graph.levels),
        )
        if self.config.include_graph:
            result.dependency_graph = graph.to_export()

        logger.debug(
            "Validated form '%s': valid=%s, %d error(s)",
            config.form_id,
            result.valid,
            len(result.errors),
        )
        return result

    def validate_field(
        self,
        field_name: str,
        data: dict[str, Any],
        form_config: FormConfig | dict[str, Any],
    ) -> ValidationResult:
        """Validate the form and return only the given field's outcome."""
        config = _as_form_config(form_config)
        full = self.validate(data, config)

        node = self.graph_builder.build(config).nodes.get(field_name)
        path = node.path if node is not None and node.path else field_name

        result = ValidationResult()
        field_result = full.field_results.get(path)
        if field_result is not None:
            result.field_results[path] = field_result
            result.errors = list(field_result.errors)
            result.valid = field_result.valid
        return result

    # -----------------------------------------------------------------
    # Level execution
    # -----------------------------------------------------------------

    def _run_levels(
        self,
        graph: DependencyGraph,
        context: ValidationContext,
        result: ValidationResult,
        pool: ThreadPoolExecutor | None,
    ) -> None:
        for level in graph.levels:
            nodes = [
                graph.nodes[name]
                for name in level
                if graph.nodes[name].config is not None and graph.nodes[name].config.is_data
            ]
            if pool is not None and len(nodes) > 1:
                field_results = list(pool.map(lambda n: self._validate_node(n, context), nodes))
            else:
                field_results = [self._validate_node(node, context) for node in nodes]

            for field_result in field_results:
                result.merge(field_result)

    # -----------------------------------------------------------------
    # Field execution
    # -----------------------------------------------------------------

    def _validate_node(self, node: DependencyNode, context: ValidationContext) -> ValidationResult:
        """Validate one data field. Returns a result holding only that field."""
        result = ValidationResult()
        field = node.config
        path = node.path or node.id

        state = evaluate_field_state(field, context)

        if not state.visible:
            result.set_field_skipped(path, "Field is not visible")
            return result

        if state.disabled:
            result.set_field_skipped(path, "Field is disabled")
            return result

        # Read-only fields are still validated: read-only is a UI hint only.
        if not field.validation_rules:
            return result

        value = context.get_value(path)
        if value is None and not context.has_field(path):
            value = default_value_for_type(field.type)

        has_errors = False
        for entry in field.validation_rules:
            outcome = self._run_entry(entry, value, state.required, context)
            if outcome is None or not outcome.failed:
                continue

            has_errors = True
            if isinstance(entry, RuleGroup):
                result.add_error(path, outcome.message, "group", {"operator": entry.operator.value})
            else:
                result.add_error(path, outcome.message, entry.type, _rule_params(entry))

        if not has_errors:
            result.set_field_valid(path)
        return result

    def _run_entry(
        self,
        entry: RuleOrGroup,
        value: Any,
        required: bool,
        context: ValidationContext,
    ) -> MemberOutcome | None:
        """Run a rule or group. None means the entry does not apply."""
        if isinstance(entry, RuleGroup):
            outcome = evaluate_group(
                entry, lambda member: self._run_entry(member, value, required, context)
            )
            return MemberOutcome(failed=outcome.failed, message=outcome.message)

        if not should_apply_rule(entry, context):
            return None

        if entry.type == RuleType.COMPUTED.value:
            return None

        # A bare `required` rule follows the field's requiredIf; its own `when` takes precedence.
        if entry.type == RuleType.REQUIRED.value and entry.when is None and not required:
            return None

        rule_outcome = self.rule_engine.validate(value, entry, context)
        if rule_outcome.valid:
            return MemberOutcome(failed=False)
        return MemberOutcome(
            failed=True,
            message=rule_outcome.error or entry.message or DEFAULT_RULE_MESSAGE,
        )


def _as_form_config(form_config: FormConfig | dict[str, Any]) -> FormConfig:
    if isinstance(form_config, FormConfig):
        return form_config
    return FormConfig.model_validate(form_config)


def _rule_params(rule: ValidationRule) -> dict[str, Any]:
    params = {
        "min": rule.min,
        "max": rule.max,
        "pattern": rule.pattern,
        "comparisonTarget": rule.comparison_target,
        "comparisonType": rule.comparison_type,
        "targetFields": rule.target_fields,
        "crossFieldValidator": (
            rule.cross_field_validator if isinstance(rule.cross_field_validator, str) else None
        ),
    }
    return {key: value for key, value in params.items() if value is not None}
