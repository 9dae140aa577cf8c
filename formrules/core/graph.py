"""
Static dependency analysis of a form configuration.

Walks the field tree, collects which fields each field's conditions and
rules read, and produces:

- one node per referenced field name (placeholders for names that are
  referenced but never defined),
- a leveled execution order where every node only depends on nodes in
  strictly lower levels,
- the list of dependency cycles, if any.

Nodes are keyed by field *name*, because conditions and rules reference
names rather than paths; the resolved path is kept as metadata. The
builder mutates drafts while walking and returns a frozen graph, which
is safe to share between concurrent validation runs.
"""

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from formrules.core.errors import CircularDependencyError
from formrules.core.expressions import extract_fields
from formrules.core.paths import build_path, next_parent_path
from formrules.core.schema import FieldConfig, FormConfig, RuleGroup, RuleOrGroup

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DependencyNode:
    """A field in the dependency graph.

    `level` is None for nodes that could not be leveled because they sit
    on (or behind) a dependency cycle. `config` is None for placeholder
    nodes created for referenced-but-undefined fields.
    """

    id: str
    path: str | None = None
    dependencies: tuple[str, ...] = ()
    dependents: tuple[str, ...] = ()
    level: int | None = 0
    rules: tuple[RuleOrGroup, ...] = ()
    config: FieldConfig | None = None

    @property
    def field(self) -> str:
        return self.id

    @property
    def is_placeholder(self) -> bool:
        return self.config is None


@dataclass(frozen=True)
class DependencyGraph:
    """Read-only dependency graph returned by DependencyGraphBuilder.build()."""

    nodes: Mapping[str, DependencyNode]
    levels: tuple[tuple[str, ...], ...]
    has_circular: bool = False
    circular_paths: tuple[tuple[str, ...], ...] = ()

    def ensure_acyclic(self) -> None:
        """Raise CircularDependencyError if the graph has cycles."""
        if self.has_circular:
            raise CircularDependencyError([list(path) for path in self.circular_paths])

    def to_export(self) -> dict[str, Any]:
        """Plain-data view of the graph for visualization and APIs.

        Edges point from a dependency to the field that depends on it,
        i.e. in execution order.
        """
        return {
            "nodes": [
                {
                    "id": node.id,
                    "field": node.field,
                    "path": node.path,
                    "level": node.level,
                    "rule_count": len(node.rules),
                    "placeholder": node.is_placeholder,
                }
                for node in self.nodes.values()
            ],
            "edges": [
                {"from": dependency, "to": node.id}
                for node in self.nodes.values()
                for dependency in node.dependencies
            ],
            "levels": [list(level) for level in self.levels],
            "has_circular": self.has_circular,
            "circular_paths": [list(path) for path in self.circular_paths],
        }


@dataclass
class _NodeDraft:
    id: str
    path: str | None = None
    dependencies: list[str] = field(default_factory=list)
    dependents: list[str] = field(default_factory=list)
    rules: list[RuleOrGroup] = field(default_factory=list)
    config: FieldConfig | None = None

    def add_dependency(self, name: str, allow_self: bool = True) -> None:
        if name == self.id and not allow_self:
            return
        if name not in self.dependencies:
            self.dependencies.append(name)


class DependencyGraphBuilder:
    """Builds a DependencyGraph from a FormConfig."""

    def build(self, form_config: FormConfig) -> DependencyGraph:
        """Analyze a form configuration.

        Args:
            form_config: The parsed form configuration.

        Returns:
            A frozen DependencyGraph.
        """
        drafts: dict[str, _NodeDraft] = {}

        self._extract_fields(form_config.items, drafts, "")
        self._link_dependents(drafts)
        levels, node_levels = self._calculate_levels(drafts)
        circular_paths = self._detect_cycles(drafts)

        if circular_paths:
            logger.warning(
                "Form '%s' has circular field dependencies: %s",
                form_config.form_id,
                ["->".join(path) for path in circular_paths],
            )

        nodes = {
            node_id: DependencyNode(
                id=draft.id,
                path=draft.path,
                dependencies=tuple(draft.dependencies),
                dependents=tuple(draft.dependents),
                level=node_levels.get(node_id),
                rules=tuple(draft.rules),
                config=draft.config,
            )
            for node_id, draft in drafts.items()
        }

        return DependencyGraph(
            nodes=MappingProxyType(nodes),
            levels=tuple(tuple(level) for level in levels),
            has_circular=bool(circular_paths),
            circular_paths=tuple(tuple(path) for path in circular_paths),
        )

    # -----------------------------------------------------------------
    # Extraction
    # -----------------------------------------------------------------

    def _extract_fields(
        self,
        items: list[FieldConfig],
        drafts: dict[str, _NodeDraft],
        parent_path: str,
    ) -> None:
        for item in items:
            name = item.field_name
            if name:
                draft = drafts.get(name)
                if draft is None:
                    draft = _NodeDraft(
                        id=name,
                        path=build_path(item, parent_path),
                        rules=list(item.validation_rules),
                        config=item,
                    )
                    drafts[name] = draft

                for expression in item.conditions().values():
                    for referenced in extract_fields(expression):
                        draft.add_dependency(referenced)

                for entry in item.validation_rules:
                    self._extract_rule_dependencies(entry, draft)

            if item.items:
                self._extract_fields(item.items, drafts, next_parent_path(item, parent_path))

    def _extract_rule_dependencies(self, entry: RuleOrGroup, draft: _NodeDraft) -> None:
        if isinstance(entry, RuleGroup):
            for member in entry.rules:
                self._extract_rule_dependencies(member, draft)
            return

        for referenced in entry.referenced_fields():
            draft.add_dependency(referenced)
        # A rule gated on its own field's value reads the value it validates.
        if entry.when is not None:
            for referenced in extract_fields(entry.when):
                draft.add_dependency(referenced, allow_self=False)

    def _link_dependents(self, drafts: dict[str, _NodeDraft]) -> None:
        """Record reverse edges, creating placeholders for undefined targets."""
        for draft in list(drafts.values()):
            for dependency in draft.dependencies:
                target = drafts.get(dependency)
                if target is None:
                    target = _NodeDraft(id=dependency)
                    drafts[dependency] = target
                if draft.id not in target.dependents:
                    target.dependents.append(draft.id)

    # -----------------------------------------------------------------
    # Leveling
    # -----------------------------------------------------------------

    def _calculate_levels(
        self, drafts: dict[str, _NodeDraft]
    ) -> tuple[list[list[str]], dict[str, int]]:
        """Group nodes into levels by repeatedly taking nodes with no open dependencies.

        Nodes left over when no further level can be formed are part of,
        or depend on, a cycle and get no level.
        """
        in_degree = {node_id: len(draft.dependencies) for node_id, draft in drafts.items()}
        visited: set[str] = set()
        levels: list[list[str]] = []
        node_levels: dict[str, int] = {}

        while len(visited) < len(drafts):
            current = [
                node_id
                for node_id, degree in in_degree.items()
                if node_id not in visited and degree == 0
            ]
            if not current:
                break

            level_index = len(levels)
            levels.append(current)
            for node_id in current:
                visited.add(node_id)
                node_levels[node_id] = level_index
                for dependent in drafts[node_id].dependents:
                    in_degree[dependent] -= 1

        return levels, node_levels

    # -----------------------------------------------------------------
    # Cycle detection
    # -----------------------------------------------------------------

    def _detect_cycles(self, drafts: dict[str, _NodeDraft]) -> list[list[str]]:
        """Depth-first search for back edges along dependency edges.

        Each back edge yields one cycle: the stack slice from the target
        to the current node, closed by repeating the target.
        """
        visited: set[str] = set()
        stack: list[str] = []
        on_stack: set[str] = set()
        cycles: list[list[str]] = []

        def visit(node_id: str) -> None:
            visited.add(node_id)
            stack.append(node_id)
            on_stack.add(node_id)

            for dependency in drafts[node_id].dependencies:
                if dependency not in visited:
                    visit(dependency)
                elif dependency in on_stack:
                    start = stack.index(dependency)
                    cycles.append(stack[start:] + [dependency])

            stack.pop()
            on_stack.discard(node_id)

        for node_id in drafts:
            if node_id not in visited:
                visit(node_id)

        return cycles
