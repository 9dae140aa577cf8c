"""
Dotted field paths for nested form configurations.

A container (group, tabbed, tab, form, grid, tree) normally contributes
its name to the paths of its descendants. With `excludeFromPath: true`
it does not, and its children inherit the parent path unchanged.

The dependency graph and the validator both resolve paths through this
module so that graph node paths and per-field result keys agree.
"""

from formrules.core.schema import FieldConfig


def build_path(field: FieldConfig, parent_path: str = "") -> str:
    """Build the full dotted path of a field.

    Args:
        field: The field descriptor.
        parent_path: Path of the enclosing container ("" at the root).

    Returns:
        The field's path. Unnamed fields and path-excluded containers
        return the parent path unchanged.
    """
    name = field.field_name
    if not name or _excluded_from_path(field):
        return parent_path
    return f"{parent_path}.{name}" if parent_path else name


def next_parent_path(field: FieldConfig, current_path: str) -> str:
    """Path handed down to a container's children."""
    return build_path(field, current_path)


def build_field_path_map(items: list[FieldConfig], parent_path: str = "") -> dict[str, str]:
    """Map every named field in a tree to its full path.

    Args:
        items: Top-level field descriptors.
        parent_path: Path prefix for the given items.

    Returns:
        {field name: full path}, containers included.
    """
    path_map: dict[str, str] = {}
    _collect_paths(items, parent_path, path_map)
    return path_map


def _collect_paths(items: list[FieldConfig], parent_path: str, path_map: dict[str, str]) -> None:
    for item in items:
        name = item.field_name
        if name:
            path_map[name] = build_path(item, parent_path)
        if item.items:
            _collect_paths(item.items, next_parent_path(item, parent_path), path_map)


def _excluded_from_path(field: FieldConfig) -> bool:
    # Only containers can opt out of the path.
    return field.is_container and field.exclude_from_path
