"""
Read-only view over submitted form data.

Conditions and rules look values up by dotted path through this context.
The context never writes back into the data it wraps.
"""

from typing import Any


class ValidationContext:
    """Form data plus the parameters of the rule currently being executed.

    Args:
        data: Submitted form data (arbitrarily nested mapping).
        params: Parameters for parameterized cross-field validators.
    """

    def __init__(self, data: dict[str, Any] | None = None, params: dict[str, Any] | None = None):
        self.data: dict[str, Any] = data if data is not None else {}
        self.params: dict[str, Any] | None = params

    def get_value(self, field_path: str) -> Any:
        """Resolve a dotted path against the form data.

        Returns None when any segment is missing or the traversal hits
        something that is not a mapping.
        """
        value: Any = self.data
        for part in field_path.split("."):
            if not isinstance(value, dict):
                return None
            value = value.get(part)
        return value

    def has_field(self, field_path: str) -> bool:
        """Check whether every segment of a dotted path is present."""
        value: Any = self.data
        for part in field_path.split("."):
            if not isinstance(value, dict) or part not in value:
                return False
            value = value[part]
        return True

    def with_params(self, params: dict[str, Any] | None) -> "ValidationContext":
        """Return a sibling context sharing the same data with new params."""
        return ValidationContext(self.data, params=params)
