"""
Exceptions raised by the FormRules engine.

Configuration problems are attributable to whoever authored the form
configuration, never to the submitted form data. Data problems are
reported through ValidationResult, not raised.
"""


class FormConfigError(Exception):
    """Raised when a form configuration cannot be executed safely."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class CircularDependencyError(FormConfigError):
    """Raised when field conditions or rules reference each other in a cycle."""

    def __init__(self, circular_paths: list[list[str]]):
        self.circular_paths = circular_paths
        rendered = "; ".join(" -> ".join(path) for path in circular_paths)
        super().__init__(f"Circular field dependencies detected: {rendered}")
