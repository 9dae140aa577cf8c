"""
Loading form configurations from JSON or YAML files.
"""

import json
import logging
from pathlib import Path
from typing import Any

import yaml

from formrules.core.errors import FormConfigError
from formrules.core.schema import FormConfig

logger = logging.getLogger(__name__)

SUPPORTED_SUFFIXES = (".json", ".yaml", ".yml")


def read_form_document(path: Path) -> dict[str, Any]:
    """Read a configuration file into a plain dict.

    Raises:
        FormConfigError: If the file type is unsupported or the content
            is not a mapping / not parseable.
    """
    suffix = path.suffix.lower()
    if suffix not in SUPPORTED_SUFFIXES:
        raise FormConfigError(f"Unsupported form configuration file type: '{path.name}'")

    text = path.read_text(encoding="utf-8")
    try:
        document = json.loads(text) if suffix == ".json" else yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise FormConfigError(f"Could not parse '{path.name}': {e}") from e

    if not isinstance(document, dict):
        raise FormConfigError(f"'{path.name}' must contain a mapping at the top level")
    return document


def load_form_config(path: str | Path) -> FormConfig:
    """Load and validate a form configuration file.

    Args:
        path: Path to a .json, .yaml or .yml file.

    Returns:
        The parsed FormConfig.

    Raises:
        FormConfigError: If the file cannot be read as a configuration.
        pydantic.ValidationError: If the configuration is structurally invalid.
    """
    return FormConfig.model_validate(read_form_document(Path(path)))


def list_form_configs(directory: str | Path) -> list[Path]:
    """List configuration files in a directory, sorted by name."""
    directory = Path(directory)
    if not directory.exists():
        return []
    return sorted(
        path for path in directory.iterdir()
        if path.is_file() and path.suffix.lower() in SUPPORTED_SUFFIXES
    )
