"""
FastAPI routes for the FormRules backend.

Endpoints:
- POST /validate            : validate form data against a form configuration
- POST /graph               : dependency graph of a form configuration
- GET  /validators          : list registered validation callbacks
- GET  /schemas             : list example form configurations
- GET  /schemas/{filename}  : get an example form configuration
- GET  /health              : health check
"""

import logging
from pathlib import Path
from typing import Any

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from formrules.core.errors import CircularDependencyError, FormConfigError
from formrules.core.loader import list_form_configs, read_form_document
from formrules.core.schema import FormConfig
from formrules.core.validator import Validator

logger = logging.getLogger(__name__)

router = APIRouter()

# Injected by the app factory
_validator: Validator | None = None

SCHEMAS_DIR = Path(__file__).parent.parent / "schemas"


def configure_routes(validator: Validator) -> None:
    """Inject the shared Validator into the routes module.

    Called by the app factory during startup.
    """
    global _validator
    _validator = validator


# --- Request / Response Models ---


class ValidateRequest(BaseModel):
    """Request body for the /validate endpoint."""

    form_config: dict[str, Any]
    data: dict[str, Any]


class GraphRequest(BaseModel):
    """Request body for the /graph endpoint."""

    form_config: dict[str, Any]


# --- Helpers ---


def _require_validator() -> Validator:
    if _validator is None:
        raise HTTPException(status_code=500, detail="Server not properly configured")
    return _validator


def _parse_form_config(raw: dict[str, Any]) -> FormConfig:
    try:
        return FormConfig.model_validate(raw)
    except PydanticValidationError as e:
        raise HTTPException(
            status_code=422,
            detail={
                "message": "Invalid form configuration",
                "errors": e.errors(include_url=False, include_context=False),
            },
        )


# --- Endpoints ---


@router.post("/validate")
def validate(request: ValidateRequest):
    """Validate submitted form data.

    Configuration errors (including circular field dependencies) are
    reported as 422 so they reach whoever authored the form.

    Runs in FastAPI's threadpool, off the event loop.
    """
    validator = _require_validator()
    form_config = _parse_form_config(request.form_config)

    try:
        result = validator.validate(request.data, form_config)
    except CircularDependencyError as e:
        raise HTTPException(
            status_code=422,
            detail={"message": e.message, "circular_paths": e.circular_paths},
        )
    except FormConfigError as e:
        raise HTTPException(status_code=422, detail={"message": e.message})
    except Exception as e:
        logger.error("Error validating form '%s': %s", form_config.form_id, e, exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error validating form: {str(e)}")

    return result.model_dump(mode="json")


@router.post("/graph")
def dependency_graph(request: GraphRequest):
    """Return the dependency graph (levels and cycles) of a configuration."""
    validator = _require_validator()
    form_config = _parse_form_config(request.form_config)
    return validator.dependency_graph(form_config).to_export()


@router.get("/validators")
async def list_validators():
    """List the callbacks available to custom and crossField rules."""
    validator = _require_validator()
    return {"validators": validator.registry.list_all()}


@router.get("/schemas")
async def list_schemas():
    """List available example form configurations."""
    schemas = []
    for path in list_form_configs(SCHEMAS_DIR):
        try:
            document = read_form_document(path)
        except (OSError, FormConfigError):
            logger.warning("Skipping unreadable schema file %s", path.name)
            continue
        schemas.append({
            "filename": path.name,
            "form_id": document.get("formId", path.stem),
            "field_count": len(document.get("items") or []),
        })
    return {"schemas": schemas}


@router.get("/schemas/{filename}")
async def get_schema(filename: str):
    """Get a specific example form configuration by filename."""
    path = SCHEMAS_DIR / filename
    if path.parent != SCHEMAS_DIR or not path.is_file():
        raise HTTPException(status_code=404, detail=f"Schema '{filename}' not found")

    try:
        return {"filename": filename, "content": read_form_document(path)}
    except (OSError, FormConfigError):
        raise HTTPException(status_code=500, detail=f"Error reading schema file '{filename}'")


@router.get("/health")
async def health_check():
    """Health check endpoint."""
    registered = len(_validator.registry.list_all()) if _validator else 0
    return {
        "status": "healthy",
        "registered_validators": registered,
    }
