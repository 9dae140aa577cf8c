"""
FastAPI application factory for FormRules.

Creates and configures the FastAPI app, the shared Validator and routes.

Run with:
    uvicorn formrules.api.app:app --reload
"""

import logging
import os

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from formrules.api.routes import configure_routes, router
from formrules.core.validator import ExecutionMode, Validator, ValidatorConfig

# Load environment variables from .env
load_dotenv()

# Logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


def _is_truthy(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def load_validator_config() -> ValidatorConfig:
    """Build the ValidatorConfig from FORMRULES_* environment variables."""
    max_workers = os.getenv("FORMRULES_MAX_WORKERS")
    return ValidatorConfig(
        mode=ExecutionMode(os.getenv("FORMRULES_EXECUTION_MODE", ExecutionMode.SEQUENTIAL.value)),
        max_workers=int(max_workers) if max_workers else None,
        include_graph=_is_truthy(os.getenv("FORMRULES_INCLUDE_GRAPH"), default=False),
    )


def create_app(validator: Validator | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""

    application = FastAPI(
        title="FormRules",
        description="Conditional form validation engine",
        version="0.1.0",
    )

    allowed_origins = os.getenv("CORS_ALLOWED_ORIGINS", "*").split(",")
    application.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    if validator is None:
        validator = Validator(load_validator_config())
    logger.info("Validator configured: mode=%s", validator.config.mode.value)

    configure_routes(validator)
    application.include_router(router, prefix="/api")

    return application


# Create the app instance (used by uvicorn)
app = create_app()
