"""
Accredit -- Application Entry Point

FastAPI application wiring the acceptance engine and the record stores.

uvicorn accredit.main:app
"""

from __future__ import annotations

import os
from contextlib import asynccontextmanager
from typing import Any

import structlog
from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# Load .env file before any configuration is loaded
load_dotenv()

from accredit import __version__
from accredit.api.routers.acceptance import register_error_handlers
from accredit.api.routers.acceptance import router as acceptance_router
from accredit.config import load_config
from accredit.systems.acceptance.service import AcceptanceService
from accredit.systems.registry.credentials import CredentialRegistry
from accredit.systems.registry.institutions import InstitutionRegistry
from accredit.telemetry.logging import setup_logging

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown sequence."""
    # ── 1. Load configuration ─────────────────────────────────
    config_path = os.environ.get("ACCREDIT_CONFIG_PATH", "config/default.yaml")
    config = load_config(config_path)
    app.state.config = config

    # ── 2. Set up logging ─────────────────────────────────────
    setup_logging(config.logging, instance_id=config.instance_id)
    logger.info(
        "accredit_starting",
        instance_id=config.instance_id,
        config_path=config_path,
        chairman=config.governance.chairman,
    )

    # ── 3. Acceptance engine ──────────────────────────────────
    acceptance = AcceptanceService(config=config.governance)
    app.state.acceptance = acceptance

    # ── 4. Record stores ──────────────────────────────────────
    institutions = InstitutionRegistry(resolver=acceptance.resolver)
    app.state.institutions = institutions
    app.state.credentials = CredentialRegistry(
        institutions=institutions,
        resolver=acceptance.resolver,
        min_payment=config.registry.credential_min_payment,
    )

    logger.info("accredit_ready", **acceptance.stats["committee"])
    yield

    logger.info("accredit_stopping", operations=acceptance.stats["operations"])


app = FastAPI(
    title="Accredit",
    description="Institution accreditation registry -- API surface",
    version=__version__,
    lifespan=lifespan,
)

_cors_origins = ["http://localhost:3000"]
_extra_origins = os.environ.get("CORS_ALLOWED_ORIGINS", "")
if _extra_origins:
    _cors_origins.extend(o.strip() for o in _extra_origins.split(",") if o.strip())

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_error_handlers(app)
app.include_router(acceptance_router)


@app.get("/health")
async def health() -> dict[str, Any]:
    acceptance: AcceptanceService | None = getattr(app.state, "acceptance", None)
    if acceptance is None:
        return {"status": "starting"}
    return {"status": "healthy", "acceptance": acceptance.stats}
