"""
ComputeRouter FastAPI Service - Main Application.

HTTP control plane for provider ranking and job routing.

Usage:
    # Development
    uvicorn computerouter.api.main:app --reload --host 0.0.0.0 --port 8000

    # Or through the entry point
    python -m computerouter --serve

Endpoints:
    POST /v1/providers/rank - Rank providers for requirements
    POST /v1/providers/diagnose - Provider selection diagnostics
    POST /v1/jobs/route - Route a job
    GET /v1/jobs/{job_id} - Job state and route log
    GET /v1/health - Health check
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from computerouter import __version__
from computerouter.api.routes import app_state, router
from computerouter.catalog import build_catalog
from computerouter.core.orchestrator import RoutingOrchestrator
from computerouter.scheduler.scheduler import ProviderScheduler
from computerouter.shared import settings
from computerouter.shared.logging import setup_logging

setup_logging()

logger = logging.getLogger("computerouter.api")


# ============================================================================
# Lifespan Management
# ============================================================================


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Builds the catalog, scheduler and orchestrator from settings.
    """
    # ---- Startup ----
    logger.info("ComputeRouter API starting...")

    try:
        app_state.catalog = build_catalog()
        logger.info(f"Catalog initialized: {app_state.catalog.name}")
    except Exception as e:
        logger.error(f"Failed to initialize catalog: {e}")

    if app_state.catalog is not None:
        app_state.scheduler = ProviderScheduler(catalog=app_state.catalog)
        app_state.orchestrator = RoutingOrchestrator(catalog=app_state.catalog)
        logger.info("Scheduler and orchestrator initialized")

    logger.info(
        f"ComputeRouter API v{__version__} online "
        f"(catalog={settings.CATALOG_BACKEND}, docs at /docs)"
    )

    yield

    # ---- Shutdown ----
    logger.info("ComputeRouter API shutting down...")
    if app_state.orchestrator is not None:
        active = app_state.orchestrator.active_job_count()
        if active:
            logger.warning(f"Shutting down with {active} active job(s)")

    app_state.orchestrator = None
    app_state.scheduler = None
    app_state.catalog = None
    logger.info("Shutdown complete")


# ============================================================================
# FastAPI Application
# ============================================================================


app = FastAPI(
    title="ComputeRouter API",
    description=(
        "Provider matching and deployment routing for decentralized compute "
        "marketplaces."
    ),
    version=__version__,
    lifespan=lifespan,
)

# Add CORS middleware (for browser-based clients)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(router)


@app.get("/")
async def root() -> dict:
    """Root endpoint with API information."""
    return {
        "name": "ComputeRouter API",
        "version": __version__,
        "docs": "/docs",
        "health": "/v1/health",
    }
