"""
ComputeRouter API Routes - provider ranking and job routing endpoint handlers.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from fastapi import APIRouter, Depends, HTTPException

from computerouter import __version__
from computerouter.api import schemas
from computerouter.catalog.base import BaseCatalog
from computerouter.core.orchestrator import RoutingOrchestrator
from computerouter.scheduler.scheduler import ProviderScheduler
from computerouter.scheduler.scoring import explain_score
from computerouter.shared.errors import (
    CatalogUnavailableError,
    InvalidTransitionError,
    JobAlreadyRoutingError,
    JobNotFoundError,
    ModelError,
)
from computerouter.shared.utils import generate_job_id

logger = logging.getLogger("computerouter.api")

router = APIRouter(prefix="/v1", tags=["computerouter"])


@dataclass
class AppState:
    """Application state container."""

    catalog: BaseCatalog | None = None
    scheduler: ProviderScheduler | None = None
    orchestrator: RoutingOrchestrator | None = None


app_state = AppState()


def get_catalog() -> BaseCatalog:
    """Dependency: Get the marketplace catalog."""
    if app_state.catalog is None:
        raise HTTPException(status_code=503, detail="Catalog not initialized")
    return app_state.catalog


def get_scheduler() -> ProviderScheduler:
    """Dependency: Get the provider scheduler."""
    if app_state.scheduler is None:
        raise HTTPException(status_code=503, detail="Scheduler not initialized")
    return app_state.scheduler


def get_orchestrator() -> RoutingOrchestrator:
    """Dependency: Get the routing orchestrator."""
    if app_state.orchestrator is None:
        raise HTTPException(status_code=503, detail="Orchestrator not initialized")
    return app_state.orchestrator


# ============================================================================
# Providers
# ============================================================================


@router.post("/providers/rank", response_model=schemas.RankResponse)
async def rank_providers(
    request: schemas.RankRequest,
    scheduler: ProviderScheduler = Depends(get_scheduler),
) -> schemas.RankResponse:
    """Filter and rank providers for the given requirements."""
    try:
        requirements = request.requirements.to_requirements()
        weights = request.weights.to_weights() if request.weights else scheduler.weights
        ranked = await scheduler.rank(
            requirements, candidates=request.to_candidates(), weights=weights
        )
    except ModelError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except CatalogUnavailableError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc

    return schemas.RankResponse(
        count=len(ranked),
        weights=weights.to_dict(),
        ranked=[
            schemas.RankedEntry(
                provider=entry.provider.to_dict(),
                score=entry.score.to_dict(),
                reason=explain_score(entry.score),
            )
            for entry in ranked
        ],
    )


@router.post("/providers/diagnose", response_model=schemas.DiagnoseResponse)
async def diagnose_providers(
    request: schemas.RankRequest,
    scheduler: ProviderScheduler = Depends(get_scheduler),
) -> schemas.DiagnoseResponse:
    """Explain which providers were rejected and how the rest scored."""
    try:
        diagnostics = await scheduler.diagnose_selection(
            request.requirements.to_requirements(),
            candidates=request.to_candidates(),
            weights=request.weights.to_weights() if request.weights else None,
        )
    except ModelError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except CatalogUnavailableError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc

    return schemas.DiagnoseResponse(**diagnostics)


# ============================================================================
# Jobs
# ============================================================================


@router.post("/jobs/route", response_model=schemas.RouteResultResponse)
async def route_job(
    request: schemas.RouteJobRequest,
    orchestrator: RoutingOrchestrator = Depends(get_orchestrator),
) -> schemas.RouteResultResponse:
    """
    Route a job: filter, rank, collect bids and optionally accept one.

    Routing failures are reported in the response body, not as HTTP errors.
    """
    try:
        requirements = request.requirements.to_requirements()
    except ModelError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    job_id = request.job_id or generate_job_id()
    try:
        result = await orchestrator.route_job(
            job_id,
            requirements,
            auto_accept=request.auto_accept,
            bid_timeout=request.bid_timeout,
        )
    except JobAlreadyRoutingError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc

    return schemas.RouteResultResponse(**result.to_dict())


@router.get("/jobs/active-count", response_model=schemas.ActiveCountResponse)
async def active_job_count(
    orchestrator: RoutingOrchestrator = Depends(get_orchestrator),
) -> schemas.ActiveCountResponse:
    """Jobs still routing or holding an active lease."""
    return schemas.ActiveCountResponse(active_jobs=orchestrator.active_job_count())


@router.get("/jobs/{job_id}", response_model=schemas.JobStateResponse)
async def get_job(
    job_id: str,
    orchestrator: RoutingOrchestrator = Depends(get_orchestrator),
) -> schemas.JobStateResponse:
    try:
        run = orchestrator.get_run(job_id)
    except JobNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return schemas.JobStateResponse(**run.to_dict())


@router.post("/jobs/{job_id}/cancel", response_model=schemas.JobStateResponse)
async def cancel_job(
    job_id: str,
    orchestrator: RoutingOrchestrator = Depends(get_orchestrator),
) -> schemas.JobStateResponse:
    """Cancel an in-flight job, or one awaiting manual acceptance."""
    try:
        run = await orchestrator.cancel(job_id)
    except JobNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except InvalidTransitionError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return schemas.JobStateResponse(**run.to_dict())


@router.post("/jobs/{job_id}/close", response_model=schemas.JobStateResponse)
async def close_job(
    job_id: str,
    orchestrator: RoutingOrchestrator = Depends(get_orchestrator),
) -> schemas.JobStateResponse:
    """Close the deployment of an Active job."""
    try:
        run = await orchestrator.close(job_id)
    except JobNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except InvalidTransitionError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except CatalogUnavailableError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    return schemas.JobStateResponse(**run.to_dict())


# ============================================================================
# Health
# ============================================================================


@router.get("/health", response_model=schemas.HealthResponse)
async def health_check() -> schemas.HealthResponse:
    """Service health check."""
    components = {
        "catalog": "ok" if app_state.catalog else "not_initialized",
        "scheduler": "ok" if app_state.scheduler else "not_initialized",
        "orchestrator": "ok" if app_state.orchestrator else "not_initialized",
    }

    catalog_health: dict = {}
    if app_state.catalog is not None:
        catalog_health = await app_state.catalog.health_check()
        if catalog_health.get("status") not in ("healthy", "unknown"):
            components["catalog"] = "degraded"

    status = "ok" if all(v == "ok" for v in components.values()) else "degraded"
    return schemas.HealthResponse(
        status=status,
        version=__version__,
        components=components,
        catalog=catalog_health,
    )
