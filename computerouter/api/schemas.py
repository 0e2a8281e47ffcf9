"""
ComputeRouter API Schemas - Pydantic models for FastAPI endpoints.

Defines request/response models for:
- POST /v1/providers/rank - Rank providers for requirements
- POST /v1/providers/diagnose - Provider selection diagnostics
- POST /v1/jobs/route - Route a job through bid collection
- /v1/jobs/{job_id} - Job inspection, cancel and close
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from computerouter.ledger.models import JobRequirements, Provider
from computerouter.scheduler.scoring import ScoringWeights


# ============================================================================
# Shared Request Models
# ============================================================================


class GpuRequest(BaseModel):
    """Requested GPU model fragment and unit count."""

    model: str = Field(..., min_length=1, description="GPU model fragment, e.g. 'A100'")
    units: int = Field(1, ge=1, description="Number of GPU units")


class RequirementsModel(BaseModel):
    """Hardware and budget requirements for a job."""

    cpu: float = Field(0, ge=0, description="vCPUs")
    memory: float | str = Field(0, description="Memory in GB or a size string like '16Gi'")
    storage: float | str = Field(0, description="Storage in GB or a size string like '100Gi'")
    gpu: GpuRequest | None = Field(None, description="GPU requirement")
    region: str | None = Field(None, description="Required region")
    max_price_per_hour: float | None = Field(None, ge=0, description="Price ceiling (USD/hour)")
    min_availability: float | None = Field(None, ge=0, le=1, description="Availability floor")
    name: str | None = Field(None, description="Deployment name")
    image: str | None = Field(None, description="Container image")
    command: list[str] = Field(default_factory=list, description="Container command")
    port: int | None = Field(None, description="Exposed container port")
    expose: bool = Field(False, description="Expose the port publicly")

    def to_requirements(self) -> JobRequirements:
        return JobRequirements.from_dict(self.model_dump())


class WeightsModel(BaseModel):
    """Optional scoring weight overrides."""

    price: float | None = Field(None, ge=0)
    reliability: float | None = Field(None, ge=0)
    performance: float | None = Field(None, ge=0)
    latency: float | None = Field(None, ge=0)

    def to_weights(self) -> ScoringWeights:
        return ScoringWeights.from_dict(self.model_dump(exclude_none=True))


# ============================================================================
# POST /v1/providers/rank, /v1/providers/diagnose
# ============================================================================


class RankRequest(BaseModel):
    """Rank providers; candidates are fetched from the catalog when omitted."""

    requirements: RequirementsModel
    weights: WeightsModel | None = None
    candidates: list[dict[str, Any]] | None = Field(
        None, description="Explicit provider records to rank instead of the catalog"
    )

    def to_candidates(self) -> list[Provider] | None:
        if self.candidates is None:
            return None
        return [Provider.from_dict(record) for record in self.candidates]


class RankedEntry(BaseModel):
    provider: dict[str, Any]
    score: dict[str, Any]
    reason: str


class RankResponse(BaseModel):
    """Ranked providers, best first."""

    count: int = 0
    weights: dict[str, float] = Field(default_factory=dict)
    ranked: list[RankedEntry] = Field(default_factory=list)


class DiagnoseResponse(BaseModel):
    """Provider selection diagnostics."""

    selected_provider: str | None = None
    total_candidates: int = 0
    matching_candidates: int = 0
    rejection_summary: dict[str, int] = Field(default_factory=dict)
    rejections: list[dict[str, Any]] = Field(default_factory=list)
    scores: list[dict[str, Any]] = Field(default_factory=list)
    recommendations: list[dict[str, Any]] = Field(default_factory=list)


# ============================================================================
# Jobs
# ============================================================================


class RouteJobRequest(BaseModel):
    """Route a job to a provider."""

    job_id: str | None = Field(None, description="Job ID (generated when omitted)")
    requirements: RequirementsModel
    auto_accept: bool = Field(False, description="Accept the best bid automatically")
    bid_timeout: float | None = Field(None, ge=0, description="Bid window in seconds")


class RouteResultResponse(BaseModel):
    """Terminal routing outcome with its audit trail."""

    job_id: str
    final_state: str
    reason: str | None = None
    error: dict[str, Any] | None = None
    lease: dict[str, Any] | None = None
    accepted_bid: dict[str, Any] | None = None
    job_handle: str | None = None
    bids: list[dict[str, Any]] = Field(default_factory=list)
    ranked: list[dict[str, Any]] = Field(default_factory=list)
    logs: list[dict[str, Any]] = Field(default_factory=list)


class JobStateResponse(RouteResultResponse):
    """Current state of a tracked job."""

    requirements: dict[str, Any] = Field(default_factory=dict)
    auto_accept: bool = False
    bid_timeout: float = 0
    in_flight: bool = False
    started_at: str | None = None
    finished_at: str | None = None


class ActiveCountResponse(BaseModel):
    active_jobs: int = 0


# ============================================================================
# GET /v1/health
# ============================================================================


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field("ok", description="Service status")
    version: str = Field("1.0.0", description="API version")
    components: dict[str, str] = Field(
        default_factory=dict, description="Component status"
    )
    catalog: dict[str, Any] = Field(default_factory=dict, description="Catalog health")
