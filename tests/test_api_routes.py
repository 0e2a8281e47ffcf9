"""Provider ranking and job routing API tests."""

from __future__ import annotations

from pathlib import Path
import sys

import pytest
from fastapi import HTTPException

sys.path.insert(0, str(Path(__file__).parent.parent))

from computerouter.api import schemas
from computerouter.api.routes import (
    active_job_count,
    app_state,
    cancel_job,
    close_job,
    diagnose_providers,
    get_job,
    get_orchestrator,
    get_scheduler,
    health_check,
    rank_providers,
    route_job,
)
from computerouter.catalog.mock import MOCK_PROVIDERS, MockCatalog
from computerouter.core.orchestrator import RoutingOrchestrator
from computerouter.ledger.models import Bid
from computerouter.scheduler.scheduler import ProviderScheduler


@pytest.fixture
def wired_state():
    catalog = MockCatalog(bids=[Bid(id="bid-1", provider_id="prov-2", price=1.8)])
    app_state.catalog = catalog
    app_state.scheduler = ProviderScheduler(catalog=catalog)
    app_state.orchestrator = RoutingOrchestrator(
        catalog=catalog, poll_interval=0.01, default_bid_timeout=0.2
    )
    yield app_state
    app_state.catalog = None
    app_state.scheduler = None
    app_state.orchestrator = None


def test_dependencies_uninitialized() -> None:
    app_state.scheduler = None
    app_state.orchestrator = None
    for getter in (get_scheduler, get_orchestrator):
        with pytest.raises(HTTPException) as exc_info:
            getter()
        assert exc_info.value.status_code == 503


@pytest.mark.asyncio
async def test_rank_providers_orders_by_score(wired_state) -> None:
    request = schemas.RankRequest(
        requirements=schemas.RequirementsModel(gpu=schemas.GpuRequest(model="A100"))
    )
    response = await rank_providers(request=request, scheduler=wired_state.scheduler)

    assert response.count == 3
    ids = [entry.provider["id"] for entry in response.ranked]
    assert set(ids) == {"prov-1", "prov-2", "prov-4"}
    totals = [entry.score["total_score"] for entry in response.ranked]
    assert totals == sorted(totals, reverse=True)
    assert response.ranked[0].reason


@pytest.mark.asyncio
async def test_rank_providers_with_explicit_candidates_and_weights(wired_state) -> None:
    request = schemas.RankRequest(
        requirements=schemas.RequirementsModel(),
        weights=schemas.WeightsModel(price=1, reliability=0, performance=0, latency=0),
        candidates=[p.to_dict() for p in MOCK_PROVIDERS[:3]],
    )
    response = await rank_providers(request=request, scheduler=wired_state.scheduler)

    assert response.count == 3
    assert response.weights["price"] == 1
    assert "list_providers" not in wired_state.catalog.call_names()


@pytest.mark.asyncio
async def test_rank_providers_bad_memory_string_is_400(wired_state) -> None:
    request = schemas.RankRequest(requirements=schemas.RequirementsModel(memory="lots"))
    with pytest.raises(HTTPException) as exc_info:
        await rank_providers(request=request, scheduler=wired_state.scheduler)
    assert exc_info.value.status_code == 400


@pytest.mark.asyncio
async def test_rank_providers_catalog_down_is_502(wired_state) -> None:
    wired_state.catalog.fail_operations = {"list_providers"}
    request = schemas.RankRequest(requirements=schemas.RequirementsModel())
    with pytest.raises(HTTPException) as exc_info:
        await rank_providers(request=request, scheduler=wired_state.scheduler)
    assert exc_info.value.status_code == 502


@pytest.mark.asyncio
async def test_diagnose_providers(wired_state) -> None:
    request = schemas.RankRequest(
        requirements=schemas.RequirementsModel(region="us-east")
    )
    response = await diagnose_providers(request=request, scheduler=wired_state.scheduler)

    assert response.total_candidates == 5
    assert response.matching_candidates >= 1
    assert response.rejection_summary.get("region", 0) == 5 - response.matching_candidates


@pytest.mark.asyncio
async def test_route_then_inspect_and_close(wired_state) -> None:
    orchestrator = wired_state.orchestrator
    request = schemas.RouteJobRequest(
        job_id="job-api",
        requirements=schemas.RequirementsModel(),
        auto_accept=True,
    )
    response = await route_job(request=request, orchestrator=orchestrator)

    assert response.final_state == "Active"
    assert response.lease["provider_id"] == "prov-2"
    assert [entry["phase"] for entry in response.logs][-1] == "Active"

    count = await active_job_count(orchestrator=orchestrator)
    assert count.active_jobs == 1

    state = await get_job(job_id="job-api", orchestrator=orchestrator)
    assert state.in_flight is False
    assert state.auto_accept is True

    with pytest.raises(HTTPException) as exc_info:
        await cancel_job(job_id="job-api", orchestrator=orchestrator)
    assert exc_info.value.status_code == 409

    closed = await close_job(job_id="job-api", orchestrator=orchestrator)
    assert closed.final_state == "Closed"
    assert (await active_job_count(orchestrator=orchestrator)).active_jobs == 0


@pytest.mark.asyncio
async def test_route_failure_is_reported_in_body(wired_state) -> None:
    request = schemas.RouteJobRequest(
        requirements=schemas.RequirementsModel(max_price_per_hour=0.1),
    )
    response = await route_job(request=request, orchestrator=wired_state.orchestrator)

    assert response.job_id.startswith("job_")
    assert response.final_state == "Failed"
    assert response.error["kind"] == "NoMatchingProviders"


@pytest.mark.asyncio
async def test_unknown_job_is_404(wired_state) -> None:
    for handler in (get_job, cancel_job, close_job):
        with pytest.raises(HTTPException) as exc_info:
            await handler(job_id="nope", orchestrator=wired_state.orchestrator)
        assert exc_info.value.status_code == 404


@pytest.mark.asyncio
async def test_health_reports_catalog(wired_state) -> None:
    response = await health_check()
    assert response.status == "ok"
    assert response.catalog["status"] == "healthy"
    assert response.catalog["providers"] == 5


@pytest.mark.asyncio
async def test_health_degraded_without_components() -> None:
    app_state.catalog = None
    app_state.scheduler = None
    app_state.orchestrator = None
    response = await health_check()
    assert response.status == "degraded"
    assert response.components["catalog"] == "not_initialized"
