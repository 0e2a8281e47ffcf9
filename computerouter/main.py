"""
ComputeRouter — Main Entry Point

Wires the catalog, scheduler and orchestrator together and runs either a
demo routing attempt against the mock marketplace or the HTTP API.

Usage:
    python -m computerouter                  # demo route, manual accept
    python -m computerouter --auto-accept    # demo route with auto-accept
    python -m computerouter --serve          # run the FastAPI service
"""

from __future__ import annotations

import argparse
import asyncio
import logging
from typing import Any

from dotenv import load_dotenv

from computerouter.catalog import MockCatalog, build_catalog
from computerouter.catalog.base import BaseCatalog
from computerouter.core.orchestrator import RouteResult, RoutingOrchestrator
from computerouter.core.route_log import format_route_logs
from computerouter.ledger.models import Bid, GpuSpec, JobRequirements
from computerouter.scheduler.scheduler import ProviderScheduler
from computerouter.shared import settings
from computerouter.shared.logging import configure_file_logging, setup_logging
from computerouter.shared.utils import generate_job_id

logger = logging.getLogger("computerouter.main")


class ComputeRouterApp:
    """
    Main ComputeRouter application.

    Example:
        app = ComputeRouterApp.create()
        result = await app.route(requirements, auto_accept=True)
        print(format_route_logs(result.logs))
    """

    def __init__(self, catalog: BaseCatalog, scheduler: ProviderScheduler, orchestrator: RoutingOrchestrator):
        self.catalog = catalog
        self.scheduler = scheduler
        self.orchestrator = orchestrator

    @classmethod
    def create(
        cls,
        catalog: BaseCatalog | None = None,
        poll_interval: float | None = None,
        bid_timeout: float | None = None,
    ) -> ComputeRouterApp:
        """
        Factory method building every component from settings.

        Args:
            catalog: Catalog adapter (built from COMPUTEROUTER_CATALOG when omitted)
            poll_interval: Bid poll interval override
            bid_timeout: Default bid window override
        """
        catalog = catalog or build_catalog()
        logger.info(f"Catalog: {catalog.name}")
        scheduler = ProviderScheduler(catalog=catalog)
        orchestrator = RoutingOrchestrator(
            catalog=catalog,
            poll_interval=poll_interval,
            default_bid_timeout=bid_timeout,
        )
        return cls(catalog, scheduler, orchestrator)

    async def route(
        self,
        requirements: JobRequirements,
        auto_accept: bool = False,
        job_id: str | None = None,
    ) -> RouteResult:
        """Route a job, generating an id when none is given."""
        return await self.orchestrator.route_job(
            job_id or generate_job_id(),
            requirements,
            auto_accept=auto_accept,
        )


def _demo_bids() -> list[Bid]:
    return [
        Bid(id="bid-prov-1", provider_id="prov-1", price=2.0),
        Bid(id="bid-prov-4", provider_id="prov-4", price=1.5),
    ]


async def demo(auto_accept: bool = False, gpu: str | None = "A100", region: str | None = None) -> RouteResult:
    """
    Route one demo job against the mock marketplace.

    Two scripted bids arrive one second after the deployment opens.
    """
    catalog = MockCatalog(bids=_demo_bids(), bid_delay=1.0)
    app = ComputeRouterApp.create(catalog=catalog, poll_interval=0.5, bid_timeout=10)

    requirements = JobRequirements(
        cpu=8,
        memory_gb=32,
        storage_gb=100,
        gpu=GpuSpec(model=gpu) if gpu else None,
        region=region,
        name="demo-job",
        image="pytorch/pytorch:latest",
        port=8080,
        expose=True,
    )

    print("\n" + "=" * 60)
    print("COMPUTEROUTER DEMO")
    print("=" * 60)

    diagnostics: dict[str, Any] = await app.scheduler.diagnose_selection(requirements)
    print(
        f"\n[1] {diagnostics['matching_candidates']} of "
        f"{diagnostics['total_candidates']} providers match"
    )
    for rec in diagnostics["recommendations"]:
        print(
            f"  - {rec['provider']['name']}: {rec['score']['total_score']:.3f} "
            f"({rec['reason']})"
        )

    print(f"\n[2] Routing (auto_accept={auto_accept})...")
    result = await app.route(requirements, auto_accept=auto_accept)

    print("\n" + format_route_logs(result.logs))
    print(f"\n[OK] {result.final_state.value}: {result.reason}")
    print("=" * 60)
    return result


def main(argv: list[str] | None = None) -> None:
    """Main entry point for ComputeRouter."""
    parser = argparse.ArgumentParser(prog="computerouter", description="Provider matching and deployment routing")
    parser.add_argument("--serve", action="store_true", help="Run the HTTP API")
    parser.add_argument("--auto-accept", action="store_true", help="Accept the best bid in the demo")
    parser.add_argument("--gpu", default="A100", help="GPU model for the demo job (empty for none)")
    parser.add_argument("--region", default=None, help="Region for the demo job")
    args = parser.parse_args(argv)

    load_dotenv()
    setup_logging()
    if settings.LOG_FILE:
        configure_file_logging(logging.getLogger("computerouter"), settings.LOG_FILE)

    if args.serve:
        import uvicorn

        uvicorn.run(
            "computerouter.api.main:app",
            host=settings.HTTP_HOST,
            port=settings.HTTP_PORT,
        )
        return

    asyncio.run(demo(auto_accept=args.auto_accept, gpu=args.gpu or None, region=args.region))


if __name__ == "__main__":
    main()
