"""
ComputeRouter — Provider matching and deployment routing for compute marketplaces.

Brokers compute jobs to decentralized GPU/CPU providers:
- Filters a provider snapshot against hard constraints
- Scores and ranks the survivors on price, reliability, performance, latency
- Opens a deployment request, collects bids and accepts the best one

Main Components:
- computerouter.scheduler: Filtering, scoring and ranking
- computerouter.core: Routing state machine and route log
- computerouter.catalog: Marketplace adapters (mock, console API)
- computerouter.execution: Catalog call timeouts and the bid window
- computerouter.ledger: Requirements, providers, bids and leases
- computerouter.api: FastAPI control plane
- computerouter.shared: Settings, logging, errors, utilities

Usage:
    from computerouter.catalog import MockCatalog
    from computerouter.core.orchestrator import RoutingOrchestrator

    orchestrator = RoutingOrchestrator(catalog=MockCatalog())
    result = await orchestrator.route_job("job_1", requirements, auto_accept=True)
"""

# Version
__version__ = "1.0.0"

from computerouter.shared.settings import PROJECT_NAME, VERSION
from computerouter.shared.logging import get_logger

from computerouter.ledger.models import (
    Bid,
    GpuSpec,
    HardwareSpecs,
    JobRequirements,
    Lease,
    LeaseStatus,
    Provider,
)

__all__ = [
    # Version
    "__version__",
    # Settings
    "PROJECT_NAME",
    "VERSION",
    # Logging
    "get_logger",
    # Models
    "Bid",
    "GpuSpec",
    "HardwareSpecs",
    "JobRequirements",
    "Lease",
    "LeaseStatus",
    "Provider",
]
