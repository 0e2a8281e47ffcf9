"""
Catalog Adapters — Mock Catalog

An in-memory marketplace that simulates provider listings, deployments,
bids and leases without any network calls.

Useful for:
- Testing the routing flow
- Demos without spending deposits
- Development without marketplace credentials
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Iterable

from computerouter.ledger.models import (
    Bid,
    DeploymentHandle,
    HardwareSpecs,
    JobRequirements,
    Lease,
    LeaseStatus,
    Provider,
)
from computerouter.shared.errors import CatalogUnavailableError

from .base import BaseCatalog

logger = logging.getLogger("computerouter.catalog.mock")


MOCK_PROVIDERS: tuple[Provider, ...] = (
    Provider(
        id="prov-1",
        name="GPU Cloud East",
        address="0x742d35Cc6634C0532925a3b844Bc9e7595f0bEb",
        region="us-east",
        gpu_types=("NVIDIA A100", "NVIDIA V100"),
        price_per_hour=2.50,
        availability=0.95,
        uptime=99.9,
        latency_ms=45,
        specs=HardwareSpecs(vcpus=32, memory_gb=128, storage_gb=1000),
    ),
    Provider(
        id="prov-2",
        name="Euro Compute",
        address="0x8ba1f109551bD432803012645Hac136c82C3e8C",
        region="eu-west",
        gpu_types=("NVIDIA A100", "NVIDIA RTX 4090"),
        price_per_hour=2.20,
        availability=0.92,
        uptime=98.5,
        latency_ms=85,
        specs=HardwareSpecs(vcpus=24, memory_gb=96, storage_gb=500),
    ),
    Provider(
        id="prov-3",
        name="Asia GPU Hub",
        address="0xdAC17F958D2ee523a2206206994597C13D831ec7",
        region="ap-south",
        gpu_types=("NVIDIA V100", "NVIDIA RTX 3090"),
        price_per_hour=1.80,
        availability=0.88,
        uptime=97.2,
        latency_ms=120,
        specs=HardwareSpecs(vcpus=16, memory_gb=64, storage_gb=250),
    ),
    Provider(
        id="prov-4",
        name="Premium West",
        address="0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48",
        region="us-west",
        gpu_types=("NVIDIA A100", "NVIDIA H100"),
        price_per_hour=3.50,
        availability=0.98,
        uptime=99.8,
        latency_ms=60,
        specs=HardwareSpecs(vcpus=64, memory_gb=256, storage_gb=2000),
    ),
    Provider(
        id="prov-5",
        name="Budget Compute",
        address="0x6B175474E89094C44Da98b954EedeAC495271d0F",
        region="us-central",
        gpu_types=("NVIDIA RTX 4090", "NVIDIA RTX 3090"),
        price_per_hour=1.20,
        availability=0.85,
        uptime=96.8,
        latency_ms=55,
        specs=HardwareSpecs(vcpus=12, memory_gb=48, storage_gb=500),
    ),
)


class MockCatalogError(Exception):
    """Simulated remote rejection."""


@dataclass
class _MockDeployment:
    handle: str
    requirements: JobRequirements
    created_at: float = field(default_factory=time.monotonic)
    bids: list[Bid] = field(default_factory=list)
    closed: bool = False


class MockCatalog(BaseCatalog):
    """
    Mock marketplace catalog.

    Every new deployment receives the configured ``bids`` once ``bid_delay``
    seconds have passed since it was created. Tests can also post bids at
    any time with ``post_bid``. Operations named in ``fail_operations``
    raise, and ``reject_accept`` makes ``accept_bid`` fail like a remote
    rejection would.
    """

    name = "mock"

    def __init__(
        self,
        providers: Iterable[Provider] | None = None,
        bids: Iterable[Bid] | None = None,
        bid_delay: float = 0.0,
        manifest: str | None = "mock-manifest",
        fail_operations: Iterable[str] = (),
        reject_accept: bool = False,
    ):
        """Initialize mock catalog."""
        self.providers = list(MOCK_PROVIDERS if providers is None else providers)
        self.scripted_bids = list(bids or ())
        self.bid_delay = bid_delay
        self.manifest = manifest
        self.fail_operations = set(fail_operations)
        self.reject_accept = reject_accept

        self.deployments: dict[str, _MockDeployment] = {}
        self.calls: list[tuple[str, Any]] = []
        self._counter = 0
        logger.info(f"Mock catalog initialized with {len(self.providers)} providers")

    def _maybe_fail(self, operation: str) -> None:
        if operation in self.fail_operations:
            raise CatalogUnavailableError(operation, "mock catalog configured to fail")

    def _deployment(self, job_handle: str) -> _MockDeployment:
        deployment = self.deployments.get(job_handle)
        if deployment is None:
            raise MockCatalogError(f"Unknown deployment {job_handle}")
        return deployment

    # ------------------------------------------------------------------
    # Catalog interface
    # ------------------------------------------------------------------

    async def list_providers(self, filter_hints: dict[str, Any]) -> list[Provider]:
        self.calls.append(("list_providers", dict(filter_hints)))
        self._maybe_fail("list_providers")
        return list(self.providers)

    async def create_deployment_request(self, requirements: JobRequirements) -> DeploymentHandle:
        self.calls.append(("create_deployment_request", requirements))
        self._maybe_fail("create_deployment_request")

        self._counter += 1
        handle = f"dseq-{self._counter}"
        self.deployments[handle] = _MockDeployment(handle=handle, requirements=requirements)
        logger.info(f"[MOCK] Deployment created: {handle}")
        return DeploymentHandle(job_handle=handle, manifest=self.manifest)

    async def list_bids(self, job_handle: str) -> list[Bid]:
        self.calls.append(("list_bids", job_handle))
        self._maybe_fail("list_bids")

        deployment = self._deployment(job_handle)
        if deployment.closed:
            return []
        bids = list(deployment.bids)
        if time.monotonic() - deployment.created_at >= self.bid_delay:
            bids.extend(self.scripted_bids)
        return bids

    async def accept_bid(self, job_handle: str, bid_id: str, manifest: str) -> Lease:
        self.calls.append(("accept_bid", (job_handle, bid_id)))
        self._maybe_fail("accept_bid")
        if self.reject_accept:
            raise MockCatalogError(f"Bid {bid_id} rejected by marketplace")

        bids = {bid.id: bid for bid in await self.list_bids(job_handle)}
        bid = bids.get(bid_id)
        if bid is None:
            raise MockCatalogError(f"Bid {bid_id} is stale or unknown")

        logger.info(f"[MOCK] Lease created for {job_handle} with {bid.provider_id}")
        return Lease(
            id=f"lease-{job_handle}-{bid.provider_id}",
            provider_id=bid.provider_id,
            status=LeaseStatus.ACTIVE,
            price=bid.price,
        )

    async def close_deployment(self, job_handle: str) -> None:
        self.calls.append(("close_deployment", job_handle))
        self._maybe_fail("close_deployment")
        self._deployment(job_handle).closed = True
        logger.info(f"[MOCK] Deployment closed: {job_handle}")

    async def health_check(self) -> dict[str, Any]:
        """Mock catalog health check."""
        return {
            "status": "healthy",
            "catalog": self.name,
            "providers": len(self.providers),
        }

    # ------------------------------------------------------------------
    # Test helpers
    # ------------------------------------------------------------------

    def post_bid(self, job_handle: str, bid: Bid) -> None:
        """Simulate a provider bidding on an open deployment."""
        self._deployment(job_handle).bids.append(bid)

    def call_names(self) -> list[str]:
        return [name for name, _ in self.calls]
