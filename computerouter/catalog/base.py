"""
Catalog Adapters — Abstract Base Catalog

All marketplace adapters inherit from BaseCatalog and implement the
provider listing, deployment request, bid and lease interface. The routing
engine only ever talks to a catalog instance it was handed; there is no
module-level client.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Iterable

from computerouter.ledger.models import Bid, DeploymentHandle, JobRequirements, Lease, Provider
from computerouter.shared.errors import MalformedProviderError

logger = logging.getLogger("computerouter.catalog")


class BaseCatalog(ABC):
    """
    Abstract marketplace catalog.

    Implementations raise ``CatalogUnavailableError`` (or any exception,
    which callers wrap) when the marketplace cannot be reached.
    """

    name: str = "base"

    @abstractmethod
    async def list_providers(self, filter_hints: dict[str, Any]) -> list[Provider]:
        """Return a provider snapshot. Hints are advisory."""
        ...

    @abstractmethod
    async def create_deployment_request(self, requirements: JobRequirements) -> DeploymentHandle:
        """Open a deployment request and return its handle and manifest."""
        ...

    @abstractmethod
    async def list_bids(self, job_handle: str) -> list[Bid]:
        """Return the bids received so far for a deployment."""
        ...

    @abstractmethod
    async def accept_bid(self, job_handle: str, bid_id: str, manifest: str) -> Lease:
        """Accept a bid, creating a lease."""
        ...

    @abstractmethod
    async def close_deployment(self, job_handle: str) -> None:
        """Close a deployment and any lease on it."""
        ...

    async def health_check(self) -> dict[str, Any]:
        """Report catalog health. Adapters override when they can probe."""
        return {"status": "unknown", "catalog": self.name}


def parse_providers(records: Iterable[dict[str, Any]]) -> list[Provider]:
    """
    Parse raw catalog records, skipping malformed ones.

    Args:
        records: Provider records from the marketplace

    Returns:
        Parsed providers, in input order
    """
    providers = []
    for record in records:
        try:
            providers.append(Provider.from_dict(record))
        except MalformedProviderError as e:
            logger.warning(f"Skipping provider record: {e}")
    return providers
