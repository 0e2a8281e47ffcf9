"""
ComputeRouter Catalog Adapters.

Marketplace access behind a single async interface:
- BaseCatalog: abstract adapter (providers, deployments, bids, leases)
- MockCatalog: in-memory marketplace for demos and tests
- ConsoleCatalog: HTTP client for an Akash-style console API
"""

from __future__ import annotations

from computerouter.shared import settings
from computerouter.shared.errors import ConfigurationError, MissingEnvironmentVariableError

from .base import BaseCatalog, parse_providers
from .console import ConsoleCatalog
from .mock import MOCK_PROVIDERS, MockCatalog, MockCatalogError

__all__ = [
    "BaseCatalog",
    "ConsoleCatalog",
    "MockCatalog",
    "MockCatalogError",
    "MOCK_PROVIDERS",
    "build_catalog",
    "parse_providers",
]


def build_catalog(backend: str | None = None, manifest_builder=None) -> BaseCatalog:
    """
    Build the catalog adapter configured in settings.

    Args:
        backend: "mock" or "console" (defaults to COMPUTEROUTER_CATALOG)
        manifest_builder: Manifest compiler for the console catalog

    Raises:
        ConfigurationError: On an unknown backend or missing credentials
    """
    backend = (backend or settings.CATALOG_BACKEND).lower()
    if backend == "mock":
        return MockCatalog()
    if backend == "console":
        if not settings.CONSOLE_API_KEY:
            raise MissingEnvironmentVariableError("COMPUTEROUTER_CONSOLE_API_KEY")
        return ConsoleCatalog(
            base_url=settings.CONSOLE_API_URL,
            api_key=settings.CONSOLE_API_KEY,
            manifest_builder=manifest_builder,
            deposit=settings.DEPLOYMENT_DEPOSIT_USD,
            timeout_seconds=settings.CONSOLE_REQUEST_TIMEOUT,
        )
    raise ConfigurationError(f"Unknown catalog backend: {backend!r}")
