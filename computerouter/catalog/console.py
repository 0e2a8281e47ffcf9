"""
Console API catalog for ComputeRouter.

Talks to an Akash-style console API over HTTP: provider listing, deployment
creation, bid listing, lease creation and deployment close. Authenticated
with an ``x-api-key`` header.

The deployment manifest (SDL) is produced by an injected ``manifest_builder``
callable; this client only transports it.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable

import aiohttp

from computerouter.ledger.models import Bid, DeploymentHandle, JobRequirements, Lease, LeaseStatus, Provider
from computerouter.shared.errors import CatalogUnavailableError, ConfigurationError
from computerouter.shared.utils import to_iso_timestamp, utcnow

from .base import BaseCatalog, parse_providers

logger = logging.getLogger("computerouter.catalog.console")

ManifestBuilder = Callable[[JobRequirements], str]


class ConsoleCatalog(BaseCatalog):
    """HTTP client for console API interactions."""

    name = "console"

    def __init__(
        self,
        base_url: str,
        api_key: str,
        manifest_builder: ManifestBuilder | None = None,
        deposit: float = 5.0,
        timeout_seconds: int = 30,
    ) -> None:
        if not api_key:
            raise ConfigurationError("Console API key is required for the console catalog")
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.manifest_builder = manifest_builder
        self.deposit = deposit
        self.timeout_seconds = timeout_seconds

    def _headers(self) -> dict[str, str]:
        return {"Content-Type": "application/json", "x-api-key": self.api_key}

    async def _request(
        self,
        operation: str,
        method: str,
        path: str,
        payload: dict[str, Any] | None = None,
        params: dict[str, str] | None = None,
    ) -> Any:
        url = f"{self.base_url}{path}"
        timeout = aiohttp.ClientTimeout(total=self.timeout_seconds)
        try:
            async with aiohttp.ClientSession(timeout=timeout, headers=self._headers()) as session:
                async with session.request(method, url, json=payload, params=params) as resp:
                    if resp.status >= 400:
                        body = await resp.text()
                        raise CatalogUnavailableError(
                            operation, f"HTTP {resp.status}: {body[:200]}"
                        )
                    if resp.status == 204:
                        return None
                    return await resp.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise CatalogUnavailableError(operation, e) from e

    # ========================================================================
    # Catalog interface
    # ========================================================================

    async def list_providers(self, filter_hints: dict[str, Any]) -> list[Provider]:
        data = await self._request("list_providers", "GET", "/v1/providers")
        records = self.unwrap_list(data, "providers")
        providers = parse_providers(records)
        logger.info(f"Fetched {len(providers)} providers ({len(records)} records)")
        return providers

    async def create_deployment_request(self, requirements: JobRequirements) -> DeploymentHandle:
        if self.manifest_builder is None:
            raise ConfigurationError("Console catalog needs a manifest_builder to create deployments")

        sdl = self.manifest_builder(requirements)
        payload = {"data": {"sdl": sdl, "deposit": self.deposit}}
        data = await self._request("create_deployment_request", "POST", "/v1/deployments", payload)
        handle = self.parse_deployment(data)
        logger.info(f"Deployment created: dseq={handle.job_handle}")
        return handle

    async def list_bids(self, job_handle: str) -> list[Bid]:
        data = await self._request("list_bids", "GET", "/v1/bids", params={"dseq": job_handle})
        bids = []
        for item in self.unwrap_list(data, "bids"):
            bid = self.parse_bid(item)
            if bid is not None:
                bids.append(bid)
        return bids

    async def accept_bid(self, job_handle: str, bid_id: str, manifest: str) -> Lease:
        provider = self.provider_from_bid_id(job_handle, bid_id)
        payload = {
            "manifest": manifest,
            "leases": [{"dseq": job_handle, "gseq": 1, "oseq": 1, "provider": provider}],
        }
        data = await self._request("accept_bid", "POST", "/v1/leases", payload)
        lease = self.parse_lease(data, job_handle, provider)
        logger.info(f"Lease created: {lease.id} with {provider}")
        return lease

    async def close_deployment(self, job_handle: str) -> None:
        await self._request("close_deployment", "DELETE", f"/v1/deployments/{job_handle}")
        logger.info(f"Deployment closed: dseq={job_handle}")

    async def health_check(self) -> dict[str, Any]:
        """Probe the console API by listing providers."""
        try:
            await self._request("health_check", "GET", "/v1/providers")
        except CatalogUnavailableError as e:
            return {"status": "unhealthy", "catalog": self.name, "error": str(e)}
        return {"status": "healthy", "catalog": self.name}

    # ========================================================================
    # Response parsing
    # ========================================================================

    @staticmethod
    def unwrap_list(data: Any, key: str) -> list[dict[str, Any]]:
        """Accept a bare list, ``{"data": [...]}`` or ``{key: [...]}``."""
        if isinstance(data, list):
            return data
        if isinstance(data, dict):
            for candidate in ("data", key):
                value = data.get(candidate)
                if isinstance(value, list):
                    return value
        return []

    @staticmethod
    def parse_deployment(data: Any) -> DeploymentHandle:
        """
        Parse a deployment creation response.

        A response without a manifest yields a handle whose manifest is None;
        acceptance then fails instead of the deployment creation.
        """
        body = data.get("data", data) if isinstance(data, dict) else {}
        dseq = body.get("dseq") if isinstance(body, dict) else None
        if not dseq:
            raise CatalogUnavailableError(
                "create_deployment_request", "Invalid API response: missing dseq"
            )
        return DeploymentHandle(job_handle=str(dseq), manifest=body.get("manifest"))

    @staticmethod
    def parse_bid(item: dict[str, Any]) -> Bid | None:
        """
        Parse one console bid.

        Returns None for bids without a provider or a numeric price.
        """
        bid = item.get("bid", item)
        bid_id = bid.get("id") or {}
        provider = bid_id.get("provider") if isinstance(bid_id, dict) else None
        price = bid.get("price") or {}
        try:
            amount = float(price.get("amount"))
        except (TypeError, ValueError):
            logger.warning(f"Ignoring bid with unparseable price: {price!r}")
            return None
        if not provider:
            logger.warning("Ignoring bid without a provider")
            return None

        dseq = bid_id.get("dseq", "")
        return Bid(
            id=f"{dseq}-{provider}" if dseq else str(provider),
            provider_id=str(provider),
            price=amount,
            created_at=to_iso_timestamp(bid.get("created_at") or item.get("created_at")) or utcnow(),
            denom=price.get("denom", "uakt"),
        )

    @staticmethod
    def provider_from_bid_id(job_handle: str, bid_id: str) -> str:
        prefix = f"{job_handle}-"
        return bid_id[len(prefix):] if bid_id.startswith(prefix) else bid_id

    @staticmethod
    def parse_lease(data: Any, job_handle: str, provider: str) -> Lease:
        body = data.get("data", data) if isinstance(data, dict) else {}
        if not isinstance(body, dict):
            body = {}
        price = body.get("price") or {}
        try:
            amount = float(price.get("amount", 0)) if isinstance(price, dict) else float(price)
        except (TypeError, ValueError):
            amount = 0.0
        return Lease(
            id=str(body.get("id") or f"{job_handle}-{provider}"),
            provider_id=provider,
            status=LeaseStatus.ACTIVE,
            price=amount,
        )
