"""Catalog adapter tests (mock marketplace and console API client)."""

from __future__ import annotations

from pathlib import Path
import sys

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from computerouter.catalog import build_catalog
from computerouter.catalog.base import parse_providers
from computerouter.catalog.console import ConsoleCatalog
from computerouter.catalog.mock import MOCK_PROVIDERS, MockCatalog, MockCatalogError
from computerouter.ledger.models import Bid, JobRequirements, LeaseStatus
from computerouter.shared.errors import CatalogUnavailableError, ConfigurationError


# ============================================================================
# Mock catalog
# ============================================================================


def test_mock_providers_seed() -> None:
    assert [p.id for p in MOCK_PROVIDERS] == ["prov-1", "prov-2", "prov-3", "prov-4", "prov-5"]
    assert all(p.problems() == [] for p in MOCK_PROVIDERS)


@pytest.mark.asyncio
async def test_mock_deployment_bid_and_lease_flow() -> None:
    catalog = MockCatalog(bids=[Bid(id="b1", provider_id="prov-1", price=2.0)])

    handle = await catalog.create_deployment_request(JobRequirements())
    assert handle.job_handle == "dseq-1"
    assert handle.manifest == "mock-manifest"

    bids = await catalog.list_bids(handle.job_handle)
    assert [b.id for b in bids] == ["b1"]

    lease = await catalog.accept_bid(handle.job_handle, "b1", handle.manifest)
    assert lease.provider_id == "prov-1"
    assert lease.status == LeaseStatus.ACTIVE

    await catalog.close_deployment(handle.job_handle)
    assert await catalog.list_bids(handle.job_handle) == []
    assert catalog.call_names()[-1] == "list_bids"


@pytest.mark.asyncio
async def test_mock_scripted_bids_respect_delay() -> None:
    catalog = MockCatalog(bids=[Bid(id="b1", provider_id="prov-1", price=2.0)], bid_delay=60)
    handle = await catalog.create_deployment_request(JobRequirements())
    assert await catalog.list_bids(handle.job_handle) == []

    catalog.post_bid(handle.job_handle, Bid(id="b2", provider_id="prov-2", price=1.0))
    assert [b.id for b in await catalog.list_bids(handle.job_handle)] == ["b2"]


@pytest.mark.asyncio
async def test_mock_failures() -> None:
    catalog = MockCatalog(fail_operations={"list_providers"}, reject_accept=True)
    with pytest.raises(CatalogUnavailableError):
        await catalog.list_providers({})

    handle = await catalog.create_deployment_request(JobRequirements())
    with pytest.raises(MockCatalogError):
        await catalog.accept_bid(handle.job_handle, "missing", "m")


@pytest.mark.asyncio
async def test_mock_accept_unknown_bid_is_stale() -> None:
    catalog = MockCatalog()
    handle = await catalog.create_deployment_request(JobRequirements())
    with pytest.raises(MockCatalogError, match="stale"):
        await catalog.accept_bid(handle.job_handle, "nope", "m")


def test_parse_providers_skips_malformed_records() -> None:
    records = [p.to_dict() for p in MOCK_PROVIDERS[:2]] + [{"id": "broken"}]
    providers = parse_providers(records)
    assert [p.id for p in providers] == ["prov-1", "prov-2"]


def test_build_catalog_backends(monkeypatch) -> None:
    assert isinstance(build_catalog("mock"), MockCatalog)

    from computerouter.shared import settings

    monkeypatch.setattr(settings, "CONSOLE_API_KEY", "")
    with pytest.raises(ConfigurationError):
        build_catalog("console")
    with pytest.raises(ConfigurationError):
        build_catalog("carrier-pigeon")


# ============================================================================
# Console catalog
# ============================================================================


class RecordingConsoleCatalog(ConsoleCatalog):
    """Console catalog with the HTTP layer replaced by canned responses."""

    def __init__(self, responses: dict[str, object], **kwargs):
        super().__init__(base_url="https://console.example/", api_key="k", **kwargs)
        self.responses = responses
        self.requests: list[tuple] = []

    async def _request(self, operation, method, path, payload=None, params=None):
        self.requests.append((operation, method, path, payload, params))
        response = self.responses.get(operation)
        if isinstance(response, Exception):
            raise response
        return response


def test_console_requires_api_key() -> None:
    with pytest.raises(ConfigurationError):
        ConsoleCatalog(base_url="https://console.example", api_key="")


def test_parse_bid_console_shape() -> None:
    bid = ConsoleCatalog.parse_bid(
        {
            "bid": {
                "id": {"dseq": "123", "provider": "akash1abc"},
                "price": {"denom": "uakt", "amount": "1.25"},
                "created_at": "2026-01-01T00:00:00Z",
            }
        }
    )
    assert bid.id == "123-akash1abc"
    assert bid.provider_id == "akash1abc"
    assert bid.price == 1.25
    assert bid.denom == "uakt"


def test_parse_bid_normalizes_epoch_timestamps() -> None:
    seconds = ConsoleCatalog.parse_bid(
        {"bid": {"id": {"dseq": "1", "provider": "p"}, "price": {"amount": "1"}, "created_at": 1767225600}}
    )
    millis = ConsoleCatalog.parse_bid(
        {"bid": {"id": {"dseq": "1", "provider": "q"}, "price": {"amount": "1"}, "created_at": "1767225600000"}}
    )
    assert seconds.created_at == "2026-01-01T00:00:00+00:00"
    assert millis.created_at == "2026-01-01T00:00:00+00:00"

    unreadable = ConsoleCatalog.parse_bid(
        {"bid": {"id": {"dseq": "1", "provider": "r"}, "price": {"amount": "1"}, "created_at": "soon"}}
    )
    assert isinstance(unreadable.created_at, str) and unreadable.created_at != "soon"


def test_parse_bid_ignores_unusable_records() -> None:
    assert ConsoleCatalog.parse_bid({"bid": {"id": {"provider": "p"}, "price": {}}}) is None
    assert ConsoleCatalog.parse_bid({"bid": {"id": {}, "price": {"amount": "1"}}}) is None


def test_parse_deployment_requires_dseq() -> None:
    handle = ConsoleCatalog.parse_deployment({"data": {"dseq": 42, "manifest": "m"}})
    assert handle.job_handle == "42"
    assert handle.manifest == "m"

    assert ConsoleCatalog.parse_deployment({"data": {"dseq": 42}}).manifest is None
    with pytest.raises(CatalogUnavailableError):
        ConsoleCatalog.parse_deployment({"data": {}})


def test_unwrap_list_shapes() -> None:
    assert ConsoleCatalog.unwrap_list([1], "bids") == [1]
    assert ConsoleCatalog.unwrap_list({"data": [2]}, "bids") == [2]
    assert ConsoleCatalog.unwrap_list({"bids": [3]}, "bids") == [3]
    assert ConsoleCatalog.unwrap_list(None, "bids") == []


@pytest.mark.asyncio
async def test_console_create_deployment_sends_sdl_and_deposit() -> None:
    catalog = RecordingConsoleCatalog(
        {"create_deployment_request": {"data": {"dseq": "77", "manifest": "compiled"}}},
        manifest_builder=lambda req: f"sdl for {req.cpu:g} cpu",
        deposit=5.0,
    )
    handle = await catalog.create_deployment_request(JobRequirements(cpu=2))

    assert handle.job_handle == "77"
    operation, method, path, payload, _ = catalog.requests[0]
    assert (operation, method, path) == ("create_deployment_request", "POST", "/v1/deployments")
    assert payload == {"data": {"sdl": "sdl for 2 cpu", "deposit": 5.0}}


@pytest.mark.asyncio
async def test_console_create_deployment_without_builder_fails() -> None:
    catalog = RecordingConsoleCatalog({})
    with pytest.raises(ConfigurationError):
        await catalog.create_deployment_request(JobRequirements())


@pytest.mark.asyncio
async def test_console_accept_bid_posts_lease() -> None:
    catalog = RecordingConsoleCatalog({"accept_bid": {"data": {"id": "lease-9"}}})
    lease = await catalog.accept_bid("77", "77-akash1abc", "compiled")

    assert lease.id == "lease-9"
    assert lease.provider_id == "akash1abc"
    _, method, path, payload, _ = catalog.requests[0]
    assert (method, path) == ("POST", "/v1/leases")
    assert payload["leases"] == [{"dseq": "77", "gseq": 1, "oseq": 1, "provider": "akash1abc"}]


@pytest.mark.asyncio
async def test_console_list_bids_and_health() -> None:
    catalog = RecordingConsoleCatalog(
        {
            "list_bids": {
                "data": [
                    {"bid": {"id": {"dseq": "77", "provider": "p1"}, "price": {"amount": "3"}}},
                    {"bid": {"id": {"dseq": "77"}, "price": {"amount": "1"}}},
                ]
            },
            "health_check": CatalogUnavailableError("health_check", "HTTP 503: down"),
        }
    )
    bids = await catalog.list_bids("77")
    assert [b.provider_id for b in bids] == ["p1"]
    assert catalog.requests[0][4] == {"dseq": "77"}

    health = await catalog.health_check()
    assert health["status"] == "unhealthy"
