"""
ComputeRouter Ledger — Data Models

Data classes for job requirements, marketplace providers, bids and leases.

Providers, bids and leases are immutable snapshots fetched from the catalog;
the engine never mutates them. Optional requirement fields are ``None`` when
unset, never a sentinel zero or empty string.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from computerouter.shared.errors import InvalidRequirementsError, MalformedProviderError
from computerouter.shared.utils import parse_size_to_gb, utcnow


# =============================================================================
# Enums
# =============================================================================
class LeaseStatus(str, Enum):
    """Lease lifecycle states reported by the marketplace."""
    ACTIVE = "active"
    CLOSED = "closed"


# =============================================================================
# Requirements
# =============================================================================
@dataclass(frozen=True)
class GpuSpec:
    """Requested GPU: a capability tag fragment and a unit count."""
    model: str
    units: int = 1

    def __post_init__(self) -> None:
        if not isinstance(self.model, str) or not self.model.strip():
            raise InvalidRequirementsError("GPU model must be a non-empty string")
        if isinstance(self.units, bool) or not isinstance(self.units, int) or self.units < 1:
            raise InvalidRequirementsError(f"GPU units must be an integer >= 1, got {self.units!r}")

    def to_dict(self) -> dict[str, Any]:
        return {"model": self.model, "units": self.units}


@dataclass(frozen=True)
class JobRequirements:
    """What the caller needs from a provider."""
    cpu: float = 0.0
    memory_gb: float = 0.0
    storage_gb: float = 0.0
    gpu: GpuSpec | None = None
    region: str | None = None
    max_price_per_hour: float | None = None
    min_availability: float | None = None
    # Deployment description, consumed by the manifest compiler
    name: str | None = None
    image: str | None = None
    command: tuple[str, ...] = ()
    port: int | None = None
    expose: bool = False

    def __post_init__(self) -> None:
        for attr in ("cpu", "memory_gb", "storage_gb"):
            value = getattr(self, attr)
            if not _is_number(value) or value < 0:
                raise InvalidRequirementsError(f"{attr} must be a non-negative number, got {value!r}")
        if self.max_price_per_hour is not None:
            if not _is_number(self.max_price_per_hour) or self.max_price_per_hour < 0:
                raise InvalidRequirementsError(
                    f"max_price_per_hour must be a non-negative number, got {self.max_price_per_hour!r}"
                )
        if self.min_availability is not None:
            if not _is_number(self.min_availability) or not 0 <= self.min_availability <= 1:
                raise InvalidRequirementsError(
                    f"min_availability must be within [0, 1], got {self.min_availability!r}"
                )
        if self.region is not None and not self.region.strip():
            raise InvalidRequirementsError("region must be omitted rather than empty")

    @property
    def is_gpu_job(self) -> bool:
        return self.gpu is not None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "cpu": self.cpu,
            "memory_gb": self.memory_gb,
            "storage_gb": self.storage_gb,
            "gpu": self.gpu.to_dict() if self.gpu else None,
            "region": self.region,
            "max_price_per_hour": self.max_price_per_hour,
            "min_availability": self.min_availability,
            "name": self.name,
            "image": self.image,
            "command": list(self.command),
            "port": self.port,
            "expose": self.expose,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> JobRequirements:
        """
        Create from dictionary.

        Accepts snake_case and camelCase keys, and size strings such as
        ``"16Gi"`` for memory and storage.
        """
        try:
            gpu_data = data.get("gpu")
            gpu = None
            if gpu_data:
                gpu = GpuSpec(
                    model=gpu_data.get("model") or gpu_data.get("vendor") or "",
                    units=gpu_data.get("units", 1),
                )

            memory = _first(data, "memory_gb", "memory")
            storage = _first(data, "storage_gb", "storage")
            return cls(
                cpu=float(_first(data, "cpu", "vcpus") or 0),
                memory_gb=parse_size_to_gb(memory) or 0.0,
                storage_gb=parse_size_to_gb(storage) or 0.0,
                gpu=gpu,
                region=data.get("region") or None,
                max_price_per_hour=_first(data, "max_price_per_hour", "maxPricePerHour", "maxPrice"),
                min_availability=_first(data, "min_availability", "minAvailability"),
                name=data.get("name"),
                image=data.get("image"),
                command=tuple(data.get("command") or ()),
                port=data.get("port"),
                expose=bool(data.get("expose", False)),
            )
        except (TypeError, ValueError, AttributeError) as e:
            raise InvalidRequirementsError(f"Invalid requirements: {e}") from e


# =============================================================================
# Providers
# =============================================================================
@dataclass(frozen=True)
class HardwareSpecs:
    """Declared hardware capacity of a provider."""
    vcpus: float
    memory_gb: float
    storage_gb: float
    gpu_units: int | None = None  # None: not declared by the catalog

    def to_dict(self) -> dict[str, Any]:
        return {
            "vcpus": self.vcpus,
            "memory_gb": self.memory_gb,
            "storage_gb": self.storage_gb,
            "gpu_units": self.gpu_units,
        }


@dataclass(frozen=True)
class Provider:
    """A marketplace provider snapshot."""
    id: str
    name: str
    region: str
    gpu_types: tuple[str, ...]
    price_per_hour: float
    availability: float
    uptime: float
    latency_ms: float
    specs: HardwareSpecs
    address: str | None = None

    def problems(self) -> list[str]:
        """
        List range violations that make this record unusable for matching.

        Returns:
            Human-readable problems, empty when the record is well-formed
        """
        issues = []
        if not self.id:
            issues.append("missing id")
        if not _is_number(self.price_per_hour) or self.price_per_hour < 0:
            issues.append(f"invalid price_per_hour {self.price_per_hour!r}")
        if not _is_number(self.availability) or not 0 <= self.availability <= 1:
            issues.append(f"availability {self.availability!r} outside [0, 1]")
        if not _is_number(self.uptime) or not 0 <= self.uptime <= 100:
            issues.append(f"uptime {self.uptime!r} outside [0, 100]")
        if not _is_number(self.latency_ms) or self.latency_ms < 0:
            issues.append(f"invalid latency_ms {self.latency_ms!r}")
        for attr in ("vcpus", "memory_gb", "storage_gb"):
            value = getattr(self.specs, attr)
            if not _is_number(value) or value < 0:
                issues.append(f"invalid specs.{attr} {value!r}")
        return issues

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "name": self.name,
            "region": self.region,
            "gpu_types": list(self.gpu_types),
            "price_per_hour": self.price_per_hour,
            "availability": self.availability,
            "uptime": self.uptime,
            "latency_ms": self.latency_ms,
            "specs": self.specs.to_dict(),
            "address": self.address,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Provider:
        """
        Create from a catalog record (snake_case or camelCase keys).

        Raises:
            MalformedProviderError: If required fields are missing or ill-typed
        """
        provider_id = data.get("id") if isinstance(data, dict) else None
        try:
            specs = data.get("specs") or {}
            gpu_units = _first(specs, "gpu_units", "gpuUnits")
            gpu_types = _first(data, "gpu_types", "gpuTypes") or ()
            if isinstance(gpu_types, str):
                gpu_types = (gpu_types,)
            return cls(
                id=str(data["id"]),
                name=str(data.get("name") or data["id"]),
                region=str(data.get("region") or ""),
                gpu_types=tuple(str(tag) for tag in gpu_types),
                price_per_hour=float(_require(data, "price_per_hour", "pricePerHour")),
                availability=float(_require(data, "availability")),
                uptime=float(_require(data, "uptime")),
                latency_ms=float(_require(data, "latency_ms", "latency")),
                specs=HardwareSpecs(
                    vcpus=float(_require(specs, "vcpus")),
                    memory_gb=float(_require(specs, "memory_gb", "memory")),
                    storage_gb=float(_require(specs, "storage_gb", "storage")),
                    gpu_units=int(gpu_units) if gpu_units is not None else None,
                ),
                address=data.get("address"),
            )
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise MalformedProviderError(
                f"Malformed provider record {provider_id!r}: {e}", provider_id=provider_id
            ) from e


# =============================================================================
# Marketplace Records
# =============================================================================
@dataclass(frozen=True)
class Bid:
    """A provider's offer against an open deployment request."""
    id: str
    provider_id: str
    price: float
    created_at: str = field(default_factory=utcnow)
    denom: str = "usd"

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "provider_id": self.provider_id,
            "price": self.price,
            "created_at": self.created_at,
            "denom": self.denom,
        }


@dataclass(frozen=True)
class Lease:
    """The binding contract created by accepting a bid."""
    id: str
    provider_id: str
    status: LeaseStatus = LeaseStatus.ACTIVE
    price: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "provider_id": self.provider_id,
            "status": self.status.value,
            "price": self.price,
        }


@dataclass(frozen=True)
class DeploymentHandle:
    """An open deployment request on the marketplace."""
    job_handle: str
    manifest: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"job_handle": self.job_handle, "has_manifest": self.manifest is not None}


# =============================================================================
# Helpers
# =============================================================================
def _is_number(value: Any) -> bool:
    return (
        isinstance(value, (int, float))
        and not isinstance(value, bool)
        and math.isfinite(value)
    )


def _first(data: dict[str, Any], *keys: str) -> Any:
    for key in keys:
        if data.get(key) is not None:
            return data[key]
    return None


def _require(data: dict[str, Any], *keys: str) -> Any:
    value = _first(data, *keys)
    if value is None:
        raise KeyError(keys[0])
    return value
