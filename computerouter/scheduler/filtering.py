"""
Provider Filtering — Hard-constraint elimination of marketplace providers.

Each constraint has its own checker returning ``(passed, reason)``; the
filter applies all of them and records every failure so the routing log can
explain why candidates were dropped.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable

from computerouter.ledger.models import JobRequirements, Provider

from .capabilities import check_capability, normalize_tag

logger = logging.getLogger("computerouter.scheduler.filtering")

MALFORMED = "malformed"


@dataclass
class FilterResult:
    """Outcome of checking one provider against the requirements."""

    provider: Provider
    passed: bool
    failed_constraints: list[str] = field(default_factory=list)
    reasons: list[str] = field(default_factory=list)

    @property
    def rejection_reason(self) -> str | None:
        return "; ".join(self.reasons) if self.reasons else None

    def to_dict(self) -> dict[str, Any]:
        return {
            "provider_id": self.provider.id,
            "passed": self.passed,
            "failed_constraints": list(self.failed_constraints),
            "rejection_reason": self.rejection_reason,
        }


# ============================================================================
# Individual Constraint Checks
# ============================================================================


def check_region(requirements: JobRequirements, provider: Provider) -> tuple[bool, str | None]:
    if requirements.region is None:
        return True, None
    if normalize_tag(provider.region) == normalize_tag(requirements.region):
        return True, None
    return False, f"Region {provider.region!r} does not match {requirements.region!r}"


def check_gpu(requirements: JobRequirements, provider: Provider) -> tuple[bool, str | None]:
    if requirements.gpu is None:
        return True, None
    if check_capability(provider.gpu_types, requirements.gpu.model):
        return True, None
    return False, f"Does not offer a GPU matching {requirements.gpu.model!r}"


def check_price(requirements: JobRequirements, provider: Provider) -> tuple[bool, str | None]:
    if requirements.max_price_per_hour is None:
        return True, None
    if provider.price_per_hour <= requirements.max_price_per_hour:
        return True, None
    return False, (
        f"Price ${provider.price_per_hour:.2f}/h exceeds max "
        f"${requirements.max_price_per_hour:.2f}/h"
    )


def check_availability(requirements: JobRequirements, provider: Provider) -> tuple[bool, str | None]:
    if requirements.min_availability is None:
        return True, None
    if provider.availability >= requirements.min_availability:
        return True, None
    return False, (
        f"Availability {provider.availability:.2f} below minimum "
        f"{requirements.min_availability:.2f}"
    )


def check_capacity(requirements: JobRequirements, provider: Provider) -> tuple[bool, str | None]:
    specs = provider.specs
    shortfalls = []
    if specs.vcpus < requirements.cpu:
        shortfalls.append(f"vcpus {specs.vcpus:g} < {requirements.cpu:g}")
    if specs.memory_gb < requirements.memory_gb:
        shortfalls.append(f"memory {specs.memory_gb:g}GB < {requirements.memory_gb:g}GB")
    if specs.storage_gb < requirements.storage_gb:
        shortfalls.append(f"storage {specs.storage_gb:g}GB < {requirements.storage_gb:g}GB")
    # Providers that do not declare GPU units are not eliminated on units
    if requirements.gpu is not None and specs.gpu_units is not None:
        if specs.gpu_units < requirements.gpu.units:
            shortfalls.append(f"gpu units {specs.gpu_units} < {requirements.gpu.units}")
    if not shortfalls:
        return True, None
    return False, "Insufficient capacity: " + ", ".join(shortfalls)


CONSTRAINT_CHECKS = (
    ("region", check_region),
    ("gpu", check_gpu),
    ("price", check_price),
    ("availability", check_availability),
    ("capacity", check_capacity),
)


# ============================================================================
# Batch Filtering
# ============================================================================


def check_provider(requirements: JobRequirements, provider: Provider) -> FilterResult:
    """
    Check a single provider against all hard constraints.

    Malformed providers are reported as rejected under the ``malformed``
    constraint instead of raising.
    """
    problems = provider.problems()
    if problems:
        logger.warning(f"Skipping malformed provider {provider.id!r}: {', '.join(problems)}")
        return FilterResult(
            provider=provider,
            passed=False,
            failed_constraints=[MALFORMED],
            reasons=problems,
        )

    result = FilterResult(provider=provider, passed=True)
    for name, check in CONSTRAINT_CHECKS:
        passed, reason = check(requirements, provider)
        if not passed:
            result.passed = False
            result.failed_constraints.append(name)
            result.reasons.append(reason or name)
    return result


def evaluate_providers(
    requirements: JobRequirements, candidates: Iterable[Provider]
) -> list[FilterResult]:
    """
    Check every candidate and return the per-provider results.

    Args:
        requirements: Job requirements
        candidates: Provider snapshot

    Returns:
        One FilterResult per candidate, in input order
    """
    results = [check_provider(requirements, provider) for provider in candidates]

    passed = sum(1 for r in results if r.passed)
    logger.debug(f"Filter complete: {passed} passed, {len(results) - passed} rejected")
    for r in results:
        if not r.passed:
            logger.debug(f"  Rejected {r.provider.id}: {r.rejection_reason}")

    return results


def filter_providers(
    requirements: JobRequirements, candidates: Iterable[Provider]
) -> list[Provider]:
    """
    Keep only providers that satisfy every hard constraint.

    Returns an empty list (not an error) when nothing matches.
    """
    return [r.provider for r in evaluate_providers(requirements, candidates) if r.passed]


def rejection_summary(results: Iterable[FilterResult]) -> dict[str, int]:
    """Count rejections per constraint name."""
    summary: dict[str, int] = {}
    for r in results:
        if r.passed:
            continue
        for constraint in r.failed_constraints:
            summary[constraint] = summary.get(constraint, 0) + 1
    return summary


def filter_hints(requirements: JobRequirements) -> dict[str, Any]:
    """
    Build the hint dict passed to ``Catalog.list_providers``.

    Hints are advisory; the catalog may return a superset and the filter
    still applies every constraint.
    """
    hints: dict[str, Any] = {}
    if requirements.region is not None:
        hints["region"] = requirements.region
    if requirements.gpu is not None:
        hints["gpu_model"] = requirements.gpu.model
        hints["gpu_units"] = requirements.gpu.units
    if requirements.max_price_per_hour is not None:
        hints["max_price_per_hour"] = requirements.max_price_per_hour
    if requirements.min_availability is not None:
        hints["min_availability"] = requirements.min_availability
    return hints
