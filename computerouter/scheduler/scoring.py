"""
Provider Scoring — Algorithms for scoring and ranking marketplace providers.

Scores providers on four factors, each normalized to 0.0-1.0 (higher is better):
- Price (inverse-normalized over the candidate set's price range)
- Reliability (uptime percentage)
- Performance (hardware headroom over the requested resources)
- Latency (inverse-normalized over the candidate set's latency range)

Final score is the weighted sum of the four factors. Every ranked entry keeps
its full ProviderScore so any position in the ranking can be explained.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterable, NamedTuple

from computerouter.ledger.models import HardwareSpecs, JobRequirements, Provider
from computerouter.shared import settings
from computerouter.shared.errors import InvalidWeightsError

logger = logging.getLogger("computerouter.scheduler.scoring")


# ============================================================================
# Weights
# ============================================================================


@dataclass(frozen=True)
class ScoringWeights:
    """
    Factor weights for the total score.

    Weights are not required to sum to 1.0 but must be non-negative.
    """

    price: float = 0.4
    reliability: float = 0.3
    performance: float = 0.2
    latency: float = 0.1

    def __post_init__(self) -> None:
        for name in ("price", "reliability", "performance", "latency"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, float)) or value < 0:
                raise InvalidWeightsError(f"Weight '{name}' must be a non-negative number, got {value!r}")

    @classmethod
    def default(cls) -> ScoringWeights:
        """Weights configured through settings (COMPUTEROUTER_WEIGHT_*)."""
        return cls(
            price=settings.WEIGHT_PRICE,
            reliability=settings.WEIGHT_RELIABILITY,
            performance=settings.WEIGHT_PERFORMANCE,
            latency=settings.WEIGHT_LATENCY,
        )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ScoringWeights:
        """Override the default weights with the keys present in ``data``."""
        base = cls.default()
        return cls(
            price=data.get("price", base.price),
            reliability=data.get("reliability", base.reliability),
            performance=data.get("performance", base.performance),
            latency=data.get("latency", base.latency),
        )

    def to_dict(self) -> dict[str, float]:
        return {
            "price": self.price,
            "reliability": self.reliability,
            "performance": self.performance,
            "latency": self.latency,
        }


# ============================================================================
# Score Record
# ============================================================================


@dataclass(frozen=True)
class ProviderScore:
    """
    Multi-factor score for a provider.

    Attributes:
        provider_id: ID of the scored provider
        price_score: Price competitiveness (0.0-1.0)
        reliability_score: Uptime-derived reliability (0.0-1.0)
        performance_score: Hardware headroom (0.0-1.0)
        latency_score: Network latency (0.0-1.0)
        total_score: Weighted sum of the four factors
        weights: Weights used to compute total_score
    """

    provider_id: str
    price_score: float
    reliability_score: float
    performance_score: float
    latency_score: float
    total_score: float
    weights: ScoringWeights

    @classmethod
    def calculate(
        cls,
        provider_id: str,
        price_score: float,
        reliability_score: float,
        performance_score: float,
        latency_score: float,
        weights: ScoringWeights,
    ) -> ProviderScore:
        """
        Calculate weighted total score.

        Args:
            provider_id: Provider ID
            price_score: Price competitiveness (0.0-1.0)
            reliability_score: Reliability (0.0-1.0)
            performance_score: Hardware headroom (0.0-1.0)
            latency_score: Latency (0.0-1.0)
            weights: Factor weights

        Returns:
            ProviderScore with total_score calculated
        """
        return cls(
            provider_id=provider_id,
            price_score=price_score,
            reliability_score=reliability_score,
            performance_score=performance_score,
            latency_score=latency_score,
            total_score=_weighted_total(
                price_score, reliability_score, performance_score, latency_score, weights
            ),
            weights=weights,
        )

    def recompute_total(self) -> float:
        """Recompute the total from the components and weights."""
        return _weighted_total(
            self.price_score,
            self.reliability_score,
            self.performance_score,
            self.latency_score,
            self.weights,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "provider_id": self.provider_id,
            "total_score": self.total_score,
            "price_score": self.price_score,
            "reliability_score": self.reliability_score,
            "performance_score": self.performance_score,
            "latency_score": self.latency_score,
            "weights": self.weights.to_dict(),
        }

    def __repr__(self) -> str:
        """String representation for logging."""
        return (
            f"ProviderScore({self.provider_id}: "
            f"total={self.total_score:.2f}, "
            f"price={self.price_score:.2f}, "
            f"reliability={self.reliability_score:.2f}, "
            f"performance={self.performance_score:.2f}, "
            f"latency={self.latency_score:.2f})"
        )


class RankedProvider(NamedTuple):
    """A provider paired with its full score."""

    provider: Provider
    score: ProviderScore

    def to_dict(self) -> dict[str, Any]:
        return {"provider": self.provider.to_dict(), "score": self.score.to_dict()}


def _weighted_total(
    price: float,
    reliability: float,
    performance: float,
    latency: float,
    weights: ScoringWeights,
) -> float:
    return (
        price * weights.price
        + reliability * weights.reliability
        + performance * weights.performance
        + latency * weights.latency
    )


# ============================================================================
# Individual Scoring Functions
# ============================================================================


def _clamp(value: float) -> float:
    return min(1.0, max(0.0, value))


def calculate_price_score(price: float, min_price: float, max_price: float) -> float:
    """
    Inverse-normalize a price over the candidate price range.

    Returns:
        1.0 for the cheapest candidate, 0.0 for the most expensive, linear
        in between; 1.0 when every candidate has the same price
    """
    if max_price == min_price:
        return 1.0
    return _clamp((max_price - price) / (max_price - min_price))


def calculate_reliability_score(uptime_percentage: float) -> float:
    """Uptime percentage mapped to 0.0-1.0."""
    return _clamp(uptime_percentage / 100.0)


def _headroom(offered: float, requested: float) -> float:
    """Surplus ratio of offered over requested, capped to 0.0-1.0."""
    return _clamp((offered - requested) / requested)


def calculate_performance_score(
    specs: HardwareSpecs,
    requirements: JobRequirements,
    best_vcpus: float,
    best_memory: float,
) -> float:
    """
    Score declared hardware headroom relative to the request.

    Each requested dimension contributes its surplus ratio, so a provider
    offering twice what was asked scores 1.0 on that dimension and one that
    merely meets it scores 0.0. Without any requested dimension the provider
    is compared to the best vCPU/memory offer in the candidate set.

    Args:
        specs: Provider hardware
        requirements: Requested resources
        best_vcpus: Largest vCPU count among candidates
        best_memory: Largest memory among candidates

    Returns:
        Performance score (0.0-1.0)
    """
    ratios = []
    if requirements.cpu > 0:
        ratios.append(_headroom(specs.vcpus, requirements.cpu))
    if requirements.memory_gb > 0:
        ratios.append(_headroom(specs.memory_gb, requirements.memory_gb))
    if requirements.storage_gb > 0:
        ratios.append(_headroom(specs.storage_gb, requirements.storage_gb))
    if requirements.gpu is not None and specs.gpu_units is not None:
        ratios.append(_headroom(specs.gpu_units, requirements.gpu.units))

    if ratios:
        return sum(ratios) / len(ratios)

    vcpu_ratio = specs.vcpus / best_vcpus if best_vcpus > 0 else 1.0
    memory_ratio = specs.memory_gb / best_memory if best_memory > 0 else 1.0
    return _clamp((vcpu_ratio + memory_ratio) / 2)


def calculate_latency_score(latency_ms: float, min_latency: float, max_latency: float) -> float:
    """
    Inverse-normalize latency over the candidate latency range.

    Returns:
        1.0 for the lowest latency, 0.0 for the highest; 1.0 when all equal
    """
    if max_latency == min_latency:
        return 1.0
    return _clamp((max_latency - latency_ms) / (max_latency - min_latency))


# ============================================================================
# Ranking
# ============================================================================


def rank_providers(
    requirements: JobRequirements,
    candidates: Iterable[Provider],
    weights: ScoringWeights | None = None,
) -> list[RankedProvider]:
    """
    Score and order filtered candidates.

    Pure function: no caching, so identical inputs yield identical output.
    Malformed providers are logged and skipped.

    Args:
        requirements: Job requirements the candidates were filtered against
        candidates: Filtered providers
        weights: Factor weights (defaults to settings)

    Returns:
        Candidates paired with their full scores, ordered by descending
        total score, then ascending price, then provider id
    """
    weights = weights or ScoringWeights.default()

    valid = []
    for provider in candidates:
        problems = provider.problems()
        if problems:
            logger.warning(f"Skipping malformed provider {provider.id!r} in ranking: {', '.join(problems)}")
            continue
        valid.append(provider)

    if not valid:
        return []

    prices = [p.price_per_hour for p in valid]
    latencies = [p.latency_ms for p in valid]
    min_price, max_price = min(prices), max(prices)
    min_latency, max_latency = min(latencies), max(latencies)
    best_vcpus = max(p.specs.vcpus for p in valid)
    best_memory = max(p.specs.memory_gb for p in valid)

    ranked = [
        RankedProvider(
            provider=provider,
            score=ProviderScore.calculate(
                provider_id=provider.id,
                price_score=calculate_price_score(provider.price_per_hour, min_price, max_price),
                reliability_score=calculate_reliability_score(provider.uptime),
                performance_score=calculate_performance_score(
                    provider.specs, requirements, best_vcpus, best_memory
                ),
                latency_score=calculate_latency_score(provider.latency_ms, min_latency, max_latency),
                weights=weights,
            ),
        )
        for provider in valid
    ]

    ranked.sort(key=lambda r: (-r.score.total_score, r.provider.price_per_hour, r.provider.id))

    for i, entry in enumerate(ranked[:3], 1):
        logger.debug(f"  #{i}: {entry.score}")

    return ranked


# ============================================================================
# Explanations
# ============================================================================


def explain_score(score: ProviderScore, threshold: float = 0.8) -> str:
    """
    Describe the strengths behind a score.

    Args:
        score: Provider score
        threshold: Component value above which it counts as a strength

    Returns:
        Human-readable reason
    """
    strengths = []
    if score.price_score > threshold:
        strengths.append("best price")
    if score.reliability_score > threshold:
        strengths.append("high reliability")
    if score.performance_score > threshold:
        strengths.append("great performance")
    if score.latency_score > threshold:
        strengths.append("low latency")

    if not strengths:
        return "Balanced overall score"
    return "Selected for " + ", ".join(strengths)


def recommend(ranked: list[RankedProvider], limit: int = 3) -> list[dict[str, Any]]:
    """Top ranked entries with their full score and a reason."""
    return [
        {
            "provider": entry.provider.to_dict(),
            "score": entry.score.to_dict(),
            "reason": explain_score(entry.score),
        }
        for entry in ranked[:limit]
    ]
