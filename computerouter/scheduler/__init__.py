"""
ComputeRouter Scheduler — Provider matching, scoring and ranking.

Turns a provider snapshot into an ordered, explainable ranking:
- filter_providers: hard-constraint elimination (region, GPU, price,
  availability, capacity)
- rank_providers: normalized four-factor weighted scoring
- ProviderScheduler: the same pipeline over an injected catalog

Usage:
    from computerouter.scheduler import filter_providers, rank_providers

    candidates = filter_providers(requirements, providers)
    ranked = rank_providers(requirements, candidates)
    best = ranked[0].provider if ranked else None
"""

from .capabilities import check_capability, normalize_tag
from .filtering import FilterResult, check_provider, filter_providers, rejection_summary
from .scheduler import ProviderScheduler
from .scoring import (
    ProviderScore,
    RankedProvider,
    ScoringWeights,
    explain_score,
    rank_providers,
    recommend,
)
from .suitability import SuitabilityCheck, assess_suitability

__all__ = [
    "ProviderScheduler",
    "check_capability",
    "normalize_tag",
    "FilterResult",
    "check_provider",
    "filter_providers",
    "rejection_summary",
    "ProviderScore",
    "RankedProvider",
    "ScoringWeights",
    "explain_score",
    "rank_providers",
    "recommend",
    "SuitabilityCheck",
    "assess_suitability",
]
