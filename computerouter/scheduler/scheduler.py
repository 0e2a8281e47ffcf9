"""
Provider Scheduler — Catalog-backed provider selection.

Fetches a provider snapshot from the injected catalog and runs it through the
filter/score/rank pipeline. Used by the API for ranking and diagnostics; the
routing orchestrator runs the same pipeline inline so it can log each phase.
"""

from __future__ import annotations

import logging
from typing import Any, TYPE_CHECKING

from computerouter.ledger.models import JobRequirements, Provider
from computerouter.shared.errors import CatalogUnavailableError

from .filtering import evaluate_providers, filter_hints, rejection_summary
from .scoring import RankedProvider, ScoringWeights, rank_providers, recommend

if TYPE_CHECKING:
    from computerouter.catalog.base import BaseCatalog

logger = logging.getLogger("computerouter.scheduler")


class ProviderScheduler:
    """
    Provider selection over a catalog snapshot.

    Usage:
        scheduler = ProviderScheduler(catalog=MockCatalog())
        ranked = await scheduler.rank(requirements)
        best = await scheduler.select_provider(requirements)
    """

    def __init__(
        self,
        catalog: BaseCatalog,
        weights: ScoringWeights | None = None,
    ):
        """
        Initialize ProviderScheduler.

        Args:
            catalog: Catalog adapter supplying provider snapshots
            weights: Default scoring weights (settings when omitted)
        """
        self.catalog = catalog
        self.weights = weights or ScoringWeights.default()

        logger.info(f"ProviderScheduler initialized with catalog {catalog.name!r}")

    # ========================================================================
    # Snapshot
    # ========================================================================

    async def fetch_candidates(self, requirements: JobRequirements) -> list[Provider]:
        """
        Fetch a provider snapshot for the requirements.

        Raises:
            CatalogUnavailableError: If the catalog cannot be reached
        """
        try:
            return list(await self.catalog.list_providers(filter_hints(requirements)))
        except CatalogUnavailableError:
            raise
        except Exception as e:
            raise CatalogUnavailableError("list_providers", e) from e

    # ========================================================================
    # Main Scheduling API
    # ========================================================================

    async def rank(
        self,
        requirements: JobRequirements,
        candidates: list[Provider] | None = None,
        weights: ScoringWeights | None = None,
    ) -> list[RankedProvider]:
        """
        Filter and rank providers.

        Args:
            requirements: Job requirements
            candidates: Explicit snapshot (fetched from the catalog when None)
            weights: Per-call weight override

        Returns:
            Ranked candidates, best first
        """
        if candidates is None:
            candidates = await self.fetch_candidates(requirements)

        results = evaluate_providers(requirements, candidates)
        passed = [r.provider for r in results if r.passed]
        return rank_providers(requirements, passed, weights or self.weights)

    async def select_provider(
        self,
        requirements: JobRequirements,
        weights: ScoringWeights | None = None,
    ) -> RankedProvider | None:
        """Best ranked provider, or None when nothing matches."""
        ranked = await self.rank(requirements, weights=weights)
        if not ranked:
            logger.warning("No providers match requirements")
            return None

        best = ranked[0]
        logger.info(
            f"Selected provider: {best.provider.id} "
            f"(score={best.score.total_score:.2f})"
        )
        return best

    async def diagnose_selection(
        self,
        requirements: JobRequirements,
        candidates: list[Provider] | None = None,
        weights: ScoringWeights | None = None,
    ) -> dict[str, Any]:
        """
        Return provider selection diagnostics for observability/debugging.

        Returns:
            Diagnostics dictionary with candidate counts, per-provider
            rejections, the full score table and the selected provider
        """
        if candidates is None:
            candidates = await self.fetch_candidates(requirements)

        results = evaluate_providers(requirements, candidates)
        passed = [r.provider for r in results if r.passed]
        ranked = rank_providers(requirements, passed, weights or self.weights)

        return {
            "selected_provider": ranked[0].provider.id if ranked else None,
            "total_candidates": len(results),
            "matching_candidates": len(passed),
            "rejection_summary": rejection_summary(results),
            "rejections": [r.to_dict() for r in results if not r.passed],
            "scores": [entry.score.to_dict() for entry in ranked],
            "recommendations": recommend(ranked),
        }

    def __repr__(self) -> str:
        """String representation."""
        return f"ProviderScheduler(catalog={self.catalog.name!r}, weights={self.weights.to_dict()})"
