"""
Workload Suitability — Heuristic fit of a workload for a decentralized marketplace.

Informational only: routing proceeds regardless of the verdict, the result is
attached to the Submitted entry of the routing log.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from computerouter.ledger.models import JobRequirements

SUITABILITY_THRESHOLD = 0.5
LARGE_STORAGE_GB = 1000
LONG_RUNNING_MARKERS = ("train", "long")


@dataclass
class SuitabilityCheck:
    suitable: bool
    score: float
    reasons: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"suitable": self.suitable, "score": self.score, "reasons": list(self.reasons)}


def assess_suitability(requirements: JobRequirements) -> SuitabilityCheck:
    """
    Score how well a workload fits marketplace deployment.

    Args:
        requirements: Job requirements

    Returns:
        SuitabilityCheck with a 0.0-1.0 score and the contributing reasons
    """
    reasons = []
    score = 0.0

    if requirements.gpu is not None:
        score += 0.3
        reasons.append("GPU workloads are well served by the marketplace")

    if requirements.image:
        score += 0.2
        reasons.append("Container deployment supported")

    if requirements.storage_gb > LARGE_STORAGE_GB:
        score -= 0.1
        reasons.append("Large storage may be expensive")

    if not any(marker in part for part in requirements.command for marker in LONG_RUNNING_MARKERS):
        score += 0.2
        reasons.append("Suitable job duration")

    if requirements.port and requirements.expose:
        score += 0.2
        reasons.append("Web service deployment supported")

    suitable = score >= SUITABILITY_THRESHOLD
    if not suitable:
        reasons.append("Low suitability score - consider alternatives")

    return SuitabilityCheck(suitable=suitable, score=min(1.0, max(0.0, score)), reasons=reasons)
