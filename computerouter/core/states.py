"""
ComputeRouter Core — Routing phases.

Submitted -> Filtering -> (NoCandidates -> Failed) | Ranking
Ranking -> BidCollection -> (no bids -> Failed) | BidsReady
BidsReady -> AwaitingManualAccept | AcceptingBid -> Active | Failed
Active -> Closed
in-flight phases -> Cancelled
"""

from enum import Enum


class RoutePhase(str, Enum):
    """Phase of a single routing attempt."""
    SUBMITTED = "Submitted"
    FILTERING = "Filtering"
    NO_CANDIDATES = "NoCandidates"
    RANKING = "Ranking"
    BID_COLLECTION = "BidCollection"
    BIDS_READY = "BidsReady"
    AWAITING_MANUAL_ACCEPT = "AwaitingManualAccept"
    ACCEPTING_BID = "AcceptingBid"
    ACTIVE = "Active"
    CLOSED = "Closed"
    FAILED = "Failed"
    CANCELLED = "Cancelled"


# Phases a finished route_job call can end in
TERMINAL_PHASES = frozenset({
    RoutePhase.AWAITING_MANUAL_ACCEPT,
    RoutePhase.ACTIVE,
    RoutePhase.FAILED,
    RoutePhase.CANCELLED,
    RoutePhase.CLOSED,
})

# Phases holding an open deployment that an external close applies to
CLOSABLE_PHASES = frozenset({
    RoutePhase.ACTIVE,
    RoutePhase.AWAITING_MANUAL_ACCEPT,
})
