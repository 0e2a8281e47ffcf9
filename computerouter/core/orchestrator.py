"""
ComputeRouter Core — Routing Orchestrator

Drives a single job from submitted requirements to an active lease, a
manual-accept handoff, or a failure:

1. Submitted → Filtering → Ranking (pure, over a catalog snapshot)
2. BidCollection: open a deployment request and poll for bids
3. BidsReady → AwaitingManualAccept, or AcceptingBid → Active

Every transition appends exactly one RouteLogEntry. Routing failures are
returned on the RouteResult, never raised out of route_job.
"""

from __future__ import annotations

import asyncio
import logging
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, TYPE_CHECKING

from computerouter.execution.timeout import BidWindow, ExecutionTimeoutError, TimeoutManager
from computerouter.ledger.models import Bid, JobRequirements, Lease
from computerouter.scheduler.filtering import evaluate_providers, filter_hints, rejection_summary
from computerouter.scheduler.scoring import RankedProvider, ScoringWeights, explain_score, rank_providers
from computerouter.scheduler.suitability import assess_suitability
from computerouter.shared import settings
from computerouter.shared.errors import (
    BidAcceptanceFailedError,
    CatalogUnavailableError,
    ConfigurationError,
    InvalidTransitionError,
    JobAlreadyRoutingError,
    JobNotFoundError,
    NoBidsReceivedError,
    NoMatchingProvidersError,
    RoutingCrashedError,
    RoutingError,
)
from computerouter.shared.utils import format_duration, parse_datetime, to_iso_timestamp, utcnow

from .route_log import RouteLogEntry
from .states import CLOSABLE_PHASES, RoutePhase, TERMINAL_PHASES

if TYPE_CHECKING:
    from computerouter.catalog.base import BaseCatalog

logger = logging.getLogger("computerouter.core.orchestrator")

LogCallback = Callable[[RouteLogEntry], Any]
EarlyAccept = Callable[[list[Bid]], bool]

_LOG_LEVELS = {
    "info": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
}


def any_bid(bids: list[Bid]) -> bool:
    """Default early-accept condition: stop collecting at the first bid."""
    return len(bids) > 0


def _bid_time(bid: Bid) -> datetime:
    stamp = to_iso_timestamp(bid.created_at)
    if stamp is None:
        return datetime.max.replace(tzinfo=timezone.utc)
    created = parse_datetime(stamp)
    if created.tzinfo is None:
        created = created.replace(tzinfo=timezone.utc)
    return created


def select_best_bid(bids: list[Bid]) -> Bid:
    """Lowest price wins; ties go to the earliest bid, then the lowest bid id."""
    return min(bids, key=lambda b: (b.price, _bid_time(b), b.id))


# =============================================================================
# Run State
# =============================================================================
@dataclass
class JobRun:
    """In-flight state of one routing attempt, owned by the orchestrator."""
    job_id: str
    requirements: JobRequirements
    auto_accept: bool
    bid_timeout: float
    phase: RoutePhase = RoutePhase.SUBMITTED
    ranked: list[RankedProvider] = field(default_factory=list)
    bids: list[Bid] = field(default_factory=list)
    accepted_bid: Bid | None = None
    lease: Lease | None = None
    job_handle: str | None = None
    manifest: str | None = None
    error: RoutingError | None = None
    reason: str | None = None
    logs: list[RouteLogEntry] = field(default_factory=list)
    on_log: LogCallback | None = None
    in_flight: bool = True
    started_at: str = field(default_factory=utcnow)
    finished_at: str | None = None
    cancel_event: asyncio.Event = field(default_factory=asyncio.Event)

    @property
    def is_live(self) -> bool:
        """Still routing, or holding an active lease."""
        return self.in_flight or self.phase == RoutePhase.ACTIVE

    def result(self) -> RouteResult:
        return RouteResult(
            job_id=self.job_id,
            final_state=self.phase,
            lease=self.lease,
            error=self.error,
            reason=self.reason,
            logs=list(self.logs),
            ranked=list(self.ranked),
            bids=list(self.bids),
            accepted_bid=self.accepted_bid,
            job_handle=self.job_handle,
        )

    def to_dict(self) -> dict[str, Any]:
        data = self.result().to_dict()
        data.update({
            "requirements": self.requirements.to_dict(),
            "auto_accept": self.auto_accept,
            "bid_timeout": self.bid_timeout,
            "in_flight": self.in_flight,
            "started_at": self.started_at,
            "finished_at": self.finished_at,
        })
        return data


@dataclass
class RouteResult:
    """Outcome of route_job: a terminal phase plus its explanation."""
    job_id: str
    final_state: RoutePhase
    lease: Lease | None = None
    error: RoutingError | None = None
    reason: str | None = None
    logs: list[RouteLogEntry] = field(default_factory=list)
    ranked: list[RankedProvider] = field(default_factory=list)
    bids: list[Bid] = field(default_factory=list)
    accepted_bid: Bid | None = None
    job_handle: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.final_state in (RoutePhase.ACTIVE, RoutePhase.AWAITING_MANUAL_ACCEPT)

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-serializable dictionary."""
        return {
            "job_id": self.job_id,
            "final_state": self.final_state.value,
            "lease": self.lease.to_dict() if self.lease else None,
            "error": self.error.to_dict() if self.error else None,
            "reason": self.reason,
            "logs": [entry.to_dict() for entry in self.logs],
            "ranked": [entry.to_dict() for entry in self.ranked],
            "bids": [bid.to_dict() for bid in self.bids],
            "accepted_bid": self.accepted_bid.to_dict() if self.accepted_bid else None,
            "job_handle": self.job_handle,
        }


# =============================================================================
# Orchestrator
# =============================================================================
class RoutingOrchestrator:
    """
    Routing state machine over an injected catalog.

    Example:
        orchestrator = RoutingOrchestrator(catalog=MockCatalog())
        result = await orchestrator.route_job("job_1", requirements, auto_accept=True)
        print(result.final_state, result.reason)
    """

    def __init__(
        self,
        catalog: BaseCatalog,
        weights: ScoringWeights | None = None,
        poll_interval: float | None = None,
        default_bid_timeout: float | None = None,
        max_finished_runs: int | None = None,
    ):
        """
        Initialize the RoutingOrchestrator.

        Args:
            catalog: Marketplace adapter
            weights: Scoring weights (settings when omitted)
            poll_interval: Seconds between bid polls (settings when omitted)
            default_bid_timeout: Bid window when route_job gets none (settings when omitted)
            max_finished_runs: Finished runs retained for lookup (settings when omitted)
        """
        self.catalog = catalog
        self.weights = weights or ScoringWeights.default()
        self.poll_interval = (
            settings.BID_POLL_INTERVAL_SECONDS if poll_interval is None else poll_interval
        )
        self.default_bid_timeout = (
            settings.BID_TIMEOUT_SECONDS if default_bid_timeout is None else default_bid_timeout
        )
        self.max_finished_runs = (
            settings.FINISHED_RUN_RETENTION if max_finished_runs is None else max_finished_runs
        )
        if self.poll_interval <= 0:
            raise ConfigurationError(f"Bid poll interval must be positive, got {self.poll_interval}")
        if self.default_bid_timeout < 0:
            raise ConfigurationError(f"Bid timeout must be non-negative, got {self.default_bid_timeout}")
        if self.max_finished_runs < 0:
            raise ConfigurationError(f"Finished run retention must be non-negative, got {self.max_finished_runs}")

        # Live runs: in flight or holding an active lease
        self._runs: dict[str, JobRun] = {}
        # Finished runs, oldest first, bounded by max_finished_runs
        self._finished: OrderedDict[str, JobRun] = OrderedDict()

        logger.info(
            f"RoutingOrchestrator initialized (catalog={catalog.name}, "
            f"poll_interval={self.poll_interval}s, bid_timeout={self.default_bid_timeout}s)"
        )

    # =========================================================================
    # Public API
    # =========================================================================

    async def route_job(
        self,
        job_id: str,
        requirements: JobRequirements,
        auto_accept: bool = False,
        bid_timeout: float | None = None,
        on_log: LogCallback | None = None,
        early_accept: EarlyAccept | None = None,
    ) -> RouteResult:
        """
        Route a job to a provider.

        Args:
            job_id: Caller-chosen job identifier
            requirements: Validated job requirements
            auto_accept: Accept the best bid automatically
            bid_timeout: Bid collection window in seconds
            on_log: Called synchronously with each RouteLogEntry, in order
            early_accept: Stop collecting bids once this returns True

        Returns:
            RouteResult in a terminal phase with a reason

        Raises:
            JobAlreadyRoutingError: If the job id is still routing or leased
        """
        existing = self._runs.get(job_id)
        if existing is not None and existing.is_live:
            raise JobAlreadyRoutingError(job_id, existing.phase.value)

        run = JobRun(
            job_id=job_id,
            requirements=requirements,
            auto_accept=auto_accept,
            bid_timeout=self.default_bid_timeout if bid_timeout is None else bid_timeout,
            on_log=on_log,
        )
        self._runs[job_id] = run

        try:
            await self._drive(run, early_accept or any_bid)
        except asyncio.CancelledError:
            if run.phase not in TERMINAL_PHASES:
                self._finish(
                    run, RoutePhase.CANCELLED,
                    f"Routing task cancelled during {run.phase.value}",
                    {"phase": run.phase.value}, level="warn",
                )
            raise
        except Exception as e:
            logger.exception(f"Routing crashed for {job_id} during {run.phase.value}")
            await self._close_quietly(run)
            self._fail(run, RoutingCrashedError(run.phase.value, e))
        finally:
            run.in_flight = False
            run.finished_at = utcnow()
            if run.phase != RoutePhase.ACTIVE:
                self._retire(run)

        logger.info(f"Routing finished for {job_id}: {run.phase.value} ({run.reason})")
        return run.result()

    async def cancel(self, job_id: str) -> JobRun:
        """
        Request cancellation of a job.

        In-flight runs stop at their next check point; a run already accepting
        a bid can no longer be cancelled. A run awaiting manual
        acceptance has its deployment closed and ends Cancelled.

        Raises:
            JobNotFoundError: If the job is unknown
            InvalidTransitionError: If the job is accepting a bid, Active or already finished
        """
        run = self._get(job_id)
        if run.in_flight and run.phase == RoutePhase.ACCEPTING_BID:
            raise InvalidTransitionError(job_id, run.phase.value, "cancel")
        if run.in_flight:
            logger.info(f"Cancellation requested for {job_id} ({run.phase.value})")
            run.cancel_event.set()
            return run
        if run.phase == RoutePhase.AWAITING_MANUAL_ACCEPT:
            await self._close_quietly(run)
            self._finish(
                run, RoutePhase.CANCELLED,
                "Cancelled while awaiting manual acceptance",
                {"phase": RoutePhase.AWAITING_MANUAL_ACCEPT.value}, level="warn",
            )
            self._retire(run)
            return run
        raise InvalidTransitionError(job_id, run.phase.value, "cancel")

    async def close(self, job_id: str) -> JobRun:
        """
        Close the deployment of an Active or AwaitingManualAccept job.

        Raises:
            JobNotFoundError: If the job is unknown
            InvalidTransitionError: If the job holds no open deployment
            CatalogUnavailableError: If the marketplace refuses the close
        """
        run = self._get(job_id)
        if run.in_flight or run.phase not in CLOSABLE_PHASES or run.job_handle is None:
            raise InvalidTransitionError(job_id, run.phase.value, "close")

        try:
            await TimeoutManager.execute_with_timeout(
                self.catalog.close_deployment(run.job_handle),
                timeout_key="close_deployment",
            )
        except CatalogUnavailableError:
            raise
        except Exception as e:
            raise CatalogUnavailableError("close_deployment", e) from e

        previous = run.phase
        self._finish(
            run, RoutePhase.CLOSED,
            f"Deployment {run.job_handle} closed",
            {"job_handle": run.job_handle, "previous_phase": previous.value},
        )
        self._retire(run)
        return run

    def get_run(self, job_id: str) -> JobRun:
        """
        Raises:
            JobNotFoundError: If the job is unknown
        """
        return self._get(job_id)

    def list_runs(self) -> list[JobRun]:
        return list(self._finished.values()) + list(self._runs.values())

    def active_job_count(self) -> int:
        """Number of jobs still routing or holding an active lease."""
        return sum(1 for run in self._runs.values() if run.is_live)

    # =========================================================================
    # State Machine
    # =========================================================================

    async def _drive(self, run: JobRun, early_accept: EarlyAccept) -> None:
        requirements = run.requirements
        suitability = assess_suitability(requirements)
        self._transition(
            run, RoutePhase.SUBMITTED,
            f"Routing job {run.job_id} (auto_accept={run.auto_accept})",
            {
                "requirements": requirements.to_dict(),
                "auto_accept": run.auto_accept,
                "bid_timeout": run.bid_timeout,
                "suitability": suitability.to_dict(),
            },
        )
        if run.cancel_event.is_set():
            return await self._cancel_run(run)

        # Filtering
        try:
            candidates = await self._catalog_call(
                "list_providers", self.catalog.list_providers(filter_hints(requirements))
            )
        except CatalogUnavailableError as e:
            return self._fail(run, e)

        results = evaluate_providers(requirements, candidates)
        passed = [r.provider for r in results if r.passed]
        summary = rejection_summary(results)
        self._transition(
            run, RoutePhase.FILTERING,
            f"{len(passed)} of {len(results)} providers match requirements",
            {
                "total_candidates": len(results),
                "matching_candidates": len(passed),
                "rejection_summary": summary,
                "rejections": [r.to_dict() for r in results if not r.passed],
            },
        )
        if not passed:
            error = NoMatchingProvidersError(len(results))
            self._transition(
                run, RoutePhase.NO_CANDIDATES,
                "No provider satisfies every hard constraint",
                {"rejection_summary": summary},
                level="warn",
            )
            return self._fail(run, error)
        if run.cancel_event.is_set():
            return await self._cancel_run(run)

        # Ranking
        run.ranked = rank_providers(requirements, passed, self.weights)
        best = run.ranked[0]
        self._transition(
            run, RoutePhase.RANKING,
            f"Selected {best.provider.name} ({best.provider.id}) "
            f"with score {best.score.total_score:.3f}",
            {
                "selected_provider": best.provider.to_dict(),
                "score": best.score.to_dict(),
                "reason": explain_score(best.score),
                "ranking": [
                    {"provider_id": r.provider.id, "total_score": r.score.total_score}
                    for r in run.ranked
                ],
            },
        )
        if run.cancel_event.is_set():
            return await self._cancel_run(run)

        # Bid collection
        try:
            handle = await self._catalog_call(
                "create_deployment_request", self.catalog.create_deployment_request(requirements)
            )
        except CatalogUnavailableError as e:
            return self._fail(run, e)
        run.job_handle = handle.job_handle
        run.manifest = handle.manifest

        window = BidWindow(run.bid_timeout, self.poll_interval)
        self._transition(
            run, RoutePhase.BID_COLLECTION,
            f"Deployment {handle.job_handle} opened; collecting bids for up to "
            f"{format_duration(run.bid_timeout)}",
            {
                "deployment": handle.to_dict(),
                "bid_timeout": run.bid_timeout,
                "poll_interval": self.poll_interval,
            },
        )

        collected = await self._collect_bids(run, window, early_accept)
        if collected is None:
            return await self._cancel_run(run)
        bids, poll_error = collected
        if not bids:
            await self._close_quietly(run)
            if poll_error is not None:
                return self._fail(run, poll_error)
            return self._fail(run, NoBidsReceivedError(run.bid_timeout))

        best_bid = select_best_bid(bids)
        self._transition(
            run, RoutePhase.BIDS_READY,
            f"Received {len(bids)} bid(s); lowest is {best_bid.id} "
            f"from {best_bid.provider_id} at {best_bid.price:g} {best_bid.denom}",
            {
                "bids": [bid.to_dict() for bid in bids],
                "best_bid": best_bid.to_dict(),
                "elapsed": round(window.elapsed, 3),
            },
        )

        if not run.auto_accept:
            return self._finish(
                run, RoutePhase.AWAITING_MANUAL_ACCEPT,
                f"{len(bids)} bid(s) awaiting manual acceptance on {run.job_handle}",
                {"job_handle": run.job_handle, "best_bid": best_bid.to_dict()},
            )
        if run.cancel_event.is_set():
            return await self._cancel_run(run)

        # Acceptance; cancellation is no longer honored once this starts
        self._transition(
            run, RoutePhase.ACCEPTING_BID,
            f"Accepting bid {best_bid.id} from {best_bid.provider_id} "
            f"at {best_bid.price:g} {best_bid.denom}",
            {"bid": best_bid.to_dict()},
        )
        if run.manifest is None:
            await self._close_quietly(run)
            return self._fail(
                run, BidAcceptanceFailedError(best_bid.id, "deployment has no manifest")
            )
        try:
            lease = await TimeoutManager.execute_with_timeout(
                self.catalog.accept_bid(run.job_handle, best_bid.id, run.manifest),
                timeout_key="accept_bid",
            )
        except Exception as e:
            logger.warning(f"Bid acceptance failed for {run.job_id}: {e}")
            await self._close_quietly(run)
            return self._fail(run, BidAcceptanceFailedError(best_bid.id, e))

        run.accepted_bid = best_bid
        run.lease = lease
        self._finish(
            run, RoutePhase.ACTIVE,
            f"Lease {lease.id} active with {lease.provider_id}; accepted bid "
            f"{best_bid.id} at {best_bid.price:g} {best_bid.denom}",
            {"lease": lease.to_dict(), "accepted_bid": best_bid.to_dict()},
        )

    async def _collect_bids(
        self,
        run: JobRun,
        window: BidWindow,
        early_accept: EarlyAccept,
    ) -> tuple[list[Bid], CatalogUnavailableError | None] | None:
        """
        Poll for bids until the window closes or early_accept holds.

        Each poll is bounded by the remaining window and abandoned as soon as
        cancellation is requested.

        Returns:
            (bids, last poll error), or None when cancelled
        """
        poll_error = None
        while True:
            if run.cancel_event.is_set():
                return None

            try:
                polled = await self._poll_bids(run, window)
            except CatalogUnavailableError as e:
                if window.expired and isinstance(e.cause, ExecutionTimeoutError):
                    logger.info(f"Bid poll for {run.job_id} cut off by the bid window")
                else:
                    logger.warning(f"Bid poll failed for {run.job_id}: {e}")
                    poll_error = e
            else:
                if polled is None:
                    return None
                run.bids = list(polled)
                poll_error = None

            if run.bids and early_accept(run.bids):
                return run.bids, poll_error
            if window.expired:
                return run.bids, poll_error

            logger.debug(
                f"{run.job_id}: {len(run.bids)} bid(s), "
                f"{window.remaining:.1f}s left in bid window"
            )
            if await window.wait_tick(run.cancel_event):
                return None

    async def _poll_bids(self, run: JobRun, window: BidWindow) -> list[Bid] | None:
        """
        One list_bids call raced against the cancel event.

        Returns:
            The polled bids, or None when cancellation won the race
        """
        poll = asyncio.ensure_future(
            self._catalog_call(
                "list_bids",
                self.catalog.list_bids(run.job_handle),
                timeout=window.poll_timeout(TimeoutManager.get_timeout("list_bids")),
            )
        )
        cancelled = asyncio.ensure_future(run.cancel_event.wait())
        try:
            await asyncio.wait({poll, cancelled}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in (poll, cancelled):
                if not task.done():
                    task.cancel()

        if run.cancel_event.is_set():
            if poll.done() and not poll.cancelled():  # mark a failed poll as retrieved
                poll.exception()
            return None
        return poll.result()

    # =========================================================================
    # Helpers
    # =========================================================================

    async def _catalog_call(
        self,
        operation: str,
        coro: Awaitable[Any],
        timeout: float | None = None,
    ) -> Any:
        try:
            return await TimeoutManager.execute_with_timeout(
                coro, timeout=timeout, timeout_key=operation
            )
        except CatalogUnavailableError:
            raise
        except Exception as e:
            raise CatalogUnavailableError(operation, e) from e

    async def _close_quietly(self, run: JobRun) -> None:
        """Best-effort deployment close; failures are logged only."""
        if run.job_handle is None:
            return
        try:
            await TimeoutManager.execute_with_timeout(
                self.catalog.close_deployment(run.job_handle),
                timeout_key="close_deployment",
            )
        except Exception as e:
            logger.warning(f"Failed to close deployment {run.job_handle} for {run.job_id}: {e}")

    async def _cancel_run(self, run: JobRun) -> None:
        previous = run.phase
        await self._close_quietly(run)
        self._finish(
            run, RoutePhase.CANCELLED,
            f"Routing cancelled during {previous.value}",
            {"phase": previous.value, "job_handle": run.job_handle},
            level="warn",
        )

    def _fail(self, run: JobRun, error: RoutingError) -> None:
        run.error = error
        self._finish(
            run, RoutePhase.FAILED,
            f"{error.kind}: {error}",
            {"error": error.to_dict(), "phase": run.phase.value},
            level="error",
        )

    def _finish(
        self,
        run: JobRun,
        phase: RoutePhase,
        message: str,
        payload: dict[str, Any] | None = None,
        level: str = "info",
    ) -> None:
        run.reason = message
        self._transition(run, phase, message, payload, level)

    def _transition(
        self,
        run: JobRun,
        phase: RoutePhase,
        message: str,
        payload: dict[str, Any] | None = None,
        level: str = "info",
    ) -> RouteLogEntry:
        run.phase = phase
        entry = RouteLogEntry(
            job_id=run.job_id,
            phase=phase,
            message=message,
            payload=payload or {},
            level=level,
        )
        run.logs.append(entry)
        logger.log(_LOG_LEVELS.get(level, logging.INFO), f"[{run.job_id}] {phase.value}: {message}")

        if run.on_log is not None:
            try:
                run.on_log(entry)
            except Exception:
                logger.exception(f"Route log callback failed for {run.job_id} ({phase.value})")
        return entry

    def _retire(self, run: JobRun) -> None:
        """Move a finished run out of the live table into the bounded history."""
        if self._runs.get(run.job_id) is run:
            del self._runs[run.job_id]
        self._finished.pop(run.job_id, None)
        if self.max_finished_runs == 0:
            return
        self._finished[run.job_id] = run
        while len(self._finished) > self.max_finished_runs:
            evicted_id, evicted = self._finished.popitem(last=False)
            logger.debug(f"Dropped finished run {evicted_id} ({evicted.phase.value}) from history")

    def _get(self, job_id: str) -> JobRun:
        run = self._runs.get(job_id) or self._finished.get(job_id)
        if run is None:
            raise JobNotFoundError(job_id)
        return run
