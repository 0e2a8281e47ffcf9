"""
ComputeRouter — Shared Error Definitions

Common exceptions used across all ComputeRouter components.

Routing outcome errors (``RoutingError`` subclasses) are carried as values on
``RouteResult.error`` and are never raised out of ``route_job``.
"""


class ComputeRouterError(Exception):
    """Base exception for all ComputeRouter errors."""
    pass


# =============================================================================
# Configuration Errors
# =============================================================================
class ConfigurationError(ComputeRouterError):
    """Raised when required configuration is missing or invalid."""
    pass


class MissingEnvironmentVariableError(ConfigurationError):
    """Raised when a required environment variable is not set."""
    def __init__(self, var_name: str):
        self.var_name = var_name
        super().__init__(f"Missing required environment variable: {var_name}")


# =============================================================================
# Model Errors
# =============================================================================
class ModelError(ComputeRouterError):
    """Base exception for requirement/provider model errors."""
    pass


class InvalidRequirementsError(ModelError):
    """Raised when job requirements violate their invariants."""
    pass


class MalformedProviderError(ModelError):
    """Raised when a catalog provider record cannot be parsed."""
    def __init__(self, message: str, provider_id: str | None = None):
        self.provider_id = provider_id
        super().__init__(message)


class InvalidWeightsError(ModelError):
    """Raised when scoring weights are negative or not numeric."""
    pass


# =============================================================================
# Routing Outcome Errors
# =============================================================================
class RoutingError(ComputeRouterError):
    """Base class for terminal routing failures reported on a RouteResult."""

    kind: str = "RoutingError"

    def __init__(self, message: str, cause: BaseException | None = None):
        self.cause = cause
        super().__init__(message)

    def to_dict(self) -> dict[str, str | None]:
        return {
            "kind": self.kind,
            "message": str(self),
            "cause": repr(self.cause) if self.cause is not None else None,
        }


class NoMatchingProvidersError(RoutingError):
    """Filtering produced an empty candidate set."""

    kind = "NoMatchingProviders"

    def __init__(self, total_candidates: int = 0):
        self.total_candidates = total_candidates
        super().__init__(
            f"No matching providers ({total_candidates} checked); relax the requirements"
        )


class NoBidsReceivedError(RoutingError):
    """The bid-collection window elapsed with zero bids."""

    kind = "NoBidsReceived"

    def __init__(self, timeout_seconds: float):
        self.timeout_seconds = timeout_seconds
        super().__init__(f"No bids received within {timeout_seconds:g}s")


class BidAcceptanceFailedError(RoutingError):
    """Accepting the chosen bid failed. Never retried automatically."""

    kind = "BidAcceptanceFailed"

    def __init__(self, bid_id: str, cause: BaseException | str):
        self.bid_id = bid_id
        detail = cause if isinstance(cause, str) else f"{type(cause).__name__}: {cause}"
        super().__init__(
            f"Bid acceptance failed for {bid_id}: {detail}",
            cause=cause if isinstance(cause, BaseException) else None,
        )


class CatalogUnavailableError(RoutingError):
    """The catalog adapter could not be reached."""

    kind = "CatalogUnavailable"

    def __init__(self, operation: str, cause: BaseException | str):
        self.operation = operation
        detail = cause if isinstance(cause, str) else f"{type(cause).__name__}: {cause}"
        super().__init__(
            f"Catalog unavailable during {operation}: {detail}",
            cause=cause if isinstance(cause, BaseException) else None,
        )


class RoutingCrashedError(RoutingError):
    """An unexpected exception escaped a routing phase."""

    kind = "RoutingCrashed"

    def __init__(self, phase: str, cause: BaseException):
        self.phase = phase
        super().__init__(
            f"Routing failed during {phase}: {type(cause).__name__}: {cause}",
            cause=cause,
        )


# =============================================================================
# Job Table Errors
# =============================================================================
class JobError(ComputeRouterError):
    """Base exception for job table errors."""
    pass


class JobNotFoundError(JobError):
    """Raised when a job ID is not tracked by the orchestrator."""
    def __init__(self, job_id: str):
        self.job_id = job_id
        super().__init__(f"Job not found: {job_id}")


class JobAlreadyRoutingError(JobError):
    """Raised when a second routing attempt starts for a live job ID."""
    def __init__(self, job_id: str, phase: str):
        self.job_id = job_id
        self.phase = phase
        super().__init__(f"Job {job_id} is already routing (phase={phase})")


class InvalidTransitionError(JobError):
    """Raised when an external request does not apply to the job's phase."""
    def __init__(self, job_id: str, phase: str, action: str):
        self.job_id = job_id
        self.phase = phase
        self.action = action
        super().__init__(f"Cannot {action} job {job_id} in phase {phase}")
