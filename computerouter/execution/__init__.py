"""
ComputeRouter Execution — Timeout management for marketplace calls.

Provides:
- TimeoutManager: Per-operation catalog call timeouts
- BidWindow: Wall-clock bid collection window with cancellable ticks
- ExecutionTimeoutError: Timeout exception

Usage:
    from computerouter.execution import BidWindow, TimeoutManager

    bids = await TimeoutManager.execute_with_timeout(
        catalog.list_bids(handle),
        timeout_key="list_bids",
    )
"""

from .timeout import BidWindow, ExecutionTimeoutError, TimeoutManager

__all__ = [
    "BidWindow",
    "ExecutionTimeoutError",
    "TimeoutManager",
]
