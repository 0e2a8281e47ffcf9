"""
Timeout Management — Deadlines for catalog calls and bid collection.

Two levels of timeout:
1. Catalog Call Timeout - Maximum for a single marketplace operation
2. Bid Window - Wall-clock window for collecting bids, polled in ticks

Prevents a hung marketplace from stalling a routing attempt.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, TypeVar

from computerouter.shared.errors import ComputeRouterError

logger = logging.getLogger("computerouter.execution.timeout")

T = TypeVar("T")

# Shortest deadline given to a single poll near the end of a window
MIN_POLL_TIMEOUT = 0.05


class ExecutionTimeoutError(ComputeRouterError):
    """Raised when a catalog call exceeds its timeout."""

    def __init__(self, message: str, timeout_seconds: float):
        """
        Initialize timeout error.

        Args:
            message: Error message
            timeout_seconds: Timeout value that was exceeded
        """
        super().__init__(message)
        self.timeout_seconds = timeout_seconds


class TimeoutManager:
    """
    Centralized timeout management for catalog operations.

    Usage:
        providers = await TimeoutManager.execute_with_timeout(
            catalog.list_providers(hints),
            timeout_key="list_providers",
        )
    """

    # ========================================================================
    # Default Timeout Values (in seconds)
    # ========================================================================

    DEFAULT_TIMEOUTS: dict[str, float] = {
        "catalog_call": 60,  # default for unknown operations
        "list_providers": 60,
        "create_deployment_request": 120,
        "list_bids": 30,
        "accept_bid": 180,  # lease creation waits on chain confirmation
        "close_deployment": 120,
        "health_check": 15,
    }

    # ========================================================================
    # Timeout Execution
    # ========================================================================

    @classmethod
    async def execute_with_timeout(
        cls,
        coro: Awaitable[T],
        timeout: float | None = None,
        timeout_key: str | None = None,
    ) -> T:
        """
        Execute coroutine with timeout.

        Args:
            coro: Async coroutine to execute
            timeout: Timeout in seconds (if None, uses timeout_key)
            timeout_key: Key to look up timeout in DEFAULT_TIMEOUTS

        Returns:
            Result of coroutine execution

        Raises:
            ExecutionTimeoutError: If execution exceeds timeout
        """
        if timeout is None:
            timeout = cls.get_timeout(timeout_key or "catalog_call")

        logger.debug(f"Executing with timeout: {timeout}s (key={timeout_key})")

        try:
            return await asyncio.wait_for(coro, timeout=timeout)
        except asyncio.TimeoutError as e:
            error_msg = f"Execution exceeded timeout of {timeout}s"
            if timeout_key:
                error_msg += f" (timeout_key={timeout_key})"

            logger.error(error_msg)
            raise ExecutionTimeoutError(error_msg, timeout) from e

    @classmethod
    def get_timeout(cls, timeout_key: str) -> float:
        """Get timeout value for a specific key."""
        return cls.DEFAULT_TIMEOUTS.get(timeout_key, cls.DEFAULT_TIMEOUTS["catalog_call"])

    @classmethod
    def set_timeout(cls, timeout_key: str, timeout_seconds: float) -> None:
        """
        Set custom timeout for a specific key.

        Args:
            timeout_key: Timeout key
            timeout_seconds: Timeout value in seconds
        """
        cls.DEFAULT_TIMEOUTS[timeout_key] = timeout_seconds
        logger.info(f"Set timeout for '{timeout_key}' to {timeout_seconds}s")

    # ========================================================================
    # Timeout Calculation Helpers
    # ========================================================================

    @classmethod
    def calculate_remaining_time(cls, elapsed_seconds: float, total_timeout: float) -> float:
        """Remaining time in seconds (minimum 0)."""
        return max(0.0, total_timeout - elapsed_seconds)

    @classmethod
    def is_timeout_exceeded(cls, elapsed_seconds: float, timeout_seconds: float) -> bool:
        return elapsed_seconds >= timeout_seconds


class BidWindow:
    """
    Bounded wall-clock window for bid collection.

    Measured with the event loop clock. Each tick waits for the poll
    interval, clamped to the remaining window, and wakes early when the
    cancel event is set.
    """

    def __init__(self, timeout_seconds: float, poll_interval: float):
        self.timeout_seconds = timeout_seconds
        self.poll_interval = poll_interval
        self._loop = asyncio.get_running_loop()
        self.started_at = self._loop.time()

    @property
    def elapsed(self) -> float:
        return self._loop.time() - self.started_at

    @property
    def remaining(self) -> float:
        return TimeoutManager.calculate_remaining_time(self.elapsed, self.timeout_seconds)

    @property
    def expired(self) -> bool:
        return TimeoutManager.is_timeout_exceeded(self.elapsed, self.timeout_seconds)

    def next_wait(self) -> float:
        return min(self.poll_interval, self.remaining)

    def poll_timeout(self, cap: float) -> float:
        """Deadline for one poll: the remaining window, capped and floored."""
        return max(min(cap, self.remaining), MIN_POLL_TIMEOUT)

    async def wait_tick(self, cancel_event: asyncio.Event) -> bool:
        """
        Sleep until the next poll.

        Returns:
            True if cancellation was requested during the wait
        """
        delay = self.next_wait()
        if delay <= 0:
            return cancel_event.is_set()
        try:
            await asyncio.wait_for(cancel_event.wait(), timeout=delay)
        except asyncio.TimeoutError:
            return False
        return True
