"""Timeout management and route log formatting tests."""

from __future__ import annotations

import asyncio
from pathlib import Path
import sys

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from computerouter.core.route_log import RouteLogEntry, format_route_logs
from computerouter.core.states import RoutePhase
from computerouter.execution.timeout import BidWindow, ExecutionTimeoutError, TimeoutManager


@pytest.mark.asyncio
async def test_execute_with_timeout_returns_result() -> None:
    async def quick():
        return 42

    assert await TimeoutManager.execute_with_timeout(quick(), timeout=1) == 42


@pytest.mark.asyncio
async def test_execute_with_timeout_raises() -> None:
    with pytest.raises(ExecutionTimeoutError) as exc_info:
        await TimeoutManager.execute_with_timeout(asyncio.sleep(1), timeout=0.01, timeout_key="list_bids")
    assert exc_info.value.timeout_seconds == 0.01


def test_timeout_lookup_falls_back_to_default() -> None:
    assert TimeoutManager.get_timeout("accept_bid") == TimeoutManager.DEFAULT_TIMEOUTS["accept_bid"]
    assert TimeoutManager.get_timeout("unknown") == TimeoutManager.DEFAULT_TIMEOUTS["catalog_call"]
    assert TimeoutManager.calculate_remaining_time(5, 3) == 0.0
    assert TimeoutManager.is_timeout_exceeded(3, 3)


@pytest.mark.asyncio
async def test_bid_window_tick_clamped_to_remaining() -> None:
    window = BidWindow(timeout_seconds=0.05, poll_interval=10)
    assert window.next_wait() <= 0.05

    cancelled = await window.wait_tick(asyncio.Event())
    assert cancelled is False
    await asyncio.sleep(0.02)
    assert window.expired
    assert window.next_wait() == 0.0


@pytest.mark.asyncio
async def test_bid_window_wakes_on_cancel() -> None:
    window = BidWindow(timeout_seconds=30, poll_interval=10)
    event = asyncio.Event()
    asyncio.get_running_loop().call_later(0.01, event.set)

    assert await window.wait_tick(event) is True
    assert window.elapsed < 5


def test_format_route_logs_one_line_per_entry() -> None:
    entries = [
        RouteLogEntry(
            job_id="j",
            phase=RoutePhase.SUBMITTED,
            message="Routing job j",
            timestamp="2026-01-01T12:04:31+00:00",
        ),
        RouteLogEntry(
            job_id="j",
            phase=RoutePhase.FAILED,
            message="x" * 500,
            level="error",
            timestamp="2026-01-01T12:05:00+00:00",
        ),
    ]
    text = format_route_logs(entries)
    lines = text.splitlines()
    assert len(lines) == 2
    assert lines[0].startswith("[12:04:31] INFO  Submitted")
    assert "ERROR" in lines[1]
    assert lines[1].endswith("...")
