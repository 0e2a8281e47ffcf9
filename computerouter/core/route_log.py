"""
ComputeRouter Core — Route log.

One RouteLogEntry is appended per phase transition of a routing attempt.
The entries form the audit trail returned on every RouteResult.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable

from computerouter.shared.utils import parse_datetime, truncate, utcnow

from .states import RoutePhase

LEVEL_MARKERS = {
    "info": "INFO ",
    "warn": "WARN ",
    "error": "ERROR",
}


@dataclass
class RouteLogEntry:
    """A single audit record for one phase transition."""
    job_id: str
    phase: RoutePhase
    message: str
    payload: dict[str, Any] = field(default_factory=dict)
    level: str = "info"
    timestamp: str = field(default_factory=utcnow)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "timestamp": self.timestamp,
            "job_id": self.job_id,
            "phase": self.phase.value,
            "level": self.level,
            "message": self.message,
            "payload": self.payload,
        }


def format_route_logs(entries: Iterable[RouteLogEntry], max_message_length: int = 160) -> str:
    """
    Render route log entries as plain text, one line per entry.

    Example line:
        [12:04:31] INFO  Ranking        Selected GPU Cloud East (prov-1) ...
    """
    lines = []
    for entry in entries:
        try:
            stamp = parse_datetime(entry.timestamp).strftime("%H:%M:%S")
        except ValueError:
            stamp = entry.timestamp
        marker = LEVEL_MARKERS.get(entry.level, entry.level.upper())
        lines.append(
            f"[{stamp}] {marker} {entry.phase.value:<20} "
            f"{truncate(entry.message, max_message_length)}"
        )
    return "\n".join(lines)
