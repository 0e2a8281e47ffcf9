"""
ComputeRouter — Shared Utilities

Small helpers used across ComputeRouter components.
"""

import re
import uuid
from datetime import datetime, timezone


# =============================================================================
# ID Generation
# =============================================================================
def generate_job_id() -> str:
    """Generate a unique job ID."""
    return f"job_{uuid.uuid4().hex[:12]}"


# =============================================================================
# Time Utilities
# =============================================================================
def utcnow() -> str:
    """Get current UTC time as ISO string."""
    return datetime.now(timezone.utc).isoformat()


def parse_datetime(dt_str: str) -> datetime:
    """Parse ISO datetime string to datetime object."""
    # Handle both timezone-aware and naive strings
    if dt_str.endswith("Z"):
        dt_str = dt_str[:-1] + "+00:00"
    return datetime.fromisoformat(dt_str)


def to_iso_timestamp(value) -> str | None:
    """
    Normalize a marketplace timestamp to an ISO string.

    Accepts ISO strings, numeric strings and epoch numbers in seconds or
    milliseconds. Returns None when the value cannot be interpreted.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        text = value.strip()
        try:
            return parse_datetime(text).isoformat()
        except ValueError:
            pass
        try:
            value = float(text)
        except ValueError:
            return None
    if not isinstance(value, (int, float)):
        return None

    seconds = float(value)
    if seconds > 1e11:  # milliseconds
        seconds /= 1000
    try:
        return datetime.fromtimestamp(seconds, tz=timezone.utc).isoformat()
    except (OverflowError, OSError, ValueError):
        return None


def format_duration(seconds: float) -> str:
    """Format duration in seconds to human-readable string."""
    if seconds < 60:
        return f"{seconds:.1f}s"
    elif seconds < 3600:
        minutes = seconds / 60
        return f"{minutes:.1f}m"
    else:
        hours = seconds / 3600
        return f"{hours:.1f}h"


# =============================================================================
# Size Parsing
# =============================================================================
_SIZE_PATTERN = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*(ki|mi|gi|ti|k|m|g|t|kb|mb|gb|tb)?\s*$", re.IGNORECASE)

_SIZE_TO_GB = {
    "ki": 1 / (1024 * 1024),
    "mi": 1 / 1024,
    "gi": 1.0,
    "ti": 1024.0,
    "k": 1e-6,
    "kb": 1e-6,
    "m": 1e-3,
    "mb": 1e-3,
    "g": 1.0,
    "gb": 1.0,
    "t": 1000.0,
    "tb": 1000.0,
}


def parse_size_to_gb(value: str | int | float | None) -> float | None:
    """
    Parse a size such as ``"16Gi"``, ``"512Mi"`` or ``32`` into gigabytes.

    Bare numbers are taken as gigabytes. Returns None for None and raises
    ValueError for unparseable strings.
    """
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValueError(f"Invalid size: {value!r}")
    if isinstance(value, (int, float)):
        return float(value)

    match = _SIZE_PATTERN.match(value)
    if not match:
        raise ValueError(f"Invalid size: {value!r}")

    amount = float(match.group(1))
    unit = (match.group(2) or "gi").lower()
    return amount * _SIZE_TO_GB[unit]


# =============================================================================
# String Utilities
# =============================================================================
def truncate(text: str, max_length: int = 100, suffix: str = "...") -> str:
    """Truncate text to maximum length."""
    if len(text) <= max_length:
        return text
    return text[:max_length - len(suffix)] + suffix
