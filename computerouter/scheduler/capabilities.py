"""
Provider Capabilities — Capability tag normalization and matching.

Capability tags are free-form vendor strings ("NVIDIA A100", "nvidia-a100",
"RTX 4090"). They are normalized once at the filter boundary and compared by
case-insensitive substring containment, never by exact equality.
"""

from __future__ import annotations

import re
from typing import Iterable

_WHITESPACE = re.compile(r"\s+")


def normalize_tag(tag: str) -> str:
    """
    Canonical case-folded form of a capability tag.

    Args:
        tag: Raw capability string

    Returns:
        Case-folded tag with surrounding whitespace stripped and inner runs
        of whitespace collapsed to a single space
    """
    return _WHITESPACE.sub(" ", tag.strip()).casefold()


def tag_matches(requested: str, offered: str) -> bool:
    """
    Check whether an offered tag satisfies a requested tag fragment.

    A request for "nvidia" matches "NVIDIA A100"; a request for "rtx4090"
    does not match "NVIDIA A100".
    """
    wanted = normalize_tag(requested)
    if not wanted:
        return False
    return wanted in normalize_tag(offered)


def check_capability(offered_tags: Iterable[str], requested: str) -> bool:
    """
    Check if any offered tag matches the requested capability.

    Args:
        offered_tags: Provider capability tags
        requested: Requested capability fragment

    Returns:
        True if at least one tag contains the request, False otherwise
    """
    return any(tag_matches(requested, tag) for tag in offered_tags)

