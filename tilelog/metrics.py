"""Helpers for exporting counters to metrics systems."""

from __future__ import annotations

_MAX_INT64 = (1 << 63) - 1


def clamp64(value: int) -> int:
    """Clamp an unsigned 64-bit value into the signed 64-bit range."""
    if value < 0:
        raise ValueError(f"value {value} is negative")
    return min(value, _MAX_INT64)