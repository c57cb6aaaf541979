"""Percentage helpers shared by navigation and progress aggregation."""

from __future__ import annotations

import math


def round_half_up(value: float) -> int:
    """Round .5 away from zero for non-negative values (not banker's rounding)."""
    return int(math.floor(value + 0.5))


def percent_of(part: int, total: int) -> int:
    """`round(100 * part / total)`, 0 when total is 0, clamped to 0..100."""
    if total <= 0:
        return 0
    return max(0, min(100, round_half_up(100 * part / total)))


__all__ = ["round_half_up", "percent_of"]
