"""Pure numeric helpers for column/row sizing.

Everything here is total: callers get a result for any input, degenerate
inputs included.  The only caller obligation is ``2 * min_extent <= total``
for :func:`redistribute`; when it is violated the result favors
``min_extent`` and the two extents no longer sum to ``total``.
"""

from __future__ import annotations

import math
from typing import Literal

OuterMode = Literal["edge", "scale"]


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves towards +infinity."""
    return math.floor(value + 0.5)


def round_to_step(value: float, step: float) -> float:
    """Nearest multiple of *step*; identity when ``step <= 0``."""
    if step <= 0:
        return value
    return round_half_up(value / step) * step


def normalize_ratios(extents: list[float]) -> list[float]:
    """Turn pixel extents into ratios that sum to 1.

    Each extent is floored at 1 before summing so zero or negative inputs
    never produce division artifacts.
    """
    if not extents:
        return []
    floored = [max(1.0, e) for e in extents]
    total = sum(floored)
    if total <= 0:
        return [1 / len(extents)] * len(extents)
    return [e / total for e in floored]


def redistribute(
    left: float,
    right: float,
    total: float,
    delta: float,
    min_extent: float,
    snap_step: float,
    bypass_snap: bool,
) -> tuple[float, float]:
    """Move the boundary between two adjacent extents by *delta*.

    The order is clamp, snap, re-clamp: snapping an unclamped value can push
    it back out of bounds.  *right* is accepted for call-site symmetry; the
    result is derived from *total*.
    """
    new_left = _clamp(left + delta, min_extent, total - min_extent)
    if not bypass_snap and snap_step > 0:
        new_left = round_to_step(new_left, snap_step)
        new_left = _clamp(new_left, min_extent, total - min_extent)
    return new_left, total - new_left


def split_evenly(total: float, min_extent: float) -> tuple[float, float]:
    """Reset a pair of extents; an odd pixel goes to the left one."""
    left = max(min_extent, math.ceil(total / 2))
    return left, total - left


def clamp_total(
    target: float, column_count: int, min_extent: float, max_total: float = 0
) -> float:
    """Clamp a whole-table width; ``max_total <= 0`` means unbounded."""
    target = max(target, column_count * min_extent)
    if max_total > 0:
        target = min(target, max_total)
    return target


def resize_total(
    widths: list[float], target: float, mode: OuterMode, min_extent: float
) -> list[float]:
    """Distribute a new table total across *widths*.

    ``scale`` multiplies every column by ``target / current`` (floored) and
    lets the last column absorb the rounding remainder.  ``edge`` splits the
    delta between the first and last columns only.
    """
    if not widths:
        return []
    current = sum(widths)
    if mode == "scale":
        factor = target / current if current > 0 else 1.0
        nxt = [max(min_extent, math.floor(w * factor)) for w in widths]
        diff = target - sum(nxt)
        if abs(diff) >= 1:
            nxt[-1] = max(min_extent, nxt[-1] + round_half_up(diff))
        return nxt

    nxt = list(widths)
    delta = target - current
    half = round_half_up(delta / 2)
    nxt[0] = max(min_extent, nxt[0] + half)
    nxt[-1] = max(min_extent, nxt[-1] + (delta - half))
    total = sum(nxt)
    if total != target:
        nxt[-1] = max(min_extent, nxt[-1] + (target - total))
    return nxt


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))
