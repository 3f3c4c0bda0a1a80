from __future__ import annotations

import math

GRID_STEP = 5
PERCENT_MIN = 0
PERCENT_MAX = 100
NOT_POSSIBLE = 0  # sentinel: shot cannot be reached from this flipper
BAND_HALF_WIDTH = 20
MAX_STEPS = 4


def round_half_up(x: float) -> int:
    # Matches the rounding users see on the playfield (2.5 -> 3, -2.5 -> -2).
    return int(math.floor(x + 0.5))


def quantize(x: float) -> int:
    """Snap ``x`` to the nearest multiple of 5, clamped to [0, 100].

    Total over all floats: infinities clamp to the nearest edge and NaN maps to 0.
    """

    if math.isnan(x):
        return PERCENT_MIN
    if math.isinf(x):
        return PERCENT_MAX if x > 0 else PERCENT_MIN
    snapped = round_half_up(float(x) / GRID_STEP) * GRID_STEP
    return min(PERCENT_MAX, max(PERCENT_MIN, snapped))


def clamp_percent(x: float, lo: int = PERCENT_MIN, hi: int = PERCENT_MAX) -> float:
    return max(lo, min(hi, x))


def is_not_possible(anchor: int | None) -> bool:
    return anchor == NOT_POSSIBLE


def legal_band(anchor: int) -> tuple[int, int]:
    """Inclusive band a hidden value may occupy around its anchor.

    The floor is one grid step so a reachable shot never collapses into the
    "not possible" sentinel.
    """

    lo = max(GRID_STEP, anchor - BAND_HALF_WIDTH)
    hi = min(PERCENT_MAX, anchor + BAND_HALF_WIDTH)
    return lo, hi


def drift_band(anchor: int, steps: int) -> tuple[int, int]:
    half = max(0, steps) * GRID_STEP
    lo = max(GRID_STEP, anchor - half)
    hi = min(PERCENT_MAX, anchor + half)
    return lo, hi


def clamp_steps(steps: float) -> int:
    """Clamp a step count to 0..4 whole grid steps (fractions are floored)."""

    try:
        value = float(steps)
    except (TypeError, ValueError):
        return 0
    if not math.isfinite(value):
        return 0
    return max(0, min(MAX_STEPS, int(math.floor(value))))


def format_percent(n: float) -> str:
    """Two-digit display form: 5 -> "05", 100 -> "100"."""

    v = round_half_up(n) if math.isfinite(n) else 0
    return f"{v:02d}"


def format_anchor(value: int | None) -> str:
    if value is None:
        return "--"
    if value == NOT_POSSIBLE:
        return "NP"
    return format_percent(value)
