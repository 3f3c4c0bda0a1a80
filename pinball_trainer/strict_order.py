from __future__ import annotations

from collections.abc import Sequence

from .grid import GRID_STEP, is_not_possible, legal_band, quantize


def enforce_strict(values: Sequence[int], base: Sequence[int], order: Sequence[int]) -> list[int]:
    """Turn a non-decreasing sequence (along ``order``) into a strictly increasing one.

    Consecutive reachable shots end up at least one grid step apart while each
    stays inside its anchor's legal band. When a value has no headroom, earlier
    values are lowered one step at a time (cascading further back as needed) to
    make room. "Not possible" shots are skipped entirely, so their neighbours
    compare with each other. Never raises; an infeasible layout degrades to the
    best clamped approximation.
    """

    out = list(values)
    chain = [i for i in order if not is_not_possible(base[i])]
    if not chain:
        return out

    vals = [int(values[i]) for i in chain]
    bands = [legal_band(base[i]) for i in chain]

    def lower(j: int) -> bool:
        target = vals[j] - GRID_STEP
        if target < bands[j][0]:
            return False
        if j > 0 and target <= vals[j - 1]:
            if not lower(j - 1) or target <= vals[j - 1]:
                return False
        vals[j] = target
        return True

    for i in range(1, len(vals)):
        if vals[i] > vals[i - 1]:
            continue
        hi = bands[i][1]
        candidate = vals[i - 1] + GRID_STEP
        while candidate > hi and lower(i - 1):
            candidate = vals[i - 1] + GRID_STEP
        candidate = min(hi, candidate)
        if candidate <= vals[i - 1]:
            candidate = vals[i - 1] + GRID_STEP
        vals[i] = candidate

    # Safety net: every value inside its band and above its predecessor.
    for k, (lo, hi) in enumerate(bands):
        vals[k] = quantize(max(lo, min(hi, vals[k])))
        if k > 0 and vals[k] <= vals[k - 1]:
            vals[k] = min(hi, quantize(vals[k - 1] + GRID_STEP))

    for pos, v in zip(chain, vals):
        out[pos] = v
    return out
