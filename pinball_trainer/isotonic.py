"""Box-constrained pool-adjacent-violators projection on the 5% grid.

Points are visited in a caller-supplied order (the shot permutation sorted by
anchor). Each point starts as its own block; whenever the newest block sits
below its left neighbour the two are pooled, their bound ranges intersected and
the pooled value recomputed from the raw inputs. Excluded points ("not
possible" shots) are passed through untouched and never compared.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from .grid import is_not_possible, legal_band, quantize


@dataclass(slots=True)
class _Block:
    total: float
    positions: list[int]
    lo: int
    hi: int
    value: int = 0

    def settle(self) -> None:
        mean = self.total / len(self.positions)
        self.value = quantize(_clamp_into(mean, self.lo, self.hi))


def _clamp_into(x: float, lo: int, hi: int) -> float:
    # An empty intersection (lo > hi) resolves to ``hi`` instead of failing.
    if x < lo:
        x = lo
    if x > hi:
        x = hi
    return x


def project(
    values: Sequence[float],
    lower: Sequence[int],
    upper: Sequence[int],
    order: Sequence[int],
    excluded: Sequence[bool],
) -> list[int]:
    """Return the closest non-decreasing (along ``order``) grid sequence inside the bounds."""

    out = list(values)
    if not values:
        return out

    stack: list[_Block] = []
    for pos in order:
        if excluded[pos]:
            continue

        block = _Block(total=float(values[pos]), positions=[pos], lo=lower[pos], hi=upper[pos])
        block.settle()
        stack.append(block)

        while len(stack) >= 2 and stack[-2].value > stack[-1].value:
            right = stack.pop()
            left = stack.pop()
            merged = _Block(
                total=left.total + right.total,
                positions=left.positions + right.positions,
                lo=max(left.lo, right.lo),
                hi=min(left.hi, right.hi),
            )
            merged.settle()
            stack.append(merged)

    for block in stack:
        final = quantize(_clamp_into(block.value, block.lo, block.hi))
        for pos in block.positions:
            out[pos] = final
    return out  # type: ignore[return-value]


def project_around_base(values: Sequence[float], base: Sequence[int], order: Sequence[int]) -> list[int]:
    """Project with every point held inside its anchor's legal band."""

    bands = [legal_band(b) for b in base]
    return project(
        values,
        [lo for lo, _ in bands],
        [hi for _, hi in bands],
        order,
        [is_not_possible(b) for b in base],
    )
