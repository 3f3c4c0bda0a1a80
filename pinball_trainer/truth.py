from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Protocol

from .grid import (
    GRID_STEP,
    NOT_POSSIBLE,
    clamp_steps,
    drift_band,
    is_not_possible,
    legal_band,
    quantize,
)
from .isotonic import project_around_base
from .strict_order import enforce_strict

logger = logging.getLogger(__name__)


class StepRng(Protocol):
    def randint(self, a: int, b: int) -> int: ...
    def random(self) -> float: ...


def order_permutation(anchors: Sequence[int]) -> list[int]:
    """Shot indices sorted by anchor ascending (stable for ties)."""

    return sorted(range(len(anchors)), key=lambda i: anchors[i])


def reorder(values: Sequence[int], base: Sequence[int], order: Sequence[int]) -> list[int]:
    """Project then strictly order ``values`` inside the anchors' legal bands."""

    return enforce_strict(project_around_base(values, base, order), base, order)


def generate_hidden_truth(
    anchors: Sequence[int],
    order: Sequence[int],
    random_steps: float,
    rng: StepRng,
) -> list[int]:
    """Initial hidden values: anchors plus a random offset of up to ``random_steps`` grid steps."""

    steps = clamp_steps(random_steps)
    base = [quantize(a) for a in anchors]
    candidates: list[int] = []
    for anchor in base:
        if is_not_possible(anchor):
            candidates.append(NOT_POSSIBLE)
            continue
        lo, hi = legal_band(anchor)
        offset = rng.randint(-steps, steps) * GRID_STEP
        candidates.append(quantize(min(hi, max(lo, anchor + offset))))
    return reorder(candidates, base, order)


def drift_hidden_truth(
    current: Sequence[int],
    base: Sequence[int],
    order: Sequence[int],
    max_steps: float,
    rng: StepRng,
) -> list[int]:
    """One drift cycle.

    The random step is clamped to the tight band ``base +/- steps*5`` around the
    frozen anchor; the re-ordering pass afterwards uses the full legal band.
    """

    steps = clamp_steps(max_steps)
    drifted: list[int] = []
    for value, anchor in zip(current, base):
        if is_not_possible(anchor):
            drifted.append(NOT_POSSIBLE)
            continue
        step = 0
        if steps > 0:
            k = rng.randint(0, steps)
            direction = -1 if rng.random() < 0.5 else 1
            step = direction * k * GRID_STEP
        lo, hi = drift_band(anchor, steps)
        drifted.append(min(hi, max(lo, quantize(value + step))))
    logger.debug("drift cycle: steps=%d before=%s stepped=%s", steps, list(current), drifted)
    return reorder(drifted, base, order)


def should_drift(attempt_count: int, every: int) -> bool:
    return every > 0 and attempt_count > 0 and attempt_count % every == 0
