from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, replace
from enum import StrEnum

from .grid import GRID_STEP, NOT_POSSIBLE, PERCENT_MAX, quantize


class Side(StrEnum):
    LEFT = "L"
    RIGHT = "R"

    @property
    def display_name(self) -> str:
        return "Left Flipper" if self is Side.LEFT else "Right Flipper"


# Playfield elements, most common first.
BASE_ELEMENTS: tuple[str, ...] = (
    "Ramp",
    "Standups",
    "Orbit",
    "Drops",
    "Spinner",
    "Scoop",
    "Lane",
    "Toy",
    "Captive Ball",
    "Saucer",
    "Loop",
    "Lock",
    "VUK",
    "Bumper",
    "Deadend",
    "Gate",
    "Magnet",
    "Rollover",
    "Vari Target",
    "Roto Target",
)

LOCATIONS: tuple[str, ...] = ("Left", "Right", "Center", "Side", "Top", "Upper", "Bottom", "Lower")


def build_type(base: str, location: str = "") -> str:
    if not base:
        return ""
    if not location or location == "Base":
        return base
    return f"{location} {base}"


@dataclass(slots=True)
class Shot:
    """One trainable shot with a left and right flipper anchor (0 = not possible)."""

    shot_id: int
    base: str = ""
    location: str = ""
    init_l: int | None = 50
    init_r: int | None = 50

    @property
    def shot_type(self) -> str:
        return build_type(self.base, self.location)

    def anchor(self, side: Side) -> int | None:
        return self.init_l if side is Side.LEFT else self.init_r

    def with_anchor(self, side: Side, value: int | None) -> "Shot":
        snapped = None if value is None else quantize(value)
        if side is Side.LEFT:
            return replace(self, init_l=snapped)
        return replace(self, init_r=snapped)


def shot_label(shot: Shot | None, side: Side) -> str:
    if shot is None:
        return ""
    return f"{side.display_name} -> {shot.shot_type}"


def next_shot_id(shots: Sequence[Shot]) -> int:
    return max((s.shot_id for s in shots), default=0) + 1


def can_start(shots: Sequence[Shot]) -> bool:
    """A session needs at least one shot, each with a base element and both anchors."""

    if not shots:
        return False
    return all(s.base and s.init_l is not None and s.init_r is not None for s in shots)


def anchors(shots: Sequence[Shot], side: Side) -> list[int]:
    return [quantize(s.anchor(side) or 0) for s in shots]


def allowed_range(shots: Sequence[Shot], side: Side, index: int) -> tuple[int, int] | None:
    """Inclusive range a positive anchor may take at ``index`` without breaking the order.

    Left anchors strictly increase top to bottom; right anchors strictly
    decrease. Missing and "not possible" anchors are neutral. Returns ``None``
    when no value fits.
    """

    vals = [s.anchor(side) for s in shots]
    earlier = [v for v in vals[:index] if v is not None and v > 0]
    later = [v for v in vals[index + 1 :] if v is not None and v > 0]

    if side is Side.LEFT:
        lo = max(earlier) + GRID_STEP if earlier else GRID_STEP
        hi = min(later) - GRID_STEP if later else PERCENT_MAX
    else:
        hi = min(earlier) - GRID_STEP if earlier else PERCENT_MAX
        lo = max(later) + GRID_STEP if later else GRID_STEP

    lo = max(GRID_STEP, lo)
    hi = min(PERCENT_MAX, hi)
    if lo > hi:
        return None
    return lo, hi


def normalize_percents(shots: Sequence[Shot]) -> list[Shot]:
    """Repair anchors after a reorder.

    Left: zeros are allowed until the first positive value, after which values
    strictly increase. Right: values strictly decrease top to bottom.
    """

    out: list[Shot] = []
    last_positive = 0
    prev_r = PERCENT_MAX + GRID_STEP
    for shot in shots:
        init_l = shot.init_l
        if init_l is not None:
            v = quantize(init_l)
            if last_positive != 0 and (v == 0 or v <= last_positive):
                v = min(PERCENT_MAX, last_positive + GRID_STEP)
            init_l = v
            if v > 0:
                last_positive = v

        init_r = shot.init_r
        if init_r is not None:
            v = quantize(init_r)
            if v >= prev_r:
                v = prev_r - GRID_STEP
            v = max(NOT_POSSIBLE, v)
            init_r = v
            prev_r = v

        out.append(replace(shot, init_l=init_l, init_r=init_r))
    return out


def move_shot(shots: Sequence[Shot], src: int, dst: int) -> list[Shot]:
    if src == dst or not (0 <= src < len(shots)) or not (0 <= dst < len(shots)):
        return list(shots)
    moved = list(shots)
    shot = moved.pop(src)
    moved.insert(dst, shot)
    return normalize_percents(moved)


def evenly_spaced_values(count: int) -> list[int]:
    """Ascending anchors spread across the flipper, at least one step apart."""

    asc = [quantize((i + 1) / (count + 1) * 100) for i in range(count)]
    for i in range(1, len(asc)):
        if asc[i] <= asc[i - 1]:
            asc[i] = min(PERCENT_MAX, asc[i - 1] + GRID_STEP)
    for i in range(len(asc) - 2, -1, -1):
        if asc[i] >= asc[i + 1]:
            asc[i] = max(GRID_STEP, asc[i + 1] - GRID_STEP)
    return asc


def build_example_shots(count: int) -> list[Shot]:
    asc = evenly_spaced_values(count)
    desc = list(reversed(asc))
    return [
        Shot(shot_id=i + 1, base=BASE_ELEMENTS[i % len(BASE_ELEMENTS)], init_l=asc[i], init_r=desc[i])
        for i in range(count)
    ]
