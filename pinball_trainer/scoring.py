from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from enum import IntEnum, StrEnum
from typing import Protocol

from .grid import clamp_percent, round_half_up

MAX_POINTS = 100
PENALTY_BASE = 5
PENALTY_CAP = 25


class Severity(StrEnum):
    PERFECT = "perfect"
    SLIGHT = "slight"
    FAIRLY = "fairly"
    VERY = "very"


class Label(StrEnum):
    PERFECT = "perfect"
    EARLY = "early"  # guessed too low
    LATE = "late"  # guessed too high


class Direction(IntEnum):
    LOWER = -1
    NONE = 0
    HIGHER = 1


# Feedback colours shown next to each attempt.
SEVERITY_COLORS: dict[Severity, tuple[int, int, int]] = {
    Severity.PERFECT: (74, 222, 128),
    Severity.SLIGHT: (21, 128, 61),
    Severity.FAIRLY: (245, 158, 11),
    Severity.VERY: (220, 38, 38),
}


class PriorAttempt(Protocol):
    """The previous attempt on the same shot and side."""

    @property
    def value(self) -> int: ...

    @property
    def delta(self) -> int: ...


@dataclass(frozen=True, slots=True)
class ScoreResult:
    delta: int
    abs_error: int
    severity: Severity
    label: Label
    base_points: int
    points: int
    previous_value: int | None
    adjust_required: bool
    required_direction: Direction
    adjust_correct: bool
    penalty: int


def classify(delta: int) -> tuple[Severity, Label]:
    err = abs(delta)
    if err == 0:
        return Severity.PERFECT, Label.PERFECT
    label = Label.EARLY if delta < 0 else Label.LATE
    if err <= 5:
        return Severity.SLIGHT, label
    if err <= 10:
        return Severity.FAIRLY, label
    return Severity.VERY, label


def required_direction(previous_delta: int) -> Direction:
    """A late (too high) guess must come down next time; an early one must go up."""

    if previous_delta > 0:
        return Direction.LOWER
    if previous_delta < 0:
        return Direction.HIGHER
    return Direction.NONE


def score_attempt(*, value: int, truth: int, previous: PriorAttempt | None = None) -> ScoreResult:
    """Score one recall attempt against the hidden truth.

    Pure: the caller looks up ``previous`` (the most recent attempt on the same
    shot and side) from its own history.
    """

    delta = round_half_up(value - truth)
    err = abs(delta)
    severity, label = classify(delta)
    base_points = max(0, round_half_up(MAX_POINTS - err))

    previous_value: int | None = None
    direction = Direction.NONE
    if previous is not None:
        previous_value = int(previous.value)
        direction = required_direction(int(previous.delta))

    adjust_required = direction is not Direction.NONE
    adjust_correct = True
    if direction is Direction.LOWER and value >= previous_value:
        adjust_correct = False
    elif direction is Direction.HIGHER and value <= previous_value:
        adjust_correct = False

    penalty = 0
    if adjust_required and not adjust_correct and previous_value is not None:
        # Wrong way, or no movement at all.
        moved = abs(value - previous_value)
        penalty = min(PENALTY_CAP, PENALTY_BASE + round_half_up(moved / 5))

    return ScoreResult(
        delta=delta,
        abs_error=err,
        severity=severity,
        label=label,
        base_points=base_points,
        points=max(0, base_points - penalty),
        previous_value=previous_value,
        adjust_required=adjust_required,
        required_direction=direction,
        adjust_correct=adjust_correct,
        penalty=penalty,
    )


def final_recall_score(
    hidden: Sequence[Sequence[int]],
    recalled: Sequence[Sequence[int]],
) -> int:
    """End-of-session grade: ``100 - mean absolute error`` over every shot and side."""

    total = 0.0
    count = 0
    for truth_side, recall_side in zip(hidden, recalled):
        for truth, guess in zip(truth_side, recall_side):
            total += abs(clamp_percent(guess) - truth)
            count += 1
    if count == 0:
        return 0
    return max(0, round_half_up(MAX_POINTS - total / count))
