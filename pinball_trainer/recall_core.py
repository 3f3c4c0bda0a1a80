from __future__ import annotations

import logging
import math
import random
from dataclasses import dataclass, field, replace
from enum import Enum, StrEnum

from .clock import Clock
from .grid import MAX_STEPS, NOT_POSSIBLE, format_percent, quantize
from .scoring import Direction, Label, Severity, final_recall_score, score_attempt
from .shots import Shot, Side, anchors, can_start, shot_label
from .truth import drift_hidden_truth, generate_hidden_truth, order_permutation, should_drift

logger = logging.getLogger(__name__)

INVALID_INPUT_MESSAGE = "0-100 (0 - Not Possible)"
RANDOM_REPEAT_RETRIES = 5


class Phase(str, Enum):
    SETUP = "setup"
    PRACTICE = "practice"
    FINAL_RECALL = "final_recall"
    RESULTS = "results"


class SelectionMode(StrEnum):
    MANUAL = "manual"
    RANDOM = "random"


@dataclass(frozen=True, slots=True)
class SessionConfig:
    initial_random_steps: int = 2
    drift_every: int = 4  # attempts between drift cycles; 0 disables drift
    drift_magnitude: float = 2.0  # grid steps, fractions floored
    mode: SelectionMode = SelectionMode.RANDOM

    def __post_init__(self) -> None:
        if not (0 <= int(self.initial_random_steps) <= MAX_STEPS):
            raise ValueError("initial_random_steps must be in [0, 4]")
        if int(self.drift_every) < 0:
            raise ValueError("drift_every must be >= 0")
        mag = float(self.drift_magnitude)
        if not math.isfinite(mag) or not (0.0 <= mag <= MAX_STEPS):
            raise ValueError("drift_magnitude must be in [0.0, 4.0]")


@dataclass(frozen=True, slots=True)
class AttemptRecord:
    index: int
    shot_index: int
    side: Side
    value: int
    truth: int
    delta: int
    abs_error: int
    severity: Severity
    label: Label
    base_points: int
    penalty: int
    points: int
    previous_value: int | None
    adjust_required: bool
    required_direction: Direction
    adjust_correct: bool
    answered_at_s: float
    raw: str = ""


@dataclass(slots=True)
class SideState:
    """Per-flipper arrays, all indexed by shot."""

    base: list[int]
    order: list[int]
    hidden: list[int]
    guesses: list[int]
    final_recall: list[int]


@dataclass(slots=True)
class SessionState:
    shots: list[Shot]
    phase: Phase = Phase.SETUP
    sides: dict[Side, SideState] = field(default_factory=dict)
    attempts: list[AttemptRecord] = field(default_factory=list)
    attempt_count: int = 0
    drift_cycles: int = 0
    selected_index: int = 0
    selected_side: Side = Side.LEFT
    final_score: int | None = None

    def side(self, side: Side) -> SideState:
        return self.sides[side]

    def previous_attempt(self, shot_index: int, side: Side) -> AttemptRecord | None:
        for attempt in reversed(self.attempts):
            if attempt.shot_index == shot_index and attempt.side is side:
                return attempt
        return None

    def total_points(self) -> int:
        return sum(a.points for a in self.attempts)

    def mean_abs_error(self) -> float:
        if not self.attempts:
            return 0.0
        return sum(a.abs_error for a in self.attempts) / len(self.attempts)


@dataclass(frozen=True, slots=True)
class SessionSummary:
    attempted: int
    total_points: int
    mean_abs_error: float
    perfect: int
    adjustments_missed: int
    drift_cycles: int
    final_score: int | None = None


@dataclass(frozen=True, slots=True)
class RecallSnapshot:
    """View model for the UI (pure data)."""

    title: str
    phase: Phase
    prompt: str
    input_hint: str
    mode: SelectionMode
    shot_count: int
    selected_index: int
    selected_side: Side
    attempted: int
    total_points: int
    mean_abs_error: float
    last_attempt: AttemptRecord | None = None
    error: str | None = None
    truth: dict[Side, tuple[int, ...]] | None = None


class SeededRng:
    """Seeded RNG wrapper; one stream drives offsets, drift and shot selection."""

    def __init__(self, seed: int) -> None:
        self._rng = random.Random(int(seed))

    def randint(self, a: int, b: int) -> int:
        return self._rng.randint(a, b)

    def random(self) -> float:
        return self._rng.random()


def new_seed() -> int:
    return random.SystemRandom().randint(1, 2**31 - 1)


def parse_percent(raw: str) -> int | None:
    """Parse a typed recall value onto the 5% grid; ``None`` when it is not a number."""

    text = raw.strip()
    if text == "":
        return None
    if text.upper() == "NP":
        return NOT_POSSIBLE
    try:
        x = float(text)
    except ValueError:
        return None
    if not math.isfinite(x):
        return None
    return quantize(x)


class RecallSession:
    """Controller that owns the single ``SessionState`` of a training run.

    Lifecycle: setup -> practice (scored recall attempts, periodic drift) ->
    final recall -> results. Deterministic for a given seed; time comes from the
    injected clock.
    """

    def __init__(
        self,
        *,
        shots: list[Shot],
        clock: Clock,
        seed: int,
        config: SessionConfig | None = None,
    ) -> None:
        self._config = config or SessionConfig()
        self._clock = clock
        self._seed = int(seed)
        self._rng = SeededRng(self._seed)
        self._state = SessionState(shots=[replace(s) for s in shots])
        self._mode = self._config.mode
        self._error: str | None = None
        self._show_truth = False

    @property
    def seed(self) -> int:
        return self._seed

    @property
    def config(self) -> SessionConfig:
        return self._config

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def phase(self) -> Phase:
        return self._state.phase

    @property
    def mode(self) -> SelectionMode:
        return self._mode

    @property
    def last_error(self) -> str | None:
        return self._error

    @property
    def show_truth(self) -> bool:
        return self._show_truth

    def set_mode(self, mode: SelectionMode) -> None:
        self._mode = mode

    def toggle_truth(self) -> None:
        self._show_truth = not self._show_truth

    def set_shots(self, shots: list[Shot]) -> bool:
        if self._state.phase is not Phase.SETUP:
            return False
        self._state.shots = [replace(s) for s in shots]
        return True

    def can_start(self) -> bool:
        return self._state.phase is Phase.SETUP and can_start(self._state.shots)

    def start(self) -> bool:
        """Freeze anchors as base, capture the order permutations and generate the hidden truth."""

        if not self.can_start():
            return False

        st = self._state
        st.sides = {}
        for side in Side:
            base = anchors(st.shots, side)
            order = order_permutation(base)
            hidden = generate_hidden_truth(base, order, self._config.initial_random_steps, self._rng)
            st.sides[side] = SideState(
                base=base,
                order=order,
                hidden=hidden,
                guesses=list(base),
                final_recall=list(base),
            )

        st.attempts = []
        st.attempt_count = 0
        st.drift_cycles = 0
        st.final_score = None
        self._error = None
        st.selected_index = self._rng.randint(0, len(st.shots) - 1)
        st.selected_side = self._random_side()
        st.phase = Phase.PRACTICE
        logger.info(
            "session started: seed=%d shots=%d random_steps=%d drift_every=%d drift_magnitude=%s",
            self._seed,
            len(st.shots),
            self._config.initial_random_steps,
            self._config.drift_every,
            self._config.drift_magnitude,
        )
        return True

    def select(self, shot_index: int, side: Side) -> bool:
        st = self._state
        if st.phase is not Phase.PRACTICE or self._mode is not SelectionMode.MANUAL:
            return False
        if not (0 <= shot_index < len(st.shots)):
            return False
        st.selected_index = shot_index
        st.selected_side = side
        return True

    def submit_answer(self, raw: str) -> bool:
        """Score a typed recall value for the selected shot. Returns True if accepted."""

        st = self._state
        if st.phase is not Phase.PRACTICE:
            return False

        value = parse_percent(raw)
        if value is None:
            self._error = INVALID_INPUT_MESSAGE
            return False
        self._error = None

        idx = st.selected_index
        side = st.selected_side
        side_state = st.side(side)
        truth = side_state.hidden[idx]
        result = score_attempt(value=value, truth=truth, previous=st.previous_attempt(idx, side))

        record = AttemptRecord(
            index=len(st.attempts),
            shot_index=idx,
            side=side,
            value=value,
            truth=truth,
            delta=result.delta,
            abs_error=result.abs_error,
            severity=result.severity,
            label=result.label,
            base_points=result.base_points,
            penalty=result.penalty,
            points=result.points,
            previous_value=result.previous_value,
            adjust_required=result.adjust_required,
            required_direction=result.required_direction,
            adjust_correct=result.adjust_correct,
            answered_at_s=self._clock.now(),
            raw=raw,
        )
        st.attempts.append(record)
        st.attempt_count += 1
        side_state.guesses[idx] = value
        logger.debug(
            "attempt %d: shot=%d side=%s value=%d truth=%d points=%d penalty=%d",
            record.index,
            idx,
            side.value,
            value,
            truth,
            record.points,
            record.penalty,
        )

        if should_drift(st.attempt_count, self._config.drift_every):
            self._apply_drift()

        if self._mode is SelectionMode.RANDOM:
            st.selected_index = self._pick_random_index()
            st.selected_side = self._random_side()
        return True

    def end_session(self) -> None:
        if self._state.phase is Phase.PRACTICE:
            self._state.phase = Phase.FINAL_RECALL

    def resume_practice(self) -> None:
        if self._state.phase is Phase.FINAL_RECALL:
            self._state.phase = Phase.PRACTICE

    def set_final_recall(self, shot_index: int, side: Side, raw: str) -> bool:
        st = self._state
        if st.phase is not Phase.FINAL_RECALL or not (0 <= shot_index < len(st.shots)):
            return False
        value = parse_percent(raw)
        if value is None:
            self._error = INVALID_INPUT_MESSAGE
            return False
        self._error = None
        st.side(side).final_recall[shot_index] = value
        return True

    def finish(self) -> int | None:
        """Grade the final recall and move to results."""

        st = self._state
        if st.phase is not Phase.FINAL_RECALL:
            return st.final_score
        ordered = [st.side(side) for side in Side]
        st.final_score = final_recall_score(
            [s.hidden for s in ordered],
            [s.final_recall for s in ordered],
        )
        st.phase = Phase.RESULTS
        logger.info(
            "session finished: attempts=%d points=%d final_score=%d",
            st.attempt_count,
            st.total_points(),
            st.final_score,
        )
        return st.final_score

    def reset(self) -> None:
        """Back to setup; shots are kept, everything derived from them is dropped."""

        st = self._state
        st.phase = Phase.SETUP
        st.sides = {}
        st.attempts = []
        st.attempt_count = 0
        st.drift_cycles = 0
        st.final_score = None
        self._error = None

    def reveal_truth(self) -> dict[Side, tuple[int, ...]]:
        return {side: tuple(s.hidden) for side, s in self._state.sides.items()}

    def events(self) -> list[AttemptRecord]:
        return list(self._state.attempts)

    def summary(self) -> SessionSummary:
        st = self._state
        return SessionSummary(
            attempted=st.attempt_count,
            total_points=st.total_points(),
            mean_abs_error=st.mean_abs_error(),
            perfect=sum(1 for a in st.attempts if a.severity is Severity.PERFECT),
            adjustments_missed=sum(1 for a in st.attempts if a.adjust_required and not a.adjust_correct),
            drift_cycles=st.drift_cycles,
            final_score=st.final_score,
        )

    def current_prompt(self) -> str:
        st = self._state
        if st.phase is Phase.SETUP:
            if can_start(st.shots):
                return "Press Enter to start the session."
            return "Complete the shot type and both flipper values for every shot."
        if st.phase is Phase.FINAL_RECALL:
            return "Final recall: enter your value for every shot on both flippers."
        if st.phase is Phase.RESULTS:
            s = self.summary()
            final = "n/a" if s.final_score is None else str(s.final_score)
            return (
                f"Results\nAttempts: {s.attempted}\nPoints: {s.total_points}\n"
                f"Mean error: {s.mean_abs_error:.1f}\nFinal recall score: {final}"
            )
        shot = st.shots[st.selected_index] if st.shots else None
        return shot_label(shot, st.selected_side)

    def snapshot(self) -> RecallSnapshot:
        st = self._state
        truth = self.reveal_truth() if self._show_truth and st.sides else None
        return RecallSnapshot(
            title="Flipper Recall",
            phase=st.phase,
            prompt=self.current_prompt(),
            input_hint="Type 0-100 then Enter (0 = not possible)",
            mode=self._mode,
            shot_count=len(st.shots),
            selected_index=st.selected_index,
            selected_side=st.selected_side,
            attempted=st.attempt_count,
            total_points=st.total_points(),
            mean_abs_error=st.mean_abs_error(),
            last_attempt=st.attempts[-1] if st.attempts else None,
            error=self._error,
            truth=truth,
        )

    def _apply_drift(self) -> None:
        st = self._state
        # Compute both sides before assigning so no reader sees a half-drifted state.
        drifted = {
            side: drift_hidden_truth(s.hidden, s.base, s.order, self._config.drift_magnitude, self._rng)
            for side, s in st.sides.items()
        }
        for side, hidden in drifted.items():
            st.sides[side].hidden = hidden
        st.drift_cycles += 1
        logger.info("drift cycle %d after %d attempts", st.drift_cycles, st.attempt_count)

    def _pick_random_index(self) -> int:
        n = len(self._state.shots)
        if n <= 1:
            return 0
        current = self._state.selected_index
        idx = self._rng.randint(0, n - 1)
        tries = 0
        while idx == current and tries < RANDOM_REPEAT_RETRIES:
            idx = self._rng.randint(0, n - 1)
            tries += 1
        return idx

    def _random_side(self) -> Side:
        return Side.LEFT if self._rng.random() < 0.5 else Side.RIGHT


def format_attempt(attempt: AttemptRecord) -> str:
    """One history line, e.g. ``"L #3  55 vs 50  slight late  +95"``."""

    text = (
        f"{attempt.side.value} #{attempt.shot_index + 1}  "
        f"{format_percent(attempt.value)} vs {format_percent(attempt.truth)}  "
        f"{attempt.severity.value}"
    )
    if attempt.label is not Label.PERFECT:
        text += f" {attempt.label.value}"
    text += f"  +{attempt.points}"
    if attempt.penalty:
        text += f" (-{attempt.penalty} adjust)"
    return text
