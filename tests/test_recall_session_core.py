from __future__ import annotations

from dataclasses import dataclass

import pytest

from pinball_trainer.grid import legal_band
from pinball_trainer.recall_core import (
    INVALID_INPUT_MESSAGE,
    Phase,
    RecallSession,
    SelectionMode,
    SessionConfig,
    format_attempt,
    parse_percent,
)
from pinball_trainer.scoring import Label, Severity
from pinball_trainer.shots import Shot, Side, build_example_shots


@dataclass
class FakeClock:
    t: float = 0.0

    def now(self) -> float:
        return self.t

    def advance(self, dt: float) -> None:
        self.t += float(dt)


def _manual_session(*, drift_every: int = 0, seed: int = 11) -> RecallSession:
    cfg = SessionConfig(initial_random_steps=0, drift_every=drift_every, mode=SelectionMode.MANUAL)
    return RecallSession(shots=build_example_shots(3), clock=FakeClock(), seed=seed, config=cfg)


def test_parse_percent() -> None:
    assert parse_percent(" 52 ") == 50
    assert parse_percent("150") == 100
    assert parse_percent("np") == 0
    assert parse_percent("") is None
    assert parse_percent("abc") is None
    assert parse_percent("inf") is None


def test_config_rejects_out_of_range_values() -> None:
    with pytest.raises(ValueError):
        SessionConfig(initial_random_steps=5)
    with pytest.raises(ValueError):
        SessionConfig(drift_every=-1)
    with pytest.raises(ValueError):
        SessionConfig(drift_magnitude=4.5)


def test_start_requires_complete_shots() -> None:
    session = RecallSession(shots=[Shot(shot_id=1)], clock=FakeClock(), seed=1)
    assert session.start() is False
    assert session.phase is Phase.SETUP


def test_start_freezes_anchors_and_generates_truth() -> None:
    session = _manual_session()
    assert session.start() is True
    assert session.phase is Phase.PRACTICE
    truth = session.reveal_truth()
    assert truth[Side.LEFT] == (25, 50, 75)
    assert truth[Side.RIGHT] == (75, 50, 25)
    assert session.state.side(Side.RIGHT).order == [2, 1, 0]
    assert session.set_shots(build_example_shots(2)) is False


def test_manual_attempts_are_scored_with_adjustment_penalty() -> None:
    session = _manual_session()
    session.start()
    assert session.select(1, Side.RIGHT) is True

    assert session.submit_answer("55") is True
    first = session.events()[-1]
    assert (first.severity, first.label, first.points) == (Severity.SLIGHT, Label.LATE, 95)
    assert format_attempt(first) == "R #2  55 vs 50  slight late  +95"

    # Previous guess was late, so this one must come down; it goes up instead.
    assert session.submit_answer("60") is True
    second = session.events()[-1]
    assert second.penalty == 6
    assert second.points == 84
    assert format_attempt(second) == "R #2  60 vs 50  fairly late  +84 (-6 adjust)"

    s = session.summary()
    assert (s.attempted, s.total_points, s.adjustments_missed, s.perfect) == (2, 179, 1, 0)


def test_invalid_input_is_rejected_without_recording() -> None:
    session = _manual_session()
    session.start()
    assert session.submit_answer("abc") is False
    assert session.last_error == INVALID_INPUT_MESSAGE
    assert session.events() == []

    assert session.submit_answer("NP") is True
    assert session.last_error is None
    assert session.events()[-1].value == 0


def test_attempts_take_their_timestamp_from_the_clock() -> None:
    clock = FakeClock(t=1000.0)
    session = RecallSession(shots=build_example_shots(2), clock=clock, seed=3)
    session.start()
    clock.advance(2.5)
    session.submit_answer("50")
    assert session.events()[-1].answered_at_s == 1002.5


def test_drift_runs_on_cadence_and_keeps_truth_valid() -> None:
    cfg = SessionConfig(initial_random_steps=2, drift_every=2, drift_magnitude=3.0, mode=SelectionMode.MANUAL)
    session = RecallSession(shots=build_example_shots(5), clock=FakeClock(), seed=8, config=cfg)
    session.start()
    for i in range(20):
        session.submit_answer("50")
        assert session.state.drift_cycles == (i + 1) // 2
        for side in Side:
            st = session.state.side(side)
            chain = [st.hidden[j] for j in st.order]
            assert all(a < b for a, b in zip(chain, chain[1:]))
            for v, b in zip(st.hidden, st.base):
                lo, hi = legal_band(b)
                assert lo <= v <= hi


def test_random_mode_picks_next_target_and_ignores_select() -> None:
    session = RecallSession(shots=build_example_shots(4), clock=FakeClock(), seed=21)
    session.start()
    assert session.mode is SelectionMode.RANDOM
    assert session.select(0, Side.LEFT) is False
    for _ in range(10):
        session.submit_answer("50")
        assert 0 <= session.state.selected_index < 4


def test_same_seed_gives_same_session() -> None:
    def play(seed: int) -> list:
        session = RecallSession(shots=build_example_shots(4), clock=FakeClock(), seed=seed)
        session.start()
        for _ in range(10):
            session.submit_answer("50")
        return session.events()

    assert play(77) == play(77)


def test_final_recall_and_results() -> None:
    session = _manual_session()
    session.start()
    session.submit_answer("50")

    session.end_session()
    assert session.phase is Phase.FINAL_RECALL
    assert session.submit_answer("50") is False

    assert session.set_final_recall(0, Side.LEFT, "35") is True
    assert session.set_final_recall(0, Side.LEFT, "x") is False

    # errors: 10 on one cell of six -> 100 - 1.67
    assert session.finish() == 98
    assert session.phase is Phase.RESULTS
    assert session.summary().final_score == 98
    assert "Final recall score: 98" in session.current_prompt()


def test_resume_and_reset() -> None:
    session = _manual_session()
    session.start()
    session.end_session()
    session.resume_practice()
    assert session.phase is Phase.PRACTICE

    session.submit_answer("50")
    session.reset()
    assert session.phase is Phase.SETUP
    assert session.events() == []
    assert session.start() is True


def test_snapshot_hides_truth_until_toggled() -> None:
    session = _manual_session()
    session.start()
    assert session.snapshot().truth is None
    session.toggle_truth()
    snap = session.snapshot()
    assert snap.truth is not None
    assert snap.truth[Side.LEFT] == (25, 50, 75)
    assert snap.phase is Phase.PRACTICE
