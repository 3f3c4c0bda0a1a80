from __future__ import annotations

from dataclasses import dataclass

from .recall_core import AttemptRecord, RecallSession


@dataclass(frozen=True, slots=True)
class SessionResult:
    """Persistable summary + attempt log for a finished recall session."""

    seed: int
    initial_random_steps: int
    drift_every: int
    drift_magnitude: float
    mode: str
    shot_count: int

    attempted: int
    total_points: int
    mean_abs_error: float
    perfect: int
    adjustments_missed: int
    drift_cycles: int
    final_score: int | None
    median_abs_error: float | None

    attempts: list[AttemptRecord]


def session_result_from_recall(session: RecallSession) -> SessionResult:
    """Build a SessionResult from a RecallSession (normally in the results phase)."""

    summary = session.summary()
    attempts = session.events()
    errors = sorted(a.abs_error for a in attempts)

    median: float | None
    if not errors:
        median = None
    else:
        mid = len(errors) // 2
        if len(errors) % 2 == 1:
            median = float(errors[mid])
        else:
            median = float(errors[mid - 1] + errors[mid]) / 2.0

    cfg = session.config
    return SessionResult(
        seed=int(session.seed),
        initial_random_steps=int(cfg.initial_random_steps),
        drift_every=int(cfg.drift_every),
        drift_magnitude=float(cfg.drift_magnitude),
        mode=str(session.mode.value),
        shot_count=len(session.state.shots),
        attempted=int(summary.attempted),
        total_points=int(summary.total_points),
        mean_abs_error=float(summary.mean_abs_error),
        perfect=int(summary.perfect),
        adjustments_missed=int(summary.adjustments_missed),
        drift_cycles=int(summary.drift_cycles),
        final_score=summary.final_score,
        median_abs_error=median,
        attempts=attempts,
    )
