from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from pathlib import Path

import pytest

from pinball_trainer.persistence import (
    DB_PATH_ENV,
    SCHEMA_VERSION,
    SHOTS_PATH_ENV,
    default_db_path,
    default_shots_path,
    load_shots,
    open_db,
    record_session,
    save_shots,
)
from pinball_trainer.recall_core import RecallSession, SelectionMode, SessionConfig
from pinball_trainer.results import session_result_from_recall
from pinball_trainer.shots import Shot, build_example_shots


@dataclass
class FakeClock:
    t: float = 0.0

    def now(self) -> float:
        return self.t


def test_open_db_migrates_schema(tmp_path: Path) -> None:
    conn = open_db(tmp_path / "a.sqlite3")
    try:
        (ver,) = conn.execute("PRAGMA user_version;").fetchone()
        tables = {r[0] for r in conn.execute("SELECT name FROM sqlite_master WHERE type='table'")}
    finally:
        conn.close()
    assert ver == SCHEMA_VERSION
    assert {"session", "metric", "recall_attempt"} <= tables


def test_record_session_stores_summary_and_attempts(tmp_path: Path) -> None:
    cfg = SessionConfig(initial_random_steps=0, drift_every=0, mode=SelectionMode.MANUAL)
    session = RecallSession(shots=build_example_shots(2), clock=FakeClock(t=5.0), seed=9, config=cfg)
    session.start()
    session.submit_answer("40")
    session.submit_answer("45")
    session.end_session()
    session.finish()

    db_path = tmp_path / "b.sqlite3"
    sid = record_session(db_path=db_path, result=session_result_from_recall(session), app_version="0.0.1")
    record_session(db_path=db_path, result=session_result_from_recall(session), app_version="0.0.1")

    conn = sqlite3.connect(db_path)
    try:
        rows = conn.execute(
            "SELECT seq, input_value, answered_at_ms FROM recall_attempt WHERE session_id=? ORDER BY seq", (sid,)
        ).fetchall()
        (sessions,) = conn.execute("SELECT COUNT(*) FROM session").fetchone()
        (mode,) = conn.execute("SELECT mode FROM session WHERE id=?", (sid,)).fetchone()
    finally:
        conn.close()
    assert rows == [(0, 40, 5000), (1, 45, 5000)]
    assert sessions == 2
    assert mode == "manual"


def test_shot_list_save_and_load(tmp_path: Path) -> None:
    path = tmp_path / "nested" / "shots.json"
    shots = [Shot(shot_id=4, base="Scoop", location="Center", init_l=0, init_r=None)]
    save_shots(path, shots)
    assert load_shots(path) == shots


def test_load_shots_tolerates_missing_and_corrupt_files(tmp_path: Path) -> None:
    assert load_shots(tmp_path / "missing.json") == []
    bad = tmp_path / "bad.json"
    bad.write_text("{", encoding="utf-8")
    assert load_shots(bad) == []
    other = tmp_path / "other.json"
    other.write_text('{"shots": [{"base": "Ramp"}, {"id": 2, "init_l": 52}]}', encoding="utf-8")
    assert load_shots(other) == [Shot(shot_id=2, init_l=50, init_r=None)]


def test_paths_follow_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv(DB_PATH_ENV, str(tmp_path / "x.sqlite3"))
    monkeypatch.setenv(SHOTS_PATH_ENV, str(tmp_path / "s.json"))
    assert default_db_path() == tmp_path / "x.sqlite3"
    assert default_shots_path() == tmp_path / "s.json"
