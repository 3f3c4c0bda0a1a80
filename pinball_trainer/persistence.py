from __future__ import annotations

import json
import logging
import os
import sqlite3
import time
from pathlib import Path

from .grid import quantize
from .results import SessionResult
from .shots import Shot

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1
DB_PATH_ENV = "PINBALL_TRAINER_DB_PATH"
SHOTS_PATH_ENV = "PINBALL_TRAINER_SHOTS_PATH"


def default_db_path() -> Path:
    explicit = os.environ.get(DB_PATH_ENV)
    if explicit:
        return Path(explicit).expanduser()
    return Path.home() / ".pinball_trainer.sqlite3"


def default_shots_path() -> Path:
    explicit = os.environ.get(SHOTS_PATH_ENV)
    if explicit:
        return Path(explicit).expanduser()
    return Path.home() / ".pinball_trainer_shots.json"


def open_db(path: Path) -> sqlite3.Connection:
    conn = sqlite3.connect(path)
    conn.execute("PRAGMA foreign_keys=ON;")
    conn.execute("PRAGMA journal_mode=WAL;")
    conn.execute("PRAGMA synchronous=NORMAL;")
    _migrate(conn)
    return conn


def _utc_now_iso() -> str:
    return time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime(time.time()))


def _migrate(conn: sqlite3.Connection) -> None:
    row = conn.execute("PRAGMA user_version;").fetchone()
    ver = int(row[0]) if row else 0
    if ver >= SCHEMA_VERSION:
        return

    with conn:
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS session (
                id INTEGER PRIMARY KEY,
                app_version TEXT NOT NULL,
                rng_seed INTEGER NOT NULL,
                initial_random_steps INTEGER NOT NULL,
                drift_every INTEGER NOT NULL,
                drift_magnitude REAL NOT NULL,
                mode TEXT NOT NULL,
                shot_count INTEGER NOT NULL,
                completed_at_utc TEXT NOT NULL
            );
            """
        )
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS metric (
                session_id INTEGER NOT NULL REFERENCES session(id) ON DELETE CASCADE,
                key TEXT NOT NULL,
                value TEXT NOT NULL,
                PRIMARY KEY (session_id, key)
            );
            """
        )
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS recall_attempt (
                id INTEGER PRIMARY KEY,
                session_id INTEGER NOT NULL REFERENCES session(id) ON DELETE CASCADE,
                seq INTEGER NOT NULL,
                shot_index INTEGER NOT NULL,
                side TEXT NOT NULL,
                input_value INTEGER NOT NULL,
                truth_value INTEGER NOT NULL,
                delta INTEGER NOT NULL,
                severity TEXT NOT NULL,
                label TEXT NOT NULL,
                base_points INTEGER NOT NULL,
                penalty INTEGER NOT NULL,
                points INTEGER NOT NULL,
                previous_value INTEGER,
                required_direction INTEGER NOT NULL,
                adjust_correct INTEGER NOT NULL,
                answered_at_ms INTEGER NOT NULL
            );
            """
        )
        conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_recall_attempt_session_seq ON recall_attempt(session_id, seq);"
        )
        conn.execute(f"PRAGMA user_version={SCHEMA_VERSION};")


def record_session(*, db_path: Path, result: SessionResult, app_version: str) -> int:
    """
    Store one finished session:
      session -> metric + recall_attempt
    """
    conn = open_db(db_path)
    try:
        session_id = _insert_session(conn=conn, result=result, app_version=app_version)
    finally:
        conn.close()
    logger.info("saved session %d (%d attempts) to %s", session_id, len(result.attempts), db_path)
    return session_id


def _insert_session(*, conn: sqlite3.Connection, result: SessionResult, app_version: str) -> int:
    with conn:
        cur = conn.execute(
            """
            INSERT INTO session(
                app_version, rng_seed, initial_random_steps, drift_every,
                drift_magnitude, mode, shot_count, completed_at_utc
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                app_version,
                int(result.seed),
                int(result.initial_random_steps),
                int(result.drift_every),
                float(result.drift_magnitude),
                str(result.mode),
                int(result.shot_count),
                _utc_now_iso(),
            ),
        )
        session_id = int(cur.lastrowid)

        final = "" if result.final_score is None else str(result.final_score)
        median = "" if result.median_abs_error is None else f"{result.median_abs_error:.3f}"
        metrics = {
            "attempted": str(result.attempted),
            "total_points": str(result.total_points),
            "mean_abs_error": f"{result.mean_abs_error:.6f}",
            "median_abs_error": median,
            "perfect": str(result.perfect),
            "adjustments_missed": str(result.adjustments_missed),
            "drift_cycles": str(result.drift_cycles),
            "final_score": final,
        }
        for k, v in metrics.items():
            conn.execute("INSERT INTO metric(session_id, key, value) VALUES (?, ?, ?)", (session_id, k, v))

        for a in result.attempts:
            conn.execute(
                """
                INSERT INTO recall_attempt(
                    session_id, seq, shot_index, side, input_value, truth_value, delta,
                    severity, label, base_points, penalty, points, previous_value,
                    required_direction, adjust_correct, answered_at_ms
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    session_id,
                    int(a.index),
                    int(a.shot_index),
                    str(a.side.value),
                    int(a.value),
                    int(a.truth),
                    int(a.delta),
                    str(a.severity.value),
                    str(a.label.value),
                    int(a.base_points),
                    int(a.penalty),
                    int(a.points),
                    a.previous_value,
                    int(a.required_direction),
                    1 if a.adjust_correct else 0,
                    int(round(a.answered_at_s * 1000.0)),
                ),
            )

    return session_id


def load_shots(path: Path) -> list[Shot]:
    """Saved shot list; an empty list when the file is missing or unreadable."""

    if not path.exists():
        return []
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        logger.warning("ignoring unreadable shot list %s: %s", path, exc)
        return []
    if not isinstance(payload, dict) or not isinstance(payload.get("shots"), list):
        return []

    shots: list[Shot] = []
    for item in payload["shots"]:
        if not isinstance(item, dict):
            continue
        try:
            shot_id = int(item["id"])
        except (KeyError, TypeError, ValueError):
            continue
        shots.append(
            Shot(
                shot_id=shot_id,
                base=str(item.get("base", "")),
                location=str(item.get("location", "")),
                init_l=_as_anchor(item.get("init_l")),
                init_r=_as_anchor(item.get("init_r")),
            )
        )
    return shots


def save_shots(path: Path, shots: list[Shot]) -> None:
    payload = {
        "version": SCHEMA_VERSION,
        "shots": [
            {
                "id": s.shot_id,
                "base": s.base,
                "location": s.location,
                "init_l": s.init_l,
                "init_r": s.init_r,
            }
            for s in shots
        ],
    }
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_suffix(f"{path.suffix}.tmp")
    tmp_path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
    tmp_path.replace(path)


def _as_anchor(value: object) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        v = float(value)
    except (TypeError, ValueError):
        return None
    return quantize(v)
