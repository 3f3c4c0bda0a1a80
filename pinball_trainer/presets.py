"""Shot-list presets.

A preset is a JSON list of ``{"shotType", "leftFlipper", "rightFlipper"}``
objects; ``"NP"`` marks a shot that is not possible from that flipper. A preset
folder may carry an ``index.json`` of ``{"name", "filename"}`` entries; without
one the display names are derived from the file names.
"""

from __future__ import annotations

import json
import logging
import math
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from .grid import NOT_POSSIBLE, quantize
from .shots import LOCATIONS, Shot

logger = logging.getLogger(__name__)

PRESETS_DIR_ENV = "PINBALL_TRAINER_PRESETS_DIR"
INDEX_FILENAME = "index.json"
NOT_POSSIBLE_TOKEN = "NP"


class PresetError(ValueError):
    """A preset file is missing or malformed."""


@dataclass(frozen=True, slots=True)
class PresetEntry:
    name: str
    filename: str


def default_presets_dir() -> Path:
    explicit = os.environ.get(PRESETS_DIR_ENV)
    if explicit:
        return Path(explicit).expanduser()
    return Path(__file__).resolve().parent / "presets"


def display_name(filename: str) -> str:
    stem = filename[:-5] if filename.endswith(".json") else filename
    return " ".join(word[:1].upper() + word[1:] for word in stem.split("-") if word)


def list_presets(directory: Path) -> list[PresetEntry]:
    """Presets available in ``directory``; an empty list when there are none."""

    index_path = directory / INDEX_FILENAME
    if index_path.exists():
        try:
            payload = json.loads(index_path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("unreadable preset index %s: %s", index_path, exc)
            payload = None
        if isinstance(payload, list):
            entries = []
            for item in payload:
                if not isinstance(item, dict):
                    continue
                filename = str(item.get("filename", "")).strip()
                if filename == "":
                    continue
                name = str(item.get("name", "")).strip() or display_name(filename)
                entries.append(PresetEntry(name=name, filename=filename))
            return entries

    if not directory.is_dir():
        return []
    return [
        PresetEntry(name=display_name(p.name), filename=p.name)
        for p in sorted(directory.glob("*.json"))
        if p.name != INDEX_FILENAME
    ]


def split_shot_type(shot_type: str) -> tuple[str, str]:
    """Split ``"Left Ramp"`` into ``("Ramp", "Left")``."""

    text = shot_type.strip()
    for location in LOCATIONS:
        if location in text:
            return text.replace(location, "", 1).strip(), location
    return text, ""


def parse_flipper_value(raw: object) -> int:
    if isinstance(raw, str):
        text = raw.strip()
        if text.upper() == NOT_POSSIBLE_TOKEN:
            return NOT_POSSIBLE
        try:
            raw = float(text)
        except ValueError:
            return NOT_POSSIBLE
    if isinstance(raw, bool) or not isinstance(raw, (int, float)):
        return NOT_POSSIBLE
    if not math.isfinite(raw):
        return NOT_POSSIBLE
    return quantize(raw)


def shots_from_preset(data: Any) -> list[Shot]:
    if not isinstance(data, list):
        raise PresetError("preset must be a JSON list of shots")
    shots: list[Shot] = []
    for idx, item in enumerate(data):
        if not isinstance(item, dict):
            raise PresetError(f"shot {idx + 1} is not an object")
        base, location = split_shot_type(str(item.get("shotType", "")))
        shots.append(
            Shot(
                shot_id=idx + 1,
                base=base,
                location=location,
                init_l=parse_flipper_value(item.get("leftFlipper")),
                init_r=parse_flipper_value(item.get("rightFlipper")),
            )
        )
    return shots


def load_preset(path: Path) -> list[Shot]:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise PresetError(f"preset not found: {path.name}") from exc
    except (OSError, json.JSONDecodeError) as exc:
        raise PresetError(f"failed to load preset {path.name}: {exc}") from exc
    shots = shots_from_preset(data)
    logger.info("loaded preset %s (%d shots)", path.name, len(shots))
    return shots


def _export_value(value: int | None) -> int | str | None:
    if value == NOT_POSSIBLE:
        return NOT_POSSIBLE_TOKEN
    return value


def preset_from_shots(shots: list[Shot]) -> list[dict[str, Any]]:
    return [
        {
            "shotType": s.shot_type,
            "leftFlipper": _export_value(s.init_l),
            "rightFlipper": _export_value(s.init_r),
        }
        for s in shots
    ]


def save_preset(path: Path, shots: list[Shot]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_suffix(f"{path.suffix}.tmp")
    tmp_path.write_text(json.dumps(preset_from_shots(shots), indent=2), encoding="utf-8")
    tmp_path.replace(path)
