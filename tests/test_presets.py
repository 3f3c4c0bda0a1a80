from __future__ import annotations

import json
from pathlib import Path

import pytest

from pinball_trainer.presets import (
    PRESETS_DIR_ENV,
    PresetError,
    default_presets_dir,
    display_name,
    list_presets,
    load_preset,
    parse_flipper_value,
    preset_from_shots,
    save_preset,
    split_shot_type,
)
from pinball_trainer.shots import Shot, Side, allowed_range, can_start


def test_bundled_presets_are_listed_and_valid() -> None:
    directory = default_presets_dir()
    entries = list_presets(directory)
    assert [e.name for e in entries] == ["Classic Five Shot", "Modern Stern Layout"]

    for entry in entries:
        shots = load_preset(directory / entry.filename)
        assert can_start(shots)
        for side in Side:
            for i, shot in enumerate(shots):
                value = shot.anchor(side)
                if value == 0:
                    continue
                lo, hi = allowed_range(shots, side, i)
                assert lo <= value <= hi


def test_classic_preset_contents() -> None:
    shots = load_preset(default_presets_dir() / "classic-five-shot.json")
    assert len(shots) == 5
    assert (shots[0].base, shots[0].location) == ("Orbit", "Left")
    assert (shots[0].init_l, shots[0].init_r) == (0, 85)
    assert shots[2].shot_type == "Center Scoop"


def test_split_shot_type() -> None:
    assert split_shot_type("Center Scoop") == ("Scoop", "Center")
    assert split_shot_type("Spinner") == ("Spinner", "")


def test_parse_flipper_value() -> None:
    assert parse_flipper_value("NP") == 0
    assert parse_flipper_value("np") == 0
    assert parse_flipper_value(52) == 50
    assert parse_flipper_value("35") == 35
    assert parse_flipper_value("abc") == 0
    assert parse_flipper_value(True) == 0
    assert parse_flipper_value(None) == 0


def test_load_preset_errors(tmp_path: Path) -> None:
    with pytest.raises(PresetError):
        load_preset(tmp_path / "missing.json")

    bad = tmp_path / "bad.json"
    bad.write_text("{not json", encoding="utf-8")
    with pytest.raises(PresetError):
        load_preset(bad)

    wrong = tmp_path / "wrong.json"
    wrong.write_text(json.dumps({"shots": []}), encoding="utf-8")
    with pytest.raises(PresetError):
        load_preset(wrong)


def test_export_writes_not_possible_token(tmp_path: Path) -> None:
    shots = [
        Shot(shot_id=1, base="Ramp", location="Left", init_l=0, init_r=70),
        Shot(shot_id=2, base="Orbit", location="Right", init_l=80, init_r=0),
    ]
    assert preset_from_shots(shots)[0] == {"shotType": "Left Ramp", "leftFlipper": "NP", "rightFlipper": 70}

    path = tmp_path / "exported.json"
    save_preset(path, shots)
    loaded = load_preset(path)
    assert [(s.shot_type, s.init_l, s.init_r) for s in loaded] == [("Left Ramp", 0, 70), ("Right Orbit", 80, 0)]


def test_directory_without_index_uses_file_names(tmp_path: Path) -> None:
    (tmp_path / "my-home-layout.json").write_text("[]", encoding="utf-8")
    entries = list_presets(tmp_path)
    assert [(e.name, e.filename) for e in entries] == [("My Home Layout", "my-home-layout.json")]
    assert display_name("foo.json") == "Foo"
    assert list_presets(tmp_path / "nope") == []


def test_presets_dir_env_override(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv(PRESETS_DIR_ENV, str(tmp_path))
    assert default_presets_dir() == tmp_path
