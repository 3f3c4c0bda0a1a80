from __future__ import annotations

import math

from pinball_trainer.grid import (
    clamp_steps,
    drift_band,
    format_anchor,
    format_percent,
    legal_band,
    quantize,
    round_half_up,
)


def test_quantize_snaps_to_nearest_five_with_half_up() -> None:
    assert quantize(52) == 50
    assert quantize(52.5) == 55
    assert quantize(2.5) == 5
    assert quantize(47.4) == 45
    assert quantize(100) == 100


def test_quantize_clamps_and_is_total() -> None:
    assert quantize(-3) == 0
    assert quantize(103) == 100
    assert quantize(math.nan) == 0
    assert quantize(math.inf) == 100
    assert quantize(-math.inf) == 0


def test_quantize_is_idempotent_on_the_grid() -> None:
    for v in range(0, 101, 5):
        assert quantize(v) == v
        assert quantize(quantize(v + 1.2)) == quantize(v + 1.2)


def test_round_half_up_rounds_towards_positive_infinity_on_ties() -> None:
    assert round_half_up(2.5) == 3
    assert round_half_up(-2.5) == -2
    assert round_half_up(2.49) == 2


def test_legal_band_never_reaches_the_sentinel() -> None:
    assert legal_band(50) == (30, 70)
    assert legal_band(10) == (5, 30)
    assert legal_band(95) == (75, 100)


def test_drift_band_is_tight_around_the_anchor() -> None:
    assert drift_band(50, 2) == (40, 60)
    assert drift_band(50, 0) == (50, 50)
    assert drift_band(5, 3) == (5, 20)


def test_clamp_steps_floors_fractions_and_caps() -> None:
    assert clamp_steps(2.7) == 2
    assert clamp_steps(9) == 4
    assert clamp_steps(-1) == 0
    assert clamp_steps(math.nan) == 0


def test_formatting() -> None:
    assert format_percent(5) == "05"
    assert format_percent(100) == "100"
    assert format_anchor(None) == "--"
    assert format_anchor(0) == "NP"
    assert format_anchor(45) == "45"
