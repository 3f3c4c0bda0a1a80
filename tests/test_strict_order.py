from __future__ import annotations

from pinball_trainer.grid import legal_band
from pinball_trainer.strict_order import enforce_strict


def test_ties_are_spread_one_step_apart() -> None:
    assert enforce_strict([50, 50, 50], [50, 50, 50], [0, 1, 2]) == [50, 55, 60]


def test_strict_input_is_unchanged() -> None:
    assert enforce_strict([20, 50, 80], [20, 50, 80], [0, 1, 2]) == [20, 50, 80]


def test_no_headroom_lowers_the_predecessor() -> None:
    assert enforce_strict([100, 100], [100, 100], [0, 1]) == [95, 100]


def test_lowering_cascades_further_back() -> None:
    assert enforce_strict([100, 100, 100], [90, 95, 100], [0, 1, 2]) == [90, 95, 100]


def test_not_possible_shots_are_skipped() -> None:
    # base order: index 1 (sentinel) first, then 0 and 2.
    assert enforce_strict([50, 0, 50], [50, 0, 50], [1, 0, 2]) == [50, 0, 55]


def test_descending_layout_is_ordered_along_its_permutation() -> None:
    base = [80, 50, 20]
    order = [2, 1, 0]
    assert enforce_strict([80, 50, 20], base, order) == [80, 50, 20]


def test_infeasible_layout_degrades_without_raising() -> None:
    base = [5] * 7
    out = enforce_strict([5] * 7, base, list(range(7)))
    for v, b in zip(out, base):
        lo, hi = legal_band(b)
        assert lo <= v <= hi
    assert all(a <= b for a, b in zip(out, out[1:]))
