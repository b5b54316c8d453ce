"""Tests for planner module."""
import math

import pytest

from errors import InvalidInputError
from models import MODE_FILL, MODE_OPTIMIZE, Plan, PlannerConfig
from planner import MAX_STRIPS, calculate_plans, fill, grid_partition, optimize, rank_plans
from rolls import DEFAULT_ROLL_WIDTHS

CATALOG = [914, 1070, 1270, 1520]


def _by_roll(plans):
    return {p.roll_width: p for p in plans}


class TestOptimize:
    """Equal-width strips."""

    def test_reference_scenario(self):
        plans = _by_roll(optimize(3000, 1000, 20, 50, CATALOG))

        wide = plans[1520]
        assert wide.usable_width == 1470
        assert wide.strip_widths == (1014.0, 1014.0, 1014.0)
        assert wide.cut_count == 2
        assert wide.total_area == pytest.approx(3 * 1014 * 1000)

        narrow = plans[914]
        assert narrow.usable_width == 864
        assert narrow.strip_count == 4
        assert narrow.strip_widths[0] == math.ceil((3000 + 60) / 4)
        assert narrow.cut_count == 3

    def test_single_strip_when_image_fits(self):
        plans = optimize(800, 500, 20, 50, [914])
        assert plans[0].strip_widths == (800.0,)
        assert plans[0].cut_count == 0

    def test_roll_inside_margin_is_skipped(self):
        plans = optimize(3000, 1000, 20, 950, CATALOG)
        assert 914 not in _by_roll(plans)
        assert set(_by_roll(plans)) == {1070, 1270, 1520}

    def test_strip_cap_drops_roll(self):
        # Overlap as wide as the usable width: no n can ever fit.
        assert optimize(3000, 1000, 900, 50, [914]) == []

    def test_needs_more_than_cap(self):
        width = 10 * (MAX_STRIPS + 5)
        assert optimize(width, 100, 0, 0, [10]) == []
        assert optimize(10 * MAX_STRIPS, 100, 0, 0, [10])[0].strip_count == MAX_STRIPS

    @pytest.mark.parametrize("width", [500, 2999, 3000, 4321.5])
    @pytest.mark.parametrize("overlap", [0, 20, 35])
    @pytest.mark.parametrize("margin", [0, 50])
    def test_coverage_and_minimality(self, width, overlap, margin):
        for plan in optimize(width, 1000, overlap, margin, CATALOG):
            n = plan.strip_count
            s = plan.strip_widths[0]
            assert set(plan.strip_widths) == {s}
            assert s <= plan.usable_width
            assert n * s - (n - 1) * overlap >= width
            if n > 1:
                fewer = math.ceil((width + (n - 2) * overlap) / (n - 1))
                assert fewer > plan.usable_width


class TestFill:
    """Greedy full-width strips."""

    def test_reference_scenario(self):
        plans = _by_roll(fill(3000, 1000, 20, 50, CATALOG))

        assert plans[914].strip_widths == pytest.approx((864, 864, 864, 418))
        assert plans[1070].strip_widths == pytest.approx((1020, 1020, 950))
        assert plans[1270].strip_widths == pytest.approx((1220, 1220, 550))
        assert plans[1520].strip_widths == pytest.approx((1470, 1470, 50))
        assert plans[1520].usable_width == 1470
        assert plans[1520].total_area == pytest.approx(2990 * 1000)

    def test_margin_taken_once_from_image(self):
        plan = fill(1000, 100, 0, 100, [2000])[0]
        # 900 usable image width, one strip of the remainder.
        assert plan.strip_widths == (900,)

    def test_roll_inside_margin_is_skipped(self):
        assert fill(3000, 1000, 20, 1000, [914, 1000]) == []

    def test_strip_not_wider_than_overlap_is_skipped(self):
        assert fill(3000, 1000, 100, 50, [150]) == []

    def test_image_inside_margin(self):
        assert fill(40, 1000, 0, 50, CATALOG) == []

    @pytest.mark.parametrize("width", [500, 2999, 3000, 4321.5])
    @pytest.mark.parametrize("overlap", [0, 20])
    def test_coverage(self, width, overlap):
        margin = 50
        for plan in fill(width, 1000, overlap, margin, CATALOG):
            strips = plan.strip_widths
            covered = sum(w - overlap for w in strips[:-1]) + strips[-1]
            assert covered >= (width - margin) - 1e-9
            assert all(w == plan.roll_width - margin for w in strips[:-1])
            assert all(w > 0 for w in strips)
            assert strips[-1] <= plan.usable_width


class TestRanking:

    def _plan(self, mode, roll, strips):
        return Plan(
            mode=mode, roll_width=roll, usable_width=roll - 50, strip_widths=tuple(strips),
            overlap=20, height=1000, original_area=3_000_000,
        )

    def test_fewer_cuts_first_then_narrower_roll(self):
        a = self._plan(MODE_OPTIMIZE, 1520, [1014] * 3)
        b = self._plan(MODE_OPTIMIZE, 914, [765] * 4)
        c = self._plan(MODE_FILL, 1070, [1020, 1020, 950])
        ranked = rank_plans([a, b, c])
        assert ranked == [c, a, b]

    def test_full_tie_keeps_input_order(self):
        opt = self._plan(MODE_OPTIMIZE, 1270, [1014] * 3)
        fil = self._plan(MODE_FILL, 1270, [1220, 1220, 550])
        assert rank_plans([opt, fil]) == [opt, fil]

    def test_reference_scenario_order(self):
        plan_set = calculate_plans(3000, 1000, PlannerConfig(overlap_mm=20, margin_mm=50, roll_widths=CATALOG))

        order = [(p.mode, p.roll_width, p.cut_count) for p in plan_set]
        assert order == [
            (MODE_OPTIMIZE, 1070, 2),
            (MODE_FILL, 1070, 2),
            (MODE_OPTIMIZE, 1270, 2),
            (MODE_FILL, 1270, 2),
            (MODE_OPTIMIZE, 1520, 2),
            (MODE_FILL, 1520, 2),
            (MODE_OPTIMIZE, 914, 3),
            (MODE_FILL, 914, 3),
        ]
        positions = {(p.mode, p.roll_width): i for i, p in enumerate(plan_set)}
        assert positions[(MODE_OPTIMIZE, 1520)] < positions[(MODE_OPTIMIZE, 914)]
        assert plan_set.best is plan_set[0]

    def test_savings_percent(self):
        plan_set = calculate_plans(3000, 1000, PlannerConfig(overlap_mm=20, margin_mm=50, roll_widths=[1520]))
        opt = [p for p in plan_set if p.mode == MODE_OPTIMIZE][0]
        assert opt.savings_percent == pytest.approx((3_000_000 - 3_042_000) / 3_000_000 * 100)

    def test_idempotent(self):
        config = PlannerConfig(overlap_mm=15, margin_mm=30)
        assert calculate_plans(2500, 1200, config).plans == calculate_plans(2500, 1200, config).plans

    def test_no_feasible_plan_is_not_an_error(self):
        plan_set = calculate_plans(3000, 1000, PlannerConfig(overlap_mm=20, margin_mm=2000, roll_widths=CATALOG))
        assert plan_set.plans == []
        assert not plan_set.feasible
        assert plan_set.best is None

    def test_default_catalog(self):
        plan_set = calculate_plans(3000, 1000, PlannerConfig())
        assert {p.roll_width for p in plan_set} == set(DEFAULT_ROLL_WIDTHS)


class TestValidation:

    @pytest.mark.parametrize(
        "kwargs",
        [
            dict(width=0),
            dict(width=-10),
            dict(height=0),
            dict(overlap=-1),
            dict(margin=-5),
            dict(width=float("nan")),
            dict(roll_widths=[]),
            dict(roll_widths=[914, 0]),
            dict(roll_widths=[float("nan")]),
            dict(roll_widths=[914, float("inf")]),
        ],
    )
    def test_invalid_inputs(self, kwargs):
        args = dict(width=3000, height=1000, overlap=20, margin=50, roll_widths=CATALOG)
        args.update(kwargs)
        with pytest.raises(InvalidInputError):
            optimize(**args)
        with pytest.raises(InvalidInputError):
            fill(**args)


class TestGridPartition:

    def test_reference_scenario(self):
        grid = grid_partition(1800, 900, cols=3, rows=2, overlap=10)
        assert grid.piece_width == pytest.approx(606.6667, abs=1e-3)
        assert grid.piece_height == pytest.approx(455)
        assert grid.piece_count == 6

    def test_over_coverage(self):
        grid = grid_partition(1800, 900, cols=3, rows=2, overlap=10)
        assert grid.piece_count * grid.piece_width * grid.piece_height >= 1800 * 900

    def test_single_piece(self):
        grid = grid_partition(1800, 900, cols=1, rows=1, overlap=10)
        assert (grid.piece_width, grid.piece_height) == (1800, 900)

    @pytest.mark.parametrize("cols,rows", [(0, 2), (2, 0), (-1, 1), (1.5, 2), (True, 2)])
    def test_bad_counts(self, cols, rows):
        with pytest.raises(InvalidInputError):
            grid_partition(1800, 900, cols=cols, rows=rows, overlap=10)

    def test_bad_dimensions(self):
        with pytest.raises(InvalidInputError):
            grid_partition(0, 900, cols=2, rows=2, overlap=10)
        with pytest.raises(InvalidInputError):
            grid_partition(1800, 900, cols=2, rows=2, overlap=-1)

    @pytest.mark.parametrize(
        "cols,rows,overlap",
        [(3, 1, 200), (2, 1, 100), (1, 2, 100), (1, 3, 150)],
    )
    def test_overlap_must_leave_room_to_advance(self, cols, rows, overlap):
        with pytest.raises(InvalidInputError):
            grid_partition(100, 100, cols=cols, rows=rows, overlap=overlap)

    def test_overlap_ignored_without_a_seam(self):
        grid = grid_partition(100, 100, cols=1, rows=1, overlap=500)
        assert (grid.piece_width, grid.piece_height) == (100, 100)
