"""
planner.py

Cutting plans for printing one wide image on roll-fed printers.

- optimize: fewest equal-width strips that fit each roll
- fill: greedy full-width strips, remainder in the last one
- rank_plans / calculate_plans: merge both, order by cuts then roll width
- grid_partition: fixed cols x rows tiling, no roll catalog involved

Pure functions, no I/O. All lengths in millimetres.
"""

from __future__ import annotations

import logging
import math
from typing import Iterable, List, Sequence

from errors import InvalidInputError
from models import MODE_FILL, MODE_OPTIMIZE, GridPartition, Plan, PlannerConfig, PlanSet
from rolls import get_roll_catalog

logger = logging.getLogger(__name__)

MAX_STRIPS = 100


def _require_positive(name: str, value: float) -> float:
    if value is None or not math.isfinite(value) or value <= 0:
        raise InvalidInputError(f"{name} must be a positive number, got {value!r}")
    return float(value)


def _require_non_negative(name: str, value: float) -> float:
    if value is None or not math.isfinite(value) or value < 0:
        raise InvalidInputError(f"{name} must be zero or positive, got {value!r}")
    return float(value)


def _validate(
    width: float,
    height: float,
    overlap: float,
    margin: float,
    roll_widths: Iterable[float],
) -> Sequence[float]:
    _require_positive("Width", width)
    _require_positive("Height", height)
    _require_non_negative("Overlap", overlap)
    _require_non_negative("Margin", margin)
    return get_roll_catalog(roll_widths)


def optimize(
    width: float,
    height: float,
    overlap: float,
    margin: float,
    roll_widths: Iterable[float],
) -> List[Plan]:
    """
    Equal-width strips: for each roll find the smallest n whose strip width
    ceil((width + (n - 1) * overlap) / n) fits in roll - margin.

    Rolls that need more than MAX_STRIPS strips are left out.
    """
    catalog = _validate(width, height, overlap, margin, roll_widths)
    original_area = width * height
    plans: List[Plan] = []

    for roll in catalog:
        usable = roll - margin
        if usable <= 0:
            logger.debug("optimize: roll %g skipped, margin %g leaves nothing", roll, margin)
            continue

        strip = None
        for n in range(1, MAX_STRIPS + 1):
            s = math.ceil((width + (n - 1) * overlap) / n)
            if s <= usable:
                strip = s
                break

        if strip is None:
            logger.debug("optimize: roll %g needs more than %d strips", roll, MAX_STRIPS)
            continue

        plans.append(
            Plan(
                mode=MODE_OPTIMIZE,
                roll_width=roll,
                usable_width=usable,
                strip_widths=(float(strip),) * n,
                overlap=overlap,
                height=height,
                original_area=original_area,
            )
        )

    return plans


def fill(
    width: float,
    height: float,
    overlap: float,
    margin: float,
    roll_widths: Iterable[float],
) -> List[Plan]:
    """
    Greedy strips at full roll width (roll - margin).

    The margin comes off the image width once, not off every strip. Each full
    strip advances by its width minus the overlap; whatever is left becomes
    the last, narrower strip.
    """
    catalog = _validate(width, height, overlap, margin, roll_widths)
    original_area = width * height
    usable_total = width - margin
    plans: List[Plan] = []

    if usable_total <= 0:
        logger.debug("fill: image width %g is within the margin %g", width, margin)
        return plans

    for roll in catalog:
        strip_width = roll - margin
        if strip_width <= 0:
            continue
        if strip_width <= overlap:
            logger.debug("fill: roll %g skipped, strip %g does not exceed overlap", roll, strip_width)
            continue

        strips: List[float] = []
        remaining = usable_total
        while remaining > 0:
            if remaining >= strip_width:
                strips.append(strip_width)
                remaining -= strip_width - overlap
            else:
                strips.append(remaining)
                remaining = 0

        plans.append(
            Plan(
                mode=MODE_FILL,
                roll_width=roll,
                usable_width=strip_width,
                strip_widths=tuple(strips),
                overlap=overlap,
                height=height,
                original_area=original_area,
            )
        )

    return plans


def rank_plans(plans: Iterable[Plan]) -> List[Plan]:
    """Fewest cuts first, then the narrower roll. Stable for full ties."""
    return sorted(plans, key=lambda p: (p.cut_count, p.roll_width))


def calculate_plans(width: float, height: float, config: PlannerConfig) -> PlanSet:
    """
    Run both modes over the whole catalog and rank the result.

    An empty PlanSet (feasible == False) means no roll can take the image.
    """
    optimize_plans = optimize(width, height, config.overlap_mm, config.margin_mm, config.roll_widths)
    fill_plans = fill(width, height, config.overlap_mm, config.margin_mm, config.roll_widths)

    plan_set = PlanSet(width=float(width), height=float(height), plans=rank_plans(optimize_plans + fill_plans))
    if plan_set.feasible:
        best = plan_set.best
        logger.info(
            "Calculated %d plans, best: %s on %g mm roll with %d cuts",
            len(plan_set), best.mode, best.roll_width, best.cut_count,
        )
    else:
        logger.info("No feasible plan for %.1f x %.1f mm", width, height)
    return plan_set


def grid_partition(
    width: float,
    height: float,
    cols: int,
    rows: int,
    overlap: float,
) -> GridPartition:
    """Split into cols x rows equal pieces that share `overlap` at every seam."""
    for name, value in (("Columns", cols), ("Rows", rows)):
        if isinstance(value, bool) or not isinstance(value, int) or value < 1:
            raise InvalidInputError(f"{name} must be an integer >= 1, got {value!r}")
    _require_positive("Width", width)
    _require_positive("Height", height)
    _require_non_negative("Overlap", overlap)
    # neighbouring pieces must still advance across the image
    if cols > 1 and overlap >= width:
        raise InvalidInputError(f"Overlap {overlap:g} mm must be smaller than the width {width:g} mm")
    if rows > 1 and overlap >= height:
        raise InvalidInputError(f"Overlap {overlap:g} mm must be smaller than the height {height:g} mm")

    return GridPartition(
        cols=cols,
        rows=rows,
        piece_width=(width + (cols - 1) * overlap) / cols,
        piece_height=(height + (rows - 1) * overlap) / rows,
        overlap=float(overlap),
        width=float(width),
        height=float(height),
    )
