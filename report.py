"""
report.py

Plan tables for the console and a one-page PDF report.
Text units: mm, areas shown in m².
"""

from __future__ import annotations

import os
from typing import Dict, List, Optional, Tuple

from reportlab.lib.pagesizes import A3, A4, landscape
from reportlab.pdfgen import canvas

from errors import InvalidInputError
from models import GridPartition, Plan, PlanSet

BEST_LABEL = "BEST"
NO_PLAN_MESSAGE = "No feasible plan: no roll in the catalog can take this image."

REPORT_PAGES: Dict[str, Tuple[float, float]] = {
    "A4_Landscape": landscape(A4),
    "A3_Landscape": landscape(A3),
}

_COLUMNS = ("#", "Mode", "Roll", "Cuts", "Area (m²)", "Saved")


def _m2(area_mm2: float) -> str:
    return f"{area_mm2 / 1_000_000:.3f}"


def plan_rows(plan_set: PlanSet) -> List[Tuple[str, ...]]:
    rows: List[Tuple[str, ...]] = []
    for idx, plan in enumerate(plan_set, start=1):
        rows.append(
            (
                str(idx),
                plan.mode,
                f"{plan.roll_width:g} mm",
                str(plan.cut_count),
                _m2(plan.total_area),
                f"{plan.savings_percent:.1f}%",
            )
        )
    return rows


def format_plan_table(plan_set: PlanSet) -> str:
    """Ranked plans as a fixed-width table; the first row is marked best."""
    lines = [
        "CUT PLANS",
        f"Source: {plan_set.width:.1f} x {plan_set.height:.1f} mm "
        f"({plan_set.original_area:.0f} mm², {_m2(plan_set.original_area)} m²)",
    ]
    if not plan_set.feasible:
        lines.append(NO_PLAN_MESSAGE)
        return "\n".join(lines)

    rows = plan_rows(plan_set)
    widths = [max(len(name), *(len(r[i]) for r in rows)) for i, name in enumerate(_COLUMNS)]

    # Mode column left-aligned, numbers right-aligned.
    def fmt(cells: Tuple[str, ...]) -> str:
        return " | ".join(
            cell.ljust(w) if i == 1 else cell.rjust(w)
            for i, (cell, w) in enumerate(zip(cells, widths))
        )

    header = fmt(_COLUMNS)
    lines.append("=" * len(header))
    lines.append(header)
    lines.append("-" * len(header))
    for i, row in enumerate(rows):
        line = fmt(row)
        if i == 0:
            line += f"  {BEST_LABEL}"
        lines.append(line)
    return "\n".join(lines)


def format_plan_detail(plan: Plan) -> str:
    strips = ", ".join(f"{w:.1f}" for w in plan.strip_widths)
    return (
        f"{plan.mode} on {plan.roll_width:g} mm roll (usable {plan.usable_width:g} mm): "
        f"{plan.strip_count} strips [{strips}] mm, overlap {plan.overlap:g} mm"
    )


def format_grid_summary(grid: GridPartition) -> str:
    return "\n".join(
        [
            f"Piece size: {grid.piece_width:.1f} x {grid.piece_height:.1f} mm",
            f"Columns: {grid.cols} | Rows: {grid.rows}",
            f"Total pieces: {grid.piece_count}",
            f"Overlap: {grid.overlap:g} mm",
        ]
    )


# ---------------------------------------------------------------------
# PDF report
# ---------------------------------------------------------------------

def export_plan_report_pdf(
    plan_set: PlanSet,
    output_pdf_path: str,
    source_label: str = "",
    selected_index: int = 0,
    page_name: str = "A4_Landscape",
) -> None:
    """
    One page: ranked plan table plus a strip diagram of the selected plan.
    """
    if page_name not in REPORT_PAGES:
        raise InvalidInputError(f"Unknown report page '{page_name}' (known: {', '.join(REPORT_PAGES)})")

    page_w, page_h = REPORT_PAGES[page_name]
    out_dir = os.path.dirname(output_pdf_path)
    if out_dir:
        os.makedirs(out_dir, exist_ok=True)

    c = canvas.Canvas(output_pdf_path, pagesize=(page_w, page_h))
    c.setTitle(os.path.basename(output_pdf_path))

    margin = 36.0
    y = page_h - margin

    c.setFont("Helvetica-Bold", 16)
    c.drawString(margin, y - 16, "Cut plans")
    y -= 34

    c.setFont("Helvetica", 10)
    label = f"{source_label}: " if source_label else ""
    c.drawString(
        margin, y,
        f"{label}{plan_set.width:.1f} x {plan_set.height:.1f} mm ({_m2(plan_set.original_area)} m²)",
    )
    y -= 24

    if not plan_set.feasible:
        c.setFont("Helvetica-Bold", 11)
        c.drawString(margin, y, NO_PLAN_MESSAGE)
        c.showPage()
        c.save()
        return

    table_w = page_w * 0.45
    y_after_table = _draw_plan_table(c, plan_set, margin, y, table_w, selected_index)

    selected: Optional[Plan] = None
    if 0 <= selected_index < len(plan_set):
        selected = plan_set[selected_index]

    if selected is not None:
        diag_x = margin + table_w + 24
        diag_w = page_w - diag_x - margin
        diag_h = min(y - margin, page_h * 0.5)
        _draw_plan_diagram(c, selected, plan_set.width, plan_set.height, (diag_x, y - diag_h, diag_w, diag_h))
        c.setFont("Helvetica", 8.5)
        c.drawString(margin, min(y_after_table, y - diag_h) - 18, format_plan_detail(selected))

    c.showPage()
    c.save()


def _draw_plan_table(
    c: canvas.Canvas,
    plan_set: PlanSet,
    x: float,
    top: float,
    width: float,
    selected_index: int,
) -> float:
    row_h = 16.0
    pad = 4.0
    col_fracs = (0.08, 0.2, 0.2, 0.12, 0.22, 0.18)
    col_x = [x]
    for frac in col_fracs[:-1]:
        col_x.append(col_x[-1] + width * frac)

    rows = [_COLUMNS] + plan_rows(plan_set)
    yy = top
    for r, cells in enumerate(rows):
        c.saveState()
        c.setLineWidth(0.6)
        if r - 1 == selected_index:
            c.setFillGray(0.88)
            c.rect(x, yy - row_h, width, row_h, stroke=0, fill=1)
            c.setFillGray(0.0)
        c.rect(x, yy - row_h, width, row_h, stroke=1, fill=0)
        c.setFont("Helvetica-Bold" if r == 0 else "Helvetica", 8.8)
        for cx, cell in zip(col_x, cells):
            c.drawString(cx + pad, yy - row_h + pad + 1, cell)
        if r == 1:
            c.setFont("Helvetica-Bold", 7)
            c.drawRightString(x + width - pad, yy - row_h + pad + 1, BEST_LABEL)
        c.restoreState()
        yy -= row_h
    return yy


def _draw_plan_diagram(
    c: canvas.Canvas,
    plan: Plan,
    width_mm: float,
    height_mm: float,
    box: Tuple[float, float, float, float],
) -> None:
    """Image outline with every strip drawn to scale, overlaps shaded."""
    x, y, w, h = box
    covered = max(width_mm, _strip_extent(plan))
    scale = min(w / covered, h / height_mm)
    draw_h = height_mm * scale

    c.saveState()
    c.setLineWidth(1.0)
    c.rect(x, y + h - draw_h, width_mm * scale, draw_h, stroke=1, fill=0)

    c.setLineWidth(0.5)
    offset = 0.0
    for i, strip in enumerate(plan.strip_widths, start=1):
        sx = x + offset * scale
        c.setFillGray(0.93 if i % 2 else 0.82)
        c.rect(sx, y + h - draw_h, strip * scale, draw_h, stroke=1, fill=1)
        c.setFillGray(0.0)
        c.setFont("Helvetica", 7.5)
        c.drawCentredString(sx + strip * scale / 2.0, y + h - draw_h / 2.0, f"{i}: {strip:.0f}")
        offset += strip - plan.overlap
    c.restoreState()


def _strip_extent(plan: Plan) -> float:
    return sum(plan.strip_widths) - plan.overlap * (plan.strip_count - 1)
