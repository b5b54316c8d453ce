"""
session.py

One working session: the open document, the last plan list, the selected
plan and the last grid calculation.

The planner keeps no state between calls; everything that must survive from
"calculate" to "export" lives here.
"""

from __future__ import annotations

import logging
from typing import Optional

from errors import InvalidInputError
from models import ExportSettings, GridPartition, Plan, PlannerConfig, PlanSet
from planner import calculate_plans, grid_partition
from slicing_engine import ImageWorkspace, PillowWorkspace, export_layout

logger = logging.getLogger(__name__)


class SliceSession:
    def __init__(self, workspace: ImageWorkspace, settings: Optional[ExportSettings] = None) -> None:
        self.workspace = workspace
        self.settings = settings or ExportSettings()

        self.plan_set: Optional[PlanSet] = None
        self.selected_index: Optional[int] = None
        self.grid: Optional[GridPartition] = None

    @classmethod
    def open(
        cls,
        source_path: str,
        resolution: Optional[float] = None,
        settings: Optional[ExportSettings] = None,
    ) -> "SliceSession":
        settings = settings or ExportSettings()
        workspace = PillowWorkspace(source_path, resolution=resolution, settings=settings)
        logger.info(
            "Opened %s (%dx%d px @ %.0f dpi)",
            workspace.name, workspace.pixel_size[0], workspace.pixel_size[1], workspace.resolution,
        )
        return cls(workspace, settings)

    # ------------------------------------------------------------------
    # Document
    # ------------------------------------------------------------------

    @property
    def size_mm(self) -> tuple[float, float]:
        return self.workspace.size_mm

    def document_info(self) -> str:
        width_mm, height_mm = self.size_mm
        width_px, height_px = self.workspace.pixel_size
        area_m2 = width_mm * height_mm / 1_000_000
        return "\n".join(
            [
                f"File: {self.workspace.name}",
                f"Size: {width_mm:.1f} x {height_mm:.1f} mm ({width_px} x {height_px} px)",
                f"Area: {area_m2:.3f} m² | DPI: {self.workspace.resolution:.0f}",
            ]
        )

    # ------------------------------------------------------------------
    # Plans
    # ------------------------------------------------------------------

    def calculate_plans(self, config: PlannerConfig) -> PlanSet:
        """Recalculate from scratch; the previous plan list and selection are dropped."""
        width_mm, height_mm = self.size_mm
        self.plan_set = calculate_plans(width_mm, height_mm, config)
        self.selected_index = 0 if self.plan_set.feasible else None
        return self.plan_set

    def select_plan(self, index: int) -> Plan:
        """Select by 0-based index into the ranked list."""
        if self.plan_set is None or not self.plan_set.feasible:
            raise InvalidInputError("Calculate plans before selecting one.")
        if not 0 <= index < len(self.plan_set):
            raise InvalidInputError(f"Plan number must be between 1 and {len(self.plan_set)}, got {index + 1}")
        self.selected_index = index
        return self.plan_set[index]

    @property
    def selected_plan(self) -> Optional[Plan]:
        if self.plan_set is None or self.selected_index is None:
            return None
        return self.plan_set[self.selected_index]

    def export_selected(self, destination: str) -> int:
        plan = self.selected_plan
        if plan is None:
            raise InvalidInputError("No plan selected.")
        return export_layout(plan, self.workspace, destination, settings=self.settings)

    # ------------------------------------------------------------------
    # Grid
    # ------------------------------------------------------------------

    def update_grid(self, cols: int, rows: int, overlap: float) -> GridPartition:
        width_mm, height_mm = self.size_mm
        self.grid = None
        self.grid = grid_partition(width_mm, height_mm, cols, rows, overlap)
        return self.grid

    def export_grid(self, destination: str) -> int:
        if self.grid is None:
            raise InvalidInputError("Set the grid columns and rows first.")
        return export_layout(self.grid, self.workspace, destination, settings=self.settings)
