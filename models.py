"""
models.py

Dataclasses for planner config, cutting plans, grid partitions, export
tasks and export settings.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator, List, Optional, Tuple

from rolls import DEFAULT_ROLL_WIDTHS

MODE_OPTIMIZE = "optimize"
MODE_FILL = "fill"


@dataclass
class PlannerConfig:
    overlap_mm: float = 20.0  # glued seam shared by neighbouring strips
    margin_mm: float = 50.0  # unprintable border deducted from the roll
    roll_widths: Tuple[float, ...] = DEFAULT_ROLL_WIDTHS


@dataclass
class ExportSettings:
    file_format: str = "TIFF"
    extension: str = "tif"
    compression: str = "raw"  # Pillow's name for uncompressed TIFF

    pdf_render_dpi: int = 300
    pdf_page_index: int = 0
    # Print files blow past Pillow's decompression-bomb limit; None disables it.
    max_image_pixels: Optional[int] = None


@dataclass(frozen=True)
class Plan:
    """
    One cutting strategy for one roll width.

    mode:
      - "optimize": all strips equal width
      - "fill": full-width strips, last one possibly narrower
    """
    mode: str
    roll_width: float
    usable_width: float
    strip_widths: Tuple[float, ...]
    overlap: float
    height: float
    original_area: float

    @property
    def strip_count(self) -> int:
        return len(self.strip_widths)

    @property
    def cut_count(self) -> int:
        return len(self.strip_widths) - 1

    @property
    def total_area(self) -> float:
        return self.height * sum(self.strip_widths)

    @property
    def savings_percent(self) -> float:
        if self.original_area <= 0:
            return 0.0
        return (self.original_area - self.total_area) / self.original_area * 100.0


@dataclass
class PlanSet:
    """Ranked plans for one source size. Replaced on every calculation."""
    width: float
    height: float
    plans: List[Plan] = field(default_factory=list)

    @property
    def original_area(self) -> float:
        return self.width * self.height

    @property
    def feasible(self) -> bool:
        return bool(self.plans)

    @property
    def best(self) -> Optional[Plan]:
        return self.plans[0] if self.plans else None

    def __len__(self) -> int:
        return len(self.plans)

    def __iter__(self) -> Iterator[Plan]:
        return iter(self.plans)

    def __getitem__(self, index: int) -> Plan:
        return self.plans[index]


@dataclass(frozen=True)
class GridPartition:
    cols: int
    rows: int
    piece_width: float
    piece_height: float
    overlap: float
    width: float
    height: float

    @property
    def piece_count(self) -> int:
        return self.cols * self.rows


@dataclass(frozen=True)
class ExportTask:
    """One output piece: pixel rectangle, nominal pixel size, file name."""
    index: int  # 1-based
    rect: Tuple[float, float, float, float]  # x1, y1, x2, y2
    target_size: Tuple[int, int]
    file_name: str
    row: Optional[int] = None  # 1-based, grid pieces only
    col: Optional[int] = None
