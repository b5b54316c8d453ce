"""
slicing_engine.py

Exports a chosen plan (or grid) as one file per piece:
- Piece rectangles are computed in pixel space from the plan's mm sizes.
- Right/bottom edges are clamped to the source image.
- Pieces are written strictly one after another through an ImageWorkspace,
  which owns the single "active document".
- Output is uncompressed TIFF carrying the source DPI and ICC profile.

Dependencies:
- Pillow
- pymupdf (fitz), for PDF sources
"""

from __future__ import annotations

import logging
import math
import os
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Iterator, List, Optional, Tuple, Union

import fitz  # PyMuPDF
from PIL import Image

from errors import InvalidInputError, PieceExportError, SourceLoadError
from models import MODE_OPTIMIZE, ExportSettings, ExportTask, GridPartition, Plan
from units import to_physical, to_pixels

logger = logging.getLogger(__name__)

PDF_EXTS = {".pdf"}

DEFAULT_RESOLUTION = 72.0  # what untagged rasters are assumed to be

Layout = Union[Plan, GridPartition]

# Canvas fill after flattening, per Pillow mode.
_WHITE = {
    "1": 1,
    "L": 255,
    "P": 255,
    "RGB": (255, 255, 255),
    "CMYK": (0, 0, 0, 0),
    "LAB": (255, 128, 128),
    "YCbCr": (255, 128, 128),
    "I": 65535,
    "I;16": 65535,
    "F": 1.0,
}


# ---------------------------------------------------------------------
# Source loading
# ---------------------------------------------------------------------

def load_source_image(
    path: str,
    settings: Optional[ExportSettings] = None,
) -> Tuple[Image.Image, Optional[float]]:
    """
    Open a raster or PDF source.

    Returns the image and the resolution stored in the file (None when the
    file carries none). PDFs are rasterised at settings.pdf_render_dpi.
    """
    settings = settings or ExportSettings()
    if not os.path.isfile(path):
        raise SourceLoadError(f"Source not found: {path}")

    ext = os.path.splitext(path)[1].lower()
    if ext in PDF_EXTS:
        img = _render_pdf_page_to_image(path, settings.pdf_page_index, dpi=settings.pdf_render_dpi)
        return img, float(settings.pdf_render_dpi)

    # Pillow's limit is process-wide; only lift it for this open
    previous_limit = Image.MAX_IMAGE_PIXELS
    Image.MAX_IMAGE_PIXELS = settings.max_image_pixels
    try:
        img = Image.open(path)
        img.load()
    except (OSError, Image.DecompressionBombError) as exc:
        raise SourceLoadError(f"Could not open {path}: {exc}") from exc
    finally:
        Image.MAX_IMAGE_PIXELS = previous_limit

    return img, _read_resolution(img)


def _render_pdf_page_to_image(pdf_path: str, page_index: int, dpi: int = 300) -> Image.Image:
    """
    Render one PDF page into a PIL Image.
    """
    if dpi <= 0:
        dpi = 300

    try:
        doc = fitz.open(pdf_path)
    except (RuntimeError, ValueError) as exc:
        raise SourceLoadError(f"Could not open PDF {pdf_path}: {exc}") from exc

    try:
        if page_index < 0 or page_index >= doc.page_count:
            raise SourceLoadError(f"PDF page_index out of range: {page_index} for {pdf_path}")

        page = doc.load_page(page_index)
        zoom = dpi / 72.0
        mat = fitz.Matrix(zoom, zoom)
        pix = page.get_pixmap(matrix=mat, alpha=False)

        img = Image.frombytes("RGB", (pix.width, pix.height), pix.samples)
        img.info["dpi"] = (dpi, dpi)
        return img
    finally:
        doc.close()


def _read_resolution(img: Image.Image) -> Optional[float]:
    dpi = img.info.get("dpi")
    if not dpi:
        return None
    try:
        x_dpi = float(dpi[0])
    except (TypeError, ValueError, IndexError):
        return None
    return x_dpi if x_dpi > 0 else None


def _flatten(img: Image.Image) -> Image.Image:
    """Composite any transparency onto white, like flattening onto a background."""
    has_alpha = img.mode in ("RGBA", "LA", "PA") or (img.mode == "P" and "transparency" in img.info)
    if not has_alpha:
        return img

    out_mode = "L" if img.mode == "LA" else "RGB"
    rgba = img.convert("RGBA")
    background = Image.new("RGBA", rgba.size, (255, 255, 255, 255))
    background.alpha_composite(rgba)
    flat = background.convert(out_mode)
    flat.info = dict(img.info)
    flat.info.pop("transparency", None)
    return flat


# ---------------------------------------------------------------------
# Workspace (the single active document)
# ---------------------------------------------------------------------

class ImageWorkspace(ABC):
    """
    Host for the source document and one working copy at a time.

    Every step acts on the active document, so only one export may run
    against a workspace at once.
    """

    name: str
    resolution: float

    @property
    @abstractmethod
    def pixel_size(self) -> Tuple[int, int]:
        """Source size in pixels (width, height)."""

    @property
    def size_mm(self) -> Tuple[float, float]:
        w, h = self.pixel_size
        return to_physical(w, self.resolution), to_physical(h, self.resolution)

    @property
    def base_name(self) -> str:
        return os.path.splitext(self.name)[0]

    @abstractmethod
    def duplicate(self, name: str) -> None:
        """Copy the source and make the copy the active document."""

    @abstractmethod
    def flatten(self) -> None: ...

    @abstractmethod
    def crop(self, rect: Tuple[int, int, int, int]) -> None: ...

    @abstractmethod
    def active_size(self) -> Tuple[int, int]: ...

    @abstractmethod
    def resize_canvas(self, size: Tuple[int, int]) -> None:
        """Extend/trim the canvas anchored top-left."""

    @abstractmethod
    def save(self, path: str, settings: ExportSettings) -> None: ...

    @abstractmethod
    def close(self) -> None:
        """Discard the working copy without saving."""

    @abstractmethod
    def restore_context(self) -> None:
        """Make the source the active document again."""


class PillowWorkspace(ImageWorkspace):
    def __init__(
        self,
        source_path: str,
        resolution: Optional[float] = None,
        settings: Optional[ExportSettings] = None,
    ) -> None:
        self.source_path = source_path
        self.name = os.path.basename(source_path)

        if resolution is not None and (not math.isfinite(resolution) or resolution <= 0):
            raise InvalidInputError(f"Resolution must be positive, got {resolution:g}")

        self._source, file_resolution = load_source_image(source_path, settings)
        self.resolution = float(resolution or file_resolution or DEFAULT_RESOLUTION)

        self.icc_profile = self._source.info.get("icc_profile")
        self._active: Optional[Image.Image] = self._source

    @property
    def pixel_size(self) -> Tuple[int, int]:
        return self._source.size

    def _require_working_copy(self) -> Image.Image:
        if self._active is None or self._active is self._source:
            raise RuntimeError("No working copy is active; duplicate the source first.")
        return self._active

    def duplicate(self, name: str) -> None:
        logger.debug("Working copy %s", name)
        self._active = self._source.copy()

    def flatten(self) -> None:
        self._active = _flatten(self._require_working_copy())

    def crop(self, rect: Tuple[int, int, int, int]) -> None:
        self._active = self._require_working_copy().crop(rect)

    def active_size(self) -> Tuple[int, int]:
        return self._require_working_copy().size

    def resize_canvas(self, size: Tuple[int, int]) -> None:
        img = self._require_working_copy()
        canvas = Image.new(img.mode, size, _WHITE.get(img.mode, 0))
        canvas.paste(img, (0, 0))
        canvas.info = dict(img.info)
        self._active = canvas

    def save(self, path: str, settings: ExportSettings) -> None:
        img = self._require_working_copy()
        params = {
            "format": settings.file_format,
            "compression": settings.compression,
            "dpi": (self.resolution, self.resolution),
        }
        if self.icc_profile:
            params["icc_profile"] = self.icc_profile
        img.save(path, **params)

    def close(self) -> None:
        if self._active is not None and self._active is not self._source:
            self._active.close()
        self._active = None

    def restore_context(self) -> None:
        self._active = self._source


# ---------------------------------------------------------------------
# Piece geometry
# ---------------------------------------------------------------------

def _mm_label(value: float) -> str:
    return f"{value:.0f}"


def build_export_tasks(
    layout: Layout,
    width_px: float,
    height_px: float,
    resolution: float,
    base_name: str,
    extension: str = "tif",
) -> List[ExportTask]:
    """
    Pixel rectangles and file names for every piece of a plan or grid.
    """
    if isinstance(layout, GridPartition):
        return _grid_tasks(layout, width_px, height_px, resolution, base_name, extension)
    if isinstance(layout, Plan):
        return _strip_tasks(layout, width_px, height_px, resolution, base_name, extension)
    raise InvalidInputError(f"Cannot export a {type(layout).__name__}")


def _strip_tasks(
    plan: Plan,
    width_px: float,
    height_px: float,
    resolution: float,
    base_name: str,
    extension: str,
) -> List[ExportTask]:
    overlap_px = to_pixels(plan.overlap, resolution)
    tasks: List[ExportTask] = []

    if plan.mode == MODE_OPTIMIZE:
        strip_px = to_pixels(plan.strip_widths[0], resolution)
        offsets = [i * (strip_px - overlap_px) for i in range(plan.strip_count)]
    else:
        offsets = []
        acc = 0.0
        for w in plan.strip_widths:
            offsets.append(acc)
            acc += to_pixels(w, resolution) - overlap_px

    for i, (w, x1) in enumerate(zip(plan.strip_widths, offsets), start=1):
        strip_px = to_pixels(w, resolution)
        x2 = min(x1 + strip_px, width_px)
        tasks.append(
            ExportTask(
                index=i,
                rect=(x1, 0.0, x2, float(height_px)),
                target_size=(max(1, round(strip_px)), max(1, round(height_px))),
                file_name=f"{base_name}_{i}_{_mm_label(w)}mm.{extension}",
            )
        )
    return tasks


def _grid_tasks(
    grid: GridPartition,
    width_px: float,
    height_px: float,
    resolution: float,
    base_name: str,
    extension: str,
) -> List[ExportTask]:
    overlap_px = to_pixels(grid.overlap, resolution)
    piece_w_px = to_pixels(grid.piece_width, resolution)
    piece_h_px = to_pixels(grid.piece_height, resolution)
    size_label = f"{_mm_label(grid.piece_width)}x{_mm_label(grid.piece_height)}mm"

    tasks: List[ExportTask] = []
    index = 0
    for row in range(grid.rows):
        for col in range(grid.cols):
            index += 1
            x1 = col * (piece_w_px - overlap_px)
            y1 = row * (piece_h_px - overlap_px)
            x2 = min(x1 + piece_w_px, width_px)
            y2 = min(y1 + piece_h_px, height_px)
            tasks.append(
                ExportTask(
                    index=index,
                    rect=(x1, y1, x2, y2),
                    target_size=(max(1, round(piece_w_px)), max(1, round(piece_h_px))),
                    file_name=f"{base_name}_R{row + 1}C{col + 1}_{size_label}.{extension}",
                    row=row + 1,
                    col=col + 1,
                )
            )
    return tasks


# ---------------------------------------------------------------------
# Export
# ---------------------------------------------------------------------

@contextmanager
def _working_copy(workspace: ImageWorkspace, name: str) -> Iterator[ImageWorkspace]:
    """Duplicate the source; always close the copy and reactivate the source."""
    workspace.duplicate(name)
    try:
        yield workspace
    finally:
        try:
            workspace.close()
        finally:
            workspace.restore_context()


def _crop_box(
    rect: Tuple[float, float, float, float],
    pixel_size: Tuple[int, int],
) -> Tuple[int, int, int, int]:
    """Whole-pixel crop box inside the source, never narrower than 1 px."""
    width_px, height_px = pixel_size
    x1 = min(round(rect[0]), width_px - 1)
    y1 = min(round(rect[1]), height_px - 1)
    x2 = min(max(round(rect[2]), x1 + 1), width_px)
    y2 = min(max(round(rect[3]), y1 + 1), height_px)
    return x1, y1, x2, y2


def _export_piece(
    workspace: ImageWorkspace,
    task: ExportTask,
    destination: str,
    settings: ExportSettings,
) -> str:
    box = _crop_box(task.rect, workspace.pixel_size)
    target_w, target_h = task.target_size
    out_path = os.path.join(destination, task.file_name)

    logger.debug("Piece %d: crop %s target %dx%d", task.index, box, target_w, target_h)

    with _working_copy(workspace, os.path.splitext(task.file_name)[0]):
        workspace.flatten()
        workspace.crop(box)

        cur_w, cur_h = workspace.active_size()
        if abs(cur_w - target_w) > 1 or abs(cur_h - target_h) > 1:
            logger.debug("Piece %d: canvas %dx%d -> %dx%d", task.index, cur_w, cur_h, target_w, target_h)
            workspace.resize_canvas((target_w, target_h))

        workspace.save(out_path, settings)

    logger.info("Wrote %s", out_path)
    return out_path


def export_layout(
    layout: Layout,
    workspace: ImageWorkspace,
    destination: str,
    base_name: Optional[str] = None,
    settings: Optional[ExportSettings] = None,
) -> int:
    """
    Write every piece of a plan or grid into `destination`.

    Pieces are processed in order, one at a time. The first failure stops
    the run with PieceExportError; files already written are kept.
    Returns the number of pieces written.
    """
    settings = settings or ExportSettings()
    width_px, height_px = workspace.pixel_size
    tasks = build_export_tasks(
        layout,
        width_px=width_px,
        height_px=height_px,
        resolution=workspace.resolution,
        base_name=base_name or workspace.base_name,
        extension=settings.extension,
    )

    os.makedirs(destination, exist_ok=True)

    written = 0
    for task in tasks:
        try:
            _export_piece(workspace, task, destination, settings)
        except Exception as exc:
            logger.error("Export stopped at piece %d (%s): %s", task.index, task.file_name, exc)
            raise PieceExportError(task.index, task.file_name, str(exc)) from exc
        written += 1

    logger.info("Exported %d pieces to %s", written, destination)
    return written
