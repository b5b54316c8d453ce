"""
errors.py

Exception types raised by the planner, the export engine and the CLI.
"""

from __future__ import annotations


class SlicePlannerError(Exception):
    """Base class for every error this tool reports to the user."""


class InvalidInputError(SlicePlannerError, ValueError):
    """Bad dimensions, resolution, overlap/margin, catalog or grid size."""


class SourceLoadError(SlicePlannerError):
    """The source image or PDF could not be opened."""


class PieceExportError(SlicePlannerError):
    """
    One piece failed while being written.

    Pieces written before the failure are left on disk; the original
    exception is chained as __cause__.
    """

    def __init__(self, index: int, file_name: str, reason: str) -> None:
        super().__init__(f"Piece {index} ({file_name}) failed: {reason}")
        self.index = index
        self.file_name = file_name
        self.reason = reason
