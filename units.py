"""
units.py

Millimetre <-> pixel conversion. Resolution is pixels per inch.
"""

from __future__ import annotations

import math

from errors import InvalidInputError

MM_PER_INCH = 25.4


def _check_resolution(resolution: float) -> None:
    if resolution is None or not math.isfinite(resolution) or resolution <= 0:
        raise InvalidInputError(f"Resolution must be positive, got {resolution!r}")


def to_physical(px: float, resolution: float) -> float:
    """Pixels -> millimetres."""
    _check_resolution(resolution)
    return px / resolution * MM_PER_INCH


def to_pixels(mm: float, resolution: float) -> float:
    """Millimetres -> pixels (not rounded)."""
    _check_resolution(resolution)
    return mm / MM_PER_INCH * resolution
