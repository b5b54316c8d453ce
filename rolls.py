"""
rolls.py

Roll widths of the printers/material we print on.
All units: millimetres.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, Iterable, Optional, Tuple

from errors import InvalidInputError


@dataclass(frozen=True)
class RollSpec:
    name: str
    width_mm: float


ROLLS: Dict[str, RollSpec] = {
    "36in": RollSpec("36in", 914.0),
    "42in": RollSpec("42in", 1070.0),
    "50in": RollSpec("50in", 1270.0),
    "60in": RollSpec("60in", 1520.0),
}

DEFAULT_ROLL_WIDTHS: Tuple[float, ...] = tuple(r.width_mm for r in ROLLS.values())


def get_roll_names() -> list[str]:
    return list(ROLLS.keys())


def get_roll(name: str) -> RollSpec:
    try:
        return ROLLS[name]
    except KeyError:
        raise InvalidInputError(f"Unknown roll '{name}' (known: {', '.join(get_roll_names())})") from None


def get_roll_catalog(widths: Optional[Iterable[float]] = None) -> Tuple[float, ...]:
    """
    Validate a roll-width catalog.

    Keeps the caller's order and drops duplicates. None means the default
    catalog.
    """
    if widths is None:
        return DEFAULT_ROLL_WIDTHS

    catalog: list[float] = []
    for w in widths:
        try:
            value = float(w)
        except (TypeError, ValueError):
            raise InvalidInputError(f"Roll width is not a number: {w!r}") from None
        if not math.isfinite(value) or value <= 0:
            raise InvalidInputError(f"Roll width must be a positive number, got {value:g}")
        if value not in catalog:
            catalog.append(value)

    if not catalog:
        raise InvalidInputError("Roll-width catalog is empty.")
    return tuple(catalog)


def parse_roll_widths(text: str) -> Tuple[float, ...]:
    """
    Parse "914,1070,60in" style input: numbers are millimetres, anything
    else is looked up by roll name.
    """
    widths: list[float] = []
    for token in (text or "").split(","):
        token = token.strip()
        if not token:
            continue
        try:
            widths.append(float(token))
        except ValueError:
            widths.append(get_roll(token).width_mm)
    return get_roll_catalog(widths)
