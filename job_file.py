"""
job_file.py

Versioned JSON job files: source, planner settings, grid size, output folder.
Plans themselves are never stored; they are recalculated on load.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from typing import Optional

from errors import InvalidInputError
from models import PlannerConfig
from rolls import get_roll_catalog

logger = logging.getLogger(__name__)

JOB_FILE_VERSION = 1
JOB_EXT = ".slicejob"


@dataclass
class SliceJob:
    source_path: str = ""
    destination: str = ""
    resolution: Optional[float] = None  # overrides the DPI stored in the source
    planner: PlannerConfig = field(default_factory=PlannerConfig)
    grid_cols: int = 2
    grid_rows: int = 2


def build_job_dict(job: SliceJob) -> dict:
    """
    Versioned, forward-friendly job schema.
    """
    return {
        "version": JOB_FILE_VERSION,
        "source_path": job.source_path,
        "destination": job.destination,
        "resolution": job.resolution,
        "planner": {
            "overlap_mm": job.planner.overlap_mm,
            "margin_mm": job.planner.margin_mm,
            "roll_widths": list(job.planner.roll_widths),
        },
        "grid": {
            "cols": job.grid_cols,
            "rows": job.grid_rows,
        },
    }


def _number(section: dict, key: str, default: float) -> float:
    value = section.get(key, default)
    if value is None:
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        raise InvalidInputError(f"Job field '{key}' must be a number, got {value!r}") from None


def _section(data: dict, key: str) -> dict:
    value = data.get(key, {})
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise InvalidInputError(f"Job '{key}' must be a dict.")
    return value


def apply_job_dict(data: dict) -> SliceJob:
    """
    Builds a SliceJob from a job dict (already parsed JSON).
    """
    if not isinstance(data, dict):
        raise InvalidInputError("Job root must be a JSON object.")

    try:
        version = int(data.get("version", 0))
    except (TypeError, ValueError):
        version = 0
    if version != JOB_FILE_VERSION:
        raise InvalidInputError(f"Unsupported job version: {data.get('version')} (expected {JOB_FILE_VERSION})")

    planner = _section(data, "planner")
    grid = _section(data, "grid")
    defaults = PlannerConfig()

    rolls = planner.get("roll_widths")
    if rolls is not None and not isinstance(rolls, list):
        raise InvalidInputError("Job 'planner.roll_widths' must be a list.")

    resolution = data.get("resolution")
    if resolution is not None:
        resolution = _number(data, "resolution", 0.0)

    return SliceJob(
        source_path=str(data.get("source_path", "") or ""),
        destination=str(data.get("destination", "") or ""),
        resolution=resolution,
        planner=PlannerConfig(
            overlap_mm=_number(planner, "overlap_mm", defaults.overlap_mm),
            margin_mm=_number(planner, "margin_mm", defaults.margin_mm),
            roll_widths=get_roll_catalog(rolls) if rolls is not None else defaults.roll_widths,
        ),
        grid_cols=int(_number(grid, "cols", 2)),
        grid_rows=int(_number(grid, "rows", 2)),
    )


def read_job_file(path: str) -> SliceJob:
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except OSError as exc:
        raise InvalidInputError(f"Could not read job file {path}: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise InvalidInputError(f"Job file {path} is not valid JSON: {exc}") from exc

    job = apply_job_dict(data)
    logger.debug("Loaded job %s", path)
    return job


def write_job_file(path: str, job: SliceJob) -> str:
    if not os.path.splitext(path)[1]:
        path += JOB_EXT

    out_dir = os.path.dirname(path)
    if out_dir:
        os.makedirs(out_dir, exist_ok=True)

    with open(path, "w", encoding="utf-8") as f:
        json.dump(build_job_dict(job), f, indent=2, ensure_ascii=False)
    logger.info("Saved job %s", path)
    return path
