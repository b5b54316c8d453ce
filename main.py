"""
main.py

Entry point for the roll slice planner.

Usage:
    python main.py info poster.tif
    python main.py info drawing.pdf --pdf-page 2
    python main.py plan poster.tif --overlap 20 --margin 50 --rolls 914,1070,1270,1520
    python main.py plan --width 3000 --height 1000 --report-pdf plans.pdf
    python main.py slice poster.tif --plan 1 --out out/ --yes
    python main.py grid poster.tif --cols 3 --rows 2 --out tiles/
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import List, Optional

from errors import InvalidInputError, SlicePlannerError
from job_file import SliceJob, read_job_file, write_job_file
from logging_config import setup_logging
from models import ExportSettings, PlannerConfig
from planner import calculate_plans
from report import export_plan_report_pdf, format_grid_summary, format_plan_detail, format_plan_table
from rolls import get_roll_names, parse_roll_widths
from session import SliceSession

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_NO_PLAN = 1
EXIT_ERROR = 2
EXIT_CANCELLED = 3


def _add_common_options(p: argparse.ArgumentParser) -> None:
    p.add_argument("--job", default=None, help="Load settings from a job file")
    p.add_argument("--save-job", default=None, help="Write the effective settings to a job file")
    p.add_argument("--overlap", type=float, default=None, help="Overlap at each seam in mm (default: 20)")
    p.add_argument("--margin", type=float, default=None, help="Unprintable roll margin in mm (default: 50)")
    p.add_argument(
        "--rolls", default=None,
        help=f"Comma-separated roll widths in mm or roll names ({', '.join(get_roll_names())}); default: 914,1070,1270,1520",
    )
    p.add_argument("--dpi", type=float, default=None, help="Override the source resolution")
    p.add_argument("--pdf-dpi", type=int, default=300, help="Render resolution for PDF sources (default: 300)")
    p.add_argument("--pdf-page", type=int, default=1, help="Page of a PDF source to load (default: 1)")
    p.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    p.add_argument("--log-file", default=None, help="Also write the log to this file")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="roll-slice",
        description="Plan and export roll-width strips or grid tiles from one large image.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    p_info = sub.add_parser("info", help="Show size and resolution of a source")
    p_info.add_argument("source", nargs="?", default=None)
    _add_common_options(p_info)

    p_plan = sub.add_parser("plan", help="List ranked cutting plans")
    p_plan.add_argument("source", nargs="?", default=None)
    p_plan.add_argument("--width", type=float, default=None, help="Image width in mm (instead of a source)")
    p_plan.add_argument("--height", type=float, default=None, help="Image height in mm (instead of a source)")
    p_plan.add_argument("--report-pdf", default=None, help="Also write a PDF report")
    p_plan.add_argument("--details", action="store_true", help="Print the strip widths of every plan")
    _add_common_options(p_plan)

    p_slice = sub.add_parser("slice", help="Export the strips of one plan")
    p_slice.add_argument("source", nargs="?", default=None)
    p_slice.add_argument("--plan", type=int, default=1, help="Plan number from the table (default: 1, the best)")
    p_slice.add_argument("--out", default=None, help="Destination folder")
    p_slice.add_argument("--yes", action="store_true", help="Do not ask for confirmation")
    _add_common_options(p_slice)

    p_grid = sub.add_parser("grid", help="Split into a cols x rows grid")
    p_grid.add_argument("source", nargs="?", default=None)
    p_grid.add_argument("--cols", type=int, default=None)
    p_grid.add_argument("--rows", type=int, default=None)
    p_grid.add_argument("--out", default=None, help="Destination folder (omit to only show sizes)")
    p_grid.add_argument("--yes", action="store_true", help="Do not ask for confirmation")
    _add_common_options(p_grid)

    return parser


def _resolve_job(args: argparse.Namespace) -> SliceJob:
    """Job file values, overridden by whatever was given on the command line."""
    job = read_job_file(args.job) if args.job else SliceJob()

    if args.source:
        job.source_path = args.source
    if getattr(args, "out", None):
        job.destination = args.out
    if args.dpi is not None:
        job.resolution = args.dpi

    planner = job.planner
    job.planner = PlannerConfig(
        overlap_mm=args.overlap if args.overlap is not None else planner.overlap_mm,
        margin_mm=args.margin if args.margin is not None else planner.margin_mm,
        roll_widths=parse_roll_widths(args.rolls) if args.rolls else planner.roll_widths,
    )

    if getattr(args, "cols", None) is not None:
        job.grid_cols = args.cols
    if getattr(args, "rows", None) is not None:
        job.grid_rows = args.rows

    if args.save_job:
        write_job_file(args.save_job, job)
    return job


def _open_session(job: SliceJob, args: argparse.Namespace) -> SliceSession:
    if not job.source_path:
        raise InvalidInputError("No source file given.")
    settings = ExportSettings(pdf_render_dpi=args.pdf_dpi, pdf_page_index=args.pdf_page - 1)
    return SliceSession.open(job.source_path, resolution=job.resolution, settings=settings)


def _confirm(message: str, assume_yes: bool) -> bool:
    if assume_yes:
        return True
    try:
        answer = input(f"{message} [y/N] ")
    except EOFError:
        return False
    return answer.strip().lower() in {"y", "yes"}


def _cmd_info(args: argparse.Namespace, job: SliceJob) -> int:
    session = _open_session(job, args)
    print(session.document_info())
    return EXIT_OK


def _cmd_plan(args: argparse.Namespace, job: SliceJob) -> int:
    if args.width is not None or args.height is not None:
        if args.width is None or args.height is None:
            raise InvalidInputError("Give both --width and --height.")
        plan_set = calculate_plans(args.width, args.height, job.planner)
        label = ""
    else:
        session = _open_session(job, args)
        plan_set = session.calculate_plans(job.planner)
        label = session.workspace.name

    print(format_plan_table(plan_set))
    if args.details:
        for idx, plan in enumerate(plan_set, start=1):
            print(f"{idx}. {format_plan_detail(plan)}")

    if args.report_pdf:
        export_plan_report_pdf(plan_set, args.report_pdf, source_label=label)
        print(f"Report written: {args.report_pdf}")

    return EXIT_OK if plan_set.feasible else EXIT_NO_PLAN


def _cmd_slice(args: argparse.Namespace, job: SliceJob) -> int:
    if not job.destination:
        raise InvalidInputError("Choose a destination folder with --out.")

    session = _open_session(job, args)
    plan_set = session.calculate_plans(job.planner)
    if not plan_set.feasible:
        print(format_plan_table(plan_set))
        return EXIT_NO_PLAN

    plan = session.select_plan(args.plan - 1)
    print(f"Plan {args.plan}: {format_plan_detail(plan)}")
    if not _confirm(f"Write {plan.strip_count} strips to {job.destination}?", args.yes):
        print("Cancelled.")
        return EXIT_CANCELLED

    count = session.export_selected(job.destination)
    print(f"Done: {count} strips written to {job.destination}")
    return EXIT_OK


def _cmd_grid(args: argparse.Namespace, job: SliceJob) -> int:
    session = _open_session(job, args)
    grid = session.update_grid(job.grid_cols, job.grid_rows, job.planner.overlap_mm)
    print(format_grid_summary(grid))

    if not job.destination:
        return EXIT_OK
    if not _confirm(f"Write {grid.piece_count} pieces to {job.destination}?", args.yes):
        print("Cancelled.")
        return EXIT_CANCELLED

    count = session.export_grid(job.destination)
    print(f"Done: {count} pieces written to {job.destination}")
    return EXIT_OK


COMMANDS = {
    "info": _cmd_info,
    "plan": _cmd_plan,
    "slice": _cmd_slice,
    "grid": _cmd_grid,
}


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(level=logging.DEBUG if args.verbose else logging.WARNING, log_file=args.log_file)

    try:
        job = _resolve_job(args)
        return COMMANDS[args.command](args, job)
    except (SlicePlannerError, OSError) as exc:
        logger.error("%s", exc)
        print(f"Error: {exc}", file=sys.stderr)
        return EXIT_ERROR


if __name__ == "__main__":
    sys.exit(main())
