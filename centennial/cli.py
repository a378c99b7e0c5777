"""Command-line entry point for the archiver."""

from __future__ import annotations

import argparse
import logging
import sys
from datetime import date
from typing import List, Optional

from .core.config import DAILY, RunConfig, load_config
from .core.controller import CentennialController
from .core.dates import resolve_subject_dates
from .core.errors import ConfigError, InvalidArguments
from .core.logger import create_error_tracker, initialize_logging
from .core.merger import EditionMerger
from .utils.file_manager import ArchiveManager
from .utils.validators import require_day, require_week

CURRENT_WEEK = "current"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="centennial",
        description="Download the newspaper published 100 years ago, page by page, "
                    "into a dated archive with page images and a merged PDF.",
    )
    target = parser.add_mutually_exclusive_group()
    target.add_argument(
        "--week",
        nargs="?",
        const=CURRENT_WEEK,
        metavar="N",
        help="Week number (1-52) counted from the first Sunday of the year; bare --week means the current week",
    )
    target.add_argument("--day", metavar="MM-DD", help="A single day of the current year, e.g. 07-04")
    parser.add_argument(
        "--daily",
        action="store_true",
        help="Daily run mode: without --week/--day fetch only today's edition",
    )
    parser.add_argument("--output", help="Archive root directory (default: archive)")
    parser.add_argument("--log-dir", help="Directory for log files (default: logs)")
    parser.add_argument("--config", help="JSON settings file")
    parser.add_argument("--headful", action="store_true", help="Show the browser window")
    parser.add_argument("--retries", type=int, help="Extra attempts per failed page (default: 0)")
    parser.add_argument("--page-delay", type=float, help="Minimum seconds between page requests")
    parser.add_argument("--force", action="store_true", help="Re-acquire editions that are already merged")
    parser.add_argument("--no-probe", action="store_true", help="Skip the viewer connectivity check")
    parser.add_argument(
        "--strict",
        action="store_true",
        help="Exit with status 1 when any edition or page failed",
    )
    parser.add_argument(
        "--merge-only",
        metavar="DIR",
        help="Only merge loose upstream-named page PDFs found in DIR, then exit",
    )
    parser.add_argument("--index", action="store_true", help="Only regenerate the archive index.html")
    parser.add_argument("--verbose", action="store_true", help="Enable verbose logging")
    return parser


def build_config(args: argparse.Namespace) -> RunConfig:
    config = load_config(args.config) if args.config else RunConfig()
    if args.output:
        config.output_dir = args.output
    if args.log_dir:
        config.log_dir = args.log_dir
    if args.daily:
        config.run_mode = DAILY
    if args.headful:
        config.headless = False
    if args.retries is not None:
        config.page_retries = max(args.retries, 0)
    if args.page_delay is not None:
        config.page_delay = max(args.page_delay, 0.0)
    if args.force:
        config.force = True
    if args.no_probe:
        config.probe = False
    return config


def main(argv: Optional[List[str]] = None, today: Optional[date] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    today = today or date.today()

    # Everything is validated before any file or network I/O
    try:
        config = build_config(args)
        if args.week == CURRENT_WEEK:
            # weekly runs default to the current week already; daily runs expand today
            subjects = resolve_subject_dates(today=today, mode=config.run_mode, whole_week=True)
        else:
            week = require_week(args.week) if args.week is not None else None
            day = require_day(args.day, today.year) if args.day else None
            subjects = resolve_subject_dates(week=week, day=day, today=today, mode=config.run_mode)
    except (InvalidArguments, ConfigError) as e:
        parser.error(str(e))

    initialize_logging(config.log_dir, logging.DEBUG if args.verbose else logging.INFO)
    logger = logging.getLogger("centennial.cli")

    if args.merge_only:
        merged = EditionMerger(config.profile).merge_pool(args.merge_only)
        logger.info(f"Merged {len(merged)} edition(s) in {args.merge_only}")
        return 0

    if args.index:
        archive = ArchiveManager(config.output_dir)
        archive.ensure_root()
        return 0 if archive.generate_index_file() else 1

    logger.info(f"Subject dates: {', '.join(s.iso for s in subjects)}")
    controller = CentennialController(config, error_tracker=create_error_tracker("controller"))
    report = controller.run(subjects)

    if args.strict and not report.fully_succeeded:
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
