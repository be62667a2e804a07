#!/usr/bin/env python3
"""
Write one section's weekly routine as an .ics file without running the bot.

    python scripts/export_ics.py --section S01
    python scripts/export_ics.py --section 3 --out s03.ics --tz Asia/Dhaka --until 2026-12-31

Exit codes: 0 written, 1 unknown section or invalid timetable data.
"""
from __future__ import annotations

import argparse
import logging
import os
import sys
import tempfile
from datetime import date, datetime
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from routine_bot.ical.exporter import DEFAULT_SEMESTER_END, count_weeks, export_filename, serialize
from routine_bot.timetable.loader import load_dataset
from routine_bot.timetable.models import DatasetError
from routine_bot.timetable.resolver import count_occupied_cells, find_section, resolve

ROOT = Path(__file__).resolve().parent.parent


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Export a section's weekly routine as an iCalendar file")
    parser.add_argument("--section", required=True, help="section code, e.g. S01 or 1")
    parser.add_argument("--classes", default=str(ROOT / "data" / "classes.json"), metavar="FILE")
    parser.add_argument("--dining", default=str(ROOT / "data" / "dining.json"), metavar="FILE")
    parser.add_argument("--out", default=None, metavar="FILE", help="output path (default: routine-<section>.ics)")
    parser.add_argument("--tz", default="Asia/Dhaka", help="IANA timezone of the timetable (default: Asia/Dhaka)")
    parser.add_argument(
        "--until",
        type=date.fromisoformat,
        default=DEFAULT_SEMESTER_END,
        help=f"last day of the semester, YYYY-MM-DD (default: {DEFAULT_SEMESTER_END.isoformat()})",
    )
    return parser.parse_args(argv)


def _write_atomic(path: Path, data: bytes) -> None:
    """Write via a temp file in the same directory so a failed write leaves nothing behind."""
    fd, tmp = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        os.replace(tmp, path)
    except BaseException:
        Path(tmp).unlink(missing_ok=True)
        raise


def main(argv: list[str] | None = None) -> int:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")
    args = _parse_args(argv)

    try:
        ZoneInfo(args.tz)
    except ZoneInfoNotFoundError:
        print(f"ERROR: unknown timezone {args.tz!r}", file=sys.stderr)
        return 1

    try:
        dataset = load_dataset(args.classes, args.dining)
    except FileNotFoundError as exc:
        print(f"ERROR: file not found: {exc.filename}", file=sys.stderr)
        return 1
    except OSError as exc:
        print(f"ERROR: could not read {exc.filename}: {exc.strerror or exc}", file=sys.stderr)
        return 1
    except DatasetError as exc:
        print(f"ERROR: invalid timetable data: {exc}", file=sys.stderr)
        return 1

    rows = resolve(dataset, args.section)
    if rows is None:
        print(f"ERROR: section {args.section!r} not found", file=sys.stderr)
        return 1
    section = dataset.sections[find_section(dataset, args.section)]

    now = datetime.now(ZoneInfo(args.tz))
    content = serialize(rows, tz_name=args.tz, now=now, until=args.until, calendar_name=f"RS Routine {section}")
    out = Path(args.out) if args.out else Path(export_filename(section))
    try:
        _write_atomic(out, content.encode("utf-8"))
    except OSError as exc:
        print(f"ERROR: could not write {out}: {exc.strerror or exc}", file=sys.stderr)
        return 1

    weeks = count_weeks(now.date(), args.until)
    if weeks == 0:
        print(f"WARNING: --until {args.until.isoformat()} is before the current week; events will not recur", file=sys.stderr)
    print(f"Calendar exported: {out} (events: {count_occupied_cells(rows)}, weeks: {weeks})")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
