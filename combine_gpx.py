"""
Combine GPX traces into one activity.

This script loads several GPX files as one activity, prints per-trace and
total statistics, and writes the exported GPX documents (one per trace, or a
single merged track.gpx).

Usage:
    python3 combine_gpx.py morning.gpx afternoon.gpx --merge
    python3 combine_gpx.py a.gpx b.gpx --hr --cad --output-dir out
    python3 combine_gpx.py run1.gpx run2.gpx --running --imperial --no-time
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from gpxtotal import gpx_total


def _setup_logging(verbose: bool, log_file: Optional[str] = None) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    fmt = "%(asctime)s [%(levelname)s] %(message)s"
    datefmt = "%H:%M:%S"
    logging.basicConfig(level=level, format=fmt, datefmt=datefmt)
    if log_file:
        fh = logging.FileHandler(log_file, mode="w")
        fh.setLevel(level)
        fh.setFormatter(logging.Formatter(fmt, datefmt))
        logging.getLogger().addHandler(fh)


def print_summary(aggregator: gpx_total.Aggregator) -> None:
    """Print the per-trace table and the collection totals."""
    payload = gpx_total.build_session_payload(aggregator)
    totals = payload["totals"]
    dist_unit = "km" if aggregator.metric else "mi"
    ele_unit = "m" if aggregator.metric else "ft"

    print(gpx_total.build_trace_table(aggregator).to_string())
    print("-" * 60)
    print(f"Distance: {totals['distance'] / 1000:.1f} {dist_unit}")
    print(f"Climb:    {totals['elevation']:.0f} {ele_unit}")
    print(f"Moving:   {totals['duration']}")
    if aggregator.cycling:
        print(f"Speed:    {totals['moving_speed']:.1f} {dist_unit}/h")
    else:
        print(f"Pace:     {totals['pace']} min/{dist_unit}")
    sensors = [f"{key}: {totals['avg_' + key]}" for key in ("hr", "atemp", "cad")
               if totals["avg_" + key] is not None]
    if sensors:
        print("Sensors:  " + " | ".join(sensors))


def main(argv: Optional[List[str]] = None):
    parser = argparse.ArgumentParser(
        description="Combine GPX traces into one activity and export them"
    )
    parser.add_argument(
        "files",
        nargs="+",
        help="GPX files, in activity order"
    )
    parser.add_argument(
        "--merge",
        action="store_true",
        help="Write a single merged track.gpx instead of one file per trace"
    )
    parser.add_argument(
        "--no-time",
        action="store_true",
        help="Leave timestamps out of the exported files"
    )
    parser.add_argument("--hr", action="store_true", help="Include heart rate")
    parser.add_argument("--atemp", action="store_true", help="Include ambient temperature")
    parser.add_argument("--cad", action="store_true", help="Include cadence")
    parser.add_argument(
        "--running",
        action="store_true",
        help="Mark the activity as running (default: cycling)"
    )
    parser.add_argument(
        "--imperial",
        action="store_true",
        help="Report miles and feet"
    )
    parser.add_argument(
        "--output-dir",
        type=str,
        default="combined",
        help="Output directory for exported GPX files (default: combined)"
    )
    parser.add_argument("--log-file", type=str, default=None, help="Also write the log to this file")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    args = parser.parse_args(argv)
    _setup_logging(args.verbose, args.log_file)

    paths = [Path(f) for f in args.files]
    missing = [p for p in paths if not p.exists()]
    if missing:
        for path in missing:
            logging.error("File not found: %s", path)
        sys.exit(1)

    aggregator = gpx_total.Aggregator(cycling=not args.running, metric=not args.imperial)
    try:
        gpx_total.load_traces(aggregator, paths)
    except ValueError as exc:
        logging.error(str(exc))
        sys.exit(1)

    print_summary(aggregator)

    documents = aggregator.render(
        args.merge,
        not args.no_time,
        args.hr,
        args.atemp,
        args.cad,
    )

    output_dir = Path(args.output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    for document in documents:
        output = output_dir / document["name"]
        output.write_text(document["text"], encoding="utf-8")
        logging.info("Wrote: %s", output)


if __name__ == "__main__":
    main()
