#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""

──────────────────────────────────────────────────────────────────────────────
CLI QUICK START
──────────────────────────────────────────────────────────────────────────────
Convert every state of a run to ASCII VTK (outputs land next to the inputs):

    anim2vtk runA0*

Binary VTK, flags may appear anywhere among the files:

    anim2vtk runA001 --binary runA002 runA003

Geometry only, as UNV, into another directory:

    anim2vtk runA001 --unv --output-dir ./unv

Inspection without converting:

    # Lists result fields of each file (no conversion happens)
    anim2vtk runA001 --list-fields

    # Dry-run: decode and show counts, don't write anything
    anim2vtk runA0* --dry-run --verbose

Positional args:

    FILE ...           One or more animation files (shell-expanded).

Optional args:

    --binary / -b      Binary legacy VTK instead of ASCII
    --unv              UNV datasets 2411/2412 (geometry only)
    --output-dir       Directory for output files (default: next to the input)
    --list-fields      Only list available fields and exit
    --dry-run          Run everything except the actual write step
    --verbose          DEBUG logging (section counts, timings)

Output names are the input name plus `.vtk` or `.unv`. The exit code is 0
when every file converted, 1 when at least one failed.

"""


import argparse
import logging
import sys
from typing import List, Optional

from .converter import output_format_from_flags, setup_logging
from .batch import run_conversion
from .decoder import list_fields
from .errors import ConversionError

logger = logging.getLogger("anim2vtk")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="anim2vtk",
        description="Convert animation files to legacy VTK (ASCII or binary) or UNV.",
    )

    parser.add_argument("inputs", nargs="+", metavar="FILE", help="Animation file(s) to convert.")

    # Output encoding
    fmt = parser.add_mutually_exclusive_group()
    fmt.add_argument("-b", "--binary", action="store_true", help="Write binary legacy VTK.")
    fmt.add_argument("--unv", action="store_true", help="Write UNV datasets 2411/2412 (geometry only).")

    parser.add_argument("--output-dir", dest="output_dir", default=None, help="Directory for output files (default: next to each input).")

    parser.add_argument("--list-fields", action="store_true", help="List result fields of each input and exit.")

    # Utility flags
    parser.add_argument("--dry-run", action="store_true", help="Decode inputs without writing files.")
    parser.add_argument("--verbose", action="store_true", help="Verbose logging.")

    return parser


def _list_fields(paths: List[str]) -> int:
    status = 0
    for path in paths:
        try:
            fields = list_fields(path)
        except ConversionError as e:
            logger.error("Cannot list fields of '%s' (%s): %s", path, e.kind, e.message)
            status = 1
            continue

        print(f"{path}:")
        if fields:
            print("Available fields:")
            for location, name in fields:
                print(f" - {name} ({location})")
        else:
            print("No fields found.")
    return status


def main(argv: Optional[List[str]] = None) -> int:

    """
    Parse CLI args and run the conversion pipeline.

    Returns:
        Process exit code.
    """

    parser = build_parser()
    args = parser.parse_intermixed_args(argv)

    # Configure logging early
    setup_logging(args.verbose)

    output_format = output_format_from_flags(binary=args.binary, unv=args.unv)

    if args.list_fields:
        return _list_fields(args.inputs)

    summary = run_conversion(
        input_paths=args.inputs,
        output_format=output_format,
        output_directory=args.output_dir,
        dry_run=args.dry_run,
    )
    return 0 if summary.ok else 1


if __name__ == "__main__":
    sys.exit(main())
