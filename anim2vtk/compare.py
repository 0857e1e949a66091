#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""

──────────────────────────────────────────────────────────────────────────────
compare-vtk
──────────────────────────────────────────────────────────────────────────────
Reads two legacy VTK files (ASCII or BINARY, in any combination) and reports
the maximum absolute difference of:

 - point coordinates
 - cell connectivity and cell types (integers, expected to match exactly)
 - every point / cell array present in the first file

Usage:

    compare-vtk reference.vtk candidate.vtk

Exit code 0 once the comparison ran, whatever the differences are; 1 on a
structural error (missing or unreadable file, different point or cell
counts).

"""

from __future__ import annotations

import argparse
import logging
import math
import sys
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

import numpy as np

from .converter import setup_logging
from .vtk_reader import VtkDataset, VtkFormatError, read_vtk

logger = logging.getLogger("anim2vtk")

IDENTICAL_TOLERANCE = 1e-6
SIMILAR_TOLERANCE = 1e-3


class ComparisonError(RuntimeError):
    pass


@dataclass
class ArrayDiff:
    label: str
    max_abs_diff: float
    index: int = 0


@dataclass
class ComparisonReport:
    counts: List[Tuple[str, int, int]] = field(default_factory=list)
    diffs: List[ArrayDiff] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def max_abs_diff(self) -> float:
        return max((d.max_abs_diff for d in self.diffs), default=0.0)

    def diff(self, label: str) -> ArrayDiff:
        for d in self.diffs:
            if d.label == label:
                return d
        raise KeyError(label)

    @property
    def verdict(self) -> str:
        worst = self.max_abs_diff
        if worst < IDENTICAL_TOLERANCE:
            return f"Files are essentially identical (difference < {IDENTICAL_TOLERANCE:g})"
        if worst < SIMILAR_TOLERANCE:
            return f"Files are very similar (difference < {SIMILAR_TOLERANCE:g})"
        return "Files have noticeable differences"


def compare_arrays(a: np.ndarray, b: np.ndarray, label: str) -> ArrayDiff:
    """Max |a - b| over two arrays; an infinite difference when the shapes differ."""
    a = np.asarray(a)
    b = np.asarray(b)
    if a.shape != b.shape:
        return ArrayDiff(label, math.inf)
    if a.size == 0:
        return ArrayDiff(label, 0.0)

    delta = np.abs(a.astype(np.float64) - b.astype(np.float64)).ravel()
    idx = int(np.argmax(delta))
    return ArrayDiff(label, float(delta[idx]), idx)


def compare_datasets(first: VtkDataset, second: VtkDataset) -> ComparisonReport:
    report = ComparisonReport()
    report.counts = [
        ("points", first.num_points, second.num_points),
        ("cells", first.num_cells, second.num_cells),
        ("point arrays", len(first.point_data), len(second.point_data)),
        ("cell arrays", len(first.cell_data), len(second.cell_data)),
    ]

    if first.num_points != second.num_points:
        raise ComparisonError(f"Different number of points ({first.num_points} vs {second.num_points})")
    if first.num_cells != second.num_cells:
        raise ComparisonError(f"Different number of cells ({first.num_cells} vs {second.num_cells})")
    if first.cells.size != second.cells.size:
        raise ComparisonError(f"Different cell list sizes ({first.cells.size} vs {second.cells.size})")

    report.diffs.append(compare_arrays(first.points, second.points, "Points (coordinates)"))
    report.diffs.append(compare_arrays(first.cells, second.cells, "Cells (connectivity)"))
    report.diffs.append(compare_arrays(first.cell_types, second.cell_types, "Cell types"))

    for where, mine, theirs in (
        ("Point", first.point_data, second.point_data),
        ("Cell", first.cell_data, second.cell_data),
    ):
        for name, values in mine.items():
            label = f"{where} array '{name}'"
            if name not in theirs:
                report.warnings.append(f"{label} not found in file 2")
                continue
            report.diffs.append(compare_arrays(values, theirs[name], label))

    return report


def compare_vtk_files(file1: str, file2: str) -> ComparisonReport:
    """
    Read and compare two VTK files.

    Raises:
        ComparisonError on any structural problem.
    """
    datasets = []
    for path in (file1, file2):
        try:
            datasets.append(read_vtk(path))
        except OSError as e:
            raise ComparisonError(f"Failed to open '{path}': {e.strerror or e}") from e
        except VtkFormatError as e:
            raise ComparisonError(f"Failed to parse '{path}': {e}") from e

    return compare_datasets(*datasets)


def print_report(report: ComparisonReport) -> None:
    print("\n=== Comparison Results ===\n")
    for label, n1, n2 in report.counts:
        print(f"Number of {label}: {n1} vs {n2}")
    print()
    for d in report.diffs:
        print(f"{d.label}: max abs diff = {d.max_abs_diff:.6e} (at index {d.index})")
    for w in report.warnings:
        print(f"Warning: {w}")

    print("\n=== Summary ===")
    print(f"Maximum absolute difference: {report.max_abs_diff:.6e}")
    print(report.verdict)


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="compare-vtk",
        description="Compare two legacy VTK files (ASCII or binary) and report the maximum absolute difference.",
    )
    parser.add_argument("file1", help="Reference VTK file.")
    parser.add_argument("file2", help="VTK file to compare against the reference.")
    parser.add_argument("--verbose", action="store_true", help="Verbose logging.")
    args = parser.parse_args(argv)

    setup_logging(args.verbose)

    logger.debug("Comparing '%s' with '%s'", args.file1, args.file2)
    try:
        report = compare_vtk_files(args.file1, args.file2)
    except ComparisonError as e:
        logger.error("%s", e)
        return 1

    print_report(report)
    print("\nComparison completed successfully.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
