#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""

Batch execution utilities for anim2vtk.

Files are converted one after another; each job owns its snapshot and output
buffer, and a failure in one job never stops the following ones.

"""

from __future__ import annotations

from dataclasses import dataclass, field
from functools import partial
from typing import List, Optional

import logging
import time

from .converter import AnimConverter, OutputFormat

logger = logging.getLogger("anim2vtk")


@dataclass
class ConversionSummary:
    succeeded: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed


def process_single_file(
    input_path: str,
    output_format: OutputFormat,
    output_directory: Optional[str] = None,
    dry_run: bool = False,
) -> bool:
    """
    Convert one input file.

    Args:
        input_path: Animation file to convert.
        output_format: Target encoding.
        output_directory: Optional directory for the output file. If None, the
            output is written next to the input.
        dry_run: Decode only, skip writing.

    Returns:
        True on success, False if the file could not be converted.
    """
    conv = AnimConverter(
        output_format=output_format,
        output_directory=output_directory,
        dry_run=dry_run,
    )
    return conv.process_file(input_path)


def run_conversion(
    input_paths: List[str],
    output_format: OutputFormat = OutputFormat.ASCII_VTK,
    output_directory: Optional[str] = None,
    dry_run: bool = False,
) -> ConversionSummary:
    """
    Convert every file of `input_paths`, in order.

    Parameters:
    - input_paths: Animation files, already expanded by the shell.
    - output_format: ASCII VTK, binary VTK or UNV.
    - output_directory: Optional directory for generated files.
                        If None, each output is written next to its input.
    - dry_run: If True, decode and report without writing output files.

    Behavior:
    - Each file is decoded once and written by exactly one writer.
    - A failing file is recorded and logged; the remaining files are still
      processed.

    Returns:
    - ConversionSummary with the succeeded and failed input paths.
    """

    logger.info("Starting conversion of %d file(s) to %s", len(input_paths), output_format.value)
    t0 = time.time()

    worker = partial(
        process_single_file,
        output_format=output_format,
        output_directory=output_directory,
        dry_run=dry_run,
    )

    summary = ConversionSummary()
    for path in input_paths:
        if worker(path):
            summary.succeeded.append(path)
        else:
            summary.failed.append(path)

    if summary.failed:
        logger.error(
            "Conversion summary: %d succeeded, %d failed",
            len(summary.succeeded),
            len(summary.failed),
        )
        for path in summary.failed:
            logger.error("  - %s", path)
    elif len(summary.succeeded) > 1:
        logger.info("Conversion complete: %d files converted successfully", len(summary.succeeded))

    logger.info("Total elapsed: %.2fs", time.time() - t0)
    return summary
