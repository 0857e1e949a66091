#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""

──────────────────────────────────────────────────────────────────────────────
Description
──────────────────────────────────────────────────────────────────────────────
Converts finite-element animation state files into mesh interchange formats
that ParaView, pre/post-processors and meshing tools can read.

──────────────────────────────────────────────────────────────────────────────
WHY THIS EXISTS
──────────────────────────────────────────────────────────────────────────────
- Animation files are a compact big-endian dump of one solver state; almost
  no visualization pipeline reads them directly.
- Legacy VTK carries the geometry together with nodal and elemental results.
- UNV (datasets 2411/2412) is the lowest common denominator for meshing and
  pre-processing tools; only geometry is exported there.

──────────────────────────────────────────────────────────────────────────────
IT SUPPORTS:
──────────────────────────────────────────────────────────────────────────────
 - ASCII VTK (default), binary VTK (--binary) and UNV (--unv) output
 - Beams, triangles, quads, 8-node bricks and SPH particles
 - Field discovery (--list-fields) without writing anything
 - Dry-run mode (--dry-run) that decodes and reports counts only
 - An optional output directory (--output-dir)

"""


from __future__ import annotations

import logging
import os
import time
from enum import Enum
from pathlib import Path
from typing import Optional, Union

from .buffers import RecordBuffer
from .decoder import decode_animation
from .errors import ConversionError, OutputIOError
from .model import MeshSnapshot
from .unv_writer import write_unv
from .vtk_writer import write_vtk

__version__ = "1.0.0"


def setup_logging(verbose: bool) -> None:
    """
    Configure global logging.

    Args:
        verbose: If True, set DEBUG level, otherwise INFO.
    """

    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)-8s | %(message)s",
        datefmt="%H:%M:%S",
    )


logger = logging.getLogger("anim2vtk")


class OutputFormat(Enum):
    ASCII_VTK = "ascii-vtk"
    BINARY_VTK = "binary-vtk"
    UNV = "unv"

    @property
    def extension(self) -> str:
        return ".unv" if self is OutputFormat.UNV else ".vtk"


def output_format_from_flags(binary: bool = False, unv: bool = False) -> OutputFormat:
    """
    Map the --binary / --unv command line flags to an OutputFormat.

    Raises:
        ValueError if both flags are set.
    """

    if binary and unv:
        raise ValueError("--binary and --unv are mutually exclusive.")
    if unv:
        return OutputFormat.UNV
    if binary:
        return OutputFormat.BINARY_VTK
    return OutputFormat.ASCII_VTK


def output_path_for(
    input_path: Union[str, Path],
    output_format: OutputFormat,
    output_directory: Optional[str] = None,
) -> str:
    """
    Output file name: the input path with the format extension appended.

    With an output directory only the input base name is kept.
    """

    name = f"{input_path}{output_format.extension}"
    if output_directory is None:
        return name
    return os.path.join(output_directory, os.path.basename(name))


def write_snapshot(snapshot: MeshSnapshot, output_path: Union[str, Path], output_format: OutputFormat) -> int:
    """
    Write one snapshot with the writer selected by `output_format`.

    A scratch buffer is opened with the file and released with it. On failure
    the output file is left as it is (possibly truncated).

    Returns:
        Number of bytes written.

    Raises:
        OutputIOError on any I/O failure, UnsupportedTopology from the writers.
    """

    try:
        with open(output_path, "wb") as fh, RecordBuffer(fh) as buf:
            if output_format is OutputFormat.UNV:
                write_unv(snapshot, buf)
            elif output_format is OutputFormat.BINARY_VTK:
                write_vtk(snapshot, buf, binary=True)
            else:
                write_vtk(snapshot, buf, binary=False)
    except OSError as e:
        raise OutputIOError(f"Cannot write output file: {e.strerror or e}", str(output_path)) from e

    return buf.bytes_written


class AnimConverter:
    """
    Convert animation files into VTK or UNV files, one file at a time.

    Each method has one responsibility (naming, decoding, writing) so the
    pieces can be exercised separately in tests.
    """

    def __init__(
        self,
        output_format: OutputFormat = OutputFormat.ASCII_VTK,
        output_directory: Optional[str] = None,
        dry_run: bool = False,
    ):
        self.output_format = output_format
        self.output_directory = output_directory
        self.dry_run = dry_run

    def output_path_for(self, input_path: Union[str, Path]) -> str:
        return output_path_for(input_path, self.output_format, self.output_directory)

    def read_data(self, input_path: Union[str, Path]) -> MeshSnapshot:
        """
        Decode one animation file.

        Raises:
            DecodeError (or a subclass) when the file is missing or invalid.
        """
        snapshot = decode_animation(input_path)
        logger.debug(
            "Decoded '%s': %d nodes, %d elements %s, t=%g",
            input_path,
            snapshot.node_count,
            snapshot.element_count,
            {t.name: n for t, n in snapshot.topology_counts().items()},
            snapshot.time,
        )
        return snapshot

    def convert_one(self, input_path: Union[str, Path], snapshot: MeshSnapshot) -> Optional[str]:
        """
        Write one decoded snapshot next to its input (or into output_directory).

        Returns:
            The output path, or None in dry-run mode.
        """
        output_path = self.output_path_for(input_path)

        if self.dry_run:
            logger.info(
                "[dry-run] Would write '%s' (%d points, %d cells, %d point fields, %d cell fields).",
                output_path,
                snapshot.node_count,
                snapshot.element_count,
                len(snapshot.point_fields),
                len(snapshot.cell_fields),
            )
            return None

        if self.output_directory:
            try:
                os.makedirs(self.output_directory, exist_ok=True)
            except OSError as e:
                raise OutputIOError(f"Cannot create output directory: {e.strerror or e}", self.output_directory) from e

        t0 = time.time()
        nbytes = write_snapshot(snapshot, output_path, self.output_format)
        logger.info("DONE: Saved '%s' (%d bytes) in %.2fs", output_path, nbytes, time.time() - t0)
        return output_path

    def process_file(self, input_path: Union[str, Path]) -> bool:
        """
        Decode and convert a single file.

        Failures are logged and reported through the return value so that a
        batch can continue with the next file.
        """
        logger.info("Converting '%s' to %s", input_path, self.output_format.value)
        try:
            snapshot = self.read_data(input_path)
            self.convert_one(input_path, snapshot)
            return True
        except ConversionError as e:
            logger.error("Failed to convert '%s' (%s): %s", input_path, e.kind, e.message)
            return False
        except Exception as e:
            logger.exception("Unexpected failure converting '%s': %s", input_path, e)
            return False
