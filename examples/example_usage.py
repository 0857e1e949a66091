#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""

─────────────────────────────────────────────────────────────
Example Usage of anim2vtk
─────────────────────────────────────────────────────────────

This script demonstrates how to use the `AnimConverter`
class to explore and convert animation state files into
legacy VTK or UNV files.

Features demonstrated:
1. Listing available fields of each state file
2. Inspecting element counts per topology
3. Performing a dry-run conversion (no files written)
4. Converting a whole run with `run_conversion`

Note: The output directory is created automatically by
anim2vtk if it does not already exist.

─────────────────────────────────────────────────────────────

"""

from typing import List, Tuple

from anim2vtk import AnimConverter, OutputFormat, run_conversion
from anim2vtk.decoder import list_fields
from anim2vtk.errors import ConversionError

# ──────────────────────────────────────────────────────────────
# Configuration
# ──────────────────────────────────────────────────────────────

ANIM_FILES = ["crash/runA001", "crash/runA002"]

OUTPUT_FORMAT = OutputFormat.BINARY_VTK

DRY_RUN = True

OUTPUT_DIR = None  # Set to e.g. "vtk_outputs" to specify output location, or None to write next to each input


# ──────────────────────────────────────────────────────────────
# Helper Functions
# ──────────────────────────────────────────────────────────────


def print_file_info(path: str, fields: List[Tuple[str, str]]):

    print(f"\n🔹 Inspecting {path}...")
    point = [name for location, name in fields if location == "point"]
    cell = [name for location, name in fields if location == "cell"]
    print(f"Point fields: {', '.join(point) or 'None'}")
    print(f"Cell fields:  {', '.join(cell) or 'None'}")


def print_topologies(converter: AnimConverter, path: str):

    snapshot = converter.read_data(path)
    print(f"{snapshot.node_count} nodes, {snapshot.element_count} elements, t = {snapshot.time:g}")
    for topology, count in snapshot.topology_counts().items():
        print(f"  {topology.name:<9} {count}")


# ──────────────────────────────────────────────────────────────
# Main Example Workflow
# ──────────────────────────────────────────────────────────────

def main():

    print("=== anim2vtk Example Usage ===")
    print("This example inspects state files and performs a dry-run conversion.\n")

    converter = AnimConverter(
        output_format=OUTPUT_FORMAT,
        output_directory=OUTPUT_DIR,
        dry_run=DRY_RUN,
    )

    for path in ANIM_FILES:
        try:
            print_file_info(path, list_fields(path))
            print_topologies(converter, path)
        except ConversionError as e:
            print(f"⚠️ Failed to inspect {path}: {e}")
            continue

        if converter.process_file(path):
            print(f"✅ {path} -> {converter.output_path_for(path)}")
        else:
            print(f"❌ Failed to process {path}")

    summary = run_conversion(ANIM_FILES, OUTPUT_FORMAT, OUTPUT_DIR, dry_run=DRY_RUN)

    print(f"\n🎉 Example usage finished! {len(summary.succeeded)} converted, {len(summary.failed)} failed.")
    print("Set `DRY_RUN = False` to write actual output files.")


# ──────────────────────────────────────────────────────────────
# Entry Point
# ──────────────────────────────────────────────────────────────

if __name__ == "__main__":
    main()
