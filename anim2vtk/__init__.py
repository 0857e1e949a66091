# -*- coding: utf-8 -*-

"""

anim2vtk: Animation → VTK / UNV Converter
=========================================

──────────────────────────────────────────────────────────────────────────────
Description
──────────────────────────────────────────────────────────────────────────────
anim2vtk converts finite-element animation state files into legacy VTK
(ASCII or binary) for ParaView and other VTK-based tools, or into UNV
geometry for meshing and pre-processing tools.

──────────────────────────────────────────────────────────────────────────────
WHY THIS EXISTS
──────────────────────────────────────────────────────────────────────────────
- Animation files are a compact big-endian solver dump, readable only by the
  solver's own post-processor.
- Legacy VTK keeps nodal and elemental results next to the mesh; UNV keeps
  the mesh in a form every pre-processor imports.

"""

from .converter import (
    AnimConverter,
    OutputFormat,
    output_format_from_flags,
    output_path_for,
    write_snapshot,
)

from .batch import (
    ConversionSummary,
    process_single_file,
    run_conversion,
)

from .decoder import decode_animation, list_fields
from .model import Element, Field, MeshSnapshot, Node, Topology

__version__ = "1.0.0"
