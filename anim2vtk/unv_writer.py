# -*- coding: utf-8 -*-

"""

I-DEAS Universal (UNV) geometry writer.

Only two datasets are written, result fields are never exported:

 - 2411 nodes:     record 1 (4I10) label, export cs, displacement cs, color
                   record 2 (3E25.16) x, y, z
 - 2412 elements:  record 1 (6I10) label, FE descriptor, physical property,
                   material property, color, node count
                   beams only: record 2 (3I10) orientation node, end A, end B
                   node labels (8I10 per line)

Elements reference nodes by label, not by position.

"""

from __future__ import annotations

import logging
from typing import Dict, List

import numpy as np

from .buffers import RecordBuffer
from .errors import UnsupportedTopology
from .model import MeshSnapshot, Topology

logger = logging.getLogger("anim2vtk")

UNV_ELEMENT_TYPES: Dict[Topology, int] = {
    Topology.BEAM: 11,        # rod
    Topology.QUAD: 44,        # plane stress linear quadrilateral
    Topology.TRIANGLE: 91,    # thin shell linear triangle
    Topology.BRICK: 115,      # solid linear brick
    Topology.SPH: 136,        # node-based point element
}

DELIMITER = "    -1"
COORD_FORMAT = "%25.16E"

COORD_SYSTEM = 1
NODE_COLOR = 11
ELEMENT_COLOR = 7
PROPERTY_ID = 1
MATERIAL_ID = 1

LABELS_PER_LINE = 8
RECORDS_PER_CHUNK = 4096


def unv_type_codes(snapshot: MeshSnapshot) -> np.ndarray:
    codes = np.empty(snapshot.element_count, dtype=np.int32)
    for code in np.unique(snapshot.topologies).tolist():
        topo = Topology(code)
        if topo not in UNV_ELEMENT_TYPES:
            raise UnsupportedTopology(f"No UNV element type for {topo.name} elements")
        codes[snapshot.topologies == code] = UNV_ELEMENT_TYPES[topo]
    return codes


def _write_nodes(buf: RecordBuffer, snapshot: MeshSnapshot) -> None:
    buf.line(DELIMITER)
    buf.line("  2411")

    head = f"%10d{COORD_SYSTEM:10d}{COORD_SYSTEM:10d}{NODE_COLOR:10d}"
    coords = COORD_FORMAT * 3

    rows: List[str] = []
    for label, xyz in zip(snapshot.node_labels.tolist(), snapshot.coordinates.tolist()):
        rows.append(head % label)
        rows.append(coords % tuple(xyz))
        if len(rows) >= RECORDS_PER_CHUNK:
            buf.lines(rows)
            rows = []
    buf.lines(rows)

    buf.line(DELIMITER)


def _write_elements(buf: RecordBuffer, snapshot: MeshSnapshot, codes: np.ndarray) -> None:
    buf.line(DELIMITER)
    buf.line("  2412")

    beam_code = UNV_ELEMENT_TYPES.get(Topology.BEAM)
    beam_record = f"{0:10d}{1:10d}{1:10d}"
    conn = snapshot.connectivity.tolist()
    offsets = snapshot.offsets.tolist()

    rows: List[str] = []
    for i, (label, code) in enumerate(zip(snapshot.element_labels.tolist(), codes.tolist())):
        nodes = conn[offsets[i]:offsets[i + 1]]
        rows.append(
            f"{label:10d}{code:10d}{PROPERTY_ID:10d}{MATERIAL_ID:10d}{ELEMENT_COLOR:10d}{len(nodes):10d}"
        )
        if code == beam_code:
            rows.append(beam_record)
        for j in range(0, len(nodes), LABELS_PER_LINE):
            rows.append("".join(f"{n:10d}" for n in nodes[j:j + LABELS_PER_LINE]))
        if len(rows) >= RECORDS_PER_CHUNK:
            buf.lines(rows)
            rows = []
    buf.lines(rows)

    buf.line(DELIMITER)


def write_unv(snapshot: MeshSnapshot, buf: RecordBuffer) -> None:
    """
    Serialize the geometry of `snapshot` as UNV datasets 2411 and 2412.

    Raises:
        UnsupportedTopology: an element kind has no UNV element type. Raised
            before anything is written.
        OSError: from the underlying stream.
    """
    codes = unv_type_codes(snapshot)

    _write_nodes(buf, snapshot)
    _write_elements(buf, snapshot, codes)

    logger.debug("UNV: %d nodes, %d elements", snapshot.node_count, snapshot.element_count)
