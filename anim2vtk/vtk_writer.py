# -*- coding: utf-8 -*-

"""

Legacy VTK writer (UNSTRUCTURED_GRID, ASCII or BINARY).

Both encodings carry the same content:

    # vtk DataFile Version 3.0
    <title>
    ASCII | BINARY
    DATASET UNSTRUCTURED_GRID
    FIELD FieldData 2          (TIME as double, CYCLE as int)
    POINTS <N> float
    CELLS <M> <M + sum of cell sizes>
    CELL_TYPES <M>
    POINT_DATA <N>             (when N > 0)
    CELL_DATA <M>              (when M > 0)

ASCII floats are printed with FLOAT_FORMAT (SIGNIFICANT_DIGITS significant
digits, enough to restore every float32 exactly). Binary values are
big-endian float32 / int32, TIME is big-endian float64. Keyword lines stay
ASCII in both modes and every data block ends with a newline.

"""

from __future__ import annotations

import logging
from typing import Dict, List

import numpy as np

from .buffers import RecordBuffer
from .errors import UnsupportedTopology
from .model import Field, MeshSnapshot, Topology

logger = logging.getLogger("anim2vtk")

VTK_VERSION_LINE = "# vtk DataFile Version 3.0"
DEFAULT_TITLE = "vtk output"

SIGNIFICANT_DIGITS = 9
FLOAT_FORMAT = f"%.{SIGNIFICANT_DIGITS - 1}e"
INT_FORMAT = "%d"

# rows formatted per buffer append in ASCII mode
ROWS_PER_CHUNK = 8192

VTK_CELL_TYPES: Dict[Topology, int] = {
    Topology.BEAM: 3,       # VTK_LINE
    Topology.TRIANGLE: 5,   # VTK_TRIANGLE
    Topology.QUAD: 9,       # VTK_QUAD
    Topology.BRICK: 12,     # VTK_HEXAHEDRON
    Topology.SPH: 1,        # VTK_VERTEX
}


def vtk_name(name: str) -> str:
    """Array names are single ASCII tokens in legacy VTK."""
    cleaned = name.encode("ascii", errors="replace").decode("ascii")
    cleaned = "_".join(cleaned.split())
    return cleaned or "unnamed"


def cell_type_codes(snapshot: MeshSnapshot) -> np.ndarray:
    lookup = np.full(max(Topology) + 1, -1, dtype=np.int32)
    for topo, code in VTK_CELL_TYPES.items():
        lookup[topo] = code

    codes = lookup[snapshot.topologies]
    if (codes < 0).any():
        topo = Topology(int(snapshot.topologies[codes < 0][0]))
        raise UnsupportedTopology(f"No VTK cell type for {topo.name} elements")
    return codes


def _ascii_rows(buf: RecordBuffer, values: np.ndarray, fmt: str, columns: int) -> None:
    rows = np.asarray(values).reshape(-1, columns).tolist()
    template = " ".join([fmt] * columns)
    for i in range(0, len(rows), ROWS_PER_CHUNK):
        buf.lines([template % tuple(row) for row in rows[i:i + ROWS_PER_CHUNK]])


def _write_values(buf: RecordBuffer, values: np.ndarray, columns: int, binary: bool, integer: bool = False) -> None:
    if binary:
        buf.array(values, ">i4" if integer else ">f4")
        buf.line()
    else:
        _ascii_rows(buf, values, INT_FORMAT if integer else FLOAT_FORMAT, columns)
    buf.line()


def _write_field_data(buf: RecordBuffer, time: float, binary: bool) -> None:
    buf.line("FIELD FieldData 2")
    buf.line("TIME 1 1 double")
    if binary:
        buf.array([time], ">f8")
        buf.line()
    else:
        buf.line(FLOAT_FORMAT % time)
    buf.line("CYCLE 1 1 int")
    if binary:
        buf.array([0], ">i4")
        buf.line()
    else:
        buf.line("0")


def _write_cells(buf: RecordBuffer, snapshot: MeshSnapshot, binary: bool) -> None:
    ncells = snapshot.element_count
    sizes = np.diff(snapshot.offsets)
    positions = snapshot.label_index.positions(snapshot.connectivity)

    buf.line(f"CELLS {ncells} {ncells + positions.size}")

    if binary:
        packed = np.empty(ncells + positions.size, dtype=np.int64)
        heads = snapshot.offsets[:-1] + np.arange(ncells)
        body = np.ones(packed.size, dtype=bool)
        body[heads] = False
        packed[heads] = sizes
        packed[body] = positions
        buf.array(packed, ">i4")
        buf.line()
    else:
        flat = positions.tolist()
        offsets = snapshot.offsets.tolist()
        rows: List[str] = []
        for i in range(ncells):
            a, b = offsets[i], offsets[i + 1]
            rows.append(f"{b - a} " + " ".join(map(str, flat[a:b])))
            if len(rows) == ROWS_PER_CHUNK:
                buf.lines(rows)
                rows = []
        buf.lines(rows)
    buf.line()

    buf.line(f"CELL_TYPES {ncells}")
    _write_values(buf, cell_type_codes(snapshot), 1, binary, integer=True)


def _write_array(buf: RecordBuffer, fld: Field, binary: bool) -> None:
    name = vtk_name(fld.name)

    if fld.kind == "scalar":
        buf.line(f"SCALARS {name} {'int' if fld.is_integer else 'float'} 1")
        buf.line("LOOKUP_TABLE default")
        _write_values(buf, fld.values, 1, binary, integer=fld.is_integer)
    elif fld.kind == "vector":
        buf.line(f"VECTORS {name} float")
        _write_values(buf, fld.values, 3, binary)
    else:
        buf.line(f"TENSORS {name} float")
        _write_values(buf, fld.values, 3, binary)


def write_vtk(snapshot: MeshSnapshot, buf: RecordBuffer, binary: bool = False) -> None:
    """
    Serialize `snapshot` as legacy VTK into `buf`.

    Args:
        snapshot: decoded mesh.
        buf: scratch buffer bound to the output file.
        binary: BINARY encoding when True, ASCII otherwise.

    Raises:
        UnsupportedTopology: an element kind has no VTK cell type.
        OSError: from the underlying stream; the file may be left truncated.
    """
    title = " ".join((snapshot.title or DEFAULT_TITLE).split())
    title = title.encode("ascii", errors="replace").decode("ascii")

    buf.line(VTK_VERSION_LINE)
    buf.line(title or DEFAULT_TITLE)
    buf.line("BINARY" if binary else "ASCII")
    buf.line("DATASET UNSTRUCTURED_GRID")

    _write_field_data(buf, snapshot.time, binary)

    buf.line(f"POINTS {snapshot.node_count} float")
    _write_values(buf, snapshot.coordinates, 3, binary)

    _write_cells(buf, snapshot, binary)

    if snapshot.node_count:
        buf.line(f"POINT_DATA {snapshot.node_count}")
        for fld in snapshot.point_fields.values():
            _write_array(buf, fld, binary)

    if snapshot.element_count:
        buf.line(f"CELL_DATA {snapshot.element_count}")
        for fld in snapshot.cell_fields.values():
            _write_array(buf, fld, binary)

    logger.debug(
        "VTK (%s): %d points, %d cells, %d point arrays, %d cell arrays",
        "binary" if binary else "ascii",
        snapshot.node_count,
        snapshot.element_count,
        len(snapshot.point_fields),
        len(snapshot.cell_fields),
    )
