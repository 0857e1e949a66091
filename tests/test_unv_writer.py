"""
Unit tests for the UNV writer.

These tests verify that the writer:
1. Writes datasets 2411 (nodes) and 2412 (elements) only
2. Keeps node labels in element records
3. Maps every topology to its UNV element type
4. Fails before writing when a topology has no UNV type

"""

import io

import pytest

from anim2vtk import unv_writer
from anim2vtk.buffers import RecordBuffer
from anim2vtk.errors import UnsupportedTopology
from anim2vtk.model import MeshSnapshot, Topology
from anim2vtk.unv_writer import write_unv


def _render(snapshot):
    stream = io.BytesIO()
    with RecordBuffer(stream) as buf:
        write_unv(snapshot, buf)
    return stream.getvalue().decode("ascii").splitlines()


def _element_records(lines):
    """Element header rows of dataset 2412 (6 integer columns)."""
    start = lines.index("  2412") + 1
    return [l.split() for l in lines[start:] if len(l.split()) == 6]


# ──────────────────────────────────────────────────────────────
# Tests
# ──────────────────────────────────────────────────────────────

def test_quad_records(quad_snapshot):
    lines = _render(quad_snapshot)

    assert lines[:3] == ["    -1", "  2411", "        10         1         1        11"]
    assert lines[3] == "   0.0000000000000000E+00   0.0000000000000000E+00   0.0000000000000000E+00"
    assert lines[-6:] == [
        "    -1",
        "    -1",
        "  2412",
        "         1        44         1         1         7         4",
        "        10        20        30        40",
        "    -1",
    ]


def test_node_coordinates(all_topologies_snapshot):
    lines = _render(all_topologies_snapshot)
    # node 12 (label 12000) sits at (0, 1, 2)
    at = lines.index("     12000         1         1        11")
    row = lines[at + 1]
    assert [float(row[i:i + 25]) for i in (0, 25, 50)] == [0.0, 1.0, 2.0]


def test_element_type_codes(all_topologies_snapshot):
    records = _element_records(_render(all_topologies_snapshot))
    assert [int(r[1]) for r in records] == [11, 91, 44, 115, 136]
    assert [int(r[5]) for r in records] == [2, 3, 4, 8, 1]


def test_beam_orientation_record(all_topologies_snapshot):
    lines = _render(all_topologies_snapshot)
    at = lines.index("         1        11         1         1         7         2")
    assert lines[at + 1] == "         0         1         1"
    assert lines[at + 2] == "      1000      5000"


def test_brick_labels_on_one_line(all_topologies_snapshot):
    lines = _render(all_topologies_snapshot)
    at = lines.index("         4       115         1         1         7         8")
    assert lines[at + 1].split() == [str(1000 * i) for i in range(5, 13)]


def test_no_result_fields(mixed_anim):
    from anim2vtk.decoder import decode_animation

    lines = _render(decode_animation(mixed_anim))
    assert [l for l in lines if l.strip() in ("2411", "2412")] == ["  2411", "  2412"]
    assert lines.count("    -1") == 4


def test_empty_snapshot():
    lines = _render(MeshSnapshot.from_records([], []))
    assert lines == ["    -1", "  2411", "    -1", "    -1", "  2412", "    -1"]


def test_unsupported_topology(monkeypatch, all_topologies_snapshot):
    monkeypatch.delitem(unv_writer.UNV_ELEMENT_TYPES, Topology.BRICK)
    stream = io.BytesIO()
    with pytest.raises(UnsupportedTopology):
        with RecordBuffer(stream, capacity=1) as buf:
            write_unv(all_topologies_snapshot, buf)
    assert stream.getvalue() == b""


def test_unique_labels_without_numbering(write_anim):
    """Elements of different blocks never share a 2412 label."""
    from anim2vtk.decoder import decode_animation

    square = [(0.0, 0.0, 0.0), (1.0, 0.0, 0.0), (1.0, 1.0, 0.0), (0.0, 1.0, 0.0)]
    path = write_anim(coords=square, facets=[[0, 1, 2, 3]], beams=[[0, 1], [2, 3]])
    records = _element_records(_render(decode_animation(path)))

    labels = [int(r[0]) for r in records]
    assert labels == [1, 2, 3]
    assert [int(r[1]) for r in records] == [11, 11, 44]
