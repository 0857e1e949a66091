"""
Shared fixtures for the anim2vtk tests.

`build_anim` produces a synthetic animation file (FASTMAGI10 layout) so the
decoder, writers and CLI can be tested without solver output on disk.

"""

import struct

import numpy as np
import pytest

from anim2vtk.model import Element, MeshSnapshot, Node, Topology

FASTMAGI10 = 0x542C


# ──────────────────────────────────────────────────────────────
# Animation file builder
# ──────────────────────────────────────────────────────────────

class _Bytes:
    def __init__(self):
        self.parts = []

    def i32(self, *values):
        for v in values:
            self.parts.append(struct.pack(">i", int(v)))

    def f32(self, value):
        self.parts.append(struct.pack(">f", float(value)))

    def i32s(self, values):
        self.parts.append(np.asarray(values, dtype=">i4").tobytes())

    def f32s(self, values):
        self.parts.append(np.asarray(values, dtype=">f4").tobytes())

    def u8s(self, values):
        self.parts.append(np.asarray(values, dtype="u1").tobytes())

    def zeros(self, nbytes):
        self.parts.append(b"\0" * nbytes)

    def text(self, value, width):
        raw = value.encode("ascii")[:width]
        self.parts.append(raw + b"\0" * (width - len(raw)))

    def getvalue(self):
        return b"".join(self.parts)


def _block_arrays(conn, labels, deleted, arity):
    conn = np.asarray(conn, dtype=np.int64).reshape(-1, arity)
    n = conn.shape[0]
    labels = np.arange(1, n + 1) if labels is None else np.asarray(labels)
    deleted = np.zeros(n, dtype=np.uint8) if deleted is None else np.asarray(deleted)
    return conn, n, labels, deleted


def _parts(out, parts):
    if parts:
        out.i32s([end for end, _ in parts])
        for _, name in parts:
            out.text(name, 50)


def build_anim_file(
    coords,
    facets=None,
    bricks=None,
    beams=None,
    sph=None,
    node_labels=None,
    facet_labels=None,
    brick_labels=None,
    beam_labels=None,
    sph_labels=None,
    facet_deleted=None,
    brick_deleted=None,
    beam_deleted=None,
    sph_deleted=None,
    node_scalars=(),
    node_vectors=(),
    facet_scalars=(),
    facet_tensors=(),
    brick_scalars=(),
    brick_tensors=(),
    beam_scalars=(),
    beam_torsors=(),
    sph_scalars=(),
    sph_tensors=(),
    facet_parts=(),
    brick_parts=(),
    beam_parts=(),
    sph_parts=(),
    time=0.0,
    title="",
    magic=FASTMAGI10,
    numbered=None,
    with_masses=False,
    with_hierarchy=False,
    with_time_history=False,
    beam_skew=False,
    skews=0,
):
    """
    Serialize an animation file.

    Connectivity is positional (0-based node indices), as in real files.
    Named results are sequences of (name, values); tensors take the packed
    symmetric components (3 per facet, 6 per brick/particle).
    """
    coords = np.asarray(coords, dtype=np.float64).reshape(-1, 3)
    nb_nodes = coords.shape[0]
    numbered = (node_labels is not None) if numbered is None else numbered
    if node_labels is None:
        node_labels = np.arange(1, nb_nodes + 1)

    fconn, nb_facets, facet_labels, facet_deleted = _block_arrays(
        facets if facets is not None else np.empty((0, 4)), facet_labels, facet_deleted, 4
    )

    flags = [0] * 10
    flags[0] = 1 if with_masses else 0
    flags[1] = int(numbered)
    flags[2] = 1 if bricks is not None else 0
    flags[3] = 1 if beams is not None else 0
    flags[4] = 1 if with_hierarchy else 0
    flags[5] = 1 if with_time_history else 0
    flags[7] = 1 if sph is not None else 0

    out = _Bytes()
    out.i32(magic)
    out.f32(time)
    out.text("TIME", 81)
    out.text("ANIM", 81)
    out.text(title, 81)
    out.i32s(flags)

    # 2D geometry
    out.i32(nb_nodes, nb_facets, len(facet_parts), len(node_scalars), len(facet_scalars),
            len(node_vectors), len(facet_tensors), skews)
    out.zeros(skews * 6 * 2)
    out.f32s(coords)
    if nb_facets > 0:
        out.i32s(fconn)
        out.u8s(facet_deleted)
    _parts(out, facet_parts)
    out.zeros(nb_nodes * 3 * 2)

    if len(node_scalars) + len(facet_scalars) > 0:
        for name, _ in list(node_scalars) + list(facet_scalars):
            out.text(name, 81)
        for _, values in node_scalars:
            out.f32s(values)
        for _, values in facet_scalars:
            out.f32s(values)

    for name, _ in node_vectors:
        out.text(name, 81)
    for _, values in node_vectors:
        out.f32s(np.asarray(values).reshape(nb_nodes, 3))

    if facet_tensors:
        for name, _ in facet_tensors:
            out.text(name, 81)
        for _, values in facet_tensors:
            out.f32s(np.asarray(values).reshape(nb_facets, 3))

    if with_masses:
        out.f32s(np.ones(nb_facets))
        out.f32s(np.ones(nb_nodes))
    if numbered:
        out.i32s(node_labels)
        out.i32s(facet_labels)
    if with_hierarchy:
        out.i32s(np.zeros(3 * len(facet_parts)))

    # 3D geometry
    if bricks is not None:
        bconn, n, brick_labels, brick_deleted = _block_arrays(bricks, brick_labels, brick_deleted, 8)
        out.i32(n, len(brick_parts), len(brick_scalars), len(brick_tensors))
        out.i32s(bconn)
        out.u8s(brick_deleted)
        _parts(out, brick_parts)
        if brick_scalars:
            for name, _ in brick_scalars:
                out.text(name, 81)
            for _, values in brick_scalars:
                out.f32s(values)
        if brick_tensors:
            for name, _ in brick_tensors:
                out.text(name, 81)
            for _, values in brick_tensors:
                out.f32s(np.asarray(values).reshape(n, 6))
        if with_masses:
            out.f32s(np.ones(n))
        if numbered == 1:
            out.i32s(brick_labels)
        if with_hierarchy:
            out.i32s(np.zeros(3 * len(brick_parts)))

    # 1D geometry
    if beams is not None:
        lconn, n, beam_labels, beam_deleted = _block_arrays(beams, beam_labels, beam_deleted, 2)
        out.i32(n, len(beam_parts), len(beam_scalars), len(beam_torsors), 1 if beam_skew else 0)
        out.i32s(lconn)
        out.u8s(beam_deleted)
        _parts(out, beam_parts)
        if beam_scalars:
            for name, _ in beam_scalars:
                out.text(name, 81)
            for _, values in beam_scalars:
                out.f32s(values)
        if beam_torsors:
            for name, _ in beam_torsors:
                out.text(name, 81)
            for _, values in beam_torsors:
                out.f32s(np.asarray(values).reshape(n, 9))
        if beam_skew:
            out.i32s(np.zeros(n))
        if with_masses:
            out.f32s(np.ones(n))
        if numbered == 1:
            out.i32s(beam_labels)
        if with_hierarchy:
            out.i32s(np.zeros(3 * len(beam_parts)))

    # part hierarchy: one subset, one material, one property
    if with_hierarchy:
        out.i32(1)
        out.text("ROOT", 50)
        out.i32(0)
        out.i32(2)
        out.i32s([7, 8])
        out.i32(1)
        out.i32s([1])
        out.i32(0)
        out.i32(0)
        out.i32(1, 1)
        out.text("STEEL", 50)
        out.i32s([2])
        out.text("SHELL", 50)
        out.i32s([1])

    # time-history selections: one node, one facet
    if with_time_history:
        out.i32(1, 1, 0, 0)
        out.i32s([1])
        out.text("NODE 1", 50)
        out.i32s([1])
        out.text("SHELL 1", 50)

    # SPH
    if sph is not None:
        sconn, n, sph_labels, sph_deleted = _block_arrays(sph, sph_labels, sph_deleted, 1)
        out.i32(n, len(sph_parts), len(sph_scalars), len(sph_tensors))
        if n > 0:
            out.i32s(sconn)
            out.u8s(sph_deleted)
        _parts(out, sph_parts)
        if sph_scalars:
            for name, _ in sph_scalars:
                out.text(name, 81)
            for _, values in sph_scalars:
                out.f32s(values)
        if sph_tensors:
            for name, _ in sph_tensors:
                out.text(name, 81)
            for _, values in sph_tensors:
                out.f32s(np.asarray(values).reshape(n, 6))
        if with_masses:
            out.f32s(np.ones(n))
        if numbered == 1:
            out.i32s(sph_labels)
        if with_hierarchy:
            out.i32s(np.zeros(3 * len(sph_parts)))

    return out.getvalue()


# ──────────────────────────────────────────────────────────────
# Fixtures
# ──────────────────────────────────────────────────────────────

@pytest.fixture
def build_anim():
    return build_anim_file


@pytest.fixture
def write_anim(tmp_path):
    """Write a synthetic animation file into tmp_path and return its path."""

    def _write(name="stateA001", **kwargs):
        path = tmp_path / name
        path.write_bytes(build_anim_file(**kwargs))
        return path

    return _write


# nodes 0..11:
#   0-3 unit square (quad), 4 apex (triangle with 1, 2)
#   4-11 unit cube shifted to z=1 (brick), 4 shared
CUBE = [
    (0.0, 0.0, 1.0), (1.0, 0.0, 1.0), (1.0, 1.0, 1.0), (0.0, 1.0, 1.0),
    (0.0, 0.0, 2.0), (1.0, 0.0, 2.0), (1.0, 1.0, 2.0), (0.0, 1.0, 2.0),
]
MIXED_COORDS = [(0.0, 0.0, 0.0), (1.0, 0.0, 0.0), (1.0, 1.0, 0.0), (0.0, 1.0, 0.0)] + CUBE


@pytest.fixture
def mixed_anim(write_anim):
    """One element of every topology, numbered nodes, a few results."""
    return write_anim(
        coords=MIXED_COORDS,
        node_labels=[101, 102, 103, 104, 105, 106, 107, 108, 109, 110, 111, 112],
        facets=[[0, 1, 2, 3], [1, 2, 4, 4]],
        facet_labels=[11, 12],
        bricks=[[4, 5, 6, 7, 8, 9, 10, 11]],
        brick_labels=[21],
        beams=[[0, 4]],
        beam_labels=[31],
        sph=[11],
        sph_labels=[112],
        node_scalars=[("Temperature", np.linspace(0.5, 6.0, 12))],
        node_vectors=[("Velocity", np.arange(36, dtype=float) / 7.0)],
        facet_scalars=[("Von Mises", [1.5, 2.5])],
        brick_scalars=[("Pressure", [3.25])],
        time=0.125,
        title="mixed run",
    )


@pytest.fixture
def quad_snapshot():
    """4 nodes labelled 10/20/30/40, one quad connecting them in order."""
    nodes = [
        Node(10, 0.0, 0.0, 0.0),
        Node(20, 1.0, 0.0, 0.0),
        Node(30, 1.0, 1.0, 0.0),
        Node(40, 0.0, 1.0, 0.0),
    ]
    elements = [Element(1, Topology.QUAD, (10, 20, 30, 40))]
    return MeshSnapshot.from_records(nodes, elements)


@pytest.fixture
def all_topologies_snapshot():
    """One element of each topology kind, sparse node labels."""
    nodes = [Node(1000 * (i + 1), float(x), float(y), float(z)) for i, (x, y, z) in enumerate(MIXED_COORDS)]
    lbl = [n.label for n in nodes]
    elements = [
        Element(1, Topology.BEAM, (lbl[0], lbl[4])),
        Element(2, Topology.TRIANGLE, (lbl[1], lbl[2], lbl[4])),
        Element(3, Topology.QUAD, (lbl[0], lbl[1], lbl[2], lbl[3])),
        Element(4, Topology.BRICK, tuple(lbl[4:12])),
        Element(5, Topology.SPH, (lbl[11],)),
    ]
    return MeshSnapshot.from_records(nodes, elements, time=1.5, title="all kinds")
