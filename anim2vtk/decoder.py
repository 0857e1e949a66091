#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""

──────────────────────────────────────────────────────────────────────────────
Animation file decoder
──────────────────────────────────────────────────────────────────────────────
Reads one big-endian animation state file (FASTMAGI10 layout) and returns a
`MeshSnapshot`.

The file is a sequence of blocks, each introduced by its counts:

 - header: magic, time, three 81-character texts, 10 flags
 - 2D block: nodes, 4-node facets, parts, normals, nodal/facet results
 - 3D block (flag 2): 8-node bricks and their results
 - 1D block (flag 3): 2-node beams, results and torsors
 - part hierarchy (flag 4) and time-history selections (flag 5), skipped
 - SPH block (flag 7): one-node particles and their results

Connectivity in the file is positional (0-based into the node table). The
decoder checks every index, then stores connectivity by node label.

──────────────────────────────────────────────────────────────────────────────
Element and field order
──────────────────────────────────────────────────────────────────────────────
Elements are ordered 1D, 2D, 3D, SPH. Cell fields are ELEMENT_ID, PART_ID,
EROSION_STATUS followed by per-block results (`1DELEM_*`, `2DELEM_*`,
`3DELEM_*`, `SPHELEM_*`), zero-filled on elements of the other blocks. A
tensor titled like a scalar of the same block gets a `_TENSOR` suffix.

Without numbering tables, elements are labelled 1..M in that order, so
labels stay unique across blocks.

"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

import numpy as np

from .errors import (
    DanglingReference,
    DecodeError,
    InvalidTopologyCode,
    MalformedHeader,
    TruncatedFile,
    UnsupportedVersion,
)
from .model import Field, MeshSnapshot, Topology

logger = logging.getLogger("anim2vtk")

FASTMAGI10 = 0x542C

TEXT_WIDTH = 81
NAME_WIDTH = 50
FLAG_COUNT = 10

# magic, time, three texts, flags
HEADER_COUNTS_OFFSET = 4 + 4 + 3 * TEXT_WIDTH + 4 * FLAG_COUNT

TORSOR_SUFFIXES = ("F1", "F2", "F3", "M1", "M2", "M3", "M4", "M5", "M6")
TENSOR_SUFFIX = "_TENSOR"

# symmetric tensor components -> row-major 3x3
_TENSOR_2D_COLUMNS = {0: 0, 1: 2, 3: 2, 4: 1}              # (xx, yy, xy)
_TENSOR_3D_ORDER = [0, 3, 4, 3, 1, 5, 4, 5, 2]              # (xx, yy, zz, xy, xz, yz)


class _Cursor:
    """Forward-only reader over the file bytes."""

    def __init__(self, data: bytes, path: str):
        self.data = data
        self.path = path
        self.pos = 0

    @property
    def remaining(self) -> int:
        return len(self.data) - self.pos

    def _take(self, nbytes: int) -> int:
        if nbytes > self.remaining:
            raise TruncatedFile(
                f"Unexpected end of file at byte {self.pos}: need {nbytes} bytes, {self.remaining} left",
                self.path,
            )
        start = self.pos
        self.pos += nbytes
        return start

    def skip(self, nbytes: int) -> None:
        self._take(nbytes)

    def array(self, dtype: str, count: int) -> np.ndarray:
        dt = np.dtype(dtype)
        if count == 0:
            return np.empty(0, dtype=dt.newbyteorder("="))
        start = self._take(count * dt.itemsize)
        return np.frombuffer(self.data, dtype=dt, count=count, offset=start).astype(dt.newbyteorder("="))

    def table(self, dtype: str, rows: int, width: int, what: str) -> np.ndarray:
        """Read a `rows x width` record table whose size comes from a header count."""
        nbytes = rows * width * np.dtype(dtype).itemsize
        if nbytes > self.remaining:
            raise MalformedHeader(
                f"{what} declares {rows} records ({nbytes} bytes) but only {self.remaining} bytes remain",
                self.path,
            )
        return self.array(dtype, rows * width).reshape(rows, width)

    def i32(self) -> int:
        return int(self.array(">i4", 1)[0])

    def f32(self) -> float:
        return float(self.array(">f4", 1)[0])

    def count(self, what: str) -> int:
        value = self.i32()
        if value < 0:
            raise MalformedHeader(f"Negative {what} ({value})", self.path)
        return value

    def texts(self, count: int, width: int) -> List[str]:
        start = self._take(count * width)
        out = []
        for i in range(count):
            raw = self.data[start + i * width:start + (i + 1) * width]
            out.append(raw.split(b"\0", 1)[0].decode("utf-8", errors="replace").strip())
        return out


@dataclass
class _ElementBlock:
    """Raw element table of one dimension, still in node positions."""

    prefix: str
    conn: np.ndarray
    deleted: np.ndarray
    part_ends: np.ndarray = field(default_factory=lambda: np.empty(0, dtype=np.int32))
    part_names: List[str] = field(default_factory=list)
    labels: Optional[np.ndarray] = None
    scalars: List[Tuple[str, np.ndarray]] = field(default_factory=list)
    tensors: List[Tuple[str, np.ndarray]] = field(default_factory=list)

    @property
    def size(self) -> int:
        return self.conn.shape[0]


def _field_name(text: str) -> str:
    return text.replace(" ", "_")


def _part_number(text: str) -> int:
    try:
        return int(text.strip())
    except ValueError:
        return 0


def _expand_2d_tensor(values: np.ndarray) -> np.ndarray:
    out = np.zeros((values.shape[0], 9), dtype=np.float32)
    for dst, src in _TENSOR_2D_COLUMNS.items():
        out[:, dst] = values[:, src]
    return out


def _expand_3d_tensor(values: np.ndarray) -> np.ndarray:
    return np.ascontiguousarray(values[:, _TENSOR_3D_ORDER], dtype=np.float32)


class AnimationDecoder:
    """
    Decode one animation file.

    Usage:
        snapshot = AnimationDecoder(path).decode()
    """

    def __init__(self, path: Union[str, Path]):
        self.path = str(path)
        self.flags = np.zeros(FLAG_COUNT, dtype=np.int32)

    def _read_bytes(self) -> bytes:
        try:
            return Path(self.path).read_bytes()
        except OSError as e:
            raise DecodeError(f"Cannot read input file: {e.strerror or e}", self.path) from e

    def decode(self) -> MeshSnapshot:
        cur = _Cursor(self._read_bytes(), self.path)

        magic = cur.i32()
        if magic != FASTMAGI10:
            raise UnsupportedVersion(f"Unsupported animation file version (magic 0x{magic & 0xFFFFFFFF:x})", self.path)

        time = cur.f32()
        _time_text, _anim_text, run_text = cur.texts(3, TEXT_WIDTH)
        self.flags = cur.array(">i4", FLAG_COUNT)

        nodes = self._read_2d(cur)
        facets = nodes.pop("facets")

        bricks = self._read_3d(cur) if self.flags[2] != 0 else None
        beams = self._read_1d(cur) if self.flags[3] != 0 else None

        if self.flags[4] != 0:
            self._skip_hierarchy(cur)
        if self.flags[5] != 0:
            self._skip_time_history(cur)

        sph = self._read_sph(cur) if self.flags[7] != 0 else None

        if cur.remaining:
            logger.debug("%s: %d trailing bytes ignored", self.path, cur.remaining)

        blocks = [
            (Topology.BEAM, beams),
            (None, facets),
            (Topology.BRICK, bricks),
            (Topology.SPH, sph),
        ]
        return self._assemble(time, run_text, nodes, blocks)

    # ──────────────────────────────────────────────────────────────────────
    # Blocks
    # ──────────────────────────────────────────────────────────────────────

    def _read_parts(self, cur: _Cursor, nparts: int) -> Tuple[np.ndarray, List[str]]:
        ends = cur.array(">i4", nparts)
        return ends, cur.texts(nparts, NAME_WIDTH)

    def _read_2d(self, cur: _Cursor) -> Dict:
        nb_nodes = cur.count("node count")
        nb_facets = cur.count("2D element count")
        nb_parts = cur.count("2D part count")
        nb_func = cur.count("nodal scalar count")
        nb_efunc = cur.count("2D element scalar count")
        nb_vect = cur.count("nodal vector count")
        nb_tens = cur.count("2D tensor count")
        nb_skew = cur.count("skew count")

        logger.debug("%s: %d nodes, %d facets, %d parts", self.path, nb_nodes, nb_facets, nb_parts)

        cur.skip(nb_skew * 6 * 2)

        coords = cur.table(">f4", nb_nodes, 3, "Node table")

        facets = _ElementBlock(
            prefix="2DELEM",
            conn=cur.table(">i4", nb_facets, 4, "2D element table"),
            deleted=cur.array("u1", nb_facets),
        )
        if nb_parts > 0:
            facets.part_ends, facets.part_names = self._read_parts(cur, nb_parts)

        cur.skip(nb_nodes * 3 * 2)  # packed normals

        point_scalars: List[Tuple[str, np.ndarray]] = []
        if nb_func + nb_efunc > 0:
            names = cur.texts(nb_func + nb_efunc, TEXT_WIDTH)
            values = cur.array(">f4", nb_nodes * nb_func).reshape(nb_func, nb_nodes)
            point_scalars = [(_field_name(names[i]), values[i]) for i in range(nb_func)]
            values = cur.array(">f4", nb_facets * nb_efunc).reshape(nb_efunc, nb_facets)
            facets.scalars = [(_field_name(names[nb_func + i]), values[i]) for i in range(nb_efunc)]

        vector_names = cur.texts(nb_vect, TEXT_WIDTH)
        values = cur.array(">f4", 3 * nb_nodes * nb_vect).reshape(nb_vect, nb_nodes, 3)
        point_vectors = [(_field_name(vector_names[i]), values[i]) for i in range(nb_vect)]

        if nb_tens > 0:
            names = cur.texts(nb_tens, TEXT_WIDTH)
            values = cur.array(">f4", nb_facets * 3 * nb_tens).reshape(nb_tens, nb_facets, 3)
            facets.tensors = [(_field_name(names[i]), _expand_2d_tensor(values[i])) for i in range(nb_tens)]

        if self.flags[0] == 1:
            cur.skip(4 * nb_facets + 4 * nb_nodes)  # masses

        node_labels = None
        if self.flags[1] != 0:
            node_labels = cur.array(">i4", nb_nodes)
            facets.labels = cur.array(">i4", nb_facets)

        if self.flags[4] != 0:
            cur.skip(3 * 4 * nb_parts)

        return {
            "coords": coords,
            "labels": node_labels,
            "scalars": point_scalars,
            "vectors": point_vectors,
            "facets": facets,
        }

    def _read_3d(self, cur: _Cursor) -> _ElementBlock:
        n = cur.count("3D element count")
        nparts = cur.count("3D part count")
        nefunc = cur.count("3D element scalar count")
        ntens = cur.count("3D tensor count")

        logger.debug("%s: %d bricks, %d parts", self.path, n, nparts)

        block = _ElementBlock(
            prefix="3DELEM",
            conn=cur.table(">i4", n, 8, "3D element table"),
            deleted=cur.array("u1", n),
        )
        block.part_ends, block.part_names = self._read_parts(cur, nparts)

        if nefunc > 0:
            names = cur.texts(nefunc, TEXT_WIDTH)
            values = cur.array(">f4", nefunc * n).reshape(nefunc, n)
            block.scalars = [(_field_name(names[i]), values[i]) for i in range(nefunc)]

        if ntens > 0:
            names = cur.texts(ntens, TEXT_WIDTH)
            values = cur.array(">f4", n * 6 * ntens).reshape(ntens, n, 6)
            block.tensors = [(_field_name(names[i]), _expand_3d_tensor(values[i])) for i in range(ntens)]

        self._read_block_tail(cur, block, nparts)
        return block

    def _read_1d(self, cur: _Cursor) -> _ElementBlock:
        n = cur.count("1D element count")
        nparts = cur.count("1D part count")
        nefunc = cur.count("1D element scalar count")
        ntors = cur.count("1D torsor count")
        has_skew = cur.i32() != 0

        logger.debug("%s: %d beams, %d parts", self.path, n, nparts)

        block = _ElementBlock(
            prefix="1DELEM",
            conn=cur.table(">i4", n, 2, "1D element table"),
            deleted=cur.array("u1", n),
        )
        block.part_ends, block.part_names = self._read_parts(cur, nparts)

        if nefunc > 0:
            names = cur.texts(nefunc, TEXT_WIDTH)
            values = cur.array(">f4", nefunc * n).reshape(nefunc, n)
            block.scalars = [(_field_name(names[i]), values[i]) for i in range(nefunc)]

        if ntors > 0:
            names = cur.texts(ntors, TEXT_WIDTH)
            values = cur.array(">f4", n * 9 * ntors).reshape(ntors, n, 9)
            for t in range(ntors):
                for j, suffix in enumerate(TORSOR_SUFFIXES):
                    block.scalars.append((_field_name(names[t]) + suffix, values[t, :, j]))

        if has_skew:
            cur.skip(4 * n)

        self._read_block_tail(cur, block, nparts)
        return block

    def _read_sph(self, cur: _Cursor) -> _ElementBlock:
        n = cur.count("SPH element count")
        nparts = cur.count("SPH part count")
        nefunc = cur.count("SPH scalar count")
        ntens = cur.count("SPH tensor count")

        logger.debug("%s: %d SPH particles, %d parts", self.path, n, nparts)

        block = _ElementBlock(
            prefix="SPHELEM",
            conn=cur.table(">i4", n, 1, "SPH element table"),
            deleted=cur.array("u1", n),
        )
        if nparts > 0:
            block.part_ends, block.part_names = self._read_parts(cur, nparts)

        if nefunc > 0:
            names = cur.texts(nefunc, TEXT_WIDTH)
            values = cur.array(">f4", nefunc * n).reshape(nefunc, n)
            block.scalars = [(_field_name(names[i]), values[i]) for i in range(nefunc)]

        if ntens > 0:
            names = cur.texts(ntens, TEXT_WIDTH)
            values = cur.array(">f4", n * ntens * 6).reshape(ntens, n, 6)
            block.tensors = [(_field_name(names[i]), _expand_3d_tensor(values[i])) for i in range(ntens)]

        self._read_block_tail(cur, block, nparts)
        return block

    def _read_block_tail(self, cur: _Cursor, block: _ElementBlock, nparts: int) -> None:
        """Masses, numbering and part hierarchy columns shared by 3D/1D/SPH blocks."""
        if self.flags[0] == 1:
            cur.skip(4 * block.size)
        if self.flags[1] == 1:
            block.labels = cur.array(">i4", block.size)
        if self.flags[4] != 0:
            cur.skip(3 * 4 * nparts)

    def _skip_hierarchy(self, cur: _Cursor) -> None:
        nsubsets = cur.count("subset count")
        for _ in range(nsubsets):
            cur.skip(NAME_WIDTH + 4)  # name, parent
            for what in ("child subset", "2D part", "3D part", "1D part"):
                cur.skip(4 * cur.count(f"{what} count"))

        nmaterials = cur.count("material count")
        nproperties = cur.count("property count")
        cur.skip(nmaterials * (NAME_WIDTH + 4))
        cur.skip(nproperties * (NAME_WIDTH + 4))

    def _skip_time_history(self, cur: _Cursor) -> None:
        counts = [cur.count(f"time-history {what} count") for what in ("node", "2D", "3D", "1D")]
        for n in counts:
            cur.skip(n * (4 + NAME_WIDTH))

    # ──────────────────────────────────────────────────────────────────────
    # Assembly
    # ──────────────────────────────────────────────────────────────────────

    def _classify_facets(self, conn: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """
        Split 4-slot facets into quads and triangles.

        Returns (topology codes, keep mask). A triangle keeps the first three
        distinct node slots in source order.
        """
        slots = conn.shape[1]
        same = conn[:, :, None] == conn[:, None, :]
        earlier = np.tri(slots, k=-1, dtype=bool)
        repeated = (same & earlier).any(axis=2)
        distinct = slots - repeated.sum(axis=1)

        bad = (distinct != 3) & (distinct != 4)
        if bad.any():
            i = int(np.flatnonzero(bad)[0])
            raise InvalidTopologyCode(
                f"2D element {i} has {int(distinct[i])} distinct nodes; only triangles and quads are supported",
                self.path,
            )

        codes = np.where(distinct == 4, int(Topology.QUAD), int(Topology.TRIANGLE)).astype(np.uint8)
        return codes, ~repeated

    def _assemble(self, time: float, title: str, nodes: Dict, blocks) -> MeshSnapshot:
        coords = nodes["coords"]
        nb_nodes = coords.shape[0]

        node_labels = nodes["labels"]
        if node_labels is None:
            node_labels = np.arange(1, nb_nodes + 1, dtype=np.int64)
        if np.unique(node_labels).size != nb_nodes:
            raise MalformedHeader("Node numbering table contains duplicate labels", self.path)

        present = [(topo, b) for topo, b in blocks if b is not None]
        total = sum(b.size for _, b in present)

        element_labels = []
        next_label = 1
        topologies = []
        connectivity = []
        part_ids = []
        erosion = []

        for topo, block in present:
            if block.size and ((block.conn < 0) | (block.conn >= nb_nodes)).any():
                bad = np.argwhere((block.conn < 0) | (block.conn >= nb_nodes))[0]
                raise DanglingReference(
                    f"{block.prefix} element {int(bad[0])} references node index {int(block.conn[tuple(bad)])} "
                    f"(node table has {nb_nodes} entries)",
                    self.path,
                )

            if topo is None:
                codes, keep = self._classify_facets(block.conn)
                flat = block.conn[keep]
            else:
                codes = np.full(block.size, int(topo), dtype=np.uint8)
                flat = block.conn.ravel()

            topologies.append(codes)
            connectivity.append(node_labels[flat])
            if block.labels is not None:
                element_labels.append(block.labels)
            else:
                element_labels.append(np.arange(next_label, next_label + block.size))
            next_label += block.size

            numbers = np.array([_part_number(t) for t in block.part_names] + [0], dtype=np.int32)
            owner = np.searchsorted(block.part_ends, np.arange(block.size), side="right")
            part_ids.append(numbers[np.minimum(owner, len(block.part_names))])
            erosion.append((block.deleted != 0).astype(np.int32))

        def concat(parts, dtype):
            return np.concatenate(parts).astype(dtype) if parts else np.empty(0, dtype=dtype)

        element_labels_arr = concat(element_labels, np.int64)

        point_fields: Dict[str, Field] = {}
        cell_fields: Dict[str, Field] = {}

        def add(target: Dict[str, Field], name: str, values: np.ndarray) -> None:
            if name in target:
                raise MalformedHeader(f"Duplicate result name '{name}'", self.path)
            target[name] = Field(name, values)

        add(point_fields, "NODE_ID", node_labels.astype(np.int32))
        for name, values in nodes["scalars"]:
            add(point_fields, name, values)
        for name, values in nodes["vectors"]:
            add(point_fields, name, values)

        add(cell_fields, "ELEMENT_ID", element_labels_arr.astype(np.int32))
        add(cell_fields, "PART_ID", concat(part_ids, np.int32))
        add(cell_fields, "EROSION_STATUS", concat(erosion, np.int32))

        start = 0
        for _, block in present:
            stop = start + block.size
            for name, values in block.scalars:
                padded = np.zeros(total, dtype=np.float32)
                padded[start:stop] = values
                add(cell_fields, f"{block.prefix}_{name}", padded)
            scalar_names = {name for name, _ in block.scalars}
            for name, values in block.tensors:
                padded = np.zeros((total, 9), dtype=np.float32)
                padded[start:stop] = values
                array_name = f"{block.prefix}_{name}"
                if name in scalar_names:
                    array_name += TENSOR_SUFFIX
                add(cell_fields, array_name, padded)
            start = stop

        try:
            return MeshSnapshot(
                node_labels=node_labels,
                coordinates=coords,
                element_labels=element_labels_arr,
                topologies=concat(topologies, np.uint8),
                connectivity=concat(connectivity, np.int64),
                point_fields=point_fields,
                cell_fields=cell_fields,
                time=time,
                title=title,
            )
        except ValueError as e:
            raise MalformedHeader(str(e), self.path) from e


def decode_animation(path: Union[str, Path]) -> MeshSnapshot:
    """Decode `path` into a MeshSnapshot; raises a DecodeError subclass on failure."""
    return AnimationDecoder(path).decode()


def list_fields(path: Union[str, Path]) -> List[Tuple[str, str]]:
    """
    Decode one file and return its result fields as (location, name) pairs,
    point fields first.
    """
    snapshot = decode_animation(path)
    found = [("point", name) for name in snapshot.point_fields]
    found += [("cell", name) for name in snapshot.cell_fields]
    return found
