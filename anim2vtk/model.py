# -*- coding: utf-8 -*-

"""

In-memory mesh model shared by the decoder and every writer.

Nodes and elements are stored column-wise in numpy arrays so the decoder can
fill them straight from fixed-width records and the writers can serialize
whole blocks at once. Element connectivity always refers to node *labels*;
writers that need positions go through `MeshSnapshot.label_index`.

"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from functools import cached_property
from types import MappingProxyType
from typing import Dict, Iterable, Iterator, Mapping, Optional, Sequence, Tuple

import numpy as np


class Topology(IntEnum):
    BEAM = 1
    TRIANGLE = 2
    QUAD = 3
    BRICK = 4
    SPH = 5

    @property
    def arity(self) -> int:
        return ARITY[self]


ARITY: Dict[Topology, int] = {
    Topology.BEAM: 2,
    Topology.TRIANGLE: 3,
    Topology.QUAD: 4,
    Topology.BRICK: 8,
    Topology.SPH: 1,
}

# arity lookup indexed by topology code (index 0 unused)
_ARITY_BY_CODE = np.zeros(max(Topology) + 1, dtype=np.int64)
for _topo, _n in ARITY.items():
    _ARITY_BY_CODE[_topo] = _n


def _readonly(arr: np.ndarray) -> np.ndarray:
    arr.flags.writeable = False
    return arr


@dataclass(frozen=True)
class Node:
    label: int
    x: float
    y: float
    z: float


@dataclass(frozen=True)
class Element:
    label: int
    topology: Topology
    nodes: Tuple[int, ...]


@dataclass(frozen=True, eq=False)
class Field:
    """
    Named result array, one row per entity.

    Values are `(n,)` for scalars, `(n, 3)` for vectors and `(n, 9)` for
    row-major 3x3 tensors. Integer arrays stay integer (ids, flags); anything
    else is stored as float32.
    """

    name: str
    values: np.ndarray

    def __post_init__(self):
        arr = np.asarray(self.values)
        if arr.ndim not in (1, 2) or (arr.ndim == 2 and arr.shape[1] not in (3, 9)):
            raise ValueError(f"Field '{self.name}' must have shape (n,), (n, 3) or (n, 9); got {arr.shape}")
        if np.issubdtype(arr.dtype, np.integer):
            if arr.ndim != 1:
                raise ValueError(f"Integer field '{self.name}' must be scalar")
            arr = np.array(arr, dtype=np.int32)
        else:
            arr = np.array(arr, dtype=np.float32)
        object.__setattr__(self, "values", _readonly(arr))

    def __len__(self) -> int:
        return self.values.shape[0]

    @property
    def components(self) -> int:
        return 1 if self.values.ndim == 1 else self.values.shape[1]

    @property
    def kind(self) -> str:
        return {1: "scalar", 3: "vector", 9: "tensor"}[self.components]

    @property
    def is_integer(self) -> bool:
        return np.issubdtype(self.values.dtype, np.integer)


class LabelIndex:
    """
    Label -> position lookup over a node (or element) label array.

    Near-contiguous labels get a dense lookup table; sparse labels fall back
    to a dict. Both raise KeyError for a label that is not present.
    """

    # dense table allowed up to this many slots per label (plus a fixed slack)
    DENSE_FACTOR = 4
    DENSE_SLACK = 1024

    def __init__(self, labels: Iterable[int]):
        labels = np.asarray(labels, dtype=np.int64).ravel()
        self._size = labels.size
        self._table: Optional[np.ndarray] = None
        self._mapping: Optional[Dict[int, int]] = None
        self._base = 0

        if labels.size == 0:
            self._mapping = {}
            return

        lo = int(labels.min())
        span = int(labels.max()) - lo + 1

        if span <= self.DENSE_FACTOR * labels.size + self.DENSE_SLACK:
            table = np.full(span, -1, dtype=np.int64)
            table[labels - lo] = np.arange(labels.size, dtype=np.int64)
            self._table = table
            self._base = lo
        else:
            self._mapping = dict(zip(labels.tolist(), range(labels.size)))

    def __len__(self) -> int:
        return self._size

    @property
    def is_dense(self) -> bool:
        return self._table is not None

    def __contains__(self, label: int) -> bool:
        try:
            self.position(label)
        except KeyError:
            return False
        return True

    def position(self, label: int) -> int:
        return int(self.positions(np.asarray([label]))[0])

    def positions(self, labels: np.ndarray) -> np.ndarray:
        labels = np.asarray(labels, dtype=np.int64)

        if self._table is None:
            mapping = self._mapping
            return np.fromiter((mapping[lbl] for lbl in labels.tolist()), dtype=np.int64, count=labels.size)

        idx = labels - self._base
        inside = (idx >= 0) & (idx < self._table.size)
        if not inside.all():
            raise KeyError(int(labels[~inside][0]))

        pos = self._table[idx]
        if (pos < 0).any():
            raise KeyError(int(labels[pos < 0][0]))
        return pos


@dataclass(frozen=True, eq=False)
class MeshSnapshot:
    """
    One decoded animation state: nodes, elements and result fields.

    Attributes:
        node_labels: (N,) external node ids, unique.
        coordinates: (N, 3) float32 node coordinates, same order as labels.
        element_labels: (M,) external element ids.
        topologies: (M,) `Topology` codes.
        connectivity: flat node labels of all elements, in element order.
        point_fields / cell_fields: name -> Field, in insertion order.
        time: simulation time of the state.
        title: run title from the file header.

    All arrays are read-only after construction; `offsets` is derived from
    the topologies (`offsets[i]:offsets[i+1]` slices element i).
    """

    node_labels: np.ndarray
    coordinates: np.ndarray
    element_labels: np.ndarray
    topologies: np.ndarray
    connectivity: np.ndarray
    point_fields: Mapping[str, Field] = field(default_factory=dict)
    cell_fields: Mapping[str, Field] = field(default_factory=dict)
    time: float = 0.0
    title: str = ""

    def __post_init__(self):
        node_labels = np.array(self.node_labels, dtype=np.int64).reshape(-1)
        coords = np.array(self.coordinates, dtype=np.float32).reshape(-1, 3)
        element_labels = np.array(self.element_labels, dtype=np.int64).reshape(-1)
        topologies = np.array(self.topologies, dtype=np.uint8).reshape(-1)
        connectivity = np.array(self.connectivity, dtype=np.int64).reshape(-1)

        if coords.shape[0] != node_labels.size:
            raise ValueError(f"{node_labels.size} node labels but {coords.shape[0]} coordinate triples")
        if np.unique(node_labels).size != node_labels.size:
            raise ValueError("Duplicate node labels")
        if topologies.size != element_labels.size:
            raise ValueError(f"{element_labels.size} element labels but {topologies.size} topologies")

        valid = np.isin(topologies, [int(t) for t in Topology])
        if not valid.all():
            raise ValueError(f"Unknown topology code {int(topologies[~valid][0])}")

        offsets = np.zeros(topologies.size + 1, dtype=np.int64)
        np.cumsum(_ARITY_BY_CODE[topologies], out=offsets[1:])
        if offsets[-1] != connectivity.size:
            raise ValueError(f"Connectivity holds {connectivity.size} entries, topologies need {offsets[-1]}")

        missing = ~np.isin(connectivity, node_labels)
        if missing.any():
            raise ValueError(f"Element connectivity references unknown node label {int(connectivity[missing][0])}")

        for kind, fields, count in (
            ("point", self.point_fields, node_labels.size),
            ("cell", self.cell_fields, element_labels.size),
        ):
            for name, fld in fields.items():
                if len(fld) != count:
                    raise ValueError(f"{kind} field '{name}' has {len(fld)} rows, expected {count}")

        object.__setattr__(self, "node_labels", _readonly(node_labels))
        object.__setattr__(self, "coordinates", _readonly(coords))
        object.__setattr__(self, "element_labels", _readonly(element_labels))
        object.__setattr__(self, "topologies", _readonly(topologies))
        object.__setattr__(self, "connectivity", _readonly(connectivity))
        object.__setattr__(self, "offsets", _readonly(offsets))
        object.__setattr__(self, "point_fields", MappingProxyType(dict(self.point_fields)))
        object.__setattr__(self, "cell_fields", MappingProxyType(dict(self.cell_fields)))

    @classmethod
    def from_records(
        cls,
        nodes: Sequence[Node],
        elements: Sequence[Element],
        point_fields: Optional[Mapping[str, Field]] = None,
        cell_fields: Optional[Mapping[str, Field]] = None,
        time: float = 0.0,
        title: str = "",
    ) -> "MeshSnapshot":
        """Build a snapshot from per-entity records."""
        for e in elements:
            if len(e.nodes) != Topology(e.topology).arity:
                raise ValueError(
                    f"Element {e.label}: {Topology(e.topology).name} needs {Topology(e.topology).arity} nodes, got {len(e.nodes)}"
                )

        return cls(
            node_labels=[n.label for n in nodes],
            coordinates=np.array([(n.x, n.y, n.z) for n in nodes], dtype=np.float32).reshape(-1, 3),
            element_labels=[e.label for e in elements],
            topologies=[int(e.topology) for e in elements],
            connectivity=[lbl for e in elements for lbl in e.nodes],
            point_fields=point_fields or {},
            cell_fields=cell_fields or {},
            time=time,
            title=title,
        )

    @property
    def node_count(self) -> int:
        return self.node_labels.size

    @property
    def element_count(self) -> int:
        return self.element_labels.size

    @cached_property
    def label_index(self) -> LabelIndex:
        return LabelIndex(self.node_labels)

    def cell_connectivity(self, i: int) -> np.ndarray:
        return self.connectivity[self.offsets[i]:self.offsets[i + 1]]

    def nodes(self) -> Iterator[Node]:
        for label, (x, y, z) in zip(self.node_labels.tolist(), self.coordinates.tolist()):
            yield Node(label, x, y, z)

    def elements(self) -> Iterator[Element]:
        conn = self.connectivity.tolist()
        offsets = self.offsets.tolist()
        for i, (label, code) in enumerate(zip(self.element_labels.tolist(), self.topologies.tolist())):
            yield Element(label, Topology(code), tuple(conn[offsets[i]:offsets[i + 1]]))

    def topology_counts(self) -> Dict[Topology, int]:
        codes, counts = np.unique(self.topologies, return_counts=True)
        return {Topology(int(c)): int(n) for c, n in zip(codes, counts)}
