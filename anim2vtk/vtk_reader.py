# -*- coding: utf-8 -*-

"""

Reference reader for legacy VTK UNSTRUCTURED_GRID files, ASCII and BINARY.

Used by `compare-vtk` and by the test-suite to check writer output. Binary
payloads are read by exact byte count (big-endian), so values that happen to
look like newlines or keywords are never mistaken for text.

"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterator, List, Union

import numpy as np

# legacy VTK type name -> big-endian numpy dtype
VTK_DTYPES: Dict[str, str] = {
    "bit": "u1",
    "unsigned_char": "u1",
    "char": "i1",
    "unsigned_short": ">u2",
    "short": ">i2",
    "unsigned_int": ">u4",
    "int": ">i4",
    "unsigned_long": ">u8",
    "long": ">i8",
    "vtktypeint64": ">i8",
    "float": ">f4",
    "double": ">f8",
}

_WHITESPACE = b" \t\r\n"


class VtkFormatError(ValueError):
    pass


@dataclass
class VtkDataset:
    title: str
    binary: bool
    points: np.ndarray = field(default_factory=lambda: np.empty((0, 3)))
    cells: np.ndarray = field(default_factory=lambda: np.empty(0, dtype=np.int64))
    cell_types: np.ndarray = field(default_factory=lambda: np.empty(0, dtype=np.int64))
    point_data: Dict[str, np.ndarray] = field(default_factory=dict)
    cell_data: Dict[str, np.ndarray] = field(default_factory=dict)
    field_data: Dict[str, np.ndarray] = field(default_factory=dict)
    data_types: Dict[str, str] = field(default_factory=dict)

    @property
    def num_points(self) -> int:
        return self.points.shape[0]

    @property
    def num_cells(self) -> int:
        return self.cell_types.size

    def iter_cells(self) -> Iterator[np.ndarray]:
        """Connectivity of each cell (positions into `points`)."""
        i = 0
        cells = self.cells
        while i < cells.size:
            n = int(cells[i])
            if n < 0:
                raise VtkFormatError(f"Negative cell size {n} at offset {i}")
            yield cells[i + 1:i + 1 + n]
            i += n + 1


class _Reader:

    def __init__(self, data: bytes):
        self.data = data
        self.pos = 0

    def raw_line(self) -> str:
        end = self.data.find(b"\n", self.pos)
        if end < 0:
            end = len(self.data)
        text = self.data[self.pos:end]
        self.pos = min(end + 1, len(self.data))
        return text.decode("ascii", errors="replace").rstrip("\r")

    def line(self) -> List[str]:
        """Next non-blank line split into tokens; [] at end of file."""
        while self.pos < len(self.data):
            tokens = self.raw_line().split()
            if tokens:
                return tokens
        return []

    def values(self, type_name: str, count: int, binary: bool) -> np.ndarray:
        dtype = VTK_DTYPES.get(type_name.lower())
        if dtype is None:
            raise VtkFormatError(f"Unsupported data type '{type_name}'")

        if binary:
            nbytes = count * np.dtype(dtype).itemsize
            if self.pos + nbytes > len(self.data):
                raise VtkFormatError(f"Binary block of {count} {type_name} values runs past end of file")
            out = np.frombuffer(self.data, dtype=dtype, count=count, offset=self.pos) if count else np.empty(0, dtype)
            self.pos += nbytes
            return out.astype(np.dtype(dtype).newbyteorder("="))

        tokens: List[str] = []
        while len(tokens) < count:
            more = self.line()
            if not more:
                raise VtkFormatError(f"Expected {count} {type_name} values, found {len(tokens)}")
            tokens.extend(more)
        if len(tokens) != count:
            raise VtkFormatError(f"Expected {count} {type_name} values, found {len(tokens)} on the same lines")

        kind = np.dtype(dtype).kind
        try:
            return np.array(tokens, dtype=np.float64 if kind == "f" else np.int64)
        except ValueError as e:
            raise VtkFormatError(f"Invalid {type_name} value: {e}") from e


def _int(token: str, what: str) -> int:
    try:
        value = int(token)
    except ValueError as e:
        raise VtkFormatError(f"Invalid {what} '{token}'") from e
    if value < 0:
        raise VtkFormatError(f"Negative {what} {value}")
    return value


def parse_vtk(data: bytes) -> VtkDataset:
    reader = _Reader(data)

    if not reader.raw_line().startswith("# vtk DataFile"):
        raise VtkFormatError("Missing '# vtk DataFile' header")

    title = reader.raw_line()
    encoding = reader.line()
    if not encoding or encoding[0].upper() not in ("ASCII", "BINARY"):
        raise VtkFormatError("Expected ASCII or BINARY on line 3")
    binary = encoding[0].upper() == "BINARY"

    dataset = reader.line()
    if len(dataset) < 2 or dataset[0].upper() != "DATASET" or dataset[1].upper() != "UNSTRUCTURED_GRID":
        raise VtkFormatError("Only DATASET UNSTRUCTURED_GRID is supported")

    out = VtkDataset(title=title, binary=binary)
    target = None
    target_count = 0

    while True:
        tokens = reader.line()
        if not tokens:
            break
        keyword = tokens[0].upper()

        if keyword == "FIELD":
            if len(tokens) < 3:
                raise VtkFormatError("FIELD needs a name and an array count")
            for _ in range(_int(tokens[2], "FIELD array count")):
                head = reader.line()
                if len(head) < 4:
                    raise VtkFormatError("FIELD array header needs name, components, tuples, type")
                ncomp = _int(head[1], "component count")
                ntuples = _int(head[2], "tuple count")
                values = reader.values(head[3], ncomp * ntuples, binary)
                out.field_data[head[0]] = values.reshape(ntuples, ncomp) if ncomp > 1 else values

        elif keyword == "POINTS":
            if len(tokens) < 3:
                raise VtkFormatError("POINTS needs a count and a type")
            n = _int(tokens[1], "point count")
            out.points = reader.values(tokens[2], 3 * n, binary).astype(np.float64).reshape(n, 3)

        elif keyword == "CELLS":
            if len(tokens) < 3:
                raise VtkFormatError("CELLS needs a count and a size")
            ncells = _int(tokens[1], "cell count")
            out.cells = reader.values("int", _int(tokens[2], "cell list size"), binary).astype(np.int64)
            if sum(1 for _ in out.iter_cells()) != ncells:
                raise VtkFormatError(f"CELLS declares {ncells} cells but the list holds a different number")

        elif keyword == "CELL_TYPES":
            if len(tokens) < 2:
                raise VtkFormatError("CELL_TYPES needs a count")
            out.cell_types = reader.values("int", _int(tokens[1], "cell type count"), binary).astype(np.int64)

        elif keyword in ("POINT_DATA", "CELL_DATA"):
            if len(tokens) < 2:
                raise VtkFormatError(f"{keyword} needs a count")
            target_count = _int(tokens[1], f"{keyword} count")
            target = out.point_data if keyword == "POINT_DATA" else out.cell_data

        elif keyword in ("SCALARS", "VECTORS", "NORMALS", "TENSORS"):
            if target is None:
                raise VtkFormatError(f"{keyword} outside POINT_DATA/CELL_DATA")
            if len(tokens) < 3:
                raise VtkFormatError(f"{keyword} needs a name and a type")
            name, type_name = tokens[1], tokens[2]

            if keyword == "SCALARS":
                ncomp = _int(tokens[3], "component count") if len(tokens) > 3 else 1
                table = reader.line()
                if not table or table[0].upper() != "LOOKUP_TABLE":
                    raise VtkFormatError(f"SCALARS {name}: missing LOOKUP_TABLE")
            else:
                ncomp = 9 if keyword == "TENSORS" else 3

            values = reader.values(type_name, target_count * ncomp, binary)
            target[name] = values.reshape(target_count, ncomp) if ncomp > 1 else values
            out.data_types[name] = type_name.lower()

        elif keyword == "LOOKUP_TABLE":
            # a colour table: name, size, then size RGBA floats
            if len(tokens) < 3:
                raise VtkFormatError("LOOKUP_TABLE needs a name and a size")
            reader.values("unsigned_char" if binary else "float", 4 * _int(tokens[2], "table size"), binary)

        else:
            raise VtkFormatError(f"Unsupported keyword '{tokens[0]}'")

    if out.cell_types.size != sum(1 for _ in out.iter_cells()):
        raise VtkFormatError("CELL_TYPES count does not match CELLS")

    return out


def read_vtk(path: Union[str, Path]) -> VtkDataset:
    """
    Read a legacy VTK file.

    Raises:
        OSError if the file cannot be read, VtkFormatError if it cannot be
        parsed.
    """
    return parse_vtk(Path(path).read_bytes())
