# -*- coding: utf-8 -*-

"""

Per-file output buffer.

Writers format records into a `RecordBuffer` instead of issuing one small
write per node or element. The buffer is bound to a single output stream,
flushes whenever it holds `capacity` bytes, and is cleared on every exit
from its `with` block so nothing pending survives into another file.

"""

from __future__ import annotations

from typing import BinaryIO, List

import numpy as np

DEFAULT_CAPACITY = 1 << 20


class RecordBuffer:

    def __init__(self, stream: BinaryIO, capacity: int = DEFAULT_CAPACITY):
        if capacity <= 0:
            raise ValueError("Buffer capacity must be positive")
        self.stream = stream
        self.capacity = capacity
        self._chunks: List[bytes] = []
        self._pending = 0
        self.bytes_written = 0

    def __enter__(self) -> "RecordBuffer":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        try:
            if exc_type is None:
                self.flush()
        finally:
            self.reset()

    def __len__(self) -> int:
        return self._pending

    def write(self, data: bytes) -> None:
        if not data:
            return
        self._chunks.append(data)
        self._pending += len(data)
        if self._pending >= self.capacity:
            self.flush()

    def line(self, text: str = "") -> None:
        self.write(text.encode("ascii") + b"\n")

    def lines(self, rows: List[str]) -> None:
        if rows:
            self.write(("\n".join(rows) + "\n").encode("ascii"))

    def array(self, values: np.ndarray, dtype: str) -> None:
        """Append `values` as raw bytes of `dtype` (e.g. '>f4')."""
        self.write(np.ascontiguousarray(values, dtype=dtype).tobytes())

    def flush(self) -> None:
        if not self._chunks:
            return
        data = b"".join(self._chunks)
        self.reset()
        self.stream.write(data)
        self.bytes_written += len(data)

    def reset(self) -> None:
        self._chunks.clear()
        self._pending = 0
