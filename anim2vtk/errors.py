# -*- coding: utf-8 -*-

"""

Error taxonomy for anim2vtk.

Decoding failures derive from DecodeError, output failures from WriteError.
Both carry the path of the file being processed so a batch run can report
which input went wrong without a traceback.

"""

from __future__ import annotations

from typing import Optional


class ConversionError(Exception):
    """Base class for every failure raised while converting one file."""

    kind = "conversion error"

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.path = path

    def __str__(self) -> str:
        if self.path:
            return f"{self.path}: {self.message}"
        return self.message


# ──────────────────────────────────────────────────────────────────────────────
# Decoding
# ──────────────────────────────────────────────────────────────────────────────

class DecodeError(ConversionError):
    kind = "decode error"


class TruncatedFile(DecodeError):
    kind = "truncated file"


class UnsupportedVersion(DecodeError):
    kind = "unsupported version"


class MalformedHeader(DecodeError):
    kind = "malformed header"


class InvalidTopologyCode(DecodeError):
    kind = "invalid topology"


class DanglingReference(DecodeError):
    kind = "dangling reference"


# ──────────────────────────────────────────────────────────────────────────────
# Writing
# ──────────────────────────────────────────────────────────────────────────────

class WriteError(ConversionError):
    kind = "write error"


class OutputIOError(WriteError):
    kind = "I/O failure"


class UnsupportedTopology(WriteError):
    kind = "unsupported topology"
