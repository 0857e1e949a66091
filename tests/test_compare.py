"""
Unit tests for the compare-vtk tool.

These tests verify that the comparison:
1. Reports zero difference for identical files
2. Sees ASCII and binary encodings of one mesh as identical
3. Locates the largest difference
4. Fails on structural mismatches and unreadable files

"""

import io

import numpy as np
import pytest

from anim2vtk.buffers import RecordBuffer
from anim2vtk.compare import ComparisonError, compare_arrays, compare_vtk_files, main
from anim2vtk.model import Field, MeshSnapshot
from anim2vtk.vtk_writer import write_vtk


def _write(path, snapshot, binary=False):
    with open(path, "wb") as fh, RecordBuffer(fh) as buf:
        write_vtk(snapshot, buf, binary=binary)
    return str(path)


def _snapshot(coords, point_fields=None):
    n = len(coords)
    return MeshSnapshot(
        node_labels=np.arange(1, n + 1),
        coordinates=coords,
        element_labels=[1],
        topologies=[1],
        connectivity=[1, n],
        point_fields=point_fields or {},
    )


COORDS = np.array([[0.0, 0.0, 0.0], [1.0, 0.5, 0.25], [2.0, 1.0, 0.5]])


# ──────────────────────────────────────────────────────────────
# Tests
# ──────────────────────────────────────────────────────────────

def test_identical_files(tmp_path):
    snap = _snapshot(COORDS)
    report = compare_vtk_files(_write(tmp_path / "a.vtk", snap), _write(tmp_path / "b.vtk", snap))
    assert report.max_abs_diff == 0.0
    assert "identical" in report.verdict


def test_ascii_vs_binary(tmp_path):
    snap = _snapshot(COORDS / 3.0, {"T": Field("T", [0.1, 0.2, 0.3])})
    report = compare_vtk_files(
        _write(tmp_path / "a.vtk", snap),
        _write(tmp_path / "b.vtk", snap, binary=True),
    )
    assert report.max_abs_diff < 1e-6
    assert report.diff("Point array 'T'").max_abs_diff < 1e-6


def test_difference_located(tmp_path):
    moved = COORDS.copy()
    moved[2, 1] += 0.5
    report = compare_vtk_files(
        _write(tmp_path / "a.vtk", _snapshot(COORDS)),
        _write(tmp_path / "b.vtk", _snapshot(moved)),
    )
    diff = report.diff("Points (coordinates)")
    assert diff.max_abs_diff == pytest.approx(0.5)
    assert diff.index == 7
    assert report.verdict == "Files have noticeable differences"


def test_missing_array_warns(tmp_path):
    report = compare_vtk_files(
        _write(tmp_path / "a.vtk", _snapshot(COORDS, {"T": Field("T", [1.0, 2.0, 3.0])})),
        _write(tmp_path / "b.vtk", _snapshot(COORDS)),
    )
    assert report.warnings == ["Point array 'T' not found in file 2"]


def test_different_point_counts(tmp_path):
    with pytest.raises(ComparisonError, match="number of points"):
        compare_vtk_files(
            _write(tmp_path / "a.vtk", _snapshot(COORDS)),
            _write(tmp_path / "b.vtk", _snapshot(COORDS[:2])),
        )


def test_unreadable_file(tmp_path):
    bad = tmp_path / "bad.vtk"
    bad.write_text("not a vtk file\n")
    with pytest.raises(ComparisonError, match="parse"):
        compare_vtk_files(str(bad), str(bad))
    with pytest.raises(ComparisonError, match="open"):
        compare_vtk_files(str(tmp_path / "missing.vtk"), str(bad))


def test_compare_arrays_shape_mismatch():
    assert compare_arrays(np.zeros(3), np.zeros(4), "x").max_abs_diff == float("inf")


def test_main_exit_codes(tmp_path, capsys):
    snap = _snapshot(COORDS)
    a = _write(tmp_path / "a.vtk", snap)
    b = _write(tmp_path / "b.vtk", snap, binary=True)

    assert main([a, b]) == 0
    assert "Comparison completed successfully." in capsys.readouterr().out
    assert main([a, str(tmp_path / "missing.vtk")]) == 1
