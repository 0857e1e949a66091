"""
Unit tests for anim2vtk package import.

These tests verify that:
1. The package can be imported without errors
2. The package exposes version metadata
3. The conversion entry points are available at package level

"""

# ──────────────────────────────────────────────────────────────
# Tests
# ──────────────────────────────────────────────────────────────

def test_import_and_version():
    """Ensure the package loads and __version__ attribute exists."""
    import anim2vtk
    assert hasattr(anim2vtk, "__version__")
    assert isinstance(anim2vtk.__version__, str)


def test_public_api():
    """The converter, batch runner and decoder are re-exported."""
    import anim2vtk
    for name in ("AnimConverter", "OutputFormat", "run_conversion", "decode_animation", "MeshSnapshot"):
        assert hasattr(anim2vtk, name)
