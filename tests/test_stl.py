from __future__ import annotations

import struct
import warnings

import numpy as np
import pytest
import pyvista as pv

from pipefit.io.stl import encode_binary_stl, facet_normals, write_stl
from pipefit.kernel import generate_mesh
from pipefit.mesh import IndexedMesh
from pipefit.params import default_params, sanitize_params
from tests.helpers import is_watertight


def _unpack_record(data: bytes, index: int) -> tuple[tuple[float, ...], int]:
    offset = 84 + 50 * index
    floats = struct.unpack_from("<12f", data, offset)
    (attribute,) = struct.unpack_from("<H", data, offset + 48)
    return floats, attribute


def test_single_triangle_layout(single_triangle: IndexedMesh) -> None:
    data = encode_binary_stl(single_triangle)
    assert len(data) == 134
    assert data[:80] == b"\0" * 80
    assert struct.unpack_from("<I", data, 80) == (1,)

    floats, attribute = _unpack_record(data, 0)
    assert floats[:3] == pytest.approx((0.0, 0.0, 1.0))
    assert floats[3:] == (0.0, 0.0, 0.0, 1.0, 0.0, 0.0, 0.0, 1.0, 0.0)
    assert attribute == 0


def test_normal_operand_order() -> None:
    p0, p1, p2 = np.array([0.0, 0.0, 0.0]), np.array([1.0, 0.0, 0.0]), np.array([0.0, 1.0, 0.0])
    expected = np.cross(p2 - p1, p0 - p1)
    expected /= np.linalg.norm(expected)
    mesh = IndexedMesh(vertices=np.array([p0, p1, p2]), indices=np.array([0, 1, 2]))
    np.testing.assert_allclose(facet_normals(mesh)[0], expected)


def test_reversed_winding_flips_normal_but_keeps_vertex_order() -> None:
    verts = np.array([[0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [0.0, 1.0, 0.0]])
    mesh = IndexedMesh(vertices=verts, indices=np.array([0, 2, 1]))
    floats, _ = _unpack_record(encode_binary_stl(mesh), 0)
    assert floats[:3] == pytest.approx((0.0, 0.0, -1.0))
    assert floats[3:] == (0.0, 0.0, 0.0, 0.0, 1.0, 0.0, 1.0, 0.0, 0.0)


@pytest.mark.parametrize("n_triangles", [0, 1, 7, 250])
def test_size_law(n_triangles: int) -> None:
    rng = np.random.default_rng(n_triangles)
    vertices = rng.normal(size=(n_triangles + 2, 3))
    indices = np.column_stack(
        [np.zeros(n_triangles, dtype=int), np.arange(1, n_triangles + 1), np.arange(2, n_triangles + 2)]
    )
    data = encode_binary_stl(IndexedMesh(vertices=vertices, indices=indices))
    assert len(data) == 84 + 50 * n_triangles
    assert struct.unpack_from("<I", data, 80) == (n_triangles,)


def test_non_indexed_mesh_uses_vertex_triples() -> None:
    vertices = np.array([[0, 0, 0], [1, 0, 0], [0, 1, 0], [0, 0, 5], [2, 0, 5], [0, 2, 5]], dtype=float)
    mesh = IndexedMesh(vertices=vertices)
    data = encode_binary_stl(mesh)
    assert len(data) == 84 + 100
    assert struct.unpack_from("<I", data, 80) == (2,)
    floats, _ = _unpack_record(data, 1)
    assert floats[3:] == (0.0, 0.0, 5.0, 2.0, 0.0, 5.0, 0.0, 2.0, 5.0)


def test_degenerate_triangle_gets_zero_normal() -> None:
    mesh = IndexedMesh(vertices=np.array([[0.0, 0.0, 0.0], [1.0, 1.0, 1.0], [2.0, 2.0, 2.0]]), indices=[0, 1, 2])
    with pytest.warns(RuntimeWarning, match="degenerate"):
        data = encode_binary_stl(mesh)
    floats, _ = _unpack_record(data, 0)
    assert floats[:3] == (0.0, 0.0, 0.0)
    assert len(data) == 134


def test_clean_mesh_does_not_warn(single_triangle: IndexedMesh) -> None:
    with warnings.catch_warnings():
        warnings.simplefilter("error")
        encode_binary_stl(single_triangle)


def test_vertices_are_written_as_float32() -> None:
    value = 0.1
    mesh = IndexedMesh(vertices=[[value, 0, 0], [1, 0, 0], [0, 1, 0]], indices=[0, 1, 2])
    floats, _ = _unpack_record(encode_binary_stl(mesh), 0)
    assert floats[3] == float(np.float32(value))


def test_header_is_padded() -> None:
    mesh = IndexedMesh(vertices=np.zeros((0, 3)), indices=np.zeros((0, 3), dtype=int))
    data = encode_binary_stl(mesh, header="pipefit adapter")
    assert data[:80] == b"pipefit adapter".ljust(80, b"\0")
    assert len(data) == 84


@pytest.mark.parametrize("header", [b"x" * 81, b"solid adapter", "SOLID"])
def test_header_rejects_invalid(single_triangle: IndexedMesh, header) -> None:
    with pytest.raises(ValueError):
        encode_binary_stl(single_triangle, header=header)


def test_output_is_deterministic(single_triangle: IndexedMesh) -> None:
    assert encode_binary_stl(single_triangle) == encode_binary_stl(single_triangle)


@pytest.mark.stl
def test_written_file_reads_back_in_pyvista(tmp_path, tube_kernel) -> None:
    config = sanitize_params(default_params())
    mesh = generate_mesh(tube_kernel, config)
    path = tmp_path / "adapter.stl"
    size = write_stl(mesh, path)

    assert size == path.stat().st_size == 84 + 50 * mesh.n_triangles
    loaded = pv.read(str(path))
    assert loaded.n_cells == mesh.n_triangles
    watertight, open_edges = is_watertight(loaded.clean())
    assert watertight, f"{open_edges} open edges"
