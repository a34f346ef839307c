from __future__ import annotations

from pathlib import Path
import struct
import warnings

import numpy as np

from pipefit.mesh import IndexedMesh

HEADER_SIZE = 80
RECORD_SIZE = 50

_RECORD_DTYPE = np.dtype(
    [
        ("normal", "<f4", (3,)),
        ("v0", "<f4", (3,)),
        ("v1", "<f4", (3,)),
        ("v2", "<f4", (3,)),
        ("attribute", "<u2"),
    ]
)


def facet_normals(mesh: IndexedMesh) -> np.ndarray:
    """Unit normals as ``normalize(cross(p2 - p1, p0 - p1))`` per triangle.

    Triangles with collinear or coincident corners get a zero normal.
    """

    if mesh.n_triangles == 0:
        return np.zeros((0, 3), dtype=float)
    tris = mesh.triangles().astype(np.float64)
    p0 = tris[:, 0]
    p1 = tris[:, 1]
    p2 = tris[:, 2]
    normals = np.cross(p2 - p1, p0 - p1)
    lengths = np.linalg.norm(normals, axis=1)
    with np.errstate(invalid="ignore", divide="ignore"):
        normals = np.divide(
            normals,
            lengths[:, np.newaxis],
            out=np.zeros_like(normals),
            where=lengths[:, np.newaxis] > 0,
        )
    normals[~np.isfinite(normals)] = 0.0
    return normals


def _pad_header(header: bytes | str) -> bytes:
    raw = header.encode("ascii") if isinstance(header, str) else bytes(header)
    if len(raw) > HEADER_SIZE:
        raise ValueError(f"STL header is {len(raw)} bytes; the limit is {HEADER_SIZE}.")
    if raw[:5].lower() == b"solid":
        raise ValueError("Binary STL header must not start with 'solid'.")
    return raw.ljust(HEADER_SIZE, b"\0")


def encode_binary_stl(mesh: IndexedMesh, header: bytes | str = b"") -> bytes:
    """Encode ``mesh`` as a little-endian binary STL of ``84 + 50 * T`` bytes."""

    head = _pad_header(header)
    tri_count = mesh.n_triangles
    normals = facet_normals(mesh)

    degenerate = int(np.count_nonzero(~np.any(normals != 0.0, axis=1)))
    if degenerate:
        warnings.warn(
            f"{degenerate} degenerate triangle(s) exported with a zero normal.",
            RuntimeWarning,
            stacklevel=2,
        )

    records = np.zeros(tri_count, dtype=_RECORD_DTYPE)
    if tri_count:
        tris = mesh.triangles()
        records["normal"] = normals
        records["v0"] = tris[:, 0]
        records["v1"] = tris[:, 1]
        records["v2"] = tris[:, 2]

    buffer = bytearray(HEADER_SIZE + 4 + RECORD_SIZE * tri_count)
    buffer[:HEADER_SIZE] = head
    struct.pack_into("<I", buffer, HEADER_SIZE, tri_count)
    buffer[HEADER_SIZE + 4 :] = records.tobytes()
    return bytes(buffer)


def write_stl(mesh: IndexedMesh, path: Path, header: bytes | str = b"") -> int:
    """Write ``mesh`` to ``path`` as binary STL and return the byte count."""

    path = Path(path)
    data = encode_binary_stl(mesh, header=header)
    path.write_bytes(data)
    return len(data)
