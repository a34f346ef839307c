from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

import numpy as np


class MeshError(ValueError):
    """Raised when vertex/index buffers do not describe a triangle mesh."""


@dataclass
class MeshAnalysis:
    n_vertices: int
    n_triangles: int
    degenerate_triangles: int
    invalid_vertices: int

    @property
    def has_degenerate_triangles(self) -> bool:
        return self.degenerate_triangles > 0

    @property
    def has_invalid_vertices(self) -> bool:
        return self.invalid_vertices > 0

    def issues(self) -> list[str]:
        issues: list[str] = []
        if self.has_invalid_vertices:
            issues.append(f"{self.invalid_vertices} invalid vertices (NaN/inf)")
        if self.has_degenerate_triangles:
            issues.append(f"{self.degenerate_triangles} degenerate triangles")
        return issues


@dataclass(eq=False)
class IndexedMesh:
    """Triangle mesh as float32 positions plus an optional index buffer.

    ``indices`` is an ``(T, 3)`` array of vertex indices. When it is ``None``
    the vertices are read three at a time, one triangle per triple.
    """

    vertices: np.ndarray
    indices: np.ndarray | None = None

    def __post_init__(self) -> None:
        verts = np.asarray(self.vertices, dtype=np.float32)
        if verts.size % 3 != 0:
            raise MeshError(f"Vertex buffer length {verts.size} is not a multiple of 3.")
        self.vertices = verts.reshape(-1, 3).copy()

        if self.indices is None:
            if self.vertices.shape[0] % 3 != 0:
                raise MeshError(
                    f"Non-indexed mesh needs a multiple of 3 vertices, got {self.vertices.shape[0]}."
                )
            return

        raw = np.asarray(self.indices)
        if raw.size and raw.dtype.kind not in "iu":
            if raw.dtype.kind != "f" or not np.all(np.isfinite(raw)) or not np.all(raw == np.floor(raw)):
                raise MeshError("Index buffer must contain whole numbers.")
        flat = raw.astype(np.int64).reshape(-1)
        if flat.size % 3 != 0:
            raise MeshError(f"Index buffer length {flat.size} is not a multiple of 3.")
        if flat.size and (flat.min() < 0 or flat.max() >= self.vertices.shape[0]):
            raise MeshError(f"Index out of range for {self.vertices.shape[0]} vertices.")
        self.indices = flat.reshape(-1, 3)

    @classmethod
    def from_buffers(cls, vertices: Sequence[float], indices: Sequence[int] | None = None) -> "IndexedMesh":
        """Build a mesh from the flat buffers a mesh kernel returns."""

        return cls(vertices=np.asarray(vertices, dtype=np.float32), indices=None if indices is None else np.asarray(indices))

    @property
    def is_indexed(self) -> bool:
        return self.indices is not None

    @property
    def n_vertices(self) -> int:
        return int(self.vertices.shape[0])

    @property
    def n_triangles(self) -> int:
        if self.indices is None:
            return self.n_vertices // 3
        return int(self.indices.shape[0])

    @property
    def bounds(self) -> tuple[float, float, float, float, float, float]:
        if self.n_vertices == 0:
            return (0.0, 0.0, 0.0, 0.0, 0.0, 0.0)
        mins = self.vertices.min(axis=0)
        maxs = self.vertices.max(axis=0)
        return (float(mins[0]), float(maxs[0]), float(mins[1]), float(maxs[1]), float(mins[2]), float(maxs[2]))

    def triangle_indices(self) -> np.ndarray:
        """Return the ``(T, 3)`` vertex indices of every triangle, in order."""

        if self.indices is not None:
            return self.indices
        return np.arange(self.n_vertices, dtype=np.int64).reshape(-1, 3)

    def triangles(self) -> np.ndarray:
        """Return a ``(T, 3, 3)`` float32 array of resolved corner positions."""

        return self.vertices[self.triangle_indices()]


def analyze_mesh(mesh: IndexedMesh, area_epsilon: float = 1e-12) -> MeshAnalysis:
    invalid_vertices = int(np.count_nonzero(~np.all(np.isfinite(mesh.vertices), axis=1)))

    degenerate = 0
    if mesh.n_triangles > 0:
        tris = mesh.triangles().astype(np.float64)
        cross = np.cross(tris[:, 1] - tris[:, 0], tris[:, 2] - tris[:, 0])
        areas = np.linalg.norm(cross, axis=1) * 0.5
        degenerate = int(np.count_nonzero(~(areas > area_epsilon)))

    return MeshAnalysis(
        n_vertices=mesh.n_vertices,
        n_triangles=mesh.n_triangles,
        degenerate_triangles=degenerate,
        invalid_vertices=invalid_vertices,
    )
