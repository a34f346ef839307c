from __future__ import annotations

import copy
from pathlib import Path
from typing import Any

from rich.console import Console
from rich.panel import Panel

from pipefit.cache import LRUCache
from pipefit.io.stl import encode_binary_stl
from pipefit.kernel import KernelFailure, KernelUnavailable, MeshKernel, generate_mesh
from pipefit.mesh import IndexedMesh
from pipefit.params import AdapterConfig, Point3, default_params, end_markers, sanitize_params


class NothingToExport(RuntimeError):
    """Raised when exporting before any mesh has been generated."""


class AdapterSession:
    """Holds the working parameters and the last successfully generated adapter.

    ``params`` is the mutable working record an interactive front end edits.
    Each :meth:`regenerate` call sanitizes a snapshot of it; the canonical
    config, mesh and markers are only replaced once the kernel succeeds.
    """

    def __init__(
        self,
        kernel: MeshKernel | None,
        console: Console | None = None,
        params: dict[str, Any] | None = None,
        cache_size: int = 16,
        stl_header: bytes | str = b"",
    ) -> None:
        self._cache: LRUCache[AdapterConfig, IndexedMesh] = LRUCache(max_size=cache_size)
        self._kernel = kernel
        self.console = console
        self.params: dict[str, Any] = default_params() if params is None else params
        self.stl_header = stl_header
        self.config: AdapterConfig | None = None
        self.mesh: IndexedMesh | None = None
        self.markers: tuple[Point3, Point3] | None = None
        self.last_error: KernelFailure | None = None

    @property
    def kernel(self) -> MeshKernel | None:
        return self._kernel

    @kernel.setter
    def kernel(self, kernel: MeshKernel | None) -> None:
        # Cached meshes belong to the previous kernel.
        if kernel is not self._kernel:
            self._cache.clear()
        self._kernel = kernel

    def regenerate(self) -> bool:
        """Rebuild the adapter from ``params``; return False if the kernel failed."""

        config = sanitize_params(copy.deepcopy(self.params))
        mesh = self._cache.get(config)
        if mesh is None:
            try:
                mesh = generate_mesh(self.kernel, config)
            except KernelFailure as exc:
                self.last_error = exc
                self._notify(exc)
                return False
            self._cache.set(config, mesh)

        self.config = config
        self.mesh = mesh
        self.markers = end_markers(config)
        self.last_error = None
        return True

    def export_stl(self, path: Path | None = None) -> bytes:
        """Serialize the current mesh, writing it to ``path`` when given."""

        if self.mesh is None:
            raise NothingToExport("No adapter mesh has been generated yet.")
        data = encode_binary_stl(self.mesh, header=self.stl_header)
        if path is not None:
            path = Path(path)
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
        return data

    def clear_cache(self) -> None:
        self._cache.clear()

    def _notify(self, exc: KernelFailure) -> None:
        if self.console is None:
            return
        title = "Mesh kernel unavailable" if isinstance(exc, KernelUnavailable) else "Regeneration failed"
        kept = "keeping previous adapter" if self.mesh is not None else "nothing generated yet"
        self.console.print(Panel.fit(f"{exc}\n[dim]{kept}[/dim]", title=title, style="red"))
