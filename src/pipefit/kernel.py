"""Boundary to the external adapter mesh kernel.

A kernel is any callable that takes the adapter record (see
:meth:`pipefit.params.AdapterConfig.to_record`) and returns flat ``vertices``
and ``indices`` buffers, either as a mapping or as attributes. Kernels are
only ever invoked through :func:`generate_mesh`, which turns every failure
into :class:`KernelUnavailable` or :class:`KernelError`.
"""

from __future__ import annotations

import importlib
import importlib.util
import json
import subprocess
import sys
from pathlib import Path
from types import ModuleType
from typing import Any, Mapping, Protocol, Sequence

from pipefit.mesh import IndexedMesh
from pipefit.params import AdapterConfig


class KernelFailure(RuntimeError):
    """Base error for mesh kernel failures."""


class KernelUnavailable(KernelFailure):
    """Raised when no usable kernel is configured or it cannot be loaded."""


class KernelError(KernelFailure):
    """Raised when the kernel fails for a given configuration."""


class MeshKernel(Protocol):
    def __call__(self, record: dict[str, Any]) -> Any: ...


def encode_params(config: AdapterConfig) -> str:
    """Serialize a canonical config into the JSON record kernels consume."""

    return json.dumps(config.to_record())


def _read_buffers(result: Any) -> tuple[Any, Any]:
    if isinstance(result, Mapping):
        if "vertices" not in result:
            raise KernelError("Kernel result has no 'vertices' buffer.")
        return result["vertices"], result.get("indices")
    if not hasattr(result, "vertices"):
        raise KernelError(f"Kernel returned {type(result).__name__}, expected vertices/indices buffers.")
    return result.vertices, getattr(result, "indices", None)


def generate_mesh(kernel: MeshKernel | None, config: AdapterConfig) -> IndexedMesh:
    """Run ``kernel`` for ``config`` and validate its output as an :class:`IndexedMesh`."""

    if kernel is None:
        raise KernelUnavailable("No mesh kernel configured.")

    try:
        result = kernel(config.to_record())
    except KernelFailure:
        raise
    except Exception as exc:
        raise KernelError(f"Mesh kernel failed: {exc}") from exc

    try:
        vertices, indices = _read_buffers(result)
    except KernelFailure:
        raise
    except Exception as exc:
        raise KernelError(f"Unable to read mesh kernel result: {exc}") from exc

    try:
        return IndexedMesh.from_buffers(vertices, indices)
    except (ValueError, TypeError) as exc:
        raise KernelError(f"Mesh kernel returned an invalid mesh: {exc}") from exc


def _load_module(path: Path) -> ModuleType:
    module_name = f"pipefit_kernel_{path.stem}"
    if module_name in sys.modules:
        del sys.modules[module_name]

    spec = importlib.util.spec_from_file_location(module_name, path)
    if spec is None or spec.loader is None:
        raise KernelUnavailable(f"Unable to import kernel module at {path}")

    module = importlib.util.module_from_spec(spec)
    # Register module so features relying on sys.modules (e.g., dataclasses) work.
    sys.modules[module_name] = module
    try:
        spec.loader.exec_module(module)
    except BaseException:
        del sys.modules[module_name]
        raise
    return module


def load_kernel(target: str) -> MeshKernel:
    """Resolve ``"package.module:callable"`` or ``"path/to/file.py:callable"``."""

    module_ref, sep, attr = target.strip().rpartition(":")
    if not sep or not module_ref or not attr:
        raise KernelUnavailable(f"Kernel target {target!r} must look like 'module:callable'.")

    try:
        if module_ref.endswith(".py"):
            path = Path(module_ref).expanduser()
            if not path.exists():
                raise KernelUnavailable(f"Kernel module {path} does not exist.")
            module = _load_module(path)
        else:
            module = importlib.import_module(module_ref)
    except KernelUnavailable:
        raise
    except Exception as exc:
        raise KernelUnavailable(f"Unable to import kernel {module_ref!r}: {exc}") from exc

    kernel = getattr(module, attr, None)
    if kernel is None or not callable(kernel):
        raise KernelUnavailable(f"{module_ref} must define a callable {attr}().")
    return kernel


class CommandKernel:
    """Kernel backed by an external executable.

    The adapter record is written as JSON to the process's stdin and a JSON
    object with ``vertices`` and ``indices`` is expected on stdout.
    """

    def __init__(self, argv: Sequence[str], timeout: float = 60.0) -> None:
        if not argv:
            raise ValueError("argv must name an executable.")
        self.argv = list(argv)
        self.timeout = timeout

    def __call__(self, record: dict[str, Any]) -> dict[str, Any]:
        try:
            proc = subprocess.run(
                self.argv,
                input=json.dumps(record),
                capture_output=True,
                text=True,
                timeout=self.timeout,
                check=False,
            )
        except FileNotFoundError as exc:
            raise KernelUnavailable(f"Kernel executable {self.argv[0]!r} not found.") from exc
        except subprocess.TimeoutExpired as exc:
            raise KernelError(f"Kernel timed out after {self.timeout:g}s.") from exc

        if proc.returncode != 0:
            detail = proc.stderr.strip().splitlines()[-1:] or [f"exit status {proc.returncode}"]
            raise KernelError(f"Kernel exited with status {proc.returncode}: {detail[0]}")
        try:
            payload = json.loads(proc.stdout)
        except json.JSONDecodeError as exc:
            raise KernelError(f"Kernel output is not JSON: {exc}") from exc
        if not isinstance(payload, dict):
            raise KernelError("Kernel output must be a JSON object.")
        return payload
