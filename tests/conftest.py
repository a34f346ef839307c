from __future__ import annotations

from pathlib import Path

import numpy as np
import pytest

from pipefit.kernel import load_kernel
from pipefit.mesh import IndexedMesh

PROJECT_ROOT = Path(__file__).resolve().parents[1]
TUBE_KERNEL = PROJECT_ROOT / "examples" / "tube_kernel.py"


@pytest.fixture
def project_root() -> Path:
    return PROJECT_ROOT


@pytest.fixture
def tube_kernel():
    return load_kernel(f"{TUBE_KERNEL}:build")


@pytest.fixture
def single_triangle() -> IndexedMesh:
    return IndexedMesh(
        vertices=np.array([[0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [0.0, 1.0, 0.0]]),
        indices=np.array([[0, 1, 2]]),
    )


@pytest.fixture(autouse=True)
def isolated_user_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    config_file = tmp_path / "home" / ".pipefit" / "pipefit.cfg"
    monkeypatch.setattr("pipefit._config.CONFIG_FILE", config_file)
    monkeypatch.delenv("PIPEFIT_KERNEL", raising=False)
    return config_file
