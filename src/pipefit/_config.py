from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict

CONFIG_DIR = Path.home() / ".pipefit"
CONFIG_FILE = CONFIG_DIR / "pipefit.cfg"
KERNEL_ENV = "PIPEFIT_KERNEL"
DEFAULT_CONFIG = {
    "_comment": "kernel: 'package.module:callable' or 'path/to/kernel.py:callable'. stl_header: up to 80 ASCII chars.",
    "kernel": "",
    "stl_header": "",
}


@dataclass(frozen=True)
class UserSettings:
    """Resolved settings from pipefit.cfg and the environment."""

    kernel: str | None
    stl_header: str


def ensure_user_config(config_file: Path = CONFIG_FILE) -> None:
    """Ensure ~/.pipefit/pipefit.cfg exists with sane defaults."""

    try:
        config_file.parent.mkdir(parents=True, exist_ok=True)
    except OSError:
        return

    if config_file.exists():
        return

    try:
        config_file.write_text(json.dumps(DEFAULT_CONFIG, indent=2) + "\n")
    except OSError:
        return


def _load_user_config(config_file: Path) -> Dict[str, Any]:
    ensure_user_config(config_file)
    try:
        data = json.loads(config_file.read_text())
    except (OSError, json.JSONDecodeError):
        return DEFAULT_CONFIG.copy()
    if not isinstance(data, dict):
        return DEFAULT_CONFIG.copy()
    return data


def get_user_settings(config_file: Path | None = None) -> UserSettings:
    """Return the configured kernel target and STL header.

    ``PIPEFIT_KERNEL`` takes precedence over the ``kernel`` entry in the file.
    """

    raw_config = _load_user_config(config_file or CONFIG_FILE)
    kernel = os.environ.get(KERNEL_ENV) or str(raw_config.get("kernel") or "")
    header = str(raw_config.get("stl_header") or "")
    return UserSettings(kernel=kernel.strip() or None, stl_header=header)
