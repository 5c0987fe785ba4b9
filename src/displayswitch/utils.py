"""Utility helpers: XDG paths, file I/O."""

from __future__ import annotations

import json
import os
from pathlib import Path


def config_dir() -> Path:
    """Return ~/.config/displayswitch, creating it if needed.

    ``DISPLAYSWITCH_CONFIG_DIR`` replaces the whole path.
    """
    override = os.environ.get("DISPLAYSWITCH_CONFIG_DIR")
    if override:
        d = Path(override)
    else:
        base = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))
        d = base / "displayswitch"
    d.mkdir(parents=True, exist_ok=True)
    return d


def configs_path() -> Path:
    """Return the saved configurations file."""
    return config_dir() / "configs.json"


def read_json(path: Path) -> dict | list | None:
    """Read and parse a JSON file, returning None on failure."""
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError):
        return None


def write_json(path: Path, data: dict | list) -> None:
    """Write data as formatted JSON."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")
