"""Common path utilities for toolgate."""

from __future__ import annotations

import os
from pathlib import Path


def get_toolgate_home() -> Path:
    """Return the base toolgate directory, honoring TOOLGATE_HOME if set."""

    env_path = os.environ.get("TOOLGATE_HOME")
    return Path(env_path).expanduser() if env_path else Path.home() / ".toolgate"


def sessions_dir(base_dir: Path | None = None) -> Path:
    return base_dir or (get_toolgate_home() / "sessions")


def snapshots_dir(base_dir: Path | None = None) -> Path:
    return base_dir or (get_toolgate_home() / "snapshots")


__all__ = ["get_toolgate_home", "sessions_dir", "snapshots_dir"]
