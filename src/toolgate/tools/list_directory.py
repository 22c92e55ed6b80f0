"""Directory listing, flat or recursive."""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import Field

from toolgate.tools.base import ToolCallResult, ToolContext, ToolName, ToolRequest
from toolgate.tools.fs import resolve_path
from toolgate.tools.registry import ToolRegistration


class ListDirectoryParams(ToolRequest):
    path: str | None = Field(default=None, description="Directory to list; defaults to the working directory.")
    recursive: bool = False


def _entry(path: Path, root: Path) -> str:
    relative = path.relative_to(root).as_posix()
    return f"{relative}/" if path.is_dir() and not path.is_symlink() else relative


def list_entries(root: Path, *, recursive: bool = False) -> list[str]:
    """Return sorted entries below ``root``; directories carry a ``/`` suffix.

    Symlinked directories are listed but not descended into.
    """

    if not root.is_dir():
        raise NotADirectoryError(f"Not a directory: '{root}'")

    if not recursive:
        return sorted(_entry(child, root) for child in root.iterdir())

    entries: list[str] = []
    for current, dirnames, filenames in os.walk(root):
        base = Path(current)
        entries.extend(_entry(base / name, root) for name in dirnames)
        entries.extend(_entry(base / name, root) for name in filenames)
    return sorted(entries)


def list_directory(params: ListDirectoryParams, context: ToolContext) -> ToolCallResult:
    root = resolve_path(params.path, context.working_directory) if params.path else context.working_directory
    files = list_entries(root, recursive=params.recursive)
    return ToolCallResult.ok({"path": str(root), "files": files, "total": len(files)})


def tool_registrations() -> list[ToolRegistration]:
    return [ToolRegistration(ToolName.LIST_DIRECTORY, ListDirectoryParams, list_directory)]


__all__ = ["ListDirectoryParams", "list_entries", "list_directory", "tool_registrations"]
