"""Sandbox path resolution and containment helpers."""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path


class SandboxViolationError(Exception):
    """Raised when a path escapes every allowed sandbox root."""

    def __init__(self, raw_path: str | Path, roots: Iterable[Path]) -> None:
        self.raw_path = raw_path
        joined = ", ".join(str(root) for root in roots)
        super().__init__(f"path '{raw_path}' is outside allowed roots {joined}")


def resolve_path(raw_path: str | Path, working_directory: Path) -> Path:
    """Return ``raw_path`` as an absolute, normalized path.

    Relative paths are anchored at ``working_directory``; ``.``/``..`` segments
    and symlinks are resolved without requiring the path to exist. Raises
    ``ValueError`` for strings the OS cannot represent as a path (embedded NUL).
    """

    if "\x00" in str(raw_path):
        raise ValueError(f"embedded null byte in path {str(raw_path)!r}")
    path = Path(raw_path).expanduser()
    if not path.is_absolute():
        path = working_directory / path
    return path.resolve(strict=False)


class SandboxBoundary:
    """Allow-list of directory roots that file operations must stay within.

    An empty root list means the boundary is unrestricted.
    """

    def __init__(self, roots: Iterable[str | Path], working_directory: Path | None = None) -> None:
        self.working_directory = (working_directory or Path.cwd()).resolve()
        self.roots: tuple[Path, ...] = tuple(resolve_path(root, self.working_directory) for root in roots)

    def resolve(self, raw_path: str | Path) -> Path:
        return resolve_path(raw_path, self.working_directory)

    def is_within(self, raw_path: str | Path) -> bool:
        """Return True if the resolved path equals or descends from some root."""

        if not self.roots:
            return True
        resolved = self.resolve(raw_path)
        return any(resolved.is_relative_to(root) for root in self.roots)

    def ensure_within(self, raw_path: str | Path) -> Path:
        """Resolve ``raw_path`` or raise ``SandboxViolationError`` if it escapes the boundary."""

        resolved = self.resolve(raw_path)
        if not self.is_within(resolved):
            raise SandboxViolationError(raw_path, self.roots)
        return resolved


__all__ = ["SandboxBoundary", "SandboxViolationError", "resolve_path"]
