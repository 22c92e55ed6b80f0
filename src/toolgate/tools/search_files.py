"""Recursive, case-insensitive regex search over file contents."""

from __future__ import annotations

import fnmatch
import os
import re
from collections.abc import Iterator
from pathlib import Path

from pydantic import BaseModel, Field

from toolgate.tools.base import ToolCallResult, ToolContext, ToolName, ToolRequest
from toolgate.tools.fs import resolve_path
from toolgate.tools.limits import clip_line
from toolgate.tools.registry import ToolRegistration

SKIPPED_DIRECTORIES = frozenset({"node_modules", ".git", "dist", "build"})


class SearchFilesParams(ToolRequest):
    pattern: str = Field(description="Python regular expression, matched case-insensitively.")
    path: str | None = None
    file_pattern: str | None = Field(default=None, description="Glob matched against file names.")


class SearchMatch(BaseModel):
    file: str
    line: int
    content: str


def _iter_files(root: Path, file_pattern: str | None) -> Iterator[Path]:
    if root.is_file():
        yield root
        return
    for current, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(name for name in dirnames if name not in SKIPPED_DIRECTORIES)
        for name in sorted(filenames):
            if file_pattern and not fnmatch.fnmatch(name, file_pattern):
                continue
            yield Path(current) / name


def search(root: Path, pattern: str, *, file_pattern: str | None = None, limit: int = 1_000) -> list[SearchMatch]:
    """Return up to ``limit`` matching lines under ``root``.

    Files that cannot be read as text are skipped; an invalid pattern raises
    ``re.error``.
    """

    if not root.exists():
        raise FileNotFoundError(f"No such file or directory: '{root}'")

    regex = re.compile(pattern, re.IGNORECASE)
    base = root if root.is_dir() else root.parent
    matches: list[SearchMatch] = []
    for file_path in _iter_files(root, file_pattern):
        try:
            text = file_path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError):
            continue
        for lineno, line in enumerate(text.splitlines(), start=1):
            if regex.search(line):
                matches.append(
                    SearchMatch(
                        file=file_path.relative_to(base).as_posix(),
                        line=lineno,
                        content=clip_line(line.strip()),
                    )
                )
                if len(matches) >= limit:
                    return matches
    return matches


def search_files(params: SearchFilesParams, context: ToolContext) -> ToolCallResult:
    root = resolve_path(params.path, context.working_directory) if params.path else context.working_directory
    try:
        matches = search(root, params.pattern, file_pattern=params.file_pattern)
    except re.error as exc:
        return ToolCallResult.fail(f"Invalid search pattern: {exc}")
    return ToolCallResult.ok(
        {
            "pattern": params.pattern,
            "matches": [match.model_dump() for match in matches],
            "total_matches": len(matches),
        }
    )


def tool_registrations() -> list[ToolRegistration]:
    return [ToolRegistration(ToolName.SEARCH_FILES, SearchFilesParams, search_files)]


__all__ = ["SearchFilesParams", "SearchMatch", "search", "search_files", "tool_registrations"]
