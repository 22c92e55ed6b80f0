"""File and directory operations: read, write, edit, copy, move, delete, mkdir.

Every path is resolved against the context's working directory, so the path
the safety policy approved is the path that gets touched. OS errors propagate
to the router, which turns them into failed results.
"""

from __future__ import annotations

import shutil
from pathlib import Path
from typing import Any

from pydantic import Field, field_validator

from toolgate.tools.base import ToolCallResult, ToolContext, ToolName, ToolRequest, whole_number
from toolgate.tools.fs import resolve_path
from toolgate.tools.limits import clip_line
from toolgate.tools.registry import ToolRegistration


class ReadFileParams(ToolRequest):
    file_path: str
    offset: int | None = Field(default=None, ge=1, description="First line to return (1-based).")
    limit: int | None = Field(default=None, ge=0, description="Number of lines to return.")

    @field_validator("offset", "limit", mode="before")
    @classmethod
    def _truncate_counts(cls, value: Any) -> Any:
        return whole_number(value)


class WriteFileParams(ToolRequest):
    file_path: str
    content: str


class EditFileParams(ToolRequest):
    file_path: str
    old_string: str
    new_string: str


class CopyFileParams(ToolRequest):
    source: str
    destination: str


class MoveFileParams(ToolRequest):
    source: str
    destination: str


class DeleteFileParams(ToolRequest):
    path: str


class CreateDirectoryParams(ToolRequest):
    path: str
    recursive: bool = True


def read_file(params: ReadFileParams, context: ToolContext) -> ToolCallResult:
    path = resolve_path(params.file_path, context.working_directory)
    lines = path.read_text(encoding="utf-8").splitlines()

    start = (params.offset or 1) - 1
    count = params.limit if params.limit is not None else len(lines)
    selected = lines[start : start + count]
    numbered = "\n".join(f"{start + idx + 1}: {clip_line(line, 2_000)}" for idx, line in enumerate(selected))

    return ToolCallResult.ok({"file_path": str(path), "content": numbered, "total_lines": len(lines)})


def write_file(params: WriteFileParams, context: ToolContext) -> ToolCallResult:
    path = resolve_path(params.file_path, context.working_directory)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(params.content, encoding="utf-8")
    return ToolCallResult.ok({"file_path": str(path), "bytes_written": len(params.content.encode("utf-8"))})


def edit_file(params: EditFileParams, context: ToolContext) -> ToolCallResult:
    path = resolve_path(params.file_path, context.working_directory)
    content = path.read_text(encoding="utf-8")

    occurrences = content.count(params.old_string) if params.old_string else 0
    if occurrences == 0:
        return ToolCallResult.fail(f'String not found in file: "{params.old_string[:50]}..."')
    if occurrences > 1:
        return ToolCallResult.fail(
            f"String appears {occurrences} times. "
            "Please provide a more specific string that appears exactly once."
        )

    path.write_text(content.replace(params.old_string, params.new_string, 1), encoding="utf-8")
    return ToolCallResult.ok(
        {
            "file_path": str(path),
            "changes": {"old_length": len(params.old_string), "new_length": len(params.new_string)},
        }
    )


def copy_file(params: CopyFileParams, context: ToolContext) -> ToolCallResult:
    source = resolve_path(params.source, context.working_directory)
    destination = resolve_path(params.destination, context.working_directory)
    destination.parent.mkdir(parents=True, exist_ok=True)
    if source.is_dir():
        shutil.copytree(source, destination, dirs_exist_ok=True)
    else:
        shutil.copy2(source, destination)
    return ToolCallResult.ok({"source": str(source), "destination": str(destination)})


def move_file(params: MoveFileParams, context: ToolContext) -> ToolCallResult:
    source = resolve_path(params.source, context.working_directory)
    destination = resolve_path(params.destination, context.working_directory)
    if not source.exists():
        raise FileNotFoundError(f"No such file or directory: '{params.source}'")
    destination.parent.mkdir(parents=True, exist_ok=True)
    shutil.move(str(source), str(destination))
    return ToolCallResult.ok({"source": str(source), "destination": str(destination)})


def delete_file(params: DeleteFileParams, context: ToolContext) -> ToolCallResult:
    # no resolve(): a symlink is removed itself, never its target
    raw = Path(params.path).expanduser()
    path = raw if raw.is_absolute() else context.working_directory / raw
    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path)
        kind = "directory"
    else:
        path.unlink()
        kind = "file"
    return ToolCallResult.ok({"path": str(path), "type": kind})


def create_directory(params: CreateDirectoryParams, context: ToolContext) -> ToolCallResult:
    path = resolve_path(params.path, context.working_directory)
    path.mkdir(parents=params.recursive, exist_ok=True)
    return ToolCallResult.ok({"path": str(path)})


def tool_registrations() -> list[ToolRegistration]:
    return [
        ToolRegistration(ToolName.READ_FILE, ReadFileParams, read_file),
        ToolRegistration(ToolName.WRITE_FILE, WriteFileParams, write_file),
        ToolRegistration(ToolName.EDIT_FILE, EditFileParams, edit_file),
        ToolRegistration(ToolName.COPY_FILE, CopyFileParams, copy_file),
        ToolRegistration(ToolName.MOVE_FILE, MoveFileParams, move_file),
        ToolRegistration(ToolName.DELETE_FILE, DeleteFileParams, delete_file),
        ToolRegistration(ToolName.CREATE_DIRECTORY, CreateDirectoryParams, create_directory),
    ]


__all__ = [
    "ReadFileParams",
    "WriteFileParams",
    "EditFileParams",
    "CopyFileParams",
    "MoveFileParams",
    "DeleteFileParams",
    "CreateDirectoryParams",
    "read_file",
    "write_file",
    "edit_file",
    "copy_file",
    "move_file",
    "delete_file",
    "create_directory",
    "tool_registrations",
]
