"""Core data model shared by the registry, safety policy and router.

Definitions, requests, results and the execution context are Pydantic models
so they validate on construction and dump cleanly to JSON for logs and the
CLI.
"""

from __future__ import annotations

import math
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


def utc_timestamp() -> str:
    return datetime.now(UTC).isoformat(timespec="microseconds")


class ToolName(str, Enum):
    READ_FILE = "read_file"
    WRITE_FILE = "write_file"
    EDIT_FILE = "edit_file"
    LIST_DIRECTORY = "list_directory"
    SEARCH_FILES = "search_files"
    BASH = "bash"
    EXECUTE_CODE = "execute_code"
    COPY_FILE = "copy_file"
    MOVE_FILE = "move_file"
    DELETE_FILE = "delete_file"
    CREATE_DIRECTORY = "create_directory"


class ParamType(str, Enum):
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    ARRAY = "array"


class ToolParameter(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    type: ParamType
    description: str = ""
    required: bool = False
    default: Any = None
    is_path: bool = Field(default=False, description="Parameter names a filesystem path.")


class ToolDefinition(BaseModel):
    """Static description of a tool. Immutable once loaded into the registry."""

    model_config = ConfigDict(frozen=True)

    name: ToolName
    description: str
    parameters: tuple[ToolParameter, ...] = ()
    dangerous: bool = False
    needs_snapshot: bool = False

    def parameter(self, name: str) -> ToolParameter | None:
        for param in self.parameters:
            if param.name == name:
                return param
        return None

    def required_parameters(self) -> list[ToolParameter]:
        return [param for param in self.parameters if param.required]

    def path_parameters(self) -> list[ToolParameter]:
        return [param for param in self.parameters if param.is_path]


class ToolRequest(BaseModel):
    """Marker base class for typed per-tool parameter models."""

    model_config = ConfigDict(extra="ignore")


def whole_number(value: Any, *, round_up: bool = False) -> Any:
    """Convert a float to an int for parameters declared as ``number`` but used as counts.

    Fractions are truncated, or rounded up when ``round_up`` is set. Other values
    pass through for pydantic to validate.
    """

    if isinstance(value, float) and math.isfinite(value):
        return math.ceil(value) if round_up else int(value)
    return value


class ToolCallRequest(BaseModel):
    """A single tool invocation as submitted by the agent loop.

    ``tool`` is a plain string so that names outside :class:`ToolName` can be
    represented and refused with a structured result.
    """

    tool: str
    parameters: dict[str, Any] = Field(default_factory=dict)
    session_id: str | None = None

    @field_validator("tool", mode="before")
    @classmethod
    def _coerce_tool(cls, value: Any) -> Any:
        if isinstance(value, ToolName):
            return value.value
        return value


class ToolCallResult(BaseModel):
    success: bool
    data: Any = None
    error: str | None = None
    snapshot_id: str | None = None
    timestamp: str = Field(default_factory=utc_timestamp)

    @model_validator(mode="after")
    def _error_iff_failure(self) -> ToolCallResult:
        if self.success and self.error is not None:
            raise ValueError("successful result cannot carry an error")
        if not self.success and not self.error:
            raise ValueError("failed result requires an error message")
        return self

    @classmethod
    def ok(cls, data: Any = None) -> ToolCallResult:
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: str, data: Any = None) -> ToolCallResult:
        return cls(success=False, error=error or "Tool execution failed", data=data)


class SafetyVerdict(BaseModel):
    model_config = ConfigDict(frozen=True)

    safe: bool
    reason: str | None = None

    @classmethod
    def allow(cls) -> SafetyVerdict:
        return cls(safe=True)

    @classmethod
    def deny(cls, reason: str) -> SafetyVerdict:
        return cls(safe=False, reason=reason)


class ToolUsage(BaseModel):
    model_config = ConfigDict(frozen=True)

    tool: str
    timestamp: str = Field(default_factory=utc_timestamp)
    success: bool
    execution_time: float = Field(ge=0, description="Elapsed wall-clock time in milliseconds.")
    snapshot_id: str | None = None


class UsageStats(BaseModel):
    model_config = ConfigDict(frozen=True)

    total_calls: int
    success_rate: float
    tool_usage: dict[str, int] = Field(default_factory=dict)


class ToolContext(BaseModel):
    """Execution context injected into the router once at construction.

    ``allow_dangerous`` gates the confirmation prompt: when False, dangerous
    tools run without asking (the operator has pre-authorised them).
    """

    model_config = ConfigDict(frozen=True)

    working_directory: Path = Field(default_factory=Path.cwd)
    session_id: str | None = None
    allow_dangerous: bool = False
    sandbox_paths: tuple[Path, ...] = ()
    max_bash_timeout: int = Field(default=30_000, ge=1, description="Bash timeout ceiling in milliseconds.")

    @field_validator("working_directory")
    @classmethod
    def _absolute_workdir(cls, value: Path) -> Path:
        return Path(value).expanduser().absolute()

    @field_validator("sandbox_paths", mode="before")
    @classmethod
    def _coerce_sandbox(cls, value: Any) -> Any:
        if value is None:
            return ()
        if isinstance(value, (str, Path)):
            return (value,)
        return tuple(value)


__all__ = [
    "ToolName",
    "ParamType",
    "ToolParameter",
    "ToolDefinition",
    "ToolRequest",
    "ToolCallRequest",
    "ToolCallResult",
    "SafetyVerdict",
    "ToolUsage",
    "UsageStats",
    "ToolContext",
    "utc_timestamp",
    "whole_number",
]
