"""Static tool catalog, parameter validation and implementation bindings.

``TOOL_DEFINITIONS`` is the single source of truth for what the agent may
call: parameter schemas, the ``dangerous`` confirmation flag and the
``needs_snapshot`` flag. Implementation modules bind handlers to these names
through ``ToolRegistration``; the router consumes both.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any

from pydantic import BaseModel, ConfigDict

from toolgate.tools.base import (
    ParamType,
    ToolCallResult,
    ToolContext,
    ToolDefinition,
    ToolName,
    ToolParameter,
    ToolRequest,
)


def _param(
    name: str,
    type_: ParamType,
    description: str,
    *,
    required: bool = False,
    default: Any = None,
    is_path: bool = False,
) -> ToolParameter:
    return ToolParameter(
        name=name, type=type_, description=description, required=required, default=default, is_path=is_path
    )


_DEFINITIONS: tuple[ToolDefinition, ...] = (
    ToolDefinition(
        name=ToolName.READ_FILE,
        description="Read file contents with optional line range",
        parameters=(
            _param("file_path", ParamType.STRING, "Path to the file to read", required=True, is_path=True),
            _param("offset", ParamType.NUMBER, "Line number to start reading from (1-based)"),
            _param("limit", ParamType.NUMBER, "Number of lines to read"),
        ),
    ),
    ToolDefinition(
        name=ToolName.WRITE_FILE,
        description="Create or overwrite a file with content",
        parameters=(
            _param("file_path", ParamType.STRING, "Path to the file to write", required=True, is_path=True),
            _param("content", ParamType.STRING, "Content to write to the file", required=True),
        ),
        needs_snapshot=True,
    ),
    ToolDefinition(
        name=ToolName.EDIT_FILE,
        description="Make precise edits to a file using string replacement",
        parameters=(
            _param("file_path", ParamType.STRING, "Path to the file to edit", required=True, is_path=True),
            _param("old_string", ParamType.STRING, "Exact string to find and replace", required=True),
            _param("new_string", ParamType.STRING, "String to replace with", required=True),
        ),
        needs_snapshot=True,
    ),
    ToolDefinition(
        name=ToolName.LIST_DIRECTORY,
        description="List files and directories",
        parameters=(
            _param("path", ParamType.STRING, "Path to list (default: working directory)", is_path=True),
            _param("recursive", ParamType.BOOLEAN, "List recursively", default=False),
        ),
    ),
    ToolDefinition(
        name=ToolName.SEARCH_FILES,
        description="Search for text patterns in files",
        parameters=(
            _param("pattern", ParamType.STRING, "Search pattern (regex supported)", required=True),
            _param("path", ParamType.STRING, "Path to search in (default: working directory)", is_path=True),
            _param("file_pattern", ParamType.STRING, 'File pattern to filter (e.g., "*.py")'),
        ),
    ),
    ToolDefinition(
        name=ToolName.BASH,
        description="Execute a shell command",
        parameters=(
            _param("command", ParamType.STRING, "Shell command to execute", required=True),
            _param("timeout", ParamType.NUMBER, "Timeout in milliseconds (default: 30000)", default=30_000),
            _param("cwd", ParamType.STRING, "Working directory for command", is_path=True),
        ),
        dangerous=True,
    ),
    ToolDefinition(
        name=ToolName.EXECUTE_CODE,
        description="Execute code in various languages (Python, JavaScript, TypeScript, Shell)",
        parameters=(
            _param("language", ParamType.STRING, "Programming language (python|javascript|typescript|shell)", required=True),
            _param("code", ParamType.STRING, "Code to execute", required=True),
            _param("timeout", ParamType.NUMBER, "Timeout in milliseconds (default: 30000)", default=30_000),
        ),
        dangerous=True,
    ),
    ToolDefinition(
        name=ToolName.COPY_FILE,
        description="Copy a file or directory",
        parameters=(
            _param("source", ParamType.STRING, "Source path", required=True, is_path=True),
            _param("destination", ParamType.STRING, "Destination path", required=True, is_path=True),
        ),
        needs_snapshot=True,
    ),
    ToolDefinition(
        name=ToolName.MOVE_FILE,
        description="Move or rename a file or directory",
        parameters=(
            _param("source", ParamType.STRING, "Source path", required=True, is_path=True),
            _param("destination", ParamType.STRING, "Destination path", required=True, is_path=True),
        ),
        needs_snapshot=True,
    ),
    ToolDefinition(
        name=ToolName.DELETE_FILE,
        description="Delete a file or directory",
        parameters=(_param("path", ParamType.STRING, "Path to delete", required=True, is_path=True),),
        dangerous=True,
        needs_snapshot=True,
    ),
    ToolDefinition(
        name=ToolName.CREATE_DIRECTORY,
        description="Create a new directory",
        parameters=(
            _param("path", ParamType.STRING, "Path of directory to create", required=True, is_path=True),
            _param("recursive", ParamType.BOOLEAN, "Create parent directories if needed", default=True),
        ),
    ),
)

TOOL_DEFINITIONS: Mapping[str, ToolDefinition] = MappingProxyType(
    {definition.name.value: definition for definition in _DEFINITIONS}
)


class ValidationOutcome(BaseModel):
    model_config = ConfigDict(frozen=True)

    valid: bool
    error: str | None = None


def get_tool_definition(name: str | ToolName) -> ToolDefinition | None:
    key = name.value if isinstance(name, ToolName) else name
    return TOOL_DEFINITIONS.get(key)


def get_all_tools() -> list[ToolDefinition]:
    return list(TOOL_DEFINITIONS.values())


def _matches_type(value: Any, expected: ParamType) -> bool:
    if expected == ParamType.STRING:
        return isinstance(value, str)
    if expected == ParamType.NUMBER:
        return isinstance(value, int | float) and not isinstance(value, bool)
    if expected == ParamType.BOOLEAN:
        return isinstance(value, bool)
    if expected == ParamType.ARRAY:
        return isinstance(value, list | tuple)
    raise ValueError(f"unknown parameter type: {expected}")


def validate_tool_parameters(name: str | ToolName, parameters: Mapping[str, Any]) -> ValidationOutcome:
    """Check ``parameters`` against the tool's schema.

    Order: the tool exists, every required parameter is present (``None``
    counts as absent), every present parameter has its declared type. The
    first violation wins. Unknown keys are ignored.
    """

    definition = get_tool_definition(name)
    if definition is None:
        label = name.value if isinstance(name, ToolName) else name
        return ValidationOutcome(valid=False, error=f"Unknown tool: {label}")

    for param in definition.required_parameters():
        if parameters.get(param.name) is None:
            return ValidationOutcome(valid=False, error=f"Missing required parameter: {param.name}")

    for param in definition.parameters:
        value = parameters.get(param.name)
        if value is None:
            continue
        if not _matches_type(value, param.type):
            return ValidationOutcome(
                valid=False,
                error=(
                    f"Invalid type for parameter '{param.name}': "
                    f"expected {param.type.value}, got {type(value).__name__}"
                ),
            )

    return ValidationOutcome(valid=True)


def tools_prompt() -> str:
    """Render the catalog as plain text for an LLM system prompt."""

    lines = ["Available tools:", ""]
    for tool in get_all_tools():
        lines.append(f"## {tool.name.value}")
        lines.append(tool.description)
        if tool.dangerous:
            lines.append("Requires user confirmation")
        lines.append("")
        lines.append("Parameters:")
        for param in tool.parameters:
            required = "(required)" if param.required else "(optional)"
            lines.append(f"- {param.name} {required}: {param.description}")
        lines.append("")
    return "\n".join(lines)


def _json_schema(definition: ToolDefinition) -> dict[str, Any]:
    properties: dict[str, Any] = {}
    for param in definition.parameters:
        prop: dict[str, Any] = {"type": param.type.value, "description": param.description}
        if param.type == ParamType.ARRAY:
            prop["items"] = {}
        if param.default is not None:
            prop["default"] = param.default
        properties[param.name] = prop
    return {
        "type": "object",
        "properties": properties,
        "required": [param.name for param in definition.required_parameters()],
        "additionalProperties": False,
    }


def tool_specs() -> list[dict[str, Any]]:
    """Return OpenAI-style function specs derived from the definitions."""

    return [
        {
            "type": "function",
            "function": {
                "name": definition.name.value,
                "description": definition.description,
                "parameters": _json_schema(definition),
            },
        }
        for definition in get_all_tools()
    ]


Handler = Callable[[ToolRequest, ToolContext], ToolCallResult]


@dataclass(frozen=True)
class ToolRegistration:
    """Binds a tool name to its typed parameter model and implementation."""

    name: ToolName
    input_model: type[ToolRequest]
    handler: Handler


__all__ = [
    "TOOL_DEFINITIONS",
    "ToolRegistration",
    "ValidationOutcome",
    "Handler",
    "get_tool_definition",
    "get_all_tools",
    "validate_tool_parameters",
    "tools_prompt",
    "tool_specs",
]
