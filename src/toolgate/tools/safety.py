"""Policy checks applied to every tool request before anything runs.

Three independent rules, evaluated in order with the first failure winning:
sandbox containment of every path parameter, critical-path protection for
delete/move, and a substring denylist for shell commands. The denylist is a
best-effort heuristic, not a security boundary.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from pathlib import Path
from typing import Any

from toolgate.tools.base import SafetyVerdict, ToolCallRequest, ToolContext, ToolName
from toolgate.tools.fs import SandboxBoundary, SandboxViolationError, resolve_path
from toolgate.tools.registry import get_tool_definition

# Path keys checked when a request names a tool the registry does not know.
FALLBACK_PATH_KEYS = ("file_path", "path", "source")

CRITICAL_SYSTEM_PATHS = ("/", "/etc", "/usr", "/bin", "/sbin", "/home")

DANGEROUS_COMMAND_PATTERNS = (
    "rm -rf /",
    "mkfs",
    "dd if=",
    "fork bomb",
    ":(){ :|:& };:",
    "> /dev/sd",
)

PROTECTED_TOOLS = frozenset({ToolName.DELETE_FILE.value, ToolName.MOVE_FILE.value})


def request_paths(request: ToolCallRequest) -> list[str]:
    """Return the string values of every path parameter present in ``request``."""

    definition = get_tool_definition(request.tool)
    keys: Iterable[str]
    if definition is None:
        keys = FALLBACK_PATH_KEYS
    else:
        keys = [param.name for param in definition.path_parameters()]
    return [value for key in keys if isinstance(value := request.parameters.get(key), str)]


def critical_paths(home: Path | None = None) -> set[Path]:
    paths = {Path(p).resolve(strict=False) for p in CRITICAL_SYSTEM_PATHS}
    home_dir = home if home is not None else Path.home()
    paths.add(home_dir.resolve(strict=False))
    return paths


def _protected_target(parameters: Mapping[str, Any]) -> str | None:
    for key in ("path", "source"):
        value = parameters.get(key)
        if isinstance(value, str) and value:
            return value
    return None


def _invalid_path(raw: str) -> SafetyVerdict:
    return SafetyVerdict.deny(f"Invalid path: {raw!r}")


class SafetyPolicy:
    """Stateless evaluator producing a fresh ``SafetyVerdict`` per request."""

    def __init__(
        self,
        *,
        denylist: Iterable[str] = DANGEROUS_COMMAND_PATTERNS,
        home_resolver: Callable[[], Path] = Path.home,
    ) -> None:
        self.denylist = tuple(denylist)
        self._home_resolver = home_resolver

    def check(self, request: ToolCallRequest, context: ToolContext) -> SafetyVerdict:
        for rule in (self._check_sandbox, self._check_critical_path, self._check_command):
            verdict = rule(request, context)
            if not verdict.safe:
                return verdict
        return SafetyVerdict.allow()

    def _check_sandbox(self, request: ToolCallRequest, context: ToolContext) -> SafetyVerdict:
        if not context.sandbox_paths:
            return SafetyVerdict.allow()
        boundary = SandboxBoundary(context.sandbox_paths, context.working_directory)
        for raw in request_paths(request):
            try:
                boundary.ensure_within(raw)
            except SandboxViolationError:
                return SafetyVerdict.deny(f"Access denied: {raw} is outside allowed paths")
            except (ValueError, OSError):
                return _invalid_path(raw)
        return SafetyVerdict.allow()

    def _check_critical_path(self, request: ToolCallRequest, context: ToolContext) -> SafetyVerdict:
        if request.tool not in PROTECTED_TOOLS:
            return SafetyVerdict.allow()
        target = _protected_target(request.parameters)
        if target is None:
            return SafetyVerdict.allow()
        try:
            resolved = resolve_path(target, context.working_directory)
        except (ValueError, OSError):
            return _invalid_path(target)
        if resolved in critical_paths(self._home_resolver()):
            return SafetyVerdict.deny(f"Refusing to modify critical system path: {target}")
        return SafetyVerdict.allow()

    def _check_command(self, request: ToolCallRequest, context: ToolContext) -> SafetyVerdict:
        if request.tool != ToolName.BASH.value:
            return SafetyVerdict.allow()
        command = request.parameters.get("command")
        if not isinstance(command, str):
            return SafetyVerdict.allow()
        for pattern in self.denylist:
            if pattern in command:
                return SafetyVerdict.deny(f"Refusing to execute potentially dangerous command (matched '{pattern}')")
        return SafetyVerdict.allow()


__all__ = [
    "SafetyPolicy",
    "request_paths",
    "critical_paths",
    "CRITICAL_SYSTEM_PATHS",
    "DANGEROUS_COMMAND_PATTERNS",
    "FALLBACK_PATH_KEYS",
]
