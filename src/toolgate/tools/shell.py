"""Shell command execution with a hard timeout and output caps."""

from __future__ import annotations

import os
import signal
import subprocess
from pathlib import Path
from typing import Any

from pydantic import Field, field_validator

from toolgate.tools.base import ToolCallResult, ToolContext, ToolName, ToolRequest, whole_number
from toolgate.tools.fs import resolve_path
from toolgate.tools.limits import truncate_output
from toolgate.tools.registry import ToolRegistration

# Grace period for reading the pipes once a timed-out process group is killed.
DRAIN_TIMEOUT_S = 1.0


class BashParams(ToolRequest):
    command: str = Field(description="Shell command to run.")
    timeout: int | None = Field(default=None, ge=1, description="Timeout in milliseconds.")
    cwd: str | None = Field(default=None, description="Working directory (optional).")

    @field_validator("timeout", mode="before")
    @classmethod
    def _round_timeout(cls, value: Any) -> Any:
        return whole_number(value, round_up=True)


def effective_timeout_ms(requested: int | None, ceiling: int) -> int:
    """Per-call timeout, never above the context's ceiling."""

    if requested is None:
        return ceiling
    return min(requested, ceiling)


def _kill_group(proc: subprocess.Popen[str]) -> None:
    try:
        os.killpg(proc.pid, signal.SIGKILL)
    except ProcessLookupError:
        pass


def _as_text(output: str | bytes | None) -> str:
    if output is None:
        return ""
    if isinstance(output, bytes):
        return output.decode("utf-8", errors="replace")
    return output


def run_command(command: str, *, cwd: Path, timeout_ms: int) -> tuple[int | None, str, str]:
    """Run ``command`` through the shell in its own process group.

    Returns ``(returncode, stdout, stderr)``; ``returncode`` is None when the
    timeout expired, in which case the whole group has been killed and reaped.
    A descendant that left the group (``setsid``) may keep the pipes open; the
    drain after the kill is bounded by ``DRAIN_TIMEOUT_S`` and whatever was
    read by then is returned.
    """

    proc = subprocess.Popen(
        command,
        shell=True,
        cwd=str(cwd),
        stdin=subprocess.DEVNULL,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        text=True,
        start_new_session=True,
    )
    try:
        stdout, stderr = proc.communicate(timeout=timeout_ms / 1000)
    except subprocess.TimeoutExpired:
        _kill_group(proc)
        try:
            stdout, stderr = proc.communicate(timeout=DRAIN_TIMEOUT_S)
        except subprocess.TimeoutExpired as exc:
            stdout, stderr = _as_text(exc.stdout), _as_text(exc.stderr)
            for stream in (proc.stdout, proc.stderr):
                if stream is not None:
                    stream.close()
            proc.wait()
        return None, stdout or "", stderr or ""
    return proc.returncode, stdout, stderr


def run_bash(params: BashParams, context: ToolContext) -> ToolCallResult:
    if not params.command.strip():
        return ToolCallResult.fail("command cannot be empty")

    cwd = resolve_path(params.cwd, context.working_directory) if params.cwd else context.working_directory
    timeout_ms = effective_timeout_ms(params.timeout, context.max_bash_timeout)

    returncode, raw_stdout, raw_stderr = run_command(params.command, cwd=cwd, timeout_ms=timeout_ms)
    stdout, _ = truncate_output(raw_stdout.strip())
    stderr, _ = truncate_output(raw_stderr.strip())

    if returncode is None:
        return ToolCallResult.fail(
            f"Command timed out after {timeout_ms}ms", data={"stdout": stdout, "stderr": stderr}
        )
    if returncode != 0:
        return ToolCallResult.fail(
            f"Command failed with exit code {returncode}",
            data={"stdout": stdout, "stderr": stderr, "returncode": returncode},
        )
    return ToolCallResult.ok(
        {"command": params.command, "stdout": stdout, "stderr": stderr, "cwd": str(cwd), "returncode": 0}
    )


def tool_registrations() -> list[ToolRegistration]:
    return [ToolRegistration(ToolName.BASH, BashParams, run_bash)]


__all__ = ["BashParams", "effective_timeout_ms", "run_command", "run_bash", "tool_registrations"]
