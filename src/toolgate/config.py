"""Configuration models and loading for toolgate.

Settings resolve in order: CLI overrides, environment, ``config.toml``,
built-in defaults. ``Settings.to_tool_context`` turns the resolved settings
into the ``ToolContext`` the router is constructed with.
"""

from __future__ import annotations

import os
import stat
import tomllib
from collections.abc import Mapping
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from toolgate.paths import get_toolgate_home
from toolgate.tools.base import ToolContext


class ApprovalMode(str, Enum):
    TERMINAL = "terminal"
    AUTO_DENY = "auto-deny"


class LogLevel(str, Enum):
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


DEFAULT_BASH_TIMEOUT_MS = 60_000
EXPECTED_FILE_MODE = stat.S_IRUSR | stat.S_IWUSR  # 0o600


def default_config_path() -> Path:
    return get_toolgate_home() / "config.toml"


class Settings(BaseModel):
    """Resolved toolgate settings."""

    model_config = ConfigDict(frozen=True, validate_default=True, extra="forbid")

    working_directory: Path | None = None
    sandbox_paths: tuple[Path, ...] = ()
    sandbox_to_working_directory: bool = True
    allow_dangerous: bool = True
    max_bash_timeout: int = Field(default=DEFAULT_BASH_TIMEOUT_MS, ge=1)
    approval_mode: ApprovalMode = ApprovalMode.TERMINAL
    snapshot_keep: int = Field(default=10, ge=0)
    log_level: LogLevel = LogLevel.INFO

    @field_validator("sandbox_paths", mode="before")
    @classmethod
    def _split_sandbox(cls, value: Any) -> Any:
        if value is None:
            return ()
        if isinstance(value, str):
            return tuple(part for part in value.split(os.pathsep) if part.strip())
        return value

    def resolved_working_directory(self) -> Path:
        return (self.working_directory or Path.cwd()).expanduser().resolve()

    def to_tool_context(self, session_id: str | None = None) -> ToolContext:
        workdir = self.resolved_working_directory()
        sandbox = self.sandbox_paths
        if not sandbox and self.sandbox_to_working_directory:
            sandbox = (workdir,)
        return ToolContext(
            working_directory=workdir,
            session_id=session_id,
            allow_dangerous=self.allow_dangerous,
            sandbox_paths=sandbox,
            max_bash_timeout=self.max_bash_timeout,
        )


def load_settings(
    cli_overrides: Mapping[str, Any] | None = None,
    env: Mapping[str, str] | None = None,
    config_path: Path | str | None = None,
    *,
    create_if_missing: bool = False,
) -> Settings:
    env = env if env is not None else os.environ
    cli_overrides = cli_overrides or {}
    path = Path(config_path) if config_path else default_config_path()

    created_new = False
    if not path.exists() and create_if_missing:
        write_config(Settings(), path)
        created_new = True

    config_data: dict[str, Any] = {}
    if path.exists():
        if not created_new:
            _ensure_permissions(path)
        config_data = _read_toml(path)

    defaults = Settings()

    values: dict[str, Any] = {
        "working_directory": _first_value(
            _clean(cli_overrides.get("working_directory")),
            _clean(env.get("TOOLGATE_WORKDIR")),
            _clean(_get_config_value(config_data, "runtime", "working_directory")),
        ),
        "sandbox_paths": _first_value(
            _clean(cli_overrides.get("sandbox_paths")),
            _clean(env.get("TOOLGATE_SANDBOX")),
            _get_config_value(config_data, "sandbox", "paths"),
            defaults.sandbox_paths,
        ),
        "sandbox_to_working_directory": _first_value(
            _get_config_value(config_data, "sandbox", "default_to_working_directory"),
            defaults.sandbox_to_working_directory,
        ),
        "allow_dangerous": _first_value(
            cli_overrides.get("allow_dangerous"),
            _parse_bool(env.get("TOOLGATE_ALLOW_DANGEROUS")),
            _get_config_value(config_data, "runtime", "allow_dangerous"),
            defaults.allow_dangerous,
        ),
        "max_bash_timeout": _first_value(
            cli_overrides.get("max_bash_timeout"),
            _parse_int(env.get("TOOLGATE_BASH_TIMEOUT")),
            _get_config_value(config_data, "runtime", "max_bash_timeout"),
            defaults.max_bash_timeout,
        ),
        "approval_mode": _first_value(
            _clean(cli_overrides.get("approval_mode")),
            _clean(_get_config_value(config_data, "runtime", "approval_mode")),
            defaults.approval_mode,
        ),
        "snapshot_keep": _first_value(
            _get_config_value(config_data, "snapshots", "keep_per_session"),
            defaults.snapshot_keep,
        ),
        "log_level": _first_value(
            _clean(cli_overrides.get("log_level")),
            _clean(_get_config_value(config_data, "logging", "log_level")),
            defaults.log_level,
        ),
    }
    return Settings.model_validate(values)


def write_config(settings: Settings, config_path: Path | str | None = None) -> Path:
    path = Path(config_path) if config_path else default_config_path()
    path.parent.mkdir(parents=True, exist_ok=True)

    sections: list[str] = []
    _append_section(
        sections,
        "runtime",
        {
            "working_directory": str(settings.working_directory) if settings.working_directory else None,
            "allow_dangerous": settings.allow_dangerous,
            "max_bash_timeout": settings.max_bash_timeout,
            "approval_mode": settings.approval_mode,
        },
    )
    _append_section(
        sections,
        "sandbox",
        {
            "paths": [str(p) for p in settings.sandbox_paths],
            "default_to_working_directory": settings.sandbox_to_working_directory,
        },
    )
    _append_section(sections, "snapshots", {"keep_per_session": settings.snapshot_keep})
    _append_section(sections, "logging", {"log_level": settings.log_level})

    content = "\n\n".join(sections) + "\n"
    path.write_text(content, encoding="utf-8")
    path.chmod(EXPECTED_FILE_MODE)
    return path


def _ensure_permissions(path: Path) -> None:
    current_mode = stat.S_IMODE(path.stat().st_mode)
    if current_mode != EXPECTED_FILE_MODE:
        path.chmod(EXPECTED_FILE_MODE)


def _read_toml(path: Path) -> dict[str, Any]:
    with path.open("rb") as handle:
        return tomllib.load(handle)


def _get_config_value(config: Mapping[str, Any], section: str, key: str) -> Any:
    section_data = config.get(section)
    if not isinstance(section_data, dict):
        return None
    return section_data.get(key)


def _clean(value: Any) -> Any:
    if isinstance(value, str):
        stripped = value.strip()
        return stripped if stripped else None
    if isinstance(value, list | tuple) and not value:
        return None
    return value


def _first_value(*candidates: Any) -> Any:
    for candidate in candidates:
        if candidate is not None:
            return candidate
    return None


def _parse_bool(value: str | None) -> bool | None:
    if value is None or not value.strip():
        return None
    lowered = value.strip().lower()
    if lowered in {"1", "true", "yes", "on"}:
        return True
    if lowered in {"0", "false", "no", "off"}:
        return False
    return None


def _parse_int(value: str | None) -> int | None:
    if value is None:
        return None
    try:
        return int(value.strip())
    except ValueError:
        return None


def _render_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, Enum):
        return _render_value(value.value)
    if isinstance(value, str):
        escaped = value.replace("\\", "\\\\").replace('"', '\\"')
        return f'"{escaped}"'
    if isinstance(value, list | tuple):
        return "[" + ", ".join(_render_value(item) for item in value) + "]"
    return str(value)


def _append_section(parts: list[str], name: str, values: Mapping[str, Any]) -> None:
    filtered = {k: v for k, v in values.items() if v is not None}
    if not filtered:
        return
    lines = [f"[{name}]"]
    lines.extend(f"{key} = {_render_value(val)}" for key, val in filtered.items())
    parts.append("\n".join(lines))


__all__ = [
    "Settings",
    "ApprovalMode",
    "LogLevel",
    "DEFAULT_BASH_TIMEOUT_MS",
    "default_config_path",
    "load_settings",
    "write_config",
]
