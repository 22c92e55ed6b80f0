import os
import stat
from pathlib import Path

import pytest
from pydantic import ValidationError

from toolgate.config import (
    DEFAULT_BASH_TIMEOUT_MS,
    ApprovalMode,
    LogLevel,
    Settings,
    _clean,
    _first_value,
    _parse_bool,
    _parse_int,
    default_config_path,
    load_settings,
    write_config,
)


def test_settings_defaults() -> None:
    settings = Settings()
    assert settings.allow_dangerous is True
    assert settings.max_bash_timeout == DEFAULT_BASH_TIMEOUT_MS
    assert settings.approval_mode is ApprovalMode.TERMINAL
    assert settings.sandbox_paths == ()
    assert settings.log_level is LogLevel.INFO


def test_settings_reject_unknown_fields() -> None:
    with pytest.raises(ValidationError):
        Settings(api_key="x")  # type: ignore[call-arg]


def test_default_config_path_under_home(_isolate_toolgate_home: Path) -> None:
    assert default_config_path() == _isolate_toolgate_home / "config.toml"


def test_load_settings_missing_creates_config(tmp_path: Path) -> None:
    cfg = tmp_path / "config.toml"
    settings = load_settings(config_path=cfg, env={}, create_if_missing=True)
    assert cfg.exists()
    assert stat.S_IMODE(cfg.stat().st_mode) == 0o600
    assert settings == Settings()


def test_load_settings_missing_without_create(tmp_path: Path) -> None:
    cfg = tmp_path / "config.toml"
    assert load_settings(config_path=cfg, env={}) == Settings()
    assert not cfg.exists()


def test_load_settings_from_file(tmp_path: Path) -> None:
    cfg = tmp_path / "config.toml"
    cfg.write_text(
        """
[runtime]
working_directory = "/srv/app"
allow_dangerous = false
max_bash_timeout = 5000
approval_mode = "auto-deny"

[sandbox]
paths = ["/srv/app", "/tmp/scratch"]

[snapshots]
keep_per_session = 3

[logging]
log_level = "debug"
""",
        encoding="utf-8",
    )

    settings = load_settings(config_path=cfg, env={})

    assert settings.working_directory == Path("/srv/app")
    assert settings.allow_dangerous is False
    assert settings.max_bash_timeout == 5000
    assert settings.approval_mode is ApprovalMode.AUTO_DENY
    assert settings.sandbox_paths == (Path("/srv/app"), Path("/tmp/scratch"))
    assert settings.snapshot_keep == 3
    assert settings.log_level is LogLevel.DEBUG


def test_config_file_permissions_are_tightened(tmp_path: Path) -> None:
    cfg = tmp_path / "config.toml"
    cfg.write_text("[runtime]\n", encoding="utf-8")
    cfg.chmod(0o644)

    load_settings(config_path=cfg, env={})

    assert stat.S_IMODE(cfg.stat().st_mode) == 0o600


def test_precedence_cli_over_env_over_file(tmp_path: Path) -> None:
    cfg = tmp_path / "config.toml"
    cfg.write_text("[runtime]\nmax_bash_timeout = 1000\nallow_dangerous = true\n", encoding="utf-8")
    env = {"TOOLGATE_BASH_TIMEOUT": "2000", "TOOLGATE_ALLOW_DANGEROUS": "no", "TOOLGATE_WORKDIR": "/env/dir"}

    from_env = load_settings(config_path=cfg, env=env)
    from_cli = load_settings(
        cli_overrides={"max_bash_timeout": 3000, "working_directory": "/cli/dir"}, config_path=cfg, env=env
    )

    assert from_env.max_bash_timeout == 2000
    assert from_env.allow_dangerous is False
    assert from_env.working_directory == Path("/env/dir")
    assert from_cli.max_bash_timeout == 3000
    assert from_cli.working_directory == Path("/cli/dir")


def test_sandbox_env_splits_on_pathsep(tmp_path: Path) -> None:
    env = {"TOOLGATE_SANDBOX": os.pathsep.join(["/a", "/b"])}
    settings = load_settings(config_path=tmp_path / "none.toml", env=env)
    assert settings.sandbox_paths == (Path("/a"), Path("/b"))


def test_empty_cli_sandbox_falls_through(tmp_path: Path) -> None:
    env = {"TOOLGATE_SANDBOX": "/from/env"}
    settings = load_settings(cli_overrides={"sandbox_paths": []}, config_path=tmp_path / "none.toml", env=env)
    assert settings.sandbox_paths == (Path("/from/env"),)


def test_tool_context_defaults_sandbox_to_workdir(tmp_path: Path) -> None:
    context = Settings(working_directory=tmp_path).to_tool_context("sess")
    assert context.working_directory == tmp_path.resolve()
    assert context.sandbox_paths == (tmp_path.resolve(),)
    assert context.session_id == "sess"
    assert context.allow_dangerous is True


def test_tool_context_without_sandbox(tmp_path: Path) -> None:
    settings = Settings(working_directory=tmp_path, sandbox_to_working_directory=False)
    assert settings.to_tool_context().sandbox_paths == ()


def test_tool_context_explicit_sandbox(tmp_path: Path) -> None:
    settings = Settings(working_directory=tmp_path, sandbox_paths=("/data",), max_bash_timeout=42)
    context = settings.to_tool_context()
    assert context.sandbox_paths == (Path("/data"),)
    assert context.max_bash_timeout == 42


def test_write_and_read_round_trip(tmp_path: Path) -> None:
    cfg = tmp_path / "config.toml"
    settings = Settings(
        working_directory=Path("/work"),
        sandbox_paths=(Path("/work"), Path("/shared")),
        allow_dangerous=False,
        max_bash_timeout=1234,
        approval_mode=ApprovalMode.AUTO_DENY,
        snapshot_keep=4,
        log_level=LogLevel.ERROR,
    )

    write_config(settings, cfg)

    assert load_settings(config_path=cfg, env={}) == settings


def test_invalid_timeout_rejected() -> None:
    with pytest.raises(ValidationError):
        Settings(max_bash_timeout=0)


def test_helpers() -> None:
    assert _clean("  ") is None
    assert _clean([]) is None
    assert _clean(" x ") == "x"
    assert _first_value(None, 0, 5) == 0
    assert _parse_bool("YES") is True
    assert _parse_bool("off") is False
    assert _parse_bool("maybe") is None
    assert _parse_int("12") == 12
    assert _parse_int("twelve") is None
