"""Console entrypoint for toolgate.

Runs single tool calls through the gateway, prints the tool catalog, and
manages snapshots (list, show, revert, undo, clean) and configuration.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Any

from toolgate import __version__
from toolgate.config import ApprovalMode, LogLevel, Settings, default_config_path, load_settings
from toolgate.logging import configure_base_logging, configure_session_logger
from toolgate.snapshots import SnapshotError, SnapshotStore
from toolgate.tools.approval import Approver, StaticApprover, TerminalApprover
from toolgate.tools.base import ParamType
from toolgate.tools.registry import TOOL_DEFINITIONS, get_all_tools, get_tool_definition, tool_specs, tools_prompt
from toolgate.tools.router import ToolRouter


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="toolgate", description="Safety gateway for agent tool calls")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging on stderr.")
    parser.add_argument("--config-path", dest="config_path", help="Path to config.toml")
    parser.add_argument("--workdir", dest="working_directory", help="Working directory for tool calls")
    parser.add_argument(
        "--sandbox",
        dest="sandbox_paths",
        action="append",
        default=[],
        metavar="DIR",
        help="Allowed root for file operations (repeatable).",
    )
    parser.add_argument(
        "--yes",
        action="store_true",
        help="Pre-authorize dangerous tools; they run without a confirmation prompt.",
    )
    parser.add_argument("--bash-timeout", dest="max_bash_timeout", type=int, help="Bash timeout ceiling (ms)")
    parser.add_argument("--log-level", dest="log_level", choices=[e.value for e in LogLevel])
    parser.add_argument("--session", dest="session_id", help="Session id for snapshots and the session log")

    subparsers = parser.add_subparsers(dest="command", required=True)

    tool_parser = subparsers.add_parser("tool", help="Execute a single tool call")
    tool_parser.add_argument("name", choices=list(TOOL_DEFINITIONS), help="Tool name")
    tool_parser.add_argument("--json", dest="json_payload", help="JSON object with tool parameters")
    tool_parser.add_argument("--arg", action="append", default=[], help="key=value tool parameter")

    tools_parser = subparsers.add_parser("tools", help="Show the tool catalog")
    fmt = tools_parser.add_mutually_exclusive_group()
    fmt.add_argument("--prompt", action="store_true", help="Print the LLM prompt rendering")
    fmt.add_argument("--specs", action="store_true", help="Print JSON function specs")

    snap_parser = subparsers.add_parser("snapshots", help="List, inspect and revert snapshots")
    snap_sub = snap_parser.add_subparsers(dest="snapshots_cmd", required=True)
    list_parser = snap_sub.add_parser("list", help="List snapshots, newest first")
    list_parser.add_argument("--session", dest="filter_session", help="Only this session")
    show_parser = snap_sub.add_parser("show", help="Print a snapshot")
    show_parser.add_argument("snapshot_id")
    revert_parser = snap_sub.add_parser("revert", help="Restore files from a snapshot")
    revert_parser.add_argument("snapshot_id")
    revert_parser.add_argument("--no-backup", dest="backup", action="store_false")
    undo_parser = snap_sub.add_parser("undo", help="Revert the most recent change")
    undo_parser.add_argument("--session", dest="filter_session", help="Only this session")
    rm_parser = snap_sub.add_parser("rm", help="Delete a snapshot")
    rm_parser.add_argument("snapshot_id")
    clean_parser = snap_sub.add_parser("clean", help="Keep only the newest snapshots per session")
    clean_parser.add_argument("--keep", type=int, help="Snapshots kept per session")

    config_parser = subparsers.add_parser("config", help="Config helpers")
    config_sub = config_parser.add_subparsers(dest="config_cmd", required=True)
    config_sub.add_parser("path", help="Print config path")
    config_sub.add_parser("print", help="Print resolved settings")

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    settings = load_settings(cli_overrides=_collect_overrides(args), config_path=args.config_path)
    configure_base_logging(debug_enabled=args.debug, level=settings.log_level)

    if args.command == "tool":
        return _run_tool(settings, args)
    if args.command == "tools":
        return _run_tools(args)
    if args.command == "snapshots":
        return _run_snapshots(settings, args)
    if args.command == "config":
        return _run_config(settings, args)

    parser.error(f"unknown command {args.command}")
    return 1


def _collect_overrides(args: argparse.Namespace) -> dict[str, Any]:
    return {
        "working_directory": args.working_directory,
        "sandbox_paths": args.sandbox_paths,
        "allow_dangerous": False if args.yes else None,
        "max_bash_timeout": args.max_bash_timeout,
        "log_level": args.log_level,
    }


def _build_approver(settings: Settings) -> Approver:
    if settings.approval_mode == ApprovalMode.AUTO_DENY:
        return StaticApprover(False)
    return TerminalApprover()


def build_router(settings: Settings, session_id: str | None = None) -> ToolRouter:
    logger: logging.Logger | None = None
    if session_id:
        logger = configure_session_logger(session_id, log_level=settings.log_level)
    return ToolRouter(
        settings.to_tool_context(session_id),
        approver=_build_approver(settings),
        snapshots=SnapshotStore(),
        logger=logger,
    )


def parse_tool_args(name: str, json_payload: str | None, pairs: list[str]) -> dict[str, Any]:
    """Merge a JSON payload with key=value pairs.

    Pair values for non-string parameters are decoded as JSON so ``limit=5``
    is a number and ``recursive=true`` a boolean.
    """

    payload: dict[str, Any] = {}
    if json_payload:
        loaded = json.loads(json_payload)
        if not isinstance(loaded, dict):
            raise SystemExit("--json expects a JSON object")
        payload.update(loaded)

    definition = get_tool_definition(name)
    for pair in pairs:
        if "=" not in pair:
            raise SystemExit("--arg expects key=value")
        key, value = pair.split("=", 1)
        param = definition.parameter(key) if definition else None
        if param is None or param.type == ParamType.STRING:
            payload[key] = value
            continue
        try:
            payload[key] = json.loads(value)
        except json.JSONDecodeError:
            payload[key] = value
    return payload


def _run_tool(settings: Settings, args: argparse.Namespace) -> int:
    router = build_router(settings, args.session_id)
    payload = parse_tool_args(args.name, args.json_payload, args.arg)
    result = router.dispatch(args.name, session_id=args.session_id, **payload)
    print(result.model_dump_json(indent=2))
    return 0 if result.success else 1


def _run_tools(args: argparse.Namespace) -> int:
    if args.prompt:
        print(tools_prompt())
        return 0
    if args.specs:
        print(json.dumps(tool_specs(), indent=2))
        return 0
    for tool in get_all_tools():
        flags = []
        if tool.dangerous:
            flags.append("dangerous")
        if tool.needs_snapshot:
            flags.append("snapshot")
        suffix = f" [{', '.join(flags)}]" if flags else ""
        print(f"{tool.name.value}{suffix}: {tool.description}")
    return 0


def _run_snapshots(settings: Settings, args: argparse.Namespace) -> int:
    store = SnapshotStore()
    cmd = args.snapshots_cmd
    try:
        if cmd == "list":
            for meta in store.list_snapshots(args.filter_session or args.session_id):
                print(f"{meta.id} {meta.timestamp} files={meta.file_count} {meta.reason}")
            return 0
        if cmd == "show":
            print(store.load_snapshot(args.snapshot_id).model_dump_json(indent=2))
            return 0
        if cmd == "revert":
            result = store.revert_to_snapshot(args.snapshot_id, create_backup=args.backup)
            print(result.model_dump_json(indent=2))
            return 0 if result.success else 1
        if cmd == "undo":
            result = store.undo(args.filter_session or args.session_id)
            print(result.model_dump_json(indent=2))
            return 0 if result.success else 1
        if cmd == "rm":
            if not store.delete_snapshot(args.snapshot_id):
                print("not found", file=sys.stderr)
                return 1
            return 0
        if cmd == "clean":
            keep = args.keep if args.keep is not None else settings.snapshot_keep
            print(f"deleted {store.clean_old_snapshots(keep)} snapshot(s)")
            return 0
    except SnapshotError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1
    return 1


def _run_config(settings: Settings, args: argparse.Namespace) -> int:
    if args.config_cmd == "path":
        print(args.config_path or default_config_path())
        return 0
    if args.config_cmd == "print":
        print(settings.model_dump_json(indent=2))
        return 0
    return 1


if __name__ == "__main__":
    sys.exit(main())
