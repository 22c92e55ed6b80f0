"""Logging setup for toolgate.

``configure_session_logger`` writes one file per session under
``<home>/sessions/<session>/log.txt``; the logger is isolated (no
propagation) and repeated calls do not stack handlers.
``configure_base_logging`` sets up the stderr console logging used by the CLI.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

from toolgate.config import LogLevel
from toolgate.paths import sessions_dir

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def session_log_path(session_id: str, base_dir: Path | None = None) -> Path:
    return sessions_dir(base_dir) / session_id / "log.txt"


def configure_session_logger(
    session_id: str,
    *,
    log_level: LogLevel | str = LogLevel.INFO,
    base_dir: Path | None = None,
) -> logging.Logger:
    """Configure and return a file logger scoped to a session."""

    logger = logging.getLogger(f"toolgate.session.{session_id}")

    level_value = to_logging_level(log_level)
    logger.setLevel(level_value)
    logger.propagate = False

    if not logger.handlers:
        path = session_log_path(session_id, base_dir)
        path.parent.mkdir(parents=True, exist_ok=True)

        handler = logging.FileHandler(path, encoding="utf-8")
        handler.setLevel(level_value)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)

    return logger


def configure_base_logging(*, debug_enabled: bool, level: LogLevel | str) -> None:
    root_level = logging.INFO if debug_enabled else logging.WARNING
    logging.basicConfig(level=root_level, stream=sys.__stderr__, format=LOG_FORMAT, force=True)
    logging.getLogger("toolgate").setLevel(logging.DEBUG if debug_enabled else to_logging_level(level))


def to_logging_level(value: LogLevel | str) -> int:
    mapping = {
        LogLevel.DEBUG: logging.DEBUG,
        LogLevel.INFO: logging.INFO,
        LogLevel.WARNING: logging.WARNING,
        LogLevel.ERROR: logging.ERROR,
    }
    if isinstance(value, LogLevel):
        return mapping[value]
    try:
        return mapping[LogLevel(value)]
    except ValueError:
        return logging.WARNING


__all__ = [
    "configure_session_logger",
    "configure_base_logging",
    "session_log_path",
    "to_logging_level",
]
