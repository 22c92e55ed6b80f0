"""Tool implementations and their aggregation.

Each implementation module exports ``tool_registrations`` binding tool names
to a typed parameter model and a handler. ``get_tool_registrations`` collects
them into the router's dispatch table. ``execute_code`` has a definition in
the registry but no implementation here.
"""

from __future__ import annotations

from collections.abc import Iterable

from toolgate.tools.file_ops import tool_registrations as file_ops_registrations
from toolgate.tools.list_directory import tool_registrations as list_directory_registrations
from toolgate.tools.registry import ToolRegistration
from toolgate.tools.search_files import tool_registrations as search_registrations
from toolgate.tools.shell import tool_registrations as shell_registrations


def get_tool_registrations() -> list[ToolRegistration]:
    registrations: list[ToolRegistration] = []

    def extend(items: Iterable[ToolRegistration]) -> None:
        registrations.extend(items)

    extend(file_ops_registrations())
    extend(list_directory_registrations())
    extend(search_registrations())
    extend(shell_registrations())

    return registrations


__all__ = ["get_tool_registrations", "ToolRegistration"]
