"""Size caps for text returned to the agent."""

from __future__ import annotations

TRUNCATION_MARKER = "[truncated]"


def clip_line(line: str, max_chars: int = 1_000) -> str:
    if len(line) <= max_chars:
        return line
    return f"{line[:max_chars]}… {TRUNCATION_MARKER}"


def truncate_output(text: str, *, max_bytes: int = 65_536, max_lines: int = 2_000) -> tuple[str, bool]:
    """Cap ``text`` by UTF-8 bytes and by line count.

    Returns ``(text, truncated)``. Whole lines are kept; when a cap is hit the
    marker is appended on its own line.
    """

    kept: list[str] = []
    used = 0
    truncated = False
    for index, line in enumerate(text.splitlines(keepends=True)):
        size = len(line.encode("utf-8"))
        if index >= max_lines or used + size > max_bytes:
            truncated = True
            break
        kept.append(line)
        used += size

    result = "".join(kept)
    if truncated:
        if result and not result.endswith("\n"):
            result += "\n"
        result += TRUNCATION_MARKER
    return result, truncated


__all__ = ["truncate_output", "clip_line", "TRUNCATION_MARKER"]
