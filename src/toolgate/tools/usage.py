"""In-memory, append-only record of tool invocations."""

from __future__ import annotations

import threading
from collections import Counter

from toolgate.tools.base import ToolUsage, UsageStats


class UsageLedger:
    """Thread-safe append-only ledger; lives for the router's lifetime."""

    def __init__(self) -> None:
        self._entries: list[ToolUsage] = []
        self._lock = threading.Lock()

    def record(self, usage: ToolUsage) -> None:
        with self._lock:
            self._entries.append(usage)

    def entries(self) -> list[ToolUsage]:
        with self._lock:
            return list(self._entries)

    def stats(self) -> UsageStats:
        entries = self.entries()
        total = len(entries)
        successes = sum(1 for entry in entries if entry.success)
        counts = Counter(entry.tool for entry in entries)
        return UsageStats(
            total_calls=total,
            success_rate=successes / total if total else 0.0,
            tool_usage=dict(counts),
        )

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


__all__ = ["UsageLedger"]
