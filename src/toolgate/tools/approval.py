"""Operator approval for dangerous tool calls.

``Approver`` is the capability the router blocks on. ``TerminalApprover``
prompts on the console; ``QueueApprover`` parks requests in a pending queue
that another thread (a server endpoint, a UI) resolves; ``StaticApprover``
answers the same way every time. Any answer other than yes/y is a refusal.
"""

from __future__ import annotations

import json
import threading
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable

from rich.console import Console

from toolgate.tools.base import ToolCallRequest, utc_timestamp

AFFIRMATIVE_ANSWERS = frozenset({"yes", "y"})


class ApprovalNotFoundError(KeyError):
    """Raised when resolving an approval id that is not pending."""


def is_affirmative(answer: str | None) -> bool:
    if answer is None:
        return False
    return answer.strip().lower() in AFFIRMATIVE_ANSWERS


@runtime_checkable
class Approver(Protocol):
    def confirm(self, request: ToolCallRequest) -> bool:
        """Block until the operator accepts (True) or refuses (False)."""


class StaticApprover:
    def __init__(self, answer: bool) -> None:
        self.answer = answer

    def confirm(self, request: ToolCallRequest) -> bool:
        return self.answer


class TerminalApprover:
    """Ask on the terminal. Prompts are serialized so they never interleave."""

    _prompt_lock = threading.Lock()

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console(highlight=False)

    def confirm(self, request: ToolCallRequest) -> bool:
        with self._prompt_lock:
            self.console.print("\n[yellow]Dangerous operation requested:[/yellow]")
            self.console.print(f"Tool: [bold]{request.tool}[/bold]")
            self.console.print("Parameters:")
            self.console.print(json.dumps(request.parameters, indent=2, default=str), markup=False)
            try:
                answer = self.console.input("\nAllow this operation? (yes/no): ")
            except (EOFError, KeyboardInterrupt):
                self.console.print()
                return False
        return is_affirmative(answer)


@dataclass
class PendingApproval:
    request: ToolCallRequest
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    created_at: str = field(default_factory=utc_timestamp)
    decision: bool | None = None
    _resolved: threading.Event = field(default_factory=threading.Event, repr=False)

    def resolve(self, decision: bool) -> None:
        self.decision = decision
        self._resolved.set()

    def wait(self, timeout: float | None) -> bool:
        return self._resolved.wait(timeout)


class QueueApprover:
    """Out-of-band approval channel for headless or server contexts.

    ``confirm`` registers a ``PendingApproval``, fires ``on_pending`` and
    blocks only the calling thread until ``approve``/``deny`` is called for
    that id or ``timeout`` seconds pass (a timeout is a refusal).
    """

    def __init__(
        self,
        *,
        timeout: float | None = None,
        on_pending: Callable[[PendingApproval], None] | None = None,
    ) -> None:
        self.timeout = timeout
        self.on_pending = on_pending
        self._pending: dict[str, PendingApproval] = {}
        self._lock = threading.Lock()

    def confirm(self, request: ToolCallRequest) -> bool:
        approval = PendingApproval(request=request)
        with self._lock:
            self._pending[approval.id] = approval
        try:
            if self.on_pending is not None:
                self.on_pending(approval)
            if not approval.wait(self.timeout):
                return False
            return bool(approval.decision)
        finally:
            with self._lock:
                self._pending.pop(approval.id, None)

    def pending(self) -> list[PendingApproval]:
        with self._lock:
            return list(self._pending.values())

    def approve(self, approval_id: str) -> None:
        self._resolve(approval_id, True)

    def deny(self, approval_id: str) -> None:
        self._resolve(approval_id, False)

    def _resolve(self, approval_id: str, decision: bool) -> None:
        with self._lock:
            approval = self._pending.get(approval_id)
        if approval is None:
            raise ApprovalNotFoundError(approval_id)
        approval.resolve(decision)


__all__ = [
    "Approver",
    "StaticApprover",
    "TerminalApprover",
    "QueueApprover",
    "PendingApproval",
    "ApprovalNotFoundError",
    "is_affirmative",
]
