import threading

import pytest

from toolgate.tools.approval import (
    ApprovalNotFoundError,
    Approver,
    QueueApprover,
    StaticApprover,
    TerminalApprover,
    is_affirmative,
)
from toolgate.tools.base import ToolCallRequest


def _bash(command: str = "ls") -> ToolCallRequest:
    return ToolCallRequest(tool="bash", parameters={"command": command})


class FakeConsole:
    def __init__(self, answer: str | BaseException) -> None:
        self.answer = answer
        self.printed: list[str] = []
        self.prompts: list[str] = []

    def print(self, *args, **kwargs) -> None:
        self.printed.append(" ".join(str(a) for a in args))

    def input(self, prompt: str = "") -> str:
        self.prompts.append(prompt)
        if isinstance(self.answer, BaseException):
            raise self.answer
        return self.answer


@pytest.mark.parametrize(
    ("answer", "expected"),
    [("yes", True), ("y", True), (" YES ", True), ("Y", True), ("no", False), ("", False), ("yep", False), (None, False)],
)
def test_is_affirmative(answer, expected) -> None:
    assert is_affirmative(answer) is expected


def test_static_approver() -> None:
    assert StaticApprover(True).confirm(_bash()) is True
    assert StaticApprover(False).confirm(_bash()) is False
    assert isinstance(StaticApprover(True), Approver)


def test_terminal_approver_shows_request_and_accepts_yes() -> None:
    console = FakeConsole("y")
    approver = TerminalApprover(console=console)  # type: ignore[arg-type]

    assert approver.confirm(_bash("echo hi")) is True
    assert console.prompts == ["\nAllow this operation? (yes/no): "]
    assert any("bash" in line for line in console.printed)
    assert any('"command": "echo hi"' in line for line in console.printed)


def test_terminal_approver_refuses_other_answers() -> None:
    approver = TerminalApprover(console=FakeConsole("sure"))  # type: ignore[arg-type]
    assert approver.confirm(_bash()) is False


@pytest.mark.parametrize("exc", [EOFError(), KeyboardInterrupt()])
def test_terminal_approver_eof_is_refusal(exc) -> None:
    approver = TerminalApprover(console=FakeConsole(exc))  # type: ignore[arg-type]
    assert approver.confirm(_bash()) is False


def test_queue_approver_resolved_from_other_thread() -> None:
    approver = QueueApprover(on_pending=lambda pending: threading.Timer(0.05, approver.approve, [pending.id]).start())

    assert approver.confirm(_bash()) is True
    assert approver.pending() == []


def test_queue_approver_deny() -> None:
    approver = QueueApprover(on_pending=lambda pending: approver.deny(pending.id))
    assert approver.confirm(_bash()) is False


def test_queue_approver_lists_pending_while_blocked() -> None:
    seen: list[str] = []
    approver = QueueApprover(timeout=5)
    result: dict[str, bool] = {}

    worker = threading.Thread(target=lambda: result.setdefault("ok", approver.confirm(_bash("make"))))
    worker.start()
    for _ in range(200):
        if approver.pending():
            break
        threading.Event().wait(0.01)
    pending = approver.pending()
    assert len(pending) == 1
    assert pending[0].request.parameters == {"command": "make"}
    seen.append(pending[0].id)
    approver.approve(seen[0])
    worker.join(timeout=5)

    assert result == {"ok": True}


def test_queue_approver_timeout_is_refusal() -> None:
    approver = QueueApprover(timeout=0.01)
    assert approver.confirm(_bash()) is False
    assert approver.pending() == []


def test_resolving_unknown_id_raises() -> None:
    with pytest.raises(ApprovalNotFoundError):
        QueueApprover().approve("missing")
