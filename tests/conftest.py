import pathlib
import shutil
import sys
from pathlib import Path
from typing import Any

import pytest

PROJECT_ROOT = pathlib.Path(__file__).resolve().parents[1]
SRC_PATH = PROJECT_ROOT / "src"

# Ensure src/ is importable when running tests without installing the package.
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from toolgate.snapshots import SnapshotStore  # noqa: E402
from toolgate.tools.base import ToolCallRequest, ToolContext  # noqa: E402
from toolgate.tools.router import ToolRouter  # noqa: E402


@pytest.fixture(autouse=True)
def _isolate_toolgate_home(monkeypatch: pytest.MonkeyPatch, tmp_path_factory: pytest.TempPathFactory):
    """Point TOOLGATE_HOME at a throwaway directory so we never touch ~/.toolgate."""

    home = tmp_path_factory.mktemp("toolgate-home")
    monkeypatch.setenv("TOOLGATE_HOME", str(home))
    for name in ("TOOLGATE_WORKDIR", "TOOLGATE_SANDBOX", "TOOLGATE_ALLOW_DANGEROUS", "TOOLGATE_BASH_TIMEOUT"):
        monkeypatch.delenv(name, raising=False)
    yield home
    shutil.rmtree(home, ignore_errors=True)


@pytest.fixture
def project(tmp_path: Path) -> Path:
    """A sandboxed project directory with a couple of files in it."""

    root = tmp_path / "project"
    (root / "src").mkdir(parents=True)
    (root / "README.md").write_text("# demo\n", encoding="utf-8")
    (root / "src" / "app.py").write_text("print('hello')\n", encoding="utf-8")
    return root


@pytest.fixture
def context(project: Path) -> ToolContext:
    return ToolContext(working_directory=project, sandbox_paths=(project,), session_id="sess-test")


@pytest.fixture
def snapshot_store(tmp_path: Path) -> SnapshotStore:
    return SnapshotStore(base_dir=tmp_path / "snapshots")


class SpyApprover:
    """Approver that records every request and answers with a fixed decision."""

    def __init__(self, answer: bool = True) -> None:
        self.answer = answer
        self.calls: list[ToolCallRequest] = []

    def confirm(self, request: ToolCallRequest) -> bool:
        self.calls.append(request)
        return self.answer


class RecordingSnapshots:
    """In-memory SnapshotCreator that remembers what it was asked to capture."""

    def __init__(self, *, fail: bool = False, on_create: Any = None) -> None:
        self.fail = fail
        self.on_create = on_create
        self.calls: list[dict[str, Any]] = []

    def create_snapshot(self, *, reason, session_id, files, working_directory):
        self.calls.append(
            {"reason": reason, "session_id": session_id, "files": list(files), "working_directory": working_directory}
        )
        if self.on_create is not None:
            self.on_create()
        if self.fail:
            raise OSError("disk full")

        class _Snap:
            id = f"snap-{len(self.calls)}"

        return _Snap()


@pytest.fixture
def spy_approver() -> type[SpyApprover]:
    return SpyApprover


@pytest.fixture
def recording_snapshots() -> type[RecordingSnapshots]:
    return RecordingSnapshots


@pytest.fixture
def make_router(context: ToolContext):
    """Factory for routers bound to the sandboxed project context."""

    def _make(**kwargs: Any) -> ToolRouter:
        ctx = kwargs.pop("context", context)
        kwargs.setdefault("approver", SpyApprover(True))
        return ToolRouter(ctx, **kwargs)

    return _make


@pytest.fixture
def capture_print(monkeypatch: pytest.MonkeyPatch):
    """Capture built-in print output into a list of strings."""

    calls: list[str] = []

    def fake_print(*args, **kwargs):
        calls.append(" ".join(str(a) for a in args))

    monkeypatch.setattr("builtins.print", fake_print)
    return calls
