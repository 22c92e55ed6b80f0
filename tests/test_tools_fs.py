from pathlib import Path

import pytest

from toolgate.tools.fs import SandboxBoundary, SandboxViolationError, resolve_path


def test_resolve_relative_against_workdir() -> None:
    assert resolve_path("src/../a.txt", Path("/tmp/root")) == Path("/tmp/root/a.txt")


def test_resolve_absolute_ignores_workdir() -> None:
    assert resolve_path("/var/log/syslog", Path("/tmp/root")) == Path("/var/log/syslog")


def test_is_within_equal_and_descendant(tmp_path: Path) -> None:
    boundary = SandboxBoundary([tmp_path], tmp_path)
    assert boundary.is_within(tmp_path)
    assert boundary.is_within("a/b/c.txt")
    assert boundary.is_within(str(tmp_path / "x"))


def test_traversal_is_blocked(tmp_path: Path) -> None:
    root = tmp_path / "root"
    root.mkdir()
    boundary = SandboxBoundary([root], root)
    assert not boundary.is_within("../etc/passwd")
    assert not boundary.is_within("/etc/passwd")


def test_prefix_sibling_is_not_within(tmp_path: Path) -> None:
    root = tmp_path / "project"
    sibling = tmp_path / "project-evil"
    boundary = SandboxBoundary([root], root)
    assert not boundary.is_within(sibling / "x")


def test_any_root_may_contain_path(tmp_path: Path) -> None:
    a, b = tmp_path / "a", tmp_path / "b"
    boundary = SandboxBoundary([a, b], a)
    assert boundary.is_within(b / "file")


def test_empty_roots_unrestricted() -> None:
    boundary = SandboxBoundary([], Path("/tmp"))
    assert boundary.is_within("/etc/hosts")


def test_symlink_escape_is_blocked(tmp_path: Path) -> None:
    root = tmp_path / "root"
    root.mkdir()
    outside = tmp_path / "outside"
    outside.mkdir()
    (root / "link").symlink_to(outside)

    boundary = SandboxBoundary([root], root)

    assert not boundary.is_within("link/file.txt")


def test_ensure_within_raises(tmp_path: Path) -> None:
    boundary = SandboxBoundary([tmp_path], tmp_path)
    assert boundary.ensure_within("inner.txt") == tmp_path.resolve() / "inner.txt"
    with pytest.raises(SandboxViolationError) as exc:
        boundary.ensure_within("/etc/passwd")
    assert exc.value.raw_path == "/etc/passwd"


def test_nul_byte_is_not_a_path(tmp_path: Path) -> None:
    boundary = SandboxBoundary([tmp_path], tmp_path)
    with pytest.raises(ValueError):
        boundary.ensure_within("a\x00b")
