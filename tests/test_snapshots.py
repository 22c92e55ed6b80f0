import json
from pathlib import Path

import pytest

from toolgate.snapshots import SnapshotCreator, SnapshotNotFoundError, SnapshotStore


def test_store_satisfies_creator_protocol(snapshot_store: SnapshotStore) -> None:
    assert isinstance(snapshot_store, SnapshotCreator)


def test_create_captures_existing_and_missing_files(snapshot_store: SnapshotStore, project: Path) -> None:
    snapshot = snapshot_store.create_snapshot(
        reason="Before write_file",
        session_id="s1",
        files=["README.md", "new.txt"],
        working_directory=project,
    )

    by_name = {Path(f.path).name: f for f in snapshot.files}
    assert by_name["README.md"].existed is True
    assert by_name["README.md"].content == "# demo\n"
    assert by_name["README.md"].hash
    assert by_name["new.txt"].existed is False
    assert snapshot_store.load_snapshot(snapshot.id) == snapshot


def test_directories_expand_to_files(snapshot_store: SnapshotStore, project: Path) -> None:
    snapshot = snapshot_store.create_snapshot(reason="r", files=["src"], working_directory=project)
    assert [Path(f.path).name for f in snapshot.files] == ["app.py"]


def test_binary_files_round_trip(snapshot_store: SnapshotStore, tmp_path: Path) -> None:
    blob = tmp_path / "img.bin"
    blob.write_bytes(b"\x00\xffdata")
    snapshot = snapshot_store.create_snapshot(reason="r", files=[str(blob)], working_directory=tmp_path)
    assert snapshot.files[0].encoding == "base64"

    blob.write_bytes(b"changed")
    snapshot_store.revert_to_snapshot(snapshot.id)

    assert blob.read_bytes() == b"\x00\xffdata"


def test_revert_restores_and_removes_created_files(snapshot_store: SnapshotStore, project: Path) -> None:
    snapshot = snapshot_store.create_snapshot(
        reason="r", files=["README.md", "new.txt"], working_directory=project
    )
    (project / "README.md").write_text("edited", encoding="utf-8")
    (project / "new.txt").write_text("fresh", encoding="utf-8")

    result = snapshot_store.revert_to_snapshot(snapshot.id, create_backup=True)

    assert result.success
    assert len(result.files_reverted) == 2
    assert (project / "README.md").read_text(encoding="utf-8") == "# demo\n"
    assert not (project / "new.txt").exists()
    backup = snapshot_store.load_snapshot(result.backup_id)
    assert backup.metadata["backup_of"] == snapshot.id


def test_revert_subset_of_files(snapshot_store: SnapshotStore, project: Path) -> None:
    snapshot = snapshot_store.create_snapshot(
        reason="r", files=["README.md", "src/app.py"], working_directory=project
    )
    (project / "README.md").write_text("x", encoding="utf-8")
    (project / "src" / "app.py").write_text("y", encoding="utf-8")

    snapshot_store.revert_to_snapshot(snapshot.id, files=[str(project / "README.md")])

    assert (project / "README.md").read_text(encoding="utf-8") == "# demo\n"
    assert (project / "src" / "app.py").read_text(encoding="utf-8") == "y"


def test_list_is_newest_first_and_filters_session(snapshot_store: SnapshotStore, project: Path) -> None:
    first = snapshot_store.create_snapshot(reason="one", session_id="a", working_directory=project)
    second = snapshot_store.create_snapshot(reason="two", session_id="b", working_directory=project)
    third = snapshot_store.create_snapshot(reason="three", session_id="a", working_directory=project)

    assert [m.id for m in snapshot_store.list_snapshots()] == [third.id, second.id, first.id]
    assert [m.reason for m in snapshot_store.list_snapshots("a")] == ["three", "one"]


def test_list_skips_corrupt_files(snapshot_store: SnapshotStore, project: Path) -> None:
    snapshot_store.create_snapshot(reason="ok", working_directory=project)
    (snapshot_store.base_dir / "broken.json").write_text("{not json", encoding="utf-8")

    assert [m.reason for m in snapshot_store.list_snapshots()] == ["ok"]


def test_undo_reverts_latest_change(snapshot_store: SnapshotStore, project: Path) -> None:
    readme = project / "README.md"
    snapshot_store.create_snapshot(reason="first", session_id="s", files=["README.md"], working_directory=project)
    readme.write_text("v2", encoding="utf-8")
    snapshot_store.create_snapshot(reason="second", session_id="s", files=["README.md"], working_directory=project)
    readme.write_text("v3", encoding="utf-8")

    snapshot_store.undo("s")
    assert readme.read_text(encoding="utf-8") == "v2"


def test_undo_without_snapshots(snapshot_store: SnapshotStore) -> None:
    with pytest.raises(SnapshotNotFoundError):
        snapshot_store.undo("nobody")


def test_missing_snapshot(snapshot_store: SnapshotStore) -> None:
    with pytest.raises(SnapshotNotFoundError):
        snapshot_store.load_snapshot("does-not-exist")
    with pytest.raises(SnapshotNotFoundError):
        snapshot_store.load_snapshot("../escape")
    assert snapshot_store.delete_snapshot("does-not-exist") is False


def test_clean_keeps_newest_per_session(snapshot_store: SnapshotStore, project: Path) -> None:
    for i in range(4):
        snapshot_store.create_snapshot(reason=f"a{i}", session_id="a", working_directory=project)
    snapshot_store.create_snapshot(reason="b0", session_id="b", working_directory=project)

    deleted = snapshot_store.clean_old_snapshots(keep_per_session=2)

    assert deleted == 2
    assert [m.reason for m in snapshot_store.list_snapshots("a")] == ["a3", "a2"]
    assert len(snapshot_store.list_snapshots("b")) == 1


def test_snapshot_file_is_json(snapshot_store: SnapshotStore, project: Path) -> None:
    snapshot = snapshot_store.create_snapshot(reason="r", working_directory=project)
    payload = json.loads((snapshot_store.base_dir / f"{snapshot.id}.json").read_text(encoding="utf-8"))
    assert payload["reason"] == "r"
    assert payload["metadata"]["working_directory"] == str(project)
