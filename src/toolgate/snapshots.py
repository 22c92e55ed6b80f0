"""File snapshots taken before mutating tool calls, with revert and undo.

The router only depends on the ``SnapshotCreator`` protocol. ``SnapshotStore``
is the default implementation: one JSON document per snapshot under
``<home>/snapshots``. A snapshot records the pre-image of each affected file,
including the fact that a file did not exist yet, so reverting a
``write_file`` that created a file removes it again.
"""

from __future__ import annotations

import base64
import hashlib
import logging
import uuid
from collections import defaultdict
from collections.abc import Iterable, Sequence
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Literal, Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from toolgate.paths import snapshots_dir
from toolgate.tools.base import utc_timestamp
from toolgate.tools.fs import resolve_path

logger = logging.getLogger(__name__)

MAX_FILES_PER_SNAPSHOT = 1_000


class SnapshotError(Exception):
    """Raised when a snapshot cannot be written or restored."""


class SnapshotNotFoundError(SnapshotError):
    """Raised when a snapshot id does not exist in the store."""


class FileSnapshot(BaseModel):
    model_config = ConfigDict(frozen=True)

    path: str
    existed: bool
    content: str | None = None
    encoding: Literal["utf-8", "base64"] = "utf-8"
    hash: str | None = None
    size: int = 0
    mtime: str | None = None

    def restore(self) -> None:
        target = Path(self.path)
        if not self.existed:
            if target.is_file() or target.is_symlink():
                target.unlink()
            return
        target.parent.mkdir(parents=True, exist_ok=True)
        if self.encoding == "base64":
            target.write_bytes(base64.b64decode(self.content or ""))
        else:
            target.write_text(self.content or "", encoding="utf-8")


class Snapshot(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    session_id: str | None = None
    timestamp: str = Field(default_factory=utc_timestamp)
    reason: str
    files: list[FileSnapshot] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)


class SnapshotMetadata(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    timestamp: str
    reason: str
    file_count: int
    session_id: str | None = None


class RevertResult(BaseModel):
    success: bool
    files_reverted: list[str] = Field(default_factory=list)
    errors: list[dict[str, str]] = Field(default_factory=list)
    backup_id: str | None = None


@runtime_checkable
class SnapshotCreator(Protocol):
    def create_snapshot(
        self,
        *,
        reason: str,
        session_id: str | None,
        files: Sequence[str],
        working_directory: Path,
    ) -> Snapshot:
        """Capture the current state of ``files`` and return the stored snapshot."""


def _capture_file(path: Path) -> FileSnapshot:
    if not path.exists():
        return FileSnapshot(path=str(path), existed=False)
    data = path.read_bytes()
    stat_result = path.stat()
    try:
        content, encoding = data.decode("utf-8"), "utf-8"
    except UnicodeDecodeError:
        content, encoding = base64.b64encode(data).decode("ascii"), "base64"
    return FileSnapshot(
        path=str(path),
        existed=True,
        content=content,
        encoding=encoding,
        hash=hashlib.sha256(data).hexdigest(),
        size=stat_result.st_size,
        mtime=datetime.fromtimestamp(stat_result.st_mtime, tz=UTC).isoformat(),
    )


def _expand(paths: Iterable[Path]) -> Iterable[Path]:
    for path in paths:
        if path.is_dir():
            yield from sorted(child for child in path.rglob("*") if child.is_file())
        else:
            yield path


class SnapshotStore:
    """JSON-file snapshot store."""

    def __init__(self, base_dir: Path | None = None) -> None:
        self.base_dir = snapshots_dir(base_dir)

    def _path_for(self, snapshot_id: str) -> Path:
        if not snapshot_id or "/" in snapshot_id or snapshot_id.startswith("."):
            raise SnapshotNotFoundError(snapshot_id)
        return self.base_dir / f"{snapshot_id}.json"

    def create_snapshot(
        self,
        *,
        reason: str,
        session_id: str | None = None,
        files: Sequence[str] = (),
        working_directory: Path | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> Snapshot:
        workdir = working_directory or Path.cwd()
        resolved = [resolve_path(raw, workdir) for raw in dict.fromkeys(files)]

        captured: list[FileSnapshot] = []
        for path in _expand(resolved):
            if len(captured) >= MAX_FILES_PER_SNAPSHOT:
                logger.warning("snapshot truncated at %d files", MAX_FILES_PER_SNAPSHOT)
                break
            try:
                captured.append(_capture_file(path))
            except OSError as exc:
                logger.debug("skipping unreadable file %s: %s", path, exc)

        snapshot = Snapshot(
            session_id=session_id,
            reason=reason,
            files=captured,
            metadata={"working_directory": str(workdir), **(metadata or {})},
        )
        self._save(snapshot)
        logger.debug("snapshot %s created (%d files): %s", snapshot.id, len(captured), reason)
        return snapshot

    def _save(self, snapshot: Snapshot) -> None:
        try:
            self.base_dir.mkdir(parents=True, exist_ok=True)
            self._path_for(snapshot.id).write_text(snapshot.model_dump_json(indent=2), encoding="utf-8")
        except OSError as exc:
            raise SnapshotError(f"failed to save snapshot {snapshot.id}: {exc}") from exc

    def load_snapshot(self, snapshot_id: str) -> Snapshot:
        path = self._path_for(snapshot_id)
        if not path.exists():
            raise SnapshotNotFoundError(snapshot_id)
        return Snapshot.model_validate_json(path.read_text(encoding="utf-8"))

    def list_snapshots(self, session_id: str | None = None) -> list[SnapshotMetadata]:
        """Return snapshot summaries, newest first; unreadable files are skipped."""

        if not self.base_dir.exists():
            return []
        entries: list[SnapshotMetadata] = []
        for path in self.base_dir.glob("*.json"):
            try:
                snapshot = Snapshot.model_validate_json(path.read_text(encoding="utf-8"))
            except (OSError, ValidationError) as exc:
                logger.debug("ignoring invalid snapshot file %s: %s", path, exc)
                continue
            if session_id is not None and snapshot.session_id != session_id:
                continue
            entries.append(
                SnapshotMetadata(
                    id=snapshot.id,
                    timestamp=snapshot.timestamp,
                    reason=snapshot.reason,
                    file_count=len(snapshot.files),
                    session_id=snapshot.session_id,
                )
            )
        entries.sort(key=lambda e: e.timestamp, reverse=True)
        return entries

    def revert_to_snapshot(
        self,
        snapshot_id: str,
        *,
        files: Sequence[str] | None = None,
        create_backup: bool = False,
    ) -> RevertResult:
        snapshot = self.load_snapshot(snapshot_id)
        targets = [f for f in snapshot.files if files is None or f.path in files]

        backup_id = None
        if create_backup:
            backup = self.create_snapshot(
                reason=f"Backup before reverting to {snapshot_id}",
                session_id=snapshot.session_id,
                files=[f.path for f in targets],
                working_directory=Path(snapshot.metadata.get("working_directory") or Path.cwd()),
                metadata={"backup_of": snapshot_id},
            )
            backup_id = backup.id

        result = RevertResult(success=True, backup_id=backup_id)
        for file_snapshot in targets:
            try:
                file_snapshot.restore()
            except OSError as exc:
                result.errors.append({"file": file_snapshot.path, "error": str(exc)})
            else:
                result.files_reverted.append(file_snapshot.path)
        result.success = not result.errors
        return result

    def undo(self, session_id: str | None = None) -> RevertResult:
        """Revert the newest non-backup snapshot, keeping a backup of the current state."""

        for meta in self.list_snapshots(session_id):
            snapshot = self.load_snapshot(meta.id)
            if "backup_of" in snapshot.metadata:
                continue
            return self.revert_to_snapshot(meta.id, create_backup=True)
        raise SnapshotNotFoundError("no snapshots available to undo")

    def delete_snapshot(self, snapshot_id: str) -> bool:
        try:
            self._path_for(snapshot_id).unlink()
        except (FileNotFoundError, SnapshotNotFoundError):
            return False
        return True

    def clean_old_snapshots(self, keep_per_session: int = 10) -> int:
        """Keep the newest ``keep_per_session`` snapshots of each session."""

        groups: dict[str | None, list[SnapshotMetadata]] = defaultdict(list)
        for meta in self.list_snapshots():
            groups[meta.session_id].append(meta)

        deleted = 0
        for metas in groups.values():
            for meta in metas[keep_per_session:]:
                if self.delete_snapshot(meta.id):
                    deleted += 1
        return deleted


__all__ = [
    "SnapshotCreator",
    "SnapshotStore",
    "Snapshot",
    "FileSnapshot",
    "SnapshotMetadata",
    "RevertResult",
    "SnapshotError",
    "SnapshotNotFoundError",
]
