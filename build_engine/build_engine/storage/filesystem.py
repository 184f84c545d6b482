"""Snapshot store backed by a local or mounted directory."""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
from pathlib import Path

from build_engine.storage.base import (
    SnapshotNotFoundError,
    SnapshotStore,
    StorageError,
    validate_commit_id,
)

logger = logging.getLogger(__name__)

SNAPSHOT_SUFFIX = ".zip"


class FileSystemSnapshotStore(SnapshotStore):
    """One ``<commit_id>.zip`` file per snapshot under *root*."""

    def __init__(self, root: Path, max_workers: int = 1) -> None:
        super().__init__(max_workers=max_workers)
        self._root = root.expanduser()

    @property
    def root(self) -> Path:
        return self._root

    @property
    def location(self) -> str:
        return f"directory '{self._root}'"

    def snapshot_path(self, commit_id: str) -> Path:
        return self._root / f"{validate_commit_id(commit_id)}{SNAPSHOT_SUFFIX}"

    def exists(self, commit_id: str) -> bool:
        return self.snapshot_path(commit_id).is_file()

    def fetch(self, commit_id: str) -> Path:
        path = self.snapshot_path(commit_id)
        if not path.is_file():
            raise SnapshotNotFoundError(commit_id, self.location)
        return path

    def store(self, commit_id: str, blob_path: Path) -> str:
        target = self.snapshot_path(commit_id)
        try:
            self._root.mkdir(parents=True, exist_ok=True)
            # Copy next to the target first so readers never see a partial blob.
            fd, tmp_name = tempfile.mkstemp(prefix=f".{commit_id}.", suffix=".tmp", dir=self._root)
            os.close(fd)
            try:
                shutil.copyfile(blob_path, tmp_name)
                os.replace(tmp_name, target)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as exc:
            raise StorageError(f"Failed to store snapshot for commit '{commit_id}' in {self.location}: {exc}") from exc

        logger.info("Stored snapshot %s at '%s'.", commit_id, target)
        return str(target)
